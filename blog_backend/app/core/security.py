from __future__ import annotations

from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.hash import bcrypt


bearer_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    return bcrypt.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    return bcrypt.verify(password, password_hash)


async def optional_token(creds: HTTPAuthorizationCredentials | None = Depends(bearer_scheme)) -> Optional[str]:
    # A missing header is "no token"; the pipeline decides what that means.
    if creds is None or not creds.scheme.lower().startswith("bearer"):
        return None
    token = creds.credentials.strip()
    return token or None
