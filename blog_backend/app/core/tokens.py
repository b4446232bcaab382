from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Literal

from jose import jwt
from jose.exceptions import JWTError
from pydantic import BaseModel

from .errors import InvalidToken, Unauthenticated

ROLES = ("admin", "standard")


class Identity(BaseModel):
    subject_id: str
    role: Literal["admin", "standard"]

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class TokenVerifier:
    """Decodes bearer tokens signed with a shared secret."""

    def __init__(self, secret: str, algorithm: str = "HS256") -> None:
        self.secret = secret
        self.algorithm = algorithm

    def verify(self, token: str | None) -> Identity:
        if not token:
            raise Unauthenticated()
        try:
            claims: dict[str, Any] = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={"require_exp": True, "require_sub": True},
            )
        except JWTError:
            raise InvalidToken()
        role = claims.get("role")
        if role not in ROLES:
            raise InvalidToken()
        return Identity(subject_id=str(claims["sub"]), role=role)

    def issue(self, identity: Identity, ttl_seconds: int, now: datetime | None = None) -> str:
        current_time = now if now is not None else datetime.now(timezone.utc)
        claims = {
            "sub": identity.subject_id,
            "role": identity.role,
            "iat": current_time,
            "exp": current_time + timedelta(seconds=ttl_seconds),
        }
        return jwt.encode(claims, self.secret, algorithm=self.algorithm)
