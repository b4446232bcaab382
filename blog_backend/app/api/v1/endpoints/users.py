from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from ....core.config import Settings, get_settings
from ....core.security import hash_password, verify_password
from ....core.store import ContentStore
from ....core.tokens import Identity, TokenVerifier
from ....schemas.auth import (
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    UserPublic,
)
from ...deps import get_store, get_verifier


router = APIRouter()


@router.post("/registration", response_model=UserPublic)
async def register(
    payload: RegisterRequest,
    store: ContentStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> UserPublic:
    username = payload.username.strip()
    if not username:
        raise HTTPException(status_code=400, detail="Username required")

    role = "admin" if username in settings.admin_usernames else "standard"
    user = await store.insert_user(username, hash_password(payload.password), role)
    return UserPublic(id=user["id"], username=user["username"], role=user["role"])


@router.post("/login", response_model=LoginResponse)
async def login(
    payload: LoginRequest,
    store: ContentStore = Depends(get_store),
    verifier: TokenVerifier = Depends(get_verifier),
    settings: Settings = Depends(get_settings),
) -> LoginResponse:
    user = await store.find_user_by_username(payload.username.strip())
    if not user:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not verify_password(payload.password, user.get("password_hash", "")):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    identity = Identity(subject_id=user["id"], role=user.get("role", "standard"))
    return LoginResponse(token=verifier.issue(identity, settings.token_ttl_seconds))
