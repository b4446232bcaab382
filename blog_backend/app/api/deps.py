from __future__ import annotations

from fastapi import Depends, HTTPException, Request

from ..core.config import Settings, get_settings
from ..core.pipeline import MutationPipeline
from ..core.store import ContentStore
from ..core.tokens import TokenVerifier


def get_store(request: Request) -> ContentStore:
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise HTTPException(status_code=500, detail="Store not initialized")
    return store


def get_verifier(settings: Settings = Depends(get_settings)) -> TokenVerifier:
    return TokenVerifier(settings.token_secret, settings.token_algorithm)


def get_pipeline(
    store: ContentStore = Depends(get_store),
    verifier: TokenVerifier = Depends(get_verifier),
) -> MutationPipeline:
    return MutationPipeline(store, verifier)
