from __future__ import annotations

import os
from functools import lru_cache
from typing import Iterable


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except Exception:
        return default


def _list_env(name: str, default: str = "") -> list[str]:
    parts: Iterable[str] = (o.strip() for o in os.getenv(name, default).split(","))
    return [o for o in parts if o]


class Settings:
    def __init__(self) -> None:
        self.redis_url = os.getenv("REDIS_URL", "redis://localhost:6379/0")
        self.use_fake_redis = os.getenv("USE_FAKE_REDIS", "0") == "1"
        self.token_secret = os.getenv("TOKEN_SECRET", "dev-secret-unsafe")
        self.token_algorithm = os.getenv("TOKEN_ALGORITHM", "HS256")
        self.token_ttl_seconds = _int_env("TOKEN_TTL_SECONDS", 3600)
        self.admin_usernames = set(_list_env("ADMIN_USERNAMES"))
        self.cors_origins = _list_env("CORS_ALLOW_ORIGINS", "http://localhost:3000")
        self.log_level = os.getenv("LOG_LEVEL", "INFO").upper()

    @property
    def in_memory_store(self) -> bool:
        return (
            self.use_fake_redis
            or self.redis_url.startswith("memory://")
            or self.redis_url.startswith("redis+fake://")
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
