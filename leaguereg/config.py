"""
Runtime configuration, read from the environment.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path


def _project_root() -> Path:
    return Path(__file__).resolve().parent.parent


def _split_csv(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


_DEFAULT_CORS = "http://localhost:5173,http://127.0.0.1:5173"


@dataclass(frozen=True)
class Settings:
    db_path: Path
    jwt_secret_key: str
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24 * 7  # 7 days
    cors_origins: list[str] = field(default_factory=list)
    log_level: str = "INFO"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings once per process. Call get_settings.cache_clear() after changing env."""
    db_path = os.environ.get("LEAGUEREG_DB_PATH")
    return Settings(
        db_path=Path(db_path) if db_path else _project_root() / "data" / "app.db",
        jwt_secret_key=os.environ.get("JWT_SECRET_KEY", "dev-secret-change-in-production"),
        access_token_expire_minutes=int(os.environ.get("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24 * 7)),
        cors_origins=_split_csv(os.environ.get("LEAGUEREG_CORS_ORIGINS", _DEFAULT_CORS)),
        log_level=os.environ.get("LEAGUEREG_LOG_LEVEL", "INFO").upper(),
    )


def configure_logging(level: str | None = None) -> None:
    """Root logger format/level. Safe to call more than once."""
    logging.basicConfig(
        level=level or get_settings().log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
