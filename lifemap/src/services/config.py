"""Application configuration helpers."""

from __future__ import annotations

from functools import lru_cache
import os
from pathlib import Path
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

PROJECT_ROOT = Path(__file__).resolve().parents[3]
DEFAULT_DB_PATH = PROJECT_ROOT / "data" / "lifemap.db"
DEFAULT_TAGS: Tuple[str, ...] = ("#idea", "#todo", "#goal", "#urgent")


class AppConfig(BaseModel):
    """Runtime configuration loaded from environment variables."""

    model_config = ConfigDict(frozen=True)

    db_path: Path = Field(default=DEFAULT_DB_PATH, description="SQLite document store")
    save_debounce_seconds: float = Field(
        default=1.5,
        gt=0,
        description="Quiet period before local edits are written",
    )
    hydrate_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="How long to wait for the first snapshot before starting empty",
    )
    poll_interval_seconds: float = Field(
        default=2.0,
        gt=0,
        description="Polling interval of the HTTP document repository",
    )
    api_url: str = Field(
        default="http://localhost:8000",
        description="Base URL of the life map API",
    )
    default_tags: Tuple[str, ...] = Field(
        default=DEFAULT_TAGS,
        description="Tag registry seeded into documents without one",
    )
    local_user_id: str = Field(
        default="local-dev",
        min_length=1,
        description="Owner of plans while authentication is out of the picture",
    )

    @field_validator("db_path", mode="before")
    @classmethod
    def _normalize_db_path(cls, value: str | Path | None) -> Path:
        if value is None or value == "":
            raise ValueError("LIFEMAP_DB_PATH cannot be empty")
        path = value if isinstance(value, Path) else Path(value)
        return path.expanduser().resolve()

    @field_validator("default_tags", mode="before")
    @classmethod
    def _split_tags(cls, value: str | Tuple[str, ...] | list[str]) -> Tuple[str, ...]:
        if isinstance(value, str):
            value = value.split(",")
        tags: list[str] = []
        for tag in value:
            cleaned = tag.strip()
            if cleaned and cleaned not in tags:
                tags.append(cleaned)
        return tuple(tags)

    @field_validator("api_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        cleaned = value.strip().rstrip("/")
        if not cleaned.startswith(("http://", "https://")):
            raise ValueError("LIFEMAP_API_URL must be an http(s) URL")
        return cleaned


def _read_env(key: str, default: Optional[str] = None) -> Optional[str]:
    return os.getenv(key, default)


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Load and cache application configuration."""
    config = AppConfig(
        db_path=_read_env("LIFEMAP_DB_PATH", str(DEFAULT_DB_PATH)),
        save_debounce_seconds=float(_read_env("SAVE_DEBOUNCE_SECONDS", "1.5")),
        hydrate_timeout_seconds=float(_read_env("HYDRATE_TIMEOUT_SECONDS", "10")),
        poll_interval_seconds=float(_read_env("POLL_INTERVAL_SECONDS", "2.0")),
        api_url=_read_env("LIFEMAP_API_URL", "http://localhost:8000"),
        default_tags=_read_env("DEFAULT_TAGS", ",".join(DEFAULT_TAGS)),
        local_user_id=_read_env("LOCAL_USER_ID", "local-dev"),
    )
    # Ensure the data directory exists for the document store.
    config.db_path.parent.mkdir(parents=True, exist_ok=True)
    return config


def reload_config() -> AppConfig:
    """Clear cached config (useful for tests) and reload."""
    get_config.cache_clear()
    return get_config()


__all__ = ["AppConfig", "get_config", "reload_config", "PROJECT_ROOT", "DEFAULT_DB_PATH", "DEFAULT_TAGS"]
