"""Configuration for the Botrak session core via environment variables."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ApiSettings(BaseModel):
    """Remote backend connection."""
    base_url: str = "https://botrak.virtueinfo.com/api"
    timeout_seconds: float = Field(default=30.0, gt=0, description="Per-request timeout")
    from_mobile: bool = True


class StorageSettings(BaseModel):
    """Durable session storage."""
    backend: Literal["sqlite", "memory"] = "sqlite"
    db_path: Path = Field(default_factory=lambda: Path.home() / ".botrak" / "session.db")


class LoggingSettings(BaseModel):
    level: str = "INFO"
    format: Literal["console", "json"] = "console"


class BotrakSettings(BaseSettings):
    """Top-level settings, e.g. ``BOTRAK_API__BASE_URL`` or ``BOTRAK_LOGGING__LEVEL``."""
    api: ApiSettings = Field(default_factory=ApiSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = SettingsConfigDict(
        env_prefix="BOTRAK_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )
