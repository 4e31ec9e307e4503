"""Application-wide configuration loading and validation."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Centralized environment configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    environment: Literal["local", "dev", "prod"] = Field(default="local")
    log_level: str = Field(default="INFO")

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/signaling.db",
        description="SQLAlchemy connection string.",
    )

    # Migrations / schema
    auto_create_db_schema: bool = Field(
        default=True,
        description="If true, creates tables automatically on startup (useful for local/dev).",
    )

    # Credential verification
    jwt_secret: str = Field(
        default="change-me",
        description="Shared secret used to verify access tokens issued by the auth service.",
    )
    jwt_algorithm: str = Field(default="HS256")

    # Signaling
    ring_timeout_seconds: float = Field(
        default=30.0,
        gt=0.0,
        description="How long a call may ring before it is timed out as missed.",
    )
    close_superseded_connections: bool = Field(
        default=True,
        description="Close the older connection when the same identity authenticates again.",
    )

    # Call history
    call_log_backend: Literal["database", "webhook"] = Field(default="database")
    call_log_webhook_url: str | None = Field(
        default=None,
        description="Endpoint receiving call outcomes when CALL_LOG_BACKEND=webhook.",
    )
    call_log_webhook_api_key: str | None = Field(default=None)

    data_dir: Path = Field(default=Path("./data"))

    @field_validator("data_dir")
    @classmethod
    def ensure_data_dir(cls, value: Path) -> Path:
        value.mkdir(parents=True, exist_ok=True)
        return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance."""

    return Settings()
