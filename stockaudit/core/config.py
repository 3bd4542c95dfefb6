from __future__ import annotations

import json
from functools import lru_cache
from typing import Annotated, Any

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _split_list(value: Any) -> Any:
    """Accept ``a, b`` or a JSON list for list-valued settings."""

    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            return []
        if raw.startswith("["):
            return json.loads(raw)
        return [part.strip() for part in raw.split(",") if part.strip()]
    return value


class AppSettings(BaseSettings):
    """Environment-driven application configuration."""

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    APP_NAME: str = "Stock Audit"
    LOG_LEVEL: str = "INFO"

    DB_URL: str = Field(
        default="sqlite:///./stockaudit.db",
        validation_alias=AliasChoices("DB_URL", "DATABASE_URL"),
    )

    JWT_SECRET: str = "change-me"
    JWT_ACCESS_TTL_MIN: int = 60

    # Batch audit-clear tuning
    AUDIT_CHUNK_SIZE: int = Field(default=50, ge=1)
    AUDIT_MAX_ATTEMPTS: int = Field(default=3, ge=1)
    AUDIT_BACKOFF_SECONDS: float = Field(default=1.0, ge=0)

    # Items that never take part in a physical audit
    AUDIT_EXCLUDED_ASSET_TYPES: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["Cover", "SD Card", "Pendrive"]
    )
    AUDIT_EXCLUDED_MODELS: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["SD Card Box", "Envelope", "HDMI Cable", "USB Wall Adapter", "Dongle"]
    )

    MUTATION_ROLES: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["Super Admin", "Admin", "Operator"]
    )

    # Upstream scanners collapse repeated triggers inside this window.
    SCAN_DEBOUNCE_MS: int = 300

    @field_validator(
        "AUDIT_EXCLUDED_ASSET_TYPES",
        "AUDIT_EXCLUDED_MODELS",
        "MUTATION_ROLES",
        mode="before",
    )
    @classmethod
    def _parse_list(cls, value: Any) -> Any:
        return _split_list(value)


@lru_cache
def get_settings() -> AppSettings:
    return AppSettings()


settings = get_settings()
