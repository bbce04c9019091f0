"""Client configuration via environment variables.

All settings are loaded from environment variables (or .env file) using
Pydantic BaseSettings. Variables are prefixed with WRITTRAX_, e.g.
WRITTRAX_API_BASE_URL.
"""

from __future__ import annotations

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration for the writ-tracking client."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="WRITTRAX_",
        case_sensitive=False,
    )

    # --- Case-record service ---
    api_base_url: str = "http://localhost:3000"
    api_token: str = ""
    request_timeout_seconds: float = 30.0

    # --- Read cache ---
    cache_ttl_seconds: float = 300.0

    # --- Logging ---
    log_level: str = "INFO"
    log_format: str = "json"

    @field_validator("api_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")
