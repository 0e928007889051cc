"""
camp_portal.settings

Central configuration model (Pydantic Settings).

Responsibilities:
- Provide strongly-typed, env-driven settings for all layers.
- Hide secrets from repr/logging (JWT secret, provider credentials).
- Offer a cached settings instance for dependency injection.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Env-driven configuration (prefix `CAMP_`).

    The signing secret has no default: `create_app` refuses to build an app
    without one.
    """

    model_config = SettingsConfigDict(env_prefix="CAMP_", case_sensitive=False)

    env: Literal["dev", "test", "prod"] = "dev"
    service_name: str = "camp-portal"
    log_level: str = "INFO"
    log_format: Literal["json", "console"] = "json"

    api_host: str = "0.0.0.0"
    api_port: int = 8080

    # Local bearer tokens
    jwt_alg: str = "HS256"
    jwt_issuer: str = "camp-portal"
    jwt_audience: str = "camp-portal-api"
    jwt_secret: str = Field(default="", repr=False)
    access_token_ttl_minutes: int = Field(default=60, ge=1)

    # Credentials
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)
    password_reset_ttl_minutes: int = Field(default=60, ge=1)

    # Persistence
    database_url: str = "sqlite+aiosqlite:///./camp.db"

    # External identity provider (Firebase Authentication)
    firebase_project_id: str | None = None
    firebase_credentials_json: str | None = Field(default=None, repr=False)
    firebase_app_name: str = "camp-portal"
    external_timeout_seconds: float = Field(default=10.0, gt=0)

    # Per-client limit on credential endpoints (login, register, reset requests)
    rate_limit_enabled: bool = True
    auth_rate_limit: str = "10 per 15 minutes"
    rate_limit_storage_uri: str = "async+memory://"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    # Cache avoids re-parsing env vars for each request dependency.
    return Settings()


# --- Module Notes -----------------------------------------------------------
# Tests construct `Settings(...)` directly and pass it to `create_app`; the cached
# instance is only used by the process entrypoint and unwired dependencies.
