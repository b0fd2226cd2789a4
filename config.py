# config.py

"""Application configuration utilities.

Values are primarily loaded from ``config.json`` and may be overridden by
environment variables. The :func:`get_settings` helper merges the two sources
and caches the result.
"""

from __future__ import annotations

import json
import os
from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class GatewayKind(str, Enum):
    """Select the payment gateway implementation wired into the app.

    ``STUB`` keeps every payment in-process and is the default for local
    development and tests. ``STRIPE`` talks to the Stripe API using the
    configured secret key.
    """

    STUB = "stub"
    STRIPE = "stripe"


class Settings(BaseSettings):
    """Application settings merged from JSON and environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: str = "sqlite+aiosqlite:///./dev.db"
    redis_url: str = "redis://localhost:6379/0"
    secret_key: str = "change-me"
    # Comma separated; empty accepts any origin.
    allowed_origins: str = ""
    currency: str = "usd"
    default_platform_fee_percent: float = 1.0
    payment_gateway: GatewayKind = GatewayKind.STUB
    stripe_secret_key: str | None = None
    stripe_webhook_secret: str | None = None
    public_base_url: str = "http://localhost:3000"
    access_token_expire_minutes: int = 60 * 12
    sse_keepalive_secs: int = 30
    log_level: str = "INFO"

    @property
    def origin_list(self) -> list[str]:
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]


# Cached singleton to avoid repeated file reads
@lru_cache
def get_settings() -> Settings:
    """Return merged settings with environment variable precedence.

    The configuration is read from ``config.json`` located alongside this file
    and fed into :class:`Settings`. Environment variables override any values
    from the JSON file. The result is cached to prevent repeated disk reads.
    """

    config_path = Path(__file__).with_name("config.json")
    data = json.loads(config_path.read_text()) if config_path.exists() else {}
    env_override = {
        k.lower(): v
        for k, v in os.environ.items()
        if k.lower() in Settings.model_fields
    }
    merged = {**data, **env_override}
    # Environment variables override values from the JSON file.
    return Settings(**merged)
