"""orderhook configuration.

Every value is optional so that a half-configured deployment still boots;
missing credentials surface through the health check and make the webhook
fail closed instead of crashing the process at import time.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Environment-driven settings for the webhook service."""

    # Payment processor
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    stripe_timestamp_tolerance: int = 300

    # Order store (Postgres)
    database_url: str = ""
    database_connect_timeout: int = 5
    database_statement_timeout_ms: int = 5000

    # Email provider (Resend)
    resend_api_key: str = ""
    resend_base_url: str = "https://api.resend.com"
    email_from: str = "Orders <orders@example.com>"
    email_timeout: float = 10.0

    # Process
    port: int = 10000
    environment: str = "development"
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "extra": "ignore"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
