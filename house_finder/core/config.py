"""Application configuration loaded from environment variables.

Settings for the database, the session cookie, credential lifetimes,
abuse controls, WebAuthn relying party identity, and outbound email.
Uses pydantic-settings for validation and .env file support.
"""

from typing import Literal
from urllib.parse import urlparse

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database
    # SQLite by default; set to postgresql+asyncpg://... for Postgres
    database_url: str = "sqlite+aiosqlite:///./house_finder.db"

    # Application
    environment: str = "development"
    log_level: str = "INFO"
    # Dev mode logs magic links instead of emailing them
    dev_mode: bool = False

    # Identity
    # The admin is configured out-of-band and never stored in authorized_users
    admin_email: str = ""
    base_url: str = "http://localhost:8080"

    # Session cookie
    session_cookie_name: str = "hf_session"
    session_cookie_secure: bool = False
    session_cookie_samesite: Literal["lax", "strict"] = "lax"

    # Credential lifetimes
    login_token_ttl_minutes: int = 15
    session_ttl_days: int = 30

    # API keys
    api_key_prefix: str = "hf_"

    # Bearer key failure throttling (per source address, sliding window)
    bearer_failure_limit: int = 10
    bearer_failure_window_seconds: int = 60

    # Endpoint rate limiting (slowapi)
    # Format: "count/period" (e.g., "5/hour")
    rate_limit_login: str = "5/hour"
    rate_limit_enabled: bool = True  # Disable for testing

    # Periodic cleanup of expired login tokens and sessions
    sweep_interval_seconds: int = 3600
    sweep_enabled: bool = True

    # WebAuthn relying party
    webauthn_rp_name: str = "House Finder"
    passkey_ceremony_ttl_seconds: int = 300

    # Email (Resend)
    email_from: str = "noreply@housefinder.local"
    resend_api_key: SecretStr = SecretStr("")

    @property
    def rp_id(self) -> str:
        """WebAuthn relying party ID (host of base_url)."""
        return urlparse(self.base_url).hostname or "localhost"

    @property
    def expected_origin(self) -> str:
        """Origin the browser reports during WebAuthn ceremonies."""
        parsed = urlparse(self.base_url)
        return f"{parsed.scheme}://{parsed.netloc}"

    @model_validator(mode="after")
    def check_production_security(self) -> "Settings":
        """Validate production security requirements.

        Checks:
        - Failure limiter threshold and window must be positive (all environments)
        - ADMIN_EMAIL must be set in production
        - BASE_URL must use HTTPS in production
        - Session cookie must carry the Secure flag in production
        - Dev mode (logged magic links) must be off in production
        """
        if self.bearer_failure_limit <= 0 or self.bearer_failure_window_seconds <= 0:
            msg = (
                "BEARER_FAILURE_LIMIT and BEARER_FAILURE_WINDOW_SECONDS must be "
                "positive."
            )
            raise ValueError(msg)

        if self.environment != "production":
            return self

        if not self.admin_email:
            msg = "ADMIN_EMAIL must be set in production."
            raise ValueError(msg)
        if not self.base_url.startswith("https://"):
            msg = f"BASE_URL must use https in production. Got: {self.base_url}"
            raise ValueError(msg)
        if not self.session_cookie_secure:
            msg = "SESSION_COOKIE_SECURE must be true in production."
            raise ValueError(msg)
        if self.dev_mode:
            msg = "DEV_MODE cannot be enabled in production."
            raise ValueError(msg)
        return self


settings = Settings()
