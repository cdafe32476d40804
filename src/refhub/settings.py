"""Application settings and configuration."""

import sys

from pydantic_settings import BaseSettings, SettingsConfigDict

_INSECURE_JWT_DEFAULTS = {"change-me-in-production", "secret", "your_jwt_secret_key_here_at_least_32_characters"}


class Settings(BaseSettings):
    """Application configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "refhub"
    env: str = "development"
    log_level: str = "INFO"
    log_format: str = "console"  # console or json
    allowed_origins: str = "http://localhost:3001"
    frontend_url: str | None = None

    # Sessions (JWT)
    jwt_secret_key: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    session_expire_hours: int = 24
    reset_token_expire_minutes: int = 15
    session_cookie_name: str = "token"
    password_hash_rounds: int = 12

    # Database
    database_url: str = "sqlite:///./refhub.db"

    # Email (SendGrid)
    sendgrid_api_key: str | None = None
    sendgrid_from_email: str = "no-reply@refhub.local"
    sendgrid_from_name: str = "RefHub"

    # Response cache
    cache_ttl_seconds: int = 300

    # Referral program
    referral_reward_amount: int = 100
    referral_code_length: int = 8
    referral_code_max_attempts: int = 10
    strict_referral_transitions: bool = False

    # Transport security
    csrf_enabled: bool = True
    rate_limit_enabled: bool | None = None  # None: production only
    rate_limit_standard: str = "100 per 15 minutes"
    rate_limit_strict: str = "5 per 15 minutes"

    @property
    def is_production(self) -> bool:
        return self.env == "production"


# Global settings instance
settings = Settings()

# ── Security validation ──────────────────────────────────────────────
if settings.env == "production":
    if settings.jwt_secret_key in _INSECURE_JWT_DEFAULTS or len(settings.jwt_secret_key) < 32:
        print(
            "\n❌  FATAL: JWT_SECRET_KEY is insecure or too short (min 32 chars).\n"
            "   Set a strong random value:  openssl rand -hex 32\n",
            file=sys.stderr,
        )
        sys.exit(1)
