"""
ReviewHub configuration.

All values come from environment variables (or a local .env file). Provider
credentials are optional: the API boots without them, and the service that
needs a missing one raises ConfigurationError at the point of use.

A production environment is held to stricter rules, see
``Settings.check_production``.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Process-wide ReviewHub settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- storage -------------------------------------------------------------
    database_url: str = Field(default="sqlite:///./reviewhub.db", description="SQLAlchemy URL")
    database_echo: bool = Field(default=False, description="Log every SQL statement")

    # --- bearer tokens -------------------------------------------------------
    auth0_domain: str | None = Field(default=None, description="Auth0 tenant, e.g. reviewhub.us.auth0.com")
    auth0_audience: str | None = Field(default=None, description="Expected token audience")
    jwt_secret: SecretStr | None = Field(
        default=None, description="Shared signing secret, takes precedence over the Auth0 JWKS"
    )
    jwt_algorithm: str = "HS256"

    # --- reply drafting ------------------------------------------------------
    ai_provider: Literal["openai", "anthropic"] = "openai"
    openai_api_key: SecretStr | None = None
    openai_model: str = "gpt-4o-mini"
    anthropic_api_key: SecretStr | None = None
    anthropic_model: str = "claude-sonnet-4-20250514"

    # --- outbound messaging --------------------------------------------------
    twilio_account_sid: str | None = None
    twilio_auth_token: SecretStr | None = None
    twilio_from_number: str | None = Field(default=None, description="E.164 sender number")
    sendgrid_api_key: SecretStr | None = None
    from_email: str = "notifications@reviewhub.app"
    from_name: str = "ReviewHub"

    # --- review platforms ----------------------------------------------------
    google_client_id: str | None = None
    google_client_secret: SecretStr | None = None
    yelp_client_id: str | None = None
    yelp_client_secret: SecretStr | None = None
    facebook_app_id: str | None = None
    facebook_app_secret: SecretStr | None = None
    facebook_webhook_verify_token: str = Field(
        default="reviewhub_verify_token",
        description="Echoed back by Facebook during webhook subscription",
    )
    google_places_api_key: SecretStr | None = Field(default=None, description="Competitor lookups")

    # --- billing -------------------------------------------------------------
    stripe_webhook_secret: SecretStr | None = None
    stripe_pro_price_id: str | None = None
    stripe_enterprise_price_id: str | None = None

    # --- runtime -------------------------------------------------------------
    app_env: Literal["development", "staging", "production"] = "development"
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    api_base_url: str = Field(
        default="http://localhost:8000", description="Public URL of this API, used in OAuth redirect URIs"
    )
    frontend_url: str = Field(
        default="http://localhost:5173", description="Target of OAuth redirects and email links"
    )
    cors_allowed_origins: list[str] = ["http://localhost:5173", "http://localhost:3000"]
    cors_allow_credentials: bool = True
    http_timeout_seconds: float = Field(default=30.0, description="Outbound provider call timeout")

    # --- background jobs -----------------------------------------------------
    scheduler_enabled: bool = True
    auto_reply_interval_minutes: int = 5
    yelp_polling_interval_minutes: int = 15
    yelp_polling_initial_delay_seconds: int = 30
    campaign_dispatch_interval_minutes: int = 1

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @model_validator(mode="after")
    def check_production(self) -> "Settings":
        """Refuse to start a production process with debug on, wildcard CORS or no token verification."""
        if not self.is_production:
            return self

        problems = []
        if self.debug:
            problems.append("DEBUG must be off")
        if "*" in self.cors_allowed_origins:
            problems.append("CORS_ALLOWED_ORIGINS may not contain '*'")
        if not (self.auth0_domain or self.jwt_secret):
            problems.append("AUTH0_DOMAIN or JWT_SECRET is required")

        if problems:
            raise ValueError("Invalid production settings: " + "; ".join(problems))
        return self


@lru_cache
def get_settings() -> Settings:
    """Load settings once per process; tests call ``get_settings.cache_clear()`` after changing env."""
    return Settings()
