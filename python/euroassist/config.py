"""Application settings loaded from environment variables.

Environment Configuration:
    EUROASSIST_ENV: Deployment environment (local | test | staging | prod)
    DATABASE_URL: SQLAlchemy connection string (required)
    SESSION_SECRET: Signing secret for session cookies (required in staging/prod)

Session Configuration:
    SESSION_TTL_S: Session lifetime in seconds (default 7 days)
    SESSION_COOKIE_NAME: Name of the session cookie
    CORS_ORIGINS: Comma-separated list of browser origins allowed to send cookies

LLM Configuration:
    LLM_PROVIDER: openai | gemini (selected once at startup)
    OPENAI_API_KEY / OPENAI_MODEL
    GEMINI_API_KEY (or GOOGLE_API_KEY) / GEMINI_MODEL
    LLM_TIMEOUT_S: Upstream timeout for a single provider call
    ENABLE_STREAMING: Whether the SSE variant of the message endpoint is served
"""

from enum import Enum
from functools import lru_cache
from typing import Annotated

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings

# Only usable outside staging/prod; validated below.
DEV_SESSION_SECRET = "euroassist-dev-session-secret-change-me"


class Environment(str, Enum):
    """Valid deployment environments."""

    LOCAL = "local"
    TEST = "test"
    STAGING = "staging"
    PROD = "prod"


class Settings(BaseSettings):
    """Application configuration.

    Validation rules:
    - DATABASE_URL is always required
    - SESSION_SECRET must be set explicitly in staging and prod
    - The API key for the selected LLM_PROVIDER must be set in staging and prod
    """

    euroassist_env: Environment = Field(default=Environment.LOCAL, alias="EUROASSIST_ENV")
    database_url: Annotated[str, Field(alias="DATABASE_URL")]

    # Sessions
    session_secret: str = Field(default=DEV_SESSION_SECRET, alias="SESSION_SECRET")
    session_ttl_s: int = Field(default=7 * 24 * 3600, alias="SESSION_TTL_S")
    session_cookie_name: str = Field(default="euroassist_session", alias="SESSION_COOKIE_NAME")
    cors_origins: str | None = Field(default=None, alias="CORS_ORIGINS")

    # LLM provider selection
    llm_provider: str = Field(default="openai", alias="LLM_PROVIDER")
    openai_api_key: str | None = Field(default=None, alias="OPENAI_API_KEY")
    openai_model: str = Field(default="gpt-4o-mini", alias="OPENAI_MODEL")
    gemini_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("GEMINI_API_KEY", "GOOGLE_API_KEY"),
    )
    gemini_model: str = Field(
        default="gemini-2.0-flash",
        validation_alias=AliasChoices("GEMINI_MODEL", "GOOGLE_MODEL"),
    )
    llm_timeout_s: int = Field(default=45, alias="LLM_TIMEOUT_S")
    enable_streaming: bool = Field(default=True, alias="ENABLE_STREAMING")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "populate_by_name": True,
    }

    @model_validator(mode="after")
    def validate_required_settings(self) -> "Settings":
        """Ensure deployment-only settings are present."""
        provider = self.llm_provider.lower()
        if provider not in ("openai", "gemini"):
            raise ValueError(f"LLM_PROVIDER must be 'openai' or 'gemini', got {provider!r}")
        self.llm_provider = provider

        if self.is_deployed:
            if self.session_secret == DEV_SESSION_SECRET:
                raise ValueError(
                    f"SESSION_SECRET is required for EUROASSIST_ENV={self.euroassist_env.value}"
                )
            if not self.llm_api_key:
                raise ValueError(
                    f"An API key for LLM_PROVIDER={provider} is required "
                    f"for EUROASSIST_ENV={self.euroassist_env.value}"
                )

        return self

    @property
    def is_deployed(self) -> bool:
        """Whether this is a staging or production deployment."""
        return self.euroassist_env in (Environment.STAGING, Environment.PROD)

    @property
    def secure_cookies(self) -> bool:
        """Session cookies are marked Secure outside local/test."""
        return self.is_deployed

    @property
    def cors_origin_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins:
            return [o.strip() for o in self.cors_origins.split(",") if o.strip()]
        return []

    @property
    def llm_api_key(self) -> str | None:
        """API key for the configured provider."""
        if self.llm_provider == "gemini":
            return self.gemini_api_key
        return self.openai_api_key

    @property
    def llm_model_name(self) -> str:
        """Model name for the configured provider."""
        if self.llm_provider == "gemini":
            return self.gemini_model
        return self.openai_model


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If required settings are missing or invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing."""
    get_settings.cache_clear()
