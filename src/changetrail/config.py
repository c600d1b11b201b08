"""Configuration using pydantic-settings."""

from functools import lru_cache

from pydantic import computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from changetrail.core.constants import DEFAULT_LOOKUP_METHOD, DEFAULT_QUERY_LIMIT


class Settings(BaseSettings):
    """Settings loaded from environment variables prefixed with CHANGETRAIL_."""

    model_config = SettingsConfigDict(
        env_prefix="CHANGETRAIL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "changetrail"
    debug: bool = False
    environment: str = "development"  # development, staging, production

    # Database
    database_url: str = "sqlite:///./changetrail.db"
    database_echo: bool = False

    # Auditing
    default_lookup_method: str = DEFAULT_LOOKUP_METHOD

    # Query endpoint
    query_limit: int = DEFAULT_QUERY_LIMIT

    # Observability
    log_level: str = "INFO"
    log_json: bool = False

    @field_validator("default_lookup_method")
    @classmethod
    def validate_lookup_method(cls, v: str) -> str:
        """Ensure the default lookup method name is a valid identifier.

        Args:
            v: The configured method name

        Returns:
            The validated method name

        Raises:
            ValueError: If the name cannot be a Python attribute
        """
        if not v.isidentifier():
            raise ValueError(f"default_lookup_method must be an identifier, got {v!r}")
        return v

    @field_validator("query_limit")
    @classmethod
    def validate_query_limit(cls, v: int) -> int:
        """Reject non-positive query limits."""
        if v < 1:
            raise ValueError("query_limit must be at least 1")
        return v

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
