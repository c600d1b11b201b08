"""Helpers shared by CLI commands."""

from changetrail.config import Settings, get_settings


def resolve_settings(database_url: str | None = None) -> Settings:
    """Return the settings, with the database URL overridden when given."""
    settings = get_settings()
    if database_url:
        settings = settings.model_copy(update={"database_url": database_url})
    return settings
