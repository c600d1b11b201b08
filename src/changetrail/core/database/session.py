"""Database engine and session management."""

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from changetrail.config import Settings
from changetrail.core.database.base import Base


def create_engine_from_settings(settings: Settings) -> Engine:
    """Create a sync engine for the configured database URL.

    In-memory SQLite databases share one connection so every session
    sees the same tables.
    """
    url = settings.database_url
    if url == "sqlite://" or (url.startswith("sqlite") and ":memory:" in url):
        return create_engine(
            url,
            echo=settings.database_echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(
        url,
        echo=settings.database_echo,
        pool_pre_ping=True,  # Verify connections before use
    )


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Create a session factory bound to the engine."""
    return sessionmaker(
        bind=engine,
        expire_on_commit=False,
        autoflush=False,
    )


def create_schema(engine: Engine) -> None:
    """Create the audit tables if they do not exist."""
    # Models must be imported so they register with Base.metadata
    from changetrail.audit import models  # noqa: F401

    Base.metadata.create_all(engine)
