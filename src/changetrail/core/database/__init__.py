"""Database layer - engine, sessions, base models, and mixins."""

from changetrail.core.database.base import Base, IntegerIdMixin, TimestampMixin
from changetrail.core.database.session import (
    create_engine_from_settings,
    create_schema,
    create_session_factory,
)


__all__ = [
    "Base",
    "IntegerIdMixin",
    "TimestampMixin",
    "create_engine_from_settings",
    "create_schema",
    "create_session_factory",
]
