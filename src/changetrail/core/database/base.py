"""SQLAlchemy declarative base and common mixins."""

from datetime import datetime

from sqlalchemy import DateTime
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class IntegerIdMixin:
    """Mixin that adds an auto-incrementing integer primary key."""

    id: Mapped[int] = mapped_column(
        primary_key=True,
        autoincrement=True,
    )


class TimestampMixin:
    """Mixin that adds the timestamp an audit entry refers to.

    The value is set by the audit pipeline rather than the server so
    the stored time is the time the audited call completed.
    """

    timestamp: Mapped[datetime] = mapped_column(
        "date",
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )
