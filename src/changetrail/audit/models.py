"""Audit log database models.

One audit_log row per audited call, with its field changes in
audit_log_changes ordered by position.
"""

from sqlalchemy import ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from changetrail.core.constants import (
    MAX_ACTING_USER_LENGTH,
    MAX_ACTION_LENGTH,
    MAX_ENTITY_ID_LENGTH,
    MAX_FIELD_NAME_LENGTH,
    MAX_TABLE_NAME_LENGTH,
)
from changetrail.core.database.base import Base, IntegerIdMixin, TimestampMixin


class AuditLog(Base, IntegerIdMixin, TimestampMixin):
    """Audit log entry for one create/update/delete call.

    Attributes:
        table_name: Table or collection of the audited entity
        action: CREATE, UPDATE or DELETE
        entity_id: Identifier of the audited entity
        acting_user: User who performed the action
        timestamp: When the audited call completed
        changes: Field changes in their original order
    """

    __tablename__ = "audit_log"

    table_name: Mapped[str] = mapped_column(
        String(MAX_TABLE_NAME_LENGTH),
        nullable=False,
        index=True,
    )
    action: Mapped[str] = mapped_column(
        String(MAX_ACTION_LENGTH),
        nullable=False,
        index=True,
    )
    entity_id: Mapped[str] = mapped_column(
        "value_id",
        String(MAX_ENTITY_ID_LENGTH),
        nullable=False,
        index=True,
    )
    acting_user: Mapped[str] = mapped_column(
        "audit_user",
        String(MAX_ACTING_USER_LENGTH),
        nullable=False,
        index=True,
    )

    changes: Mapped[list["AuditLogChange"]] = relationship(
        back_populates="audit_log",
        cascade="all, delete-orphan",
        order_by="AuditLogChange.position",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<AuditLog(id={self.id}, action={self.action}, "
            f"table_name={self.table_name}, entity_id={self.entity_id})>"
        )


class AuditLogChange(Base, IntegerIdMixin):
    """A single field change of an audit log entry."""

    __tablename__ = "audit_log_changes"

    audit_log_id: Mapped[int] = mapped_column(
        ForeignKey("audit_log.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    field_name: Mapped[str] = mapped_column(String(MAX_FIELD_NAME_LENGTH), nullable=False)
    old_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    new_value: Mapped[str | None] = mapped_column(Text, nullable=True)

    audit_log: Mapped[AuditLog] = relationship(back_populates="changes")

    def __repr__(self) -> str:
        return f"<AuditLogChange(audit_log_id={self.audit_log_id}, field_name={self.field_name})>"
