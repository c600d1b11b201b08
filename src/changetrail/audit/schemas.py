"""Audit record models.

AuditRecord is the finished output of one audited call, handed to the
audit store. Records and their changes are immutable once built.
"""

import json
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    """Return current UTC time."""
    return datetime.now(UTC)


class Action(str, Enum):
    """Audited operation category."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class FieldChange(BaseModel):
    """A single field-level change.

    Values are stored serialized: composite and list values as compact
    JSON, scalars as their string form, absent values as None.
    """

    model_config = ConfigDict(frozen=True, from_attributes=True)

    field_name: str = Field(..., description="Display label of the field")
    old_value: str | None = Field(default=None, description="Serialized old value")
    new_value: str | None = Field(default=None, description="Serialized new value")


class AuditRecord(BaseModel):
    """Structured audit record for one create/update/delete call.

    table_name, entity_id and acting_user are optional here so an
    incomplete record can be built and rejected by the audit service
    before it reaches the store.
    """

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: int | None = Field(default=None, description="Identifier assigned by the store")
    action: Action = Field(..., description="Audited action")
    table_name: str | None = Field(default=None, description="Audited table/collection")
    entity_id: str | None = Field(default=None, description="Identifier of the entity")
    acting_user: str | None = Field(default=None, description="User who performed the action")
    timestamp: datetime = Field(default_factory=utc_now, description="Time of the call")
    changes: list[FieldChange] = Field(default_factory=list, description="Ordered changes")


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Non-standard JSON constant: {name}")


def _decode(value: str | None) -> Any:
    """Return the object or array a stored JSON string holds, else the string.

    Scalars are left as stored so "12", "null" or "NaN" keep their text.
    """
    if value is None or not value.startswith(("{", "[")):
        return value
    try:
        return json.loads(value, parse_constant=_reject_constant)
    except ValueError:
        return value


class FieldChangeResponse(BaseModel):
    """Field change as returned by the query endpoint.

    Values stored as JSON objects or arrays are returned as structured
    JSON; everything else is returned as the stored string.
    """

    model_config = ConfigDict(populate_by_name=True)

    field_name: str = Field(..., alias="fieldName")
    old_value: Any = Field(default=None, alias="oldValue")
    new_value: Any = Field(default=None, alias="newValue")

    @classmethod
    def from_change(cls, change: FieldChange) -> "FieldChangeResponse":
        """Build the response form of a stored change."""
        return cls(
            field_name=change.field_name,
            old_value=_decode(change.old_value),
            new_value=_decode(change.new_value),
        )


class AuditRecordResponse(BaseModel):
    """Audit record as returned by the query endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    id: int | None = Field(default=None)
    action: Action
    table_name: str = Field(..., alias="tableName")
    entity_id: str = Field(..., alias="entityId")
    acting_user: str = Field(..., alias="actingUser")
    timestamp: datetime
    changes: list[FieldChangeResponse] = Field(default_factory=list)

    @classmethod
    def from_record(cls, record: AuditRecord) -> "AuditRecordResponse":
        """Build the response form of a stored record."""
        return cls(
            id=record.id,
            action=record.action,
            table_name=record.table_name or "",
            entity_id=record.entity_id or "",
            acting_user=record.acting_user or "",
            timestamp=record.timestamp,
            changes=[FieldChangeResponse.from_change(c) for c in record.changes],
        )
