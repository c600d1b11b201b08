"""Audit trail capture and diff engine.

Declare entities and repository methods with the decorators and
markers from changetrail.audit.annotations, then wrap repositories
with AuditProxy to record every create, update and delete.
"""

from changetrail.audit.annotations import (
    AuditFieldMapping,
    AuditId,
    AuditProperties,
    AuditProperty,
    AuditUser,
    audit_create,
    audit_delete,
    audit_update,
    auditable,
)
from changetrail.audit.diff import register_diff_strategy
from changetrail.audit.proxy import AuditedObject, AuditProxy
from changetrail.audit.schemas import Action, AuditRecord, FieldChange
from changetrail.audit.service import AuditLogService
from changetrail.audit.store import AuditStore, InMemoryAuditStore, SqlAlchemyAuditStore


__all__ = [
    "Action",
    "AuditFieldMapping",
    "AuditId",
    "AuditLogService",
    "AuditProperties",
    "AuditProperty",
    "AuditProxy",
    "AuditRecord",
    "AuditStore",
    "AuditUser",
    "AuditedObject",
    "FieldChange",
    "InMemoryAuditStore",
    "SqlAlchemyAuditStore",
    "audit_create",
    "audit_delete",
    "audit_update",
    "auditable",
    "register_diff_strategy",
]
