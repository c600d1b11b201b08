"""Audit error taxonomy with RFC 7807 Problem Details handlers."""

from changetrail.core.errors.exceptions import (
    AuditException,
    AuditFailedError,
    AuditStoreError,
    DiffError,
    EntityLookupError,
    InstantiationError,
    InvalidResultError,
    MissingCapability,
    ValidationError,
)


__all__ = [
    "AuditException",
    "AuditFailedError",
    "AuditStoreError",
    "DiffError",
    "EntityLookupError",
    "InstantiationError",
    "InvalidResultError",
    "MissingCapability",
    "ValidationError",
]
