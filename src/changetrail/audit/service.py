"""Audit log service: validates records and talks to the audit store."""

import structlog

from changetrail.audit.schemas import Action, AuditRecord
from changetrail.audit.store import AuditStore
from changetrail.core.errors import AuditException, AuditStoreError, ValidationError


log = structlog.get_logger()

_REQUIRED_RECORD_FIELDS = ("table_name", "entity_id", "acting_user")


class AuditLogService:
    """Service for writing and reading audit records.

    Every record is validated here, so an incomplete record never
    reaches the store.
    """

    def __init__(self, store: AuditStore) -> None:
        self.store = store

    def audit(self, record: AuditRecord) -> int:
        """Validate and persist an audit record.

        Args:
            record: The record built by the audit pipeline

        Returns:
            The id generated by the store

        Raises:
            ValidationError: If table name, entity id or acting user is None
            AuditStoreError: If the store fails
        """
        for field_name in _REQUIRED_RECORD_FIELDS:
            if getattr(record, field_name) is None:
                raise ValidationError(
                    f"Audit record {field_name} must not be null",
                    field=field_name,
                )

        try:
            record_id = self.store.persist(record)
        except AuditException:
            raise
        except Exception as exc:
            raise AuditStoreError("Failed to persist audit record") from exc

        log.info(
            "audit_log_created",
            audit_log_id=record_id,
            action=record.action.value,
            table_name=record.table_name,
            entity_id=record.entity_id,
            acting_user=record.acting_user,
            change_count=len(record.changes),
        )
        return record_id

    def find(
        self,
        table_name: str | None,
        entity_id: str | None,
        action: Action | None = None,
        acting_user: str | None = None,
        *,
        limit: int | None = None,
    ) -> list[AuditRecord]:
        """Find the audit records of one entity, most recent first.

        Raises:
            ValidationError: If table_name or entity_id is missing
        """
        if not table_name:
            raise ValidationError("tableName is required", field="tableName")
        if not entity_id:
            raise ValidationError("entityId is required", field="entityId")

        return self.store.query(
            table_name,
            entity_id,
            action=action,
            acting_user=acting_user,
            limit=limit,
        )
