"""Tests for the audit log service."""

from unittest.mock import MagicMock

import pytest

from changetrail.audit import Action, AuditLogService, AuditRecord, FieldChange, InMemoryAuditStore
from changetrail.core.errors import AuditStoreError, ValidationError


def _record(**overrides: object) -> AuditRecord:
    values: dict[str, object] = {
        "action": Action.UPDATE,
        "table_name": "accounts",
        "entity_id": "7",
        "acting_user": "bob",
        "changes": [FieldChange(field_name="STATUS", old_value="PENDING", new_value="ACTIVE")],
    }
    values.update(overrides)
    return AuditRecord(**values)  # type: ignore[arg-type]


class TestAudit:
    """Tests for AuditLogService.audit."""

    def test_persists_and_returns_id(self, service: AuditLogService, store: InMemoryAuditStore) -> None:
        """Verify a valid record is persisted."""
        record_id = service.audit(_record())

        assert record_id == 1
        assert store.records[0].id == 1
        assert store.records[0].changes[0].field_name == "STATUS"

    @pytest.mark.parametrize("field", ["table_name", "entity_id", "acting_user"])
    def test_rejects_null_required_fields(self, field: str) -> None:
        """Verify a record missing a required field never reaches the store."""
        store = MagicMock()
        service = AuditLogService(store)

        with pytest.raises(ValidationError) as exc_info:
            service.audit(_record(**{field: None}))

        assert exc_info.value.details["field"] == field
        store.persist.assert_not_called()

    def test_wraps_unexpected_store_errors(self) -> None:
        """Verify unknown store errors become AuditStoreError."""
        store = MagicMock()
        store.persist.side_effect = OSError("disk full")

        with pytest.raises(AuditStoreError):
            AuditLogService(store).audit(_record())


class TestFind:
    """Tests for AuditLogService.find."""

    def test_requires_table_and_entity(self, service: AuditLogService) -> None:
        """Verify the required filters are checked."""
        with pytest.raises(ValidationError, match="tableName"):
            service.find(None, "7")
        with pytest.raises(ValidationError, match="entityId"):
            service.find("accounts", "")

    def test_delegates_filters(self) -> None:
        """Verify filters are passed to the store."""
        store = MagicMock()
        store.query.return_value = []

        AuditLogService(store).find("accounts", "7", action=Action.DELETE, acting_user="bob", limit=5)

        store.query.assert_called_once_with(
            "accounts", "7", action=Action.DELETE, acting_user="bob", limit=5
        )
