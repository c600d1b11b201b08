"""Integration tests for the SQLAlchemy audit store."""

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session, sessionmaker

from changetrail.audit import (
    Action,
    AuditLogService,
    AuditProxy,
    AuditRecord,
    FieldChange,
    SqlAlchemyAuditStore,
)
from changetrail.audit.models import AuditLog, AuditLogChange
from changetrail.config import Settings
from changetrail.core.database import create_engine_from_settings, create_session_factory
from changetrail.core.errors import AuditStoreError
from factories.audit import AuditRecordFactory
from sample_domain import Account, AccountRepository


NOW = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


def _record(action: Action = Action.UPDATE, user: str = "bob", minutes: int = 0) -> AuditRecord:
    return AuditRecord(
        action=action,
        table_name="accounts",
        entity_id="7",
        acting_user=user,
        timestamp=NOW + timedelta(minutes=minutes),
        changes=[
            FieldChange(field_name="NAME", old_value="Alice", new_value="Alicia"),
            FieldChange(field_name="STATUS", old_value="PENDING", new_value="ACTIVE"),
            FieldChange(field_name="ADDRESS", old_value=None, new_value='{"CITY":"Lyon"}'),
        ],
    )


class TestSqlAlchemyAuditStore:
    """Tests for SqlAlchemyAuditStore."""

    def test_round_trip(self, sql_store: SqlAlchemyAuditStore) -> None:
        """Verify a persisted record reads back with the same ordered changes."""
        record = _record()

        record_id = sql_store.persist(record)
        [loaded] = sql_store.query("accounts", "7")

        assert loaded.id == record_id
        assert loaded.action is Action.UPDATE
        assert loaded.acting_user == "bob"
        assert loaded.timestamp == NOW
        assert loaded.changes == record.changes

    def test_atomic_header_and_changes(
        self,
        sql_store: SqlAlchemyAuditStore,
        session_factory: sessionmaker[Session],
    ) -> None:
        """Verify header and change rows are written together."""
        sql_store.persist(_record())

        with session_factory() as session:
            assert session.scalar(select(func.count()).select_from(AuditLog)) == 1
            assert session.scalar(select(func.count()).select_from(AuditLogChange)) == 3

    def test_most_recent_first_and_filters(self, sql_store: SqlAlchemyAuditStore) -> None:
        """Verify ordering and the action and acting user filters."""
        sql_store.persist(_record(Action.CREATE, "alice", 0))
        sql_store.persist(_record(Action.UPDATE, "bob", 1))
        sql_store.persist(_record(Action.DELETE, "alice", 2))

        assert [r.action for r in sql_store.query("accounts", "7")] == [
            Action.DELETE,
            Action.UPDATE,
            Action.CREATE,
        ]
        assert [r.action for r in sql_store.query("accounts", "7", action=Action.UPDATE)] == [
            Action.UPDATE
        ]
        assert [r.action for r in sql_store.query("accounts", "7", acting_user="alice")] == [
            Action.DELETE,
            Action.CREATE,
        ]
        assert sql_store.query("accounts", "8") == []
        assert len(sql_store.query("accounts", "7", limit=1)) == 1

    def test_record_without_changes(self, sql_store: SqlAlchemyAuditStore) -> None:
        """Verify a record with no changes is still returned."""
        sql_store.persist(_record().model_copy(update={"changes": []}))

        [loaded] = sql_store.query("accounts", "7")

        assert loaded.changes == []

    def test_persist_failure(self) -> None:
        """Verify database errors become AuditStoreError."""
        engine = create_engine_from_settings(Settings(database_url="sqlite://"))
        store = SqlAlchemyAuditStore(create_session_factory(engine))

        with pytest.raises(AuditStoreError):
            store.persist(_record())

        engine.dispose()


class TestAuditedRepositoryWithDatabase:
    """End-to-end: audited repository writing to SQLite."""

    def test_update_then_query(self, sql_store: SqlAlchemyAuditStore) -> None:
        """Verify an audited update can be read back through the service."""
        service = AuditLogService(sql_store)
        repo = AccountRepository()
        repo.add(Account(id=7, name="Alice", status="PENDING"))
        accounts = AuditProxy(service).wrap(repo)

        accounts.update(Account(id=7, name="Alice", status="ACTIVE", modified_by="bob"))
        accounts.delete(7, "admin")

        records = service.find("accounts", "7")

        assert [r.action for r in records] == [Action.DELETE, Action.UPDATE]
        assert [(c.field_name, c.old_value, c.new_value) for c in records[1].changes] == [
            ("STATUS", "PENDING", "ACTIVE")
        ]


class TestGeneratedRecords:
    """Round-trips of generated records."""

    def test_generated_records_round_trip(self, sql_store: SqlAlchemyAuditStore) -> None:
        """Verify arbitrary records keep their changes and order."""
        records = AuditRecordFactory.batch(5)
        for record in records:
            sql_store.persist(record)

        loaded = sql_store.query("accounts", "7")

        expected = sorted(records, key=lambda r: r.timestamp, reverse=True)
        assert [r.changes for r in loaded] == [r.changes for r in expected]
        assert [r.acting_user for r in loaded] == [r.acting_user for r in expected]
