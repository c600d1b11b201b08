"""Audit stores.

AuditStore is the persistence boundary of the audit pipeline. A record
and its changes are written atomically; queries return the most
recent records first with changes in their original order.
"""

import threading
from abc import ABC, abstractmethod
from datetime import UTC, datetime

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from changetrail.audit.models import AuditLog, AuditLogChange
from changetrail.audit.schemas import Action, AuditRecord, FieldChange
from changetrail.core.errors import AuditStoreError


log = structlog.get_logger()


class AuditStore(ABC):
    """Abstract interface for audit record storage."""

    @abstractmethod
    def persist(self, record: AuditRecord) -> int:
        """Persist a record with its changes and return its generated id."""

    @abstractmethod
    def query(
        self,
        table_name: str,
        entity_id: str,
        action: Action | None = None,
        acting_user: str | None = None,
        *,
        limit: int | None = None,
    ) -> list[AuditRecord]:
        """Records of one entity, most recent first."""


class InMemoryAuditStore(AuditStore):
    """In-memory implementation of AuditStore for testing and development.

    Uses a list with linear scan for queries.
    """

    def __init__(self) -> None:
        self._records: list[AuditRecord] = []
        self._next_id = 1
        self._lock = threading.Lock()

    def persist(self, record: AuditRecord) -> int:
        with self._lock:
            record_id = self._next_id
            self._next_id += 1
            self._records.append(record.model_copy(update={"id": record_id}))
        return record_id

    def query(
        self,
        table_name: str,
        entity_id: str,
        action: Action | None = None,
        acting_user: str | None = None,
        *,
        limit: int | None = None,
    ) -> list[AuditRecord]:
        with self._lock:
            records = list(self._records)
        results = [
            record
            for record in records
            if record.table_name == table_name
            and record.entity_id == entity_id
            and (action is None or record.action == action)
            and (acting_user is None or record.acting_user == acting_user)
        ]
        # Most recent first; ids break timestamp ties
        results.sort(key=lambda r: (r.timestamp, r.id or 0), reverse=True)
        return results[:limit] if limit is not None else results

    @property
    def records(self) -> list[AuditRecord]:
        """All persisted records in insertion order."""
        with self._lock:
            return list(self._records)


class SqlAlchemyAuditStore(AuditStore):
    """AuditStore backed by the audit_log and audit_log_changes tables."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self.session_factory = session_factory

    def persist(self, record: AuditRecord) -> int:
        """Insert the record and its changes in one transaction.

        Raises:
            AuditStoreError: If the database rejects the write
        """
        entry = AuditLog(
            table_name=record.table_name,
            action=record.action.value,
            entity_id=record.entity_id,
            acting_user=record.acting_user,
            timestamp=record.timestamp,
            changes=[
                AuditLogChange(
                    position=position,
                    field_name=change.field_name,
                    old_value=change.old_value,
                    new_value=change.new_value,
                )
                for position, change in enumerate(record.changes)
            ],
        )
        try:
            with self.session_factory.begin() as session:
                session.add(entry)
                session.flush()
                record_id = entry.id
        except SQLAlchemyError as exc:
            log.error(
                "audit_store_persist_failed",
                table_name=record.table_name,
                entity_id=record.entity_id,
                error=str(exc),
            )
            raise AuditStoreError(
                "Failed to persist audit record",
                details={"table_name": record.table_name},
            ) from exc
        return record_id

    def query(
        self,
        table_name: str,
        entity_id: str,
        action: Action | None = None,
        acting_user: str | None = None,
        *,
        limit: int | None = None,
    ) -> list[AuditRecord]:
        """Query records of one entity, most recent first.

        Raises:
            AuditStoreError: If the query fails
        """
        stmt = select(AuditLog).where(
            AuditLog.table_name == table_name,
            AuditLog.entity_id == entity_id,
        )
        if action is not None:
            stmt = stmt.where(AuditLog.action == Action(action).value)
        if acting_user is not None:
            stmt = stmt.where(AuditLog.acting_user == acting_user)
        stmt = stmt.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
        if limit is not None:
            stmt = stmt.limit(limit)

        try:
            with self.session_factory() as session:
                entries = session.scalars(stmt).all()
                return [_to_record(entry) for entry in entries]
        except SQLAlchemyError as exc:
            log.error("audit_store_query_failed", table_name=table_name, error=str(exc))
            raise AuditStoreError("Failed to query audit records") from exc


def _to_record(entry: AuditLog) -> AuditRecord:
    return AuditRecord(
        id=entry.id,
        action=Action(entry.action),
        table_name=entry.table_name,
        entity_id=entry.entity_id,
        acting_user=entry.acting_user,
        timestamp=_aware(entry.timestamp),
        changes=[FieldChange.model_validate(change) for change in entry.changes],
    )


def _aware(value: datetime) -> datetime:
    # SQLite drops the offset; stored values are always UTC
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
