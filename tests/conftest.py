"""Pytest configuration and shared fixtures."""

from collections.abc import Generator

import pytest
from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from changetrail.audit import AuditLogService, AuditProxy, InMemoryAuditStore, SqlAlchemyAuditStore
from changetrail.config import Settings
from changetrail.core.database import create_engine_from_settings, create_schema, create_session_factory
from sample_domain import Account, AccountRepository


@pytest.fixture
def settings() -> Settings:
    """Settings for an in-memory SQLite database."""
    return Settings(database_url="sqlite://", environment="test")


@pytest.fixture
def store() -> InMemoryAuditStore:
    """Create an empty in-memory audit store."""
    return InMemoryAuditStore()


@pytest.fixture
def service(store: InMemoryAuditStore) -> AuditLogService:
    """Create an audit service over the in-memory store."""
    return AuditLogService(store)


@pytest.fixture
def proxy(service: AuditLogService) -> AuditProxy:
    """Create an audit proxy writing to the in-memory store."""
    return AuditProxy(service)


@pytest.fixture
def repo() -> AccountRepository:
    """Create an account repository holding account 7."""
    repository = AccountRepository()
    repository.add(Account(id=7, name="Alice", status="PENDING", modified_by="seed"))
    return repository


@pytest.fixture
def accounts(proxy: AuditProxy, repo: AccountRepository) -> AccountRepository:
    """The account repository wrapped by the audit proxy."""
    return proxy.wrap(repo)


@pytest.fixture
def engine(settings: Settings) -> Generator[Engine, None, None]:
    """Create an in-memory SQLite engine with the audit tables."""
    engine = create_engine_from_settings(settings)
    create_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker[Session]:
    """Create a session factory bound to the test engine."""
    return create_session_factory(engine)


@pytest.fixture
def sql_store(session_factory: sessionmaker[Session]) -> SqlAlchemyAuditStore:
    """Create an audit store backed by the test database."""
    return SqlAlchemyAuditStore(session_factory)
