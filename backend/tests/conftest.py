"""Pytest fixtures for the lifecycle engine.

Provides reusable test fixtures for:
- Database session on an in-memory SQLite database (fresh tables per test)
- A fixed clock
- In-memory document store, audit log store and notifier
- Factories for policies, documents and configuration snapshots
- A FastAPI test client bound to the test session

Usage:
    def test_archive(executor, documents, make_document):
        documents.add(make_document("doc-1", received_days_ago=200))
        ...
"""

import sys
import os
from dataclasses import replace
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Generator, Optional

# Set environment variables BEFORE any imports to ensure they take effect
os.environ["DATABASE_URL"] = os.environ.get("TEST_DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_JSON", "false")
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")
# No sleeping between retries in tests
os.environ.setdefault("ACTION_BACKOFF_MIN_SECONDS", "0")
os.environ.setdefault("ACTION_BACKOFF_MAX_SECONDS", "0")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

backend_src = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(backend_src))

from database import SessionLocal, engine as test_engine, get_db as database_get_db
from models.base import Base
import models  # noqa: F401  (registers every table on Base.metadata)
from domain.audit.models import AuditFilter, AuditRecord
from domain.lifecycle.errors import PersistenceError
from domain.lifecycle.models import (
    DocumentCategory,
    LifecycleEvent,
    LifecycleState,
    RetentionPolicy,
    TrackedDocument,
)
from domain.lifecycle.ports import (
    AuditLogStorePort,
    DocumentStorePort,
    NotificationDispatcherPort,
)
from domain.validity.rules import ValidityRuleTable
from retention.executor import ActionExecutor
from retention.locks import DocumentLockRegistry
from retention.policy_store import PolicySnapshot
from retention.scheduler import ScanScheduler


FIXED_NOW = datetime(2025, 6, 30, 12, 0, 0, tzinfo=timezone.utc)
TODAY = FIXED_NOW.date()


# =============================================================================
# IN-MEMORY PORTS
# =============================================================================

class FakeDocumentStore(DocumentStorePort):
    """Dict-backed document store that mimics the version check of the SQL store.

    ``fail_updates`` makes the next N updates raise PersistenceError.
    """

    def __init__(self):
        self.documents = {}
        self.fail_updates = 0
        self.update_calls = 0

    def add(self, document: TrackedDocument) -> TrackedDocument:
        self.documents[document.id] = document
        return document

    def list_active_documents(self, category: Optional[DocumentCategory] = None) -> list:
        return sorted(
            (
                d for d in self.documents.values()
                if d.current_state != LifecycleState.DELETED
                and (category is None or d.category == category)
            ),
            key=lambda d: d.id,
        )

    def get_document(self, document_id: str) -> Optional[TrackedDocument]:
        return self.documents.get(document_id)

    def update_document_state(self, document_id, new_state, expected_version=None, **changes):
        self.update_calls += 1
        if self.fail_updates:
            self.fail_updates -= 1
            raise PersistenceError(f"Simulated write failure for {document_id}")

        current = self.documents.get(document_id)
        if current is None:
            raise PersistenceError(f"Document {document_id} not found")
        if expected_version is not None and current.version != expected_version:
            raise PersistenceError(f"Document {document_id} changed concurrently")

        updated = replace(current, current_state=new_state, version=current.version + 1, **changes)
        self.documents[document_id] = updated
        return updated


class FakeAuditLogStore(AuditLogStorePort):
    """List-backed append-only audit store."""

    def __init__(self):
        self.records = []
        self.fail_appends = False

    def append(self, record: AuditRecord) -> AuditRecord:
        if self.fail_appends:
            raise PersistenceError("Simulated audit write failure")
        self.records.append(record)
        return record

    def query(self, audit_filter: AuditFilter, limit: Optional[int] = None) -> list:
        matching = [r for r in self.records if audit_filter.matches(r)]
        matching.sort(key=lambda r: (r.timestamp, r.id), reverse=True)
        return matching[:limit] if limit is not None else matching


class RecordingNotifier(NotificationDispatcherPort):
    def __init__(self):
        self.events = []

    def emit(self, event: LifecycleEvent) -> None:
        self.events.append(event)


# =============================================================================
# CLOCK AND FACTORIES
# =============================================================================

@pytest.fixture
def clock():
    """Clock frozen at FIXED_NOW."""
    return lambda: FIXED_NOW


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def make_policy():
    """Factory for RetentionPolicy (defaults: 5 years, archive after 180 days)."""

    def _make(
        category: DocumentCategory = DocumentCategory.BANK_STATEMENTS,
        retention_years: int = 5,
        archive_after_days: int = 180,
        auto_delete: bool = True,
        legal_hold_override: bool = True,
        is_active: bool = True,
        policy_id: Optional[str] = None,
    ) -> RetentionPolicy:
        return RetentionPolicy(
            id=policy_id or f"policy-{category.value}",
            name=f"{category.value} policy",
            document_category=category,
            retention_years=retention_years,
            archive_after_days=archive_after_days,
            auto_delete=auto_delete,
            legal_hold_override=legal_hold_override,
            is_active=is_active,
        )

    return _make


@pytest.fixture
def make_document():
    """Factory for TrackedDocument received ``received_days_ago`` days before TODAY."""

    def _make(
        document_id: str = "doc-1",
        category: DocumentCategory = DocumentCategory.BANK_STATEMENTS,
        received_days_ago: Optional[int] = 0,
        state: LifecycleState = LifecycleState.ACTIVE,
        legal_hold: bool = False,
        retention_extension_days: int = 0,
        received_date=None,
        loan_id: Optional[str] = "loan-1",
    ) -> TrackedDocument:
        if received_date is None and received_days_ago is not None:
            received_date = TODAY - timedelta(days=received_days_ago)
        return TrackedDocument(
            id=document_id,
            name=f"{document_id}.pdf",
            category=category,
            loan_id=loan_id,
            received_date=received_date,
            current_state=state,
            legal_hold=legal_hold,
            retention_extension_days=retention_extension_days,
        )

    return _make


@pytest.fixture
def policies(make_policy) -> list:
    """Mutable list of policies served by ``load_snapshot``."""
    return [make_policy()]


@pytest.fixture
def load_snapshot(policies, clock):
    """Snapshot loader reading the ``policies`` fixture at call time."""
    return lambda: PolicySnapshot(list(policies), ValidityRuleTable.defaults(), taken_at=clock())


# =============================================================================
# ENGINE COMPONENTS ON FAKES
# =============================================================================

@pytest.fixture
def documents() -> FakeDocumentStore:
    return FakeDocumentStore()


@pytest.fixture
def audit_store() -> FakeAuditLogStore:
    return FakeAuditLogStore()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def scheduler(documents, load_snapshot, notifier, clock) -> ScanScheduler:
    return ScanScheduler(documents, load_snapshot, notifier=notifier, clock=clock, max_workers=2, batch_size=2)


@pytest.fixture
def executor(documents, audit_store, load_snapshot, notifier, clock) -> ActionExecutor:
    return ActionExecutor(
        documents,
        audit_store,
        load_snapshot,
        notifier=notifier,
        locks=DocumentLockRegistry(),
        clock=clock,
    )


# =============================================================================
# DATABASE
# =============================================================================

@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Create a fresh database session for each test.

    Creates all tables before the test and drops them after.
    Each test gets a clean database state.
    """
    Base.metadata.create_all(bind=test_engine)

    session = SessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(scope="function")
def service(db_session: Session, notifier, clock):
    """RetentionService on the test database with a frozen clock."""
    from retention.service import RetentionService

    return RetentionService(db_session, notifier=notifier, clock=clock, locks=DocumentLockRegistry())


@pytest.fixture(scope="function")
def client(db_session: Session):
    """Create a test client bound to the test database session.

    Sends an ``X-Actor-ID`` header the way the gateway does.
    """
    from main import app

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[database_get_db] = override_get_db

    test_client = TestClient(app)
    test_client.headers.update({"X-Actor-ID": "ops-42"})

    yield test_client

    app.dependency_overrides.clear()
