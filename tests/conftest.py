# tests/conftest.py
"""
Pytest configuration and fixtures.

Every test gets a fresh in-memory SQLite database plus in-memory stand-ins
for the mail and storage collaborators.
"""

import os
import uuid
from datetime import datetime
from typing import Any

import pytest

# Set test environment
os.environ.setdefault("TESTING", "1")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("ADMIN_API_KEY", "test-admin-key")
os.environ.setdefault("CRON_SECRET", "test-cron-secret")
os.environ.setdefault("PAYMENT_WEBHOOK_SECRET", "whsec_test")
os.environ.setdefault("EMAIL_ENABLED", "false")
os.environ.setdefault("LOG_JSON", "false")
os.environ.setdefault("STORAGE_PROVIDER", "local")

from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.database import Base  # noqa: E402
from app.models import (  # noqa: E402
    Asset,
    Deadline,
    DeletionStatus,
    Purchase,
    RentalCase,
    StayType,
    User,
)
from app.storage.base import DeleteObjectsResult, StorageProvider  # noqa: E402

ADMIN_KEY = os.environ["ADMIN_API_KEY"]
CRON_SECRET = os.environ["CRON_SECRET"]
WEBHOOK_SECRET = os.environ["PAYMENT_WEBHOOK_SECRET"]

# Fixed evaluation time for deterministic lifecycle tests
FIXED_NOW = datetime(2026, 3, 1, 12, 0, 0)


# -----------------------------------------------------------------------------
# Collaborator fakes
# -----------------------------------------------------------------------------


class FakeMailer:
    """Records every send; returns `status` for each one."""

    def __init__(self, status: str = "sent"):
        self.status = status
        self.calls: list[tuple[Any, str, dict]] = []

    def send(self, template, to: str, params: dict[str, Any]) -> dict[str, Any]:
        self.calls.append((template, to, dict(params)))
        if self.status == "sent":
            return {"status": "sent", "message_id": f"msg_{len(self.calls)}", "recipient": to}
        return {"status": self.status, "error": "fake failure"}

    def templates(self) -> list:
        return [call[0] for call in self.calls]


class FakeStorage(StorageProvider):
    """In-memory object store with injectable per-path failures."""

    def __init__(self, fail_paths: set[str] | None = None, raise_on_delete: Exception | None = None):
        self.objects: dict[str, bytes] = {}
        self.fail_paths = set(fail_paths or ())
        self.raise_on_delete = raise_on_delete
        self.delete_calls: list[list[str]] = []

    @property
    def name(self) -> str:
        return "fake"

    def put_object(self, key: str, content: bytes, content_type: str = "application/octet-stream") -> str:
        self.objects[key] = content
        return key

    def exists(self, key: str) -> bool:
        return key in self.objects

    def delete_objects(self, paths: list[str]) -> DeleteObjectsResult:
        self.delete_calls.append(list(paths))
        if self.raise_on_delete is not None:
            raise self.raise_on_delete

        result = DeleteObjectsResult()
        for path in paths:
            if path in self.fail_paths:
                result.failed[path] = "AccessDenied"
            else:
                self.objects.pop(path, None)
                result.deleted.append(path)
        return result

    def create_signed_url(self, path: str, expires_in: int = 3600) -> str:
        return f"https://storage.test/{path}?expires_in={expires_in}"


# -----------------------------------------------------------------------------
# Database
# -----------------------------------------------------------------------------


@pytest.fixture
def engine():
    """Fresh in-memory SQLite engine with all tables."""
    from app import models  # noqa: F401

    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def db(engine):
    """Database session bound to the per-test engine."""
    TestingSession = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def now():
    return FIXED_NOW


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def storage():
    return FakeStorage()


# -----------------------------------------------------------------------------
# Factories
# -----------------------------------------------------------------------------


@pytest.fixture
def make_user(db):
    def _make_user(email: str | None = None) -> User:
        user = User(email=email or f"tenant-{uuid.uuid4().hex[:8]}@example.com", created_at=FIXED_NOW)
        db.add(user)
        db.commit()
        return user

    return _make_user


@pytest.fixture
def make_case(db, make_user):
    def _make_case(owner: User | None = None, **fields) -> RentalCase:
        owner = owner or make_user()
        values = {
            "label": "Flat on Main Street",
            "stay_type": StayType.LONG_TERM.value,
            "deletion_status": DeletionStatus.ACTIVE.value,
            "retention_reminder_level": 0,
            "storage_years_purchased": 1,
            "created_at": FIXED_NOW,
        }
        values.update(fields)
        case = RentalCase(owner_id=owner.id, **values)
        db.add(case)
        db.commit()
        return case

    return _make_case


@pytest.fixture
def make_purchase(db):
    def _make_purchase(case: RentalCase, pack_type: str, payment_ref: str | None = None, amount_cents: int = 1900) -> Purchase:
        purchase = Purchase(
            case_id=case.id,
            owner_id=case.owner_id,
            pack_type=pack_type,
            amount_cents=amount_cents,
            currency="EUR",
            payment_ref=payment_ref or f"cs_{uuid.uuid4().hex[:12]}",
            created_at=FIXED_NOW,
        )
        db.add(purchase)
        db.commit()
        return purchase

    return _make_purchase


@pytest.fixture
def make_asset(db):
    def _make_asset(case: RentalCase, storage_path: str | None = None, phase: str = "checkin", storage: FakeStorage | None = None) -> Asset:
        path = storage_path or f"cases/{case.id}/{phase}/{uuid.uuid4().hex[:8]}.jpg"
        asset = Asset(case_id=case.id, storage_path=path, phase=phase, created_at=FIXED_NOW)
        db.add(asset)
        db.commit()
        if storage is not None:
            storage.put_object(path, b"jpeg-bytes", "image/jpeg")
        return asset

    return _make_asset


@pytest.fixture
def make_deadline(db):
    def _make_deadline(case: RentalCase, due_date, type: str = "termination_notice", preferences: dict | None = None, **fields) -> Deadline:
        deadline = Deadline(
            case_id=case.id,
            type=type,
            due_date=due_date,
            preferences=preferences,
            created_at=FIXED_NOW,
            **fields,
        )
        db.add(deadline)
        db.commit()
        return deadline

    return _make_deadline


@pytest.fixture
def make_storage():
    """FakeStorage constructor, for tests that need injected failures."""
    return FakeStorage


@pytest.fixture
def make_mailer():
    """FakeMailer constructor, for tests that need a non-delivering mailer."""
    return FakeMailer
