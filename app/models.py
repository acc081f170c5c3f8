# app/models.py
"""
RentVault Lifecycle Database Models

Tables:
- User: Vault owner (email is the reminder destination)
- RentalCase: One tenancy or booking; carries all lifecycle fields
- Purchase: Append-only ledger of completed payments per case
- Asset: Stored file (photo/video/document) owned by one case
- Deadline: User-configured lease deadline with reminder preferences
- DeletionAudit: Purge audit trail (survives the case it describes)
"""

from datetime import datetime
from enum import Enum
import uuid

from sqlalchemy import (
    JSON,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from app.database import Base


# -----------------------------------------------------------------------------
# Enums
# -----------------------------------------------------------------------------

class StayType(str, Enum):
    """Tenancy shape. Immutable after case creation."""
    LONG_TERM = "long_term"
    SHORT_STAY = "short_stay"


class DeletionStatus(str, Enum):
    """Stored lifecycle state. 'purged' is an outcome, never stored."""
    ACTIVE = "active"
    PENDING_DELETION = "pending_deletion"


class PackType(str, Enum):
    """Purchasable packs. Storage extensions are stored as storage_extension-N."""
    CHECKIN = "checkin"
    MOVEOUT = "moveout"
    BUNDLE = "bundle"
    SHORT_STAY = "short_stay"
    RELATED_CONTRACTS = "related_contracts"
    STORAGE_EXTENSION = "storage_extension"


# Packs that grant evidence capabilities and set purchase_type
EVIDENCE_PACKS = frozenset({PackType.CHECKIN, PackType.MOVEOUT, PackType.BUNDLE, PackType.SHORT_STAY})

STORAGE_EXTENSION_PREFIX = f"{PackType.STORAGE_EXTENSION.value}-"


def storage_extension_pack(years: int) -> str:
    """Ledger pack_type for an N-year storage extension."""
    return f"{STORAGE_EXTENSION_PREFIX}{years}"


class DeadlineType(str, Enum):
    TERMINATION_NOTICE = "termination_notice"
    RENT_PAYMENT = "rent_payment"


class AssetKind(str, Enum):
    PHOTO = "photo"
    VIDEO = "video"
    DOCUMENT = "document"


# JSONB on Postgres, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


# -----------------------------------------------------------------------------
# User
# -----------------------------------------------------------------------------

class User(Base):
    """Vault owner."""
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(320), unique=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    cases = relationship("RentalCase", back_populates="owner")


# -----------------------------------------------------------------------------
# RentalCase
# -----------------------------------------------------------------------------

class RentalCase(Base):
    """
    One tenancy or booking tracked by a user.

    Lifecycle fields (retention_until .. final_expiry_notified_at) are written
    only by purchase ingestion and the transition scanner.

    Short-stay cases reuse checkin_completed_at / handover_completed_at as
    arrival / departure seals.
    """
    __tablename__ = "cases"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    label = Column(String(255), nullable=False, default="Rental")
    stay_type = Column(String(16), nullable=False, default=StayType.LONG_TERM.value)

    check_in_date = Column(Date, nullable=True)
    check_out_date = Column(Date, nullable=True)  # short-stay departure date

    # Seals: set once, never cleared
    checkin_completed_at = Column(DateTime, nullable=True)
    handover_completed_at = Column(DateTime, nullable=True)

    # Retention lifecycle
    retention_until = Column(DateTime, nullable=True)  # null = not protected by any purchase
    storage_years_purchased = Column(Integer, nullable=False, default=1)
    deletion_status = Column(String(20), nullable=False, default=DeletionStatus.ACTIVE.value)
    grace_until = Column(DateTime, nullable=True)  # set iff pending_deletion
    retention_reminder_level = Column(Integer, nullable=False, default=0)
    expiry_notified_at = Column(DateTime, nullable=True)
    final_expiry_notified_at = Column(DateTime, nullable=True)

    # Most recent evidence pack applied
    purchase_type = Column(String(32), nullable=True)
    purchase_at = Column(DateTime, nullable=True)

    last_activity_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships (ORM cascade so purge removes dependents on every backend)
    owner = relationship("User", back_populates="cases")
    purchases = relationship("Purchase", back_populates="case", cascade="all, delete-orphan")
    assets = relationship("Asset", back_populates="case", cascade="all, delete-orphan")
    deadlines = relationship("Deadline", back_populates="case", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_cases_owner_id", "owner_id"),
        Index("ix_cases_deletion_status_retention", "deletion_status", "retention_until"),
        Index("ix_cases_deletion_status_grace", "deletion_status", "grace_until"),
    )


# -----------------------------------------------------------------------------
# Purchase
# -----------------------------------------------------------------------------

class Purchase(Base):
    """
    Completed payment, immutable once inserted.

    Uniqueness is enforced by the database, not just by a read-before-write:
    - payment_ref is unique for every purchase
    - (case_id, pack_type) is unique except for storage extensions,
      which can legitimately be bought more than once
    """
    __tablename__ = "purchases"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    case_id = Column(Uuid, ForeignKey("cases.id", ondelete="CASCADE"), nullable=False)
    owner_id = Column(Uuid, nullable=False)
    pack_type = Column(String(32), nullable=False)
    amount_cents = Column(Integer, nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="EUR")
    payment_ref = Column(String(255), nullable=False, unique=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    case = relationship("RentalCase", back_populates="purchases")

    __table_args__ = (
        Index("ix_purchases_case_id", "case_id"),
        Index(
            "uq_purchases_case_pack",
            "case_id",
            "pack_type",
            unique=True,
            postgresql_where=text("pack_type NOT LIKE 'storage_extension%'"),
            sqlite_where=text("pack_type NOT LIKE 'storage_extension%'"),
        ),
    )


# -----------------------------------------------------------------------------
# Asset
# -----------------------------------------------------------------------------

class Asset(Base):
    """Stored file. Only its storage_path matters to the lifecycle."""
    __tablename__ = "assets"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    case_id = Column(Uuid, ForeignKey("cases.id", ondelete="CASCADE"), nullable=False)
    storage_path = Column(Text, nullable=False)
    kind = Column(String(16), nullable=False, default=AssetKind.PHOTO.value)
    phase = Column(String(16), nullable=True)  # checkin, handover, arrival, departure, contract
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    case = relationship("RentalCase", back_populates="assets")

    __table_args__ = (Index("ix_assets_case_id", "case_id"),)


# -----------------------------------------------------------------------------
# Deadline
# -----------------------------------------------------------------------------

class Deadline(Base):
    """
    Lease deadline (termination notice, rent payment).

    preferences: {"offsets": [7, 1, 0], "notice_method": "registered letter"}
    """
    __tablename__ = "deadlines"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    case_id = Column(Uuid, ForeignKey("cases.id", ondelete="CASCADE"), nullable=False)
    type = Column(String(32), nullable=False)
    due_date = Column(Date, nullable=False)
    preferences = Column(JSONType, nullable=True)
    last_notification_sent_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    case = relationship("RentalCase", back_populates="deadlines")

    __table_args__ = (Index("ix_deadlines_case_id", "case_id"),)


# -----------------------------------------------------------------------------
# DeletionAudit
# -----------------------------------------------------------------------------

class DeletionAudit(Base):
    """
    Immutable purge record.

    Note: no FK to cases - rows must outlive the case they describe.
    """
    __tablename__ = "deletion_audit"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    case_id = Column(Uuid, nullable=False)
    reason = Column(String(64), nullable=False)
    objects_deleted = Column(Integer, nullable=False, default=0)
    objects_failed = Column(Integer, nullable=False, default=0)
    initiated_by = Column(String(64), nullable=False, default="scheduler")
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (Index("ix_deletion_audit_case_id", "case_id"),)
