# app/services/lifecycle/purchase_service.py
"""
Purchase ingestion.

Applies a validated payment-completed event to a case:
- not_found: unknown case, no writes
- mismatch:  pack not valid for the case's stay type, no writes
- duplicate: payment_ref or (case, pack) already recorded, no writes
- applied:   Purchase row + case update committed together

Duplicate delivery is guarded twice: a read before the insert, and the
unique indexes on purchases for the concurrent case.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.constants import RetentionDefaults
from app.models import EVIDENCE_PACKS, PackType, Purchase, RentalCase, StayType
from app.schemas.payments import (
    EvidencePackCompleted,
    PaymentEvent,
    RelatedContractsCompleted,
    ShortStayPackCompleted,
    StorageExtensionCompleted,
)
from app.services.email_service import is_delivered
from app.services.email_templates import EmailTemplate
from app.services.lifecycle.errors import LifecycleError
from app.services.lifecycle.reminder_service import Mailer
from app.services.lifecycle.state_machine import check_invariants, is_pending_deletion, reset_reminders, restore_active
from app.utils.dates import add_months, add_years, start_of_day, utcnow

logger = logging.getLogger(__name__)

# Which stay types each pack may be applied to (None = any)
ALLOWED_STAY_TYPES: dict[str, frozenset[str] | None] = {
    PackType.CHECKIN.value: frozenset({StayType.LONG_TERM.value}),
    PackType.MOVEOUT.value: frozenset({StayType.LONG_TERM.value}),
    PackType.BUNDLE.value: frozenset({StayType.LONG_TERM.value}),
    PackType.RELATED_CONTRACTS.value: frozenset({StayType.LONG_TERM.value}),
    PackType.SHORT_STAY.value: frozenset({StayType.SHORT_STAY.value}),
    PackType.STORAGE_EXTENSION.value: None,
}


class PurchaseStatus(str, Enum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    MISMATCH = "mismatch"
    NOT_FOUND = "not_found"


@dataclass
class PurchaseResult:
    status: PurchaseStatus
    case_id: uuid.UUID
    pack_type: str
    purchase_id: uuid.UUID | None = None
    retention_until: datetime | None = None
    restored: bool = False
    message: str | None = None

    @property
    def applied(self) -> bool:
        return self.status == PurchaseStatus.APPLIED


# -----------------------------------------------------------------------------
# Validation
# -----------------------------------------------------------------------------


def stay_type_mismatch(case: RentalCase, event: PaymentEvent) -> str | None:
    """Reason the pack cannot apply to this case, or None."""
    allowed = ALLOWED_STAY_TYPES[event.pack_type]
    if allowed is not None and case.stay_type not in allowed:
        return f"{event.pack_type} pack is not valid for {case.stay_type} cases"
    if event.stay_type_hint is not None and event.stay_type_hint.value != case.stay_type:
        return f"stay_type_hint {event.stay_type_hint.value} disagrees with case stay_type {case.stay_type}"
    if event.owner_id is not None and event.owner_id != case.owner_id:
        return "owner_id does not own this case"
    return None


def find_duplicate(db: Session, case_id: uuid.UUID, event: PaymentEvent) -> Purchase | None:
    """Existing purchase for the same payment_ref, or the same non-extension pack."""
    existing = db.scalar(select(Purchase).where(Purchase.payment_ref == event.payment_ref))
    if existing is not None:
        return existing
    if isinstance(event, StorageExtensionCompleted):
        return None
    return db.scalar(
        select(Purchase).where(Purchase.case_id == case_id, Purchase.pack_type == event.ledger_pack_type)
    )


# -----------------------------------------------------------------------------
# Retention computation
# -----------------------------------------------------------------------------


def compute_retention_until(case: RentalCase, event: PaymentEvent, now: datetime) -> datetime | None:
    """New retention_until for the case after this purchase."""
    current = case.retention_until

    if isinstance(event, ShortStayPackCompleted):
        base = start_of_day(case.check_out_date) if case.check_out_date else now
        granted = base + timedelta(days=RetentionDefaults.SHORT_STAY_DAYS)
        return max(current, granted) if current else granted

    if isinstance(event, EvidencePackCompleted):
        granted = add_months(now, RetentionDefaults.EVIDENCE_PACK_MONTHS)
        return max(current, granted) if current else granted

    if isinstance(event, StorageExtensionCompleted):
        base = max(current, now) if current else now
        return add_years(base, event.years)

    # related_contracts
    return current


def _apply_to_case(case: RentalCase, event: PaymentEvent, now: datetime) -> bool:
    """Mutate lifecycle fields. Returns True if a pending case was restored."""
    restored = False
    qualifies = not isinstance(event, RelatedContractsCompleted)

    if qualifies and is_pending_deletion(case):
        restore_active(case)
        restored = True

    new_retention = compute_retention_until(case, event, now)
    if new_retention != case.retention_until:
        case.retention_until = new_retention
        reset_reminders(case)

    if isinstance(event, StorageExtensionCompleted):
        case.storage_years_purchased = (case.storage_years_purchased or RetentionDefaults.DEFAULT_STORAGE_YEARS) + event.years

    if PackType(event.pack_type) in EVIDENCE_PACKS:
        case.purchase_type = event.pack_type
        case.purchase_at = now

    case.last_activity_at = now
    return restored


# -----------------------------------------------------------------------------
# Entry point
# -----------------------------------------------------------------------------


def apply_purchase(
    db: Session,
    event: PaymentEvent,
    now: datetime | None = None,
    mailer: Mailer | None = None,
) -> PurchaseResult:
    """
    Apply one payment-completed event.

    Args:
        db: Database session
        event: Validated event (see app.schemas.payments)
        now: Purchase time (default: utcnow())
        mailer: If given, a confirmation email is sent after commit (best effort)
    """
    now = now or utcnow()
    pack_type = event.ledger_pack_type
    log_extra = {"case_id": str(event.case_id), "pack_type": pack_type, "payment_ref": event.payment_ref}

    case = db.get(RentalCase, event.case_id)
    if case is None:
        logger.warning("Purchase for unknown case", extra={**log_extra, "event": "purchase_not_found"})
        return PurchaseResult(PurchaseStatus.NOT_FOUND, event.case_id, pack_type, message="Case not found")

    reason = stay_type_mismatch(case, event)
    if reason:
        logger.warning(f"Purchase rejected: {reason}", extra={**log_extra, "event": "purchase_mismatch"})
        return PurchaseResult(PurchaseStatus.MISMATCH, case.id, pack_type, message=reason)

    existing = find_duplicate(db, case.id, event)
    if existing is not None:
        logger.info("Duplicate purchase delivery ignored", extra={**log_extra, "event": "purchase_duplicate"})
        return PurchaseResult(
            PurchaseStatus.DUPLICATE,
            case.id,
            pack_type,
            purchase_id=existing.id,
            retention_until=case.retention_until,
        )

    purchase = Purchase(
        case_id=case.id,
        owner_id=case.owner_id,
        pack_type=pack_type,
        amount_cents=event.amount_cents,
        currency=event.currency,
        payment_ref=event.payment_ref,
        created_at=now,
    )
    db.add(purchase)
    try:
        restored = _apply_to_case(case, event, now)
        check_invariants(case)
    except LifecycleError:
        db.rollback()
        raise

    try:
        db.commit()
    except IntegrityError:
        # Lost a race with a concurrent delivery of the same event
        db.rollback()
        logger.info("Duplicate purchase rejected by unique index", extra={**log_extra, "event": "purchase_duplicate"})
        return PurchaseResult(PurchaseStatus.DUPLICATE, event.case_id, pack_type)

    result = PurchaseResult(
        PurchaseStatus.APPLIED,
        case.id,
        pack_type,
        purchase_id=purchase.id,
        retention_until=case.retention_until,
        restored=restored,
    )
    logger.info(
        f"Purchase applied{' (case restored from pending_deletion)' if restored else ''}",
        extra={**log_extra, "event": "purchase_applied"},
    )

    if mailer is not None:
        send_purchase_confirmation(case, event, mailer)
    return result


def send_purchase_confirmation(case: RentalCase, event: PaymentEvent, mailer: Mailer) -> bool:
    """Confirmation email after commit. Failures are logged only."""
    to = case.owner.email if case.owner else None
    if not to:
        return False

    params = {"label": case.label, "case_id": str(case.id), "retention_until": case.retention_until}
    if isinstance(event, StorageExtensionCompleted):
        template = EmailTemplate.STORAGE_EXTENSION
        params["years"] = event.years
    else:
        template = EmailTemplate.PACK_PURCHASE
        params["pack_type"] = event.pack_type

    try:
        result = mailer.send(template, to, params)
    except Exception as e:
        logger.error(f"Confirmation email raised: {e}", extra={"case_id": str(case.id), "template": template.value})
        return False

    if not is_delivered(result):
        logger.warning(
            f"Confirmation email not delivered: {result.get('status')}",
            extra={"case_id": str(case.id), "template": template.value},
        )
        return False
    return True
