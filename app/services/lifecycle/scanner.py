# app/services/lifecycle/scanner.py
"""
Transition scanner: the daily cron pass over every case.

Phases, in order:
1. reminders - escalate reminder level for active cases nearing expiry
2. expiry    - move active cases past retention_until to pending_deletion
3. purge     - permanently delete pending cases past grace_until

Each phase selects candidate IDs, then reloads and re-checks every case
before acting, so an overlapping or retried run finds nothing left to do.
Every case is its own transaction: one failure is rolled back, recorded,
and the batch moves on.
"""

import logging
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session

from app.constants import ReminderThresholds, ScanDefaults
from app.logging_config import ProgressTracker, log_stage
from app.models import DeletionStatus, RentalCase
from app.services.lifecycle.purge_service import purge_case
from app.services.lifecycle.reminder_service import Mailer, send_retention_reminder
from app.services.lifecycle.state_machine import (
    check_invariants,
    is_expired,
    is_purge_due,
    mark_pending_deletion,
    needs_reminder,
)
from app.storage.base import StorageProvider
from app.utils.dates import utcnow

logger = logging.getLogger(__name__)


@dataclass
class ScanResult:
    """Result of one transition scan."""

    success: bool = True
    dry_run: bool = False
    run_id: str | None = None
    now: datetime | None = None
    reminders_sent: int = 0
    reminders_failed: int = 0
    reminders_by_level: dict[int, int] = field(default_factory=dict)
    cases_expired: int = 0
    cases_purged: int = 0
    objects_deleted: int = 0
    objects_failed: int = 0
    audit_failures: int = 0
    # Dry run only: what a real scan would do
    reminders_due: int = 0
    reminders_due_by_level: dict[int, int] = field(default_factory=dict)
    expiries_due: int = 0
    purges_due: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class TransitionPreview:
    """What a scan would do at `now`, without doing it."""

    now: datetime
    reminders_due: dict[int, int] = field(default_factory=dict)
    cases_to_expire: int = 0
    cases_to_purge: int = 0
    unprotected_cases: int = 0

    @property
    def reminders_total(self) -> int:
        return sum(self.reminders_due.values())

    def to_dict(self) -> dict:
        data = asdict(self)
        data["reminders_total"] = self.reminders_total
        return data


# -----------------------------------------------------------------------------
# Candidate selection
# -----------------------------------------------------------------------------


_LEVEL_WINDOWS = (
    (3, ReminderThresholds.LEVEL_3_DAYS),
    (2, ReminderThresholds.LEVEL_2_DAYS),
    (1, ReminderThresholds.LEVEL_1_DAYS),
)


def _reminder_candidates(now: datetime):
    # Only cases still below the level their window calls for
    due = or_(
        *(
            and_(
                RentalCase.retention_until <= now + timedelta(days=days),
                RentalCase.retention_reminder_level < level,
            )
            for level, days in _LEVEL_WINDOWS
        )
    )
    return select(RentalCase.id).where(
        RentalCase.deletion_status == DeletionStatus.ACTIVE.value,
        RentalCase.retention_until.is_not(None),
        RentalCase.retention_until > now,
        due,
    )


def _expiry_candidates(now: datetime):
    return select(RentalCase.id).where(
        RentalCase.deletion_status == DeletionStatus.ACTIVE.value,
        RentalCase.retention_until.is_not(None),
        RentalCase.retention_until < now,
    )


def _purge_candidates(now: datetime):
    return select(RentalCase.id).where(
        RentalCase.deletion_status == DeletionStatus.PENDING_DELETION.value,
        RentalCase.grace_until.is_not(None),
        RentalCase.grace_until < now,
    )


def _candidate_ids(db: Session, query, order_column, batch_size: int) -> list[uuid.UUID]:
    return list(db.scalars(query.order_by(order_column).limit(batch_size)).all())


def _count(db: Session, query) -> int:
    return db.scalar(select(func.count()).select_from(query.subquery())) or 0


# -----------------------------------------------------------------------------
# Preview
# -----------------------------------------------------------------------------


def preview_transitions(db: Session, now: datetime | None = None) -> TransitionPreview:
    """Count what each phase would do right now. Read-only."""
    now = now or utcnow()
    preview = TransitionPreview(now=now)

    for case in db.scalars(select(RentalCase).where(RentalCase.id.in_(_reminder_candidates(now)))).all():
        level = needs_reminder(case, now)
        if level:
            preview.reminders_due[level] = preview.reminders_due.get(level, 0) + 1

    preview.cases_to_expire = _count(db, _expiry_candidates(now))
    preview.cases_to_purge = _count(db, _purge_candidates(now))
    preview.unprotected_cases = (
        db.scalar(select(func.count(RentalCase.id)).where(RentalCase.retention_until.is_(None))) or 0
    )
    return preview


# -----------------------------------------------------------------------------
# Phases
# -----------------------------------------------------------------------------


def _record_failure(db: Session, result: ScanResult, phase: str, case_id: uuid.UUID, error: Exception) -> None:
    db.rollback()
    message = f"{phase} failed for case {case_id}: {error}"
    result.errors.append(message)
    logger.error(message, extra={"event": f"{phase}_failed", "case_id": str(case_id)}, exc_info=True)


def _run_reminders(db: Session, mailer: Mailer, now: datetime, batch_size: int, result: ScanResult) -> None:
    ids = _candidate_ids(db, _reminder_candidates(now), RentalCase.retention_until, batch_size)
    tracker = ProgressTracker(total=len(ids), stage="reminders", log_every=ScanDefaults.PROGRESS_LOG_EVERY)

    for case_id in ids:
        ok = True
        try:
            case = db.get(RentalCase, case_id, populate_existing=True)
            if case is None:
                continue
            check_invariants(case)

            level = needs_reminder(case, now)
            if not level:
                continue

            if send_retention_reminder(case, level, now, mailer):
                db.commit()
                result.reminders_sent += 1
                result.reminders_by_level[level] = result.reminders_by_level.get(level, 0) + 1
            else:
                db.rollback()
                result.reminders_failed += 1
                ok = False
        except Exception as e:
            _record_failure(db, result, "reminder", case_id, e)
            ok = False
        finally:
            tracker.increment(ok)

    tracker.finish()


def _run_expiry(db: Session, now: datetime, batch_size: int, result: ScanResult) -> None:
    ids = _candidate_ids(db, _expiry_candidates(now), RentalCase.retention_until, batch_size)
    tracker = ProgressTracker(total=len(ids), stage="expiry", log_every=ScanDefaults.PROGRESS_LOG_EVERY)

    for case_id in ids:
        ok = True
        try:
            case = db.get(RentalCase, case_id, populate_existing=True)
            if case is None:
                continue
            check_invariants(case)
            if not is_expired(case, now):
                continue

            grace_until = mark_pending_deletion(case, now)
            check_invariants(case)
            db.commit()
            result.cases_expired += 1
            logger.info(
                f"Case {case_id} pending deletion until {grace_until.isoformat()}",
                extra={"event": "case_pending_deletion", "case_id": str(case_id)},
            )
        except Exception as e:
            _record_failure(db, result, "expiry", case_id, e)
            ok = False
        finally:
            tracker.increment(ok)

    tracker.finish()


def _run_purge(db: Session, storage: StorageProvider, now: datetime, batch_size: int, result: ScanResult) -> None:
    ids = _candidate_ids(db, _purge_candidates(now), RentalCase.grace_until, batch_size)
    tracker = ProgressTracker(total=len(ids), stage="purge", log_every=ScanDefaults.PROGRESS_LOG_EVERY)

    for case_id in ids:
        ok = True
        try:
            case = db.get(RentalCase, case_id, populate_existing=True)
            if case is None:
                continue
            check_invariants(case)
            if not is_purge_due(case, now):
                continue

            purged = purge_case(db, case, storage, now)
            result.cases_purged += 1
            result.objects_deleted += purged.objects_deleted
            result.objects_failed += purged.objects_failed
            if not purged.audit_written:
                result.audit_failures += 1
        except Exception as e:
            _record_failure(db, result, "purge", case_id, e)
            ok = False
        finally:
            tracker.increment(ok)

    tracker.finish()


def run_transition_scan(
    db: Session,
    mailer: Mailer,
    storage: StorageProvider,
    now: datetime | None = None,
    batch_size: int = ScanDefaults.BATCH_SIZE,
    dry_run: bool = False,
    run_id: str | None = None,
) -> ScanResult:
    """
    Run all three phases once.

    Args:
        db: Database session
        mailer: Email collaborator (EmailService or a test double)
        storage: Storage collaborator for purges
        now: Evaluation time (default: utcnow())
        batch_size: Max cases per phase in this run; the rest wait for the next run
        dry_run: Only count what would happen

    Returns:
        ScanResult with per-phase counts and per-case errors
    """
    now = now or utcnow()
    run_id = run_id or uuid.uuid4().hex[:12]
    result = ScanResult(dry_run=dry_run, run_id=run_id, now=now)

    if dry_run:
        preview = preview_transitions(db, now)
        result.reminders_due_by_level = dict(preview.reminders_due)
        result.reminders_due = preview.reminders_total
        result.expiries_due = preview.cases_to_expire
        result.purges_due = preview.cases_to_purge
        return result

    with log_stage("reminders", run_id=run_id):
        _run_reminders(db, mailer, now, batch_size, result)

    with log_stage("expiry", run_id=run_id):
        _run_expiry(db, now, batch_size, result)

    with log_stage("purge", run_id=run_id):
        _run_purge(db, storage, now, batch_size, result)

    result.success = not result.errors
    logger.info(
        f"Transition scan complete: {result.reminders_sent} reminders, "
        f"{result.cases_expired} expired, {result.cases_purged} purged, {len(result.errors)} errors",
        extra={
            "event": "scan_complete",
            "items_processed": result.reminders_sent + result.cases_expired + result.cases_purged,
            "items_failed": len(result.errors) + result.reminders_failed,
        },
    )
    return result
