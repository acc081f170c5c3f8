# app/services/lifecycle/state_machine.py
"""
Retention state machine.

States:
- active: normal storage, reminder sub-state 0..3
- pending_deletion: grace period running (grace_until set)
- purged: outcome only, the row is gone

Every transition here mutates the case in memory only; callers own the
transaction. Each transition checks its source state so re-running it on a
row that already moved is an error the caller can see, not a silent rewrite.
"""

from datetime import datetime, timedelta

from app.constants import ReminderThresholds, RetentionDefaults
from app.models import DeletionStatus, RentalCase
from app.services.lifecycle.errors import InvalidTransitionError, LifecycleInvariantError
from app.utils.dates import days_until

VALID_STATUSES = frozenset(s.value for s in DeletionStatus)


def days_remaining(case: RentalCase, now: datetime) -> int | None:
    """Whole days until retention_until (rounded up). None when unprotected."""
    if case.retention_until is None:
        return None
    return days_until(case.retention_until, now)


def target_reminder_level(days: int | None) -> int:
    """
    Reminder level a case should have reached with `days` remaining.

    3 if 0 < d <= 7, 2 if 7 < d <= 30, 1 if 30 < d <= 60, else 0.
    """
    if days is None or days <= 0:
        return 0
    if days <= ReminderThresholds.LEVEL_3_DAYS:
        return 3
    if days <= ReminderThresholds.LEVEL_2_DAYS:
        return 2
    if days <= ReminderThresholds.LEVEL_1_DAYS:
        return 1
    return 0


def is_active(case: RentalCase) -> bool:
    return case.deletion_status == DeletionStatus.ACTIVE.value


def is_pending_deletion(case: RentalCase) -> bool:
    return case.deletion_status == DeletionStatus.PENDING_DELETION.value


def needs_reminder(case: RentalCase, now: datetime) -> int:
    """Level to escalate to, or 0 when no reminder is due."""
    if not is_active(case) or case.retention_until is None or case.retention_until <= now:
        return 0
    target = target_reminder_level(days_remaining(case, now))
    return target if target > (case.retention_reminder_level or 0) else 0


def is_expired(case: RentalCase, now: datetime) -> bool:
    """Active case whose retention has passed."""
    return is_active(case) and case.retention_until is not None and case.retention_until < now


def is_purge_due(case: RentalCase, now: datetime) -> bool:
    """Pending case whose grace period has passed."""
    return is_pending_deletion(case) and case.grace_until is not None and case.grace_until < now


# -----------------------------------------------------------------------------
# Transitions
# -----------------------------------------------------------------------------


def acknowledge_reminder(case: RentalCase, level: int, now: datetime) -> None:
    """
    Record a delivered reminder. Only call after the send succeeded.

    Reaching level 2 stamps expiry_notified_at; reaching level 3 stamps
    final_expiry_notified_at.
    """
    current = case.retention_reminder_level or 0
    if not 0 < level <= ReminderThresholds.MAX_LEVEL:
        raise InvalidTransitionError(f"Reminder level {level} out of range")
    if level <= current:
        raise InvalidTransitionError(f"Reminder level cannot go from {current} to {level}")

    case.retention_reminder_level = level
    if level >= ReminderThresholds.EXPIRY_NOTICE_LEVEL and case.expiry_notified_at is None:
        case.expiry_notified_at = now
    if level >= ReminderThresholds.FINAL_NOTICE_LEVEL and case.final_expiry_notified_at is None:
        case.final_expiry_notified_at = now


def reset_reminders(case: RentalCase) -> None:
    """Fresh reminder cadence for a new retention_until."""
    case.retention_reminder_level = 0
    case.expiry_notified_at = None
    case.final_expiry_notified_at = None


def mark_pending_deletion(case: RentalCase, now: datetime) -> datetime:
    """active -> pending_deletion. Returns grace_until."""
    if not is_expired(case, now):
        raise InvalidTransitionError(
            f"Case {case.id} cannot enter pending_deletion "
            f"(status={case.deletion_status}, retention_until={case.retention_until})"
        )
    case.deletion_status = DeletionStatus.PENDING_DELETION.value
    case.grace_until = now + timedelta(days=RetentionDefaults.GRACE_PERIOD_DAYS)
    return case.grace_until


def restore_active(case: RentalCase) -> None:
    """
    pending_deletion -> active after a qualifying purchase.

    Seals are untouched; the caller recomputes retention_until.
    """
    if not is_pending_deletion(case):
        raise InvalidTransitionError(f"Case {case.id} is not pending deletion")
    case.deletion_status = DeletionStatus.ACTIVE.value
    case.grace_until = None


def check_invariants(case: RentalCase) -> None:
    """Raise LifecycleInvariantError if the stored fields contradict each other."""
    if case.deletion_status not in VALID_STATUSES:
        raise LifecycleInvariantError(case.id, f"unknown deletion_status {case.deletion_status!r}")

    pending = is_pending_deletion(case)
    if pending and case.grace_until is None:
        raise LifecycleInvariantError(case.id, "pending_deletion without grace_until")
    if not pending and case.grace_until is not None:
        raise LifecycleInvariantError(case.id, "grace_until set while active")

    level = case.retention_reminder_level or 0
    if not 0 <= level <= ReminderThresholds.MAX_LEVEL:
        raise LifecycleInvariantError(case.id, f"retention_reminder_level {level} out of range")

    if (case.storage_years_purchased or 0) < 1:
        raise LifecycleInvariantError(case.id, "storage_years_purchased must be >= 1")
