# app/services/lifecycle/deadline_service.py
"""
Lease-deadline reminders.

Independent of storage retention. For each deadline, a reminder goes out
when the days left match one of its offsets (default 7, 1, 0), at most once
per calendar day, and only for cases that have a paid evidence pack.
"""

import logging
from dataclasses import asdict, dataclass, field
from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from app.constants import DeadlineDefaults
from app.logging_config import ProgressTracker, log_stage
from app.models import Deadline, RentalCase
from app.services.email_service import is_delivered
from app.services.email_templates import EmailTemplate
from app.services.lifecycle.reminder_service import Mailer
from app.utils.dates import utcnow

logger = logging.getLogger(__name__)


@dataclass
class DeadlineReminderResult:
    success: bool = True
    emails_sent: int = 0
    skipped_unpaid: int = 0
    skipped_already_sent: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def deadline_offsets(deadline: Deadline) -> tuple[int, ...]:
    """Configured offsets, falling back to the defaults when unset or malformed."""
    offsets = (deadline.preferences or {}).get("offsets")
    if not isinstance(offsets, list) or not offsets:
        return DeadlineDefaults.OFFSETS
    try:
        return tuple(int(o) for o in offsets)
    except (TypeError, ValueError):
        return DeadlineDefaults.OFFSETS


def days_until_deadline(deadline: Deadline, today: date) -> int:
    return (deadline.due_date - today).days


def is_paid_case(case: RentalCase | None) -> bool:
    return case is not None and case.purchase_type is not None


def already_sent_today(deadline: Deadline, today: date) -> bool:
    sent = deadline.last_notification_sent_at
    return sent is not None and sent.date() == today


def run_deadline_reminders(
    db: Session,
    mailer: Mailer,
    now: datetime | None = None,
) -> DeadlineReminderResult:
    """
    Send all deadline reminders due today.

    last_notification_sent_at advances only after a delivered send; each
    deadline is committed or rolled back on its own.
    """
    now = now or utcnow()
    today = now.date()
    result = DeadlineReminderResult()

    deadlines = db.scalars(
        select(Deadline)
        .options(joinedload(Deadline.case).joinedload(RentalCase.owner))
        .where(Deadline.due_date >= today)
        .order_by(Deadline.due_date)
    ).all()

    with log_stage("deadline_reminders"):
        tracker = ProgressTracker(total=len(deadlines), stage="deadline_reminders", log_every=50)

        for deadline in deadlines:
            ok = True
            log_extra = {"deadline_id": str(deadline.id), "case_id": str(deadline.case_id)}
            try:
                days = days_until_deadline(deadline, today)
                if days < 0 or days not in deadline_offsets(deadline):
                    continue

                case = deadline.case
                if not is_paid_case(case):
                    result.skipped_unpaid += 1
                    logger.debug(f"Skipping unpaid case {deadline.case_id}", extra=log_extra)
                    continue

                if already_sent_today(deadline, today):
                    result.skipped_already_sent += 1
                    continue

                to = case.owner.email if case.owner else None
                if not to:
                    continue

                send_result = mailer.send(
                    EmailTemplate.DEADLINE_REMINDER,
                    to,
                    {
                        "label": case.label,
                        "case_id": str(case.id),
                        "deadline_type": deadline.type,
                        "due_date": deadline.due_date,
                        "days_until": days,
                        "notice_method": (deadline.preferences or {}).get("notice_method"),
                    },
                )

                if is_delivered(send_result):
                    deadline.last_notification_sent_at = now
                    db.commit()
                    result.emails_sent += 1
                    logger.info(
                        f"Deadline reminder sent ({days} days before)",
                        extra={**log_extra, "event": "deadline_reminder_sent"},
                    )
                else:
                    result.failed += 1
                    ok = False
                    logger.warning(
                        f"Deadline reminder not delivered: {send_result.get('status')}",
                        extra={**log_extra, "event": "deadline_reminder_failed"},
                    )
            except Exception as e:
                db.rollback()
                result.failed += 1
                result.errors.append(f"Deadline {deadline.id}: {e}")
                logger.error(f"Deadline reminder failed: {e}", extra=log_extra, exc_info=True)
                ok = False
            finally:
                tracker.increment(ok)

        tracker.finish()

    result.success = not result.errors
    return result
