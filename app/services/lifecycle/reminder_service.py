# app/services/lifecycle/reminder_service.py
"""
Retention reminder emission.

One email per escalation, worded by stay type. The reminder level is the
delivery acknowledgment, so it only advances when the send is confirmed.
"""

import logging
from datetime import datetime
from typing import Any, Protocol

from app.models import RentalCase, StayType
from app.services.email_service import is_delivered
from app.services.email_templates import EmailTemplate
from app.services.lifecycle.state_machine import acknowledge_reminder, days_remaining

logger = logging.getLogger(__name__)


class Mailer(Protocol):
    def send(self, template: EmailTemplate, to: str, params: dict[str, Any]) -> dict[str, Any]: ...


def reminder_template(case: RentalCase) -> EmailTemplate:
    if case.stay_type == StayType.SHORT_STAY.value:
        return EmailTemplate.RETENTION_REMINDER_SHORT_STAY
    return EmailTemplate.RETENTION_REMINDER_LONG_TERM


def send_retention_reminder(
    case: RentalCase,
    level: int,
    now: datetime,
    mailer: Mailer,
) -> bool:
    """
    Send the reminder for `level` and acknowledge it on delivery.

    Returns:
        True if delivered and the case's level advanced, False otherwise
    """
    template = reminder_template(case)
    to = case.owner.email if case.owner else None
    log_extra = {"case_id": str(case.id), "template": template.value}

    if not to:
        logger.warning(f"Case {case.id} has no owner email, reminder not sent", extra=log_extra)
        return False

    result = mailer.send(
        template,
        to,
        {
            "label": case.label,
            "case_id": str(case.id),
            "retention_until": case.retention_until,
            "days_remaining": days_remaining(case, now),
            "level": level,
        },
    )

    if not is_delivered(result):
        logger.warning(
            f"Reminder level {level} not delivered for case {case.id}: {result.get('status')}",
            extra={**log_extra, "event": "reminder_not_delivered"},
        )
        return False

    acknowledge_reminder(case, level, now)
    logger.info(
        f"Reminder level {level} delivered for case {case.id}",
        extra={**log_extra, "event": "reminder_delivered"},
    )
    return True
