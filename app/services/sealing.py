# app/services/sealing.py
"""
Evidence sealing.

A seal stamps checkin_completed_at or handover_completed_at exactly once.
Seals are never cleared, including across a retention lapse and recovery.
"""

import logging
from datetime import datetime
from enum import Enum

from sqlalchemy.orm import Session

from app.models import RentalCase
from app.services.entitlements import get_case_entitlements
from app.services.lifecycle.errors import AlreadySealedError, SealNotAllowedError
from app.utils.dates import utcnow

logger = logging.getLogger(__name__)


class SealPhase(str, Enum):
    CHECKIN = "checkin"
    HANDOVER = "handover"
    ARRIVAL = "arrival"
    DEPARTURE = "departure"


# phase -> (entitlement flag, timestamp column)
_PHASES = {
    SealPhase.CHECKIN: ("can_seal_checkin", "checkin_completed_at"),
    SealPhase.HANDOVER: ("can_seal_handover", "handover_completed_at"),
    SealPhase.ARRIVAL: ("can_seal_arrival", "checkin_completed_at"),
    SealPhase.DEPARTURE: ("can_seal_departure", "handover_completed_at"),
}


def seal_phase(
    db: Session,
    case: RentalCase,
    phase: SealPhase | str,
    now: datetime | None = None,
) -> datetime:
    """
    Seal one evidence phase of a case and commit.

    Returns:
        The seal timestamp

    Raises:
        SealNotAllowedError: stay type or purchases do not permit the seal
        AlreadySealedError: the phase was sealed before
    """
    phase = SealPhase(phase)
    now = now or utcnow()
    flag, column = _PHASES[phase]

    if getattr(case, column) is not None:
        raise AlreadySealedError(f"{phase.value} already sealed for case {case.id}")

    entitlements = get_case_entitlements(db, case.id, now=now)
    if entitlements is None or not getattr(entitlements, flag):
        raise SealNotAllowedError(f"Case {case.id} is not entitled to seal {phase.value}")

    if phase == SealPhase.DEPARTURE and case.checkin_completed_at is None:
        raise SealNotAllowedError("Seal arrival evidence first")

    setattr(case, column, now)
    case.last_activity_at = now
    db.commit()

    logger.info(f"Sealed {phase.value} for case {case.id}", extra={"event": "phase_sealed", "case_id": str(case.id)})
    return now
