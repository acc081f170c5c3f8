# app/routers/cron.py
"""
Scheduler-triggered lifecycle endpoints.

GET|POST /v1/cron/retention          - Run the daily transition scan
GET|POST /v1/cron/deadline-reminders - Send lease-deadline reminders due today

Both require Authorization: Bearer <CRON_SECRET>; nothing is touched before
the token is checked.
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.auth import require_cron_secret
from app.config import get_settings
from app.database import get_db
from app.dependencies import get_mailer, get_metrics_cache, get_now, get_storage
from app.schemas.lifecycle import DeadlineRemindersResponse, ScanResponse
from app.services.lifecycle import run_deadline_reminders, run_transition_scan
from app.services.metrics_cache import MetricsCache
from app.storage import StorageProvider

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/cron", tags=["cron"], dependencies=[Depends(require_cron_secret)])


@router.api_route("/retention", methods=["GET", "POST"], response_model=ScanResponse)
def run_retention(
    dry_run: bool = Query(False, description="Count transitions without applying them"),
    db: Session = Depends(get_db),
    mailer=Depends(get_mailer),
    storage: StorageProvider = Depends(get_storage),
    cache: MetricsCache = Depends(get_metrics_cache),
    now: datetime = Depends(get_now),
) -> ScanResponse:
    """
    Run reminders, expiry and purge for every due case.

    Per-case failures are reported in `errors`; the response is still 200 so
    the scheduler does not hammer retries. The next daily run picks them up.
    """
    result = run_transition_scan(
        db,
        mailer=mailer,
        storage=storage,
        now=now,
        batch_size=get_settings().SCAN_BATCH_SIZE,
        dry_run=dry_run,
    )
    if not dry_run:
        cache.invalidate()
    return ScanResponse(**result.to_dict())


@router.api_route("/deadline-reminders", methods=["GET", "POST"], response_model=DeadlineRemindersResponse)
def run_deadlines(
    db: Session = Depends(get_db),
    mailer=Depends(get_mailer),
    now: datetime = Depends(get_now),
) -> DeadlineRemindersResponse:
    """Send lease-deadline reminders due today."""
    result = run_deadline_reminders(db, mailer=mailer, now=now)
    return DeadlineRemindersResponse(**result.to_dict())
