# app/routers/admin_lifecycle.py
"""
Admin endpoints for the retention lifecycle.

GET  /v1/admin/lifecycle/preview                                  - What a scan would do now
GET  /v1/admin/lifecycle/cases/{case_id}                          - Lifecycle fields + entitlements
POST /v1/admin/lifecycle/cases/{case_id}/unlock-related-contracts - Free related-contracts unlock
GET  /v1/admin/metrics                                            - Aggregated metrics (cached)
"""

import logging
import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.auth import require_admin_key
from app.database import get_db
from app.dependencies import get_metrics_cache, get_now
from app.models import Purchase, RentalCase
from app.schemas.lifecycle import (
    CaseDetailResponse,
    CaseLifecycle,
    MetricsResponse,
    PreviewResponse,
    UnlockResponse,
)
from app.schemas.payments import RelatedContractsCompleted
from app.services.entitlements import resolve_entitlements
from app.services.lifecycle import PurchaseStatus, apply_purchase, preview_transitions
from app.services.lifecycle.state_machine import days_remaining
from app.services.metrics_cache import MetricsCache, compute_lifecycle_metrics

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/admin", tags=["admin-lifecycle"], dependencies=[Depends(require_admin_key)])

METRICS_CACHE_KEY = "admin:lifecycle_metrics"


@router.get("/lifecycle/preview", response_model=PreviewResponse)
def get_preview(
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
) -> PreviewResponse:
    """Counts of reminders, expiries and purges the next scan would perform."""
    return PreviewResponse(**preview_transitions(db, now).to_dict())


@router.get("/lifecycle/cases/{case_id}", response_model=CaseDetailResponse)
def get_case_lifecycle(
    case_id: uuid.UUID,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
) -> CaseDetailResponse:
    case = db.get(RentalCase, case_id)
    if case is None:
        raise HTTPException(status_code=404, detail="Case not found")

    pack_types = list(db.scalars(select(Purchase.pack_type).where(Purchase.case_id == case_id)).all())
    entitlements = resolve_entitlements(case, pack_types, now=now)

    return CaseDetailResponse(
        case=CaseLifecycle.model_validate(case),
        days_remaining=days_remaining(case, now),
        pack_types=sorted(pack_types),
        entitlements=entitlements.to_dict(),
    )


@router.post("/lifecycle/cases/{case_id}/unlock-related-contracts", response_model=UnlockResponse)
def unlock_related_contracts(
    case_id: uuid.UUID,
    db: Session = Depends(get_db),
    cache: MetricsCache = Depends(get_metrics_cache),
    now: datetime = Depends(get_now),
) -> UnlockResponse:
    """
    Grant related_contracts without payment.

    Goes through purchase ingestion as a zero-amount purchase, so stay-type
    and duplicate rules are identical to a paid unlock.
    """
    event = RelatedContractsCompleted(
        case_id=case_id,
        pack_type="related_contracts",
        payment_ref=f"admin-unlock-{case_id}",
        amount_cents=0,
    )
    result = apply_purchase(db, event, now=now)

    if result.status == PurchaseStatus.NOT_FOUND:
        raise HTTPException(status_code=404, detail="Case not found")
    if result.status == PurchaseStatus.MISMATCH:
        raise HTTPException(status_code=422, detail=result.message)

    if result.status == PurchaseStatus.APPLIED:
        cache.invalidate()
        logger.info(f"Admin unlocked related contracts for case {case_id}", extra={"case_id": str(case_id)})

    message = "Already unlocked" if result.status == PurchaseStatus.DUPLICATE else "Related contracts unlocked"
    return UnlockResponse(status=result.status.value, case_id=case_id, pack_type=result.pack_type, message=message)


@router.get("/metrics", response_model=MetricsResponse)
def get_metrics(
    refresh: bool = Query(False, description="Bypass the cache"),
    db: Session = Depends(get_db),
    cache: MetricsCache = Depends(get_metrics_cache),
    now: datetime = Depends(get_now),
) -> MetricsResponse:
    entry = cache.get_or_compute(METRICS_CACHE_KEY, lambda: compute_lifecycle_metrics(db, now), refresh=refresh)
    return MetricsResponse(metrics=entry.value, cached=entry.cached, cache_age_seconds=entry.age_seconds)
