# app/routers/webhooks.py
"""
Payment processor webhook.

POST /v1/webhooks/payments

400 - bad signature or malformed payload (no side effects)
404 - unknown case
422 - pack not valid for the case's stay type
200 - applied, duplicate, or ignored (non-completion event types)
"""

import json
import logging
import os
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.config import get_settings
from app.constants import WebhookDefaults
from app.database import get_db
from app.dependencies import get_mailer, get_metrics_cache, get_now, get_raw_body
from app.schemas.payments import PaymentWebhookEnvelope, PaymentWebhookResponse, parse_payment_event
from app.services.lifecycle import PurchaseStatus, apply_purchase
from app.services.metrics_cache import MetricsCache
from app.services.webhook_signature import SignatureVerificationError, verify_signature

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/webhooks", tags=["webhooks"])


@router.post("/payments", response_model=PaymentWebhookResponse)
def payment_webhook(
    request: Request,
    body: bytes = Depends(get_raw_body),
    db: Session = Depends(get_db),
    mailer=Depends(get_mailer),
    cache: MetricsCache = Depends(get_metrics_cache),
    now: datetime = Depends(get_now),
) -> PaymentWebhookResponse:
    secret = os.getenv("PAYMENT_WEBHOOK_SECRET")
    if not secret:
        raise HTTPException(
            status_code=500,
            detail="Server misconfiguration: webhook secret not configured",
        )

    try:
        verify_signature(
            body,
            request.headers.get(WebhookDefaults.SIGNATURE_HEADER),
            secret,
            tolerance_seconds=get_settings().WEBHOOK_TOLERANCE_SECONDS,
        )
    except SignatureVerificationError as e:
        logger.warning(f"Webhook signature rejected: {e}", extra={"event": "webhook_signature_rejected"})
        raise HTTPException(status_code=400, detail=f"Invalid signature: {e}")

    try:
        envelope = PaymentWebhookEnvelope.model_validate(json.loads(body))
    except (ValueError, ValidationError) as e:
        raise HTTPException(status_code=400, detail=f"Malformed webhook body: {e}")

    if envelope.type != WebhookDefaults.COMPLETED_EVENT_TYPE:
        logger.info(f"Ignoring webhook event type {envelope.type}", extra={"event": "webhook_ignored"})
        return PaymentWebhookResponse(status="ignored")

    try:
        event = parse_payment_event(envelope.data)
    except ValidationError as e:
        logger.warning(f"Invalid payment event: {e.error_count()} errors", extra={"event": "webhook_invalid_event"})
        raise HTTPException(status_code=400, detail=json.loads(e.json(include_url=False)))

    result = apply_purchase(db, event, now=now, mailer=mailer)

    if result.status == PurchaseStatus.NOT_FOUND:
        raise HTTPException(status_code=404, detail="Case not found")
    if result.status == PurchaseStatus.MISMATCH:
        raise HTTPException(status_code=422, detail=result.message)

    if result.status == PurchaseStatus.APPLIED:
        cache.invalidate()

    return PaymentWebhookResponse(status=result.status.value, case_id=result.case_id, pack_type=result.pack_type)
