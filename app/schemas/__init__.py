# app/schemas/__init__.py
"""
Pydantic schemas for API request/response validation.
"""

from app.schemas.lifecycle import (
    CaseDetailResponse,
    CaseLifecycle,
    DeadlineRemindersResponse,
    MetricsResponse,
    PreviewResponse,
    ScanResponse,
    UnlockResponse,
)
from app.schemas.payments import (
    EvidencePackCompleted,
    PaymentCompletedEvent,
    PaymentEvent,
    PaymentWebhookEnvelope,
    PaymentWebhookResponse,
    RelatedContractsCompleted,
    ShortStayPackCompleted,
    StorageExtensionCompleted,
    parse_payment_event,
)

__all__ = [
    # Lifecycle
    "ScanResponse",
    "DeadlineRemindersResponse",
    "PreviewResponse",
    "CaseLifecycle",
    "CaseDetailResponse",
    "UnlockResponse",
    "MetricsResponse",
    # Payments
    "PaymentEvent",
    "PaymentCompletedEvent",
    "EvidencePackCompleted",
    "ShortStayPackCompleted",
    "RelatedContractsCompleted",
    "StorageExtensionCompleted",
    "PaymentWebhookEnvelope",
    "PaymentWebhookResponse",
    "parse_payment_event",
]
