# app/services/lifecycle/__init__.py
"""
Retention lifecycle services.

States: active -> pending_deletion -> purged (outcome, row deleted).

Services:
- state_machine: transitions and invariant checks
- reminder_service: retention reminder emails
- purge_service: storage cleanup, row deletion, audit
- scanner: daily cron orchestration of reminders, expiry, purge
- purchase_service: payment-completed event ingestion
- deadline_service: lease-deadline reminders
"""

from app.services.lifecycle.deadline_service import (
    DeadlineReminderResult,
    run_deadline_reminders,
)
from app.services.lifecycle.errors import (
    InvalidTransitionError,
    LifecycleError,
    LifecycleInvariantError,
)
from app.services.lifecycle.purchase_service import (
    PurchaseResult,
    PurchaseStatus,
    apply_purchase,
)
from app.services.lifecycle.purge_service import (
    CasePurgeResult,
    purge_case,
)
from app.services.lifecycle.scanner import (
    ScanResult,
    TransitionPreview,
    preview_transitions,
    run_transition_scan,
)

__all__ = [
    # Errors
    "LifecycleError",
    "LifecycleInvariantError",
    "InvalidTransitionError",
    # Scanner
    "run_transition_scan",
    "preview_transitions",
    "ScanResult",
    "TransitionPreview",
    # Purge
    "purge_case",
    "CasePurgeResult",
    # Purchases
    "apply_purchase",
    "PurchaseResult",
    "PurchaseStatus",
    # Deadlines
    "run_deadline_reminders",
    "DeadlineReminderResult",
]
