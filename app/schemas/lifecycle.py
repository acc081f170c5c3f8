# app/schemas/lifecycle.py
"""
Schemas for cron and admin lifecycle endpoints.
"""

import uuid
from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# -----------------------------------------------------------------------------
# Cron
# -----------------------------------------------------------------------------


class ScanResponse(BaseModel):
    """Result of a transition scan."""

    success: bool
    dry_run: bool
    run_id: str | None = None
    now: datetime
    reminders_sent: int
    reminders_failed: int
    reminders_by_level: dict[int, int] = Field(default_factory=dict)
    cases_expired: int
    cases_purged: int
    objects_deleted: int
    objects_failed: int
    audit_failures: int
    reminders_due: int = 0
    reminders_due_by_level: dict[int, int] = Field(default_factory=dict)
    expiries_due: int = 0
    purges_due: int = 0
    errors: list[str] = Field(default_factory=list)


class DeadlineRemindersResponse(BaseModel):
    success: bool
    emails_sent: int
    skipped_unpaid: int
    skipped_already_sent: int
    failed: int
    errors: list[str] = Field(default_factory=list)


# -----------------------------------------------------------------------------
# Admin
# -----------------------------------------------------------------------------


class PreviewResponse(BaseModel):
    """What a scan would do right now."""

    now: datetime
    reminders_due: dict[int, int]
    reminders_total: int
    cases_to_expire: int
    cases_to_purge: int
    unprotected_cases: int


class CaseLifecycle(BaseModel):
    """Stored lifecycle fields of one case."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    owner_id: uuid.UUID
    label: str
    stay_type: str
    check_in_date: date | None = None
    check_out_date: date | None = None
    checkin_completed_at: datetime | None = None
    handover_completed_at: datetime | None = None
    retention_until: datetime | None = None
    storage_years_purchased: int
    deletion_status: str
    grace_until: datetime | None = None
    retention_reminder_level: int
    expiry_notified_at: datetime | None = None
    final_expiry_notified_at: datetime | None = None
    purchase_type: str | None = None
    purchase_at: datetime | None = None


class CaseDetailResponse(BaseModel):
    case: CaseLifecycle
    days_remaining: int | None
    pack_types: list[str]
    entitlements: dict[str, Any]


class UnlockResponse(BaseModel):
    status: str
    case_id: uuid.UUID
    pack_type: str
    message: str | None = None


class MetricsResponse(BaseModel):
    metrics: dict[str, Any]
    cached: bool
    cache_age_seconds: int
