# app/services/metrics_cache.py
"""
Admin metrics: aggregation query plus an injectable TTL cache.

The cache is a per-application object (app.state.metrics_cache) handed to
routes through a FastAPI dependency, so tests can swap it or drive its clock.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from cachetools import TTLCache
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.models import DeletionAudit, DeletionStatus, Purchase, RentalCase, StayType, User

DEFAULT_TTL_SECONDS = 300


@dataclass
class CachedValue:
    value: Any
    cached: bool
    age_seconds: int


class MetricsCache:
    """Keyed TTL cache. `timer` is injectable for tests."""

    def __init__(self, ttl_seconds: int = DEFAULT_TTL_SECONDS, maxsize: int = 32, timer: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._timer = timer
        self._cache: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl_seconds, timer=timer)

    def get_or_compute(self, key: str, compute: Callable[[], Any], refresh: bool = False) -> CachedValue:
        """Return the cached value for key, computing and storing it on a miss or refresh."""
        if not refresh:
            entry = self._cache.get(key)
            if entry is not None:
                value, stored_at = entry
                return CachedValue(value=value, cached=True, age_seconds=int(self._timer() - stored_at))

        value = compute()
        self._cache[key] = (value, self._timer())
        return CachedValue(value=value, cached=False, age_seconds=0)

    def invalidate(self, key: str | None = None) -> None:
        """Drop one key, or everything when key is None."""
        if key is None:
            self._cache.clear()
        else:
            self._cache.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._cache


# -----------------------------------------------------------------------------
# Aggregation
# -----------------------------------------------------------------------------


def compute_lifecycle_metrics(db: Session, now: datetime) -> dict:
    """Counts across users, cases, retention states, revenue and purges."""

    def count(stmt) -> int:
        return db.scalar(stmt) or 0

    case_count = select(func.count(RentalCase.id))

    users = {
        "total": count(select(func.count(User.id))),
        "signups_24h": count(select(func.count(User.id)).where(User.created_at >= now - timedelta(days=1))),
        "signups_7d": count(select(func.count(User.id)).where(User.created_at >= now - timedelta(days=7))),
        "signups_30d": count(select(func.count(User.id)).where(User.created_at >= now - timedelta(days=30))),
    }

    cases = {
        "total": count(case_count),
        "long_term": count(case_count.where(RentalCase.stay_type == StayType.LONG_TERM.value)),
        "short_stay": count(case_count.where(RentalCase.stay_type == StayType.SHORT_STAY.value)),
        "checkin_sealed": count(case_count.where(RentalCase.checkin_completed_at.is_not(None))),
        "handover_sealed": count(case_count.where(RentalCase.handover_completed_at.is_not(None))),
    }

    retention = {
        "protected": count(case_count.where(RentalCase.retention_until > now)),
        "unprotected": count(case_count.where(RentalCase.retention_until.is_(None))),
        "pending_deletion": count(
            case_count.where(RentalCase.deletion_status == DeletionStatus.PENDING_DELETION.value)
        ),
        "expiring_30d": count(
            case_count.where(
                RentalCase.deletion_status == DeletionStatus.ACTIVE.value,
                RentalCase.retention_until > now,
                RentalCase.retention_until <= now + timedelta(days=30),
            )
        ),
        "purged_total": count(select(func.count(DeletionAudit.id))),
        "purged_30d": count(
            select(func.count(DeletionAudit.id)).where(DeletionAudit.created_at >= now - timedelta(days=30))
        ),
    }

    revenue_by_pack: dict[str, dict] = {}
    total_revenue = 0
    rows = db.execute(
        select(Purchase.pack_type, func.count(Purchase.id), func.coalesce(func.sum(Purchase.amount_cents), 0))
        .group_by(Purchase.pack_type)
        .order_by(Purchase.pack_type)
    ).all()
    for pack_type, purchase_count, revenue in rows:
        revenue_by_pack[pack_type] = {"count": purchase_count, "revenue_cents": int(revenue)}
        total_revenue += int(revenue)

    for stats in revenue_by_pack.values():
        stats["percent"] = round(stats["revenue_cents"] / total_revenue * 100, 1) if total_revenue else 0.0

    return {
        "generated_at": now.isoformat(),
        "users": users,
        "cases": cases,
        "retention": retention,
        "revenue": {
            "total_cents": total_revenue,
            "avg_per_case_cents": round(total_revenue / cases["total"]) if cases["total"] else 0,
            "by_pack": revenue_by_pack,
        },
    }
