# app/dependencies.py
"""
FastAPI dependencies for lifecycle collaborators.

Routes never reach for process globals directly; tests override these.
"""

from datetime import datetime

from fastapi import Request

from app.services.email_service import EmailService, get_email_service
from app.services.metrics_cache import MetricsCache
from app.storage import StorageProvider, get_storage_provider
from app.utils.dates import utcnow


def get_mailer() -> EmailService:
    return get_email_service()


def get_storage() -> StorageProvider:
    return get_storage_provider()


def get_metrics_cache(request: Request) -> MetricsCache:
    return request.app.state.metrics_cache


def get_now() -> datetime:
    """Evaluation time for lifecycle decisions."""
    return utcnow()


async def get_raw_body(request: Request) -> bytes:
    """Raw request bytes, as signed by the payment processor."""
    return await request.body()
