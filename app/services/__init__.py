# app/services/__init__.py
"""
Business logic services.
"""

from app.services.email_service import EmailService
from app.services.entitlements import Entitlements, get_case_entitlements, has_pack, resolve_entitlements
from app.services.metrics_cache import MetricsCache

__all__ = [
    "EmailService",
    "Entitlements",
    "resolve_entitlements",
    "get_case_entitlements",
    "has_pack",
    "MetricsCache",
]
