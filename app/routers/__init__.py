# app/routers/__init__.py
"""
API routers for v1 endpoints.
"""

from app.routers.admin_lifecycle import router as admin_lifecycle_router
from app.routers.cron import router as cron_router
from app.routers.webhooks import router as webhooks_router

__all__ = [
    "admin_lifecycle_router",
    "cron_router",
    "webhooks_router",
]
