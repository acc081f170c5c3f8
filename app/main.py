# app/main.py

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.config import get_settings
from app.logging_config import configure_logging
from app.routers import admin_lifecycle_router, cron_router, webhooks_router
from app.services.lifecycle.errors import LifecycleInvariantError
from app.services.metrics_cache import MetricsCache

import logging

settings = get_settings()
configure_logging(json_format=settings.LOG_JSON, level=settings.LOG_LEVEL)

logger = logging.getLogger(__name__)

app = FastAPI(title="RentVault Lifecycle API")

# Per-app cache for aggregated admin metrics
app.state.metrics_cache = MetricsCache(ttl_seconds=settings.METRICS_CACHE_TTL_SECONDS)

app.include_router(webhooks_router)
app.include_router(cron_router)
app.include_router(admin_lifecycle_router)


@app.exception_handler(LifecycleInvariantError)
def lifecycle_invariant_handler(request: Request, exc: LifecycleInvariantError) -> JSONResponse:
    logger.error(f"Lifecycle invariant violated: {exc}", extra={"case_id": str(exc.case_id)})
    return JSONResponse(status_code=500, content={"detail": "Lifecycle invariant violated"})


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

@app.get("/health")
def health() -> dict:
    return {"status": "ok", "service": "rentvault-lifecycle-api", "environment": settings.ENVIRONMENT}
