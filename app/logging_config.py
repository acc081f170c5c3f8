"""
Structured JSON logging for lifecycle observability.

Provides single-line JSON logs with a run ID for correlating the log lines of
one cron invocation, plus context managers for scan phases and storage calls.
"""

import json
import logging
import sys
import time
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import datetime, UTC

# Context variables for run correlation
run_id_var: ContextVar[str | None] = ContextVar("run_id", default=None)
stage_var: ContextVar[str | None] = ContextVar("stage", default=None)

# Extra attributes copied from a LogRecord into the JSON payload
EXTRA_KEYS = (
    "event",
    "case_id",
    "deadline_id",
    "pack_type",
    "payment_ref",
    "template",
    "operation",
    "key",
    "duration_ms",
    "items_processed",
    "items_failed",
    "items_total",
    "objects_deleted",
    "objects_failed",
)


# -----------------------------------------------------------------------------
# JSON Formatter
# -----------------------------------------------------------------------------


class JSONFormatter(logging.Formatter):
    """
    Format log records as single-line JSON.

    Output format:
    {"timestamp": "...", "level": "INFO", "message": "...", "run_id": "...", ...}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(UTC).replace(tzinfo=None).isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        run_id = run_id_var.get()
        if run_id:
            log_data["run_id"] = run_id

        stage = getattr(record, "stage", None) or stage_var.get()
        if stage:
            log_data["stage"] = stage

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key in EXTRA_KEYS:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        return json.dumps(log_data, default=str)


def configure_logging(json_format: bool = True, level: str = "INFO") -> None:
    """
    Configure logging for production or local development.

    Args:
        json_format: If True, use JSON format. If False, use human-readable format.
        level: Log level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(getattr(logging, level.upper()))

    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))

    root_logger.addHandler(handler)

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)


# -----------------------------------------------------------------------------
# Context Managers
# -----------------------------------------------------------------------------


@contextmanager
def log_stage(stage: str, run_id: str | None = None):
    """
    Context manager for scan-phase logging.

    Logs phase start and end with duration.

    Usage:
        with log_stage("reminders", run_id=run_id):
            # ... phase logic ...
    """
    if run_id:
        run_id_var.set(run_id)
    stage_var.set(stage)

    start_time = time.time()
    logger = logging.getLogger("lifecycle")

    logger.info(f"Stage {stage} started", extra={"event": "stage_start", "stage": stage})

    try:
        yield
        duration_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"Stage {stage} completed",
            extra={
                "event": "stage_complete",
                "stage": stage,
                "duration_ms": duration_ms,
            },
        )
    except Exception as e:
        duration_ms = int((time.time() - start_time) * 1000)
        logger.error(
            f"Stage {stage} failed: {e}",
            extra={
                "event": "stage_failed",
                "stage": stage,
                "duration_ms": duration_ms,
            },
            exc_info=True,
        )
        raise
    finally:
        stage_var.set(None)


@contextmanager
def log_storage_operation(operation: str, key: str):
    """
    Context manager for storage call instrumentation.

    Usage:
        with log_storage_operation("delete_objects", case_prefix) as metrics:
            result = storage.delete_objects(paths)
            metrics["objects_deleted"] = len(result.deleted)
    """
    start_time = time.time()
    logger = logging.getLogger("lifecycle.storage")
    metrics: dict = {"objects_deleted": 0, "objects_failed": 0}

    try:
        yield metrics

        duration_ms = int((time.time() - start_time) * 1000)
        logger.debug(
            f"Storage {operation} completed: {key} ({duration_ms}ms)",
            extra={
                "event": f"storage_{operation}_complete",
                "operation": operation,
                "key": key,
                "duration_ms": duration_ms,
                "objects_deleted": metrics["objects_deleted"],
                "objects_failed": metrics["objects_failed"],
            },
        )
    except Exception as e:
        duration_ms = int((time.time() - start_time) * 1000)
        logger.error(
            f"Storage {operation} failed: {key} - {e}",
            extra={
                "event": f"storage_{operation}_failed",
                "operation": operation,
                "key": key,
                "duration_ms": duration_ms,
            },
        )
        raise


# -----------------------------------------------------------------------------
# Progress Tracker
# -----------------------------------------------------------------------------


@dataclass
class ProgressTracker:
    """
    Track progress for batch operations with periodic logging.

    Usage:
        tracker = ProgressTracker(total=len(cases), stage="expiry", log_every=50)
        for case in cases:
            ok = process(case)
            tracker.increment(ok)
        tracker.finish()
    """

    total: int
    stage: str
    log_every: int = 10

    processed: int = field(default=0, init=False)
    succeeded: int = field(default=0, init=False)
    failed: int = field(default=0, init=False)
    _start_time: float = field(default_factory=time.time, init=False)
    _logger: logging.Logger = field(init=False)

    def __post_init__(self):
        self._logger = logging.getLogger("lifecycle.progress")

    def increment(self, success: bool = True) -> None:
        """Increment progress counter."""
        self.processed += 1
        if success:
            self.succeeded += 1
        else:
            self.failed += 1

        if self.processed % self.log_every == 0 or self.processed == self.total:
            self._log_progress()

    def _log_progress(self) -> None:
        elapsed = time.time() - self._start_time
        self._logger.info(
            f"{self.stage}: {self.processed}/{self.total} "
            f"({self.succeeded} ok, {self.failed} failed)",
            extra={
                "event": "progress_update",
                "stage": self.stage,
                "items_processed": self.processed,
                "items_total": self.total,
                "items_failed": self.failed,
                "duration_ms": int(elapsed * 1000),
            },
        )

    def finish(self) -> dict:
        """Finalize progress tracking and return summary."""
        elapsed = time.time() - self._start_time

        self._logger.info(
            f"{self.stage}: Completed {self.processed}/{self.total} "
            f"({self.succeeded} ok, {self.failed} failed) in {elapsed:.1f}s",
            extra={
                "event": "progress_complete",
                "stage": self.stage,
                "items_processed": self.processed,
                "items_total": self.total,
                "items_failed": self.failed,
                "duration_ms": int(elapsed * 1000),
            },
        )

        return {
            "processed": self.processed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "duration_seconds": round(elapsed, 1),
        }
