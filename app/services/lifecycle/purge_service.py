# app/services/lifecycle/purge_service.py
"""
Purge service for permanent case deletion.

Handles:
- Best-effort removal of every asset object from storage
- Deletion of the case row and its dependents (assets, purchases, deadlines)
- A deletion_audit row written in its own transaction afterwards

Storage failures are logged per object and never block the purge. Audit
failures are logged and never reverse it.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.logging_config import log_storage_operation
from app.models import DeletionAudit, RentalCase
from app.storage.base import DeleteObjectsResult, StorageProvider

logger = logging.getLogger(__name__)

REASON_RETENTION_EXPIRED = "retention_expired"


@dataclass
class CasePurgeResult:
    """Result of purging one case."""

    case_id: uuid.UUID
    objects_deleted: int = 0
    objects_failed: int = 0
    failed_paths: dict[str, str] = field(default_factory=dict)
    audit_written: bool = False


def _delete_storage_objects(storage: StorageProvider, case_id: uuid.UUID, paths: list[str]) -> DeleteObjectsResult:
    """Attempt every delete; an unexpected provider error marks the whole batch failed."""
    if not paths:
        return DeleteObjectsResult()

    try:
        with log_storage_operation("delete_objects", f"cases/{case_id}") as metrics:
            result = storage.delete_objects(paths)
            metrics["objects_deleted"] = len(result.deleted)
            metrics["objects_failed"] = len(result.failed)
    except Exception as e:
        return DeleteObjectsResult(failed={p: str(e) for p in paths})

    for path, error in result.failed.items():
        logger.warning(
            f"Storage object not removed during purge: {path} ({error})",
            extra={"event": "purge_object_failed", "case_id": str(case_id), "key": path},
        )
    return result


def write_deletion_audit(
    db: Session,
    case_id: uuid.UUID,
    reason: str,
    objects_deleted: int,
    objects_failed: int,
    initiated_by: str,
    now: datetime,
) -> bool:
    """Insert and commit one audit row. Returns False (logged) on failure."""
    try:
        db.add(
            DeletionAudit(
                case_id=case_id,
                reason=reason,
                objects_deleted=objects_deleted,
                objects_failed=objects_failed,
                initiated_by=initiated_by,
                created_at=now,
            )
        )
        db.commit()
        return True
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(
            f"Deletion audit write failed for case {case_id}: {e}",
            extra={"event": "purge_audit_failed", "case_id": str(case_id)},
        )
        return False


def purge_case(
    db: Session,
    case: RentalCase,
    storage: StorageProvider,
    now: datetime,
    reason: str = REASON_RETENTION_EXPIRED,
    initiated_by: str = "scheduler",
) -> CasePurgeResult:
    """
    Permanently delete a case, its assets' objects and its dependent rows.

    The row deletion is committed before the audit is written. A database
    error on the row deletion is rolled back and re-raised to the caller.
    """
    case_id = case.id
    paths = [asset.storage_path for asset in case.assets if asset.storage_path]

    storage_result = _delete_storage_objects(storage, case_id, paths)
    result = CasePurgeResult(
        case_id=case_id,
        objects_deleted=len(storage_result.deleted),
        objects_failed=len(storage_result.failed),
        failed_paths=dict(storage_result.failed),
    )

    try:
        db.delete(case)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info(
        f"Purged case {case_id} ({result.objects_deleted} objects removed, {result.objects_failed} failed)",
        extra={
            "event": "case_purged",
            "case_id": str(case_id),
            "objects_deleted": result.objects_deleted,
            "objects_failed": result.objects_failed,
        },
    )

    result.audit_written = write_deletion_audit(
        db,
        case_id=case_id,
        reason=reason,
        objects_deleted=result.objects_deleted,
        objects_failed=result.objects_failed,
        initiated_by=initiated_by,
        now=now,
    )
    return result
