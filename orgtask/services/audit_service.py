"""
Audit logging service
"""
import logging
from typing import Optional, Dict, Any, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from orgtask.models.audit_log import AuditLog
from orgtask.models.permission import PermissionCategory
from orgtask.services.authorization_service import require
from orgtask.utils.datetime_utils import now_utc
from orgtask.utils.json_serializer import sanitize_for_json

logger = logging.getLogger(__name__)


def log_audit(
    db: Session,
    actor_id: int,
    action: str,
    entity_type: str,
    entity_id: Optional[int] = None,
    meta: Optional[Dict[str, Any]] = None
) -> Optional[AuditLog]:
    """
    Record an audit entry inside the caller's transaction.

    The row is written under a SAVEPOINT so it commits together with the
    mutation that triggered it. The caller's pending changes are flushed
    first, outside the savepoint. A failure here is logged and swallowed: the
    savepoint is rolled back and the caller's transaction stays usable.

    Args:
        db: Database session
        actor_id: ID of the user performing the action
        action: Action tag (e.g. "create_task", "update_department")
        entity_type: Target type (e.g. "Task", "Department")
        entity_id: ID of the affected entity (optional)
        meta: Additional metadata as dictionary (optional)

    Returns:
        The AuditLog row, or None when it could not be written
    """
    # Pending caller changes must not ride inside the savepoint
    db.flush()
    try:
        with db.begin_nested():
            audit_log = AuditLog(
                actor_id=actor_id,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                meta_json=sanitize_for_json(meta) if meta is not None else None,
                created_at=now_utc(),
            )
            db.add(audit_log)
    except (SQLAlchemyError, TypeError, ValueError):
        logger.exception(
            "audit write failed: actor_id=%s action=%s entity_type=%s entity_id=%s",
            actor_id, action, entity_type, entity_id,
        )
        return None
    return audit_log


def list_audit_logs(
    db: Session,
    actor_id: int,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[AuditLog]:
    """List audit entries, newest first (AuditLog level 1)."""
    require(db, actor_id, PermissionCategory.AUDIT_LOG, 1)
    query = db.query(AuditLog)
    if entity_type is not None:
        query = query.filter(AuditLog.entity_type == entity_type)
    if entity_id is not None:
        query = query.filter(AuditLog.entity_id == entity_id)
    return query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).offset(skip).limit(limit).all()
