"""
In-app notification and audit log endpoints
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from orgtask.core.deps import get_db, get_current_user
from orgtask.models.user import User
from orgtask.schemas.notification import AuditLogOut, MarkReadOut, NotificationOut, UnreadCountOut
from orgtask.services import notification_service
from orgtask.services.audit_service import list_audit_logs

router = APIRouter()
audit_router = APIRouter()


@router.get("", response_model=List[NotificationOut])
async def list_notifications_endpoint(
    days: Optional[int] = Query(None, ge=1, le=365, description="Trailing window in days"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Current user's notifications, newest first"""
    return notification_service.list_notifications(db, current_user.id, days=days, skip=skip, limit=limit)


@router.get("/unread-count", response_model=UnreadCountOut)
async def unread_count_endpoint(
    days: Optional[int] = Query(None, ge=1, le=365),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return UnreadCountOut(unread=notification_service.unread_count(db, current_user.id, days=days))


@router.post("/mark-all-read", response_model=MarkReadOut)
async def mark_all_read_endpoint(
    days: Optional[int] = Query(None, ge=1, le=365),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return MarkReadOut(updated=notification_service.mark_all_read(db, current_user.id, days=days))


@audit_router.get("", response_model=List[AuditLogOut])
async def list_audit_logs_endpoint(
    entity_type: Optional[str] = Query(None),
    entity_id: Optional[int] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Audit trail (AuditLog level 1)"""
    return list_audit_logs(
        db, current_user.id, entity_type=entity_type, entity_id=entity_id, skip=skip, limit=limit
    )
