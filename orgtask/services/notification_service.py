"""
Notification dispatcher

Rows are added to the caller's transaction; push delivery runs after the
caller has committed, one recipient at a time.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from orgtask.core.config import settings
from orgtask.models.department import DepartmentMember
from orgtask.models.notification import Notification
from orgtask.models.permission import PermissionCategory
from orgtask.models.task import Task, TaskStatus
from orgtask.models.user import User
from orgtask.services.permission_service import has_level
from orgtask.services.push_service import PushSender
from orgtask.utils.datetime_utils import resolve_now
from orgtask.utils.json_serializer import sanitize_for_json

logger = logging.getLogger(__name__)

TASK_CATEGORY = "task"

STATUS_MESSAGES = {
    TaskStatus.DONE: ("Task completed", "'{title}' is done and waiting for your approval"),
    TaskStatus.APPROVED: ("Task approved", "'{title}' has been approved"),
    TaskStatus.CANCELLED: ("Task cancelled", "'{title}' has been cancelled"),
}


def task_url(task: Task) -> str:
    return f"/departments/{task.department_id}/tasks/{task.id}"


def add_notification(
    db: Session,
    user_id: int,
    title: str,
    message: str,
    category: str,
    task_id: Optional[int] = None,
    url: Optional[str] = None,
    meta: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> Notification:
    notification = Notification(
        user_id=user_id,
        title=title,
        message=message,
        category=category,
        task_id=task_id,
        url=url,
        meta_json=sanitize_for_json(meta) if meta is not None else None,
        read=False,
        created_at=resolve_now(now),
    )
    db.add(notification)
    return notification


def assignment_recipients(db: Session, task: Task) -> List[int]:
    """The assignee, or every department member able to assign (Task level 3)."""
    if task.assignee_id is not None:
        return [task.assignee_id]
    members = (
        db.query(User)
        .join(DepartmentMember, DepartmentMember.user_id == User.id)
        .filter(DepartmentMember.department_id == task.department_id)
        .order_by(User.id)
        .all()
    )
    return [m.id for m in members if has_level(db, m.role_id, PermissionCategory.TASK, 3)]


def notify_assignment(db: Session, task: Task, now: Optional[datetime] = None) -> List[Notification]:
    if task.assignee_id is not None:
        title, message = "New task assigned", f"'{task.title}' has been assigned to you"
    else:
        title, message = "Task needs an assignee", f"'{task.title}' is waiting to be assigned"
    return [
        add_notification(
            db,
            user_id=user_id,
            title=title,
            message=message,
            category=TASK_CATEGORY,
            task_id=task.id,
            url=task_url(task),
            meta={"taskId": task.id},
            now=now,
        )
        for user_id in assignment_recipients(db, task)
    ]


def status_recipient(task: Task) -> Optional[int]:
    if task.status == TaskStatus.DONE:
        return task.authorizer_id
    if task.status in (TaskStatus.APPROVED, TaskStatus.CANCELLED):
        return task.creator_id
    return None


def notify_status_change(
    db: Session,
    task: Task,
    previous_status: TaskStatus,
    now: Optional[datetime] = None,
) -> List[Notification]:
    """
    Notify on a status change: done -> authorizer, approved/cancelled -> creator.

    Nothing is produced when the stored status did not change or the new
    status has no recipient.
    """
    if task.status == previous_status:
        return []
    recipient = status_recipient(task)
    if recipient is None:
        return []
    title, template = STATUS_MESSAGES[task.status]
    return [
        add_notification(
            db,
            user_id=recipient,
            title=title,
            message=template.format(title=task.title),
            category=TASK_CATEGORY,
            task_id=task.id,
            url=task_url(task),
            meta={"taskId": task.id, "from": previous_status, "to": task.status},
            now=now,
        )
    ]


def deliver_notifications(
    db: Session,
    notifications: Iterable[Notification],
    sender: Optional[PushSender],
) -> int:
    """
    Push already-committed notifications. Each recipient is isolated: a
    failure is logged and the remaining recipients are still tried.

    Returns:
        Number of pushes accepted by the sender (queued, for a deferred sender)
    """
    if sender is None:
        return 0
    delivered = 0
    for notification in notifications:
        user = db.query(User).filter(User.id == notification.user_id).first()
        if user is None or not user.push_token:
            logger.info("push skipped, no device token: user_id=%s notification_id=%s",
                        notification.user_id, notification.id)
            continue
        try:
            ok = sender.send(
                user.push_token,
                notification.title,
                notification.message,
                url=notification.url,
                data=notification.meta_json,
            )
        except Exception:
            logger.exception("push delivery raised: user_id=%s notification_id=%s",
                             notification.user_id, notification.id)
            continue
        if ok:
            delivered += 1
        else:
            logger.warning("push not accepted: user_id=%s notification_id=%s",
                           notification.user_id, notification.id)
    return delivered


def _window_start(days: Optional[int], now: Optional[datetime]) -> datetime:
    return resolve_now(now) - timedelta(days=days or settings.UNREAD_DIGEST_WINDOW_DAYS)


def list_notifications(
    db: Session,
    user_id: int,
    days: Optional[int] = None,
    skip: int = 0,
    limit: int = 50,
    now: Optional[datetime] = None,
) -> List[Notification]:
    """Notifications of the trailing window, newest first."""
    return (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.created_at >= _window_start(days, now))
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def unread_count(db: Session, user_id: int, days: Optional[int] = None, now: Optional[datetime] = None) -> int:
    return (
        db.query(Notification)
        .filter(
            Notification.user_id == user_id,
            Notification.read.is_(False),
            Notification.created_at >= _window_start(days, now),
        )
        .count()
    )


def mark_all_read(db: Session, user_id: int, days: Optional[int] = None, now: Optional[datetime] = None) -> int:
    updated = (
        db.query(Notification)
        .filter(
            Notification.user_id == user_id,
            Notification.read.is_(False),
            Notification.created_at >= _window_start(days, now),
        )
        .update({Notification.read: True}, synchronize_session=False)
    )
    db.commit()
    logger.info("notifications marked read: user_id=%s count=%s", user_id, updated)
    return updated
