"""
Scheduled sweeps, triggered once a day by an external scheduler.

Jobs:
    - due scan: notifies assignees of tasks due today or overdue
    - unread digest: one summary push per user with unread notifications
"""
import logging
from datetime import datetime, time, timedelta
from typing import Any, Dict, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from orgtask.core.config import settings
from orgtask.models.notification import Notification
from orgtask.models.task import Task, TaskStatus
from orgtask.models.user import User
from orgtask.services.notification_service import add_notification, deliver_notifications, task_url
from orgtask.services.push_service import PushSender
from orgtask.utils.datetime_utils import UTC, resolve_now

logger = logging.getLogger(__name__)

DUE_CATEGORY = "task_due"
OVERDUE_CATEGORY = "task_overdue"
DIGEST_URL = "/notifications"


def _already_notified_today(db: Session, task: Task, category: str, day_start: datetime) -> bool:
    return db.query(Notification.id).filter(
        Notification.task_id == task.id,
        Notification.user_id == task.assignee_id,
        Notification.category == category,
        Notification.read.is_(False),
        Notification.created_at >= day_start,
    ).first() is not None


def run_due_scan(
    db: Session,
    sender: Optional[PushSender] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Notify the assignee of every open/in-progress task whose finish date is
    today (due) or earlier (overdue). Safe to re-run on the same day.

    Returns:
        Summary counters for the run
    """
    now = resolve_now(now)
    today = now.date()
    day_start = datetime.combine(today, time.min, tzinfo=UTC)
    results = {"scanned": 0, "due": 0, "overdue": 0, "skipped": 0, "pushed": 0}

    tasks = (
        db.query(Task)
        .filter(
            Task.finish_date <= today,
            Task.status.in_([TaskStatus.OPEN, TaskStatus.INPROGRESS]),
            Task.assignee_id.isnot(None),
        )
        .order_by(Task.id)
        .all()
    )

    created = []
    for task in tasks:
        results["scanned"] += 1
        overdue = task.finish_date < today
        category = OVERDUE_CATEGORY if overdue else DUE_CATEGORY
        if _already_notified_today(db, task, category, day_start):
            results["skipped"] += 1
            continue

        if overdue:
            title = "Task overdue"
            message = f"'{task.title}' was due on {task.finish_date.isoformat()}"
            results["overdue"] += 1
        else:
            title = "Task due today"
            message = f"'{task.title}' is due today"
            results["due"] += 1
        created.append(add_notification(
            db,
            user_id=task.assignee_id,
            title=title,
            message=message,
            category=category,
            task_id=task.id,
            url=task_url(task),
            meta={"taskId": task.id, "finishDate": task.finish_date},
            now=now,
        ))

    db.commit()
    results["pushed"] = deliver_notifications(db, created, sender)
    logger.info("due scan finished: %s", results)
    return results


def run_unread_digest(
    db: Session,
    sender: Optional[PushSender] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Send one summary push to every user with unread notifications in the
    trailing window. Nothing is marked read and nothing is persisted.
    """
    now = resolve_now(now)
    window_start = now - timedelta(days=settings.UNREAD_DIGEST_WINDOW_DAYS)
    results = {"users": 0, "pushed": 0, "no_token": 0, "failed": 0}

    rows = (
        db.query(Notification.user_id, func.count(Notification.id))
        .filter(Notification.read.is_(False), Notification.created_at >= window_start)
        .group_by(Notification.user_id)
        .order_by(Notification.user_id)
        .all()
    )

    for user_id, unread in rows:
        results["users"] += 1
        user = db.query(User).filter(User.id == user_id).first()
        if user is None or not user.push_token:
            results["no_token"] += 1
            continue
        if sender is None:
            continue
        try:
            ok = sender.send(
                user.push_token,
                "Unread notifications",
                f"You have {unread} unread notification(s)",
                url=DIGEST_URL,
                data={"unread": unread},
            )
        except Exception:
            logger.exception("digest push raised: user_id=%s", user_id)
            ok = False
        if ok:
            results["pushed"] += 1
        else:
            results["failed"] += 1

    logger.info("unread digest finished: %s", results)
    return results
