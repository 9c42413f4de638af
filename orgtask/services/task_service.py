"""
Task service - task lifecycle, assignment and statistics
"""
import logging
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from orgtask.core.exceptions import ConstraintViolation, NotFound
from orgtask.models.department import Department
from orgtask.models.permission import PermissionCategory
from orgtask.models.task import RequesterRank, Task, TaskHistory, TaskStatus
from orgtask.schemas.task import TaskCreate, TaskUpdate
from orgtask.services.audit_service import log_audit
from orgtask.services.authorization_service import get_user, require
from orgtask.services.department_service import get_department_or_404, is_member
from orgtask.services.notification_service import deliver_notifications, notify_assignment, notify_status_change
from orgtask.services.push_service import PushSender
from orgtask.services.task_state_machine import check_relationship, check_transition
from orgtask.utils.datetime_utils import resolve_now, resolve_today
from orgtask.utils.json_serializer import sanitize_for_json

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "title",
    "description",
    "start_date",
    "finish_date",
    "requester_name",
    "requester_mail",
    "requester_phone",
    "requester_rank",
)

SNAPSHOT_FIELDS = (
    "id",
    "creator_id",
    "authorizer_id",
    "assignee_id",
    "department_id",
    "status",
) + EDITABLE_FIELDS + ("created_at", "updated_at")


def task_snapshot(task: Task) -> Dict[str, Any]:
    return sanitize_for_json({field: getattr(task, field) for field in SNAPSHOT_FIELDS})


def get_task_or_404(db: Session, task_id: int) -> Task:
    task = db.query(Task).filter(Task.id == task_id).first()
    if task is None:
        raise NotFound("Task", task_id)
    return task


def _is_related(task: Task, user_id: int) -> bool:
    return user_id in (task.creator_id, task.authorizer_id, task.assignee_id)


def _record(db: Session, task: Task, actor_id: int, action: str, now: datetime,
            meta: Optional[Dict[str, Any]] = None) -> None:
    """Append the history snapshot and the audit entry for one task mutation."""
    db.add(TaskHistory(
        task_id=task.id,
        actor_id=actor_id,
        action=action,
        snapshot=task_snapshot(task),
        created_at=now,
    ))
    log_audit(
        db=db,
        actor_id=actor_id,
        action=f"{action}_task",
        entity_type="Task",
        entity_id=task.id,
        meta=meta,
    )


def _check_assignment(db: Session, actor_id: int, department_id: int, assignee_id: Optional[int]) -> Department:
    """Department must exist and be in the actor's scope; assignee must be a member."""
    department = get_department_or_404(db, department_id)
    require(db, actor_id, PermissionCategory.TASK, 3, department_id)
    if assignee_id is not None:
        get_user(db, assignee_id)
        if not is_member(db, department_id, assignee_id):
            raise ConstraintViolation(
                f"User {assignee_id} is not a member of department {department_id}",
                details={"assignee_id": assignee_id, "department_id": department_id},
            )
    return department


def create_task(
    db: Session,
    actor_id: int,
    task_data: TaskCreate,
    sender: Optional[PushSender] = None,
    now: Optional[datetime] = None,
) -> Task:
    """
    Create a task in a department within the actor's scope.

    The actor becomes both creator and authorizer; the task starts open.

    Args:
        db: Database session
        actor_id: ID of the creating user
        task_data: Task creation data
        sender: Push sender used after commit (optional)
        now: Clock override

    Returns:
        Created Task instance

    Raises:
        Forbidden: Without Task level 3 or department outside scope
        NotFound: Unknown department or assignee
        ConstraintViolation: Assignee is not a member of the department
    """
    now = resolve_now(now)
    require(db, actor_id, PermissionCategory.TASK, 3)
    _check_assignment(db, actor_id, task_data.department_id, task_data.assignee_id)

    task = Task(
        creator_id=actor_id,
        authorizer_id=actor_id,
        assignee_id=task_data.assignee_id,
        department_id=task_data.department_id,
        status=TaskStatus.OPEN,
        created_at=now,
        updated_at=now,
        **{field: getattr(task_data, field) for field in EDITABLE_FIELDS},
    )
    db.add(task)
    db.flush()

    _record(db, task, actor_id, "create", now, meta={
        "department_id": task.department_id,
        "assignee_id": task.assignee_id,
        "title": task.title,
    })
    notifications = notify_assignment(db, task, now=now)
    db.commit()
    db.refresh(task)
    logger.info("task created: task_id=%s department_id=%s assignee_id=%s",
                task.id, task.department_id, task.assignee_id)

    deliver_notifications(db, notifications, sender)
    return task


def update_task(
    db: Session,
    actor_id: int,
    task_id: int,
    task_data: TaskUpdate,
    sender: Optional[PushSender] = None,
    now: Optional[datetime] = None,
) -> Task:
    """
    Update assignment and/or descriptive fields of a task.

    When department_id or assignee_id is sent, the new department is
    re-authorized, the assignee re-validated, and a caller already related
    to the task (creator, authorizer or assignee) becomes its authorizer.
    Assignment notifications go out only if the assignment value changed.

    Raises:
        Forbidden: Without Task level 3 on the current or the new department
        ConstraintViolation: Assignee is not a member of the department
    """
    now = resolve_now(now)
    task = get_task_or_404(db, task_id)
    require(db, actor_id, PermissionCategory.TASK, 3, task.department_id)
    changes = task_data.model_dump(exclude_unset=True)

    if "department_id" in changes and changes["department_id"] is None:
        raise ConstraintViolation("A task must belong to a department", details={"department_id": None})

    assignment_sent = "department_id" in changes or "assignee_id" in changes
    new_department_id = changes.get("department_id", task.department_id)
    new_assignee_id = changes["assignee_id"] if "assignee_id" in changes else task.assignee_id
    if assignment_sent:
        _check_assignment(db, actor_id, new_department_id, new_assignee_id)

    if changes.get("title", task.title) is None:
        raise ConstraintViolation("Task title cannot be empty")
    start_date = changes.get("start_date", task.start_date)
    finish_date = changes.get("finish_date", task.finish_date)
    if start_date and finish_date and finish_date < start_date:
        raise ConstraintViolation("finish_date cannot be before start_date")

    assignment_changed = (
        new_department_id != task.department_id or new_assignee_id != task.assignee_id
    )
    if assignment_sent:
        if _is_related(task, actor_id):
            task.authorizer_id = actor_id
        task.department_id = new_department_id
        task.assignee_id = new_assignee_id

    for field in EDITABLE_FIELDS:
        if field in changes:
            setattr(task, field, changes[field])
    task.updated_at = now

    _record(db, task, actor_id, "update", now, meta={"updated_fields": changes})
    notifications = notify_assignment(db, task, now=now) if assignment_changed else []
    db.commit()
    db.refresh(task)

    deliver_notifications(db, notifications, sender)
    return task


def set_task_status(
    db: Session,
    actor_id: int,
    task_id: int,
    new_status: TaskStatus,
    sender: Optional[PushSender] = None,
    now: Optional[datetime] = None,
) -> Task:
    """
    Move a task to a new status.

    Args:
        db: Database session
        actor_id: ID of the acting user
        task_id: Task to change
        new_status: Requested status
        sender: Push sender used after commit (optional)
        now: Clock override (the start-date guard compares against now's date)

    Returns:
        The task. Re-sending the current status is a no-op and returns the
        task untouched.

    Raises:
        Forbidden: Without Task level 2 or department outside scope
        InvalidTransition: Wrong relationship for the level, transition not in
            the level's table, or the task has not started yet
    """
    now = resolve_now(now)
    new_status = TaskStatus(new_status)
    task = get_task_or_404(db, task_id)
    level = require(db, actor_id, PermissionCategory.TASK, 2, task.department_id)
    previous_status = task.status

    check_relationship(level, actor_id, task.assignee_id, task.authorizer_id, previous_status, new_status)
    if new_status == previous_status:
        return task
    check_transition(level, previous_status, new_status, task.start_date, now.date())

    task.status = new_status
    task.updated_at = now
    logger.info(
        "task status transition: task_id=%s before=%s after=%s actor_id=%s",
        task.id, previous_status.value, new_status.value, actor_id,
    )

    _record(db, task, actor_id, "update", now, meta={"from": previous_status, "to": new_status})
    notifications = notify_status_change(db, task, previous_status, now=now)
    db.commit()
    db.refresh(task)

    deliver_notifications(db, notifications, sender)
    return task


def delete_task(db: Session, actor_id: int, task_id: int, now: Optional[datetime] = None) -> None:
    """Delete a task (Task level 4). A final history snapshot is kept."""
    now = resolve_now(now)
    task = get_task_or_404(db, task_id)
    require(db, actor_id, PermissionCategory.TASK, 4, task.department_id)

    _record(db, task, actor_id, "delete", now, meta={"title": task.title, "status": task.status})
    db.delete(task)
    db.commit()
    logger.info("task deleted: task_id=%s actor_id=%s", task_id, actor_id)


def read_task(db: Session, actor_id: int, task_id: int) -> Task:
    """Level 1 sees only tasks they are related to; level 2+ any task in scope."""
    task = get_task_or_404(db, task_id)
    level = require(db, actor_id, PermissionCategory.TASK, 1, task.department_id)
    if level < 2 and not _is_related(task, actor_id):
        raise NotFound("Task", task_id)
    return task


def list_department_tasks(
    db: Session,
    actor_id: int,
    department_id: int,
    status: Optional[TaskStatus] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[Task]:
    get_department_or_404(db, department_id)
    level = require(db, actor_id, PermissionCategory.TASK, 1, department_id)
    query = db.query(Task).filter(Task.department_id == department_id)
    if level < 2:
        query = query.filter(Task.assignee_id == actor_id)
    if status is not None:
        query = query.filter(Task.status == status)
    return query.order_by(Task.id.desc()).offset(skip).limit(limit).all()


def get_task_history(db: Session, actor_id: int, task_id: int) -> List[TaskHistory]:
    """Snapshots of a task, oldest first. Deleted tasks need Task level 4."""
    task = db.query(Task).filter(Task.id == task_id).first()
    if task is not None:
        require(db, actor_id, PermissionCategory.TASK, 2, task.department_id)
    else:
        require(db, actor_id, PermissionCategory.TASK, 4)
    history = (
        db.query(TaskHistory)
        .filter(TaskHistory.task_id == task_id)
        .order_by(TaskHistory.id.asc())
        .all()
    )
    if not history:
        raise NotFound("Task", task_id)
    return history


def task_counters(tasks: Iterable[Task], today: date) -> Dict[str, int]:
    """Per-status counts plus late (finish < today) and not_started (start > today)."""
    counters = {s.value: 0 for s in TaskStatus}
    counters["late"] = 0
    counters["not_started"] = 0
    for task in tasks:
        counters[task.status.value] += 1
        if task.finish_date is not None and task.finish_date < today:
            counters["late"] += 1
        if task.start_date is not None and task.start_date > today:
            counters["not_started"] += 1
    return counters


def department_task_stats(
    db: Session,
    actor_id: int,
    department_id: int,
    today: Optional[date] = None,
) -> Dict[str, Optional[int]]:
    """
    Task counters for one department.

    Level 1 counts only the caller's own assigned tasks; not_assigned is
    reported from level 3 up.
    """
    today = resolve_today(today)
    get_department_or_404(db, department_id)
    level = require(db, actor_id, PermissionCategory.TASK, 1, department_id)

    query = db.query(Task).filter(Task.department_id == department_id)
    if level < 2:
        query = query.filter(Task.assignee_id == actor_id)
    tasks = query.all()

    stats: Dict[str, Optional[int]] = dict(task_counters(tasks, today))
    stats["not_assigned"] = sum(1 for t in tasks if t.assignee_id is None) if level >= 3 else None
    return stats


def department_detailed_stats(
    db: Session,
    actor_id: int,
    department_id: int,
    today: Optional[date] = None,
) -> Dict[str, Any]:
    """
    Dashboard figures for one department (Department level 3).

    Task counters include one requester_<rank> count per requester rank and
    the caller's own created/authorized/assigned counts. User counters cover
    the department's members and its direct sub-departments.
    """
    today = resolve_today(today)
    department = get_department_or_404(db, department_id)
    require(db, actor_id, PermissionCategory.DEPARTMENT, 3, department_id)
    tasks = db.query(Task).filter(Task.department_id == department_id).all()

    task_stats = {"total": len(tasks), **task_counters(tasks, today)}
    for rank in RequesterRank:
        task_stats[f"requester_{rank.value}"] = sum(1 for t in tasks if t.requester_rank == rank)
    task_stats["created_by_me"] = sum(1 for t in tasks if t.creator_id == actor_id)
    task_stats["authorized_by_me"] = sum(1 for t in tasks if t.authorizer_id == actor_id)
    task_stats["assigned_to_me"] = sum(1 for t in tasks if t.assignee_id == actor_id)

    member_ids = {user.id for user in department.members}
    with_tasks = {t.assignee_id for t in tasks if t.assignee_id in member_ids}
    child_count = db.query(func.count(Department.id)).filter(Department.parent_id == department_id).scalar()
    return {
        "department_id": department_id,
        "task_stats": task_stats,
        "user_stats": {
            "total_users": len(member_ids),
            "users_with_tasks": len(with_tasks),
            "users_without_tasks": len(member_ids) - len(with_tasks),
            "child_departments": child_count,
        },
    }
