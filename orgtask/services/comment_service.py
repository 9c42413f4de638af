"""
Task comment service
"""
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from orgtask.core.exceptions import Forbidden, NotFound
from orgtask.models.permission import PermissionCategory
from orgtask.models.task import Task, TaskComment
from orgtask.schemas.task import TaskCommentCreate, TaskCommentUpdate
from orgtask.services.audit_service import log_audit
from orgtask.services.authorization_service import require
from orgtask.services.task_service import get_task_or_404
from orgtask.utils.datetime_utils import resolve_now


def _get_comment(db: Session, task_id: int, comment_id: int) -> TaskComment:
    comment = db.query(TaskComment).filter(
        TaskComment.id == comment_id,
        TaskComment.task_id == task_id,
    ).first()
    if comment is None:
        raise NotFound("Comment", comment_id)
    return comment


def _require_comment_level(db: Session, actor_id: int, task: Task, min_level: int = 1) -> int:
    return require(db, actor_id, PermissionCategory.COMMENT, min_level, task.department_id)


def list_comments(db: Session, actor_id: int, task_id: int) -> List[TaskComment]:
    task = get_task_or_404(db, task_id)
    _require_comment_level(db, actor_id, task)
    return (
        db.query(TaskComment)
        .filter(TaskComment.task_id == task.id)
        .order_by(TaskComment.created_at.asc(), TaskComment.id.asc())
        .all()
    )


def add_comment(
    db: Session,
    actor_id: int,
    task_id: int,
    data: TaskCommentCreate,
    now: Optional[datetime] = None,
) -> TaskComment:
    """
    Comment on a task. At Comment level 1 the commenter must be the task's
    assignee, creator or authorizer.
    """
    task = get_task_or_404(db, task_id)
    level = _require_comment_level(db, actor_id, task)
    if level < 2 and actor_id not in (task.assignee_id, task.creator_id, task.authorizer_id):
        raise Forbidden(
            "Only the assignee, creator or authorizer can comment on this task",
            category=PermissionCategory.COMMENT.value,
            min_level=2,
            actual_level=level,
        )

    comment = TaskComment(
        task_id=task.id,
        commenter_id=actor_id,
        comment=data.comment,
        image_url=data.image_url,
        created_at=resolve_now(now),
    )
    db.add(comment)
    db.flush()
    log_audit(
        db=db,
        actor_id=actor_id,
        action="create_task_comment",
        entity_type="TaskComment",
        entity_id=comment.id,
        meta={"task_id": task.id},
    )
    db.commit()
    db.refresh(comment)
    return comment


def update_comment(
    db: Session,
    actor_id: int,
    task_id: int,
    comment_id: int,
    data: TaskCommentUpdate,
) -> TaskComment:
    """The owner may edit their comment; Comment level 2 may edit any."""
    task = get_task_or_404(db, task_id)
    level = _require_comment_level(db, actor_id, task)
    comment = _get_comment(db, task.id, comment_id)
    if comment.commenter_id != actor_id and level < 2:
        raise Forbidden(
            "Only the comment owner can edit it",
            category=PermissionCategory.COMMENT.value,
            min_level=2,
            actual_level=level,
        )

    changes = data.model_dump(exclude_unset=True)
    if changes.get("comment") is not None:
        comment.comment = changes["comment"]
    if "image_url" in changes:
        comment.image_url = changes["image_url"]
    log_audit(
        db=db,
        actor_id=actor_id,
        action="update_task_comment",
        entity_type="TaskComment",
        entity_id=comment.id,
        meta={"task_id": task.id, "updated_fields": changes},
    )
    db.commit()
    db.refresh(comment)
    return comment


def delete_comment(db: Session, actor_id: int, task_id: int, comment_id: int) -> None:
    """At Comment level 1 only the owner may delete; level 2 may delete any."""
    task = get_task_or_404(db, task_id)
    level = _require_comment_level(db, actor_id, task)
    comment = _get_comment(db, task.id, comment_id)
    if comment.commenter_id != actor_id and level < 2:
        raise Forbidden(
            "Only the comment owner can delete it",
            category=PermissionCategory.COMMENT.value,
            min_level=2,
            actual_level=level,
        )

    db.delete(comment)
    log_audit(
        db=db,
        actor_id=actor_id,
        action="delete_task_comment",
        entity_type="TaskComment",
        entity_id=comment_id,
        meta={"task_id": task.id},
    )
    db.commit()
