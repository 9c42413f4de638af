"""
User service - user administration inside the department tree
"""
import logging
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from orgtask.core.config import settings
from orgtask.core.exceptions import ConstraintViolation, Forbidden, NotFound
from orgtask.db.init_db import seed_role
from orgtask.models.audit_log import AuditLog
from orgtask.models.department import Department, DepartmentMember
from orgtask.models.notification import Notification
from orgtask.models.permission import PermissionCategory
from orgtask.models.role import Role
from orgtask.models.task import Task, TaskComment, TaskHistory
from orgtask.models.user import User
from orgtask.schemas.user import UserCreate, UserUpdate
from orgtask.services.audit_service import log_audit
from orgtask.services.authorization_service import get_user, require
from orgtask.services.department_service import get_department_or_404, is_member
from orgtask.services.permission_service import resolve_level
from orgtask.services.task_service import task_counters
from orgtask.utils.datetime_utils import resolve_today

logger = logging.getLogger(__name__)

# Role level a sub-department manager must keep in the User category
MANAGER_USER_LEVEL = 3


def _role_name(db: Session, role_id: Optional[int]) -> Optional[str]:
    if role_id is None:
        return None
    return db.query(Role.name).filter(Role.id == role_id).scalar()


def user_summary(db: Session, user: User, full: bool = True) -> Dict[str, Any]:
    return {
        "id": user.id,
        "name": user.name,
        "mail": user.mail,
        "role_id": user.role_id,
        "role": _role_name(db, user.role_id),
        "created_at": user.created_at if full else None,
    }


def _ensure_unique_mail(db: Session, mail: str, exclude_id: Optional[int] = None) -> None:
    query = db.query(User).filter(func.lower(User.mail) == func.lower(mail))
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    if query.first():
        raise ConstraintViolation(f"User with mail '{mail}' already exists", details={"mail": mail})


def _ensure_member(db: Session, department_id: int, user_id: int) -> None:
    if not is_member(db, department_id, user_id):
        raise NotFound("Department member", user_id)


def default_role(db: Session) -> Role:
    """The role given to users created without one; seeded on first use."""
    return seed_role(db, settings.DEFAULT_ROLE_NAME, {})


def create_user_in_department(db: Session, actor_id: int, department_id: int, data: UserCreate) -> User:
    """
    Create a user and make them a member of the department.

    Raises:
        Forbidden: Without User level 4, or department outside scope
        NotFound: Unknown department or role
        ConstraintViolation: Mail already taken
    """
    get_department_or_404(db, department_id)
    require(db, actor_id, PermissionCategory.USER, 4, department_id)
    _ensure_unique_mail(db, data.mail)

    if data.role_id is not None:
        role = db.query(Role).filter(Role.id == data.role_id).first()
        if role is None:
            raise NotFound("Role", data.role_id)
    else:
        role = default_role(db)

    user = User(name=data.name, mail=data.mail, role_id=role.id)
    db.add(user)
    db.flush()
    db.add(DepartmentMember(department_id=department_id, user_id=user.id))

    log_audit(
        db=db,
        actor_id=actor_id,
        action="create_user",
        entity_type="User",
        entity_id=user.id,
        meta={"department_id": department_id, "role_id": role.id, "mail": user.mail},
    )
    db.commit()
    db.refresh(user)
    logger.info("user created: user_id=%s department_id=%s role_id=%s", user.id, department_id, role.id)
    return user


def _check_role_change(db: Session, actor_id: int, target: User, new_role: Role) -> None:
    """Managers keep a role that can still run their departments."""
    if target.id == actor_id:
        raise Forbidden("You cannot change your own role")

    managed = db.query(Department).filter(Department.manager_id == target.id).all()
    if any(d.parent_id is None for d in managed):
        if new_role.name.lower() != settings.CHAIRMAN_ROLE_NAME.lower():
            raise ConstraintViolation(
                f"User {target.id} manages a top-level department and must keep the "
                f"'{settings.CHAIRMAN_ROLE_NAME}' role",
                details={"user_id": target.id, "role_id": new_role.id},
            )
    if any(d.parent_id is not None for d in managed):
        level = resolve_level(db, new_role.id, PermissionCategory.USER)
        if level < MANAGER_USER_LEVEL:
            raise ConstraintViolation(
                f"User {target.id} manages a department; the new role needs "
                f"{PermissionCategory.USER.value} level {MANAGER_USER_LEVEL}",
                details={"user_id": target.id, "role_id": new_role.id, "role_level": level},
            )


def update_user(db: Session, actor_id: int, department_id: int, user_id: int, data: UserUpdate) -> User:
    """
    Update name, mail and/or role of a department member.

    Raises:
        Forbidden: Without User level 3, department outside scope, or a
            caller changing their own role
        NotFound: Unknown department, user or role; user not a member
        ConstraintViolation: Mail taken, or the new role cannot manage the
            departments the user runs
    """
    get_department_or_404(db, department_id)
    require(db, actor_id, PermissionCategory.USER, 3, department_id)
    target = get_user(db, user_id)
    _ensure_member(db, department_id, target.id)
    changes = data.model_dump(exclude_unset=True)

    if changes.get("role_id") is not None and changes["role_id"] != target.role_id:
        new_role = db.query(Role).filter(Role.id == changes["role_id"]).first()
        if new_role is None:
            raise NotFound("Role", changes["role_id"])
        _check_role_change(db, actor_id, target, new_role)
        target.role_id = new_role.id

    if changes.get("mail") is not None:
        _ensure_unique_mail(db, changes["mail"], exclude_id=target.id)
        target.mail = changes["mail"]
    if changes.get("name") is not None:
        target.name = changes["name"]

    log_audit(
        db=db,
        actor_id=actor_id,
        action="update_user",
        entity_type="User",
        entity_id=target.id,
        meta={"department_id": department_id, "updated_fields": changes},
    )
    db.commit()
    db.refresh(target)
    return target


def _activity_references(db: Session, user_id: int) -> Dict[str, int]:
    counts = {
        "tasks": db.query(func.count(Task.id)).filter(or_(
            Task.creator_id == user_id,
            Task.authorizer_id == user_id,
            Task.assignee_id == user_id,
        )).scalar(),
        "comments": db.query(func.count(TaskComment.id)).filter(TaskComment.commenter_id == user_id).scalar(),
        "history": db.query(func.count(TaskHistory.id)).filter(TaskHistory.actor_id == user_id).scalar(),
        "audit_logs": db.query(func.count(AuditLog.id)).filter(AuditLog.actor_id == user_id).scalar(),
    }
    return {key: value for key, value in counts.items() if value}


def delete_user(db: Session, actor_id: int, department_id: int, user_id: int) -> None:
    """
    Delete a department member who has no recorded activity.

    Raises:
        Forbidden: Without User level 4, department outside scope, or
            deleting oneself
        NotFound: Unknown department or user; user not a member
        ConstraintViolation: The user manages a department, or tasks,
            comments, history or audit entries still point at them
    """
    get_department_or_404(db, department_id)
    require(db, actor_id, PermissionCategory.USER, 4, department_id)
    if user_id == actor_id:
        raise Forbidden("You cannot delete your own account")
    target = get_user(db, user_id)
    _ensure_member(db, department_id, target.id)

    managed = db.query(Department.id).filter(Department.manager_id == target.id).all()
    if managed:
        raise ConstraintViolation(
            f"User {target.id} manages a department; reassign it first",
            details={"department_ids": [dept_id for (dept_id,) in managed]},
        )
    references = _activity_references(db, target.id)
    if references:
        raise ConstraintViolation(
            f"User {target.id} has recorded activity; remove them from departments instead",
            details=references,
        )

    meta = {"department_id": department_id, "name": target.name, "mail": target.mail}
    db.query(DepartmentMember).filter(DepartmentMember.user_id == target.id).delete(synchronize_session=False)
    db.query(Notification).filter(Notification.user_id == target.id).delete(synchronize_session=False)
    db.delete(target)
    log_audit(
        db=db,
        actor_id=actor_id,
        action="delete_user",
        entity_type="User",
        entity_id=user_id,
        meta=meta,
    )
    db.commit()
    logger.info("user deleted: user_id=%s actor_id=%s", user_id, actor_id)


def list_department_users(db: Session, actor_id: int, department_id: int) -> List[Dict[str, Any]]:
    """Members of a department; level 1 callers get the short form."""
    department = get_department_or_404(db, department_id)
    level = require(db, actor_id, PermissionCategory.USER, 1, department_id)
    members = sorted(department.members, key=lambda u: u.id)
    return [user_summary(db, user, full=level >= 2) for user in members]


def read_department_user(db: Session, actor_id: int, department_id: int, user_id: int) -> Dict[str, Any]:
    get_department_or_404(db, department_id)
    level = require(db, actor_id, PermissionCategory.DEPARTMENT, 1, department_id)
    _ensure_member(db, department_id, user_id)
    return user_summary(db, get_user(db, user_id), full=level >= 2)


def list_users_outside_department(db: Session, actor_id: int, department_id: int) -> List[Dict[str, Any]]:
    """Every user who could still be added to the department."""
    get_department_or_404(db, department_id)
    require(db, actor_id, PermissionCategory.DEPARTMENT, 4)
    member_ids = select(DepartmentMember.user_id).where(DepartmentMember.department_id == department_id)
    users = db.query(User).filter(User.id.notin_(member_ids)).order_by(User.id).all()
    return [user_summary(db, user) for user in users]


def list_visible_users(db: Session, actor_id: int) -> List[Dict[str, Any]]:
    """
    Level 4 sees every user; below that, the members of the departments the
    caller manages.
    """
    level = require(db, actor_id, PermissionCategory.DEPARTMENT, 1)
    if level >= 4:
        users = db.query(User).order_by(User.id).all()
    else:
        managed_ids = select(Department.id).where(Department.manager_id == actor_id)
        users = (
            db.query(User)
            .join(DepartmentMember, DepartmentMember.user_id == User.id)
            .filter(DepartmentMember.department_id.in_(managed_ids))
            .distinct()
            .order_by(User.id)
            .all()
        )
    return [user_summary(db, user) for user in users]


def user_task_stats(db: Session, actor_id: int, user_id: int, today: Optional[date] = None) -> Dict[str, Any]:
    """Counters over the tasks assigned to one user."""
    get_user(db, user_id)
    require(db, actor_id, PermissionCategory.TASK, 1 if user_id == actor_id else 3)
    tasks = db.query(Task).filter(Task.assignee_id == user_id).all()
    return {"user_id": user_id, "stats": task_counters(tasks, resolve_today(today))}


def register_push_token(db: Session, actor_id: int, push_token: str) -> User:
    """Store the caller's device token; later pushes go to this device."""
    if not push_token or not push_token.strip():
        raise ConstraintViolation("Push token cannot be empty")
    user = get_user(db, actor_id)
    user.push_token = push_token.strip()
    db.commit()
    db.refresh(user)
    logger.info("push token registered: user_id=%s", user.id)
    return user
