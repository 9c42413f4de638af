"""
Department service - business logic for the department tree
"""
import logging
from typing import List, Set

from sqlalchemy import func
from sqlalchemy.orm import Session

from orgtask.core.config import settings
from orgtask.core.exceptions import ConstraintViolation, NotFound
from orgtask.models.department import Department, DepartmentMember
from orgtask.models.permission import PermissionCategory
from orgtask.models.role import Role
from orgtask.models.task import Task
from orgtask.models.user import User
from orgtask.schemas.department import DepartmentCreate, DepartmentUpdate
from orgtask.services.audit_service import log_audit
from orgtask.services.authorization_service import accessible_department_ids, get_user, require
from orgtask.services.department_tree import DepartmentTree

logger = logging.getLogger(__name__)


def get_department_or_404(db: Session, department_id: int) -> Department:
    department = db.query(Department).filter(Department.id == department_id).first()
    if department is None:
        raise NotFound("Department", department_id)
    return department


def department_closure(db: Session, department_id: int) -> Set[int]:
    """The department plus all of its transitive sub-departments."""
    get_department_or_404(db, department_id)
    return DepartmentTree.load(db).closure(department_id)


def is_member(db: Session, department_id: int, user_id: int) -> bool:
    return db.query(DepartmentMember).filter(
        DepartmentMember.department_id == department_id,
        DepartmentMember.user_id == user_id,
    ).first() is not None


def _ensure_chairman(db: Session, user: User) -> None:
    role_name = db.query(Role.name).filter(Role.id == user.role_id).scalar()
    if role_name is None or role_name.lower() != settings.CHAIRMAN_ROLE_NAME.lower():
        raise ConstraintViolation(
            f"A top-level department must be managed by a '{settings.CHAIRMAN_ROLE_NAME}'",
            details={"manager_id": user.id, "manager_role": role_name},
        )


def _add_member_row(db: Session, department_id: int, user_id: int) -> None:
    if not is_member(db, department_id, user_id):
        db.add(DepartmentMember(department_id=department_id, user_id=user_id))


def list_accessible_departments(db: Session, actor_id: int) -> List[Department]:
    """
    Departments the actor can see: their own, plus sub-departments with broad scope.
    """
    require(db, actor_id, PermissionCategory.DEPARTMENT, 1)
    ids = accessible_department_ids(db, get_user(db, actor_id))
    if not ids:
        return []
    return db.query(Department).filter(Department.id.in_(ids)).order_by(Department.id).all()


def read_department(db: Session, actor_id: int, department_id: int) -> Department:
    department = get_department_or_404(db, department_id)
    require(db, actor_id, PermissionCategory.DEPARTMENT, 1, department_id)
    return department


def create_department(db: Session, actor_id: int, data: DepartmentCreate) -> Department:
    """
    Create a department under a parent in the actor's scope, or at the top level.

    Args:
        db: Database session
        actor_id: ID of the user creating the department
        data: Department creation data

    Returns:
        Created Department instance

    Raises:
        Forbidden: Without Department level 4, or parent outside scope
        NotFound: Unknown parent or manager
        ConstraintViolation: Top-level department whose manager is not a chairman
    """
    require(db, actor_id, PermissionCategory.DEPARTMENT, 4)
    manager = get_user(db, data.manager_id)

    if data.parent_id is not None:
        get_department_or_404(db, data.parent_id)
        require(db, actor_id, PermissionCategory.DEPARTMENT, 4, data.parent_id)
    else:
        _ensure_chairman(db, manager)

    department = Department(name=data.name, parent_id=data.parent_id, manager_id=manager.id)
    db.add(department)
    db.flush()
    _add_member_row(db, department.id, manager.id)

    log_audit(
        db=db,
        actor_id=actor_id,
        action="create_department",
        entity_type="Department",
        entity_id=department.id,
        meta={"name": department.name, "parent_id": department.parent_id, "manager_id": manager.id},
    )
    db.commit()
    db.refresh(department)
    logger.info("department created: id=%s parent_id=%s", department.id, department.parent_id)
    return department


def update_department(db: Session, actor_id: int, department_id: int, data: DepartmentUpdate) -> Department:
    """
    Update name, parent and/or manager.

    Every rule is checked against the current tree before anything is
    written; the new parent is cycle-checked synchronously.

    Raises:
        Forbidden: Without Department level 4, or target/new parent outside scope
        ConstraintViolation: Cycle, or top-level department without a chairman manager
    """
    department = get_department_or_404(db, department_id)
    require(db, actor_id, PermissionCategory.DEPARTMENT, 4, department_id)
    changes = data.model_dump(exclude_unset=True)

    new_parent_id = changes["parent_id"] if "parent_id" in changes else department.parent_id
    if "parent_id" in changes and new_parent_id is not None:
        get_department_or_404(db, new_parent_id)
        require(db, actor_id, PermissionCategory.DEPARTMENT, 4, new_parent_id)
        if DepartmentTree.load(db).would_create_cycle(department.id, new_parent_id):
            raise ConstraintViolation(
                f"Moving department {department.id} under {new_parent_id} would create a cycle",
                details={"department_id": department.id, "parent_id": new_parent_id},
            )

    manager_id = changes.get("manager_id") or department.manager_id
    manager = get_user(db, manager_id)
    if new_parent_id is None:
        _ensure_chairman(db, manager)

    if changes.get("name") is not None:
        department.name = changes["name"]
    department.parent_id = new_parent_id
    department.manager_id = manager.id
    _add_member_row(db, department.id, manager.id)

    log_audit(
        db=db,
        actor_id=actor_id,
        action="update_department",
        entity_type="Department",
        entity_id=department.id,
        meta={"updated_fields": changes},
    )
    db.commit()
    db.refresh(department)
    return department


def delete_department(db: Session, actor_id: int, department_id: int) -> None:
    """
    Delete a leaf department that no task references.

    Raises:
        ConstraintViolation: While sub-departments or tasks still exist
    """
    department = get_department_or_404(db, department_id)
    require(db, actor_id, PermissionCategory.DEPARTMENT, 4, department_id)

    descendants = DepartmentTree.load(db).descendants(department_id)
    if descendants:
        raise ConstraintViolation(
            f"Department {department_id} still has sub-departments",
            details={"descendant_count": len(descendants)},
        )
    task_count = db.query(func.count(Task.id)).filter(Task.department_id == department_id).scalar()
    if task_count:
        raise ConstraintViolation(
            f"Department {department_id} still has tasks",
            details={"task_count": task_count},
        )

    meta = {"name": department.name, "parent_id": department.parent_id}
    db.query(DepartmentMember).filter(DepartmentMember.department_id == department_id).delete(
        synchronize_session=False
    )
    db.delete(department)
    log_audit(
        db=db,
        actor_id=actor_id,
        action="delete_department",
        entity_type="Department",
        entity_id=department_id,
        meta=meta,
    )
    db.commit()


def add_member(db: Session, actor_id: int, department_id: int, user_id: int) -> Department:
    """Add a user to a department. Adding an existing member is a no-op."""
    department = get_department_or_404(db, department_id)
    require(db, actor_id, PermissionCategory.DEPARTMENT, 3, department_id)
    user = get_user(db, user_id)

    if is_member(db, department_id, user.id):
        return department

    db.add(DepartmentMember(department_id=department_id, user_id=user.id))
    log_audit(
        db=db,
        actor_id=actor_id,
        action="add_department_member",
        entity_type="DepartmentMember",
        entity_id=department_id,
        meta={"user_id": user.id},
    )
    db.commit()
    db.refresh(department)
    return department


def remove_member(db: Session, actor_id: int, department_id: int, user_id: int) -> Department:
    """
    Remove a user from a department.

    Raises:
        NotFound: The user is not a member
        ConstraintViolation: The user manages the department, or is the last
            member of a top-level department
    """
    department = get_department_or_404(db, department_id)
    require(db, actor_id, PermissionCategory.DEPARTMENT, 3, department_id)

    membership = db.query(DepartmentMember).filter(
        DepartmentMember.department_id == department_id,
        DepartmentMember.user_id == user_id,
    ).first()
    if membership is None:
        raise NotFound("Department member", user_id)
    if department.manager_id == user_id:
        raise ConstraintViolation("The department manager cannot be removed from the department")
    if department.parent_id is None:
        member_count = db.query(func.count(DepartmentMember.id)).filter(
            DepartmentMember.department_id == department_id
        ).scalar()
        if member_count <= 1:
            raise ConstraintViolation("A top-level department cannot lose its last member")

    db.delete(membership)
    log_audit(
        db=db,
        actor_id=actor_id,
        action="remove_department_member",
        entity_type="DepartmentMember",
        entity_id=department_id,
        meta={"user_id": user_id},
    )
    db.commit()
    db.refresh(department)
    return department
