"""
Role service - role and permission catalog administration
"""
import logging
from typing import List

from sqlalchemy import func
from sqlalchemy.orm import Session

from orgtask.core.exceptions import ConstraintViolation, NotFound
from orgtask.models.permission import Permission, PermissionCategory, RolePermission
from orgtask.models.role import Role
from orgtask.models.user import User
from orgtask.schemas.role import PermissionCreate, PermissionUpdate, RoleCreate, RoleUpdate
from orgtask.services.audit_service import log_audit
from orgtask.services.authorization_service import require
from orgtask.services.permission_service import get_catalog_entry

logger = logging.getLogger(__name__)


def get_role(db: Session, role_id: int) -> Role:
    role = db.query(Role).filter(Role.id == role_id).first()
    if role is None:
        raise NotFound("Role", role_id)
    return role


def get_permission(db: Session, permission_id: int) -> Permission:
    permission = db.query(Permission).filter(Permission.id == permission_id).first()
    if permission is None:
        raise NotFound("Permission", permission_id)
    return permission


def _ensure_unique_role_name(db: Session, name: str, exclude_id: int = None) -> None:
    query = db.query(Role).filter(func.lower(Role.name) == func.lower(name))
    if exclude_id is not None:
        query = query.filter(Role.id != exclude_id)
    if query.first():
        raise ConstraintViolation(f"Role with name '{name}' already exists")


def create_role(db: Session, actor_id: int, role_data: RoleCreate) -> Role:
    """
    Create a role holding the level-0 entry of every category.

    Args:
        db: Database session
        actor_id: ID of the user creating the role
        role_data: Role creation data

    Returns:
        Created Role instance

    Raises:
        Forbidden: Without Role level 3
        ConstraintViolation: On duplicate name, or when a level-0 catalog entry
            has not been seeded
    """
    require(db, actor_id, PermissionCategory.ROLE, 3)
    _ensure_unique_role_name(db, role_data.name)

    seeds = []
    missing = []
    for category in PermissionCategory:
        entry = get_catalog_entry(db, category, 0)
        if entry is None:
            missing.append(category.value)
        else:
            seeds.append(entry)
    if missing:
        logger.error("permission catalog is missing level-0 entries: %s", missing)
        raise ConstraintViolation(
            "Permission catalog is not seeded",
            details={"missing_categories": missing},
        )

    role = Role(name=role_data.name)
    db.add(role)
    db.flush()
    for entry in seeds:
        db.add(RolePermission(role_id=role.id, permission_id=entry.id))
    log_audit(
        db=db,
        actor_id=actor_id,
        action="create_role",
        entity_type="Role",
        entity_id=role.id,
        meta={"name": role.name},
    )
    db.commit()
    db.refresh(role)
    return role


def list_roles(db: Session, actor_id: int) -> List[Role]:
    require(db, actor_id, PermissionCategory.ROLE, 1)
    return db.query(Role).order_by(Role.name.asc()).all()


def read_role(db: Session, actor_id: int, role_id: int) -> Role:
    require(db, actor_id, PermissionCategory.ROLE, 1)
    return get_role(db, role_id)


def update_role(db: Session, actor_id: int, role_id: int, role_data: RoleUpdate) -> Role:
    """Rename a role (Role level 2)."""
    require(db, actor_id, PermissionCategory.ROLE, 2)
    role = get_role(db, role_id)
    _ensure_unique_role_name(db, role_data.name, exclude_id=role.id)

    before = role.name
    role.name = role_data.name
    log_audit(
        db=db,
        actor_id=actor_id,
        action="update_role",
        entity_type="Role",
        entity_id=role.id,
        meta={"before": before, "after": role.name},
    )
    db.commit()
    db.refresh(role)
    return role


def delete_role(db: Session, actor_id: int, role_id: int) -> None:
    """
    Delete a role (Role level 3).

    Raises:
        ConstraintViolation: While users still hold the role
    """
    require(db, actor_id, PermissionCategory.ROLE, 3)
    role = get_role(db, role_id)
    holders = db.query(func.count(User.id)).filter(User.role_id == role.id).scalar()
    if holders:
        raise ConstraintViolation(
            f"Role '{role.name}' is still assigned to users",
            details={"user_count": holders},
        )

    name = role.name
    db.query(RolePermission).filter(RolePermission.role_id == role.id).delete(synchronize_session=False)
    db.delete(role)
    log_audit(
        db=db,
        actor_id=actor_id,
        action="delete_role",
        entity_type="Role",
        entity_id=role_id,
        meta={"name": name},
    )
    db.commit()


def set_role_permission(db: Session, actor_id: int, role_id: int, permission_id: int) -> Role:
    """
    Replace the role's entry in the permission's category (Role level 2).

    Raises:
        ConstraintViolation: If the role holds no entry in that category
    """
    require(db, actor_id, PermissionCategory.ROLE, 2)
    role = get_role(db, role_id)
    permission = get_permission(db, permission_id)

    current = (
        db.query(RolePermission)
        .join(Permission, Permission.id == RolePermission.permission_id)
        .filter(RolePermission.role_id == role.id, Permission.category == permission.category)
        .first()
    )
    if current is None:
        raise ConstraintViolation(
            f"Role '{role.name}' has no '{permission.category.value}' entry to replace"
        )

    previous_permission_id = current.permission_id
    current.permission_id = permission.id
    log_audit(
        db=db,
        actor_id=actor_id,
        action="update_role_permission",
        entity_type="RolePermission",
        entity_id=current.id,
        meta={
            "role_id": role.id,
            "category": permission.category,
            "before_permission_id": previous_permission_id,
            "after_permission_id": permission.id,
            "level": permission.level,
        },
    )
    db.commit()
    db.refresh(role)
    return role


def _ensure_unique_entry(db: Session, category: PermissionCategory, level: int, exclude_id: int = None) -> None:
    existing = get_catalog_entry(db, category, level)
    if existing is not None and existing.id != exclude_id:
        raise ConstraintViolation(
            f"Permission '{category.value}' level {level} already exists",
            details={"permission_id": existing.id},
        )


def list_permissions(db: Session, actor_id: int) -> List[Permission]:
    require(db, actor_id, PermissionCategory.PERMISSION, 1)
    return db.query(Permission).order_by(Permission.category, Permission.level).all()


def read_permission(db: Session, actor_id: int, permission_id: int) -> Permission:
    require(db, actor_id, PermissionCategory.PERMISSION, 1)
    return get_permission(db, permission_id)


def create_permission(db: Session, actor_id: int, data: PermissionCreate) -> Permission:
    require(db, actor_id, PermissionCategory.PERMISSION, 2)
    _ensure_unique_entry(db, data.category, data.level)

    permission = Permission(category=data.category, level=data.level, description=data.description)
    db.add(permission)
    db.flush()
    log_audit(
        db=db,
        actor_id=actor_id,
        action="create_permission",
        entity_type="Permission",
        entity_id=permission.id,
        meta={"category": permission.category, "level": permission.level},
    )
    db.commit()
    db.refresh(permission)
    return permission


def update_permission(db: Session, actor_id: int, permission_id: int, data: PermissionUpdate) -> Permission:
    require(db, actor_id, PermissionCategory.PERMISSION, 2)
    permission = get_permission(db, permission_id)
    changes = data.model_dump(exclude_unset=True)

    category = changes.get("category") or permission.category
    level = changes["level"] if changes.get("level") is not None else permission.level
    _ensure_unique_entry(db, category, level, exclude_id=permission.id)

    permission.category = category
    permission.level = level
    if "description" in changes:
        permission.description = changes["description"]
    log_audit(
        db=db,
        actor_id=actor_id,
        action="update_permission",
        entity_type="Permission",
        entity_id=permission.id,
        meta={"updated_fields": changes},
    )
    db.commit()
    db.refresh(permission)
    return permission


def delete_permission(db: Session, actor_id: int, permission_id: int) -> None:
    """
    Remove a catalog entry (Permission level 2).

    Raises:
        ConstraintViolation: While a role still holds the entry
    """
    require(db, actor_id, PermissionCategory.PERMISSION, 2)
    permission = get_permission(db, permission_id)
    holders = (
        db.query(func.count(RolePermission.id))
        .filter(RolePermission.permission_id == permission.id)
        .scalar()
    )
    if holders:
        raise ConstraintViolation(
            "Permission is still assigned to roles",
            details={"role_count": holders},
        )

    meta = {"category": permission.category, "level": permission.level}
    db.delete(permission)
    log_audit(
        db=db,
        actor_id=actor_id,
        action="delete_permission",
        entity_type="Permission",
        entity_id=permission_id,
        meta=meta,
    )
    db.commit()
