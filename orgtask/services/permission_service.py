"""
Permission catalog lookups: resolve a role's level in a category
"""
from typing import Dict, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from orgtask.models.permission import Permission, PermissionCategory, RolePermission


def resolve_level(db: Session, role_id: Optional[int], category: PermissionCategory) -> int:
    """
    Level held by a role in one category.

    Returns 0 when the role has no entry for the category (or no role at all).
    """
    if role_id is None:
        return 0
    level = (
        db.query(func.max(Permission.level))
        .join(RolePermission, RolePermission.permission_id == Permission.id)
        .filter(RolePermission.role_id == role_id, Permission.category == category)
        .scalar()
    )
    return level or 0


def has_level(db: Session, role_id: Optional[int], category: PermissionCategory, min_level: int) -> bool:
    return resolve_level(db, role_id, category) >= min_level


def role_levels(db: Session, role_id: int) -> Dict[PermissionCategory, int]:
    """All categories with the role's level, missing entries reported as 0."""
    rows = (
        db.query(Permission.category, Permission.level)
        .join(RolePermission, RolePermission.permission_id == Permission.id)
        .filter(RolePermission.role_id == role_id)
        .all()
    )
    levels = {category: 0 for category in PermissionCategory}
    for category, level in rows:
        levels[category] = max(levels[category], level)
    return levels


def get_catalog_entry(db: Session, category: PermissionCategory, level: int) -> Optional[Permission]:
    return (
        db.query(Permission)
        .filter(Permission.category == category, Permission.level == level)
        .first()
    )
