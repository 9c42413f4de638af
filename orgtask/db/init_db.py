"""
Database initialization: schema and seed data

Run explicitly (scripts/init_db.py); never triggered on application startup.
"""
import logging
from typing import Dict

from sqlalchemy.orm import Session

from orgtask.core.config import settings
from orgtask import models  # noqa: F401
from orgtask.db.base import Base
from orgtask.models.permission import Permission, PermissionCategory, RolePermission
from orgtask.models.role import Role
from orgtask.services.permission_service import get_catalog_entry

logger = logging.getLogger(__name__)

# Highest level defined per category
CATALOG_MAX_LEVELS: Dict[PermissionCategory, int] = {
    PermissionCategory.DEPARTMENT: 4,
    PermissionCategory.USER: 4,
    PermissionCategory.ROLE: 3,
    PermissionCategory.PERMISSION: 2,
    PermissionCategory.TASK: 4,
    PermissionCategory.COMMENT: 2,
    PermissionCategory.AUDIT_LOG: 1,
}


def seed_permission_catalog(db: Session) -> int:
    """
    Create every (category, level) catalog entry that is missing, level 0
    ("Nothing") included. Returns the number of entries created.
    """
    created = 0
    for category, max_level in CATALOG_MAX_LEVELS.items():
        for level in range(max_level + 1):
            if get_catalog_entry(db, category, level) is not None:
                continue
            description = "Nothing" if level == 0 else f"{category.value} level {level}"
            db.add(Permission(category=category, level=level, description=description))
            created += 1
    db.flush()
    return created


def seed_role(db: Session, name: str, levels: Dict[PermissionCategory, int]) -> Role:
    """Create a role holding one entry per category; categories not given get level 0."""
    role = db.query(Role).filter(Role.name == name).first()
    if role is not None:
        return role
    role = Role(name=name)
    db.add(role)
    db.flush()
    for category in PermissionCategory:
        entry = get_catalog_entry(db, category, levels.get(category, 0))
        db.add(RolePermission(role_id=role.id, permission_id=entry.id))
    db.flush()
    return role


def init_db(db: Session) -> None:
    """
    Create tables, the permission catalog, the chairman role (full access)
    and a "Member" role (task assignee, level 1 elsewhere).
    """
    Base.metadata.create_all(bind=db.get_bind())
    created = seed_permission_catalog(db)
    seed_role(db, settings.CHAIRMAN_ROLE_NAME, dict(CATALOG_MAX_LEVELS))
    seed_role(db, "Member", {
        PermissionCategory.DEPARTMENT: 1,
        PermissionCategory.TASK: 2,
        PermissionCategory.COMMENT: 1,
    })
    db.commit()
    logger.info("database initialized: catalog_entries_created=%s", created)
