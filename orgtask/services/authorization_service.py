"""
Authorization engine: permission level + department scope checks
"""
import logging
from dataclasses import dataclass
from typing import List, Optional, Set

from sqlalchemy.orm import Session

from orgtask.core.exceptions import Forbidden, NotFound
from orgtask.models.department import DepartmentMember
from orgtask.models.permission import PermissionCategory
from orgtask.models.user import User
from orgtask.services.department_tree import DepartmentTree
from orgtask.services.permission_service import resolve_level

logger = logging.getLogger(__name__)

# Department level at which a user's scope extends to sub-departments
BROAD_SCOPE_LEVEL = 2


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str
    category: PermissionCategory
    min_level: int
    actual_level: int


def get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise NotFound("User", user_id)
    return user


def own_department_ids(db: Session, user_id: int) -> List[int]:
    rows = db.query(DepartmentMember.department_id).filter(DepartmentMember.user_id == user_id).all()
    return [department_id for (department_id,) in rows]


def has_broad_scope(db: Session, user: User) -> bool:
    return resolve_level(db, user.role_id, PermissionCategory.DEPARTMENT) >= BROAD_SCOPE_LEVEL


def accessible_department_ids(db: Session, user: User, tree: Optional[DepartmentTree] = None) -> Set[int]:
    """Own departments, plus their sub-departments when the user has broad scope."""
    own = own_department_ids(db, user.id)
    if not has_broad_scope(db, user):
        return set(own)
    tree = tree or DepartmentTree.load(db)
    return tree.closure_of_many(own)


def is_department_in_scope(db: Session, user: User, department_id: int) -> bool:
    own = own_department_ids(db, user.id)
    if has_broad_scope(db, user):
        return DepartmentTree.load(db).is_within_own_scope(department_id, own)
    return department_id in own


def authorize(
    db: Session,
    user_id: int,
    category: PermissionCategory,
    min_level: int,
    target_department_id: Optional[int] = None,
) -> Decision:
    """
    Decide whether a user may act in a category, optionally on a department.

    Args:
        db: Database session
        user_id: Acting user
        category: Permission category required
        min_level: Minimum level required in that category
        target_department_id: Department the action applies to (optional)

    Returns:
        Decision with allowed flag, reason and the levels compared

    Raises:
        NotFound: If the user does not exist
    """
    user = get_user(db, user_id)
    level = resolve_level(db, user.role_id, category)
    if level < min_level:
        return Decision(
            False,
            f"Requires '{category.value}' level {min_level}, user has {level}",
            category, min_level, level,
        )
    if target_department_id is None:
        return Decision(True, "level sufficient", category, min_level, level)

    if is_department_in_scope(db, user, target_department_id):
        return Decision(True, "department within scope", category, min_level, level)
    return Decision(
        False,
        f"Department {target_department_id} is outside the user's scope",
        category, min_level, level,
    )


def require(
    db: Session,
    user_id: int,
    category: PermissionCategory,
    min_level: int,
    target_department_id: Optional[int] = None,
) -> int:
    """
    Same as authorize() but raises on deny.

    Returns:
        The user's resolved level in the category

    Raises:
        Forbidden: If the decision is a deny
    """
    decision = authorize(db, user_id, category, min_level, target_department_id)
    if not decision.allowed:
        logger.info(
            "authorization denied: user_id=%s category=%s min_level=%s actual_level=%s target=%s",
            user_id, category.value, min_level, decision.actual_level, target_department_id,
        )
        raise Forbidden(
            decision.reason,
            category=category.value,
            min_level=min_level,
            actual_level=decision.actual_level,
        )
    return decision.actual_level
