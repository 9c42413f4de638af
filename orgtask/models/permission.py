"""
Permission catalog models
"""
import enum

from sqlalchemy import Column, Integer, String, ForeignKey, Enum as SQLEnum, UniqueConstraint
from sqlalchemy.orm import relationship

from orgtask.db.base import Base


class PermissionCategory(str, enum.Enum):
    DEPARTMENT = "Department"
    USER = "User"
    ROLE = "Role"
    PERMISSION = "Permission"
    TASK = "Task"
    COMMENT = "Comment"
    AUDIT_LOG = "AuditLog"


class Permission(Base):
    __tablename__ = "permissions"

    id = Column(Integer, primary_key=True, index=True)
    category = Column(SQLEnum(PermissionCategory), nullable=False, index=True)
    level = Column(Integer, nullable=False)  # 0 = no access
    description = Column(String, nullable=True)

    roles = relationship("Role", secondary="role_permissions", back_populates="permissions", viewonly=True)


class RolePermission(Base):
    __tablename__ = "role_permissions"

    id = Column(Integer, primary_key=True, index=True)
    role_id = Column(Integer, ForeignKey("roles.id", ondelete="CASCADE"), nullable=False, index=True)
    permission_id = Column(Integer, ForeignKey("permissions.id"), nullable=False, index=True)

    __table_args__ = (
        UniqueConstraint("role_id", "permission_id", name="uq_role_permission"),
    )
