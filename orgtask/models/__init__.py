"""
Database models
"""
from orgtask.models.role import Role
from orgtask.models.permission import Permission, PermissionCategory, RolePermission
from orgtask.models.user import User
from orgtask.models.department import Department, DepartmentMember
from orgtask.models.task import Task, TaskStatus, RequesterRank, TaskHistory, TaskComment
from orgtask.models.audit_log import AuditLog
from orgtask.models.notification import Notification

__all__ = [
    "Role",
    "Permission",
    "PermissionCategory",
    "RolePermission",
    "User",
    "Department",
    "DepartmentMember",
    "Task",
    "TaskStatus",
    "RequesterRank",
    "TaskHistory",
    "TaskComment",
    "AuditLog",
    "Notification",
]
