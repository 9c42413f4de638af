"""
Main API router
"""
from fastapi import APIRouter

from orgtask.api.v1 import (
    authorization,
    departments,
    health,
    notifications,
    roles,
    tasks,
    users,
)

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(authorization.router, prefix="/authorize", tags=["authorization"])
api_router.include_router(departments.router, prefix="/departments", tags=["departments"])
api_router.include_router(users.department_users_router, prefix="/departments", tags=["users"])
api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(tasks.router, prefix="/tasks", tags=["tasks"])
api_router.include_router(roles.router, prefix="/roles", tags=["roles"])
api_router.include_router(roles.permissions_router, prefix="/permissions", tags=["permissions"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
api_router.include_router(notifications.audit_router, prefix="/audit-logs", tags=["audit-logs"])
