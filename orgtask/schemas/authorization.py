"""
Authorization check schemas
"""
from typing import Optional

from pydantic import BaseModel, Field

from orgtask.models.permission import PermissionCategory


class AuthorizeRequest(BaseModel):
    category: PermissionCategory
    min_level: int = Field(..., ge=0)
    target_department_id: Optional[int] = None


class DecisionOut(BaseModel):
    allowed: bool
    reason: str
    category: PermissionCategory
    min_level: int
    actual_level: int
