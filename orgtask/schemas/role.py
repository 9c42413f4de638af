"""
Role and permission catalog schemas
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, ConfigDict

from orgtask.models.permission import PermissionCategory


class PermissionCreate(BaseModel):
    """Schema for adding a catalog entry"""
    category: PermissionCategory
    level: int = Field(..., ge=0, description="0 = no access")
    description: Optional[str] = Field(None, description="Human readable meaning of the level")


class PermissionUpdate(BaseModel):
    """Schema for updating a catalog entry"""
    category: Optional[PermissionCategory] = None
    level: Optional[int] = Field(None, ge=0)
    description: Optional[str] = None


class PermissionOut(BaseModel):
    id: int
    category: PermissionCategory
    level: int
    description: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class RoleCreate(BaseModel):
    """Schema for creating a role"""
    name: str = Field(..., min_length=1, description="Role name (case-insensitive unique)")


class RoleUpdate(BaseModel):
    """Schema for renaming a role"""
    name: str = Field(..., min_length=1, description="Updated role name")


class RolePermissionSet(BaseModel):
    """Replace the role's entry for the permission's category"""
    permission_id: int


class RoleOut(BaseModel):
    """Role output schema"""
    id: int
    name: str
    permissions: List[PermissionOut] = []
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
