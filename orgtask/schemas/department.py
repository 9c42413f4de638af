"""
Department schemas
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, ConfigDict


class DepartmentCreate(BaseModel):
    """Schema for creating a department"""
    name: str = Field(..., min_length=1, description="Department name")
    parent_id: Optional[int] = Field(None, description="Parent department; omit for a top-level department")
    manager_id: int = Field(..., description="Managing user, added as a member")


class DepartmentUpdate(BaseModel):
    """Schema for updating a department. Send parent_id=null to make it top-level."""
    name: Optional[str] = Field(None, min_length=1)
    parent_id: Optional[int] = None
    manager_id: Optional[int] = None


class DepartmentMemberChange(BaseModel):
    user_id: int


class MemberOut(BaseModel):
    id: int
    name: str
    mail: str

    model_config = ConfigDict(from_attributes=True)


class DepartmentOut(BaseModel):
    """Schema for department output"""
    id: int
    name: str
    parent_id: Optional[int] = None
    manager_id: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DepartmentDetailOut(DepartmentOut):
    members: List[MemberOut] = []


class DepartmentTaskStats(BaseModel):
    open: int = 0
    inprogress: int = 0
    done: int = 0
    approved: int = 0
    cancelled: int = 0
    late: int = 0
    not_started: int = 0
    not_assigned: Optional[int] = None
