"""
User schemas
"""
from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, Field, ConfigDict


class UserCreate(BaseModel):
    """Schema for creating a user inside a department"""
    name: str = Field(..., min_length=1)
    mail: str = Field(..., min_length=3, description="Unique mail address")
    role_id: Optional[int] = Field(None, description="Omit to use the default role")


class UserUpdate(BaseModel):
    """Schema for updating a user. Only the fields sent are changed."""
    name: Optional[str] = Field(None, min_length=1)
    mail: Optional[str] = Field(None, min_length=3)
    role_id: Optional[int] = None


class PushTokenUpdate(BaseModel):
    push_token: str = Field(..., min_length=1, description="Device token from the push gateway")


class UserOut(BaseModel):
    id: int
    name: str
    mail: str
    role_id: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserSummary(BaseModel):
    """User as listed inside a department; created_at is hidden at level 1"""
    id: int
    name: str
    mail: str
    role_id: Optional[int] = None
    role: Optional[str] = None
    created_at: Optional[datetime] = None


class UserTaskStats(BaseModel):
    user_id: int
    stats: Dict[str, int]


class DepartmentUserStats(BaseModel):
    total_users: int
    users_with_tasks: int
    users_without_tasks: int
    child_departments: int


class DepartmentDetailedStats(BaseModel):
    department_id: int
    task_stats: Dict[str, int]
    user_stats: DepartmentUserStats
