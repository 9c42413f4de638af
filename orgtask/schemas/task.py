"""
Task, task history and comment schemas
"""
from datetime import date, datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, ConfigDict, model_validator

from orgtask.models.task import TaskStatus, RequesterRank


class TaskCreate(BaseModel):
    """Schema for creating a task"""
    department_id: int
    assignee_id: Optional[int] = Field(None, description="Must be a member of the department")
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    start_date: Optional[date] = None
    finish_date: Optional[date] = None
    requester_name: Optional[str] = None
    requester_mail: Optional[str] = None
    requester_phone: Optional[str] = None
    requester_rank: Optional[RequesterRank] = None

    @model_validator(mode="after")
    def _check_dates(self):
        if self.start_date and self.finish_date and self.finish_date < self.start_date:
            raise ValueError("finish_date cannot be before start_date")
        return self


class TaskUpdate(BaseModel):
    """
    Schema for updating a task. Only fields that are sent are applied.

    Sending department_id or assignee_id re-runs the assignment checks.
    """
    department_id: Optional[int] = None
    assignee_id: Optional[int] = None
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    start_date: Optional[date] = None
    finish_date: Optional[date] = None
    requester_name: Optional[str] = None
    requester_mail: Optional[str] = None
    requester_phone: Optional[str] = None
    requester_rank: Optional[RequesterRank] = None


class TaskStatusUpdate(BaseModel):
    status: TaskStatus


class TaskOut(BaseModel):
    """Schema for task output"""
    id: int
    creator_id: int
    authorizer_id: int
    assignee_id: Optional[int] = None
    department_id: int
    title: str
    description: Optional[str] = None
    status: TaskStatus
    start_date: Optional[date] = None
    finish_date: Optional[date] = None
    requester_name: Optional[str] = None
    requester_mail: Optional[str] = None
    requester_phone: Optional[str] = None
    requester_rank: Optional[RequesterRank] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TaskHistoryOut(BaseModel):
    id: int
    task_id: int
    actor_id: int
    action: str
    snapshot: Dict[str, Any]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TaskCommentCreate(BaseModel):
    comment: str = Field(..., min_length=1)
    image_url: Optional[str] = None


class TaskCommentUpdate(BaseModel):
    comment: Optional[str] = Field(None, min_length=1)
    image_url: Optional[str] = None


class TaskCommentOut(BaseModel):
    id: int
    task_id: int
    commenter_id: int
    comment: str
    image_url: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
