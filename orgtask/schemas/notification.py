"""
Notification and audit log read schemas
"""
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict


class NotificationOut(BaseModel):
    id: int
    title: str
    message: str
    category: str
    task_id: Optional[int] = None
    meta_json: Optional[Dict[str, Any]] = None
    url: Optional[str] = None
    read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UnreadCountOut(BaseModel):
    unread: int


class MarkReadOut(BaseModel):
    updated: int


class AuditLogOut(BaseModel):
    id: int
    actor_id: int
    action: str
    entity_type: str
    entity_id: Optional[int] = None
    meta_json: Optional[Dict[str, Any]] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
