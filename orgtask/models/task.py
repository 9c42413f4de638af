"""
Task models: the task itself, its append-only history and its comments
"""
import enum

from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Date,
    DateTime,
    ForeignKey,
    JSON,
    Enum as SQLEnum,
)
from sqlalchemy.orm import relationship

from orgtask.db.base import Base


class TaskStatus(str, enum.Enum):
    OPEN = "open"
    INPROGRESS = "inprogress"
    DONE = "done"
    APPROVED = "approved"
    CANCELLED = "cancelled"


class RequesterRank(str, enum.Enum):
    MILLETVEKILI = "milletvekili"
    KAYMAKAMLIK = "kaymakamlik"
    MUHTARLIK = "muhtarlik"
    DIGER = "diger"


class Task(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)
    creator_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    authorizer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    assignee_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    department_id = Column(Integer, ForeignKey("departments.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    status = Column(SQLEnum(TaskStatus), nullable=False, default=TaskStatus.OPEN)
    start_date = Column(Date, nullable=True)
    finish_date = Column(Date, nullable=True, index=True)
    requester_name = Column(String, nullable=True)
    requester_mail = Column(String, nullable=True)
    requester_phone = Column(String, nullable=True)
    requester_rank = Column(SQLEnum(RequesterRank), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    creator = relationship("User", foreign_keys=[creator_id])
    authorizer = relationship("User", foreign_keys=[authorizer_id])
    assignee = relationship("User", foreign_keys=[assignee_id])
    department = relationship("Department")
    comments = relationship("TaskComment", back_populates="task", cascade="all, delete-orphan")


class TaskHistory(Base):
    """Full snapshot of a task after each create/update/delete. Never updated."""
    __tablename__ = "task_histories"

    id = Column(Integer, primary_key=True, index=True)
    task_id = Column(Integer, nullable=False, index=True)  # no FK: history outlives the task
    actor_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    action = Column(String, nullable=False)  # create / update / delete
    snapshot = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)


class TaskComment(Base):
    __tablename__ = "task_comments"

    id = Column(Integer, primary_key=True, index=True)
    task_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    commenter_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    comment = Column(Text, nullable=False)
    image_url = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)

    task = relationship("Task", back_populates="comments")
    commenter = relationship("User")
