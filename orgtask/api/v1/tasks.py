"""
Task endpoints: lifecycle, history and comments
"""
from typing import List

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from orgtask.core.deps import get_db, get_current_user, get_push_sender
from orgtask.models.user import User
from orgtask.schemas.task import (
    TaskCommentCreate,
    TaskCommentOut,
    TaskCommentUpdate,
    TaskCreate,
    TaskHistoryOut,
    TaskOut,
    TaskStatusUpdate,
    TaskUpdate,
)
from orgtask.services import comment_service, task_service
from orgtask.services.push_service import PushSender

router = APIRouter()


@router.post("", response_model=TaskOut, status_code=201)
async def create_task_endpoint(
    task_data: TaskCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    sender: PushSender = Depends(get_push_sender),
):
    """Create a task in a department within the caller's scope (Task level 3)"""
    return task_service.create_task(db, current_user.id, task_data, sender=sender)


@router.get("/{task_id}", response_model=TaskOut)
async def get_task_endpoint(
    task_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return task_service.read_task(db, current_user.id, task_id)


@router.put("/{task_id}", response_model=TaskOut)
async def update_task_endpoint(
    task_id: int,
    task_data: TaskUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    sender: PushSender = Depends(get_push_sender),
):
    """Update assignment and descriptive fields (Task level 3)"""
    return task_service.update_task(db, current_user.id, task_id, task_data, sender=sender)


@router.patch("/{task_id}/status", response_model=TaskOut)
async def set_task_status_endpoint(
    task_id: int,
    status_data: TaskStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    sender: PushSender = Depends(get_push_sender),
):
    """Move a task through its lifecycle (Task level 2+)"""
    return task_service.set_task_status(db, current_user.id, task_id, status_data.status, sender=sender)


@router.delete("/{task_id}", status_code=204)
async def delete_task_endpoint(
    task_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    task_service.delete_task(db, current_user.id, task_id)
    return Response(status_code=204)


@router.get("/{task_id}/history", response_model=List[TaskHistoryOut])
async def task_history_endpoint(
    task_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return task_service.get_task_history(db, current_user.id, task_id)


@router.get("/{task_id}/comments", response_model=List[TaskCommentOut])
async def list_comments_endpoint(
    task_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return comment_service.list_comments(db, current_user.id, task_id)


@router.post("/{task_id}/comments", response_model=TaskCommentOut, status_code=201)
async def add_comment_endpoint(
    task_id: int,
    comment_data: TaskCommentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return comment_service.add_comment(db, current_user.id, task_id, comment_data)


@router.patch("/{task_id}/comments/{comment_id}", response_model=TaskCommentOut)
async def update_comment_endpoint(
    task_id: int,
    comment_id: int,
    comment_data: TaskCommentUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return comment_service.update_comment(db, current_user.id, task_id, comment_id, comment_data)


@router.delete("/{task_id}/comments/{comment_id}", status_code=204)
async def delete_comment_endpoint(
    task_id: int,
    comment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    comment_service.delete_comment(db, current_user.id, task_id, comment_id)
    return Response(status_code=204)
