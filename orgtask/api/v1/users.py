"""
User endpoints: department membership administration, visibility and device tokens
"""
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from orgtask.core.deps import get_db, get_current_user
from orgtask.models.user import User
from orgtask.schemas.user import (
    PushTokenUpdate,
    UserCreate,
    UserOut,
    UserSummary,
    UserTaskStats,
    UserUpdate,
)
from orgtask.services import user_service


router = APIRouter()
department_users_router = APIRouter()


@router.get("/visible", response_model=List[UserSummary])
async def list_visible_users_endpoint(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Every user at Department level 4, otherwise members of departments the caller manages"""
    return user_service.list_visible_users(db, current_user.id)


@router.post("/push-token", response_model=UserOut)
async def register_push_token_endpoint(
    token_data: PushTokenUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return user_service.register_push_token(db, current_user.id, token_data.push_token)


@router.get("/{user_id}/task-stats", response_model=UserTaskStats)
async def user_task_stats_endpoint(
    user_id: int,
    today: Optional[date] = Query(None, description="Reference day, defaults to today (UTC)"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return user_service.user_task_stats(db, current_user.id, user_id, today=today)


@department_users_router.get("/{department_id}/users", response_model=List[UserSummary])
async def list_department_users_endpoint(
    department_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return user_service.list_department_users(db, current_user.id, department_id)


@department_users_router.post("/{department_id}/users", response_model=UserOut, status_code=201)
async def create_department_user_endpoint(
    department_id: int,
    user_data: UserCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Create a user as a member of the department (User level 4)"""
    return user_service.create_user_in_department(db, current_user.id, department_id, user_data)


@department_users_router.get("/{department_id}/non-members", response_model=List[UserSummary])
async def list_non_members_endpoint(
    department_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return user_service.list_users_outside_department(db, current_user.id, department_id)


@department_users_router.get("/{department_id}/users/{user_id}", response_model=UserSummary)
async def get_department_user_endpoint(
    department_id: int,
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return user_service.read_department_user(db, current_user.id, department_id, user_id)


@department_users_router.put("/{department_id}/users/{user_id}", response_model=UserOut)
async def update_department_user_endpoint(
    department_id: int,
    user_id: int,
    user_data: UserUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Update name, mail or role of a member (User level 3)"""
    return user_service.update_user(db, current_user.id, department_id, user_id, user_data)


@department_users_router.delete("/{department_id}/users/{user_id}", status_code=204)
async def delete_department_user_endpoint(
    department_id: int,
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    user_service.delete_user(db, current_user.id, department_id, user_id)
    return Response(status_code=204)
