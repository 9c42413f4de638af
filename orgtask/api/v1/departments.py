"""
Department endpoints
"""
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from orgtask.core.deps import get_db, get_current_user
from orgtask.models.permission import PermissionCategory
from orgtask.models.task import TaskStatus
from orgtask.models.user import User
from orgtask.schemas.department import (
    DepartmentCreate,
    DepartmentDetailOut,
    DepartmentMemberChange,
    DepartmentOut,
    DepartmentTaskStats,
    DepartmentUpdate,
)
from orgtask.schemas.task import TaskOut
from orgtask.schemas.user import DepartmentDetailedStats
from orgtask.services import department_service, task_service
from orgtask.services.authorization_service import require

router = APIRouter()


@router.get("", response_model=List[DepartmentOut])
async def list_departments_endpoint(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """List departments visible to the current user"""
    return department_service.list_accessible_departments(db, current_user.id)


@router.post("", response_model=DepartmentOut, status_code=201)
async def create_department_endpoint(
    department_data: DepartmentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Create a department (Department level 4)"""
    return department_service.create_department(db, current_user.id, department_data)


@router.get("/{department_id}", response_model=DepartmentDetailOut)
async def get_department_endpoint(
    department_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return department_service.read_department(db, current_user.id, department_id)


@router.patch("/{department_id}", response_model=DepartmentOut)
async def update_department_endpoint(
    department_id: int,
    department_data: DepartmentUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Update name, parent or manager (Department level 4)"""
    return department_service.update_department(db, current_user.id, department_id, department_data)


@router.delete("/{department_id}", status_code=204)
async def delete_department_endpoint(
    department_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    department_service.delete_department(db, current_user.id, department_id)
    return Response(status_code=204)


@router.get("/{department_id}/closure", response_model=List[int])
async def department_closure_endpoint(
    department_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """The department and all of its sub-departments"""
    require(db, current_user.id, PermissionCategory.DEPARTMENT, 1, department_id)
    return sorted(department_service.department_closure(db, department_id))


@router.post("/{department_id}/members", response_model=DepartmentDetailOut)
async def add_member_endpoint(
    department_id: int,
    member: DepartmentMemberChange,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return department_service.add_member(db, current_user.id, department_id, member.user_id)


@router.delete("/{department_id}/members/{user_id}", response_model=DepartmentDetailOut)
async def remove_member_endpoint(
    department_id: int,
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return department_service.remove_member(db, current_user.id, department_id, user_id)


@router.get("/{department_id}/tasks", response_model=List[TaskOut])
async def list_department_tasks_endpoint(
    department_id: int,
    status: Optional[TaskStatus] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return task_service.list_department_tasks(
        db, current_user.id, department_id, status=status, skip=skip, limit=limit
    )


@router.get("/{department_id}/task-stats", response_model=DepartmentTaskStats)
async def department_task_stats_endpoint(
    department_id: int,
    today: Optional[date] = Query(None, description="Reference day, defaults to today (UTC)"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return task_service.department_task_stats(db, current_user.id, department_id, today=today)


@router.get("/{department_id}/detailed-stats", response_model=DepartmentDetailedStats)
async def department_detailed_stats_endpoint(
    department_id: int,
    today: Optional[date] = Query(None, description="Reference day, defaults to today (UTC)"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Task and member figures for a department dashboard (Department level 3)"""
    return task_service.department_detailed_stats(db, current_user.id, department_id, today=today)
