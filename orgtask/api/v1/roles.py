"""
Role and permission catalog endpoints
"""
from typing import List

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from orgtask.core.deps import get_db, get_current_user
from orgtask.models.user import User
from orgtask.schemas.role import (
    PermissionCreate,
    PermissionOut,
    PermissionUpdate,
    RoleCreate,
    RoleOut,
    RolePermissionSet,
    RoleUpdate,
)
from orgtask.services import role_service


router = APIRouter()
permissions_router = APIRouter()


@router.post("", response_model=RoleOut, status_code=201)
async def create_role_endpoint(
    role_data: RoleCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Create a role seeded with level 0 in every category (Role level 3).
    """
    return role_service.create_role(db, current_user.id, role_data)


@router.get("", response_model=List[RoleOut])
async def list_roles_endpoint(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return role_service.list_roles(db, current_user.id)


@router.get("/{role_id}", response_model=RoleOut)
async def get_role_endpoint(
    role_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return role_service.read_role(db, current_user.id, role_id)


@router.patch("/{role_id}", response_model=RoleOut)
async def update_role_endpoint(
    role_id: int,
    role_data: RoleUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Rename a role (Role level 2).
    """
    return role_service.update_role(db, current_user.id, role_id, role_data)


@router.delete("/{role_id}", status_code=204)
async def delete_role_endpoint(
    role_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    role_service.delete_role(db, current_user.id, role_id)
    return Response(status_code=204)


@router.put("/{role_id}/permissions", response_model=RoleOut)
async def set_role_permission_endpoint(
    role_id: int,
    data: RolePermissionSet,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Replace the role's entry in the permission's category (Role level 2).
    """
    return role_service.set_role_permission(db, current_user.id, role_id, data.permission_id)


@permissions_router.get("", response_model=List[PermissionOut])
async def list_permissions_endpoint(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return role_service.list_permissions(db, current_user.id)


@permissions_router.post("", response_model=PermissionOut, status_code=201)
async def create_permission_endpoint(
    data: PermissionCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return role_service.create_permission(db, current_user.id, data)


@permissions_router.get("/{permission_id}", response_model=PermissionOut)
async def get_permission_endpoint(
    permission_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return role_service.read_permission(db, current_user.id, permission_id)


@permissions_router.patch("/{permission_id}", response_model=PermissionOut)
async def update_permission_endpoint(
    permission_id: int,
    data: PermissionUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return role_service.update_permission(db, current_user.id, permission_id, data)


@permissions_router.delete("/{permission_id}", status_code=204)
async def delete_permission_endpoint(
    permission_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    role_service.delete_permission(db, current_user.id, permission_id)
    return Response(status_code=204)
