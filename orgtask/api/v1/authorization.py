"""
Authorization check endpoint
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from orgtask.core.deps import get_db, get_current_user
from orgtask.models.user import User
from orgtask.schemas.authorization import AuthorizeRequest, DecisionOut
from orgtask.services.authorization_service import authorize

router = APIRouter()


@router.post("/check", response_model=DecisionOut)
async def authorize_endpoint(
    request: AuthorizeRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Evaluate a permission check for the current user without acting on it"""
    decision = authorize(
        db,
        current_user.id,
        request.category,
        request.min_level,
        request.target_department_id,
    )
    return DecisionOut(
        allowed=decision.allowed,
        reason=decision.reason,
        category=decision.category,
        min_level=decision.min_level,
        actual_level=decision.actual_level,
    )
