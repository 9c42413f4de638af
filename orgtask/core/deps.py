"""
Dependencies for FastAPI endpoints
"""
from typing import Generator

from fastapi import BackgroundTasks, Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from orgtask.core.security import decode_token
from orgtask.db.session import SessionLocal
from orgtask.models.user import User
from orgtask.services.push_service import BackgroundPushSender, PushSender


security = HTTPBearer()


def get_db() -> Generator:
    """Dependency for getting database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_push_sender(background_tasks: BackgroundTasks) -> PushSender:
    """Push sender scoped to one request; gateway calls run after the response"""
    return BackgroundPushSender(background_tasks)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """
    Get current authenticated user from JWT token
    """
    try:
        payload = decode_token(credentials.credentials)
        sub_value = payload.get("sub")
        if sub_value is None:
            raise ValueError("Token has no subject")
        user_id = int(sub_value)
    except (ValueError, TypeError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user
