"""
Health check endpoint
"""
from fastapi import APIRouter

from orgtask.core.config import settings

router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Health check endpoint

    Returns service status and version.
    """
    return {
        "status": "ok",
        "service": "org-task-core",
        "version": settings.VERSION or "1.0.0",
    }
