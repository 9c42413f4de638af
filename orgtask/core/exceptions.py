"""
Domain errors raised by the service layer.

All of them are HTTPException subclasses so the central handlers in
orgtask.core.errors render them without extra wiring.
"""
from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class NotFound(HTTPException):
    def __init__(self, entity: str, entity_id: Any = None):
        detail = f"{entity} not found" if entity_id is None else f"{entity} with id {entity_id} not found"
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)
        self.entity = entity
        self.entity_id = entity_id


class Forbidden(HTTPException):
    """Permission level or department scope was insufficient."""

    def __init__(
        self,
        detail: str,
        category: Optional[str] = None,
        min_level: Optional[int] = None,
        actual_level: Optional[int] = None,
    ):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)
        self.category = category
        self.min_level = min_level
        self.actual_level = actual_level


class InvalidTransition(HTTPException):
    """Task status change rejected by the lifecycle guard."""

    def __init__(self, current_status: Any, requested_status: Any, reason: str):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Cannot move task from '{_value(current_status)}' to '{_value(requested_status)}': {reason}",
        )
        self.current_status = current_status
        self.requested_status = requested_status
        self.reason = reason


class ConstraintViolation(HTTPException):
    """A structural rule would be broken (cycle, membership, seed data, ...)."""

    def __init__(self, detail: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)
        self.details = details or {}


def _value(v: Any) -> Any:
    return getattr(v, "value", v)
