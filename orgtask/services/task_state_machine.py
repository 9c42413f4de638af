"""
Task status transition guard
"""
from datetime import date
from typing import FrozenSet, Optional

from orgtask.core.exceptions import InvalidTransition
from orgtask.models.task import TaskStatus

TERMINAL_STATUSES: FrozenSet[TaskStatus] = frozenset({TaskStatus.APPROVED, TaskStatus.CANCELLED})

# Statuses a task cannot enter before its start date
STARTED_STATUSES: FrozenSet[TaskStatus] = frozenset({TaskStatus.OPEN, TaskStatus.INPROGRESS, TaskStatus.DONE})

ASSIGNEE_LEVEL = 2
AUTHORIZER_LEVEL = 3
FULL_CONTROL_LEVEL = 4

ASSIGNEE_TARGETS: FrozenSet[TaskStatus] = frozenset({TaskStatus.OPEN, TaskStatus.INPROGRESS, TaskStatus.DONE})
AUTHORIZER_TARGETS: FrozenSet[TaskStatus] = frozenset({TaskStatus.OPEN, TaskStatus.CANCELLED})
AUTHORIZER_TARGETS_FROM_DONE: FrozenSet[TaskStatus] = frozenset(
    {TaskStatus.OPEN, TaskStatus.APPROVED, TaskStatus.CANCELLED}
)


def allowed_targets(level: int, current: TaskStatus) -> FrozenSet[TaskStatus]:
    """Statuses a caller with the given Task level may move a task into."""
    if level >= FULL_CONTROL_LEVEL:
        return frozenset(TaskStatus)
    if current in TERMINAL_STATUSES:
        return frozenset()
    if level == AUTHORIZER_LEVEL:
        return AUTHORIZER_TARGETS_FROM_DONE if current == TaskStatus.DONE else AUTHORIZER_TARGETS
    if level == ASSIGNEE_LEVEL:
        return ASSIGNEE_TARGETS
    return frozenset()


def can_transition(level: int, current: TaskStatus, target: TaskStatus) -> bool:
    return target in allowed_targets(level, current)


def check_relationship(level: int, actor_id: int, assignee_id: Optional[int], authorizer_id: int,
                       current: TaskStatus, target: TaskStatus) -> None:
    """Level 2 acts only as the assignee, level 3 only as the authorizer."""
    if level == ASSIGNEE_LEVEL and actor_id != assignee_id:
        raise InvalidTransition(current, target, "only the assignee can change this task's status")
    if level == AUTHORIZER_LEVEL and actor_id != authorizer_id:
        raise InvalidTransition(current, target, "only the authorizer can change this task's status")


def check_transition(level: int, current: TaskStatus, target: TaskStatus,
                     start_date: Optional[date], today: date) -> None:
    """
    Raise InvalidTransition unless the level permits current -> target and
    the task has already started when moving into a working status.
    """
    if not can_transition(level, current, target):
        raise InvalidTransition(current, target, f"not permitted at Task level {level}")
    if target in STARTED_STATUSES and start_date is not None and start_date > today:
        raise InvalidTransition(current, target, f"task does not start until {start_date.isoformat()}")
