"""
Tests for the task status transition table
"""
from datetime import date

import pytest

from orgtask.core.exceptions import InvalidTransition
from orgtask.models.task import TaskStatus
from orgtask.services.task_state_machine import allowed_targets, can_transition, check_relationship, check_transition

OPEN, INPROGRESS, DONE, APPROVED, CANCELLED = (
    TaskStatus.OPEN, TaskStatus.INPROGRESS, TaskStatus.DONE, TaskStatus.APPROVED, TaskStatus.CANCELLED,
)


def test_assignee_moves_between_working_statuses():
    assert allowed_targets(2, OPEN) == {OPEN, INPROGRESS, DONE}
    assert allowed_targets(2, DONE) == {OPEN, INPROGRESS, DONE}
    assert not can_transition(2, DONE, APPROVED)


def test_authorizer_approves_only_finished_work():
    assert allowed_targets(3, INPROGRESS) == {OPEN, CANCELLED}
    assert allowed_targets(3, DONE) == {OPEN, APPROVED, CANCELLED}


def test_terminal_statuses_need_full_control():
    for level in (1, 2, 3):
        assert allowed_targets(level, APPROVED) == set()
        assert allowed_targets(level, CANCELLED) == set()
    assert allowed_targets(4, APPROVED) == set(TaskStatus)


def test_levels_below_2_move_nothing():
    assert allowed_targets(0, OPEN) == set()
    assert allowed_targets(1, OPEN) == set()


def test_relationship_guard():
    check_relationship(2, actor_id=7, assignee_id=7, authorizer_id=1, current=OPEN, target=DONE)
    check_relationship(4, actor_id=9, assignee_id=7, authorizer_id=1, current=OPEN, target=DONE)
    with pytest.raises(InvalidTransition):
        check_relationship(2, actor_id=1, assignee_id=7, authorizer_id=1, current=OPEN, target=DONE)
    with pytest.raises(InvalidTransition):
        check_relationship(3, actor_id=7, assignee_id=7, authorizer_id=1, current=DONE, target=APPROVED)


def test_start_date_guard_applies_to_working_statuses_only():
    today = date(2030, 1, 1)
    later = date(2030, 1, 2)
    with pytest.raises(InvalidTransition) as exc_info:
        check_transition(4, OPEN, INPROGRESS, later, today)
    assert "2030-01-02" in exc_info.value.detail

    check_transition(4, OPEN, CANCELLED, later, today)
    check_transition(2, OPEN, INPROGRESS, today, today)
    check_transition(2, OPEN, INPROGRESS, None, today)
