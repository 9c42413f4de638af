"""
Tests for the department tree service
"""
import pytest

from orgtask.core.exceptions import ConstraintViolation, Forbidden, NotFound
from orgtask.models.audit_log import AuditLog
from orgtask.models.department import Department
from orgtask.schemas.department import DepartmentCreate, DepartmentUpdate
from orgtask.schemas.task import TaskCreate
from orgtask.services import department_service
from orgtask.services.department_service import department_closure, is_member
from orgtask.services.task_service import create_task


def test_reparent_under_own_descendant_is_a_cycle(db, org):
    with pytest.raises(ConstraintViolation) as exc_info:
        department_service.update_department(db, org.chair.id, org.root.id, DepartmentUpdate(parent_id=org.ops.id))

    assert exc_info.value.details == {"department_id": org.root.id, "parent_id": org.ops.id}
    db.rollback()
    assert db.query(Department).filter(Department.id == org.root.id).one().parent_id is None


def test_department_cannot_be_its_own_parent(db, org):
    with pytest.raises(ConstraintViolation):
        department_service.update_department(db, org.chair.id, org.ops.id, DepartmentUpdate(parent_id=org.ops.id))


def test_reparent_within_scope(db, org):
    department = department_service.update_department(
        db, org.chair.id, org.field.id, DepartmentUpdate(parent_id=org.root.id)
    )

    assert department.parent_id == org.root.id
    assert department_closure(db, org.ops.id) == {org.ops.id}
    assert department_closure(db, org.root.id) == {org.root.id, org.ops.id, org.field.id}
    audit = db.query(AuditLog).filter(AuditLog.action == "update_department").one()
    assert audit.meta_json == {"updated_fields": {"parent_id": org.root.id}}


def test_top_level_department_needs_chairman_manager(db, org):
    with pytest.raises(ConstraintViolation):
        department_service.create_department(db, org.chair.id, DepartmentCreate(name="Board", manager_id=org.alice.id))

    board = department_service.create_department(db, org.chair.id, DepartmentCreate(name="Board", manager_id=org.chair.id))
    assert board.parent_id is None
    assert is_member(db, board.id, org.chair.id)


def test_move_to_top_level_needs_chairman_manager(db, org):
    with pytest.raises(ConstraintViolation):
        department_service.update_department(db, org.chair.id, org.field.id, DepartmentUpdate(parent_id=None))

    department = department_service.update_department(
        db, org.chair.id, org.field.id, DepartmentUpdate(parent_id=None, manager_id=org.chair.id)
    )
    assert department.parent_id is None
    assert department.manager_id == org.chair.id


def test_create_sub_department_adds_manager_as_member(db, org):
    depot = department_service.create_department(
        db, org.chair.id, DepartmentCreate(name="Depot", parent_id=org.field.id, manager_id=org.dave.id)
    )

    assert depot.parent_id == org.field.id
    assert is_member(db, depot.id, org.dave.id)
    assert depot.id in department_closure(db, org.ops.id)


def test_create_department_requires_level_4(db, org):
    with pytest.raises(Forbidden) as exc_info:
        department_service.create_department(
            db, org.alice.id, DepartmentCreate(name="Depot", parent_id=org.ops.id, manager_id=org.bob.id)
        )
    assert exc_info.value.min_level == 4
    assert exc_info.value.actual_level == 2


def test_create_under_unknown_parent(db, org):
    with pytest.raises(NotFound):
        department_service.create_department(
            db, org.chair.id, DepartmentCreate(name="Depot", parent_id=9999, manager_id=org.chair.id)
        )


def test_delete_department_with_sub_departments_is_blocked(db, org):
    with pytest.raises(ConstraintViolation) as exc_info:
        department_service.delete_department(db, org.chair.id, org.ops.id)
    assert exc_info.value.details == {"descendant_count": 1}


def test_delete_department_with_tasks_is_blocked(db, org):
    create_task(db, org.chair.id, TaskCreate(department_id=org.field.id, title="Inventory"))

    with pytest.raises(ConstraintViolation) as exc_info:
        department_service.delete_department(db, org.chair.id, org.field.id)
    assert exc_info.value.details == {"task_count": 1}


def test_delete_leaf_department(db, org):
    field_id = org.field.id

    department_service.delete_department(db, org.chair.id, field_id)

    with pytest.raises(NotFound):
        department_service.get_department_or_404(db, field_id)
    assert not is_member(db, field_id, org.dave.id)


def test_add_member_is_idempotent(db, org):
    department_service.add_member(db, org.chair.id, org.ops.id, org.dave.id)
    department_service.add_member(db, org.chair.id, org.ops.id, org.dave.id)

    assert is_member(db, org.ops.id, org.dave.id)
    assert db.query(AuditLog).filter(AuditLog.action == "add_department_member").count() == 1


def test_add_member_requires_level_3(db, org):
    with pytest.raises(Forbidden):
        department_service.add_member(db, org.alice.id, org.ops.id, org.dave.id)


def test_remove_member(db, org):
    department_service.remove_member(db, org.chair.id, org.ops.id, org.bob.id)
    assert not is_member(db, org.ops.id, org.bob.id)

    with pytest.raises(NotFound):
        department_service.remove_member(db, org.chair.id, org.ops.id, org.bob.id)


def test_manager_cannot_be_removed(db, org):
    with pytest.raises(ConstraintViolation):
        department_service.remove_member(db, org.chair.id, org.ops.id, org.alice.id)


def test_list_departments_follows_scope(db, org):
    assert [d.id for d in department_service.list_accessible_departments(db, org.bob.id)] == [org.ops.id]
    assert [d.id for d in department_service.list_accessible_departments(db, org.alice.id)] == [
        org.ops.id, org.field.id
    ]


def test_read_department_outside_scope(db, org):
    assert department_service.read_department(db, org.alice.id, org.field.id).id == org.field.id
    with pytest.raises(Forbidden):
        department_service.read_department(db, org.bob.id, org.field.id)
