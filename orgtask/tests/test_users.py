"""
Tests for user administration inside the department tree
"""
from datetime import date, datetime

import pytest

from orgtask.core.exceptions import ConstraintViolation, Forbidden, NotFound
from orgtask.models.audit_log import AuditLog
from orgtask.models.department import DepartmentMember
from orgtask.models.notification import Notification
from orgtask.models.task import RequesterRank, TaskStatus
from orgtask.models.user import User
from orgtask.schemas.task import TaskCreate
from orgtask.schemas.user import UserCreate, UserUpdate
from orgtask.services import user_service
from orgtask.services.department_service import is_member
from orgtask.services.notification_service import add_notification
from orgtask.services.permission_service import role_levels
from orgtask.services.task_service import create_task, department_detailed_stats, set_task_status
from orgtask.utils.datetime_utils import UTC

TODAY = date(2030, 6, 1)


def _join(db, user, department):
    db.add(DepartmentMember(department_id=department.id, user_id=user.id))
    db.commit()


@pytest.fixture
def admin(db, org, make_role, make_user):
    """Full user administration, member of the top-level department only."""
    user = make_user("Admin", make_role("Admin", department=4, user=4))
    _join(db, user, org.root)
    return user


def test_create_user_joins_department(db, org, member_role):
    user = user_service.create_user_in_department(
        db, org.chair.id, org.ops.id, UserCreate(name="Erin", mail="erin@example.org", role_id=member_role.id)
    )

    assert user.role_id == member_role.id
    assert is_member(db, org.ops.id, user.id)
    audit = db.query(AuditLog).filter(AuditLog.action == "create_user").one()
    assert audit.entity_id == user.id
    assert audit.meta_json["department_id"] == org.ops.id


def test_create_user_without_role_gets_default_role(db, org):
    user = user_service.create_user_in_department(
        db, org.chair.id, org.ops.id, UserCreate(name="Erin", mail="erin@example.org")
    )

    assert user.role.name == "Default User"
    assert set(role_levels(db, user.role_id).values()) == {0}

    second = user_service.create_user_in_department(
        db, org.chair.id, org.field.id, UserCreate(name="Finn", mail="finn@example.org")
    )
    assert second.role_id == user.role_id


def test_create_user_rejects_duplicate_mail(db, org):
    with pytest.raises(ConstraintViolation):
        user_service.create_user_in_department(
            db, org.chair.id, org.ops.id, UserCreate(name="Bob again", mail=org.bob.mail.upper())
        )


def test_create_user_with_unknown_role(db, org):
    with pytest.raises(NotFound):
        user_service.create_user_in_department(
            db, org.chair.id, org.ops.id, UserCreate(name="Erin", mail="erin@example.org", role_id=9999)
        )


def test_create_user_needs_user_level_4(db, org):
    with pytest.raises(Forbidden) as exc_info:
        user_service.create_user_in_department(
            db, org.alice.id, org.ops.id, UserCreate(name="Erin", mail="erin@example.org")
        )
    assert exc_info.value.category == "User"


def test_create_user_is_scoped_to_own_departments(db, org, make_role, make_user):
    clerk = make_user("Clerk", make_role("Clerk", department=1, user=4))
    _join(db, clerk, org.field)

    with pytest.raises(Forbidden):
        user_service.create_user_in_department(
            db, clerk.id, org.ops.id, UserCreate(name="Erin", mail="erin@example.org")
        )
    user = user_service.create_user_in_department(
        db, clerk.id, org.field.id, UserCreate(name="Erin", mail="erin@example.org")
    )
    assert is_member(db, org.field.id, user.id)


def test_update_user_fields_and_role(db, org, manager_role):
    user = user_service.update_user(
        db, org.chair.id, org.ops.id, org.bob.id,
        UserUpdate(name="Robert", mail="robert@example.org", role_id=manager_role.id),
    )

    assert (user.name, user.mail, user.role_id) == ("Robert", "robert@example.org", manager_role.id)
    audit = db.query(AuditLog).filter(AuditLog.action == "update_user").one()
    assert audit.meta_json["updated_fields"]["role_id"] == manager_role.id


def test_update_user_rejects_taken_mail(db, org):
    with pytest.raises(ConstraintViolation):
        user_service.update_user(db, org.chair.id, org.ops.id, org.bob.id, UserUpdate(mail=org.carol.mail))


def test_update_user_requires_membership(db, org):
    with pytest.raises(NotFound):
        user_service.update_user(db, org.chair.id, org.ops.id, org.dave.id, UserUpdate(name="David"))


def test_cannot_change_own_role(db, org, member_role):
    with pytest.raises(Forbidden):
        user_service.update_user(db, org.chair.id, org.root.id, org.chair.id, UserUpdate(role_id=member_role.id))


def test_top_level_manager_keeps_chairman_role(db, org, admin, manager_role):
    with pytest.raises(ConstraintViolation) as exc_info:
        user_service.update_user(db, admin.id, org.root.id, org.chair.id, UserUpdate(role_id=manager_role.id))

    assert "Chairman" in exc_info.value.detail
    db.rollback()
    assert db.query(User).filter(User.id == org.chair.id).one().role_id != manager_role.id


def test_sub_department_manager_needs_user_level_3(db, org, member_role, make_role):
    with pytest.raises(ConstraintViolation) as exc_info:
        user_service.update_user(db, org.chair.id, org.ops.id, org.alice.id, UserUpdate(role_id=member_role.id))
    assert exc_info.value.details["role_level"] == 0

    lead = make_role("Lead", department=2, user=3, task=3)
    user = user_service.update_user(db, org.chair.id, org.ops.id, org.alice.id, UserUpdate(role_id=lead.id))
    assert user.role_id == lead.id


def test_update_user_needs_user_level_3(db, org):
    with pytest.raises(Forbidden):
        user_service.update_user(db, org.alice.id, org.ops.id, org.bob.id, UserUpdate(name="Robert"))


def test_delete_user_removes_memberships_and_notifications(db, org):
    add_notification(db, user_id=org.carol.id, title="t", message="m", category="task")
    db.commit()
    carol_id = org.carol.id

    user_service.delete_user(db, org.chair.id, org.ops.id, carol_id)

    assert db.query(User).filter(User.id == carol_id).first() is None
    assert db.query(DepartmentMember).filter(DepartmentMember.user_id == carol_id).count() == 0
    assert db.query(Notification).filter(Notification.user_id == carol_id).count() == 0
    audit = db.query(AuditLog).filter(AuditLog.action == "delete_user").one()
    assert audit.entity_id == carol_id


def test_cannot_delete_own_account(db, org):
    with pytest.raises(Forbidden):
        user_service.delete_user(db, org.chair.id, org.root.id, org.chair.id)


def test_cannot_delete_department_manager(db, org):
    with pytest.raises(ConstraintViolation) as exc_info:
        user_service.delete_user(db, org.chair.id, org.ops.id, org.alice.id)
    assert exc_info.value.details == {"department_ids": [org.ops.id]}


def test_cannot_delete_user_with_recorded_activity(db, org):
    create_task(db, org.alice.id, TaskCreate(department_id=org.ops.id, assignee_id=org.bob.id, title="Pump"))

    with pytest.raises(ConstraintViolation) as exc_info:
        user_service.delete_user(db, org.chair.id, org.ops.id, org.bob.id)
    assert exc_info.value.details == {"tasks": 1}
    assert db.query(User).filter(User.id == org.bob.id).first() is not None


def test_delete_user_requires_membership(db, org):
    with pytest.raises(NotFound):
        user_service.delete_user(db, org.chair.id, org.ops.id, org.dave.id)


def test_list_department_users_full_and_short_form(db, org, make_role, make_user):
    users = user_service.list_department_users(db, org.chair.id, org.ops.id)
    assert [u["id"] for u in users] == sorted([org.alice.id, org.bob.id, org.carol.id])
    assert all(u["created_at"] is not None for u in users)
    assert {u["role"] for u in users} == {"Manager", "Member"}

    viewer = make_user("Viewer", make_role("Viewer", department=1, user=1))
    _join(db, viewer, org.ops)
    users = user_service.list_department_users(db, viewer.id, org.ops.id)
    assert len(users) == 4
    assert all(u["created_at"] is None for u in users)


def test_list_department_users_needs_user_level_1(db, org):
    with pytest.raises(Forbidden):
        user_service.list_department_users(db, org.bob.id, org.ops.id)


def test_read_department_user(db, org):
    carol = user_service.read_department_user(db, org.bob.id, org.ops.id, org.carol.id)
    assert carol["mail"] == org.carol.mail
    assert carol["created_at"] is None

    with pytest.raises(NotFound):
        user_service.read_department_user(db, org.bob.id, org.ops.id, org.dave.id)


def test_list_users_outside_department(db, org):
    users = user_service.list_users_outside_department(db, org.chair.id, org.ops.id)
    assert [u["id"] for u in users] == sorted([org.chair.id, org.dave.id])

    with pytest.raises(Forbidden):
        user_service.list_users_outside_department(db, org.alice.id, org.ops.id)


def test_list_visible_users(db, org):
    everyone = [org.chair.id, org.alice.id, org.bob.id, org.carol.id, org.dave.id]
    assert [u["id"] for u in user_service.list_visible_users(db, org.chair.id)] == sorted(everyone)
    assert [u["id"] for u in user_service.list_visible_users(db, org.alice.id)] == sorted(
        [org.alice.id, org.bob.id, org.carol.id]
    )
    assert [u["id"] for u in user_service.list_visible_users(db, org.dave.id)] == [org.dave.id]
    assert user_service.list_visible_users(db, org.bob.id) == []


def test_user_task_stats(db, org):
    create_task(db, org.alice.id, TaskCreate(
        department_id=org.ops.id, assignee_id=org.bob.id, title="Late", finish_date=date(2030, 5, 1),
    ))
    done = create_task(db, org.alice.id, TaskCreate(
        department_id=org.ops.id, assignee_id=org.bob.id, title="Later", start_date=date(2030, 7, 1),
    ))
    set_task_status(db, org.chair.id, done.id, TaskStatus.DONE, now=datetime(2030, 7, 2, tzinfo=UTC))

    own = user_service.user_task_stats(db, org.bob.id, org.bob.id, today=TODAY)
    assert own["user_id"] == org.bob.id
    assert own["stats"] == {
        "open": 1, "inprogress": 0, "done": 1, "approved": 0, "cancelled": 0, "late": 1, "not_started": 1,
    }
    assert user_service.user_task_stats(db, org.alice.id, org.bob.id, today=TODAY) == own

    with pytest.raises(Forbidden):
        user_service.user_task_stats(db, org.carol.id, org.bob.id, today=TODAY)


def test_register_push_token(db, org):
    user = user_service.register_push_token(db, org.carol.id, " tok-carol ")
    assert user.push_token == "tok-carol"

    with pytest.raises(ConstraintViolation):
        user_service.register_push_token(db, org.carol.id, "   ")


def test_department_detailed_stats(db, org):
    create_task(db, org.chair.id, TaskCreate(
        department_id=org.ops.id, assignee_id=org.bob.id, title="Road",
        requester_rank=RequesterRank.MUHTARLIK, finish_date=date(2030, 5, 1),
    ))
    create_task(db, org.chair.id, TaskCreate(
        department_id=org.ops.id, title="School", requester_rank=RequesterRank.MUHTARLIK,
    ))
    create_task(db, org.alice.id, TaskCreate(
        department_id=org.ops.id, assignee_id=org.alice.id, title="Bridge",
        requester_rank=RequesterRank.MILLETVEKILI,
    ))

    stats = department_detailed_stats(db, org.chair.id, org.ops.id, today=TODAY)

    assert stats["department_id"] == org.ops.id
    task_stats = stats["task_stats"]
    assert task_stats["total"] == 3
    assert task_stats["open"] == 3
    assert task_stats["late"] == 1
    assert task_stats["requester_muhtarlik"] == 2
    assert task_stats["requester_milletvekili"] == 1
    assert task_stats["requester_kaymakamlik"] == 0
    assert task_stats["requester_diger"] == 0
    assert (task_stats["created_by_me"], task_stats["authorized_by_me"], task_stats["assigned_to_me"]) == (2, 2, 0)
    assert stats["user_stats"] == {
        "total_users": 3,
        "users_with_tasks": 2,
        "users_without_tasks": 1,
        "child_departments": 1,
    }


def test_department_detailed_stats_needs_department_level_3(db, org):
    with pytest.raises(Forbidden):
        department_detailed_stats(db, org.alice.id, org.ops.id, today=TODAY)
