"""
Tests for the audit trail
"""
from datetime import date
from enum import Enum

import pytest

from orgtask.core.exceptions import Forbidden
from orgtask.models.audit_log import AuditLog
from orgtask.models.role import Role
from orgtask.services.audit_service import list_audit_logs, log_audit


class Color(Enum):
    RED = "red"


def test_log_audit_serializes_meta(db, org):
    entry = log_audit(
        db,
        actor_id=org.chair.id,
        action="update_department",
        entity_type="Department",
        entity_id=org.ops.id,
        meta={"when": date(2030, 1, 2), "color": Color.RED, "ids": {3}},
    )
    db.commit()

    assert entry is not None
    stored = db.query(AuditLog).filter(AuditLog.id == entry.id).one()
    assert stored.meta_json["when"] == "2030-01-02"
    assert stored.meta_json["color"] == "red"
    assert stored.meta_json["ids"] == [3]


def test_failed_audit_write_leaves_session_usable(db, org):
    """A broken audit row is dropped without losing the caller's changes"""
    db.add(Role(name="Auditor"))

    entry = log_audit(db, actor_id=99999, action="create_role", entity_type="Role")

    assert entry is None
    db.commit()
    assert db.query(Role).filter(Role.name == "Auditor").count() == 1
    assert db.query(AuditLog).count() == 0


def test_unserializable_meta_is_swallowed(db, org):
    entry = log_audit(db, actor_id=org.chair.id, action="noop", entity_type="Task", meta={"x": object()})

    assert entry is None
    db.commit()
    assert db.query(AuditLog).count() == 0


def test_list_audit_logs_requires_audit_level(db, org):
    log_audit(db, actor_id=org.chair.id, action="create_task", entity_type="Task", entity_id=1)
    log_audit(db, actor_id=org.chair.id, action="create_department", entity_type="Department", entity_id=2)
    db.commit()

    entries = list_audit_logs(db, org.chair.id, entity_type="Task")
    assert [e.action for e in entries] == ["create_task"]

    with pytest.raises(Forbidden):
        list_audit_logs(db, org.alice.id)
