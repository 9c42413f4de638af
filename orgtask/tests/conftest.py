"""
Pytest configuration and fixtures
"""
from types import SimpleNamespace
from typing import Dict, Iterable, List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from orgtask.main import app
from orgtask.core.config import settings
from orgtask.core.deps import get_db, get_push_sender
from orgtask.core.security import create_access_token
from orgtask.db.base import Base
from orgtask.db.init_db import seed_permission_catalog, seed_role
from orgtask.db.session import configure_sqlite
from orgtask.models import Department, DepartmentMember, PermissionCategory, Role, User  # noqa: F401
from orgtask.services.push_service import PushSender


# Use in-memory SQLite for testing
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
configure_sqlite(engine)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class RecordingSender(PushSender):
    """Push sender double: records every message, fails for chosen tokens."""

    def __init__(self):
        self.sent: List[Dict] = []
        self.failing_tokens = set()

    def send(self, token, title, body, url=None, data=None):
        if token in self.failing_tokens:
            raise ConnectionError(f"gateway unreachable for {token}")
        self.sent.append({"token": token, "title": title, "body": body, "url": url, "data": data})
        return True

    def tokens(self) -> List[str]:
        return [m["token"] for m in self.sent]


@pytest.fixture(scope="function")
def db():
    """Fresh database with the permission catalog seeded"""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    seed_permission_catalog(session)
    session.commit()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture(scope="function")
def client(db, sender):
    """Test client fixture with database and push sender overrides"""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_push_sender] = lambda: sender
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_role(db: Session):
    """Create a role; categories not given hold level 0"""
    def _make(name: str, **levels: int) -> Role:
        role = seed_role(db, name, {PermissionCategory[key.upper()]: value for key, value in levels.items()})
        db.commit()
        return role
    return _make


@pytest.fixture
def make_user(db: Session):
    counter = {"n": 0}

    def _make(name: str, role: Role, push_token: Optional[str] = None) -> User:
        counter["n"] += 1
        user = User(
            name=name,
            mail=f"{name.lower().replace(' ', '.')}.{counter['n']}@example.org",
            role_id=role.id,
            push_token=push_token,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make


@pytest.fixture
def make_department(db: Session):
    """Insert a department directly; the manager and extra members are linked"""
    def _make(name: str, manager: User, parent: Optional[Department] = None,
              members: Iterable[User] = ()) -> Department:
        department = Department(name=name, manager_id=manager.id, parent_id=parent.id if parent else None)
        db.add(department)
        db.flush()
        for user_id in {manager.id, *(m.id for m in members)}:
            db.add(DepartmentMember(department_id=department.id, user_id=user_id))
        db.commit()
        db.refresh(department)
        return department
    return _make


@pytest.fixture
def chairman_role(make_role):
    return make_role(
        settings.CHAIRMAN_ROLE_NAME,
        department=4, user=4, role=3, permission=2, task=4, comment=2, audit_log=1,
    )


@pytest.fixture
def manager_role(make_role):
    return make_role("Manager", department=2, task=3, comment=2)


@pytest.fixture
def member_role(make_role):
    return make_role("Member", department=1, task=2, comment=1)


@pytest.fixture
def org(make_user, make_department, chairman_role, manager_role, member_role):
    """
    root (chair) -> ops (alice manages; bob, carol members) -> field (dave)
    """
    chair = make_user("Chair", chairman_role, push_token="tok-chair")
    alice = make_user("Alice", manager_role, push_token="tok-alice")
    bob = make_user("Bob", member_role, push_token="tok-bob")
    carol = make_user("Carol", member_role)
    dave = make_user("Dave", member_role, push_token="tok-dave")

    root = make_department("Root", chair)
    ops = make_department("Operations", alice, parent=root, members=[bob, carol])
    field = make_department("Field", dave, parent=ops)

    return SimpleNamespace(
        chair=chair, alice=alice, bob=bob, carol=carol, dave=dave,
        root=root, ops=ops, field=field,
    )


@pytest.fixture
def auth_headers():
    def _headers(user: User) -> Dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"}
    return _headers
