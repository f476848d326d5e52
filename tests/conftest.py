"""
Pytest fixtures for the test suite.

Data-layer tests use an in-memory SQLite engine and a session that rolls back
after each test, so tests do not affect each other.

Authorization tests build engines from a small inline registry (``registry_data``)
or from the bundled ``staffdesk/config/registry.yaml`` (``shipped_registry``).
Every test engine reports to a ``RecordingObserver`` so decisions can be
asserted on without capturing log output.
"""
from __future__ import annotations

import copy
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from staffdesk.authz import AuthorizationEngine, AuthzEvent, load_registry, parse_registry


TEST_DB_URL = "sqlite:///:memory:"

SHIPPED_REGISTRY_PATH = Path(__file__).resolve().parents[1] / "staffdesk" / "config" / "registry.yaml"

SMALL_REGISTRY = {
    "permissions": [
        "schedules.view_department",
        "users.delete",
        "tasks.create",
        "tasks.assign",
        "tasks.view_all",
        "tasks.view_department",
        "members.view_all",
        "members.view_department",
        "admin.dashboard",
    ],
    "roles": {
        "admin": {
            "display_name": "관리자",
            "permissions": [
                "users.delete",
                "tasks.create",
                "tasks.assign",
                "tasks.view_all",
                "members.view_all",
                "admin.dashboard",
            ],
        },
        "reception": {
            "display_name": "리셉션",
            "permissions": ["schedules.view_department", "tasks.create"],
        },
        "fitness": {
            "display_name": "피트니스",
            "permissions": ["tasks.create", "tasks.view_department", "members.view_department"],
        },
    },
    "data_access": {
        "admin": {"members": "all", "tasks": "all"},
        "reception": {"members": "all", "tasks": "department"},
        "fitness": {"members": "department", "tasks": "own", "ot": "assigned"},
    },
    "routes": [
        {"path": "/dashboard"},
        {"path": "/admin/staff", "any_of": ["admin.dashboard"]},
        {"path": "/dashboard/members", "any_of": ["members.view_all", "members.view_department"]},
        {"path": "/dashboard/members/{id}", "any_of": ["members.view_all"]},
        {"path": "/dashboard/tasks/assign", "all_of": ["tasks.create", "tasks.assign"]},
        {"path": "/admin", "prefix": True, "any_of": ["admin.dashboard"]},
    ],
    "default_route": {},
    "positions": {
        "팀장": {"level": 5, "can_manage_team": True},
        "부팀장": {"level": 4, "can_manage_team": True},
        "매니저": {"level": 4, "can_manage_team": True},
        "트레이너": {"level": 2},
    },
    "elevated": {
        "team_lead": ["팀장", "부팀장"],
        "manager": ["팀장", "부팀장", "매니저"],
    },
}


class RecordingObserver:
    """Keeps every decision event in memory."""

    def __init__(self) -> None:
        self.events: list[AuthzEvent] = []

    def record(self, event: AuthzEvent) -> None:
        self.events.append(event)

    def decisions(self) -> list[str]:
        return [event.decision for event in self.events]


class FailingObserver:
    def __init__(self) -> None:
        self.calls = 0

    def record(self, event: AuthzEvent) -> None:
        self.calls += 1
        raise RuntimeError("sink is down")


@pytest.fixture
def engine():
    """Create a fresh in-memory SQLite engine for each test."""
    return create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        echo=False,
    )


@pytest.fixture
def tables(engine):
    """Create all ORM tables on the test engine."""
    from staffdesk.db.base import Base
    import staffdesk.models.staff  # noqa: F401  (register mappers on Base.metadata)

    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture
def db_session(tables):
    """
    Provide a Session bound to the test DB; roll back after each test.

    The transaction is rolled back so the next test gets a clean state.
    """
    connection = tables.connect()
    transaction = connection.begin()
    TestSession = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        class_=Session,
    )
    session = TestSession()
    yield session
    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def registry_data():
    """A mutable copy of the small inline registry."""
    return copy.deepcopy(SMALL_REGISTRY)


@pytest.fixture
def registry(registry_data):
    return parse_registry(registry_data)


@pytest.fixture
def shipped_registry():
    return load_registry(SHIPPED_REGISTRY_PATH)


@pytest.fixture
def recorder():
    return RecordingObserver()


@pytest.fixture
def failing_observer():
    return FailingObserver()


@pytest.fixture
def authz(registry, recorder):
    """AuthorizationEngine over the small registry, recording every decision."""
    return AuthorizationEngine(registry, observer=recorder)


@pytest.fixture
def shipped_authz(shipped_registry, recorder):
    return AuthorizationEngine(shipped_registry, observer=recorder)


@pytest.fixture
def build_authz(registry_data, recorder):
    """
    Factory for engines over a modified copy of the small registry.

    Usage:
        authz = build_authz(lambda data: data["data_access"]["fitness"].update(members="own"))
    """

    def _build(mutate=None, observer=None):
        data = copy.deepcopy(registry_data)
        if mutate is not None:
            mutate(data)
        return AuthorizationEngine(parse_registry(data), observer=observer or recorder)

    return _build
