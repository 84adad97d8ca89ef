"""Shared fixtures: in-memory database, seeded member/project, stores, client."""

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlmodel import SQLModel
from sqlmodel.pool import StaticPool

from taskapi.database import build_engine, get_engine
from taskapi.main import app
from taskapi.models import MemberCreate, ProjectCreate, TaskCreate
from taskapi.store import (
    InMemoryTaskStore,
    SQLMemberStore,
    SQLProjectStore,
    SQLTaskStore,
)


class FixedClock:
    """Deterministic clock for updated_at assertions."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture(name="engine")
def engine_fixture():
    """Create a fresh in-memory database for each test."""
    engine = build_engine("sqlite://", poolclass=StaticPool)
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(name="clock")
def clock_fixture():
    # Naive on purpose: SQLite hands datetimes back without tzinfo.
    return FixedClock(datetime(2024, 1, 1, 12, 0, 0))


@pytest.fixture(name="owner")
def owner_fixture(engine):
    return SQLMemberStore(engine).create(
        MemberCreate(name="Ada Lovelace", email="ada@example.com")
    )


@pytest.fixture(name="lead")
def lead_fixture(engine):
    return SQLMemberStore(engine).create(
        MemberCreate(name="Grace Hopper", email="grace@example.com")
    )


@pytest.fixture(name="project")
def project_fixture(engine, owner):
    return SQLProjectStore(engine).create(ProjectCreate(name="Apollo", owner_id=owner.id))


@pytest.fixture(name="task_store", params=["sql", "memory"])
def task_store_fixture(request, engine, owner, lead, project, clock):
    """The same contract exercised against the SQL store and the in-memory fake."""
    if request.param == "sql":
        return SQLTaskStore(engine, timestamp_policy="store", clock=clock)
    return InMemoryTaskStore(
        timestamp_policy="store",
        clock=clock,
        members=(owner.id, lead.id),
        projects=(project.id,),
    )


@pytest.fixture(name="make_task")
def make_task_fixture(task_store, owner):
    def make_task(**overrides):
        fields = {"title": "Write release notes", "description": "", "owner_id": owner.id}
        fields.update(overrides)
        return task_store.create(TaskCreate(**fields))

    return make_task


@pytest.fixture(name="client")
def client_fixture(engine):
    """Create a test client bound to the in-memory engine."""
    app.dependency_overrides[get_engine] = lambda: engine
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()
