"""Shared test fixtures for TaskHive backend tests."""

import os
import sys
from datetime import datetime, timezone

import pytest

# Ensure backend is on the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))
os.environ.setdefault("DATABASE_URL", "sqlite:///test.db")

from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from taskhive.core.roles import Role
from taskhive.core.tasks import TaskLifecycleEngine
from taskhive.db.database import create_db_and_tables
from taskhive.models.project import Member, Project
from taskhive.models.task import Task
from taskhive.services.project_service import ProjectService

# Fixed "now" for lifecycle tests
NOW = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)
FUTURE = "2030-06-30T00:00:00Z"


def make_project(roles: dict[str, Role] | None = None, **kwargs) -> Project:
    """Build an in-memory project. Default team: alice admin, bob dev, carol viewer."""
    roles = roles if roles is not None else {
        "alice": Role.ADMINISTRATOR,
        "bob": Role.DEVELOPER,
        "carol": Role.VIEWER,
    }
    members = [
        Member(user_id=user_id, role=role, joined_at=NOW).to_record()
        for user_id, role in roles.items()
    ]
    return Project(
        name=kwargs.pop("name", "Apollo"),
        description=kwargs.pop("description", "Moon landing"),
        owner_id=kwargs.pop("owner_id", next(iter(roles), "alice")),
        members=members,
        **kwargs,
    )


def make_task(project: Project, creator_id: str = "bob", **kwargs) -> Task:
    """Build a task and register it on ``project``."""
    task = Task(
        project_id=project.id,
        name=kwargs.pop("name", "Draft wireframes"),
        description=kwargs.pop("description", "First draft"),
        deadline=kwargs.pop("deadline", datetime(2030, 6, 30, tzinfo=timezone.utc)),
        creator_id=creator_id,
        **kwargs,
    )
    project.task_ids = [*project.task_ids, task.id]
    return task


@pytest.fixture
def engine():
    """Fresh in-memory SQLite shared across threads (TestClient runs in its own)."""
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_db_and_tables(test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as s:
        yield s


@pytest.fixture
def lifecycle():
    return TaskLifecycleEngine(clock=lambda: NOW)


@pytest.fixture
def service(session, lifecycle):
    return ProjectService(session, lifecycle=lifecycle)


@pytest.fixture
def team_project(service):
    """Persisted project: alice administrator, bob developer, carol viewer."""
    project = service.create_project("alice", "Apollo", "Moon landing")
    service.projects.add_member(project.id, "bob", Role.DEVELOPER)
    service.projects.add_member(project.id, "carol", Role.VIEWER)
    return service.projects.find_by_id(project.id)


@pytest.fixture
def file_engine(tmp_path):
    """File-backed SQLite so two sessions see each other's commits."""
    race_engine = create_engine(
        f"sqlite:///{tmp_path / 'race.db'}",
        connect_args={"check_same_thread": False},
    )
    create_db_and_tables(race_engine)
    yield race_engine
    race_engine.dispose()
