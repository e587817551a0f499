"""Tests for ProjectService end to end over an in-memory database."""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))
os.environ.setdefault("DATABASE_URL", "sqlite:///test.db")

import pytest
from sqlmodel import Session

from conftest import FUTURE, NOW
from taskhive.core import membership
from taskhive.core import projects as project_rules
from taskhive.core.errors import (
    ConflictError,
    ConsistencyError,
    ForbiddenError,
    LastAdministratorError,
    NotFoundError,
    ValidationError,
)
from taskhive.core.roles import Role
from taskhive.core.tasks import TaskLifecycleEngine
from taskhive.db.repository import ProjectTaskDeletion
from taskhive.models.task import TaskPatch
from taskhive.services.project_service import ProjectService


def _task(service, project, actor="bob", **kwargs):
    return service.create_task(
        actor,
        project.id,
        name=kwargs.get("name", "Wireframes"),
        description=kwargs.get("description", "Draft"),
        deadline=kwargs.get("deadline", FUTURE),
    )


# === Projects ===


def test_create_project_makes_creator_administrator(service):
    project = service.create_project("alice", "Apollo", "Moon landing")
    assert project.owner_id == "alice"
    assert membership.role_of(project, "alice") == Role.ADMINISTRATOR
    assert [p.id for p in service.list_projects("alice")] == [project.id]


def test_create_project_requires_name_and_description(service):
    with pytest.raises(ValidationError):
        service.create_project("alice", "", "desc")


def test_get_project_members_only(service, team_project):
    project, members, tasks = service.get_project("carol", team_project.id)
    assert [m.user_id for m in members] == ["alice", "bob", "carol"]
    assert tasks == []
    with pytest.raises(ForbiddenError):
        service.get_project("mallory", team_project.id)


def test_update_details_and_settings(service, team_project):
    updated = service.update_details("alice", team_project.id, name="Artemis")
    assert updated.name == "Artemis"
    with pytest.raises(ForbiddenError):
        service.update_details("bob", team_project.id, description="nope")

    updated = service.update_settings("alice", team_project.id, pdf_generation_enabled=False)
    assert not updated.pdf_generation_enabled
    assert updated.join_by_link_enabled


def test_delete_project_administrator_only(service, team_project):
    with pytest.raises(ForbiddenError):
        service.delete_project("bob", team_project.id)
    service.delete_project("alice", team_project.id)
    with pytest.raises(NotFoundError):
        service.get_project("alice", team_project.id)


# === Members ===


def test_sole_administrator_cannot_demote_self(service):
    project = service.create_project("alice", "Solo", "One admin")
    with pytest.raises(LastAdministratorError):
        service.assign_role("alice", project.id, "alice", "developer")
    reloaded = service.projects.find_by_id(project.id)
    assert membership.role_of(reloaded, "alice") == Role.ADMINISTRATOR
    assert reloaded.version == 1


def test_assign_role(service, team_project):
    member = service.assign_role("alice", team_project.id, "carol", "Developer")
    assert member.role == Role.DEVELOPER
    with pytest.raises(ForbiddenError):
        service.assign_role("bob", team_project.id, "carol", "administrator")


def test_assign_role_unknown_member(service, team_project):
    with pytest.raises(NotFoundError) as exc_info:
        service.assign_role("alice", team_project.id, "mallory", "viewer")
    assert exc_info.value.message == "Member not found"


def test_remove_member_and_leave(service, team_project):
    service.remove_member("alice", team_project.id, "carol")
    service.leave_project("bob", team_project.id)
    project = service.projects.find_by_id(team_project.id)
    assert [m.user_id for m in membership.members_of(project)] == ["alice"]
    with pytest.raises(LastAdministratorError):
        service.leave_project("alice", team_project.id)


# === Tasks ===


def test_task_flow(service, team_project):
    """Create, progress, assign, update and delete through the service."""
    task = _task(service, team_project)
    assert task.creator_id == "bob"
    assert task.progress == "To Do"
    assert service.projects.find_by_id(team_project.id).task_ids == [task.id]

    task = service.update_progress("bob", team_project.id, task.id, "In Progress")
    assert task.progress == "In Progress"
    with pytest.raises(ForbiddenError):
        service.update_progress("carol", team_project.id, task.id, "Completed")

    task = service.assign_task("alice", team_project.id, task.id, "carol")
    assert task.assignee_id == "carol"
    with pytest.raises(NotFoundError):
        service.assign_task("alice", team_project.id, task.id, "mallory")

    task = service.update_task("bob", team_project.id, task.id, TaskPatch(name="Wireframes v2"))
    assert task.name == "Wireframes v2"
    assert len(task.progress_history) == 1

    service.delete_task("bob", team_project.id, task.id)
    assert service.projects.find_by_id(team_project.id).task_ids == []
    assert service.tasks.get(task.id) is None


def test_viewer_cannot_create_task(service, team_project):
    with pytest.raises(ForbiddenError):
        _task(service, team_project, actor="carol")
    assert service.projects.find_by_id(team_project.id).task_ids == []


def test_past_deadline_rejected(service, team_project):
    with pytest.raises(ValidationError):
        _task(service, team_project, deadline="2020-01-01")


def test_get_task_from_other_project(service, team_project):
    other = service.create_project("bob", "Other", "Elsewhere")
    task = _task(service, other)
    with pytest.raises(NotFoundError):
        service.get_task("alice", team_project.id, task.id)


def test_delete_task_rolls_back_when_detach_fails(service, team_project, monkeypatch):
    task = _task(service, team_project)
    monkeypatch.setattr(ProjectTaskDeletion, "detach_task", lambda self, project_id, task_id: 0)
    with pytest.raises(ConsistencyError):
        service.delete_task("alice", team_project.id, task.id)
    assert service.tasks.get(task.id) is not None
    assert service.projects.find_by_id(team_project.id).task_ids == [task.id]


def test_delete_task_rolls_back_when_document_delete_fails(service, team_project, monkeypatch):
    """The detach step is undone when the second step has no effect."""
    task = _task(service, team_project)
    monkeypatch.setattr(ProjectTaskDeletion, "delete_task_document", lambda self, task_id: 0)
    with pytest.raises(ConsistencyError):
        service.delete_task("alice", team_project.id, task.id)
    assert service.projects.find_by_id(team_project.id).task_ids == [task.id]


# === Invite links ===


def test_invite_flow(service, team_project):
    link = service.generate_invite("alice", team_project.id)
    summary = service.resolve_invite(link.token)
    assert summary.project_id == team_project.id

    project = service.join_via_invite("erin", link.token)
    assert membership.role_of(project, "erin") == Role.DEVELOPER
    with pytest.raises(ConflictError):
        service.join_via_invite("erin", link.token)


def test_turning_off_join_by_link_disables_tokens(service, team_project):
    link = service.generate_invite("alice", team_project.id)
    service.update_settings("alice", team_project.id, join_by_link_enabled=False)
    with pytest.raises(NotFoundError):
        service.join_via_invite("erin", link.token)

    # Re-enabling does not revive old tokens
    service.update_settings("alice", team_project.id, join_by_link_enabled=True)
    with pytest.raises(NotFoundError):
        service.join_via_invite("erin", link.token)
    fresh = service.generate_invite("alice", team_project.id)
    service.join_via_invite("erin", fresh.token)


def test_disable_all_invites(service, team_project):
    service.generate_invite("alice", team_project.id)
    service.generate_invite("alice", team_project.id)
    assert service.disable_all_invites("alice", team_project.id) == 2
    assert not service.projects.find_by_id(team_project.id).join_by_link_enabled
    with pytest.raises(ForbiddenError):
        service.disable_all_invites("bob", team_project.id)


def test_disable_single_invite(service, team_project):
    link = service.generate_invite("alice", team_project.id)
    service.disable_invite("alice", team_project.id, link.token)
    with pytest.raises(NotFoundError):
        service.resolve_invite(link.token)


def test_disable_all_invites_is_one_write(service, team_project, monkeypatch):
    """Links stay active when turning joining off fails afterwards."""
    link = service.generate_invite("alice", team_project.id)
    version = service.projects.find_by_id(team_project.id).version

    def refuse(*args, **kwargs):
        raise ValidationError("At least one setting must be provided")

    monkeypatch.setattr(project_rules, "update_settings", refuse)
    with pytest.raises(ValidationError):
        service.disable_all_invites("alice", team_project.id)

    assert service.links.find_by_token(link.token).active
    project = service.projects.find_by_id(team_project.id)
    assert project.join_by_link_enabled
    assert project.version == version


def test_denied_disable_all_leaves_links_active(service, team_project):
    link = service.generate_invite("alice", team_project.id)
    with pytest.raises(ForbiddenError):
        service.disable_all_invites("carol", team_project.id)
    assert service.resolve_invite(link.token).project_id == team_project.id


# === Interleaved requests ===
# Two services on one file database; the first commits while the second is
# between its read and its write.


@pytest.fixture
def rival_services(file_engine):
    with Session(file_engine) as first, Session(file_engine) as second:
        yield (
            ProjectService(first, lifecycle=TaskLifecycleEngine(clock=lambda: NOW)),
            ProjectService(second, lifecycle=TaskLifecycleEngine(clock=lambda: NOW)),
        )


def _shared_project(service):
    project = service.create_project("alice", "Apollo", "Moon landing")
    service.projects.add_member(project.id, "bob", Role.DEVELOPER)
    service.projects.add_member(project.id, "carol", Role.VIEWER)
    return project


def _interleave(monkeypatch, target, name, before_first_call):
    """Run ``before_first_call`` once, just before the first call to ``target.name``."""
    original = getattr(target, name)
    calls = []

    def wrapper(*args, **kwargs):
        calls.append(args)
        if len(calls) == 1:
            before_first_call()
        return original(*args, **kwargs)

    monkeypatch.setattr(target, name, wrapper)
    return calls


def test_join_rejected_when_joining_turned_off_mid_request(rival_services, monkeypatch):
    admin, joiner = rival_services
    project = _shared_project(admin)
    link = admin.generate_invite("alice", project.id)

    original_mutate = joiner.projects.mutate
    toggled = []

    def mutate_after_toggle(project_id, change):
        def change_after_toggle(current):
            if not toggled:
                toggled.append(True)
                admin.update_settings("alice", project_id, join_by_link_enabled=False)
            return change(current)
        return original_mutate(project_id, change_after_toggle)

    monkeypatch.setattr(joiner.projects, "mutate", mutate_after_toggle)

    with pytest.raises(NotFoundError) as exc_info:
        joiner.join_via_invite("erin", link.token)
    assert exc_info.value.message == "Invalid or expired invite link"
    assert toggled == [True]

    final = admin.projects.find_by_id(project.id)
    assert membership.find_member(final, "erin") is None
    assert not final.join_by_link_enabled


def test_assign_rejected_when_assignee_removed_mid_request(rival_services, monkeypatch):
    admin, assigner = rival_services
    project = _shared_project(admin)
    task = _task(admin, project)

    calls = _interleave(
        monkeypatch,
        assigner.lifecycle,
        "assign_task",
        lambda: admin.remove_member("alice", project.id, "carol"),
    )

    with pytest.raises(NotFoundError):
        assigner.assign_task("alice", project.id, task.id, "carol")
    assert len(calls) == 2
    assert admin.tasks.find_by_id(task.id).assignee_id is None
    print("  PASS: assignment re-decided after concurrent removal")


def test_update_rejected_when_creator_demoted_mid_request(rival_services, monkeypatch):
    admin, editor = rival_services
    project = _shared_project(admin)
    task = _task(admin, project, actor="bob")

    _interleave(
        monkeypatch,
        editor.lifecycle,
        "update_task",
        lambda: admin.assign_role("alice", project.id, "bob", "viewer"),
    )

    with pytest.raises(ForbiddenError):
        editor.update_task("bob", project.id, task.id, TaskPatch(name="Renamed"))
    stored = admin.tasks.find_by_id(task.id)
    assert stored.name == "Wireframes"
    assert stored.version == 1


def test_delete_rejected_when_administrator_demoted_mid_request(rival_services, monkeypatch):
    admin, deleter = rival_services
    project = _shared_project(admin)
    admin.assign_role("alice", project.id, "bob", "administrator")

    original_get = deleter.projects.get
    reads = []

    def get_then_demote(project_id):
        current = original_get(project_id)
        reads.append(current.version)
        if len(reads) == 1:
            admin.assign_role("alice", project_id, "bob", "developer")
        return current

    monkeypatch.setattr(deleter.projects, "get", get_then_demote)

    with pytest.raises(ForbiddenError):
        deleter.delete_project("bob", project.id)
    assert len(reads) == 2
    assert admin.projects.get(project.id) is not None
