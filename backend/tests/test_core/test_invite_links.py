"""Tests for the Invite Link Service against in-memory stores."""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))
os.environ.setdefault("DATABASE_URL", "sqlite:///test.db")

import pytest

from conftest import make_project
from taskhive.core import membership
from taskhive.core.errors import ConflictError, ForbiddenError, NotFoundError
from taskhive.core.invites import InviteLinkService
from taskhive.core.roles import Role
from taskhive.models.project import InviteLink, Project


class MemoryLinks:
    def __init__(self):
        self.by_token: dict[str, InviteLink] = {}

    def create(self, project_id, token, created_by):
        link = InviteLink(project_id=project_id, token=token, created_by=created_by)
        self.by_token[token] = link
        return link

    def find_by_token(self, token):
        return self.by_token.get(token)

    def disable(self, token):
        link = self.by_token.get(token)
        if link is None or not link.active:
            return 0
        link.active = False
        return 1

    def disable_all(self, project_id):
        count = 0
        for link in self.by_token.values():
            if link.project_id == project_id and link.active:
                link.active = False
                count += 1
        return count


class MemoryProjects:
    def __init__(self, *projects: Project):
        self.by_id = {p.id: p for p in projects}
        self.before_write = []  # Runs on the copy being written, ahead of the change

    def get(self, project_id):
        return self.by_id.get(project_id)

    def mutate(self, project_id, change):
        project = self.by_id.get(project_id)
        if project is None:
            raise NotFoundError("Project not found")
        for hook in self.before_write:
            hook(project)
        return change(project)


def _service(project: Project, **kwargs) -> InviteLinkService:
    return InviteLinkService(MemoryLinks(), MemoryProjects(project), **kwargs)


# === Generation ===


def test_generate_token_is_hex_of_configured_length():
    project = make_project()
    link = _service(project).generate("alice", project)
    assert len(link.token) == 64
    int(link.token, 16)
    assert link.created_by == "alice"
    assert link.active


def test_each_generate_issues_a_new_token():
    project = make_project()
    service = _service(project, token_bytes=16)
    first = service.generate("alice", project)
    second = service.generate("alice", project)
    assert first.token != second.token
    assert len(first.token) == 32
    # Earlier tokens stay usable
    assert service.resolve(first.token).project_id == project.id


@pytest.mark.parametrize("actor", ["bob", "carol", "mallory"])
def test_only_administrators_generate(actor):
    project = make_project()
    with pytest.raises(ForbiddenError):
        _service(project).generate(actor, project)


# === Resolve / consume ===


def test_resolve_returns_summary_without_joining():
    project = make_project()
    service = _service(project)
    token = service.generate("alice", project).token
    summary = service.resolve(token)
    assert summary.project_name == "Apollo"
    assert summary.project_description == "Moon landing"
    assert summary.invited_by == "alice"
    assert len(project.members) == 3


def test_consume_joins_as_developer():
    project = make_project()
    service = _service(project)
    token = service.generate("alice", project).token
    joined = service.consume("erin", token)
    assert membership.role_of(joined, "erin") == Role.DEVELOPER
    # Token is reusable
    service.consume("frank", token)
    assert membership.role_of(project, "frank") == Role.DEVELOPER


def test_consume_uses_configured_join_role():
    project = make_project()
    service = _service(project, join_role="viewer")
    token = service.generate("alice", project).token
    service.consume("erin", token)
    assert membership.role_of(project, "erin") == Role.VIEWER


def test_consume_by_existing_member_conflicts():
    project = make_project()
    service = _service(project)
    token = service.generate("alice", project).token
    with pytest.raises(ConflictError) as exc_info:
        service.consume("bob", token)
    assert exc_info.value.message == "You are already a member of this project"
    assert membership.role_of(project, "bob") == Role.DEVELOPER


def test_consume_when_join_by_link_disabled_is_not_found():
    """A well-formed, active token is rejected once joining by link is off."""
    project = make_project()
    service = _service(project)
    token = service.generate("alice", project).token
    project.join_by_link_enabled = False
    with pytest.raises(NotFoundError) as exc_info:
        service.consume("erin", token)
    assert exc_info.value.message == "Invalid or expired invite link"
    with pytest.raises(NotFoundError):
        service.resolve(token)
    assert membership.find_member(project, "erin") is None


def test_consume_decides_on_the_copy_being_written():
    """Joining turned off between the lookup and the write still rejects the join."""
    project = make_project()
    projects = MemoryProjects(project)
    service = InviteLinkService(MemoryLinks(), projects)
    token = service.generate("alice", project).token
    projects.before_write.append(lambda p: setattr(p, "join_by_link_enabled", False))
    with pytest.raises(NotFoundError):
        service.consume("erin", token)
    assert membership.find_member(project, "erin") is None


def test_consume_rejects_link_disabled_before_the_write():
    project = make_project()
    links = MemoryLinks()
    projects = MemoryProjects(project)
    service = InviteLinkService(links, projects)
    token = service.generate("alice", project).token
    projects.before_write.append(lambda p: links.disable(token))
    with pytest.raises(NotFoundError):
        service.consume("erin", token)
    assert membership.find_member(project, "erin") is None


@pytest.mark.parametrize("token", ["", "deadbeef" * 8])
def test_unknown_token_not_found(token):
    project = make_project()
    with pytest.raises(NotFoundError):
        _service(project).consume("erin", token)


def test_token_for_deleted_project():
    project = make_project()
    links = MemoryLinks()
    service = InviteLinkService(links, MemoryProjects())
    link = links.create(project.id, "abc123", "alice")
    with pytest.raises(NotFoundError) as exc_info:
        service.resolve(link.token)
    assert exc_info.value.message == "Project not found"


# === Disabling ===


def test_disable_single_token():
    project = make_project()
    service = _service(project)
    keep = service.generate("alice", project).token
    drop = service.generate("alice", project).token
    service.disable("alice", project, drop)
    with pytest.raises(NotFoundError):
        service.consume("erin", drop)
    service.consume("erin", keep)


def test_disable_token_of_other_project_not_found():
    project = make_project()
    other = make_project()
    links = MemoryLinks()
    service = InviteLinkService(links, MemoryProjects(project, other))
    token = service.generate("alice", other).token
    with pytest.raises(NotFoundError):
        service.disable("alice", project, token)
    assert links.find_by_token(token).active


def test_disable_all_counts_and_requires_administrator():
    project = make_project()
    service = _service(project)
    service.generate("alice", project)
    service.generate("alice", project)
    with pytest.raises(ForbiddenError):
        service.disable_all("bob", project)
    assert service.disable_all("alice", project) == 2
    assert service.disable_all("alice", project) == 0
