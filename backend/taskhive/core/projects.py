"""Project lifecycle rules: creation, details, settings and membership changes.

Each function authorizes through the facade, then mutates the project in
memory via the Membership Invariant Engine. Hosts call these from inside
their serialized write so the checks see post-lock state.
"""

from __future__ import annotations

from datetime import datetime, timezone

from taskhive.core import membership
from taskhive.core.authorization import Action, RoleChange, authorize
from taskhive.core.errors import ValidationError
from taskhive.core.roles import Role, parse_role
from taskhive.models.project import Member, Project


def create_project(actor_id: str, name: str | None, description: str | None) -> Project:
    """New project with ``actor_id`` as owner and sole administrator."""
    if not name or not name.strip() or not description or not description.strip():
        raise ValidationError("Project name and description are required")
    now = datetime.now(timezone.utc)
    project = Project(
        name=name.strip(),
        description=description.strip(),
        owner_id=actor_id,
        members=[
            Member(user_id=actor_id, role=Role.ADMINISTRATOR, joined_at=now).to_record()
        ],
        task_ids=[],
        created_at=now,
        updated_at=now,
    )
    membership.check_invariants(project)
    return project


def update_details(
    actor_id: str,
    project: Project,
    *,
    name: str | None = None,
    description: str | None = None,
) -> Project:
    if name is None and description is None:
        raise ValidationError("At least one of name or description must be provided")
    if name is not None and not name.strip():
        raise ValidationError("Project name cannot be empty", field="name")
    if description is not None and not description.strip():
        raise ValidationError("Project description cannot be empty", field="description")

    authorize(actor_id, project, Action.UPDATE_PROJECT)
    if name is not None:
        project.name = name.strip()
    if description is not None:
        project.description = description.strip()
    return project


def update_settings(
    actor_id: str,
    project: Project,
    *,
    join_by_link_enabled: bool | None = None,
    pdf_generation_enabled: bool | None = None,
) -> bool:
    """Apply settings. Returns True when existing invite links must be disabled."""
    if join_by_link_enabled is None and pdf_generation_enabled is None:
        raise ValidationError("At least one setting must be provided")

    authorize(actor_id, project, Action.UPDATE_SETTINGS)
    revoke_links = False
    if join_by_link_enabled is not None:
        revoke_links = project.join_by_link_enabled and not join_by_link_enabled
        project.join_by_link_enabled = join_by_link_enabled
    if pdf_generation_enabled is not None:
        project.pdf_generation_enabled = pdf_generation_enabled
    return revoke_links


def assign_role(actor_id: str, project: Project, target_user_id: str, role: str | Role) -> Member:
    new_role = parse_role(role)
    authorize(actor_id, project, Action.ASSIGN_ROLE, RoleChange(user_id=target_user_id, new_role=new_role))
    return membership.apply_role_change(project, target_user_id, new_role)


def remove_member(actor_id: str, project: Project, target_user_id: str) -> None:
    authorize(actor_id, project, Action.REMOVE_MEMBER, target_user_id)
    membership.apply_removal(project, target_user_id)


def leave_project(actor_id: str, project: Project) -> None:
    authorize(actor_id, project, Action.LEAVE_PROJECT)
    membership.apply_self_leave(project, actor_id)
