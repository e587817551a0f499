"""Role Registry — the fixed set of project roles and their capabilities.

Authorization is capability-based: call sites ask ``capabilities_of(role)``
instead of comparing role names. The ordinal rank exists only for display.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable

from pydantic import BaseModel

from taskhive.core.errors import InvalidRoleError


class Role(str, Enum):
    """Project roles."""

    ADMINISTRATOR = "administrator"
    DEVELOPER = "developer"
    VIEWER = "viewer"


class Capabilities(BaseModel):
    """What a role may do inside a project."""

    model_config = {"frozen": True}

    manage_settings: bool = False
    manage_members: bool = False
    assign_roles: bool = False
    create_task: bool = False
    edit_any_task: bool = False
    edit_own_task: bool = False
    delete_any_task: bool = False
    delete_own_task: bool = False
    update_progress_if_creator_or_assignee: bool = False
    view_only: bool = False


CAPABILITY_TABLE: dict[Role, Capabilities] = {
    Role.ADMINISTRATOR: Capabilities(
        manage_settings=True,
        manage_members=True,
        assign_roles=True,
        create_task=True,
        edit_any_task=True,
        edit_own_task=True,
        delete_any_task=True,
        delete_own_task=True,
        update_progress_if_creator_or_assignee=True,
    ),
    Role.DEVELOPER: Capabilities(
        create_task=True,
        edit_own_task=True,
        delete_own_task=True,
        update_progress_if_creator_or_assignee=True,
    ),
    Role.VIEWER: Capabilities(view_only=True),
}

# Display order only: administrator > developer > viewer
ROLE_RANK: dict[Role, int] = {
    Role.ADMINISTRATOR: 3,
    Role.DEVELOPER: 2,
    Role.VIEWER: 1,
}


def parse_role(value: str | Role) -> Role:
    """Resolve a role string to a Role.

    Raises:
        InvalidRoleError: For anything that is not one of the three roles.
            Unknown strings are never mapped to ``viewer``.
    """
    if isinstance(value, Role):
        return value
    if isinstance(value, str):
        try:
            return Role(value.strip().lower())
        except ValueError:
            pass
    raise InvalidRoleError(value)


def capabilities_of(role: str | Role) -> Capabilities:
    """Capability set for ``role``. Pure lookup."""
    return CAPABILITY_TABLE[parse_role(role)]


def sort_by_rank(roles: Iterable[Role]) -> list[Role]:
    """Roles in display order, highest first."""
    return sorted(roles, key=lambda r: ROLE_RANK[r], reverse=True)
