"""Authorization Facade — the single decision point for project actions.

``decide(actor_id, project, action, target)`` composes the Role Registry,
the Membership Invariant Engine and the task ownership rules into an
``Allow`` / ``Deny(reason)`` result. It is deterministic and never touches
storage: the caller supplies a fully loaded Project (and Task, for task
actions). Every state-changing operation consults it before persisting.

Check order is fixed: membership, then capability, then target checks.
A non-member is therefore always denied with ``NOT_A_MEMBER``, whatever the
capability table says.
"""

from __future__ import annotations

from enum import Enum
from typing import Callable, Union

from pydantic import BaseModel

from taskhive.core import membership
from taskhive.core.errors import (
    ForbiddenError,
    LastAdministratorError,
    MembershipNotFoundError,
    NotFoundError,
    TaskHiveError,
    ValidationError,
)
from taskhive.core.roles import Capabilities, Role, capabilities_of
from taskhive.models.project import Project
from taskhive.models.task import Task


class Action(str, Enum):
    """Operations that need an authorization decision."""

    VIEW_PROJECT = "view_project"
    UPDATE_PROJECT = "update_project"
    UPDATE_SETTINGS = "update_settings"
    DELETE_PROJECT = "delete_project"
    ASSIGN_ROLE = "assign_role"
    REMOVE_MEMBER = "remove_member"
    LEAVE_PROJECT = "leave_project"
    GENERATE_INVITE = "generate_invite"
    DISABLE_INVITES = "disable_invites"
    CREATE_TASK = "create_task"
    UPDATE_TASK = "update_task"
    UPDATE_PROGRESS = "update_progress"
    ASSIGN_TASK = "assign_task"
    DELETE_TASK = "delete_task"


class DenyReason(str, Enum):
    """Stable reason codes carried by every denial."""

    NOT_A_MEMBER = "not_a_member"
    INSUFFICIENT_ROLE = "insufficient_role"
    NOT_TASK_CREATOR = "not_task_creator"
    NOT_CREATOR_OR_ASSIGNEE = "not_creator_or_assignee"
    TARGET_REQUIRED = "target_required"
    TASK_NOT_IN_PROJECT = "task_not_in_project"
    MEMBER_NOT_FOUND = "member_not_found"
    LAST_ADMINISTRATOR = "last_administrator"


class RoleChange(BaseModel):
    """Target of ASSIGN_ROLE."""

    user_id: str
    new_role: Role


Target = Union[Task, RoleChange, str, None]


_DENIAL_ERRORS: dict[DenyReason, type[TaskHiveError]] = {
    DenyReason.NOT_A_MEMBER: ForbiddenError,
    DenyReason.INSUFFICIENT_ROLE: ForbiddenError,
    DenyReason.NOT_TASK_CREATOR: ForbiddenError,
    DenyReason.NOT_CREATOR_OR_ASSIGNEE: ForbiddenError,
    DenyReason.TARGET_REQUIRED: ValidationError,
    DenyReason.TASK_NOT_IN_PROJECT: NotFoundError,
    DenyReason.LAST_ADMINISTRATOR: LastAdministratorError,
}


class Decision(BaseModel):
    """Outcome of ``decide``."""

    allowed: bool
    reason: DenyReason | None = None
    message: str = ""

    @classmethod
    def allow(cls) -> "Decision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: DenyReason, message: str) -> "Decision":
        return cls(allowed=False, reason=reason, message=message)

    def __bool__(self) -> bool:
        return self.allowed

    def raise_for_denial(self, target_user_id: str = "") -> None:
        """Raise the error kind matching the denial reason; no-op when allowed."""
        if self.allowed:
            return
        if self.reason == DenyReason.MEMBER_NOT_FOUND:
            raise MembershipNotFoundError(target_user_id, self.message)
        raise _DENIAL_ERRORS[self.reason](self.message)


# === Rules ===

_Rule = Callable[[str, Project, Capabilities, Target], Decision]


def _requires(capability: str, message: str) -> _Rule:
    def rule(actor_id: str, project: Project, caps: Capabilities, target: Target) -> Decision:
        if getattr(caps, capability):
            return Decision.allow()
        return Decision.deny(DenyReason.INSUFFICIENT_ROLE, message)
    return rule


def _allow_members(actor_id: str, project: Project, caps: Capabilities, target: Target) -> Decision:
    return Decision.allow()


def _task_target(project: Project, target: Target) -> Task | Decision:
    if not isinstance(target, Task):
        return Decision.deny(DenyReason.TARGET_REQUIRED, "A task is required for this action")
    return target


def _task_in_project(project: Project, task: Task) -> bool:
    return task.project_id == project.id and task.id in project.task_ids


def _update_task(actor_id: str, project: Project, caps: Capabilities, target: Target) -> Decision:
    task = _task_target(project, target)
    if isinstance(task, Decision):
        return task
    if not caps.edit_any_task:
        if not caps.edit_own_task:
            return Decision.deny(
                DenyReason.INSUFFICIENT_ROLE, "Viewers are not authorized to update tasks"
            )
        if task.creator_id != actor_id:
            return Decision.deny(
                DenyReason.NOT_TASK_CREATOR, "You are not authorized to update this task"
            )
    if not _task_in_project(project, task):
        return Decision.deny(DenyReason.TASK_NOT_IN_PROJECT, "Task not found in this project")
    return Decision.allow()


def _update_progress(actor_id: str, project: Project, caps: Capabilities, target: Target) -> Decision:
    task = _task_target(project, target)
    if isinstance(task, Decision):
        return task
    if not caps.edit_any_task:
        related = actor_id in (task.creator_id, task.assignee_id)
        if not (caps.update_progress_if_creator_or_assignee and related):
            return Decision.deny(
                DenyReason.NOT_CREATOR_OR_ASSIGNEE,
                "Only the project owner or assigned member can update task progress",
            )
    if not _task_in_project(project, task):
        return Decision.deny(DenyReason.TASK_NOT_IN_PROJECT, "Task not found in this project")
    return Decision.allow()


def _assign_task(actor_id: str, project: Project, caps: Capabilities, target: Target) -> Decision:
    task = _task_target(project, target)
    if isinstance(task, Decision):
        return task
    if not caps.edit_any_task:
        return Decision.deny(
            DenyReason.INSUFFICIENT_ROLE, "Only project administrators can assign tasks"
        )
    if not _task_in_project(project, task):
        return Decision.deny(DenyReason.TASK_NOT_IN_PROJECT, "Task not found in this project")
    return Decision.allow()


def _delete_task(actor_id: str, project: Project, caps: Capabilities, target: Target) -> Decision:
    task = _task_target(project, target)
    if isinstance(task, Decision):
        return task
    own = caps.delete_own_task and task.creator_id == actor_id
    if not (caps.delete_any_task or own):
        return Decision.deny(
            DenyReason.NOT_TASK_CREATOR, "You are not authorized to delete this task"
        )
    if not _task_in_project(project, task):
        return Decision.deny(DenyReason.TASK_NOT_IN_PROJECT, "Task not found in this project")
    return Decision.allow()


def _assign_role(actor_id: str, project: Project, caps: Capabilities, target: Target) -> Decision:
    if not caps.assign_roles:
        return Decision.deny(DenyReason.INSUFFICIENT_ROLE, "Only administrators can assign roles")
    if not isinstance(target, RoleChange):
        return Decision.deny(DenyReason.TARGET_REQUIRED, "A member and role are required")
    if membership.find_member(project, target.user_id) is None:
        return Decision.deny(DenyReason.MEMBER_NOT_FOUND, "Member not found")
    if membership.would_orphan_project(project, target.user_id, target.new_role):
        return Decision.deny(
            DenyReason.LAST_ADMINISTRATOR, "There must be at least one administrator"
        )
    return Decision.allow()


def _remove_member(actor_id: str, project: Project, caps: Capabilities, target: Target) -> Decision:
    if not caps.manage_members:
        return Decision.deny(
            DenyReason.INSUFFICIENT_ROLE, "Only project administrators can remove members"
        )
    if not isinstance(target, str) or not target:
        return Decision.deny(DenyReason.TARGET_REQUIRED, "A member to remove is required")
    if membership.find_member(project, target) is None:
        return Decision.deny(DenyReason.MEMBER_NOT_FOUND, "User is not part of this project")
    if membership.would_orphan_project(project, target, None):
        return Decision.deny(
            DenyReason.LAST_ADMINISTRATOR,
            "Cannot remove the last administrator from the project",
        )
    return Decision.allow()


def _leave_project(actor_id: str, project: Project, caps: Capabilities, target: Target) -> Decision:
    if membership.would_orphan_project(project, actor_id, None):
        return Decision.deny(
            DenyReason.LAST_ADMINISTRATOR,
            "You are the last administrator and cannot leave the project. "
            "Please delete the project or assign another member as administrator first.",
        )
    return Decision.allow()


_RULES: dict[Action, _Rule] = {
    Action.VIEW_PROJECT: _allow_members,
    Action.UPDATE_PROJECT: _requires(
        "manage_settings", "Only project administrators can update project details"
    ),
    Action.UPDATE_SETTINGS: _requires(
        "manage_settings", "Only project administrators can update project settings"
    ),
    Action.DELETE_PROJECT: _requires(
        "manage_settings", "Only project administrators can delete projects"
    ),
    Action.ASSIGN_ROLE: _assign_role,
    Action.REMOVE_MEMBER: _remove_member,
    Action.LEAVE_PROJECT: _leave_project,
    Action.GENERATE_INVITE: _requires(
        "manage_members", "Only project administrators can generate invite links"
    ),
    Action.DISABLE_INVITES: _requires(
        "manage_members", "Only project administrators can manage invite links"
    ),
    Action.CREATE_TASK: _requires("create_task", "Viewers are not authorized to create tasks"),
    Action.UPDATE_TASK: _update_task,
    Action.UPDATE_PROGRESS: _update_progress,
    Action.ASSIGN_TASK: _assign_task,
    Action.DELETE_TASK: _delete_task,
}


def decide(actor_id: str, project: Project, action: Action, target: Target = None) -> Decision:
    """Decide whether ``actor_id`` may perform ``action`` on ``project``.

    Args:
        actor_id: Acting user, supplied explicitly by the host.
        project: Fully loaded project aggregate.
        action: The operation being attempted.
        target: Task for task actions, RoleChange for ASSIGN_ROLE,
            the target user id for REMOVE_MEMBER.

    Returns:
        Decision.allow() or Decision.deny(reason, message).
    """
    member = membership.find_member(project, actor_id)
    if member is None:
        return Decision.deny(DenyReason.NOT_A_MEMBER, "You are not a member of this project")
    return _RULES[action](actor_id, project, capabilities_of(member.role), target)


def authorize(actor_id: str, project: Project, action: Action, target: Target = None) -> None:
    """``decide`` and raise on denial."""
    decision = decide(actor_id, project, action, target)
    if isinstance(target, RoleChange):
        decision.raise_for_denial(target.user_id)
    elif isinstance(target, str):
        decision.raise_for_denial(target)
    else:
        decision.raise_for_denial()
