"""Membership Invariant Engine.

Guards the two membership invariants of a project:

- at least one member holds the administrator role, at all times;
- a user holds at most one membership per project.

Validators are pure and raise on violation. The ``apply_*`` helpers validate
and then rewrite ``project.members`` in memory; persisting the result is the
host's job, and the host must call them on the state it re-read inside its
serialized write (see ``ProjectRepository.mutate``), never on a snapshot taken
earlier in the request.
"""

from __future__ import annotations

from datetime import datetime, timezone

from taskhive.core.errors import (
    ConflictError,
    LastAdministratorError,
    MembershipNotFoundError,
)
from taskhive.core.roles import ROLE_RANK, Role, parse_role
from taskhive.models.project import Member, Project


# === Reading members ===


def members_of(project: Project) -> list[Member]:
    """Typed view of ``project.members``.

    Raises:
        InvalidRoleError: If a stored role is not one of the fixed roles.
    """
    members = []
    for record in project.members:
        joined_at = record.get("joined_at")
        members.append(
            Member(
                user_id=record["user_id"],
                role=parse_role(record["role"]),
                joined_at=datetime.fromisoformat(joined_at) if joined_at else None,
            )
        )
    return members


def find_member(project: Project, user_id: str) -> Member | None:
    for member in members_of(project):
        if member.user_id == user_id:
            return member
    return None


def require_member(project: Project, user_id: str) -> Member:
    member = find_member(project, user_id)
    if member is None:
        raise MembershipNotFoundError(user_id)
    return member


def role_of(project: Project, user_id: str) -> Role | None:
    member = find_member(project, user_id)
    return member.role if member else None


def administrator_count(project: Project) -> int:
    return sum(1 for m in members_of(project) if m.role == Role.ADMINISTRATOR)


def members_in_display_order(project: Project) -> list[Member]:
    """Members sorted administrator > developer > viewer, then by join order."""
    members = members_of(project)
    return sorted(members, key=lambda m: -ROLE_RANK[m.role])


# === Predicates ===


def would_orphan_project(project: Project, user_id: str, new_role: Role | None) -> bool:
    """True if giving ``user_id`` ``new_role`` (None = removal) leaves no administrator."""
    member = find_member(project, user_id)
    if member is None or member.role != Role.ADMINISTRATOR:
        return False
    if new_role == Role.ADMINISTRATOR:
        return False
    return administrator_count(project) <= 1


# === Validators ===


def validate_role_change(project: Project, target_user_id: str, new_role: str | Role) -> None:
    """Check that ``target_user_id`` may be given ``new_role``.

    Setting a member's role to its current value always passes.

    Raises:
        InvalidRoleError: ``new_role`` is not a known role.
        MembershipNotFoundError: Target is not a member.
        LastAdministratorError: Target is the only administrator and is being demoted.
    """
    role = parse_role(new_role)
    require_member(project, target_user_id)
    if would_orphan_project(project, target_user_id, role):
        raise LastAdministratorError("There must be at least one administrator")


def validate_removal(project: Project, target_user_id: str) -> None:
    """Check that ``target_user_id`` may be removed from the project.

    Raises:
        MembershipNotFoundError: Target is not a member.
        LastAdministratorError: Target is the only administrator.
    """
    require_member(project, target_user_id)
    if would_orphan_project(project, target_user_id, None):
        raise LastAdministratorError("Cannot remove the last administrator from the project")


def validate_self_leave(project: Project, actor_id: str) -> None:
    """Check that ``actor_id`` may leave the project.

    Raises:
        MembershipNotFoundError: Actor is not a member.
        LastAdministratorError: Actor is the only administrator.
    """
    if find_member(project, actor_id) is None:
        raise MembershipNotFoundError(actor_id, "You are not a member of this project")
    if would_orphan_project(project, actor_id, None):
        raise LastAdministratorError(
            "You are the last administrator and cannot leave the project. "
            "Please delete the project or assign another member as administrator first."
        )


def validate_addition(project: Project, user_id: str) -> None:
    """Raises ConflictError if ``user_id`` already holds a membership."""
    if find_member(project, user_id) is not None:
        raise ConflictError("You are already a member of this project")


def check_invariants(project: Project) -> None:
    """Re-check the whole membership list before a write is committed."""
    seen: set[str] = set()
    for member in members_of(project):
        if member.user_id in seen:
            raise ConflictError(f"Duplicate membership for user {member.user_id}")
        seen.add(member.user_id)
    if administrator_count(project) < 1:
        raise LastAdministratorError("There must be at least one administrator")


# === Mutations (in memory) ===


def apply_addition(project: Project, user_id: str, role: str | Role) -> Member:
    role = parse_role(role)
    validate_addition(project, user_id)
    member = Member(user_id=user_id, role=role, joined_at=datetime.now(timezone.utc))
    project.members = [*project.members, member.to_record()]
    return member


def apply_role_change(project: Project, target_user_id: str, new_role: str | Role) -> Member:
    role = parse_role(new_role)
    validate_role_change(project, target_user_id, role)
    records = []
    updated = None
    for record in project.members:
        if record["user_id"] == target_user_id:
            record = {**record, "role": role.value}
            updated = record
        records.append(record)
    project.members = records
    check_invariants(project)
    return Member(
        user_id=updated["user_id"],
        role=role,
        joined_at=datetime.fromisoformat(updated["joined_at"]) if updated.get("joined_at") else None,
    )


def apply_removal(project: Project, target_user_id: str) -> None:
    validate_removal(project, target_user_id)
    project.members = [r for r in project.members if r["user_id"] != target_user_id]
    check_invariants(project)


def apply_self_leave(project: Project, actor_id: str) -> None:
    validate_self_leave(project, actor_id)
    project.members = [r for r in project.members if r["user_id"] != actor_id]
    check_invariants(project)
