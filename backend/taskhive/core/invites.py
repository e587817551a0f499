"""Invite Link Service — generate, resolve and consume project invite tokens.

A token stays usable until it is disabled; consuming it does not use it up.
Tokens of a project whose ``join_by_link_enabled`` setting is off behave as
unknown tokens, however well-formed they are.
"""

from __future__ import annotations

import logging
import secrets
from typing import Callable, Protocol, TypeVar

from pydantic import BaseModel

from taskhive.core import membership
from taskhive.core.authorization import Action, authorize
from taskhive.core.errors import NotFoundError
from taskhive.core.roles import Role, parse_role
from taskhive.models.project import InviteLink, Project

logger = logging.getLogger(__name__)

T = TypeVar("T")

_INVALID_LINK = "Invalid or expired invite link"


class InviteLinkStore(Protocol):
    def create(self, project_id: str, token: str, created_by: str) -> InviteLink: ...

    def find_by_token(self, token: str) -> InviteLink | None: ...

    def disable(self, token: str) -> int: ...

    def disable_all(self, project_id: str) -> int: ...


class MembershipStore(Protocol):
    def get(self, project_id: str) -> Project | None: ...

    def mutate(self, project_id: str, change: Callable[[Project], T]) -> T:
        """Run ``change`` on a fresh copy and commit it atomically with its checks."""
        ...


class InviteSummary(BaseModel):
    """What a prospective member sees before joining."""

    project_id: str
    project_name: str
    project_description: str
    invited_by: str


class InviteLinkService:
    """Invite token lifecycle on top of host-supplied stores."""

    def __init__(
        self,
        links: InviteLinkStore,
        projects: MembershipStore,
        *,
        token_bytes: int = 32,
        join_role: str | Role = Role.DEVELOPER,
    ) -> None:
        self.links = links
        self.projects = projects
        self.token_bytes = token_bytes
        self.join_role = parse_role(join_role)

    def generate(self, actor_id: str, project: Project) -> InviteLink:
        """Issue a new token for ``project``. Earlier tokens stay active.

        Raises:
            ForbiddenError: Actor is not a member or lacks manage_members.
        """
        authorize(actor_id, project, Action.GENERATE_INVITE)
        token = secrets.token_hex(self.token_bytes)
        link = self.links.create(project.id, token, actor_id)
        logger.info("Invite link generated for project %s by %s", project.id, actor_id)
        return link

    def resolve(self, token: str) -> InviteSummary:
        """Project summary for ``token`` without creating a membership.

        Raises:
            NotFoundError: Unknown or disabled token, missing project, or
                joining by link is turned off for the project.
        """
        link, project = self._load(token)
        return InviteSummary(
            project_id=project.id,
            project_name=project.name,
            project_description=project.description,
            invited_by=link.created_by,
        )

    def consume(self, actor_id: str, token: str) -> Project:
        """Join the token's project with the default join role.

        Raises:
            NotFoundError: As for ``resolve``.
            ConflictError: Actor is already a member.
        """
        _, project = self._load(token)
        membership.validate_addition(project, actor_id)

        def join(current: Project) -> Project:
            # Re-checked on the copy the write is committed against
            self._check_link(self.links.find_by_token(token), current)
            membership.apply_addition(current, actor_id, self.join_role)
            return current

        updated = self.projects.mutate(project.id, join)
        logger.info(
            "User %s joined project %s via invite link as %s",
            actor_id, project.id, self.join_role.value,
        )
        return updated

    def disable(self, actor_id: str, project: Project, token: str) -> None:
        """Disable one token of ``project``.

        Raises:
            ForbiddenError: Actor may not manage invite links.
            NotFoundError: Token does not belong to ``project`` or is already off.
        """
        authorize(actor_id, project, Action.DISABLE_INVITES)
        link = self.links.find_by_token(token)
        if link is None or link.project_id != project.id or not link.active:
            raise NotFoundError(_INVALID_LINK)
        self.links.disable(token)
        logger.info("Invite link disabled for project %s by %s", project.id, actor_id)

    def disable_all(self, actor_id: str, project: Project) -> int:
        """Disable every active token of ``project``. Returns how many were disabled."""
        authorize(actor_id, project, Action.DISABLE_INVITES)
        count = self.links.disable_all(project.id)
        logger.info("Disabled %d invite link(s) for project %s", count, project.id)
        return count

    def _load(self, token: str) -> tuple[InviteLink, Project]:
        if not token:
            raise NotFoundError(_INVALID_LINK)
        link = self.links.find_by_token(token)
        if link is None or not link.active:
            raise NotFoundError(_INVALID_LINK)
        project = self.projects.get(link.project_id)
        if project is None:
            raise NotFoundError("Project not found")
        self._check_link(link, project)
        return link, project

    @staticmethod
    def _check_link(link: InviteLink | None, project: Project) -> None:
        """Unknown, disabled or foreign links and projects closed to joining look alike."""
        if (
            link is None
            or not link.active
            or link.project_id != project.id
            or not project.join_by_link_enabled
        ):
            raise NotFoundError(_INVALID_LINK)
