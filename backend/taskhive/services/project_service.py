"""Project service — host-side orchestration of the core.

Every mutating method follows the same shape: load the aggregate, let the
core authorize and validate, then commit through the repository's
compare-and-set ``mutate`` so the checks run against post-lock state.
Errors from the core propagate unchanged for the API layer to map.
"""

from __future__ import annotations

import logging
from datetime import date, datetime

from sqlmodel import Session

from taskhive.config import settings
from taskhive.core import projects as project_rules
from taskhive.core.authorization import Action, authorize
from taskhive.core.errors import NotFoundError
from taskhive.core.invites import InviteLinkService, InviteSummary
from taskhive.core.tasks import TaskLifecycleEngine
from taskhive.db.repository import (
    InviteLinkRepository,
    ProjectRepository,
    ProjectTaskDeletion,
    TaskRepository,
)
from taskhive.models.project import InviteLink, Member, Project
from taskhive.models.task import Task, TaskPatch

logger = logging.getLogger(__name__)


class ProjectService:
    """Use-case layer between the HTTP routes and the core."""

    def __init__(self, session: Session, lifecycle: TaskLifecycleEngine | None = None) -> None:
        self.session = session
        self.projects = ProjectRepository(session)
        self.tasks: TaskRepository = self.projects.tasks
        self.links = InviteLinkRepository(session)
        self.lifecycle = lifecycle or TaskLifecycleEngine()
        self.invites = InviteLinkService(
            self.links,
            self.projects,
            token_bytes=settings.invite_token_bytes,
            join_role=settings.invite_join_role,
        )

    # === Projects ===

    def create_project(self, actor_id: str, name: str | None, description: str | None) -> Project:
        project = self.projects.create(project_rules.create_project(actor_id, name, description))
        logger.info("Project %s created by %s", project.id, actor_id)
        return project

    def list_projects(self, actor_id: str) -> list[Project]:
        return self.projects.list_for_user(actor_id)

    def get_project(self, actor_id: str, project_id: str) -> tuple[Project, list[Member], list[Task]]:
        project = self.projects.find_by_id(project_id)
        authorize(actor_id, project, Action.VIEW_PROJECT)
        return project, self.projects.list_members(project), self.projects.list_tasks(project)

    def update_details(
        self,
        actor_id: str,
        project_id: str,
        *,
        name: str | None = None,
        description: str | None = None,
    ) -> Project:
        return self.projects.mutate(
            project_id,
            lambda p: project_rules.update_details(actor_id, p, name=name, description=description),
        )

    def update_settings(
        self,
        actor_id: str,
        project_id: str,
        *,
        join_by_link_enabled: bool | None = None,
        pdf_generation_enabled: bool | None = None,
    ) -> Project:
        def change(project: Project) -> Project:
            revoke = project_rules.update_settings(
                actor_id,
                project,
                join_by_link_enabled=join_by_link_enabled,
                pdf_generation_enabled=pdf_generation_enabled,
            )
            if revoke:
                count = self.links.disable_all(project_id)
                logger.info("Join by link turned off for %s; disabling %d link(s)", project_id, count)
            return project

        return self.projects.mutate(project_id, change)

    def delete_project(self, actor_id: str, project_id: str) -> None:
        deleted = self.projects.delete(
            project_id, lambda p: authorize(actor_id, p, Action.DELETE_PROJECT)
        )
        if not deleted:
            raise NotFoundError("Project not found")
        logger.info("Project %s deleted by %s", project_id, actor_id)

    # === Members ===

    def assign_role(self, actor_id: str, project_id: str, member_id: str, role: str) -> Member:
        member = self.projects.mutate(
            project_id, lambda p: project_rules.assign_role(actor_id, p, member_id, role)
        )
        logger.info(
            "Role of %s in project %s set to %s by %s",
            member_id, project_id, member.role.value, actor_id,
        )
        return member

    def remove_member(self, actor_id: str, project_id: str, member_id: str) -> None:
        self.projects.mutate(
            project_id, lambda p: project_rules.remove_member(actor_id, p, member_id)
        )
        logger.info("Member %s removed from project %s by %s", member_id, project_id, actor_id)

    def leave_project(self, actor_id: str, project_id: str) -> None:
        self.projects.mutate(project_id, lambda p: project_rules.leave_project(actor_id, p))
        logger.info("Member %s left project %s", actor_id, project_id)

    # === Tasks ===

    def create_task(
        self,
        actor_id: str,
        project_id: str,
        *,
        name: str | None,
        description: str | None,
        deadline: datetime | date | str | None,
    ) -> Task:
        def change(project: Project) -> Task:
            task = self.lifecycle.create_task(
                actor_id, project, name=name, description=description, deadline=deadline
            )
            self.session.add(task)
            return task

        task = self.projects.mutate(project_id, change)
        logger.info("Task %s created in project %s by %s", task.id, project_id, actor_id)
        return task

    def get_task(self, actor_id: str, project_id: str, task_id: str) -> Task:
        project = self.projects.find_by_id(project_id)
        authorize(actor_id, project, Action.VIEW_PROJECT)
        task = self.tasks.find_by_id(task_id)
        if task.project_id != project_id:
            raise NotFoundError("Task not found in this project")
        return task

    def update_task(self, actor_id: str, project_id: str, task_id: str, patch: TaskPatch) -> Task:
        return self.projects.mutate_task(
            project_id,
            task_id,
            lambda p, t: self.lifecycle.update_task(actor_id, p, t, patch),
        )

    def update_progress(
        self, actor_id: str, project_id: str, task_id: str, new_progress: str | None
    ) -> Task:
        task = self.projects.mutate_task(
            project_id,
            task_id,
            lambda p, t: self.lifecycle.update_progress(actor_id, p, t, new_progress),
        )
        logger.info("Task %s moved to %s by %s", task_id, task.progress, actor_id)
        return task

    def assign_task(self, actor_id: str, project_id: str, task_id: str, member_id: str) -> Task:
        return self.projects.mutate_task(
            project_id,
            task_id,
            lambda p, t: self.lifecycle.assign_task(actor_id, p, t, member_id),
        )

    def unassign_task(self, actor_id: str, project_id: str, task_id: str) -> Task:
        return self.projects.mutate_task(
            project_id,
            task_id,
            lambda p, t: self.lifecycle.unassign_task(actor_id, p, t),
        )

    def delete_task(self, actor_id: str, project_id: str, task_id: str) -> None:
        """Detach and delete in one transaction; a half-done delete is rolled back."""
        def change(project: Project) -> None:
            task = self.tasks.find_by_id(task_id)
            store = ProjectTaskDeletion(project, self.tasks)
            self.lifecycle.delete_task(actor_id, project, task, store)

        self.projects.mutate(project_id, change)
        logger.info("Task %s deleted from project %s by %s", task_id, project_id, actor_id)

    # === Invite links ===
    # Link writes ride on the project compare-and-set so they are decided on,
    # and committed with, the current membership and settings.

    def generate_invite(self, actor_id: str, project_id: str) -> InviteLink:
        return self.projects.mutate(project_id, lambda p: self.invites.generate(actor_id, p))

    def resolve_invite(self, token: str) -> InviteSummary:
        return self.invites.resolve(token)

    def join_via_invite(self, actor_id: str, token: str) -> Project:
        return self.invites.consume(actor_id, token)

    def disable_invite(self, actor_id: str, project_id: str, token: str) -> None:
        self.projects.mutate(project_id, lambda p: self.invites.disable(actor_id, p, token))

    def disable_all_invites(self, actor_id: str, project_id: str) -> int:
        """Disable every link and turn joining by link off, as one write."""
        def change(project: Project) -> int:
            count = self.invites.disable_all(actor_id, project)
            project_rules.update_settings(actor_id, project, join_by_link_enabled=False)
            return count

        return self.projects.mutate(project_id, change)
