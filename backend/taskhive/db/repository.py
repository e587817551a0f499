"""Repositories — the persistence adapter the core's callers go through.

Projects and tasks are written with compare-and-set on their ``version``
column: ``UPDATE ... WHERE id = :id AND version = :expected``. ``mutate``
re-reads the row, re-runs the caller's checks on that fresh state and
commits only if nobody wrote in between; otherwise it rolls back and retries.
Two requests demoting the last two administrators can therefore never both
commit: the loser re-reads, sees one administrator and is rejected.

The project row is the unit of serialization. Every write whose decision
depends on membership (task writes, invite link writes, project deletion)
also compare-and-sets the project, so a membership change committed after
the decision was made turns the write into a retry.

Objects returned by ``get``/``find_by_id`` are detached from the session so
in-memory edits are never flushed behind the compare-and-set.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, TypeVar

from sqlalchemy import delete, update
from sqlmodel import Session, select

from taskhive.config import settings
from taskhive.core import membership
from taskhive.core.errors import ConflictError, NotFoundError
from taskhive.core.roles import Role
from taskhive.models.project import InviteLink, Member, Project
from taskhive.models.task import Task

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _write_with_retry(
    session: Session,
    max_attempts: int,
    label: str,
    attempt: Callable[[], tuple[bool, T]],
) -> T:
    """Run ``attempt`` until its compare-and-set write lands.

    ``attempt`` returns ``(written, outcome)``. A hit commits and returns
    ``outcome``; a miss rolls back and tries again. Exceptions roll back and
    propagate.
    """
    for n in range(1, max_attempts + 1):
        try:
            written, outcome = attempt()
        except Exception:
            session.rollback()
            raise
        if written:
            session.commit()
            return outcome
        session.rollback()
        logger.info("Concurrent write on %s, retrying (%d/%d)", label, n, max_attempts)
    raise ConflictError(f"{label.split()[0].capitalize()} was modified concurrently, please retry")


class ProjectRepository:
    """Project accessors and membership write primitives."""

    def __init__(self, session: Session, max_attempts: int | None = None) -> None:
        self.session = session
        self.max_attempts = max_attempts or settings.project_write_max_attempts
        self.tasks = TaskRepository(session)

    def get(self, project_id: str) -> Project | None:
        """Fresh, detached copy of the project row."""
        project = self.session.get(Project, project_id, populate_existing=True)
        if project is not None:
            self.session.expunge(project)
        return project

    def find_by_id(self, project_id: str) -> Project:
        project = self.get(project_id)
        if project is None:
            raise NotFoundError("Project not found")
        return project

    def list_for_user(self, user_id: str) -> list[Project]:
        """Projects where ``user_id`` holds a membership, newest first."""
        statement = select(Project).order_by(Project.created_at.desc())  # type: ignore[union-attr]
        projects = [
            p for p in self.session.exec(statement).all()
            if any(record["user_id"] == user_id for record in p.members)
        ]
        for p in projects:
            self.session.expunge(p)
        return projects

    def create(self, project: Project) -> Project:
        membership.check_invariants(project)
        self.session.add(project)
        self.session.commit()
        self.session.refresh(project)
        self.session.expunge(project)
        return project

    def save(self, project: Project) -> bool:
        """Compare-and-set write of ``project``. The caller commits.

        Returns False when the stored version moved since ``project`` was read.
        """
        now = datetime.now(timezone.utc)
        statement = (
            update(Project)
            .where(Project.id == project.id, Project.version == project.version)  # type: ignore[arg-type]
            .values(
                name=project.name,
                description=project.description,
                owner_id=project.owner_id,
                members=list(project.members),
                task_ids=list(project.task_ids),
                join_by_link_enabled=project.join_by_link_enabled,
                pdf_generation_enabled=project.pdf_generation_enabled,
                version=project.version + 1,
                updated_at=now,
            )
        )
        result = self.session.exec(statement)  # type: ignore[call-overload]
        if result.rowcount == 0:
            return False
        project.version += 1
        project.updated_at = now
        return True

    def mutate(self, project_id: str, change: Callable[[Project], T]) -> T:
        """Read → ``change`` → compare-and-set commit, retried on concurrent writes.

        ``change`` receives a fresh copy each attempt and must run every
        authorization and invariant check itself. Other rows it writes through
        this session commit or roll back together with the project. Whatever
        it returns is returned once the write commits.

        Raises:
            NotFoundError: Project does not exist.
            ConflictError: Every attempt lost the race.
            Anything ``change`` raises (after rolling back).
        """
        def attempt() -> tuple[bool, T]:
            project = self.find_by_id(project_id)
            outcome = change(project)
            membership.check_invariants(project)
            return self.save(project), outcome

        return _write_with_retry(self.session, self.max_attempts, f"project {project_id}", attempt)

    def mutate_task(
        self, project_id: str, task_id: str, change: Callable[[Project, Task], T]
    ) -> T:
        """``mutate`` for a task write: project and task are read fresh together.

        The decision in ``change`` is made on the same project copy that the
        project compare-and-set protects, so a member removed or demoted in
        between makes the attempt retry instead of writing.

        Raises:
            NotFoundError: Project or task does not exist.
            ConflictError: Every attempt lost the race.
        """
        def attempt() -> tuple[bool, T]:
            project = self.find_by_id(project_id)
            task = self.tasks.find_by_id(task_id)
            outcome = change(project, task)
            membership.check_invariants(project)
            return self.save(project) and self.tasks.save(task), outcome

        return _write_with_retry(self.session, self.max_attempts, f"project {project_id}", attempt)

    def list_tasks(self, project: Project) -> list[Task]:
        """Tasks of ``project`` in task-list order."""
        if not project.task_ids:
            return []
        statement = select(Task).where(Task.id.in_(project.task_ids))  # type: ignore[union-attr]
        by_id = {task.id: task for task in self.session.exec(statement).all()}
        for task in by_id.values():
            self.session.expunge(task)
        return [by_id[tid] for tid in project.task_ids if tid in by_id]

    def list_members(self, project: Project) -> list[Member]:
        return membership.members_in_display_order(project)

    # === Membership primitives ===

    def add_member(self, project_id: str, user_id: str, role: Role) -> Project:
        def change(project: Project) -> Project:
            membership.apply_addition(project, user_id, role)
            return project
        return self.mutate(project_id, change)

    def remove_member(self, project_id: str, user_id: str) -> Project:
        def change(project: Project) -> Project:
            membership.apply_removal(project, user_id)
            return project
        return self.mutate(project_id, change)

    def set_role(self, project_id: str, user_id: str, role: Role) -> Project:
        def change(project: Project) -> Project:
            membership.apply_role_change(project, user_id, role)
            return project
        return self.mutate(project_id, change)

    def delete(self, project_id: str, check: Callable[[Project], None] | None = None) -> bool:
        """Delete the project with its tasks and invite links.

        ``check`` runs on a fresh copy each attempt; the rows are removed only
        if the project is still at the version ``check`` saw. Returns False
        when there is no such project.
        """
        def attempt() -> tuple[bool, bool]:
            project = self.get(project_id)
            if project is None:
                return True, False
            if check is not None:
                check(project)
            removed = self.session.exec(  # type: ignore[call-overload]
                delete(Project).where(
                    Project.id == project_id, Project.version == project.version  # type: ignore[arg-type]
                )
            ).rowcount
            if not removed:
                return False, False
            self.session.exec(delete(Task).where(Task.project_id == project_id))  # type: ignore[call-overload,arg-type]
            self.session.exec(delete(InviteLink).where(InviteLink.project_id == project_id))  # type: ignore[call-overload,arg-type]
            return True, True

        return _write_with_retry(self.session, self.max_attempts, f"project {project_id}", attempt)


class TaskRepository:
    """Task accessors."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, task_id: str) -> Task | None:
        task = self.session.get(Task, task_id, populate_existing=True)
        if task is not None:
            self.session.expunge(task)
        return task

    def find_by_id(self, task_id: str) -> Task:
        task = self.get(task_id)
        if task is None:
            raise NotFoundError("Task not found")
        return task

    def save(self, task: Task) -> bool:
        """Compare-and-set write of ``task``. The caller commits."""
        statement = (
            update(Task)
            .where(Task.id == task.id, Task.version == task.version)  # type: ignore[arg-type]
            .values(
                name=task.name,
                description=task.description,
                deadline=task.deadline,
                assignee_id=task.assignee_id,
                progress=task.progress,
                progress_history=list(task.progress_history),
                version=task.version + 1,
                updated_at=task.updated_at,
            )
        )
        result = self.session.exec(statement)  # type: ignore[call-overload]
        if result.rowcount == 0:
            return False
        task.version += 1
        return True

    def delete(self, task_id: str) -> int:
        """Delete the task row. Returns rows deleted. The caller commits."""
        result = self.session.exec(delete(Task).where(Task.id == task_id))  # type: ignore[call-overload,arg-type]
        return result.rowcount


class ProjectTaskDeletion:
    """Task deletion steps against the project copy inside ``ProjectRepository.mutate``.

    Detaching edits the locked copy, so the shortened task list is written by
    the project compare-and-set; the row delete joins the same transaction.
    """

    def __init__(self, project: Project, tasks: TaskRepository) -> None:
        self.project = project
        self.tasks = tasks

    def detach_task(self, project_id: str, task_id: str) -> int:
        if project_id != self.project.id or task_id not in self.project.task_ids:
            return 0
        self.project.task_ids = [tid for tid in self.project.task_ids if tid != task_id]
        return 1

    def delete_task_document(self, task_id: str) -> int:
        return self.tasks.delete(task_id)


class InviteLinkRepository:
    """Invite link persistence. Writes are committed by the caller's ``mutate``."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def create(self, project_id: str, token: str, created_by: str) -> InviteLink:
        link = InviteLink(project_id=project_id, token=token, created_by=created_by)
        self.session.add(link)
        self.session.flush()
        return link

    def find_by_token(self, token: str) -> InviteLink | None:
        """Current state of the link, never a cached copy."""
        statement = (
            select(InviteLink)
            .where(InviteLink.token == token)
            .execution_options(populate_existing=True)
        )
        return self.session.exec(statement).first()

    def disable(self, token: str) -> int:
        statement = (
            update(InviteLink)
            .where(InviteLink.token == token, InviteLink.active == True)  # type: ignore[arg-type]  # noqa: E712
            .values(active=False)
        )
        return self.session.exec(statement).rowcount  # type: ignore[call-overload]

    def disable_all(self, project_id: str) -> int:
        statement = (
            update(InviteLink)
            .where(InviteLink.project_id == project_id, InviteLink.active == True)  # type: ignore[arg-type]  # noqa: E712
            .values(active=False)
        )
        return self.session.exec(statement).rowcount  # type: ignore[call-overload]
