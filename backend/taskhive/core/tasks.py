"""Task Lifecycle Engine — task creation, updates, progress and deletion.

Progress states are To Do, In Progress and Completed. Any state may move to
any other, but every transition is authorized on its own (not through the
generic update rule) and appends one entry to ``progress_history``. The
history is append-only.

The engine is stateless: it works on the Project/Task objects it is handed
and leaves persistence to the host. Deletion is the one operation that needs
the store, through the ``TaskDeletionStore`` port.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timezone
from typing import Callable, Protocol

from taskhive.core import membership
from taskhive.core.authorization import Action, authorize
from taskhive.core.errors import ConsistencyError, NotFoundError, ValidationError
from taskhive.models.project import Project
from taskhive.models.task import (
    INITIAL_PROGRESS,
    PROGRESS_STATES,
    ProgressEntry,
    Task,
    TaskPatch,
)

logger = logging.getLogger(__name__)


class TaskDeletionStore(Protocol):
    """Persistence steps of a task deletion, run inside one transaction."""

    def detach_task(self, project_id: str, task_id: str) -> int:
        """Remove ``task_id`` from the project's task list. Returns rows modified."""
        ...

    def delete_task_document(self, task_id: str) -> int:
        """Delete the task row. Returns rows deleted."""
        ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_deadline(value: datetime | date | str | None) -> datetime:
    """Parse a deadline into an aware UTC datetime.

    Accepts datetimes, dates (midnight UTC) and ISO 8601 strings, including a
    trailing ``Z``. Naive values are taken to be UTC.

    Raises:
        ValidationError: Missing or unparseable value.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError("Task deadline required!", field="deadline")
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    else:
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError:
            raise ValidationError("Invalid date format for deadline!", field="deadline") from None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def validate_progress(value: str | None) -> str:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError("New progress value is required.", field="progress")
    if value not in PROGRESS_STATES:
        raise ValidationError(
            f"Invalid progress value: {value!r}. Expected one of {', '.join(PROGRESS_STATES)}",
            field="progress",
        )
    return value


def progress_history(task: Task) -> list[ProgressEntry]:
    """Typed view of ``task.progress_history``, oldest first."""
    return [ProgressEntry.model_validate(entry) for entry in task.progress_history]


class TaskLifecycleEngine:
    """Task state machine with authorization enforcement.

    Usage:
        engine = TaskLifecycleEngine()
        task = engine.create_task("bob", project, name="Wireframes", description="...",
                                  deadline="2030-01-01")
        engine.update_progress("bob", project, task, "In Progress")
        engine.delete_task("alice", project, task, store)
    """

    def __init__(self, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock

    def create_task(
        self,
        actor_id: str,
        project: Project,
        *,
        name: str | None,
        description: str | None,
        deadline: datetime | date | str | None,
    ) -> Task:
        """Create a task owned by ``actor_id`` and append it to the project.

        Raises:
            ValidationError: Empty name/description, bad or past deadline.
            ForbiddenError: Actor is not a member, or is a viewer.
        """
        if not name or not name.strip():
            raise ValidationError("Task name required!", field="name")
        if not description or not description.strip():
            raise ValidationError("Task description required!", field="description")
        due = parse_deadline(deadline)
        if due < self._clock():
            raise ValidationError("Task deadline cannot be in the past!", field="deadline")

        authorize(actor_id, project, Action.CREATE_TASK)

        now = self._clock()
        task = Task(
            project_id=project.id,
            name=name.strip(),
            description=description.strip(),
            deadline=due,
            creator_id=actor_id,
            assignee_id=None,
            progress=INITIAL_PROGRESS,
            progress_history=[],
            created_at=now,
            updated_at=now,
        )
        project.task_ids = [*project.task_ids, task.id]
        return task

    def update_task(self, actor_id: str, project: Project, task: Task, patch: TaskPatch) -> Task:
        """Apply ``patch`` to ``task``.

        Administrators may update any task, developers only tasks they
        created. A progress value in the patch is authorized and recorded as
        by ``update_progress``.

        Raises:
            ValidationError: Empty patch or invalid field value.
            ForbiddenError: Actor may not update this task.
            NotFoundError: Task is not in this project.
        """
        if patch.is_empty():
            raise ValidationError(
                "At least one field (name, description, deadline, or progress) "
                "must be provided to update."
            )
        if patch.name is not None and not patch.name.strip():
            raise ValidationError("Task name cannot be empty", field="name")
        if patch.description is not None and not patch.description.strip():
            raise ValidationError("Task description cannot be empty", field="description")
        due = parse_deadline(patch.deadline) if patch.deadline is not None else None
        progress = validate_progress(patch.progress) if patch.progress is not None else None

        authorize(actor_id, project, Action.UPDATE_TASK, task)
        if progress is not None:
            authorize(actor_id, project, Action.UPDATE_PROGRESS, task)

        if patch.name is not None:
            task.name = patch.name.strip()
        if patch.description is not None:
            task.description = patch.description.strip()
        if due is not None:
            task.deadline = due
        if progress is not None:
            self._record_progress(task, progress, actor_id)
        task.updated_at = self._clock()
        return task

    def update_progress(
        self, actor_id: str, project: Project, task: Task, new_progress: str | None
    ) -> Task:
        """Move ``task`` to ``new_progress`` and append a history entry.

        Raises:
            ValidationError: Missing or unknown progress value.
            ForbiddenError: Actor is neither an administrator nor the
                creator/assignee with progress rights.
        """
        progress = validate_progress(new_progress)
        authorize(actor_id, project, Action.UPDATE_PROGRESS, task)
        self._record_progress(task, progress, actor_id)
        task.updated_at = self._clock()
        return task

    def assign_task(self, actor_id: str, project: Project, task: Task, member_id: str) -> Task:
        """Assign ``task`` to the project member ``member_id``.

        Raises:
            ForbiddenError: Actor is not an administrator.
            NotFoundError: ``member_id`` holds no membership in the project.
        """
        authorize(actor_id, project, Action.ASSIGN_TASK, task)
        if not member_id or membership.find_member(project, member_id) is None:
            raise NotFoundError("Member is not part of this project")
        task.assignee_id = member_id
        task.updated_at = self._clock()
        return task

    def unassign_task(self, actor_id: str, project: Project, task: Task) -> Task:
        """Clear the assignee of ``task``. Administrators only."""
        authorize(actor_id, project, Action.ASSIGN_TASK, task)
        task.assignee_id = None
        task.updated_at = self._clock()
        return task

    def delete_task(
        self, actor_id: str, project: Project, task: Task, store: TaskDeletionStore
    ) -> None:
        """Detach ``task`` from the project and delete it as one unit.

        The caller runs both store steps in one transaction and rolls it back
        when this raises.

        Raises:
            ForbiddenError: Actor is neither the creator nor an administrator.
            NotFoundError: Task is not in the project's task list.
            ConsistencyError: A store step had no effect.
        """
        authorize(actor_id, project, Action.DELETE_TASK, task)

        if store.detach_task(project.id, task.id) == 0:
            logger.warning("Task %s was not detached from project %s", task.id, project.id)
            raise ConsistencyError("Task was not removed from project")
        if store.delete_task_document(task.id) == 0:
            logger.warning("Task %s document was not deleted", task.id)
            raise ConsistencyError("Task document was not deleted")
        project.task_ids = [tid for tid in project.task_ids if tid != task.id]

    def _record_progress(self, task: Task, progress: str, actor_id: str) -> None:
        history = list(task.progress_history)
        history.append({
            "progress": progress,
            "updated_by": actor_id,
            "timestamp": self._clock().isoformat(),
        })
        task.progress_history = history
        task.progress = progress
