"""Task models.

Includes: Task (SQL), ProgressEntry (Pydantic), TaskPatch (Pydantic).
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel
from sqlmodel import JSON, Column, SQLModel
from sqlmodel import Field as SQLField

# === Task Progress States ===

TaskProgress = Literal["To Do", "In Progress", "Completed"]

# Ordered for display; transitions between any two are allowed
PROGRESS_STATES: tuple[str, ...] = ("To Do", "In Progress", "Completed")

INITIAL_PROGRESS = "To Do"


# === SQL Tables ===


class Task(SQLModel, table=True):
    """A task tracked inside one project."""

    id: str = SQLField(default_factory=lambda: str(uuid4()), primary_key=True)
    project_id: str = SQLField(index=True)
    name: str
    description: str = ""
    deadline: datetime
    creator_id: str  # Immutable after creation
    assignee_id: str | None = None
    progress: str = INITIAL_PROGRESS  # TaskProgress
    # Append-only: [{"progress": str, "updated_by": str, "timestamp": iso str}]
    progress_history: list[dict] = SQLField(default_factory=list, sa_column=Column(JSON))
    version: int = 1
    created_at: datetime = SQLField(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = SQLField(default_factory=lambda: datetime.now(timezone.utc))


# === Pydantic-only models ===


class ProgressEntry(BaseModel):
    """One recorded progress transition."""

    progress: TaskProgress
    updated_by: str
    timestamp: datetime


class TaskPatch(BaseModel):
    """Fields a task update may change. Unset fields are left alone."""

    name: str | None = None
    description: str | None = None
    deadline: datetime | date | str | None = None
    progress: str | None = None

    def is_empty(self) -> bool:
        return all(
            value is None
            for value in (self.name, self.description, self.deadline, self.progress)
        )
