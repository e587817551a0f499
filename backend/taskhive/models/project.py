"""Project, membership and invite link models.

Includes: Project (SQL), InviteLink (SQL), Member (Pydantic view of one
entry in ``Project.members``).

Memberships are embedded in the project row as a JSON list so that a single
compare-and-set on ``Project.version`` serializes every membership write.
"""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from pydantic import BaseModel
from sqlmodel import JSON, Column, SQLModel
from sqlmodel import Field as SQLField

from taskhive.core.roles import Role


# === SQL Tables ===


class Project(SQLModel, table=True):
    """A project with its members and task references."""

    id: str = SQLField(default_factory=lambda: str(uuid4()), primary_key=True)
    name: str
    description: str = ""
    owner_id: str  # Creator; informational only
    # [{"user_id": str, "role": str, "joined_at": iso str}]
    members: list[dict] = SQLField(default_factory=list, sa_column=Column(JSON))
    task_ids: list[str] = SQLField(default_factory=list, sa_column=Column(JSON))
    join_by_link_enabled: bool = True
    pdf_generation_enabled: bool = True
    version: int = 1  # Bumped by every compare-and-set write
    created_at: datetime = SQLField(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = SQLField(default_factory=lambda: datetime.now(timezone.utc))


class InviteLink(SQLModel, table=True):
    """An opaque token that lets its holder join a project."""

    __tablename__ = "invite_link"

    id: str = SQLField(default_factory=lambda: str(uuid4()), primary_key=True)
    project_id: str = SQLField(index=True)
    token: str = SQLField(unique=True, index=True)
    created_by: str
    active: bool = True
    created_at: datetime = SQLField(default_factory=lambda: datetime.now(timezone.utc))


# === Pydantic-only models ===


class Member(BaseModel):
    """One user's membership in a project."""

    user_id: str
    role: Role
    joined_at: datetime | None = None

    def to_record(self) -> dict:
        return {
            "user_id": self.user_id,
            "role": self.role.value,
            "joined_at": self.joined_at.isoformat() if self.joined_at else None,
        }
