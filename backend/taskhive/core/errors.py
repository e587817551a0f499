"""Error taxonomy for the authorization and task-lifecycle core.

Every core function either returns a result or raises exactly one of these.
Hosts map ``kind`` to a status code; ``message`` is for display only.
"""

from __future__ import annotations


class TaskHiveError(Exception):
    """Base class for all core errors."""

    kind = "error"

    def __init__(self, message: str, *, field: str | None = None) -> None:
        self.message = message
        self.field = field
        super().__init__(message)

    def to_dict(self) -> dict:
        body = {"kind": self.kind, "detail": self.message}
        if self.field:
            body["field"] = self.field
        return body


class ValidationError(TaskHiveError):
    """Malformed or missing input. ``field`` names the offending input."""

    kind = "validation"


class InvalidRoleError(TaskHiveError):
    """A role string that is not one of the fixed roles."""

    kind = "invalid_role"

    def __init__(self, role: object) -> None:
        self.role = role
        super().__init__(f"Invalid role: {role!r}", field="role")


class ForbiddenError(TaskHiveError):
    """Actor lacks the capability or relationship required for the action."""

    kind = "forbidden"


class NotFoundError(TaskHiveError):
    """Referenced project, task, membership or token does not exist."""

    kind = "not_found"


class MembershipNotFoundError(NotFoundError):
    """The user holds no membership in the project."""

    def __init__(self, user_id: str, message: str = "User is not part of this project") -> None:
        self.user_id = user_id
        super().__init__(message)


class ConflictError(TaskHiveError):
    """Operation would duplicate existing state."""

    kind = "conflict"


class LastAdministratorError(TaskHiveError):
    """Mutation would leave the project without an administrator."""

    kind = "last_administrator"


class ConsistencyError(TaskHiveError):
    """A multi-step mutation completed only partially."""

    kind = "consistency"
