"""Dependency error taxonomy.

Every validation failure is raised as a DependencyError subclass carrying a
stable ``code``. The MCP tools layer turns these into error dicts and the REST
layer into HTTP status codes; nothing below that layer swallows them.
"""

from typing import Any

from taskflow.models import MAX_DEPENDENCIES_PER_TASK


class DependencyError(Exception):
    """Base class for all dependency graph errors."""

    code = "UNKNOWN"
    default_message = "Unknown dependency error"

    def __init__(
        self, message: str | None = None, details: dict[str, Any] | None = None
    ) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "message": self.message, "details": self.details}


class SelfReferenceError(DependencyError):
    code = "SELF_REFERENCE"
    default_message = "A task cannot depend on itself"


class TaskNotFoundError(DependencyError):
    code = "TASK_NOT_FOUND"
    default_message = "One or both tasks could not be found"


class DuplicateDependencyError(DependencyError):
    code = "DUPLICATE"
    default_message = "This dependency already exists"


class DependencyLimitError(DependencyError):
    code = "LIMIT_EXCEEDED"
    default_message = (
        f"Maximum of {MAX_DEPENDENCIES_PER_TASK} dependencies per task reached"
    )

    def __init__(self, limit: int = MAX_DEPENDENCIES_PER_TASK) -> None:
        super().__init__(
            f"Maximum of {limit} dependencies per task reached", {"limit": limit}
        )


class CircularDependencyError(DependencyError):
    code = "CIRCULAR"
    default_message = "This would create a circular dependency"

    def __init__(self, path: list[str]) -> None:
        super().__init__(details={"path": list(path)})
        self.path = list(path)


class DependencyNotFoundError(DependencyError):
    code = "NOT_FOUND"
    default_message = "Dependency not found"
