"""Application-level exception types.

Convention:
- ``GraphValidationError`` (a ``ValueError``): for rejected graph mutations
  whose message is safe to forward to clients. Each subclass carries a
  ``status_code`` hint that a transport layer may map to its own codes.
  A rejected mutation never changes the committed graph or its schedule.
- ``InternalServerError``: for errors whose details must never reach clients.
  ``InconsistentGraphStateError`` is the only one raised by the engine: it
  signals that a committed graph broke the DAG invariant, which is a
  programming error rather than a recoverable condition.
"""

from __future__ import annotations


class GraphValidationError(ValueError):
    """Base class for rejected graph operations."""

    status_code: int = 400


class InvalidEdgeError(GraphValidationError):
    """Raised for a self-loop (a task depending on itself)."""

    def __init__(self, task_id: int) -> None:
        self.task_id = task_id
        super().__init__(f"Task {task_id} cannot depend on itself")


class CycleDetectedError(GraphValidationError):
    """Raised when a proposed edge would close a dependency cycle."""

    def __init__(self, dependent_id: int, dependency_id: int) -> None:
        self.dependent_id = dependent_id
        self.dependency_id = dependency_id
        super().__init__(
            f"Circular dependency detected: task {dependent_id} "
            f"cannot depend on task {dependency_id}"
        )


class DuplicateEdgeError(GraphValidationError):
    """Raised when the proposed edge is already committed."""

    def __init__(self, dependent_id: int, dependency_id: int) -> None:
        self.dependent_id = dependent_id
        self.dependency_id = dependency_id
        super().__init__(f"Task {dependent_id} already depends on task {dependency_id}")


class UnknownTaskError(GraphValidationError):
    """Raised when a referenced task id is not in the snapshot."""

    status_code = 404

    def __init__(self, task_id: int) -> None:
        self.task_id = task_id
        super().__init__(f"Task {task_id} not found")


class EdgeNotFoundError(GraphValidationError):
    """Raised when removing an edge that is not committed."""

    status_code = 404

    def __init__(self, dependent_id: int, dependency_id: int) -> None:
        self.dependent_id = dependent_id
        self.dependency_id = dependency_id
        super().__init__(f"Dependency of task {dependent_id} on task {dependency_id} not found")


class InternalServerError(Exception):
    """Raised for internal errors whose details must not be exposed to clients."""

    status_code: int = 500


class InconsistentGraphStateError(InternalServerError):
    """Raised when a committed graph is found to contain a cycle."""
