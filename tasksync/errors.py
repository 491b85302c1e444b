from __future__ import annotations

from typing import Any


class TaskSyncError(Exception):
    """Base class for every failure raised by tasksync."""

    def __init__(
        self,
        message: str,
        *,
        details: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.message = message
        self.details = details or {}
        self.cause = cause
        super().__init__(message)


class RemoteUnavailable(TaskSyncError):
    """A call to the task-list service or the document store failed."""

    def __init__(
        self,
        message: str,
        *,
        service_name: str,
        operation: str,
        details: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.service_name = service_name
        self.operation = operation
        super().__init__(message, details=details, cause=cause)


class RemoteTimeout(RemoteUnavailable):
    """A remote call did not answer within the configured timeout."""


class TaskNotFound(TaskSyncError, LookupError):
    def __init__(self, task_id: str) -> None:
        self.task_id = task_id
        super().__init__(f"task {task_id!r} is not in the local collection")


class ValidationFailure(TaskSyncError, ValueError):
    pass


class SessionNotInitialized(TaskSyncError):
    pass


def wrap_remote_error(
    exc: BaseException,
    service_name: str,
    operation: str,
    details: dict[str, Any] | None = None,
    *,
    timed_out: bool = False,
) -> RemoteUnavailable:
    """Wrap a transport exception into a RemoteUnavailable (or RemoteTimeout) with context."""
    error_details = dict(details or {})
    error_details.update({"original_error": str(exc), "error_type": type(exc).__name__})
    cls = RemoteTimeout if timed_out else RemoteUnavailable
    return cls(
        f"{service_name} operation '{operation}' failed: {exc}",
        service_name=service_name,
        operation=operation,
        details=error_details,
        cause=exc,
    )


__all__ = [
    "RemoteTimeout",
    "RemoteUnavailable",
    "SessionNotInitialized",
    "TaskNotFound",
    "TaskSyncError",
    "ValidationFailure",
    "wrap_remote_error",
]
