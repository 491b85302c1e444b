from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from tasksync.models.task import TaskDocument


@dataclass(slots=True, frozen=True)
class TaskListEntry:
    list_id: str
    title: str = ""


@dataclass(slots=True, frozen=True)
class RemoteTask:
    task_id: str
    title: str
    status: str
    due: str | None = None

    @property
    def completed(self) -> bool:
        return self.status == "completed"


class TaskListService(Protocol):
    """Task-list service contract (Google Tasks or a stand-in).

    Authoritative for task existence and completion status. Implementations
    raise ``RemoteUnavailable`` on any transport or HTTP failure.
    """

    async def list_task_lists(self) -> list[TaskListEntry]:
        """Enumerate every task list owned by the session's user."""

    async def list_tasks(self, list_id: str) -> list[RemoteTask]:
        """Enumerate tasks of one list, completed ones included."""

    async def create_task(self, name: str, due: str, list_id: str) -> str:
        """Create a task and return its new id."""

    async def update_task(self, task_id: str, list_id: str, name: str, due: str) -> str:
        """Update title/due of a task and return the id the service reports."""

    async def complete_task(self, task_id: str, list_id: str) -> None:
        """Mark a task completed."""


class DocumentStore(Protocol):
    """Per-user, per-task document store contract (Firestore or a stand-in)."""

    async def ensure_task_document(self, user_key: str, task_id: str, name: str) -> None:
        """Create a default document if absent; a no-op when one exists."""

    async def get_task_document(self, user_key: str, task_id: str) -> TaskDocument | None:
        """Return the stored document, or None when absent."""

    async def set_task_fields(
        self,
        user_key: str,
        task_id: str,
        *,
        name: str,
        priority: str | None,
        est_time_to_complete: float | None,
        time_spent: float,
        completed: bool,
        due: str,
    ) -> None:
        """Overwrite the mutable fields; ``due`` is a serialized timestamp."""

    async def set_completed(self, user_key: str, task_id: str, completed: bool) -> None: ...

    async def set_time_spent(self, user_key: str, task_id: str, time_spent: float) -> None: ...


__all__ = ["DocumentStore", "RemoteTask", "TaskListEntry", "TaskListService"]
