from tasksync.errors import (
    RemoteTimeout,
    RemoteUnavailable,
    SessionNotInitialized,
    TaskNotFound,
    TaskSyncError,
    ValidationFailure,
)
from tasksync.models.task import Priority, TaskRecord
from tasksync.reconciler import FetchOutcome, LoadFailure, TaskReconciler, TaskSession

__all__ = [
    "FetchOutcome",
    "LoadFailure",
    "Priority",
    "RemoteTimeout",
    "RemoteUnavailable",
    "SessionNotInitialized",
    "TaskNotFound",
    "TaskReconciler",
    "TaskRecord",
    "TaskSession",
    "TaskSyncError",
    "ValidationFailure",
]
