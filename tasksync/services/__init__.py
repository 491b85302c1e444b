from .interface import DocumentStore, RemoteTask, TaskListEntry, TaskListService

__all__ = ["DocumentStore", "RemoteTask", "TaskListEntry", "TaskListService"]
