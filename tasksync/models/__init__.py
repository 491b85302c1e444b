from .task import (
    PartialTask,
    Priority,
    TaskDocument,
    TaskRecord,
    TimeTracking,
    merge_due,
    serialize_due,
    split_due_time,
)

__all__ = [
    "PartialTask",
    "Priority",
    "TaskDocument",
    "TaskRecord",
    "TimeTracking",
    "merge_due",
    "serialize_due",
    "split_due_time",
]
