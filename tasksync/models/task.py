from __future__ import annotations

import datetime as _dt
import math
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from tasksync.errors import ValidationFailure


class Priority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def parse(cls, raw: Any) -> Priority:
        """Strict parse for caller input; raises ValidationFailure."""
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            raise ValidationFailure(
                f"priority must be one of {[p.value for p in cls]}, got {raw!r}"
            ) from None

    @classmethod
    def from_store(cls, raw: Any) -> Priority | None:
        """Lenient parse for stored documents; unknown values become None."""
        if raw is None:
            return None
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            return None


class PartialTask(BaseModel):
    """A task as seen by the task-list service alone, before enrichment.

    ``due_day`` is the service's RFC 3339 due value; only its date part is
    meaningful.
    """

    id: str
    task_list_id: str
    name: str
    due_day: str | None = None


class TaskDocument(BaseModel):
    """Per-task document held in the document store.

    Field names on the wire are camelCase (``estTimeToComplete``, ``dueTime``).
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str = ""
    priority: str | None = None
    est_time_to_complete: float | None = Field(default=None, alias="estTimeToComplete")
    time_spent: float = Field(default=0.0, alias="timeSpent")
    due_time: str | None = Field(default=None, alias="dueTime")
    completed: bool = False

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


@dataclass(slots=True, frozen=True)
class TimeTracking:
    estimate: float
    spent: float
    left: float


class TaskRecord(BaseModel):
    """The unified, locally cached view of one open task."""

    id: str
    task_list_id: str
    name: str
    due_date_and_time: str | None = None
    priority: Priority | None = None
    est_time_to_complete: float | None = None
    time_spent: float = 0.0

    @property
    def time_left(self) -> float | None:
        if self.est_time_to_complete is None:
            return None
        return max(0.0, self.est_time_to_complete - self.time_spent)

    def time_tracking(self) -> TimeTracking | None:
        if self.est_time_to_complete is None:
            return None
        return TimeTracking(
            estimate=self.est_time_to_complete,
            spent=self.time_spent,
            left=max(0.0, self.est_time_to_complete - self.time_spent),
        )

    def view(self) -> dict[str, Any]:
        """Display mapping; time fields only appear when an estimate exists."""
        out: dict[str, Any] = {
            "id": self.id,
            "taskListId": self.task_list_id,
            "name": self.name,
            "dueDateAndTime": self.due_date_and_time,
            "priority": self.priority.value if self.priority is not None else None,
        }
        tracking = self.time_tracking()
        if tracking is not None:
            out["estTimeToComplete"] = tracking.estimate
            out["timeSpent"] = tracking.spent
            out["timeLeft"] = tracking.left
        return out


def serialize_due(value: _dt.datetime) -> str:
    """Render an absolute timestamp as RFC 3339 UTC with millisecond precision.

    Naive datetimes are taken to be UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=_dt.UTC)
    text = value.astimezone(_dt.UTC).isoformat(timespec="milliseconds")
    return text.replace("+00:00", "Z")


def split_due_time(serialized: str) -> str:
    """Return the time-of-day suffix of a serialized timestamp, e.g. ``T17:23:42.000Z``."""
    return serialized[10:]


def merge_due(due_day: str | None, due_time: str | None) -> str | None:
    """Splice a stored time-of-day onto the date part of the service's due value."""
    if not due_day or not due_time:
        return due_day
    return due_day[:10] + due_time


def validate_hours(name: str, value: Any) -> float:
    if value is None:
        raise ValidationFailure(f"{name} is required")
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise ValidationFailure(f"{name} must be a number")
    hours = float(value)
    if not math.isfinite(hours) or hours < 0:
        raise ValidationFailure(f"{name} must be a finite, non-negative number")
    return hours


def validate_estimate(value: Any) -> float | None:
    if value is None:
        return None
    return validate_hours("est_time_to_complete", value)


def validate_name(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationFailure("name must be a non-empty string")
    return value.strip()


def validate_due(value: Any) -> _dt.datetime:
    if not isinstance(value, _dt.datetime):
        raise ValidationFailure("due date must be a datetime")
    return value


__all__ = [
    "PartialTask",
    "Priority",
    "TaskDocument",
    "TaskRecord",
    "TimeTracking",
    "merge_due",
    "serialize_due",
    "split_due_time",
    "validate_due",
    "validate_estimate",
    "validate_hours",
    "validate_name",
]
