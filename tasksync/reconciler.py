from __future__ import annotations

import asyncio
import datetime as _dt
import time
import uuid
from collections.abc import Awaitable
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from tasksync.errors import (
    RemoteTimeout,
    RemoteUnavailable,
    SessionNotInitialized,
    TaskNotFound,
    ValidationFailure,
)
from tasksync.models.task import (
    PartialTask,
    Priority,
    TaskDocument,
    TaskRecord,
    merge_due,
    serialize_due,
    validate_due,
    validate_estimate,
    validate_hours,
    validate_name,
)
from tasksync.observability import get_json_logger, get_metrics, use_session_context
from tasksync.services.interface import (
    DocumentStore,
    RemoteTask,
    TaskListEntry,
    TaskListService,
)

TASK_LISTS = "task_lists"
DOCUMENTS = "documents"

T = TypeVar("T")


@dataclass(slots=True)
class LoadFailure:
    """One tolerated remote failure during initial load."""

    operation: str
    target: str | None
    error: RemoteUnavailable


@dataclass(slots=True)
class FetchOutcome(Generic[T]):
    items: list[T]
    failures: list[LoadFailure] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        """False when any sub-call failed and ``items`` may be partial."""
        return not self.failures


class TaskSession:
    """Local task collection for one user session.

    Records are keyed by id; dict insertion order is discovery order. The
    session lock serializes initialization and every mutating operation.
    """

    def __init__(self, user_key: str, *, session_id: str | None = None) -> None:
        if not user_key:
            raise ValidationFailure("user_key must be non-empty")
        self.user_key = user_key
        self.session_id = session_id or str(uuid.uuid4())
        self.initialized = False
        self.lock = asyncio.Lock()
        self._records: dict[str, TaskRecord] = {}

    @property
    def records(self) -> list[TaskRecord]:
        if not self.initialized:
            raise SessionNotInitialized("session has not been initialized yet")
        return list(self._records.values())

    def __len__(self) -> int:
        return len(self._records)

    def find_index(self, task_id: str) -> int:
        for i, record in enumerate(self._records.values()):
            if record.id == task_id:
                return i
        raise TaskNotFound(task_id)

    def get(self, task_id: str) -> TaskRecord:
        record = self._records.get(task_id)
        if record is None:
            raise TaskNotFound(task_id)
        return record

    def _replace_all(self, records: list[TaskRecord]) -> None:
        self._records = {r.id: r for r in records}

    def _append(self, record: TaskRecord) -> None:
        self._records[record.id] = record

    def _replace(self, task_id: str, record: TaskRecord) -> TaskRecord | None:
        """Swap in ``record`` for ``task_id``, re-keying in place if the id changed.

        When the new id already belongs to another local record, that record is
        stale (it names the same remote task) and is dropped; it is returned so
        the caller can report it.
        """
        if record.id == task_id:
            self._records[task_id] = record
            return None
        displaced = self._records.get(record.id)
        self._records = {
            (record.id if k == task_id else k): (record if k == task_id else v)
            for k, v in self._records.items()
            if k != record.id
        }
        return displaced

    def _remove(self, task_id: str) -> TaskRecord:
        return self._records.pop(task_id)


class TaskReconciler:
    """Merges the task-list service and the document store into a session.

    Every mutation writes through to both remote services before the local
    collection changes; a remote failure propagates and leaves local state
    untouched. Initial load tolerates sub-call failures and reports them on
    the returned ``FetchOutcome``.
    """

    def __init__(
        self,
        task_lists: TaskListService,
        documents: DocumentStore,
        *,
        default_list_id: str = "@default",
        remote_timeout_s: float = 10.0,
        fetch_concurrency: int = 4,
    ) -> None:
        self._task_lists = task_lists
        self._documents = documents
        self._default_list_id = default_list_id
        self._timeout = remote_timeout_s
        self._concurrency = max(1, fetch_concurrency)
        self._logger = get_json_logger("tasksync.reconciler")

    # ----------------------------
    # Load
    # ----------------------------
    async def load_open_tasks(self, session: TaskSession) -> FetchOutcome[PartialTask]:
        """Enumerate every list and keep the tasks not marked completed."""
        try:
            lists: list[TaskListEntry] = await self._call(
                TASK_LISTS, "list_task_lists", self._task_lists.list_task_lists()
            )
        except RemoteUnavailable as exc:
            failure = self._tolerate("list_task_lists", None, exc)
            return FetchOutcome(items=[], failures=[failure])

        semaphore = asyncio.Semaphore(self._concurrency)

        async def fetch(entry: TaskListEntry) -> tuple[list[RemoteTask], LoadFailure | None]:
            async with semaphore:
                try:
                    tasks = await self._call(
                        TASK_LISTS,
                        "list_tasks",
                        self._task_lists.list_tasks(entry.list_id),
                        list_id=entry.list_id,
                    )
                except RemoteUnavailable as exc:
                    return [], self._tolerate("list_tasks", entry.list_id, exc)
                return tasks, None

        results = await asyncio.gather(*(fetch(entry) for entry in lists))

        partials: list[PartialTask] = []
        failures: list[LoadFailure] = []
        seen: set[str] = set()
        for entry, (tasks, failure) in zip(lists, results, strict=True):
            if failure is not None:
                failures.append(failure)
            for task in tasks:
                if task.completed or task.task_id in seen:
                    continue
                seen.add(task.task_id)
                partials.append(
                    PartialTask(
                        id=task.task_id,
                        task_list_id=entry.list_id,
                        name=task.title,
                        due_day=task.due,
                    )
                )
        return FetchOutcome(items=partials, failures=failures)

    async def enrich_from_store(
        self, session: TaskSession, partials: list[PartialTask]
    ) -> FetchOutcome[TaskRecord]:
        """Attach document-store fields to each partial task, creating documents on first sight."""
        semaphore = asyncio.Semaphore(self._concurrency)

        async def enrich(partial: PartialTask) -> TaskRecord | LoadFailure:
            async with semaphore:
                try:
                    await self._call(
                        DOCUMENTS,
                        "ensure_task_document",
                        self._documents.ensure_task_document(
                            session.user_key, partial.id, partial.name
                        ),
                        task_id=partial.id,
                    )
                    doc = await self._call(
                        DOCUMENTS,
                        "get_task_document",
                        self._documents.get_task_document(session.user_key, partial.id),
                        task_id=partial.id,
                    )
                except RemoteUnavailable as exc:
                    return self._tolerate("enrich", partial.id, exc)
            return self._merge(partial, doc or TaskDocument(name=partial.name))

        results = await asyncio.gather(*(enrich(p) for p in partials))
        records = [r for r in results if isinstance(r, TaskRecord)]
        failures = [r for r in results if isinstance(r, LoadFailure)]
        return FetchOutcome(items=records, failures=failures)

    async def initialize(self, session: TaskSession) -> FetchOutcome[TaskRecord]:
        """Load open tasks, enrich them and replace the session's collection."""
        async with session.lock:
            with use_session_context(session.session_id):
                started = time.perf_counter()
                loaded = await self.load_open_tasks(session)
                enriched = await self.enrich_from_store(session, loaded.items)
                session._replace_all(enriched.items)
                session.initialized = True

                outcome = FetchOutcome(
                    items=session.records, failures=loaded.failures + enriched.failures
                )
                get_metrics().increment("tasks_loaded", amount=len(outcome.items))
                self._logger.info(
                    "tasks loaded",
                    extra={
                        "event": "load_completed",
                        "duration_ms": (time.perf_counter() - started) * 1000.0,
                        "metadata": {
                            "tasks": len(outcome.items),
                            "failures": len(outcome.failures),
                        },
                    },
                )
                return outcome

    # ----------------------------
    # Mutations
    # ----------------------------
    async def create_task(
        self,
        session: TaskSession,
        name: str,
        due_date: _dt.datetime,
        priority: Priority | str,
        est_time_to_complete: float | None = None,
    ) -> TaskRecord:
        name = validate_name(name)
        due = serialize_due(validate_due(due_date))
        prio = Priority.parse(priority)
        estimate = validate_estimate(est_time_to_complete)

        async with session.lock:
            with use_session_context(session.session_id):
                task_id: str = await self._call(
                    TASK_LISTS,
                    "create_task",
                    self._task_lists.create_task(name, due, self._default_list_id),
                )
                await self._call(
                    DOCUMENTS,
                    "ensure_task_document",
                    self._documents.ensure_task_document(session.user_key, task_id, name),
                    task_id=task_id,
                )
                await self._call(
                    DOCUMENTS,
                    "set_task_fields",
                    self._documents.set_task_fields(
                        session.user_key,
                        task_id,
                        name=name,
                        priority=prio.value,
                        est_time_to_complete=estimate,
                        time_spent=0.0,
                        completed=False,
                        due=due,
                    ),
                    task_id=task_id,
                )
                record = TaskRecord(
                    id=task_id,
                    task_list_id=self._default_list_id,
                    name=name,
                    due_date_and_time=due,
                    priority=prio,
                    est_time_to_complete=estimate,
                    time_spent=0.0,
                )
                session._append(record)
                get_metrics().increment("tasks_created")
                self._logger.info(
                    "task created", extra={"event": "task_created", "task_id": task_id}
                )
                return record

    async def update_task(
        self,
        session: TaskSession,
        task_id: str,
        task_list_id: str,
        name: str,
        due_date: _dt.datetime,
        priority: Priority | str,
        est_time_to_complete: float | None,
        time_spent: float,
    ) -> TaskRecord:
        name = validate_name(name)
        due = serialize_due(validate_due(due_date))
        prio = Priority.parse(priority)
        estimate = validate_estimate(est_time_to_complete)
        spent = validate_hours("time_spent", time_spent)

        async with session.lock:
            with use_session_context(session.session_id):
                session.find_index(task_id)
                new_id: str = await self._call(
                    TASK_LISTS,
                    "update_task",
                    self._task_lists.update_task(task_id, task_list_id, name, due),
                    task_id=task_id,
                )
                await self._call(
                    DOCUMENTS,
                    "set_task_fields",
                    self._documents.set_task_fields(
                        session.user_key,
                        new_id,
                        name=name,
                        priority=prio.value,
                        est_time_to_complete=estimate,
                        time_spent=spent,
                        completed=False,
                        due=due,
                    ),
                    task_id=new_id,
                )
                if new_id != task_id:
                    self._logger.warning(
                        "task id changed on update",
                        extra={
                            "event": "task_id_changed",
                            "task_id": task_id,
                            "metadata": {"new_id": new_id},
                        },
                    )
                record = TaskRecord(
                    id=new_id,
                    task_list_id=task_list_id,
                    name=name,
                    due_date_and_time=due,
                    priority=prio,
                    est_time_to_complete=estimate,
                    time_spent=spent,
                )
                displaced = session._replace(task_id, record)
                if displaced is not None:
                    self._logger.warning(
                        "updated task id collided with a local record",
                        extra={
                            "event": "task_id_collision",
                            "task_id": new_id,
                            "metadata": {"previous_id": task_id, "dropped_name": displaced.name},
                        },
                    )
                get_metrics().increment("tasks_updated")
                self._logger.info(
                    "task updated", extra={"event": "task_updated", "task_id": new_id}
                )
                return record

    async def complete_task(self, session: TaskSession, task_id: str) -> TaskRecord:
        """Flag the task complete remotely and drop it from the session.

        Both remote calls are issued concurrently; if either fails the first
        error is raised and the local record is kept. There is no rollback of
        the call that succeeded.
        """
        async with session.lock:
            with use_session_context(session.session_id):
                record = session.get(task_id)
                results = await asyncio.gather(
                    self._call(
                        DOCUMENTS,
                        "set_completed",
                        self._documents.set_completed(session.user_key, task_id, True),
                        task_id=task_id,
                    ),
                    self._call(
                        TASK_LISTS,
                        "complete_task",
                        self._task_lists.complete_task(task_id, record.task_list_id),
                        task_id=task_id,
                    ),
                    return_exceptions=True,
                )
                for result in results:
                    if isinstance(result, BaseException):
                        raise result
                removed = session._remove(task_id)
                get_metrics().increment("tasks_completed")
                self._logger.info(
                    "task completed", extra={"event": "task_completed", "task_id": task_id}
                )
                return removed

    async def log_time_spent(self, session: TaskSession, task_id: str, hours: float) -> TaskRecord:
        added = validate_hours("hours", hours)
        async with session.lock:
            with use_session_context(session.session_id):
                record = session.get(task_id)
                if record.est_time_to_complete is None:
                    raise ValidationFailure(
                        f"task {task_id!r} has no time estimate; time tracking is disabled"
                    )
                total = record.time_spent + added
                await self._call(
                    DOCUMENTS,
                    "set_time_spent",
                    self._documents.set_time_spent(session.user_key, task_id, total),
                    task_id=task_id,
                )
                record.time_spent = total
                self._logger.info(
                    "time logged",
                    extra={
                        "event": "time_logged",
                        "task_id": task_id,
                        "metadata": {"added": added, "total": total},
                    },
                )
                return record

    async def reset_time_spent(self, session: TaskSession, task_id: str) -> TaskRecord:
        async with session.lock:
            with use_session_context(session.session_id):
                record = session.get(task_id)
                await self._call(
                    DOCUMENTS,
                    "set_time_spent",
                    self._documents.set_time_spent(session.user_key, task_id, 0.0),
                    task_id=task_id,
                )
                record.time_spent = 0.0
                self._logger.info(
                    "time reset",
                    extra={"event": "time_reset", "task_id": task_id, "metadata": {"total": 0}},
                )
                return record

    # ----------------------------
    # Internal helpers
    # ----------------------------
    def _merge(self, partial: PartialTask, doc: TaskDocument) -> TaskRecord:
        priority = Priority.from_store(doc.priority)
        if priority is None and doc.priority is not None:
            self._logger.warning(
                "unrecognized priority in stored document",
                extra={
                    "event": "priority_unrecognized",
                    "task_id": partial.id,
                    "metadata": {"priority": str(doc.priority)[:40]},
                },
            )
        return TaskRecord(
            id=partial.id,
            task_list_id=partial.task_list_id,
            name=partial.name,
            due_date_and_time=merge_due(partial.due_day, doc.due_time),
            priority=priority,
            est_time_to_complete=doc.est_time_to_complete,
            time_spent=doc.time_spent,
        )

    async def _call(
        self, service_name: str, operation: str, awaitable: Awaitable[T], **fields: Any
    ) -> T:
        labels = {"service": service_name, "operation": operation}
        metrics = get_metrics()
        metrics.increment("remote_calls", labels)
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        except TimeoutError as exc:
            metrics.increment("remote_timeouts", labels)
            self._logger.error(
                "remote call timed out",
                extra={
                    "event": "remote_timeout",
                    "service_name": service_name,
                    "operation": operation,
                    **fields,
                },
            )
            raise RemoteTimeout(
                f"{service_name} operation '{operation}' timed out after {self._timeout}s",
                service_name=service_name,
                operation=operation,
                details=dict(fields),
                cause=exc,
            ) from exc
        except RemoteTimeout as exc:
            # adapter-level timeout (transport or store client)
            metrics.increment("remote_timeouts", labels)
            self._logger.error(
                "remote call timed out",
                extra={
                    "event": "remote_timeout",
                    "service_name": service_name,
                    "operation": operation,
                    "metadata": {"error": str(exc)[:200]},
                    **fields,
                },
            )
            raise
        except RemoteUnavailable as exc:
            metrics.increment("remote_errors", labels)
            self._logger.error(
                "remote call failed",
                extra={
                    "event": "remote_error",
                    "service_name": service_name,
                    "operation": operation,
                    "metadata": {"error": str(exc)[:200]},
                    **fields,
                },
            )
            raise

    def _tolerate(self, operation: str, target: str | None, exc: RemoteUnavailable) -> LoadFailure:
        self._logger.warning(
            "partial load",
            extra={
                "event": "load_partial",
                "operation": operation,
                "metadata": {"target": target, "error": str(exc)[:200]},
            },
        )
        return LoadFailure(operation=operation, target=target, error=exc)


__all__ = ["FetchOutcome", "LoadFailure", "TaskReconciler", "TaskSession"]
