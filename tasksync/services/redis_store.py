from __future__ import annotations

import json
from typing import Any

import redis
import redis.asyncio as aioredis
from pydantic import ValidationError

from tasksync.errors import RemoteUnavailable, wrap_remote_error
from tasksync.models.task import TaskDocument, split_due_time

SERVICE_NAME = "document_store"


class RedisDocumentStore:
    """Redis-backed task document store implementing ``DocumentStore``.

    Data structures:
    - Hash per task: key ``{prefix}:user:{user_key}:task:{task_id}`` with field ``json``
      holding the camelCase document.
    - Creation uses HSETNX so repeated ensures never clobber an existing document.
    - Completed tasks keep their document; only the ``completed`` flag flips.
    """

    def __init__(
        self,
        *,
        url: str = "redis://localhost:6379/0",
        key_prefix: str = "tasksync",
        client: Any | None = None,
    ) -> None:
        self._redis: Any = client if client is not None else aioredis.Redis.from_url(url)
        self._prefix = key_prefix.rstrip(":")

    async def aclose(self) -> None:
        await self._redis.aclose()

    def _task_key(self, user_key: str, task_id: str) -> str:
        return f"{self._prefix}:user:{user_key}:task:{task_id}"

    async def ensure_task_document(self, user_key: str, task_id: str, name: str) -> None:
        payload = _dump(TaskDocument(name=name))
        try:
            await self._redis.hsetnx(self._task_key(user_key, task_id), "json", payload)
        except redis.exceptions.RedisError as exc:
            raise _wrap(exc, "ensure_task_document") from exc

    async def get_task_document(self, user_key: str, task_id: str) -> TaskDocument | None:
        return await self._read(user_key, task_id, "get_task_document")

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
        doc = await self._read(user_key, task_id, "set_task_fields") or TaskDocument()
        doc.name = name
        doc.priority = priority
        doc.est_time_to_complete = est_time_to_complete
        doc.time_spent = time_spent
        doc.completed = completed
        doc.due_time = split_due_time(due)
        await self._write(user_key, task_id, doc, "set_task_fields")

    async def set_completed(self, user_key: str, task_id: str, completed: bool) -> None:
        doc = await self._read(user_key, task_id, "set_completed") or TaskDocument()
        doc.completed = completed
        await self._write(user_key, task_id, doc, "set_completed")

    async def set_time_spent(self, user_key: str, task_id: str, time_spent: float) -> None:
        doc = await self._read(user_key, task_id, "set_time_spent") or TaskDocument()
        doc.time_spent = time_spent
        await self._write(user_key, task_id, doc, "set_time_spent")

    async def _read(self, user_key: str, task_id: str, operation: str) -> TaskDocument | None:
        try:
            raw = await self._redis.hget(self._task_key(user_key, task_id), "json")
        except redis.exceptions.RedisError as exc:
            raise _wrap(exc, operation) from exc
        if raw is None:
            return None
        try:
            text = raw.decode("utf-8") if isinstance(raw, bytes) else str(raw)
            return TaskDocument.model_validate(json.loads(text))
        except (ValueError, ValidationError) as exc:
            raise wrap_remote_error(exc, SERVICE_NAME, operation, {"task_id": task_id}) from exc

    async def _write(self, user_key: str, task_id: str, doc: TaskDocument, operation: str) -> None:
        try:
            await self._redis.hset(
                self._task_key(user_key, task_id), mapping={"json": _dump(doc)}
            )
        except redis.exceptions.RedisError as exc:
            raise _wrap(exc, operation) from exc


def _wrap(exc: redis.exceptions.RedisError, operation: str) -> RemoteUnavailable:
    return wrap_remote_error(
        exc,
        SERVICE_NAME,
        operation,
        timed_out=isinstance(exc, redis.exceptions.TimeoutError),
    )


def _dump(doc: TaskDocument) -> str:
    return json.dumps(doc.to_wire(), separators=(",", ":"))


__all__ = ["RedisDocumentStore"]
