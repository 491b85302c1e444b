from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio

from tasksync.services.redis_store import RedisDocumentStore

pytestmark = pytest.mark.redis

USER = "ada@example.com"


@pytest.fixture()
def key_prefix() -> str:
    return f"testtasksync:{uuid.uuid4()}"


@pytest_asyncio.fixture()
async def store(redis_url: str, key_prefix: str) -> AsyncGenerator[RedisDocumentStore, None]:
    s = RedisDocumentStore(url=redis_url, key_prefix=key_prefix)
    yield s
    await s.aclose()


@pytest.mark.asyncio
async def test_ensure_is_idempotent(store: RedisDocumentStore) -> None:
    await store.ensure_task_document(USER, "t1", "Water")
    await store.set_time_spent(USER, "t1", 2.5)

    await store.ensure_task_document(USER, "t1", "Water again")

    doc = await store.get_task_document(USER, "t1")
    assert doc is not None
    assert doc.name == "Water"
    assert doc.time_spent == 2.5
    assert doc.completed is False


@pytest.mark.asyncio
async def test_missing_document_is_none(store: RedisDocumentStore) -> None:
    assert await store.get_task_document(USER, "absent") is None


@pytest.mark.asyncio
async def test_set_task_fields_derives_due_time(
    store: RedisDocumentStore, redis_url: str, key_prefix: str
) -> None:
    await store.ensure_task_document(USER, "t2", "Prune")
    await store.set_task_fields(
        USER,
        "t2",
        name="Prune",
        priority="high",
        est_time_to_complete=3,
        time_spent=0,
        completed=False,
        due="2022-04-05T17:23:42.000Z",
    )

    # a second instance sees the persisted document
    other = RedisDocumentStore(url=redis_url, key_prefix=key_prefix)
    try:
        doc = await other.get_task_document(USER, "t2")
    finally:
        await other.aclose()
    assert doc is not None
    assert doc.priority == "high"
    assert doc.est_time_to_complete == 3
    assert doc.due_time == "T17:23:42.000Z"


@pytest.mark.asyncio
async def test_set_completed_flags_without_deleting(store: RedisDocumentStore) -> None:
    await store.ensure_task_document(USER, "t3", "Repot")
    await store.set_completed(USER, "t3", True)

    doc = await store.get_task_document(USER, "t3")
    assert doc is not None
    assert doc.completed is True
    assert doc.name == "Repot"
