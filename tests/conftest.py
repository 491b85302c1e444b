from __future__ import annotations

import os
import time
from collections.abc import Callable, Generator

import pytest

from tasksync.observability import reset_metrics
from tasksync.reconciler import TaskReconciler, TaskSession
from tests.helpers.fakes import InMemoryDocumentStore, InMemoryTaskListService


def _wait_until(timeout_s: float, pause_s: float, check: Callable[[], bool]) -> bool:
    deadline = time.time() + timeout_s
    while time.time() < deadline:
        if check():
            return True
        time.sleep(pause_s)
    return False


def _redis_ping(url: str) -> bool:
    try:
        import redis

        r = redis.Redis.from_url(url)
        return bool(r.ping())
    except Exception:
        return False


@pytest.fixture(scope="session")
def redis_url() -> str:
    """Provide a reachable Redis URL (REDIS_URL or localhost), else skip."""
    url = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    if _wait_until(2.0, 0.2, lambda: _redis_ping(url)):
        return url
    pytest.skip("Redis not available; set REDIS_URL or start local Redis")


@pytest.fixture()
def unique_prefix() -> str:
    # millisecond prefix to avoid collisions
    return f"test:{int(time.time() * 1000)}"


@pytest.fixture(autouse=True)
def _fresh_metrics() -> Generator[None, None, None]:
    reset_metrics()
    yield
    reset_metrics()


@pytest.fixture()
def calls() -> list[tuple[str, ...]]:
    return []


@pytest.fixture()
def task_lists(calls: list[tuple[str, ...]]) -> InMemoryTaskListService:
    return InMemoryTaskListService(calls)


@pytest.fixture()
def documents(calls: list[tuple[str, ...]]) -> InMemoryDocumentStore:
    return InMemoryDocumentStore(calls)


@pytest.fixture()
def reconciler(
    task_lists: InMemoryTaskListService, documents: InMemoryDocumentStore
) -> TaskReconciler:
    return TaskReconciler(task_lists, documents, remote_timeout_s=0.5)


@pytest.fixture()
def session() -> TaskSession:
    return TaskSession("ada@example.com", session_id="sess-1")
