from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from tasksync.services.google_tasks import DEFAULT_BASE_URL


@dataclass(slots=True)
class SyncConfig:
    access_token: str | None
    user_key: str
    redis_url: str
    key_prefix: str
    tasks_base_url: str
    default_list_id: str
    remote_timeout_s: float
    fetch_concurrency: int


def _read_timeout(raw: str | None, default: float = 10.0) -> float:
    try:
        value = float((raw or "").strip()) if (raw or "").strip() else default
    except ValueError:
        return default
    return value if value > 0 else default


def _read_concurrency(raw: str | None, default: int = 4) -> int:
    try:
        value = int((raw or "").strip()) if (raw or "").strip() else default
    except ValueError:
        value = default
    return max(1, value)


def load_config(env: Mapping[str, str] | None = None) -> SyncConfig:
    e: dict[str, Any] = dict(os.environ)
    if env:
        e.update(env)
    return SyncConfig(
        access_token=e.get("GOOGLE_ACCESS_TOKEN") or None,
        user_key=e.get("TASKSYNC_USER_KEY", ""),
        redis_url=e.get("REDIS_URL", "redis://localhost:6379/0"),
        key_prefix=e.get("TASKSYNC_STORE_PREFIX", "tasksync"),
        tasks_base_url=e.get("GOOGLE_TASKS_BASE_URL", DEFAULT_BASE_URL),
        default_list_id=e.get("TASKSYNC_DEFAULT_LIST") or "@default",
        remote_timeout_s=_read_timeout(e.get("TASKSYNC_REMOTE_TIMEOUT")),
        fetch_concurrency=_read_concurrency(e.get("TASKSYNC_FETCH_CONCURRENCY")),
    )


__all__ = ["SyncConfig", "load_config"]
