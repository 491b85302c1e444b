from __future__ import annotations

import json
from typing import Any

import pytest

from tasksync import cli
from tasksync.config import SyncConfig
from tasksync.models.task import TaskDocument
from tests.helpers.fakes import InMemoryDocumentStore, InMemoryTaskListService

USER = "ada@example.com"


@pytest.fixture()
def fakes(
    monkeypatch: pytest.MonkeyPatch,
) -> tuple[InMemoryTaskListService, InMemoryDocumentStore]:
    task_lists = InMemoryTaskListService()
    documents = InMemoryDocumentStore()
    task_lists.add_task("L1", "a", "Water plants", due="2022-04-05T00:00:00.000Z")
    documents.docs[(USER, "a")] = TaskDocument(
        name="Water plants", priority="low", est_time_to_complete=2, time_spent=0
    )

    async def _noop() -> None:
        return None

    def _build(cfg: SyncConfig) -> tuple[Any, Any, list[Any]]:
        return task_lists, documents, [_noop]

    monkeypatch.setattr(cli, "build_services", _build)
    monkeypatch.setenv("TASKSYNC_USER_KEY", USER)
    return task_lists, documents


def _run(argv: list[str], capsys: Any) -> dict[str, Any]:
    cli.main(argv)
    return json.loads(capsys.readouterr().out)


def test_list_prints_views(fakes: Any, capsys: Any) -> None:
    out = _run(["list"], capsys)
    assert out["complete"] is True
    assert out["tasks"][0]["id"] == "a"
    assert out["tasks"][0]["timeLeft"] == 2


def test_create_and_complete(fakes: Any, capsys: Any) -> None:
    task_lists, documents = fakes
    out = _run(["create", "--name", "Prune", "--due", "2022-04-05T17:23:42+00:00"], capsys)
    assert out["task"]["name"] == "Prune"
    assert out["task"]["dueDateAndTime"] == "2022-04-05T17:23:42.000Z"

    out = _run(["complete", "--id", "a"], capsys)
    assert out["task"]["id"] == "a"
    assert documents.docs[(USER, "a")].completed is True


def test_log_time(fakes: Any, capsys: Any) -> None:
    out = _run(["log-time", "--id", "a", "--hours", "1.5"], capsys)
    assert out["task"]["timeSpent"] == 1.5
    assert out["task"]["timeLeft"] == 0.5


def test_unknown_task_exits_with_error(fakes: Any, capsys: Any) -> None:
    with pytest.raises(SystemExit) as info:
        cli.main(["complete", "--id", "missing"])
    assert info.value.code == 1
    assert "missing" in capsys.readouterr().err


def test_empty_user_key_still_closes_clients(
    monkeypatch: pytest.MonkeyPatch, capsys: Any
) -> None:
    closed: list[str] = []

    async def _close() -> None:
        closed.append("closed")

    def _build(cfg: SyncConfig) -> tuple[Any, Any, list[Any]]:
        return InMemoryTaskListService(), InMemoryDocumentStore(), [_close]

    monkeypatch.setattr(cli, "build_services", _build)
    monkeypatch.setenv("TASKSYNC_USER_KEY", "")

    with pytest.raises(SystemExit) as info:
        cli.main(["list"])

    assert info.value.code == 1
    assert closed == ["closed"]
    assert "user_key" in capsys.readouterr().err
