from __future__ import annotations

import json
from collections.abc import Callable

import httpx
import pytest

from tasksync.errors import RemoteTimeout, RemoteUnavailable
from tasksync.services.google_tasks import GoogleTasksService

BASE = "https://tasks.test/tasks/v1"


def _service(
    handler: Callable[[httpx.Request], httpx.Response],
) -> tuple[GoogleTasksService, httpx.AsyncClient]:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GoogleTasksService("tok-123", base_url=BASE, client=client), client


@pytest.mark.asyncio
async def test_list_task_lists_follows_pagination() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.params.get("pageToken") == "p2":
            return httpx.Response(200, json={"items": [{"id": "L2", "title": "Garden"}]})
        return httpx.Response(
            200, json={"items": [{"id": "L1", "title": "Home"}], "nextPageToken": "p2"}
        )

    svc, client = _service(handler)
    async with client:
        lists = await svc.list_task_lists()

    assert [entry.list_id for entry in lists] == ["L1", "L2"]
    assert seen[0].url.path == "/tasks/v1/users/@me/lists"
    assert seen[0].headers["Authorization"] == "Bearer tok-123"
    assert len(seen) == 2


@pytest.mark.asyncio
async def test_list_tasks_requests_completed_and_maps_fields() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/tasks/v1/lists/L1/tasks"
        assert request.url.params["showCompleted"] == "true"
        return httpx.Response(
            200,
            json={
                "items": [
                    {"id": "a", "title": "Water", "status": "needsAction", "due": "2022-04-05T00:00:00.000Z"},
                    {"id": "b", "title": "Repot", "status": "completed"},
                ]
            },
        )

    svc, client = _service(handler)
    async with client:
        tasks = await svc.list_tasks("L1")

    assert [(t.task_id, t.completed) for t in tasks] == [("a", False), ("b", True)]
    assert tasks[0].due == "2022-04-05T00:00:00.000Z"
    assert tasks[1].due is None


@pytest.mark.asyncio
async def test_create_update_complete_payloads() -> None:
    seen: list[tuple[str, str, dict[str, str]]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content.decode("utf-8"))
        seen.append((request.method, request.url.path, body))
        return httpx.Response(200, json={"id": "new-7", **body})

    svc, client = _service(handler)
    async with client:
        created = await svc.create_task("Prune", "2022-04-05T17:23:42.000Z", "@default")
        updated = await svc.update_task("new-7", "L1", "Prune more", "2022-04-06T00:00:00.000Z")
        await svc.complete_task("new-7", "L1")

    assert created == "new-7"
    assert updated == "new-7"
    assert seen == [
        ("POST", "/tasks/v1/lists/@default/tasks", {"title": "Prune", "due": "2022-04-05T17:23:42.000Z"}),
        (
            "PATCH",
            "/tasks/v1/lists/L1/tasks/new-7",
            {"title": "Prune more", "due": "2022-04-06T00:00:00.000Z"},
        ),
        ("PATCH", "/tasks/v1/lists/L1/tasks/new-7", {"status": "completed"}),
    ]


@pytest.mark.asyncio
async def test_http_error_status_raises_remote_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="backend down")

    svc, client = _service(handler)
    async with client:
        with pytest.raises(RemoteUnavailable) as info:
            await svc.list_task_lists()

    assert info.value.operation == "list_task_lists"
    assert info.value.details["status_code"] == 503


@pytest.mark.asyncio
async def test_transport_timeout_raises_remote_timeout() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    svc, client = _service(handler)
    async with client:
        with pytest.raises(RemoteTimeout):
            await svc.list_tasks("L1")


@pytest.mark.asyncio
async def test_create_without_id_in_response_fails() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={})

    svc, client = _service(handler)
    async with client:
        with pytest.raises(RemoteUnavailable):
            await svc.create_task("Prune", "2022-04-05T00:00:00.000Z", "@default")
