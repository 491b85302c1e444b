from __future__ import annotations

from typing import Any

import httpx

from tasksync.errors import RemoteUnavailable, wrap_remote_error
from tasksync.observability import get_json_logger

from .interface import RemoteTask, TaskListEntry

SERVICE_NAME = "google_tasks"
DEFAULT_BASE_URL = "https://tasks.googleapis.com/tasks/v1"
_PAGE_SIZE = 100


class GoogleTasksService:
    """Google Tasks REST adapter implementing ``TaskListService``.

    - Authenticates every request with a bearer access token.
    - Follows ``nextPageToken`` for list and task enumeration.
    - Requests completed and hidden tasks too; open/closed filtering belongs
      to the caller.
    """

    def __init__(
        self,
        access_token: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout_s: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._headers = {"Authorization": f"Bearer {access_token}"}
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout_s))
        self._logger = get_json_logger("tasksync.services.google_tasks")

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> GoogleTasksService:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # ----------------------------
    # TaskListService
    # ----------------------------
    async def list_task_lists(self) -> list[TaskListEntry]:
        items = await self._paginate("list_task_lists", "/users/@me/lists", {})
        return [
            TaskListEntry(list_id=str(item["id"]), title=str(item.get("title") or ""))
            for item in items
            if item.get("id")
        ]

    async def list_tasks(self, list_id: str) -> list[RemoteTask]:
        params = {"showCompleted": "true", "showHidden": "true"}
        items = await self._paginate("list_tasks", f"/lists/{list_id}/tasks", params)
        return [_to_remote_task(item) for item in items if item.get("id")]

    async def create_task(self, name: str, due: str, list_id: str) -> str:
        data = await self._request(
            "create_task", "POST", f"/lists/{list_id}/tasks", json={"title": name, "due": due}
        )
        return _require_id(data, "create_task")

    async def update_task(self, task_id: str, list_id: str, name: str, due: str) -> str:
        data = await self._request(
            "update_task",
            "PATCH",
            f"/lists/{list_id}/tasks/{task_id}",
            json={"title": name, "due": due},
        )
        return _require_id(data, "update_task")

    async def complete_task(self, task_id: str, list_id: str) -> None:
        await self._request(
            "complete_task",
            "PATCH",
            f"/lists/{list_id}/tasks/{task_id}",
            json={"status": "completed"},
        )

    # ----------------------------
    # Internal helpers
    # ----------------------------
    async def _paginate(
        self, operation: str, path: str, params: dict[str, str]
    ) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        page_token: str | None = None
        while True:
            query = dict(params, maxResults=str(_PAGE_SIZE))
            if page_token:
                query["pageToken"] = page_token
            data = await self._request(operation, "GET", path, params=query)
            items.extend(x for x in data.get("items") or [] if isinstance(x, dict))
            page_token = data.get("nextPageToken")
            if not page_token:
                return items

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        url = f"{self._base_url}{path}"
        self._logger.debug(
            "remote request",
            extra={
                "event": "remote_call",
                "service_name": SERVICE_NAME,
                "operation": operation,
                "metadata": {"method": method, "path": path},
            },
        )
        try:
            resp = await self._client.request(
                method, url, params=params, json=json, headers=self._headers
            )
        except httpx.HTTPError as exc:
            raise wrap_remote_error(
                exc,
                SERVICE_NAME,
                operation,
                {"path": path},
                timed_out=isinstance(exc, httpx.TimeoutException),
            ) from exc
        if resp.status_code >= 400:
            raise RemoteUnavailable(
                f"{SERVICE_NAME} operation '{operation}' failed: HTTP {resp.status_code}",
                service_name=SERVICE_NAME,
                operation=operation,
                details={"status_code": resp.status_code, "body": resp.text[:200]},
            )
        if not resp.content:
            return {}
        try:
            data = resp.json()
        except ValueError as exc:
            raise wrap_remote_error(exc, SERVICE_NAME, operation, {"path": path}) from exc
        return data if isinstance(data, dict) else {}


def _to_remote_task(item: dict[str, Any]) -> RemoteTask:
    return RemoteTask(
        task_id=str(item["id"]),
        title=str(item.get("title") or ""),
        status=str(item.get("status") or "needsAction"),
        due=item.get("due"),
    )


def _require_id(data: dict[str, Any], operation: str) -> str:
    task_id = data.get("id")
    if not task_id:
        raise RemoteUnavailable(
            f"{SERVICE_NAME} operation '{operation}' returned no task id",
            service_name=SERVICE_NAME,
            operation=operation,
        )
    return str(task_id)


__all__ = ["DEFAULT_BASE_URL", "GoogleTasksService"]
