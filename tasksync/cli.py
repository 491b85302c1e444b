from __future__ import annotations

import argparse
import asyncio
import datetime as _dt
import json
import sys
from collections.abc import Awaitable, Callable
from typing import Any

from tasksync.config import SyncConfig, load_config
from tasksync.errors import TaskSyncError
from tasksync.models.task import TaskRecord
from tasksync.reconciler import FetchOutcome, TaskReconciler, TaskSession
from tasksync.services.google_tasks import GoogleTasksService
from tasksync.services.interface import DocumentStore, TaskListService
from tasksync.services.redis_store import RedisDocumentStore

Closer = Callable[[], Awaitable[None]]


def build_services(cfg: SyncConfig) -> tuple[TaskListService, DocumentStore, list[Closer]]:
    """Construct the Google Tasks and Redis adapters described by ``cfg``."""
    if not cfg.access_token:
        raise TaskSyncError("GOOGLE_ACCESS_TOKEN is not set")
    task_lists = GoogleTasksService(
        cfg.access_token, base_url=cfg.tasks_base_url, timeout_s=cfg.remote_timeout_s
    )
    documents = RedisDocumentStore(url=cfg.redis_url, key_prefix=cfg.key_prefix)
    return task_lists, documents, [task_lists.aclose, documents.aclose]


def _parse_due(value: str) -> _dt.datetime:
    try:
        return _dt.datetime.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid ISO timestamp: {value!r}") from None


def _outcome_payload(outcome: FetchOutcome[TaskRecord]) -> dict[str, Any]:
    return {
        "tasks": [r.view() for r in outcome.items],
        "complete": outcome.complete,
        "failures": [
            {"operation": f.operation, "target": f.target, "error": str(f.error)}
            for f in outcome.failures
        ],
    }


async def _dispatch(args: argparse.Namespace, cfg: SyncConfig) -> dict[str, Any]:
    task_lists, documents, closers = build_services(cfg)
    reconciler = TaskReconciler(
        task_lists,
        documents,
        default_list_id=cfg.default_list_id,
        remote_timeout_s=cfg.remote_timeout_s,
        fetch_concurrency=cfg.fetch_concurrency,
    )
    try:
        session = TaskSession(cfg.user_key)
        outcome = await reconciler.initialize(session)
        if args.cmd == "list":
            return _outcome_payload(outcome)
        if args.cmd == "create":
            record = await reconciler.create_task(
                session, args.name, args.due, args.priority, args.estimate
            )
        elif args.cmd == "update":
            current = session.get(args.id)
            record = await reconciler.update_task(
                session,
                args.id,
                args.list_id or current.task_list_id,
                args.name if args.name is not None else current.name,
                args.due,
                args.priority or (current.priority or "low"),
                args.estimate if args.estimate is not None else current.est_time_to_complete,
                args.time_spent if args.time_spent is not None else current.time_spent,
            )
        elif args.cmd == "complete":
            record = await reconciler.complete_task(session, args.id)
        else:
            record = await reconciler.log_time_spent(session, args.id, args.hours)
        return {"task": record.view()}
    finally:
        for close in closers:
            await close()


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser("tasksync")
    sub = parser.add_subparsers(dest="cmd")

    sub.add_parser("list", help="Load open tasks from both sources and print them")

    p_create = sub.add_parser("create", help="Create a task in both sources")
    p_create.add_argument("--name", required=True)
    p_create.add_argument("--due", type=_parse_due, required=True)
    p_create.add_argument("--priority", choices=["low", "medium", "high"], default="low")
    p_create.add_argument("--estimate", type=float)

    p_update = sub.add_parser("update", help="Update a task; omitted fields keep their value")
    p_update.add_argument("--id", required=True)
    p_update.add_argument("--due", type=_parse_due, required=True)
    p_update.add_argument("--list-id")
    p_update.add_argument("--name")
    p_update.add_argument("--priority", choices=["low", "medium", "high"])
    p_update.add_argument("--estimate", type=float)
    p_update.add_argument("--time-spent", type=float)

    p_complete = sub.add_parser("complete", help="Mark a task completed")
    p_complete.add_argument("--id", required=True)

    p_log = sub.add_parser("log-time", help="Add hours spent on a task")
    p_log.add_argument("--id", required=True)
    p_log.add_argument("--hours", type=float, required=True)

    args = parser.parse_args(argv)
    if not args.cmd:
        parser.print_help()
        raise SystemExit(2)

    try:
        payload = asyncio.run(_dispatch(args, load_config()))
    except TaskSyncError as exc:
        sys.stderr.write(f"error: {exc}\n")
        raise SystemExit(1) from None
    sys.stdout.write(json.dumps(payload, ensure_ascii=False) + "\n")


if __name__ == "__main__":
    main()
