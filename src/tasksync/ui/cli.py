# ruff: noqa: T201

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from tasksync.app import SyncSession, build_http_session
from tasksync.config import configure_logging

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from types import FrameType

    from tasksync.domain.reconciliation import Notice
    from tasksync.domain.records import CanonicalRecord, View

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Keep a live view of the shared task list")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("list", help="Print the current tasks")

    watch = subparsers.add_parser("watch", help="Follow changes made by other clients")
    watch.add_argument(
        "--seconds",
        type=float,
        help="Stop watching after this many seconds (default: until interrupted)",
    )

    add = subparsers.add_parser("add", help="Create a task")
    add.add_argument("title", type=str, help="Title of the new task")

    update = subparsers.add_parser("update", help="Change a task")
    update.add_argument("identity", type=str, help="Server id of the task")
    update.add_argument("--title", type=str, help="New title")
    completion = update.add_mutually_exclusive_group()
    completion.add_argument(
        "--completed",
        dest="completed",
        action="store_const",
        const=True,
        help="Mark the task done",
    )
    completion.add_argument(
        "--not-completed",
        dest="completed",
        action="store_const",
        const=False,
        help="Mark the task not done",
    )

    delete = subparsers.add_parser("delete", help="Delete a task")
    delete.add_argument("identity", type=str, help="Server id of the task")

    return parser.parse_args(list(argv))


def _update_fields(args: argparse.Namespace) -> dict[str, object]:
    fields: dict[str, object] = {}
    if args.title is not None:
        if not args.title.strip():
            raise ValueError("Title must not be blank")
        fields["title"] = args.title.strip()
    if args.completed is not None:
        fields["completed"] = args.completed
    if not fields:
        raise ValueError("Nothing to update: pass --title, --completed or --not-completed")
    return fields


def render_record(record: CanonicalRecord) -> str:
    mark = "x" if record.fields.get("completed") else " "
    pending = " (pending)" if record.provisional else ""
    return f"[{mark}] {record.fields.get('title', '')}  <{record.identity}>{pending}"


def _print_view(view: View) -> None:
    if not len(view):
        print("No tasks yet.")
        return
    for record in view:
        print(render_record(record))


def _print_change(view: View) -> None:
    print("--")
    _print_view(view)


def _log_notice(notice: Notice) -> None:
    log.warning(f"{notice.kind}: {notice.message}")


async def _run(
    args: argparse.Namespace,
    session_factory: Callable[[], SyncSession],
) -> None:
    session = session_factory()
    session.store.subscribe_notices(_log_notice)
    try:
        await session.start(listen=args.command == "watch")
        if args.command == "list":
            _print_view(session.store.view)
        elif args.command == "watch":
            _print_view(session.store.view)
            session.store.subscribe(_print_change)
            task = session.push_task
            if task is not None:
                done, _ = await asyncio.wait({task}, timeout=args.seconds)
                for finished in done:
                    finished.result()
        elif args.command == "add":
            if not args.title.strip():
                raise ValueError("Title must not be blank")
            await session.mutations.create({"title": args.title.strip(), "completed": False})
            _print_view(session.store.view)
        elif args.command == "update":
            await session.mutations.update(args.identity, _update_fields(args))
            _print_view(session.store.view)
        elif args.command == "delete":
            await session.mutations.delete(args.identity)
            _print_view(session.store.view)
        else:
            raise ValueError(f"Unsupported command: {args.command}")
    finally:
        await session.close()


def main(
    argv: Sequence[str] | None = None,
    *,
    session_factory: Callable[[], SyncSession] = build_http_session,
) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)

    try:
        asyncio.run(_run(parsed_args, session_factory))
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(2)
    except Exception:
        log.exception("Fatal error during sync")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
