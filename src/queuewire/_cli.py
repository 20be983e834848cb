"""queuewire CLI — queuewire watch / queuewire bulk / queuewire reorder.

Entry point for the ``queuewire`` command-line interface.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import TYPE_CHECKING, Any

from queuewire._errors import QueuewireError

if TYPE_CHECKING:
    from queuewire.actions.bulk import BulkResult, BulkTask
    from queuewire.actions.reorder import ReorderOperation
    from queuewire.app import LiveSync
    from queuewire.live.connection import ConnectionState

BULK_ACTIONS = {
    "cancel": "cancel",
    "pause": "pause",
    "resume": "resume",
    "remove": "remove",
    "enable-requeue": "enable_auto_requeue",
    "disable-requeue": "disable_auto_requeue",
}


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the queuewire CLI."""
    parser = argparse.ArgumentParser(
        prog="queuewire",
        description="Live sync client for a job-queue server.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )
    parser.add_argument("--root", default=".", help="Directory holding queuewire.yaml")
    parser.add_argument("--api-url", default=None, help="REST base URL")
    parser.add_argument("--token", default=None, help="Bearer token")
    parser.add_argument("--verbose", action="store_true", default=None, help="Echo sync events")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # queuewire watch
    watch_parser = subparsers.add_parser(
        "watch",
        help="Subscribe to groups and print push events",
    )
    watch_parser.add_argument("groups", nargs="+", metavar="GROUP", help="Group IDs")

    # queuewire bulk
    bulk_parser = subparsers.add_parser(
        "bulk",
        help="Apply one action to many jobs",
    )
    bulk_parser.add_argument("action", choices=sorted(BULK_ACTIONS), help="Action to apply")
    bulk_parser.add_argument("group", help="Group owning the jobs")
    bulk_parser.add_argument("job_ids", nargs="+", metavar="JOB_ID", help="Target jobs")

    # queuewire reorder
    reorder_parser = subparsers.add_parser(
        "reorder",
        help="Move a pending job within its group's queue",
    )
    reorder_parser.add_argument("group", help="Group ID")
    reorder_parser.add_argument("old", type=int, help="Current index among pending jobs")
    reorder_parser.add_argument("new", type=int, help="Target index among pending jobs")

    return parser


def _get_version() -> str:
    """Get the package version."""
    from queuewire import __version__

    return __version__


def _open_sync(args: argparse.Namespace, **kwargs: Any) -> LiveSync:
    """Build the LiveSync for a command from the global options."""
    from queuewire.app import LiveSync

    return LiveSync.from_root(
        args.root,
        api_url=args.api_url,
        token=args.token,
        verbose=args.verbose,
        **kwargs,
    )


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


async def _watch(sync: LiveSync, groups: list[str], stop: asyncio.Event) -> None:
    """Connect, subscribe to ``groups``, and run until ``stop`` is set."""
    try:
        if sync.start() is None:
            print("  Not signed in: no token available.", file=sys.stderr)
            return
        for group_id in groups:
            sync.watch(group_id)
        await stop.wait()
    finally:
        await sync.aclose()


async def _bulk(sync: LiveSync, action: str, group_id: str, job_ids: list[str]) -> BulkResult:
    run = getattr(sync.bulk, BULK_ACTIONS[action])
    try:
        return await run(group_id, job_ids)
    finally:
        await sync.aclose()


async def _reorder(sync: LiveSync, group_id: str, old: int, new: int) -> ReorderOperation | None:
    try:
        jobs = await sync.api.get_queue(group_id)
        return await sync.reorder.move(group_id, jobs, old, new)
    finally:
        await sync.aclose()


def _print_event(label: str) -> Any:
    def _print(*payload: object) -> None:
        print(f"  {label}: {payload[0]!r}", file=sys.stderr)

    return _print


def _print_state(state: ConnectionState) -> None:
    print(f"  [{state.value}]", file=sys.stderr)


def _print_progress(task: BulkTask) -> None:
    print(f"  {task.label}... {task.completed}/{task.total}", file=sys.stderr)


def _print_bulk_summary(result: BulkResult) -> None:
    """Print bulk completion summary to stderr."""
    lines = [
        "",
        "─" * 41,
        f"  {result.label}: {result.success_count} succeeded, {result.failure_count} failed",
    ]
    for target_id, error in result.failed.items():
        lines.append(f"    {target_id}: {error}")
    print("\n".join(lines), file=sys.stderr)


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    from queuewire.live.dispatcher import EventCallbacks

    try:
        if args.command == "watch":
            callbacks = EventCallbacks(
                on_runner_status=_print_event("runner_status"),
                on_queue_update=_print_event("queue_update"),
                on_job_state=_print_event("job_state"),
                on_dispatch=_print_event("dispatch"),
                on_error=_print_event("error"),
            )
            sync = _open_sync(args, callbacks=callbacks, on_state=_print_state)
            try:
                asyncio.run(_watch(sync, args.groups, asyncio.Event()))
            except KeyboardInterrupt:
                print("\n  Stopped.", file=sys.stderr)
        elif args.command == "bulk":
            sync = _open_sync(args, on_progress=_print_progress)
            result = asyncio.run(_bulk(sync, args.action, args.group, args.job_ids))
            _print_bulk_summary(result)
            if result.failure_count:
                sys.exit(1)
        elif args.command == "reorder":
            sync = _open_sync(args)
            operation = asyncio.run(_reorder(sync, args.group, args.old, args.new))
            if operation is None:
                print("  Nothing to move.", file=sys.stderr)
            elif not operation.ok:
                print(f"  Reorder failed: {operation.error}", file=sys.stderr)
                sys.exit(1)
            else:
                print(f"  New order: {', '.join(operation.ordered_ids)}", file=sys.stderr)
    except QueuewireError as exc:
        print(f"  Error: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
