"""Operator console for the dead letter queue.

Usage:
    cd backend
    uv run python scripts/dlq_admin.py stats
    uv run python scripts/dlq_admin.py list --queue email-sync-high --limit 20
    uv run python scripts/dlq_admin.py show dlq-job-123
    uv run python scripts/dlq_admin.py retry dlq-job-123 dlq-job-456 --max-retries 3
    uv run python scripts/dlq_admin.py remove dlq-job-123
    uv run python scripts/dlq_admin.py clean --days 7
    uv run python scripts/dlq_admin.py counters
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

from deadletter.config import settings
from deadletter.core.classifier import ErrorType
from deadletter.core.logging import setup_logging
from deadletter.core.models import JobFilters, RetryOptions
from deadletter.services.dead_letter_service import DeadLetterService


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Inspect and recover dead-lettered jobs")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("stats", help="Aggregate statistics over the dead letter queue")
    sub.add_parser("counters", help="Lifetime failure counters from the cache")

    list_cmd = sub.add_parser("list", help="List dead letter records")
    list_cmd.add_argument("--queue", help="Filter by source queue")
    list_cmd.add_argument(
        "--error-type",
        choices=[t.value for t in ErrorType],
        help="Filter by classified error type",
    )
    list_cmd.add_argument("--limit", type=int, default=50)
    list_cmd.add_argument("--offset", type=int, default=0)

    show_cmd = sub.add_parser("show", help="Show one record")
    show_cmd.add_argument("record_id")

    retry_cmd = sub.add_parser("retry", help="Retry one or more records")
    retry_cmd.add_argument("record_ids", nargs="+")
    retry_cmd.add_argument("--max-retries", type=int)
    retry_cmd.add_argument("--retry-delay", type=int, help="Milliseconds")
    retry_cmd.add_argument("--priority", type=int)

    remove_cmd = sub.add_parser("remove", help="Delete a record without retrying it")
    remove_cmd.add_argument("record_id")

    clean_cmd = sub.add_parser("clean", help="Remove records older than the retention window")
    clean_cmd.add_argument("--days", type=int, default=None)

    return parser


def _print_json(data: object) -> None:
    print(json.dumps(data, indent=2, default=str))


async def run(args: argparse.Namespace) -> int:
    async with DeadLetterService(settings, schedule_cleanup=False) as dlq:
        if args.command == "stats":
            _print_json((await dlq.get_stats()).to_dict())

        elif args.command == "counters":
            _print_json(await dlq.get_counters())

        elif args.command == "list":
            entries = await dlq.get_jobs(
                JobFilters(
                    queue_name=args.queue,
                    error_type=args.error_type,
                    limit=args.limit,
                    offset=args.offset,
                )
            )
            for entry in entries:
                print(
                    f"{entry.id:<40} {entry.original_queue:<24} "
                    f"x{entry.failure_count:<3} {entry.failed_at:%Y-%m-%d %H:%M} "
                    f"{entry.last_error[:60]}"
                )
            print(f"\n{len(entries)} record(s)")

        elif args.command == "show":
            entry = await dlq.get_job(args.record_id)
            if entry is None:
                print(f"Record {args.record_id!r} not found")
                return 1
            _print_json(entry.to_dict())

        elif args.command == "retry":
            options = RetryOptions(
                max_retries=args.max_retries,
                retry_delay=args.retry_delay,
                priority=args.priority,
            )
            retried = await dlq.retry_bulk(args.record_ids, options)
            print(f"Retried {retried}/{len(args.record_ids)} record(s)")
            print("Note: retried jobs are not re-enqueued; resubmit them to their source queue.")
            return 0 if retried == len(args.record_ids) else 1

        elif args.command == "remove":
            removed = await dlq.remove_job(args.record_id)
            print("Removed" if removed else f"Record {args.record_id!r} not found")
            return 0 if removed else 1

        elif args.command == "clean":
            removed = await dlq.clean_old_failures(args.days)
            print(f"Removed {removed} record(s)")

    return 0


def main() -> None:
    setup_logging(log_level="WARNING", log_format="console")
    args = build_parser().parse_args()
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
