"""Aggregate and filtered views over the dead letter store.

Both views work on one bounded page of the store. Errors from the store are
not handled here; they reach the caller as-is.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from deadletter.core.classifier import classify
from deadletter.core.models import DeadLetterStats, FailureSummary, JobFilters, OldestFailure
from deadletter.core.store import DEFAULT_PAGE_LIMIT

if TYPE_CHECKING:
    from deadletter.core.models import DeadLetterEntry
    from deadletter.core.store import DeadLetterStore

RECENT_FAILURES_LIMIT = 10


class StatsReporter:
    def __init__(self, store: DeadLetterStore, scan_limit: int = DEFAULT_PAGE_LIMIT) -> None:
        self.store = store
        self.scan_limit = scan_limit

    async def get_stats(self) -> DeadLetterStats:
        entries = await self.store.list_entries(limit=self.scan_limit)
        stats = DeadLetterStats(total_failed=len(entries))

        for entry in entries:
            stats.by_queue[entry.original_queue] = stats.by_queue.get(entry.original_queue, 0) + 1

            error_type = classify(entry.last_error).value
            stats.by_error_type[error_type] = stats.by_error_type.get(error_type, 0) + 1

            # First N in scan order, not sorted by recency
            if len(stats.recent_failures) < RECENT_FAILURES_LIMIT:
                stats.recent_failures.append(
                    FailureSummary(
                        job_id=entry.original_job_id,
                        queue=entry.original_queue,
                        failed_at=entry.failed_at,
                        error=entry.last_error,
                    )
                )

            if stats.oldest_failure is None or entry.failed_at < stats.oldest_failure.failed_at:
                stats.oldest_failure = OldestFailure(
                    job_id=entry.original_job_id,
                    failed_at=entry.failed_at,
                )

        return stats

    async def get_jobs(self, filters: JobFilters | None = None) -> list[DeadLetterEntry]:
        """Filter the scanned page, then paginate the filtered result."""
        filters = filters or JobFilters()
        entries = await self.store.list_entries(limit=self.scan_limit)

        if filters.queue_name:
            entries = [e for e in entries if e.original_queue == filters.queue_name]
        if filters.error_type:
            wanted = getattr(filters.error_type, "value", filters.error_type)
            entries = [e for e in entries if classify(e.last_error).value == wanted]

        return entries[filters.offset : filters.offset + filters.limit]
