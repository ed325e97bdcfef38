"""Age-based removal of dead letter records."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from deadletter.core.logging import get_logger
from deadletter.core.store import DEFAULT_PAGE_LIMIT

if TYPE_CHECKING:
    from deadletter.core.store import DeadLetterStore

logger = get_logger(__name__)

DEFAULT_RETENTION_DAYS = 30


class RetentionSweeper:
    def __init__(
        self,
        store: DeadLetterStore,
        retention_days: int = DEFAULT_RETENTION_DAYS,
        scan_limit: int = DEFAULT_PAGE_LIMIT,
    ) -> None:
        self.store = store
        self.retention_days = retention_days
        self.scan_limit = scan_limit

    async def clean_old_failures(self, retention_days: int | None = None) -> int:
        """Remove records whose failed_at is strictly before now - retention_days.

        None or 0 means the configured window. Scans one bounded page; the
        store returns oldest records first, so the page holds the best
        candidates.
        """
        days = retention_days or self.retention_days
        cutoff = datetime.now(UTC) - timedelta(days=days)

        removed = 0
        for entry in await self.store.list_entries(limit=self.scan_limit):
            if entry.failed_at < cutoff and await self.store.remove(entry.id):
                removed += 1

        if removed:
            logger.info("dlq_cleanup_completed", removed=removed, retention_days=days)
        return removed

    def schedule_cleanup(self, interval_seconds: float) -> asyncio.Task[None]:
        """Start the periodic sweep. Cancel the returned task to stop it."""
        logger.info("dlq_cleanup_scheduled", interval_hours=round(interval_seconds / 3600, 2))
        return asyncio.create_task(
            self._run_periodically(interval_seconds),
            name="dlq-retention-sweeper",
        )

    async def _run_periodically(self, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                await self.clean_old_failures()
            except Exception as e:
                # Keep the loop alive; the next tick tries again
                logger.error("dlq_cleanup_failed", error=str(e), exc_info=True)
