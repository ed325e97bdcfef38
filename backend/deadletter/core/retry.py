"""Manual and bulk recovery of dead-lettered jobs.

A retry records an audit marker and drops the dead letter record. It does not
resubmit the job to its source queue; whoever triggers the retry is expected
to re-enqueue the original work.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from deadletter.core.cache import CacheNamespace
from deadletter.core.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable

    from deadletter.core.cache import RedisCache
    from deadletter.core.models import RetryOptions
    from deadletter.core.store import DeadLetterStore

logger = get_logger(__name__)

RETRY_MARKER_TTL = 3600  # 1 hour


def retry_marker_key(original_job_id: str) -> str:
    return f"retry:{original_job_id}"


class RetryCoordinator:
    def __init__(
        self,
        store: DeadLetterStore,
        cache: RedisCache,
        marker_ttl: int = RETRY_MARKER_TTL,
    ) -> None:
        self.store = store
        self.cache = cache
        self.marker_ttl = marker_ttl

    async def retry_job(self, record_id: str, options: RetryOptions | None = None) -> bool:
        """Mark the job as retried and drop its dead letter record.

        Returns False when the record does not exist or anything fails.
        """
        try:
            entry = await self.store.get(record_id)
            if entry is None:
                logger.warning("dlq_retry_not_found", record_id=record_id)
                return False

            logger.info(
                "dlq_retry_started",
                record_id=record_id,
                original_job_id=entry.original_job_id,
                queue=entry.original_queue,
                failure_count=entry.failure_count,
            )

            # Shares the nonce namespace with webhook replay protection
            await self.cache.set(
                retry_marker_key(entry.original_job_id),
                {
                    "retriedAt": datetime.now(UTC).isoformat(),
                    "retriedFrom": record_id,
                    "options": options.to_marker() if options else None,
                },
                namespace=CacheNamespace.WEBHOOK_NONCE,
                ttl=self.marker_ttl,
            )
            await self.store.remove(record_id)
        except Exception as e:
            logger.error("dlq_retry_failed", record_id=record_id, error=str(e), exc_info=True)
            return False

        logger.info("dlq_retry_succeeded", record_id=record_id)
        return True

    async def retry_bulk(
        self,
        record_ids: Iterable[str],
        options: RetryOptions | None = None,
    ) -> int:
        """Retry each record in turn; one failure does not stop the rest."""
        ids = list(record_ids)
        succeeded = 0
        for record_id in ids:
            if await self.retry_job(record_id, options):
                succeeded += 1

        logger.info("dlq_bulk_retry_completed", succeeded=succeeded, total=len(ids))
        return succeeded
