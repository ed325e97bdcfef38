"""Aggregate failure counters and alert threshold checks.

Counters live in the shared cache so every service instance contributes to the
same totals. Only Redis INCR is used to mutate them.

Keys (ratelimit namespace):
    dlq:total               bumped on every capture
    dlq:queue:{queue}       per source queue
    dlq:error:{error_type}  per classified error type
    dlq:total:count         bumped by the store "added" notification
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from deadletter.core.cache import CacheNamespace
from deadletter.core.logging import get_logger

if TYPE_CHECKING:
    from deadletter.core.cache import RedisCache
    from deadletter.core.classifier import ErrorType

logger = get_logger(__name__)

TOTAL_KEY = "dlq:total"
TOTAL_COUNT_KEY = "dlq:total:count"


def queue_key(queue_name: str) -> str:
    return f"dlq:queue:{queue_name}"


def error_key(error_type: ErrorType | str) -> str:
    return f"dlq:error:{getattr(error_type, 'value', error_type)}"


class FailureTracker:
    def __init__(
        self,
        cache: RedisCache,
        namespace: CacheNamespace = CacheNamespace.RATE_LIMIT,
    ) -> None:
        self.cache = cache
        self.namespace = namespace

    async def record_failure(self, queue_name: str, error_type: ErrorType | str) -> None:
        """Increment the global, per-queue and per-error-type counters."""
        await asyncio.gather(
            self.cache.incr(TOTAL_KEY, namespace=self.namespace),
            self.cache.incr(queue_key(queue_name), namespace=self.namespace),
            self.cache.incr(error_key(error_type), namespace=self.namespace),
        )

    async def increment_total_count(self, record_id: str | None = None) -> int:
        """Store-level counter, independent from dlq:total."""
        logger.warning("dlq_job_added", record_id=record_id)
        return await self.cache.incr(TOTAL_COUNT_KEY, namespace=self.namespace)

    async def check_alert_threshold(self, queue_name: str, threshold: int) -> bool:
        """Return True when the queue's failure counter reached the threshold.

        Only decides and logs; delivering the alert is left to whoever
        consumes the log stream.
        """
        failure_count = await self.cache.get(queue_key(queue_name), namespace=self.namespace)
        if failure_count is None or int(failure_count) < threshold:
            return False
        logger.error(
            "dlq_alert_threshold_exceeded",
            queue=queue_name,
            failure_count=int(failure_count),
            threshold=threshold,
            severity="high",
        )
        return True

    async def get_totals(self) -> dict[str, int]:
        total, total_count = await asyncio.gather(
            self.cache.get(TOTAL_KEY, namespace=self.namespace),
            self.cache.get(TOTAL_COUNT_KEY, namespace=self.namespace),
        )
        return {"total": int(total or 0), "total_count": int(total_count or 0)}
