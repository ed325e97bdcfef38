"""arq task functions for dead letter maintenance.

Each task receives a `ctx` dict populated by worker startup with:
  - ctx["dlq"]: DeadLetterService
  - ctx["redis"]: ArqRedis (arq's own pool, for enqueuing)

These let an API process hand long bulk operations to a worker instead of
running them inside a request.
"""

from __future__ import annotations

from typing import Any

from deadletter.core.logging import get_logger
from deadletter.core.models import RetryOptions

logger = get_logger(__name__)


async def retry_dead_letters(
    ctx: dict[str, Any],
    record_ids: list[str],
    options: dict[str, Any] | None = None,
) -> dict[str, int]:
    """Bulk-retry dead letter records. Missing or failing ids are skipped."""
    dlq = ctx["dlq"]
    retry_options = RetryOptions(**options) if options else None

    logger.info("task_dlq_retry_started", requested=len(record_ids))
    retried = await dlq.retry_bulk(record_ids, retry_options)
    logger.info("task_dlq_retry_completed", requested=len(record_ids), retried=retried)

    return {"requested": len(record_ids), "retried": retried}


async def clean_dead_letters(
    ctx: dict[str, Any],
    retention_days: int | None = None,
) -> dict[str, int]:
    """Run one retention sweep outside the service's periodic schedule."""
    removed = await ctx["dlq"].clean_old_failures(retention_days)
    logger.info("task_dlq_clean_completed", removed=removed, retention_days=retention_days)
    return {"removed": removed}
