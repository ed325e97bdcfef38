"""Dead letter service: capture, recovery, statistics and retention.

Single entry point for permanently failed background jobs. A failing pipeline
calls ``capture_failure``; operators use the retry, listing, stats and
cleanup operations. The service owns the Redis connections and the periodic
retention sweep as one lifecycle unit (``start`` / ``stop``).

Error policy differs by path:
    capture      never raises, everything is logged and swallowed
    retry/remove failures become False (or a lower count)
    reads        store and cache errors propagate unchanged

Two captures of the same job racing each other both read the same prior
failure_count; the last upsert wins and the count may come out one short.
The deterministic record id still guarantees a single surviving record.
"""

from __future__ import annotations

import asyncio
import contextlib
import traceback
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from redis.asyncio import Redis

from deadletter.config import Settings
from deadletter.config import settings as default_settings
from deadletter.core.cache import RedisCache
from deadletter.core.classifier import classify
from deadletter.core.exceptions import ServiceNotStartedError
from deadletter.core.failure_tracker import FailureTracker
from deadletter.core.logging import capture_context, get_logger
from deadletter.core.models import DeadLetterEntry, dead_letter_id
from deadletter.core.resilience import retry_connection
from deadletter.core.retention import RetentionSweeper
from deadletter.core.retry import RetryCoordinator
from deadletter.core.stats import StatsReporter
from deadletter.core.store import DeadLetterStore

if TYPE_CHECKING:
    from collections.abc import Iterable

    from deadletter.core.models import DeadLetterStats, JobFilters, RetryOptions

logger = get_logger(__name__)


def _describe_error(error: BaseException | str) -> tuple[str, str | None, str]:
    """Return (message, stack, name) for an exception or a bare message."""
    if isinstance(error, BaseException):
        stack = None
        if error.__traceback__ is not None:
            stack = "".join(traceback.format_exception(error))
        return str(error) or type(error).__name__, stack, type(error).__name__
    return str(error), None, "Error"


class DeadLetterService:
    """Orchestrates the dead letter store, counters, retries and retention."""

    def __init__(
        self,
        config: Settings | None = None,
        *,
        store: DeadLetterStore | None = None,
        cache: RedisCache | None = None,
        schedule_cleanup: bool = True,
    ) -> None:
        self.config = config or default_settings
        self._store = store
        self._cache = cache
        self._owns_store = store is None
        self._owns_cache = cache is None
        self._schedule_cleanup = schedule_cleanup

        self._tracker: FailureTracker | None = None
        self._retries: RetryCoordinator | None = None
        self._sweeper: RetentionSweeper | None = None
        self._reporter: StatsReporter | None = None
        self._cleanup_task: asyncio.Task[None] | None = None
        self._started = False

    # --- Lifecycle ---

    async def start(self) -> None:
        """Open connections, wire components and schedule the retention sweep."""
        if self._started:
            return

        if self._store is None:
            self._store = await DeadLetterStore.connect(
                self.config.redis_settings(),
                queue_name=self.config.dlq_queue_name,
                record_ttl=timedelta(days=self.config.dlq_record_ttl_days),
            )
        if self._cache is None:
            self._cache = RedisCache(Redis.from_url(self.config.redis_url, decode_responses=True))

        await self._verify_connections()

        self._tracker = FailureTracker(self._cache)
        self._retries = RetryCoordinator(
            self._store,
            self._cache,
            marker_ttl=self.config.dlq_retry_marker_ttl,
        )
        self._sweeper = RetentionSweeper(
            self._store,
            retention_days=self.config.dlq_retention_days,
            scan_limit=self.config.dlq_scan_limit,
        )
        self._reporter = StatsReporter(self._store, scan_limit=self.config.dlq_scan_limit)

        self._store.add_listener(self._tracker.increment_total_count)

        if self._schedule_cleanup:
            self._cleanup_task = self._sweeper.schedule_cleanup(
                self.config.dlq_cleanup_interval_seconds,
            )

        self._started = True
        logger.info("dlq_service_started", queue=self.config.dlq_queue_name)

    async def stop(self) -> None:
        """Cancel the sweep and close the connections this service opened."""
        if not self._started:
            return
        logger.info("dlq_service_stopping")

        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._cleanup_task
            self._cleanup_task = None

        if self._owns_store and self._store is not None:
            await self._store.close()
            self._store = None
        if self._owns_cache and self._cache is not None:
            await self._cache.close()
            self._cache = None

        self._started = False
        logger.info("dlq_service_stopped")

    async def __aenter__(self) -> DeadLetterService:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    @property
    def is_running(self) -> bool:
        return self._started

    @property
    def cleanup_task(self) -> asyncio.Task[None] | None:
        return self._cleanup_task

    @retry_connection()
    async def _verify_connections(self) -> None:
        await self._store.ping()
        await self._cache.ping()

    def _require_started(self) -> None:
        if not self._started:
            raise ServiceNotStartedError

    # --- Capture ---

    async def capture_failure(
        self,
        original_job_id: str,
        original_queue: str,
        payload: Any,
        error: BaseException | str,
        attempts_made: int,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Record a permanently failed job. Never raises."""
        with capture_context(original_job_id, original_queue):
            try:
                await self._capture(
                    original_job_id, original_queue, payload, error, attempts_made, metadata,
                )
            except Exception as e:
                logger.error(
                    "dlq_capture_failed",
                    job_id=original_job_id,
                    queue_name=original_queue,
                    error=str(e),
                    exc_info=True,
                )

    async def _capture(
        self,
        original_job_id: str,
        original_queue: str,
        payload: Any,
        error: BaseException | str,
        attempts_made: int,
        metadata: dict[str, Any] | None,
    ) -> None:
        self._require_started()

        existing = await self._store.get(dead_letter_id(original_job_id))
        failure_count = existing.failure_count + 1 if existing else 1

        message, stack, error_name = _describe_error(error)
        now = datetime.now(UTC)
        entry = DeadLetterEntry(
            original_job_id=original_job_id,
            original_queue=original_queue,
            original_payload=payload,
            failed_at=now,
            attempts_made=attempts_made,
            last_error=message,
            error_stack=stack,
            failure_count=failure_count,
            metadata={
                **(metadata or {}),
                "error_name": error_name,
                "timestamp": now.isoformat(),
            },
        )
        await self._store.upsert(entry)

        await self._tracker.record_failure(original_queue, classify(message))
        logger.error(
            "dlq_job_captured",
            attempts_made=attempts_made,
            failure_count=failure_count,
            error=message,
        )

        await self._tracker.check_alert_threshold(
            original_queue,
            self.config.dlq_alert_threshold,
        )

    # --- Recovery ---

    async def retry_job(self, record_id: str, options: RetryOptions | None = None) -> bool:
        if not self._started:
            logger.warning("dlq_retry_skipped_not_started", record_id=record_id)
            return False
        return await self._retries.retry_job(record_id, options)

    async def retry_bulk(
        self,
        record_ids: Iterable[str],
        options: RetryOptions | None = None,
    ) -> int:
        if not self._started:
            logger.warning("dlq_bulk_retry_skipped_not_started")
            return 0
        return await self._retries.retry_bulk(record_ids, options)

    async def remove_job(self, record_id: str) -> bool:
        """Drop a record without marking it as retried."""
        try:
            self._require_started()
            removed = await self._store.remove(record_id)
        except Exception as e:
            logger.error("dlq_remove_failed", record_id=record_id, error=str(e))
            return False
        if removed:
            logger.info("dlq_job_removed", record_id=record_id)
        return removed

    async def clean_old_failures(self, retention_days: int | None = None) -> int:
        self._require_started()
        return await self._sweeper.clean_old_failures(retention_days)

    # --- Reads ---

    async def get_job(self, record_id: str) -> DeadLetterEntry | None:
        self._require_started()
        return await self._store.get(record_id)

    async def get_jobs(self, filters: JobFilters | None = None) -> list[DeadLetterEntry]:
        self._require_started()
        return await self._reporter.get_jobs(filters)

    async def get_stats(self) -> DeadLetterStats:
        self._require_started()
        return await self._reporter.get_stats()

    async def get_counters(self) -> dict[str, int]:
        """Lifetime failure totals plus the number of records currently stored."""
        self._require_started()
        totals = await self._tracker.get_totals()
        return {**totals, "stored": await self._store.count()}
