"""arq worker settings and lifecycle management.

Each worker process starts its own DeadLetterService. The same startup and
shutdown hooks can be reused by any arq worker whose tasks are decorated with
``dead_letter_on_failure``.

Launch:
    uv run arq deadletter.workers.settings.WorkerSettings
"""

from __future__ import annotations

from typing import Any

from deadletter.config import settings
from deadletter.core.logging import get_logger, setup_logging
from deadletter.services.dead_letter_service import DeadLetterService

logger = get_logger(__name__)


async def startup(ctx: dict[str, Any]) -> None:
    """Start a DeadLetterService for the worker process.

    The periodic retention sweep stays with the API process; workers run
    sweeps only when asked through clean_dead_letters.
    """
    setup_logging(log_level=settings.log_level, log_format=settings.log_format)
    logger.info("arq_worker_starting")

    dlq = DeadLetterService(settings, schedule_cleanup=False)
    await dlq.start()
    ctx["dlq"] = dlq

    logger.info("arq_worker_started")


async def shutdown(ctx: dict[str, Any]) -> None:
    """Cleanly close all infrastructure connections."""
    logger.info("arq_worker_stopping")
    if dlq := ctx.get("dlq"):
        await dlq.stop()
    logger.info("arq_worker_stopped")


class WorkerSettings:
    """arq WorkerSettings for dead letter maintenance tasks.

    Launch with: uv run arq deadletter.workers.settings.WorkerSettings
    """

    from deadletter.workers.tasks import clean_dead_letters, retry_dead_letters

    functions = [retry_dead_letters, clean_dead_letters]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = settings.redis_settings()
    max_jobs = settings.arq_max_jobs
    job_timeout = settings.arq_job_timeout
    max_tries = settings.arq_max_tries
    # Never the dead letter queue: its records must not be consumed
    queue_name = settings.arq_queue_name
