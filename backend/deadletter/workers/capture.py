"""Capture permanently failed arq jobs into the dead letter store.

arq only retries a job when it raises ``arq.Retry``; any other exception
fails the job for good. The decorator hands those failures to the
DeadLetterService found at ``ctx["dlq"]`` and re-raises so arq still records
the job as failed.

Usage:
    @dead_letter_on_failure(queue_name="email-sync-high")
    async def sync_mailbox(ctx, provider_id: str) -> None: ...
"""

from __future__ import annotations

import functools
from collections.abc import Awaitable, Callable
from typing import Any

from arq import Retry

from deadletter.config import settings
from deadletter.core.logging import get_logger

logger = get_logger(__name__)

TaskFunc = Callable[..., Awaitable[Any]]


def dead_letter_on_failure(queue_name: str | None = None) -> Callable[[TaskFunc], TaskFunc]:
    def decorator(func: TaskFunc) -> TaskFunc:
        @functools.wraps(func)
        async def wrapper(ctx: dict[str, Any], *args: Any, **kwargs: Any) -> Any:
            try:
                return await func(ctx, *args, **kwargs)
            except Retry:
                raise
            except Exception as exc:
                dlq = ctx.get("dlq")
                if dlq is None:
                    logger.warning("dlq_capture_unavailable", function=func.__name__)
                    raise
                await dlq.capture_failure(
                    ctx.get("job_id") or func.__name__,
                    queue_name or settings.arq_queue_name,
                    {"function": func.__name__, "args": list(args), "kwargs": kwargs},
                    exc,
                    ctx.get("job_try", 1),
                )
                raise

        return wrapper

    return decorator
