"""Namespaced JSON cache over Redis.

Keys are stored as ``{namespace}:{key}``. Values are JSON-encoded, so counters
written by ``incr`` read back as ints through ``get``.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import TYPE_CHECKING, Any

from deadletter.core.logging import get_logger

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = get_logger(__name__)


class CacheNamespace(str, Enum):
    WEBHOOK_NONCE = "webhook:nonce"
    RATE_LIMIT = "ratelimit"


def build_key(key: str, namespace: CacheNamespace | None = None) -> str:
    return f"{namespace.value}:{key}" if namespace else key


class RedisCache:
    """Thin async cache used for DLQ counters and retry markers."""

    def __init__(self, redis: Redis) -> None:
        self.redis = redis

    async def get(self, key: str, *, namespace: CacheNamespace | None = None) -> Any:
        """Return the decoded value, or None when the key is missing."""
        raw = await self.redis.get(build_key(key, namespace))
        if raw is None:
            return None
        return json.loads(raw)

    async def set(
        self,
        key: str,
        value: Any,
        *,
        namespace: CacheNamespace | None = None,
        ttl: int | None = None,
    ) -> bool:
        """Store a JSON-encoded value, with an optional TTL in seconds."""
        return bool(await self.redis.set(build_key(key, namespace), json.dumps(value), ex=ttl))

    async def incr(self, key: str, *, namespace: CacheNamespace | None = None) -> int:
        """Atomically increment a counter and return the new value."""
        return int(await self.redis.incr(build_key(key, namespace)))

    async def ping(self) -> bool:
        return bool(await self.redis.ping())

    async def close(self) -> None:
        await self.redis.aclose()
        logger.debug("cache_closed")
