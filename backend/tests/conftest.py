"""Shared test fixtures for dead letter service tests.

Provides mocked Redis clients and in-memory doubles of the store and cache so
scenario tests can run without a Redis server, plus an ArqRedis pool over
fakeredis for tests that go through arq's real encode and lookup path.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from arq.connections import ArqRedis
from fakeredis import FakeAsyncRedis, FakeServer

from deadletter.config import Settings
from deadletter.core.models import DeadLetterEntry
from deadletter.core.store import deserialize_record, serialize_record
from deadletter.services.dead_letter_service import DeadLetterService

# -- In-memory doubles ----------------------------------------------------


class InMemoryStore:
    """Dict-backed stand-in for DeadLetterStore with the same interface.

    Records are kept as dicts so callers never share mutable entries with the
    store, and a replacement moves the record to the end like a re-add does.
    """

    def __init__(self) -> None:
        self.records: dict[str, dict[str, Any]] = {}
        self._listeners: list[Any] = []
        self.closed = False

    def add_listener(self, callback) -> None:
        self._listeners.append(callback)

    async def upsert(self, entry: DeadLetterEntry) -> None:
        self.records.pop(entry.id, None)
        self.records[entry.id] = entry.to_dict()
        for listener in self._listeners:
            await listener(entry.id)

    async def get(self, record_id: str) -> DeadLetterEntry | None:
        data = self.records.get(record_id)
        return DeadLetterEntry.from_dict(data) if data else None

    async def list_entries(self, limit: int = 1000, offset: int = 0) -> list[DeadLetterEntry]:
        page = list(self.records.values())[offset : offset + limit]
        return [DeadLetterEntry.from_dict(d) for d in page]

    async def remove(self, record_id: str) -> bool:
        return self.records.pop(record_id, None) is not None

    async def count(self) -> int:
        return len(self.records)

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        self.closed = True


class InMemoryCache:
    """Dict-backed stand-in for RedisCache. Keys include the namespace."""

    def __init__(self) -> None:
        self.values: dict[str, str] = {}
        self.ttls: dict[str, int | None] = {}
        self.closed = False

    @staticmethod
    def _key(key: str, namespace) -> str:
        return f"{namespace.value}:{key}" if namespace else key

    async def get(self, key: str, *, namespace=None) -> Any:
        raw = self.values.get(self._key(key, namespace))
        return None if raw is None else json.loads(raw)

    async def set(self, key: str, value: Any, *, namespace=None, ttl: int | None = None) -> bool:
        full_key = self._key(key, namespace)
        self.values[full_key] = json.dumps(value)
        self.ttls[full_key] = ttl
        return True

    async def incr(self, key: str, *, namespace=None) -> int:
        full_key = self._key(key, namespace)
        value = int(self.values.get(full_key, "0")) + 1
        self.values[full_key] = str(value)
        return value

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        self.closed = True


# -- Infrastructure mocks -------------------------------------------------


@pytest.fixture
def mock_redis():
    """Mock Redis async client."""
    redis = AsyncMock()
    redis.ping.return_value = True
    redis.get.return_value = None
    redis.set.return_value = True
    return redis


@pytest.fixture
def mock_arq_redis():
    """Mock ArqRedis pool with a transactional pipeline.

    redis.pipeline() is synchronous (returns an async context manager), so we
    use MagicMock for it and wire __aenter__/__aexit__ on the returned object.
    """
    redis = AsyncMock()
    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=[1, 1])
    cm = MagicMock()
    cm.__aenter__ = AsyncMock(return_value=pipe)
    cm.__aexit__ = AsyncMock(return_value=False)
    redis.pipeline = MagicMock(return_value=cm)
    redis.enqueue_job = AsyncMock(return_value=MagicMock())
    redis.pipe = pipe
    return redis


@pytest.fixture
async def fake_arq_redis():
    """ArqRedis pool over an in-process fakeredis server, JSON job encoding."""
    fake = FakeAsyncRedis(server=FakeServer())
    redis = ArqRedis(
        fake.connection_pool,
        job_serializer=serialize_record,
        job_deserializer=deserialize_record,
        default_queue_name="dead-letter-queue",
    )
    yield redis
    await redis.aclose()


@pytest.fixture
def memory_store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def memory_cache() -> InMemoryCache:
    return InMemoryCache()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        redis_url="redis://localhost:6379/15",
        dlq_alert_threshold=10,
        dlq_cleanup_interval_ms=86_400_000,
    )


@pytest.fixture
async def dlq_service(test_settings, memory_store, memory_cache):
    """Started DeadLetterService over in-memory doubles, no periodic sweep."""
    service = DeadLetterService(
        test_settings,
        store=memory_store,
        cache=memory_cache,
        schedule_cleanup=False,
    )
    await service.start()
    yield service
    await service.stop()


# -- Factory fixtures -----------------------------------------------------


@pytest.fixture
def make_entry():
    """Factory for DeadLetterEntry with sensible defaults."""

    def _factory(
        original_job_id: str = "job-1",
        original_queue: str = "email-sync-high",
        last_error: str = "Sync failed",
        failed_at: datetime | None = None,
        age: timedelta | None = None,
        failure_count: int = 1,
    ) -> DeadLetterEntry:
        if failed_at is None:
            failed_at = datetime.now(UTC) - (age or timedelta())
        return DeadLetterEntry(
            original_job_id=original_job_id,
            original_queue=original_queue,
            original_payload={"providerId": "provider-123"},
            failed_at=failed_at,
            attempts_made=3,
            last_error=last_error,
            failure_count=failure_count,
        )

    return _factory
