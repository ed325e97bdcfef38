"""Dead letter record store backed by an arq queue in Redis.

The queue is used purely as keyed persistence: each record is an arq job whose
id is the deterministic dead letter id, sitting in the queue's sorted set.
No worker is ever attached to this queue, so nothing is redelivered
automatically; records leave only through remove().

Redis layout (arq conventions):
    arq:job:{dlq-id}     JSON-serialized job carrying the record
    {queue_name}         sorted set of record ids scored by add time
"""

from __future__ import annotations

import json
from collections.abc import Awaitable, Callable
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from arq.connections import create_pool
from arq.constants import job_key_prefix
from arq.jobs import DeserializationError, Job

from deadletter.core.exceptions import StoreConflictError, StoreError
from deadletter.core.logging import get_logger
from deadletter.core.models import DeadLetterEntry
from deadletter.core.resilience import retry_store_write

if TYPE_CHECKING:
    from arq.connections import ArqRedis, RedisSettings

logger = get_logger(__name__)

RECORD_KIND = "failed-job"
DEFAULT_PAGE_LIMIT = 1000

AddedListener = Callable[[str], Awaitable[None]]


def serialize_record(data: dict[str, Any]) -> bytes:
    # Payloads come straight from task args; dates and the like go in as strings
    return json.dumps(data, default=str).encode()


def deserialize_record(raw: bytes | str) -> dict[str, Any]:
    return json.loads(raw)


def _decode(value: bytes | str) -> str:
    return value.decode() if isinstance(value, bytes) else value


class DeadLetterStore:
    """Insert-or-replace, fetch, page and delete dead letter records."""

    def __init__(
        self,
        redis: ArqRedis,
        queue_name: str = "dead-letter-queue",
        record_ttl: timedelta = timedelta(days=90),
    ) -> None:
        self.redis = redis
        self.queue_name = queue_name
        self.record_ttl = record_ttl
        self._listeners: list[AddedListener] = []

    @classmethod
    async def connect(
        cls,
        redis_settings: RedisSettings,
        queue_name: str = "dead-letter-queue",
        record_ttl: timedelta = timedelta(days=90),
    ) -> DeadLetterStore:
        """Open an arq pool with JSON (de)serialization for records."""
        pool = await create_pool(
            redis_settings,
            job_serializer=serialize_record,
            job_deserializer=deserialize_record,
            default_queue_name=queue_name,
        )
        return cls(pool, queue_name=queue_name, record_ttl=record_ttl)

    def add_listener(self, callback: AddedListener) -> None:
        """Register a coroutine called with the record id after every add."""
        self._listeners.append(callback)

    @retry_store_write()
    async def upsert(self, entry: DeadLetterEntry) -> None:
        """Insert the record, fully replacing any existing one with the same id.

        The record is encoded before anything is removed, so an entry that
        cannot be stored leaves the previous record in place.
        """
        data = entry.to_dict()
        try:
            serialize_record(data)
        except (TypeError, ValueError) as e:
            raise StoreError(
                f"Unencodable dead letter record {entry.id!r}",
                context={"id": entry.id},
            ) from e

        await self.remove(entry.id)
        job = await self.redis.enqueue_job(
            RECORD_KIND,
            data,
            _job_id=entry.id,
            _queue_name=self.queue_name,
            _expires=self.record_ttl,
        )
        if job is None:
            # Someone re-added the id between our remove and add.
            raise StoreConflictError(context={"id": entry.id})
        await self._notify_added(entry.id)

    async def get(self, record_id: str) -> DeadLetterEntry | None:
        job = Job(
            record_id,
            self.redis,
            _queue_name=self.queue_name,
            _deserializer=deserialize_record,
        )
        try:
            info = await job.info()
        except DeserializationError as e:
            raise StoreError(f"Undecodable dead letter record {record_id!r}") from e
        if info is None or not info.args:
            return None
        try:
            return DeadLetterEntry.from_dict(info.args[0])
        except (KeyError, TypeError, ValueError) as e:
            raise StoreError(f"Malformed dead letter record {record_id!r}") from e

    async def list_entries(
        self,
        limit: int = DEFAULT_PAGE_LIMIT,
        offset: int = 0,
    ) -> list[DeadLetterEntry]:
        """Return one bounded page of records, oldest add first."""
        if limit <= 0:
            msg = f"limit must be positive, got {limit}"
            raise ValueError(msg)
        raw_ids = await self.redis.zrange(self.queue_name, offset, offset + limit - 1)
        entries: list[DeadLetterEntry] = []
        for raw_id in raw_ids:
            entry = await self.get(_decode(raw_id))
            # Expired job keys leave a dangling id in the sorted set
            if entry is not None:
                entries.append(entry)
        return entries

    async def remove(self, record_id: str) -> bool:
        """Delete a record. Returns True if one existed."""
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.delete(job_key_prefix + record_id)
            pipe.zrem(self.queue_name, record_id)
            deleted, unqueued = await pipe.execute()
        return bool(deleted) or bool(unqueued)

    async def count(self) -> int:
        return int(await self.redis.zcard(self.queue_name))

    async def ping(self) -> bool:
        return bool(await self.redis.ping())

    async def close(self) -> None:
        await self.redis.aclose()
        logger.debug("dlq_store_closed", queue=self.queue_name)

    async def _notify_added(self, record_id: str) -> None:
        for listener in self._listeners:
            try:
                await listener(record_id)
            except Exception as e:
                logger.warning(
                    "dlq_store_listener_failed",
                    record_id=record_id,
                    error=str(e),
                )
