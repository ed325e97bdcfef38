"""Dead letter record and report types."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any

DLQ_ID_PREFIX = "dlq-"


def dead_letter_id(original_job_id: str) -> str:
    """Deterministic record id, the dedup key for an original job."""
    return f"{DLQ_ID_PREFIX}{original_job_id}"


def _parse_datetime(value: str | datetime) -> datetime:
    dt = value if isinstance(value, datetime) else datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


@dataclass
class DeadLetterEntry:
    """A job that exhausted its retries in its source queue.

    A later capture of the same original job replaces the record wholesale;
    only failure_count carries over.
    """

    original_job_id: str
    original_queue: str
    original_payload: Any
    failed_at: datetime
    attempts_made: int
    last_error: str
    failure_count: int = 1
    error_stack: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def id(self) -> str:
        return dead_letter_id(self.original_job_id)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["failed_at"] = self.failed_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DeadLetterEntry:
        return cls(
            original_job_id=data["original_job_id"],
            original_queue=data["original_queue"],
            original_payload=data.get("original_payload"),
            failed_at=_parse_datetime(data["failed_at"]),
            attempts_made=int(data.get("attempts_made", 0)),
            last_error=data.get("last_error", ""),
            failure_count=int(data.get("failure_count", 1)),
            error_stack=data.get("error_stack"),
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass
class RetryOptions:
    """Operator-supplied options recorded alongside a retry."""

    max_retries: int | None = None
    retry_delay: int | None = None  # milliseconds
    priority: int | None = None

    def to_marker(self) -> dict[str, int]:
        """Marker form; unset options are omitted."""
        marker = {
            "maxRetries": self.max_retries,
            "retryDelay": self.retry_delay,
            "priority": self.priority,
        }
        return {k: v for k, v in marker.items() if v is not None}


@dataclass
class JobFilters:
    queue_name: str | None = None
    error_type: str | None = None
    limit: int = 50
    offset: int = 0


@dataclass
class FailureSummary:
    job_id: str
    queue: str
    failed_at: datetime
    error: str

    def to_dict(self) -> dict[str, str]:
        return {
            "jobId": self.job_id,
            "queue": self.queue,
            "failedAt": self.failed_at.isoformat(),
            "error": self.error,
        }


@dataclass
class OldestFailure:
    job_id: str
    failed_at: datetime

    def to_dict(self) -> dict[str, str]:
        return {"jobId": self.job_id, "failedAt": self.failed_at.isoformat()}


@dataclass
class DeadLetterStats:
    """Aggregate view over one scanned page of the store."""

    total_failed: int = 0
    by_queue: dict[str, int] = field(default_factory=dict)
    by_error_type: dict[str, int] = field(default_factory=dict)
    recent_failures: list[FailureSummary] = field(default_factory=list)
    oldest_failure: OldestFailure | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalFailed": self.total_failed,
            "byQueue": dict(self.by_queue),
            "byErrorType": dict(self.by_error_type),
            "recentFailures": [f.to_dict() for f in self.recent_failures],
            "oldestFailure": self.oldest_failure.to_dict() if self.oldest_failure else None,
        }
