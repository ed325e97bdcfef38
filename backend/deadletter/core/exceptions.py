"""Custom exception hierarchy for the dead letter service.

Hierarchy:
    DeadLetterError (base)
    +-- StoreError               unencodable or undecodable record, lost add
    |   +-- StoreConflictError   add raced with another writer (retried)
    +-- ServiceNotStartedError   operation called before start()
"""

from __future__ import annotations


class DeadLetterError(Exception):
    """Base exception for all dead letter service errors."""

    detail: str = "Dead letter service error"

    def __init__(self, detail: str | None = None, *, context: dict[str, object] | None = None):
        self.detail = detail or self.__class__.detail
        self.context = context or {}
        super().__init__(self.detail)


class StoreError(DeadLetterError):
    """The dead letter store could not read or write a record."""

    detail = "Dead letter store error"


class StoreConflictError(StoreError):
    """Another writer added the same record id between our remove and add."""

    detail = "Concurrent write to dead letter record"


class ServiceNotStartedError(DeadLetterError):
    """DeadLetterService used before start() or after stop()."""

    detail = "Dead letter service is not started"
