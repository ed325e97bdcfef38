"""Error taxonomy for dead-lettered jobs.

Maps a free-text error message to one label from a fixed, ordered taxonomy.
Rules are evaluated top to bottom and the first match wins, so a message like
"Request timeout and 404" is a Timeout, not a NotFound.
"""

from __future__ import annotations

import re
from enum import Enum


class ErrorType(str, Enum):
    TIMEOUT = "Timeout"
    NETWORK = "Network"
    AUTHENTICATION = "Authentication"
    AUTHORIZATION = "Authorization"
    NOT_FOUND = "NotFound"
    RATE_LIMIT = "RateLimit"
    VALIDATION = "Validation"
    DATABASE = "Database"
    CACHE = "Cache"
    UNKNOWN = "Unknown"

    def __str__(self) -> str:
        return self.value


# Order matters: first match wins.
CLASSIFICATION_RULES: tuple[tuple[re.Pattern[str], ErrorType], ...] = (
    (re.compile(r"timeout", re.IGNORECASE), ErrorType.TIMEOUT),
    (re.compile(r"network|ECONNREFUSED|ENOTFOUND", re.IGNORECASE), ErrorType.NETWORK),
    (re.compile(r"unauthorized|authentication|401", re.IGNORECASE), ErrorType.AUTHENTICATION),
    (re.compile(r"forbidden|403", re.IGNORECASE), ErrorType.AUTHORIZATION),
    (re.compile(r"not found|404", re.IGNORECASE), ErrorType.NOT_FOUND),
    (re.compile(r"rate limit|429", re.IGNORECASE), ErrorType.RATE_LIMIT),
    (re.compile(r"validation|invalid", re.IGNORECASE), ErrorType.VALIDATION),
    (re.compile(r"database|sql", re.IGNORECASE), ErrorType.DATABASE),
    (re.compile(r"redis", re.IGNORECASE), ErrorType.CACHE),
)


def classify(message: str | None) -> ErrorType:
    """Classify an error message. Never raises; unmatched input is Unknown."""
    if not message:
        return ErrorType.UNKNOWN
    for pattern, error_type in CLASSIFICATION_RULES:
        if pattern.search(message):
            return error_type
    return ErrorType.UNKNOWN
