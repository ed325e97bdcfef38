"""arq integration for the dead letter service.

Entry point:
    uv run arq deadletter.workers.settings.WorkerSettings

Tasks:
    retry_dead_letters  — Bulk retry of dead letter records
    clean_dead_letters  — One-off retention sweep
"""

from deadletter.workers.capture import dead_letter_on_failure
from deadletter.workers.settings import WorkerSettings, shutdown, startup
from deadletter.workers.tasks import clean_dead_letters, retry_dead_letters

__all__ = [
    "WorkerSettings",
    "clean_dead_letters",
    "dead_letter_on_failure",
    "retry_dead_letters",
    "shutdown",
    "startup",
]
