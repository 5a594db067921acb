"""In-memory progress events.

These never touch the database, so they use a slotted dataclass
instead of a Pydantic model.
"""

from dataclasses import dataclass
from enum import Enum


class ProgressStatus(str, Enum):
    """Tag carried by every progress event."""

    PROCESSING = "processing"
    PROCESSING_TRANSACTIONS = "processing_transactions"
    COMPLETED = "completed"
    FAILED = "failed"
    ALL_ALREADY_PROCESSED = "all_already_processed"


TERMINAL_STATUSES = frozenset({ProgressStatus.COMPLETED, ProgressStatus.FAILED})


@dataclass(slots=True, frozen=True)
class ProgressEvent:
    """Progress notification for one block height.

    ``height`` is None only for the all-already-processed event.
    """

    status: ProgressStatus
    height: int | None = None
    tx_count: int = 0
    error: Exception | None = None
    debug_message: str | None = None

    @property
    def is_terminal(self) -> bool:
        """Whether this event ends the pipeline for its height."""
        return self.status in TERMINAL_STATUSES
