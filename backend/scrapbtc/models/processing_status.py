"""Processing status model for tracking per-block progress."""

from datetime import datetime
from enum import Enum
from pydantic import BaseModel, ConfigDict


class ProcessingState(str, Enum):
    """Per-height processing state."""

    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ProcessingStatus(BaseModel):
    """Durable processing status of one block height.

    Used to resume safely across restarts:
    - processing: the pipeline started (or a run died mid-block)
    - completed: block and all its transactions are stored
    - failed: the last attempt failed, error_message says why

    Anything other than completed is picked up again by the next run.
    """

    model_config = ConfigDict(frozen=False)

    height: int
    block_hash: str | None = None  # None when hash resolution failed
    state: ProcessingState
    started_at: datetime
    completed_at: datetime | None = None
    error_message: str | None = None

    @property
    def is_completed(self) -> bool:
        return self.state == ProcessingState.COMPLETED
