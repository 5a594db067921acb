"""Data models."""

from scrapbtc.models.block import SATOSHIS_PER_BTC, BlockRecord, TransactionRecord
from scrapbtc.models.processing_status import ProcessingState, ProcessingStatus
from scrapbtc.models.progress import (
    TERMINAL_STATUSES,
    ProgressEvent,
    ProgressStatus,
)

__all__ = [
    "SATOSHIS_PER_BTC",
    "BlockRecord",
    "TransactionRecord",
    "ProcessingState",
    "ProcessingStatus",
    "ProgressEvent",
    "ProgressStatus",
    "TERMINAL_STATUSES",
]
