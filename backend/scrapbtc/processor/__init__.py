"""Resumable concurrent block-range processing."""

from scrapbtc.processor.events import EventStream
from scrapbtc.processor.pool import (
    DEBUG_HEARTBEAT_INTERVAL,
    HEARTBEAT_INTERVAL,
    BlockRangeProcessor,
    ProcessorConfig,
)
from scrapbtc.processor.protocols import BlockSource, BlockStore
from scrapbtc.processor.resolver import resolve_pending_heights

__all__ = [
    "BlockRangeProcessor",
    "ProcessorConfig",
    "EventStream",
    "BlockSource",
    "BlockStore",
    "resolve_pending_heights",
    "HEARTBEAT_INTERVAL",
    "DEBUG_HEARTBEAT_INTERVAL",
]
