"""Pending height resolution."""

from __future__ import annotations

import logging

from scrapbtc.exceptions import SetupError
from scrapbtc.processor.protocols import BlockStore

logger = logging.getLogger(__name__)


async def resolve_pending_heights(store: BlockStore, from_height: int, to_height: int) -> list[int]:
    """Heights in [from_height, to_height] that are not completed, ascending.

    Heights without a status row, failed heights and heights stuck in
    processing are all pending, so earlier failures are retried.

    Raises:
        SetupError: if the completed set cannot be loaded
    """
    try:
        completed = await store.completed_heights(from_height, to_height)
    except Exception as e:
        raise SetupError(f"failed to get processed blocks: {e}") from e

    pending = [h for h in range(from_height, to_height + 1) if h not in completed]
    logger.debug(
        f"Range {from_height}-{to_height}: {len(pending)} pending, "
        f"{to_height - from_height + 1 - len(pending)} completed"
    )
    return pending
