"""BlockRangeProcessor: resumable concurrent block ingestion.

Pipeline per height:
1. Resolve the block hash
2. Mark the height processing
3. Fetch the block with its transactions
4. Insert the block, then every transaction in block order
5. Mark the height completed

Every failure is terminal for that height in this run and is reported as a
``failed`` event. The height is not marked completed, so the next run picks
it up again.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from scrapbtc.exceptions import (
    ConfigurationError,
    FetchError,
    PersistenceError,
    ProcessingCancelled,
    SetupError,
    StatusUpdateError,
)
from scrapbtc.models import ProgressEvent, ProgressStatus
from scrapbtc.processor.events import EventStream
from scrapbtc.processor.protocols import BlockSource, BlockStore
from scrapbtc.processor.resolver import resolve_pending_heights

logger = logging.getLogger(__name__)

# Transaction heartbeat intervals
HEARTBEAT_INTERVAL = 100
DEBUG_HEARTBEAT_INTERVAL = 1000


@dataclass(frozen=True)
class ProcessorConfig:
    """Configuration for a processing run."""

    from_height: int
    to_height: int
    pool_size: int = 10

    def __post_init__(self) -> None:
        if self.pool_size < 1:
            raise ConfigurationError(f"pool size must be >= 1, got {self.pool_size}")
        if self.from_height < 0:
            raise ConfigurationError(f"from height must be >= 0, got {self.from_height}")
        if self.from_height > self.to_height:
            raise ConfigurationError(
                f"from height {self.from_height} is above to height {self.to_height}"
            )

    @property
    def total_blocks(self) -> int:
        return self.to_height - self.from_height + 1


class BlockRangeProcessor:
    """Process a block range with a fixed pool of concurrent workers.

    Progress is published on ``events``; the stream closes exactly once,
    after every worker has returned. A processor runs once.
    """

    def __init__(self, config: ProcessorConfig, source: BlockSource, store: BlockStore):
        self.config = config
        self._source = source
        self._store = store
        self._events = EventStream(capacity=2 * config.pool_size)
        self._started = False

    @property
    def events(self) -> EventStream:
        """Read-only progress stream for the observer."""
        return self._events

    async def run(self, cancel: asyncio.Event | None = None) -> None:
        """Process every pending height in the configured range.

        Args:
            cancel: Set to stop handing out new heights. Heights already
                    being processed run to completion.

        Raises:
            SetupError: the pending set could not be computed
            ProcessingCancelled: cancellation left pending heights unstarted
        """
        if self._started:
            raise RuntimeError("BlockRangeProcessor.run() can only be called once")
        self._started = True
        cancel = cancel or asyncio.Event()
        cfg = self.config

        try:
            pending = await resolve_pending_heights(self._store, cfg.from_height, cfg.to_height)
        except SetupError:
            self._events.close()
            raise

        if not pending:
            logger.info(f"All blocks {cfg.from_height}-{cfg.to_height} already processed")
            await self._events.emit(ProgressEvent(status=ProgressStatus.ALL_ALREADY_PROCESSED))
            self._events.close()
            return

        logger.info(
            f"Processing {len(pending)} of {cfg.total_blocks} blocks "
            f"({cfg.from_height}-{cfg.to_height}) with {cfg.pool_size} workers"
        )

        # Room for every pending height, so enqueuing never waits on workers
        # and the queue is full before any worker first runs
        queue: asyncio.Queue[int] = asyncio.Queue(maxsize=len(pending))
        workers = [
            asyncio.create_task(self._worker(i, queue, cancel), name=f"block-worker-{i}")
            for i in range(cfg.pool_size)
        ]

        enqueued = 0
        try:
            for height in pending:
                if cancel.is_set():
                    break
                await queue.put(height)
                enqueued += 1
            # Nothing is added past this point: an empty queue means closed
            await asyncio.gather(*workers)
        finally:
            for task in workers:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
            self._events.close()

        unstarted = len(pending) - enqueued + queue.qsize()
        if cancel.is_set() and unstarted:
            logger.warning(f"Run cancelled with {unstarted} blocks not started")
            raise ProcessingCancelled(f"cancelled with {unstarted} of {len(pending)} blocks not started")

        logger.info(f"Finished blocks {cfg.from_height}-{cfg.to_height}")

    async def _worker(self, worker_id: int, queue: asyncio.Queue[int], cancel: asyncio.Event) -> None:
        """Pull heights until the queue is empty or the run is cancelled."""
        while not cancel.is_set():
            try:
                height = queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            await self._process_block(height)
        logger.debug(f"Worker {worker_id} stopped")

    async def _process_block(self, height: int) -> None:
        """Run the pipeline for one height and emit its terminal event."""
        await self._events.emit(
            ProgressEvent(
                status=ProgressStatus.PROCESSING,
                height=height,
                debug_message=f"Starting to process block {height}",
            )
        )

        try:
            tx_count = await self._run_pipeline(height)
        except (FetchError, PersistenceError, StatusUpdateError) as e:
            logger.warning(f"Block {height} failed: {e}")
            await self._events.emit(ProgressEvent(status=ProgressStatus.FAILED, height=height, error=e))
            return

        await self._events.emit(
            ProgressEvent(
                status=ProgressStatus.COMPLETED,
                height=height,
                tx_count=tx_count,
                debug_message=f"Completed block {height} with {tx_count} transactions",
            )
        )

    async def _run_pipeline(self, height: int) -> int:
        """Fetch and store one block. Returns its transaction count."""
        try:
            block_hash = await self._source.get_block_hash(height)
        except Exception as e:
            await self._mark_failed_quietly(height, e)
            raise FetchError(f"failed to get hash for block {height}: {e}") from e

        try:
            await self._store.mark_processing(height, block_hash)
        except Exception as e:
            # Not completed, so still pending next run; no failed write
            raise StatusUpdateError(f"failed to mark block {height} processing: {e}") from e

        try:
            block, transactions = await self._source.get_block_with_transactions(block_hash)
        except Exception as e:
            await self._mark_failed_quietly(height, e)
            raise FetchError(f"failed to get block {height} with transactions: {e}") from e

        try:
            await self._store.insert_block(block)
        except Exception as e:
            await self._mark_failed_quietly(height, e)
            raise PersistenceError(f"failed to insert block {height}: {e}") from e

        total = len(transactions)
        for count, tx in enumerate(transactions, start=1):
            try:
                await self._store.insert_transaction(tx)
            except Exception as e:
                await self._mark_failed_quietly(height, e)
                raise PersistenceError(f"failed to insert transaction {tx.txid}: {e}") from e

            if count % HEARTBEAT_INTERVAL == 0 or count == total:
                await self._events.emit(
                    ProgressEvent(
                        status=ProgressStatus.PROCESSING_TRANSACTIONS,
                        height=height,
                        tx_count=count,
                        debug_message=f"Block {height}: processed {count}/{total} transactions",
                    )
                )
            if count % DEBUG_HEARTBEAT_INTERVAL == 0:
                message = f"Processed {count}/{total} transactions for block {height}"
                logger.debug(message)
                await self._events.emit(
                    ProgressEvent(
                        status=ProgressStatus.PROCESSING_TRANSACTIONS,
                        height=height,
                        tx_count=count,
                        debug_message=message,
                    )
                )

        try:
            await self._store.mark_completed(height)
        except Exception as e:
            # Status stays processing, retried next run
            raise StatusUpdateError(f"failed to mark block {height} completed: {e}") from e

        return total

    async def _mark_failed_quietly(self, height: int, error: Exception) -> None:
        """Record a failed status; a write error here is logged and ignored."""
        try:
            await self._store.mark_failed(height, str(error))
        except Exception as e:
            logger.warning(f"Could not record failure of block {height}: {e}")
