"""Collaborator protocols for the block processor.

Any source (Bitcoin Core RPC, a test fake, ...) and any store (SQL,
in-memory, ...) implementing these can drive a BlockRangeProcessor.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from scrapbtc.models import BlockRecord, TransactionRecord


@runtime_checkable
class BlockSource(Protocol):
    """Protocol for block data access."""

    async def get_best_height(self) -> int:
        """Height of the current chain tip."""
        ...

    async def get_block_hash(self, height: int) -> str:
        """Resolve a height to its block hash."""
        ...

    async def get_block_with_transactions(
        self, block_hash: str
    ) -> tuple[BlockRecord, list[TransactionRecord]]:
        """Fetch a block and its transactions in block order."""
        ...


@runtime_checkable
class BlockStore(Protocol):
    """Protocol that storage backends must implement.

    Must tolerate concurrent calls from every worker. Inserts are
    insert-or-ignore.
    """

    async def completed_heights(self, from_height: int, to_height: int) -> set[int]:
        """Heights in the inclusive range whose status is completed."""
        ...

    async def mark_processing(self, height: int, block_hash: str) -> None:
        ...

    async def mark_completed(self, height: int) -> None:
        ...

    async def mark_failed(self, height: int, error_message: str) -> None:
        ...

    async def insert_block(self, block: BlockRecord) -> None:
        ...

    async def insert_transaction(self, tx: TransactionRecord) -> None:
        ...

    async def insert_transactions_batch(self, transactions: list[TransactionRecord]) -> None:
        """Insert many transactions; atomic per batch."""
        ...
