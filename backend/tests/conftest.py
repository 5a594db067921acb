"""Shared in-memory fakes for the block source and store."""

import asyncio
from datetime import datetime, timezone

import pytest

from scrapbtc.models import BlockRecord, ProcessingState, TransactionRecord

BLOCK_TIME = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def make_block(height: int, tx_count: int = 3) -> tuple[BlockRecord, list[TransactionRecord]]:
    """Build a block with ``tx_count`` transactions (first one coinbase)."""
    block_hash = f"{height:064x}"
    block = BlockRecord(
        hash=block_hash,
        height=height,
        timestamp=BLOCK_TIME,
        size=1000 + tx_count,
        weight=4000 + tx_count,
        tx_count=tx_count,
        previous_block_hash=f"{height - 1:064x}" if height else "",
        merkle_root="ab" * 32,
        nonce=height,
        bits="17034219",
        difficulty=1.0,
        processed_at=BLOCK_TIME,
    )
    transactions = [
        TransactionRecord(
            txid=f"{height:032x}{i:032x}",
            block_hash=block_hash,
            block_height=height,
            size=250,
            vsize=140,
            weight=560,
            input_count=1,
            output_count=2,
            output_value=50_000 + i,
            timestamp=BLOCK_TIME,
            processed_at=BLOCK_TIME,
            is_coinbase=i == 0,
        )
        for i in range(tx_count)
    ]
    return block, transactions


class FakeSource:
    """In-memory block source with per-height failure injection."""

    def __init__(self):
        self.blocks: dict[str, tuple[BlockRecord, list[TransactionRecord]]] = {}
        self.hashes: dict[int, str] = {}
        self.hash_errors: dict[int, Exception] = {}
        self.fetch_errors: dict[int, Exception] = {}
        self.on_fetch = None  # async callback(height) run inside the fetch
        self.delay = 0.0
        self.started: list[int] = []
        self.in_flight = 0
        self.max_in_flight = 0

    def add_block(self, height: int, tx_count: int = 3) -> None:
        block, txs = make_block(height, tx_count)
        self.blocks[block.hash] = (block, txs)
        self.hashes[height] = block.hash

    def add_range(self, from_height: int, to_height: int, tx_count: int = 3) -> None:
        for height in range(from_height, to_height + 1):
            self.add_block(height, tx_count)

    async def get_best_height(self) -> int:
        return max(self.hashes, default=0)

    async def get_block_hash(self, height: int) -> str:
        self.started.append(height)
        if height in self.hash_errors:
            raise self.hash_errors[height]
        return self.hashes[height]

    async def get_block_with_transactions(self, block_hash: str):
        block, txs = self.blocks[block_hash]
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.on_fetch is not None:
                await self.on_fetch(block.height)
            await asyncio.sleep(self.delay)
        finally:
            self.in_flight -= 1
        if block.height in self.fetch_errors:
            raise self.fetch_errors[block.height]
        return block, list(txs)


class FakeStore:
    """In-memory store mirroring the SQL store's status semantics."""

    def __init__(self):
        self.status: dict[int, ProcessingState] = {}
        self.hashes: dict[int, str | None] = {}
        self.errors: dict[int, str] = {}
        self.blocks: dict[str, BlockRecord] = {}
        self.transactions: dict[str, TransactionRecord] = {}
        self.block_writes = 0
        self.transaction_writes = 0
        self.query_error: Exception | None = None
        self.fail_processing: set[int] = set()
        self.fail_completed: set[int] = set()
        self.fail_mark_failed = False
        self.fail_block_insert: set[int] = set()
        self.fail_txids: set[str] = set()

    def complete(self, *heights: int) -> None:
        for height in heights:
            self.status[height] = ProcessingState.COMPLETED

    async def completed_heights(self, from_height: int, to_height: int) -> set[int]:
        if self.query_error is not None:
            raise self.query_error
        return {
            h for h, state in self.status.items()
            if state == ProcessingState.COMPLETED and from_height <= h <= to_height
        }

    async def mark_processing(self, height: int, block_hash: str) -> None:
        if height in self.fail_processing:
            raise RuntimeError("database is locked")
        self.status[height] = ProcessingState.PROCESSING
        self.hashes[height] = block_hash
        self.errors.pop(height, None)

    async def mark_completed(self, height: int) -> None:
        if height in self.fail_completed:
            raise RuntimeError("connection reset")
        if height not in self.status:
            raise LookupError(f"no status for {height}")
        self.status[height] = ProcessingState.COMPLETED

    async def mark_failed(self, height: int, error_message: str) -> None:
        if self.fail_mark_failed:
            raise RuntimeError("disk full")
        self.status[height] = ProcessingState.FAILED
        self.hashes.setdefault(height, None)
        self.errors[height] = error_message

    async def insert_block(self, block: BlockRecord) -> None:
        if block.height in self.fail_block_insert:
            raise RuntimeError("constraint violation")
        if block.hash not in self.blocks:
            self.blocks[block.hash] = block
            self.block_writes += 1

    async def insert_transaction(self, tx: TransactionRecord) -> None:
        if tx.txid in self.fail_txids:
            raise RuntimeError(f"cannot write {tx.txid}")
        if tx.txid not in self.transactions:
            self.transactions[tx.txid] = tx
            self.transaction_writes += 1

    async def insert_transactions_batch(self, transactions: list[TransactionRecord]) -> None:
        for tx in transactions:
            await self.insert_transaction(tx)


@pytest.fixture
def source():
    return FakeSource()


@pytest.fixture
def store():
    return FakeStore()
