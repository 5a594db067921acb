"""SQL-backed store used by the block processor."""

from scrapbtc.models import BlockRecord, TransactionRecord
from scrapbtc.storage.block_repo import BlockRepository
from scrapbtc.storage.database import Database
from scrapbtc.storage.processing_status_repo import ProcessingStatusRepository


class SqlBlockStore:
    """Combines the block and status repositories behind one store interface.

    Each call opens its own session, so any number of workers can use a
    single instance concurrently.
    """

    def __init__(self, db: Database | None = None):
        self.blocks = BlockRepository(db)
        self.status = ProcessingStatusRepository(db)

    async def completed_heights(self, from_height: int, to_height: int) -> set[int]:
        return await self.status.get_completed_heights(from_height, to_height)

    async def mark_processing(self, height: int, block_hash: str) -> None:
        await self.status.mark_processing(height, block_hash)

    async def mark_completed(self, height: int) -> None:
        await self.status.mark_completed(height)

    async def mark_failed(self, height: int, error_message: str) -> None:
        await self.status.mark_failed(height, error_message)

    async def insert_block(self, block: BlockRecord) -> None:
        await self.blocks.insert_block(block)

    async def insert_transaction(self, tx: TransactionRecord) -> None:
        await self.blocks.insert_transaction(tx)

    async def insert_transactions_batch(self, transactions: list[TransactionRecord]) -> None:
        await self.blocks.insert_transactions_batch(transactions)
