"""Block and transaction repository."""

from sqlalchemy import func, select

from scrapbtc.models import BlockRecord, TransactionRecord
from scrapbtc.storage.database import BlockTable, Database, TransactionTable, get_database


def _transaction_values(tx: TransactionRecord) -> dict:
    return {
        "txid": tx.txid,
        "block_hash": tx.block_hash,
        "block_height": tx.block_height,
        "size": tx.size,
        "vsize": tx.vsize,
        "weight": tx.weight,
        "fee": tx.fee,
        "input_count": tx.input_count,
        "output_count": tx.output_count,
        "input_value": tx.input_value,
        "output_value": tx.output_value,
        "timestamp": tx.timestamp,
        "processed_at": tx.processed_at,
        "is_coinbase": tx.is_coinbase,
    }


class BlockRepository:
    """Repository for block and transaction records.

    All writes are insert-or-ignore: storing a record that already exists
    is a no-op, so a block can be re-ingested after a partial failure.
    """

    def __init__(self, db: Database | None = None):
        self._db = db

    @property
    def db(self) -> Database:
        return self._db or get_database()

    async def insert_block(self, block: BlockRecord) -> None:
        """Insert a block header (ignored if the hash exists)."""
        async with self.db.session() as session:
            stmt = self.db.insert(BlockTable).values(
                hash=block.hash,
                height=block.height,
                timestamp=block.timestamp,
                size=block.size,
                weight=block.weight,
                tx_count=block.tx_count,
                previous_block_hash=block.previous_block_hash,
                merkle_root=block.merkle_root,
                nonce=block.nonce,
                bits=block.bits,
                difficulty=block.difficulty,
                processed_at=block.processed_at,
            )
            stmt = stmt.on_conflict_do_nothing(index_elements=["hash"])
            await session.execute(stmt)

    async def insert_transaction(self, tx: TransactionRecord) -> None:
        """Insert a single transaction (ignored if the txid exists)."""
        async with self.db.session() as session:
            stmt = self.db.insert(TransactionTable).values(**_transaction_values(tx))
            stmt = stmt.on_conflict_do_nothing(index_elements=["txid"])
            await session.execute(stmt)

    async def insert_transactions_batch(
        self, transactions: list[TransactionRecord], chunk_size: int = 1000
    ) -> None:
        """Insert many transactions atomically.

        Args:
            transactions: Transactions to insert
            chunk_size: Rows per INSERT statement (to stay under the PostgreSQL
                        32767 parameter limit - 14 columns * 1000 = 14000)

        The whole batch commits in one database transaction: either every
        new row is stored or none is.
        """
        if not transactions:
            return

        async with self.db.session() as session:
            for i in range(0, len(transactions), chunk_size):
                chunk = transactions[i:i + chunk_size]
                stmt = self.db.insert(TransactionTable).values(
                    [_transaction_values(tx) for tx in chunk]
                )
                stmt = stmt.on_conflict_do_nothing(index_elements=["txid"])
                await session.execute(stmt)

    async def get_block(self, block_hash: str) -> BlockRecord | None:
        """Get a block by hash."""
        async with self.db.session() as session:
            stmt = select(BlockTable).where(BlockTable.hash == block_hash)
            result = await session.execute(stmt)
            row = result.scalar_one_or_none()

            if row is None:
                return None

            return BlockRecord(
                hash=row.hash,
                height=row.height,
                timestamp=row.timestamp,
                size=row.size,
                weight=row.weight,
                tx_count=row.tx_count,
                previous_block_hash=row.previous_block_hash,
                merkle_root=row.merkle_root,
                nonce=row.nonce,
                bits=row.bits,
                difficulty=row.difficulty,
                processed_at=row.processed_at,
            )

    async def get_transactions(self, block_height: int) -> list[TransactionRecord]:
        """Get all stored transactions of a block height."""
        async with self.db.session() as session:
            stmt = (
                select(TransactionTable)
                .where(TransactionTable.block_height == block_height)
                .order_by(TransactionTable.txid)
            )
            result = await session.execute(stmt)
            rows = result.scalars().all()

            return [
                TransactionRecord(
                    txid=row.txid,
                    block_hash=row.block_hash,
                    block_height=row.block_height,
                    size=row.size,
                    vsize=row.vsize,
                    weight=row.weight,
                    fee=row.fee,
                    input_count=row.input_count,
                    output_count=row.output_count,
                    input_value=row.input_value,
                    output_value=row.output_value,
                    timestamp=row.timestamp,
                    processed_at=row.processed_at,
                    is_coinbase=row.is_coinbase,
                )
                for row in rows
            ]

    async def count_transactions(self) -> int:
        """Count all stored transactions."""
        async with self.db.session() as session:
            result = await session.execute(select(func.count()).select_from(TransactionTable))
            return result.scalar_one()
