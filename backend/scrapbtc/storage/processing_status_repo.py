"""Processing status repository for tracking per-block progress."""

from datetime import datetime, timezone

from sqlalchemy import func, select, update

from scrapbtc.exceptions import StatusUpdateError
from scrapbtc.models import ProcessingState, ProcessingStatus
from scrapbtc.storage.database import Database, ProcessingStatusTable, get_database


class ProcessingStatusRepository:
    """Repository for the processing status ledger.

    One row per block height. Only rows in the 'completed' state are
    excluded from later runs.
    """

    def __init__(self, db: Database | None = None):
        self._db = db

    @property
    def db(self) -> Database:
        return self._db or get_database()

    async def get_completed_heights(self, from_height: int, to_height: int) -> set[int]:
        """Heights in [from_height, to_height] whose status is completed."""
        async with self.db.session() as session:
            stmt = select(ProcessingStatusTable.block_height).where(
                ProcessingStatusTable.status == ProcessingState.COMPLETED.value,
                ProcessingStatusTable.block_height.between(from_height, to_height),
            )
            result = await session.execute(stmt)
            return set(result.scalars().all())

    async def get_status(self, height: int) -> ProcessingStatus | None:
        """Get the processing status of a height."""
        async with self.db.session() as session:
            stmt = select(ProcessingStatusTable).where(
                ProcessingStatusTable.block_height == height
            )
            result = await session.execute(stmt)
            row = result.scalar_one_or_none()

            if row is None:
                return None

            return ProcessingStatus(
                height=row.block_height,
                block_hash=row.block_hash,
                state=ProcessingState(row.status),
                started_at=row.started_at,
                completed_at=row.completed_at,
                error_message=row.error_message,
            )

    async def mark_processing(self, height: int, block_hash: str) -> None:
        """Start (or restart) processing of a height."""
        now = datetime.now(timezone.utc)
        async with self.db.session() as session:
            stmt = self.db.insert(ProcessingStatusTable).values(
                block_height=height,
                block_hash=block_hash,
                status=ProcessingState.PROCESSING.value,
                started_at=now,
                completed_at=None,
                error_message=None,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["block_height"],
                set_={
                    "block_hash": stmt.excluded.block_hash,
                    "status": stmt.excluded.status,
                    "started_at": stmt.excluded.started_at,
                    "completed_at": None,
                    "error_message": None,
                },
            )
            await session.execute(stmt)

    async def mark_completed(self, height: int) -> None:
        """Mark a height completed.

        Raises:
            StatusUpdateError: if the height was never marked processing
        """
        async with self.db.session() as session:
            stmt = (
                update(ProcessingStatusTable)
                .where(ProcessingStatusTable.block_height == height)
                .values(
                    status=ProcessingState.COMPLETED.value,
                    completed_at=datetime.now(timezone.utc),
                    error_message=None,
                )
            )
            result = await session.execute(stmt)
            if result.rowcount == 0:
                raise StatusUpdateError(f"no processing status for block {height}")

    async def mark_failed(self, height: int, error_message: str) -> None:
        """Mark a height failed, creating the row if the hash was never resolved."""
        now = datetime.now(timezone.utc)
        async with self.db.session() as session:
            stmt = self.db.insert(ProcessingStatusTable).values(
                block_height=height,
                block_hash=None,
                status=ProcessingState.FAILED.value,
                started_at=now,
                completed_at=now,
                error_message=error_message,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["block_height"],
                set_={
                    "status": stmt.excluded.status,
                    "completed_at": stmt.excluded.completed_at,
                    "error_message": stmt.excluded.error_message,
                },
            )
            await session.execute(stmt)

    async def get_max_completed_height(self) -> int | None:
        """Highest completed height, or None when nothing is completed."""
        async with self.db.session() as session:
            stmt = select(func.max(ProcessingStatusTable.block_height)).where(
                ProcessingStatusTable.status == ProcessingState.COMPLETED.value
            )
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def count_by_state(self, from_height: int, to_height: int) -> dict[ProcessingState, int]:
        """Number of status rows per state within a height range."""
        async with self.db.session() as session:
            stmt = (
                select(ProcessingStatusTable.status, func.count())
                .where(ProcessingStatusTable.block_height.between(from_height, to_height))
                .group_by(ProcessingStatusTable.status)
            )
            result = await session.execute(stmt)
            return {ProcessingState(status): count for status, count in result.all()}
