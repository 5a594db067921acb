"""Database connection and table definitions."""

import asyncio
from contextlib import asynccontextmanager, nullcontext
from typing import AsyncGenerator

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Table,
    Text,
)
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

from scrapbtc.config import get_settings

Base = declarative_base()


class BlockTable(Base):
    """Block header table."""

    __tablename__ = "blocks"

    hash = Column(String(64), primary_key=True)
    height = Column(BigInteger, nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False)
    size = Column(Integer, nullable=False)
    weight = Column(Integer, nullable=False)
    tx_count = Column(Integer, nullable=False)
    previous_block_hash = Column(String(64), nullable=False, default="")
    merkle_root = Column(String(64), nullable=False)
    nonce = Column(BigInteger, nullable=False)
    bits = Column(String(16), nullable=False)
    difficulty = Column(Float, nullable=False)
    processed_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_blocks_height", "height"),
        Index("idx_blocks_timestamp", "timestamp"),
    )


class TransactionTable(Base):
    """Transaction table, one row per txid."""

    __tablename__ = "transactions"

    txid = Column(String(64), primary_key=True)
    block_hash = Column(String(64), nullable=False)
    block_height = Column(BigInteger, nullable=False)
    size = Column(Integer, nullable=False)
    vsize = Column(Integer, nullable=False)
    weight = Column(Integer, nullable=False)
    fee = Column(BigInteger, nullable=False, default=0)
    input_count = Column(Integer, nullable=False)
    output_count = Column(Integer, nullable=False)
    input_value = Column(BigInteger, nullable=False, default=0)
    output_value = Column(BigInteger, nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False)
    processed_at = Column(DateTime(timezone=True), nullable=False)
    is_coinbase = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("idx_transactions_block_height", "block_height"),
        Index("idx_transactions_block_hash", "block_hash"),
        Index("idx_transactions_timestamp", "timestamp"),
    )


class ProcessingStatusTable(Base):
    """Per-height processing ledger.

    - status: 'processing' | 'completed' | 'failed'
    - block_hash: NULL when the hash could not be resolved
    - Only 'completed' rows are skipped on resume
    """

    __tablename__ = "processing_status"

    block_height = Column(BigInteger, primary_key=True)
    block_hash = Column(String(64), nullable=True)
    status = Column(String(20), nullable=False)
    started_at = Column(DateTime(timezone=True), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    error_message = Column(Text, nullable=True)

    __table_args__ = (
        Index("idx_processing_status_status", "status"),
    )


class Database:
    """Database connection manager."""

    def __init__(self, database_url: str | None = None):
        settings = get_settings()
        url = database_url or settings.database_url

        # Convert postgresql:// to postgresql+asyncpg://
        if url.startswith("postgresql://"):
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)

        # Sessions sharing one connection must not interleave their
        # transactions, so they take turns
        self._shared_connection_lock: asyncio.Lock | None = None

        if url.startswith("sqlite"):
            # In-memory SQLite lives on a single connection
            engine_kwargs = {}
            if ":memory:" in url or url.endswith("://"):
                engine_kwargs["poolclass"] = StaticPool
                self._shared_connection_lock = asyncio.Lock()
            self.engine = create_async_engine(url, echo=settings.debug, **engine_kwargs)
        else:
            # Every worker holds at most one connection at a time, so the
            # pool is sized for the default 10 workers plus headroom
            self.engine = create_async_engine(
                url,
                echo=settings.debug,
                pool_size=20,
                max_overflow=10,
                pool_pre_ping=True,
                pool_recycle=3600,
                pool_timeout=30,
                connect_args={
                    "timeout": 10,
                    "command_timeout": 60,
                },
            )
        self.session_factory = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    def insert(self, table: Table | type):
        """Dialect-specific INSERT supporting ON CONFLICT clauses."""
        if self.dialect_name == "sqlite":
            return sqlite.insert(table)
        return postgresql.insert(table)

    async def create_tables(self) -> None:
        """Create all tables and indexes (no-op for existing ones)."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get a database session.

        On a single shared connection (in-memory SQLite) sessions are
        serialized, each one committing or rolling back before the next
        begins.
        """
        async with self._shared_connection_lock or nullcontext():
            async with self.session_factory() as session:
                try:
                    yield session
                    await session.commit()
                except Exception:
                    await session.rollback()
                    raise

    async def close(self) -> None:
        """Close database connection."""
        await self.engine.dispose()


# Global database instance
_db: Database | None = None


def get_database() -> Database:
    """Get the global database instance."""
    global _db
    if _db is None:
        _db = Database()
    return _db


async def init_database(database_url: str | None = None) -> Database:
    """Initialize the database and create tables.

    A URL given here replaces the global instance.
    """
    global _db
    if database_url is not None:
        _db = Database(database_url)
    db = get_database()
    await db.create_tables()
    return db
