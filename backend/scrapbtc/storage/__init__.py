"""Data storage layer."""

from scrapbtc.storage.database import Database, get_database, init_database
from scrapbtc.storage.block_repo import BlockRepository
from scrapbtc.storage.processing_status_repo import ProcessingStatusRepository
from scrapbtc.storage.block_store import SqlBlockStore

__all__ = [
    "Database",
    "get_database",
    "init_database",
    "BlockRepository",
    "ProcessingStatusRepository",
    "SqlBlockStore",
]
