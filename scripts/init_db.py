#!/usr/bin/env python3
"""Create the scraper tables in an empty database.

Usage:
    python scripts/init_db.py [DATABASE_URL]
"""

import asyncio
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

from scrapbtc.storage import init_database


async def main(database_url: str | None = None):
    print("Initializing database...")
    db = await init_database(database_url)
    print(f"Database initialized successfully! ({db.dialect_name})")
    print("Tables created: blocks, transactions, processing_status")
    await db.close()


if __name__ == "__main__":
    asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else None))
