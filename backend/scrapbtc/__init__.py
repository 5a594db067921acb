"""Resumable concurrent Bitcoin block scraper.

Fetches blocks from a Bitcoin Core node over JSON-RPC and stores normalized
block and transaction records in a SQL database, resuming safely across
restarts.

Usage:
    python -m scrapbtc --user rpcuser --pass rpcpass --from 2024-01-01
"""

__version__ = "0.1.0"
