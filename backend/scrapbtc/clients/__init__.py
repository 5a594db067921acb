"""Blockchain node clients."""

from scrapbtc.clients.bitcoin_rpc import BitcoinRpcClient, btc_to_satoshis, parse_block

__all__ = [
    "BitcoinRpcClient",
    "btc_to_satoshis",
    "parse_block",
]
