"""Bitcoin Core JSON-RPC client for fetching blocks."""

import itertools
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

import httpx

from scrapbtc.exceptions import BlockNotFoundError, RpcError
from scrapbtc.models import SATOSHIS_PER_BTC, BlockRecord, TransactionRecord

logger = logging.getLogger(__name__)

# Bitcoin Core RPC_INVALID_PARAMETER, returned for heights above the tip
RPC_INVALID_PARAMETER = -8


class BitcoinRpcClient:
    """Bitcoin Core JSON-RPC client."""

    def __init__(
        self,
        host: str = "localhost:8332",
        user: str = "",
        password: str = "",
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = host if host.startswith(("http://", "https://")) else f"http://{host}"
        self.user = user
        self.password = password
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._ids = itertools.count(1)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.url,
                auth=(self.user, self.password) if self.user else None,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _call(self, method: str, *params: Any) -> Any:
        """Make a JSON-RPC call and return its result.

        Bitcoin Core reports RPC errors with a non-2xx status and a JSON
        body, so the body is checked before the status code.
        """
        client = await self._get_client()
        payload = {"jsonrpc": "1.0", "id": next(self._ids), "method": method, "params": list(params)}
        try:
            response = await client.post("/", json=payload)
        except httpx.HTTPError as e:
            raise RpcError(f"{method} request failed: {e}") from e

        try:
            data = response.json(parse_float=Decimal)
        except ValueError:
            raise RpcError(
                f"{method} returned HTTP {response.status_code}", code=response.status_code
            ) from None

        error = data.get("error") if isinstance(data, dict) else None
        if error:
            code = error.get("code")
            message = f"{method} failed: {error.get('message', 'unknown error')} (code {code})"
            if code == RPC_INVALID_PARAMETER and method == "getblockhash":
                raise BlockNotFoundError(message, code=code)
            raise RpcError(message, code=code)

        if response.status_code != 200:
            raise RpcError(f"{method} returned HTTP {response.status_code}", code=response.status_code)
        return data["result"]

    async def connect(self) -> dict[str, Any]:
        """Check the connection and return blockchain info."""
        info = await self._call("getblockchaininfo")
        logger.info(f"Connected to Bitcoin RPC - Chain: {info['chain']}, Blocks: {info['blocks']}")
        return info

    async def get_best_height(self) -> int:
        """Height of the current chain tip."""
        return int(await self._call("getblockcount"))

    async def get_block_hash(self, height: int) -> str:
        """
        Resolve a block height to its hash.

        Raises:
            BlockNotFoundError: if the height is beyond the chain tip
        """
        return await self._call("getblockhash", height)

    async def get_block_with_transactions(
        self, block_hash: str
    ) -> tuple[BlockRecord, list[TransactionRecord]]:
        """
        Fetch a block with full transaction details (verbosity 2).

        Args:
            block_hash: Block hash

        Returns:
            The block record and its transactions in block order
        """
        data = await self._call("getblock", block_hash, 2)
        return parse_block(data, processed_at=datetime.now(timezone.utc))


def btc_to_satoshis(value: Decimal | float | int) -> int:
    """Convert a BTC amount to satoshis without float rounding."""
    return int(Decimal(str(value)) * SATOSHIS_PER_BTC)


def parse_block(
    data: dict[str, Any], processed_at: datetime
) -> tuple[BlockRecord, list[TransactionRecord]]:
    """Normalize a verbosity-2 ``getblock`` result."""
    block_time = datetime.fromtimestamp(int(data["time"]), tz=timezone.utc)
    raw_txs = data.get("tx", [])

    block = BlockRecord(
        hash=data["hash"],
        height=data["height"],
        timestamp=block_time,
        size=data["size"],
        weight=data["weight"],
        tx_count=len(raw_txs),
        previous_block_hash=data.get("previousblockhash", ""),
        merkle_root=data["merkleroot"],
        nonce=data["nonce"],
        bits=data["bits"],
        difficulty=float(data["difficulty"]),
        processed_at=processed_at,
    )

    transactions = []
    for raw in raw_txs:
        vin = raw.get("vin", [])
        vout = raw.get("vout", [])
        # Coinbase has a single input without a previous txid
        is_coinbase = len(vin) == 1 and "txid" not in vin[0]
        transactions.append(
            TransactionRecord(
                txid=raw["txid"],
                block_hash=block.hash,
                block_height=block.height,
                size=raw["size"],
                vsize=raw["vsize"],
                weight=raw["weight"],
                input_count=len(vin),
                output_count=len(vout),
                output_value=sum(btc_to_satoshis(out["value"]) for out in vout),
                timestamp=block_time,
                processed_at=processed_at,
                is_coinbase=is_coinbase,
            )
        )

    return block, transactions
