"""Block and transaction record models."""

from datetime import datetime
from pydantic import BaseModel, ConfigDict

SATOSHIS_PER_BTC = 100_000_000


class BlockRecord(BaseModel):
    """Normalized block header data."""

    model_config = ConfigDict(frozen=True)

    hash: str
    height: int
    timestamp: datetime
    size: int
    weight: int
    tx_count: int
    previous_block_hash: str = ""  # Empty for the genesis block
    merkle_root: str
    nonce: int
    bits: str
    difficulty: float
    processed_at: datetime


class TransactionRecord(BaseModel):
    """Normalized transaction data.

    Amounts are in satoshis. Carries a back-reference to the owning block
    by hash and height.
    """

    model_config = ConfigDict(frozen=True)

    txid: str
    block_hash: str
    block_height: int
    size: int
    vsize: int
    weight: int
    fee: int = 0  # Needs previous outputs, not resolved
    input_count: int
    output_count: int
    input_value: int = 0
    output_value: int
    timestamp: datetime
    processed_at: datetime
    is_coinbase: bool = False

    @property
    def output_btc(self) -> float:
        """Total output value in BTC."""
        return self.output_value / SATOSHIS_PER_BTC
