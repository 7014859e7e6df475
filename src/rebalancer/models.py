"""Domain models for the portfolio rebalancer."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class TransactionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class TokenInfo(BaseModel):
    """Entry of a Uniswap-style token list."""

    chain_id: int = Field(alias="chainId")
    address: str
    symbol: str
    name: str = ""
    decimals: int = Field(ge=0)
    logo_uri: Optional[str] = Field(None, alias="logoURI")

    model_config = {"populate_by_name": True}


class AssetBalance(BaseModel):
    """Raw on-chain balance of one token for one wallet."""

    symbol: str
    raw_amount: int = Field(default=0, ge=0)
    formatted_amount: float = Field(ge=0)
    address: str = ""
    chain_id: Optional[int] = None
    decimals: int = Field(default=18, ge=0)


class Asset(BaseModel):
    """One holding in a portfolio snapshot, enriched with price and allocation."""

    symbol: str
    raw_amount: int = 0
    formatted_amount: float = 0.0
    price: float = Field(default=0.0, ge=0)  # USD per unit, 0 = unpriced
    usd_value: float = 0.0
    portfolio_percentage: float = 0.0
    rebalancing_target: Optional[float] = Field(default=None, ge=0, le=100)
    address: str = ""
    chain_id: Optional[int] = None
    decimals: int = 18

    @property
    def has_value(self) -> bool:
        return self.usd_value > 0


class Transaction(BaseModel):
    """One attempted swap as recorded in the ledger.

    Instances are frozen; the ledger replaces an entry with an updated copy
    when its status changes.
    """

    id: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    from_symbol: str
    to_symbol: str
    from_amount: float
    to_amount: float
    usd_value: float
    status: TransactionStatus = TransactionStatus.PENDING

    model_config = {"frozen": True}
