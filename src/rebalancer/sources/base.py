"""Abstract base classes for balance, price and token-list sources."""

from abc import ABC, abstractmethod

from rebalancer.models import AssetBalance, TokenInfo


class SourceFetchError(Exception):
    """Raised when balances, prices or token metadata cannot be retrieved."""


class BalanceSource(ABC):
    """Interface for reading wallet balances."""

    @abstractmethod
    def get_all_balances(self, address: str) -> list[AssetBalance]:
        """Balances of every supported token held by `address`."""
        ...


class PriceSource(ABC):
    """Interface for USD price lookups."""

    @abstractmethod
    def get_prices(self, symbols: list[str]) -> dict[str, float]:
        """USD price per symbol. Symbols without a price are omitted."""
        ...


class TokenSource(ABC):
    """Interface for token metadata per chain."""

    @abstractmethod
    def get(self, chain_id: int) -> list[TokenInfo]:
        """All known tokens on `chain_id`."""
        ...

    @abstractmethod
    def supported(self, chain_id: int) -> list[TokenInfo]:
        """Tokens on `chain_id` that the rebalancer manages."""
        ...
