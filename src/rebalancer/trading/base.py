"""Abstract base class for swap providers."""

from abc import ABC, abstractmethod

from rebalancer.models import Asset


class SwapExecutionError(Exception):
    """Raised when a swap fails and the remaining plan is abandoned.

    Swaps completed earlier in the same plan are not rolled back; `assets`
    holds the partially rebalanced snapshot when raised by the executor.
    """

    def __init__(
        self,
        message: str,
        *,
        from_symbol: str = "",
        to_symbol: str = "",
        from_amount: float = 0.0,
        to_amount: float = 0.0,
        usd_value: float = 0.0,
        tx_id: str | None = None,
        assets: list[Asset] | None = None,
    ):
        super().__init__(message)
        self.from_symbol = from_symbol
        self.to_symbol = to_symbol
        self.from_amount = from_amount
        self.to_amount = to_amount
        self.usd_value = usd_value
        self.tx_id = tx_id
        self.assets = assets or []


class SwapProvider(ABC):
    """Interface for executing a single token swap."""

    @abstractmethod
    def execute_swap(
        self,
        from_asset: Asset,
        to_asset: Asset,
        from_amount: float,
        to_amount: float,
        usd_value: float,
    ) -> bool:
        """Swap `from_amount` of from_asset into to_asset.

        Returns True on success. May return False or raise to signal failure.
        """
        ...
