"""Paper swap provider - fills every swap at the planned amounts."""

import structlog

from rebalancer.models import Asset
from rebalancer.trading.base import SwapProvider

logger = structlog.get_logger(__name__)


class PaperSwapProvider(SwapProvider):
    """Simulated swaps for dry runs. Nothing is sent on-chain."""

    def __init__(self):
        self.fills: list[tuple[str, str, float, float, float]] = []

    def execute_swap(
        self,
        from_asset: Asset,
        to_asset: Asset,
        from_amount: float,
        to_amount: float,
        usd_value: float,
    ) -> bool:
        if from_amount <= 0 or to_amount <= 0:
            logger.warning(
                "paper.swap_rejected",
                from_symbol=from_asset.symbol,
                to_symbol=to_asset.symbol,
                from_amount=from_amount,
                to_amount=to_amount,
            )
            return False

        self.fills.append((from_asset.symbol, to_asset.symbol, from_amount, to_amount, usd_value))
        logger.info(
            "paper.swap_filled",
            from_symbol=from_asset.symbol,
            to_symbol=to_asset.symbol,
            from_amount=from_amount,
            to_amount=to_amount,
            usd_value=round(usd_value, 2),
        )
        return True
