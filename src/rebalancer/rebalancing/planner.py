"""Swap planning - convert current vs target allocation into pairwise swaps."""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

import structlog

from rebalancer.logging_config import get_decision_logger
from rebalancer.models import Asset
from rebalancer.rebalancing.analyzer import total_value
from rebalancer.rebalancing.validator import (
    DEFAULT_TOLERANCE_PCT,
    TargetValidationError,
    validate,
)

logger = structlog.get_logger(__name__)


@dataclass
class SwapPair:
    """A single planned swap from one asset into another."""

    from_asset: Asset
    to_asset: Asset
    from_amount: float  # seller's token units
    to_amount: float  # buyer's token units
    usd_value: float


@dataclass
class RebalancePlan:
    """Ordered swaps plus the snapshot total they were computed against."""

    swaps: list[SwapPair] = field(default_factory=list)
    total_value: float = 0.0

    @property
    def total_usd(self) -> float:
        return sum(swap.usd_value for swap in self.swaps)

    def __len__(self) -> int:
        return len(self.swaps)


def plan(
    assets: Sequence[Asset],
    *,
    tolerance: float = DEFAULT_TOLERANCE_PCT,
    stablecoins: Iterable[str] = (),
    track_buyer_fill: bool = False,
) -> list[SwapPair]:
    """Plan the swaps that move each asset from its current to its target share.

    Greedy single pass: sellers with the largest excess are matched against
    buyers with the largest deficit first. The result is deterministic but
    not guaranteed to use the fewest swaps.

    Args:
        assets: Snapshot with portfolio_percentage and rebalancing_target set
        tolerance: Percentage-point residue treated as already balanced
        stablecoins: Symbols whose unit value is pinned at 1 USD
        track_buyer_fill: Draw each buyer's need down as sellers fill it.
            When False, every seller sees the buyer's full original deficit,
            so a buyer visited by several sellers can receive more than it
            needs.

    Returns:
        Ordered list of SwapPairs (possibly empty)

    Raises:
        TargetValidationError: If targets do not sum to 100 within tolerance
    """
    validation = validate(assets, tolerance)
    if not validation.is_valid:
        raise TargetValidationError(validation.sum)

    portfolio_value = total_value(assets)
    if portfolio_value <= 0:
        logger.info("planner.empty_portfolio")
        return []

    # Smallest swap worth emitting; anything below is float residue
    min_usd = tolerance / 100 * portfolio_value
    stablecoins = set(stablecoins)
    differences = []
    for asset in assets:
        difference = asset.portfolio_percentage - (asset.rebalancing_target or 0.0)
        if abs(difference) < tolerance:
            continue
        differences.append((asset, difference))

    # sorted() is stable, also with reverse=True
    sellers = sorted(
        [(a, d) for a, d in differences if d > 0], key=lambda x: x[1], reverse=True
    )
    buyers = sorted([(a, d) for a, d in differences if d < 0], key=lambda x: x[1])

    filled: dict[str, float] = {}
    swaps: list[SwapPair] = []

    for seller, seller_difference in sellers:
        remaining_usd_to_sell = seller_difference / 100 * portfolio_value

        for buyer, buyer_difference in buyers:
            if remaining_usd_to_sell < min_usd:
                break

            buyer_needs_usd = -buyer_difference / 100 * portfolio_value
            if track_buyer_fill:
                buyer_needs_usd -= filled.get(buyer.symbol, 0.0)

            swap_usd_amount = min(remaining_usd_to_sell, buyer_needs_usd)
            if swap_usd_amount < min_usd:
                continue

            to_amount = _units_for_usd(buyer, swap_usd_amount, stablecoins)
            if to_amount <= 0:
                logger.warning(
                    "planner.unpriced_buyer",
                    symbol=buyer.symbol,
                    usd_value=round(swap_usd_amount, 2),
                )
                continue

            swaps.append(
                SwapPair(
                    from_asset=seller,
                    to_asset=buyer,
                    from_amount=swap_usd_amount / seller.usd_value * seller.formatted_amount,
                    to_amount=to_amount,
                    usd_value=swap_usd_amount,
                )
            )
            filled[buyer.symbol] = filled.get(buyer.symbol, 0.0) + swap_usd_amount
            remaining_usd_to_sell -= swap_usd_amount

    logger.info(
        "planner.plan_computed",
        sellers=len(sellers),
        buyers=len(buyers),
        swaps=len(swaps),
        total_value=round(portfolio_value, 2),
    )
    return swaps


def build_plan(
    assets: Sequence[Asset],
    *,
    tolerance: float = DEFAULT_TOLERANCE_PCT,
    stablecoins: Iterable[str] = (),
    track_buyer_fill: bool = False,
) -> RebalancePlan:
    """Plan swaps against a read-only copy of the snapshot."""
    snapshot = [asset.model_copy() for asset in assets]
    swaps = plan(
        snapshot,
        tolerance=tolerance,
        stablecoins=stablecoins,
        track_buyer_fill=track_buyer_fill,
    )
    result = RebalancePlan(swaps=swaps, total_value=total_value(snapshot))

    get_decision_logger().info(
        "plan.built",
        total_value=round(result.total_value, 2),
        total_usd=round(result.total_usd, 2),
        swaps=[
            {
                "from": s.from_asset.symbol,
                "to": s.to_asset.symbol,
                "from_amount": s.from_amount,
                "to_amount": s.to_amount,
                "usd_value": round(s.usd_value, 2),
            }
            for s in swaps
        ],
    )
    return result


def _units_for_usd(asset: Asset, usd: float, stablecoins: set[str]) -> float:
    """Token units worth `usd` at the asset's current price-implied rate."""
    if asset.usd_value > 0 and asset.formatted_amount > 0:
        return usd / asset.usd_value * asset.formatted_amount
    if asset.price > 0:
        return usd / asset.price
    if asset.symbol in stablecoins:
        return usd
    return 0.0
