"""Allocation analysis - derive USD value and portfolio share per asset."""

from collections.abc import Iterable, Mapping

from rebalancer.models import Asset, AssetBalance


def total_value(assets: Iterable[Asset]) -> float:
    """Sum of USD value over all assets. Zero-value assets contribute 0."""
    return sum(asset.usd_value for asset in assets)


def annotate(
    balances: Iterable[AssetBalance],
    prices: Mapping[str, float],
    targets: Mapping[str, float] | None = None,
) -> list[Asset]:
    """Build a fresh snapshot from raw balances and USD prices.

    Args:
        balances: On-chain balances, one per token
        prices: USD price per symbol; missing symbols are treated as unpriced
        targets: Optional rebalancing targets to carry over onto the snapshot

    Returns:
        New list of Assets with usd_value and portfolio_percentage filled in
    """
    targets = targets or {}
    assets = []
    for balance in balances:
        price = prices.get(balance.symbol) or 0.0
        assets.append(
            Asset(
                symbol=balance.symbol,
                raw_amount=balance.raw_amount,
                formatted_amount=balance.formatted_amount,
                price=price,
                usd_value=balance.formatted_amount * price,
                rebalancing_target=targets.get(balance.symbol),
                address=balance.address,
                chain_id=balance.chain_id,
                decimals=balance.decimals,
            )
        )
    _apply_percentages(assets)
    return assets


def allocate(assets: Iterable[Asset]) -> list[Asset]:
    """Recompute portfolio percentages over the existing USD values.

    Returns copies; the input assets are left untouched.
    """
    copies = [asset.model_copy() for asset in assets]
    _apply_percentages(copies)
    return copies


def _apply_percentages(assets: list[Asset]) -> None:
    total = total_value(assets)
    for asset in assets:
        asset.portfolio_percentage = asset.usd_value / total * 100 if total > 0 else 0.0
