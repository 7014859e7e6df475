"""Rebalance session - owns the snapshot, targets and ledger between calls."""

from collections.abc import Callable, Mapping
from datetime import datetime, timezone

import structlog

from rebalancer.config import RebalancingConfig
from rebalancer.models import Asset, AssetBalance, Transaction
from rebalancer.rebalancing.analyzer import annotate
from rebalancer.rebalancing.executor import RebalanceInProgressError, SwapExecutor
from rebalancer.rebalancing.ledger import TransactionLedger
from rebalancer.rebalancing.planner import RebalancePlan, build_plan
from rebalancer.rebalancing.validator import TargetValidation, TargetValidationError, validate
from rebalancer.sources.base import BalanceSource, SourceFetchError
from rebalancer.sources.prices import PriceBook
from rebalancer.trading.base import SwapExecutionError

logger = structlog.get_logger(__name__)


class RebalanceSession:
    """Orchestrates one wallet's rebalance cycle.

    Analysis and planning are pure functions over copies of the snapshot;
    this class is the only place that replaces the snapshot, and the
    executor is the only writer while a plan runs.
    """

    def __init__(
        self,
        balances: BalanceSource,
        prices: PriceBook,
        executor: SwapExecutor,
        ledger: TransactionLedger,
        config: RebalancingConfig,
    ):
        self._balances = balances
        self._prices = prices
        self._executor = executor
        self._ledger = ledger
        self._config = config
        self._assets: list[Asset] = []
        self._plan: RebalancePlan | None = None
        self.is_loading = False
        self.is_rebalancing = False
        self.error: Exception | None = None
        self.last_updated: datetime | None = None

    @property
    def assets(self) -> list[Asset]:
        return [asset.model_copy() for asset in self._assets]

    @property
    def plan(self) -> RebalancePlan | None:
        return self._plan

    @property
    def transactions(self) -> list[Transaction]:
        return self._ledger.transactions

    @property
    def is_executing(self) -> bool:
        return self._executor.is_running

    @property
    def validation(self) -> TargetValidation:
        return validate(self._assets, self._config.tolerance_pct)

    def load(self, address: str) -> list[Asset]:
        """Read balances and prices and rebuild the snapshot.

        Raises:
            SourceFetchError: If balances cannot be read; the previous
                snapshot is kept. A price failure is logged and the
                last-known prices are used instead.
        """
        self._guard_writes("load")
        self.is_loading = True
        try:
            try:
                balances = self._balances.get_all_balances(address)
            except SourceFetchError as e:
                self.error = e
                logger.error("session.load_failed", address=address, error=str(e))
                raise

            self._prices.track([b.symbol for b in balances])
            try:
                self._prices.refresh()
            except SourceFetchError as e:
                self.error = e
                logger.warning("session.prices_stale", error=str(e))
            else:
                self.error = None

            self._assets = annotate(balances, self._prices.prices, self._targets())
            self.last_updated = datetime.now(timezone.utc)
        finally:
            self.is_loading = False

        logger.info(
            "session.loaded",
            address=address,
            assets=len(self._assets),
            total_value=round(sum(a.usd_value for a in self._assets), 2),
        )
        return self.assets

    def refresh_prices(self) -> list[Asset]:
        """Re-price the current snapshot on demand.

        Raises:
            SourceFetchError: If the price source fails; the snapshot is unchanged
        """
        self._guard_writes("refresh prices")
        self._prices.refresh()
        self._reprice()
        return self.assets

    def apply_background_prices(self, prices: Mapping[str, float]) -> bool:
        """Callback for PriceBook.poll; skipped while a plan is executing.

        Returns:
            True if the snapshot was re-priced
        """
        if self.is_executing:
            logger.debug("session.background_prices_skipped")
            return False
        self._reprice(prices)
        return True

    async def watch_prices(
        self,
        interval_seconds: float,
        on_update: Callable[[list[Asset]], None] | None = None,
        max_iterations: int | None = None,
    ) -> None:
        """Poll prices and re-price the snapshot whenever they move.

        `on_update` receives the re-priced snapshot.
        """

        def on_change(prices: Mapping[str, float]) -> None:
            if self.apply_background_prices(prices) and on_update is not None:
                on_update(self.assets)

        await self._prices.poll(interval_seconds, on_change=on_change, max_iterations=max_iterations)

    def start_rebalancing(self) -> None:
        """Enter rebalancing mode, seeding targets with the rounded current shares."""
        self._guard_writes("start rebalancing")
        self.is_rebalancing = True
        self.update_targets({a.symbol: round(a.portfolio_percentage) for a in self._assets})
        logger.info("session.rebalancing_started", targets=self._targets())

    def update_targets(self, targets: Mapping[str, float]) -> None:
        """Set targets for the given symbols; other assets keep theirs."""
        self._guard_writes("update targets")
        known = {asset.symbol for asset in self._assets}
        for symbol, target in targets.items():
            if symbol not in known:
                raise KeyError(f"Unknown asset: {symbol}")
            if not 0 <= target <= 100:
                raise ValueError(f"Target for {symbol} must be between 0 and 100, got {target}")

        for asset in self._assets:
            if asset.symbol in targets:
                asset.rebalancing_target = float(targets[asset.symbol])

    def cancel(self, discard_targets: bool = False) -> None:
        """Leave rebalancing mode before execution starts.

        Targets are preserved unless `discard_targets` is set.

        Raises:
            RebalanceInProgressError: If a plan is already executing
        """
        if self.is_executing:
            raise RebalanceInProgressError("Cannot cancel a rebalance that is executing")

        self.is_rebalancing = False
        self._plan = None
        if discard_targets:
            for asset in self._assets:
                asset.rebalancing_target = None
        logger.info("session.rebalancing_cancelled", discard_targets=discard_targets)

    def rebalance(self) -> list[Asset]:
        """Validate targets, plan, and execute the plan.

        Returns:
            The refreshed snapshot, with every target reset to 0

        Raises:
            TargetValidationError: If targets do not sum to 100
            SwapExecutionError: If a swap fails; the snapshot keeps the swaps
                that completed before it
        """
        self._guard_writes("rebalance")

        validation = self.validation
        if not validation.is_valid:
            self.error = TargetValidationError(validation.sum)
            logger.warning("session.invalid_targets", target_sum=round(validation.sum, 4))
            raise self.error

        self._plan = build_plan(
            self._assets,
            tolerance=self._config.tolerance_pct,
            stablecoins=self._config.stablecoins,
            track_buyer_fill=self._config.track_buyer_fill,
        )

        try:
            self._assets = self._executor.execute(self._plan, self._assets)
            self.error = None
        except SwapExecutionError as e:
            if e.assets:
                self._assets = e.assets
            self.error = e
            raise
        finally:
            self._plan = None
            self.is_rebalancing = False
            self.last_updated = datetime.now(timezone.utc)

        return self.assets

    def visible_assets(self, hide_zero_balances: bool = False, descending: bool = True) -> list[Asset]:
        """Display view sorted by portfolio share. Validation ignores this filter."""
        assets = self.assets
        if hide_zero_balances:
            assets = [a for a in assets if a.has_value]
        return sorted(assets, key=lambda a: a.portfolio_percentage, reverse=descending)

    def _targets(self) -> dict[str, float]:
        return {
            a.symbol: a.rebalancing_target
            for a in self._assets
            if a.rebalancing_target is not None
        }

    def _reprice(self, fresh: Mapping[str, float] | None = None) -> None:
        balances = [
            AssetBalance(
                symbol=a.symbol,
                raw_amount=a.raw_amount,
                formatted_amount=a.formatted_amount,
                address=a.address,
                chain_id=a.chain_id,
                decimals=a.decimals,
            )
            for a in self._assets
        ]
        prices = {a.symbol: a.price for a in self._assets}
        prices.update(self._prices.prices if fresh is None else fresh)
        self._assets = annotate(balances, prices, self._targets())
        self.last_updated = datetime.now(timezone.utc)

    def _guard_writes(self, action: str) -> None:
        if self.is_executing:
            raise RebalanceInProgressError(f"Cannot {action} while a rebalance is executing")
