"""Rebalancing engine - one-shot rebalance of a wallet to configured targets, or a price watch."""

import argparse
import asyncio
import sys
from datetime import datetime, timezone

import structlog

from rebalancer.config import AppConfig, Secrets, resolve_wallet_address
from rebalancer.providers import (
    create_balance_source,
    create_price_source,
    create_swap_provider,
    create_token_source,
)
from rebalancer.rebalancing.executor import SwapExecutor
from rebalancer.rebalancing.ledger import TransactionLedger
from rebalancer.rebalancing.planner import build_plan
from rebalancer.rebalancing.session import RebalanceSession
from rebalancer.rebalancing.validator import TargetValidationError
from rebalancer.sources.base import SourceFetchError
from rebalancer.sources.prices import PriceBook
from rebalancer.trading.base import SwapExecutionError

logger = structlog.get_logger(__name__)


def build_session(config: AppConfig, secrets: Secrets) -> RebalanceSession:
    """Wire sources, executor and ledger from config."""
    tokens = create_token_source(config)
    balances = create_balance_source(config, tokens)
    prices = PriceBook(
        create_price_source(config, secrets),
        symbols=config.tokens.supported_symbols,
        change_threshold=config.prices.change_threshold,
    )
    ledger = TransactionLedger()
    executor = SwapExecutor(
        create_swap_provider(config),
        ledger,
        stablecoins=config.rebalancing.stablecoins,
    )
    return RebalanceSession(balances, prices, executor, ledger, config.rebalancing)


class RebalancingEngine:
    """Target-allocation rebalancing engine.

    Loads the wallet snapshot, applies the configured targets, plans the
    swaps and (unless dry-running) executes them.
    """

    def __init__(self, config: AppConfig, secrets: Secrets, session: RebalanceSession | None = None):
        self._config = config
        self._address = resolve_wallet_address(config, secrets)
        self._session = session or build_session(config, secrets)

    def run(self) -> int:
        """Run the rebalancing process.

        Returns:
            Exit code (0 for success, 1 for failure)
        """
        start_time = datetime.now(timezone.utc)
        rebal_config = self._config.rebalancing
        dry_run = self._config.trading.dry_run

        print("=" * 80)
        print("PORTFOLIO REBALANCER")
        print("=" * 80)
        print(f"Start Time: {start_time.isoformat()}")
        print(f"Wallet:     {self._address}")
        print(f"Chain:      {self._config.chain.chain_id}")
        print(f"Mode:       {'dry run' if dry_run else 'execute'}")
        print()

        logger.info("rebalancer.starting", timestamp=start_time.isoformat(), dry_run=dry_run)

        # Step 1: Load balances and prices
        print("Loading balances and prices...")
        try:
            self._session.load(self._address)
        except SourceFetchError as e:
            print(f"ERROR: {e}")
            return 1

        self._print_allocation()

        # Step 2: Apply targets
        if not rebal_config.targets:
            print("No targets configured. Nothing to do.")
            return 0

        self._session.start_rebalancing()
        try:
            self._session.update_targets(rebal_config.targets)
        except (KeyError, ValueError) as e:
            print(f"ERROR: {e}")
            logger.error("rebalancer.bad_targets", error=str(e))
            return 1

        validation = self._session.validation
        print(f"Target sum: {validation.sum:.2f}% ({'valid' if validation.is_valid else 'INVALID'})")
        if not validation.is_valid:
            seeded = [
                f"{a.symbol}={a.rebalancing_target:g}%"
                for a in self._session.assets
                if a.symbol not in rebal_config.targets and a.rebalancing_target
            ]
            if seeded:
                print(
                    "Targets kept from the current allocation (missing from "
                    f"rebalancing.targets): {', '.join(seeded)}"
                )
        print()

        # Step 3: Plan
        try:
            plan = build_plan(
                self._session.assets,
                tolerance=rebal_config.tolerance_pct,
                stablecoins=rebal_config.stablecoins,
                track_buyer_fill=rebal_config.track_buyer_fill,
            )
        except TargetValidationError as e:
            print(f"ERROR: {e}")
            self._session.cancel()
            return 1

        if not plan.swaps:
            print("No swaps needed - portfolio is balanced!")
            logger.info("rebalancer.no_swaps_needed")
            self._session.cancel()
            return 0

        print(f"Planned swaps ({len(plan)}), ${plan.total_usd:,.2f} of ${plan.total_value:,.2f}:")
        print("-" * 60)
        for swap in plan.swaps:
            print(
                f"  {swap.from_amount:,.6f} {swap.from_asset.symbol} -> "
                f"{swap.to_amount:,.6f} {swap.to_asset.symbol} (${swap.usd_value:,.2f})"
            )
        print("-" * 60)
        print()

        if dry_run:
            print("Dry run - no swaps executed.")
            self._session.cancel()
            return 0

        # Step 4: Execute
        print("Executing swaps...")
        exit_code = 0
        try:
            self._session.rebalance()
        except SwapExecutionError as e:
            print(f"  ERROR: {e}")
            print("  Remaining swaps skipped; completed swaps are not rolled back.")
            exit_code = 1

        for tx in reversed(self._session.transactions):
            print(
                f"  [{tx.status.value:>9}] {tx.from_amount:,.6f} {tx.from_symbol} -> "
                f"{tx.to_amount:,.6f} {tx.to_symbol} (${tx.usd_value:,.2f})"
            )
        print()
        self._print_allocation()

        duration = (datetime.now(timezone.utc) - start_time).total_seconds()
        logger.info(
            "rebalancer.completed",
            duration_seconds=round(duration, 2),
            transactions=len(self._session.transactions),
            exit_code=exit_code,
        )
        return exit_code

    async def watch(self, max_iterations: int | None = None) -> int:
        """Load the wallet, then re-print the allocation whenever prices move.

        Prices are polled every `prices.refresh_interval_seconds`; a failed
        poll keeps the last-known prices.

        Returns:
            Exit code (0 when stopped, 1 if the wallet cannot be loaded)
        """
        interval = self._config.prices.refresh_interval_seconds

        print("=" * 80)
        print("PORTFOLIO REBALANCER - WATCH")
        print("=" * 80)
        print(f"Wallet:     {self._address}")
        print(f"Interval:   {interval}s")
        print()

        try:
            self._session.load(self._address)
        except SourceFetchError as e:
            print(f"ERROR: {e}")
            return 1

        self._print_allocation()
        logger.info("rebalancer.watching", interval_seconds=interval)

        try:
            await self._session.watch_prices(
                interval,
                on_update=lambda _: self._print_allocation(),
                max_iterations=max_iterations,
            )
        except asyncio.CancelledError:
            logger.info("rebalancer.watch_stopped")
        return 0

    def _print_allocation(self) -> None:
        assets = self._session.visible_assets()
        total = sum(a.usd_value for a in assets)
        print(f"  Portfolio value: ${total:,.2f}")
        for asset in assets:
            print(
                f"  {asset.symbol:<8} {asset.formatted_amount:>18,.6f} "
                f"${asset.usd_value:>12,.2f} {asset.portfolio_percentage:>7.2f}%"
            )
        print()


def main(argv: list[str] | None = None) -> int:
    """Entry point for the rebalancing job."""
    from rebalancer.config import load_config
    from rebalancer.logging_config import configure_logging

    parser = argparse.ArgumentParser(prog="rebalancer", description="Rebalance a wallet to target allocations")
    parser.add_argument(
        "--watch",
        action="store_true",
        help="Keep running and re-print the allocation when prices move",
    )
    args = parser.parse_args(argv)

    config = load_config()
    try:
        secrets = Secrets()
    except Exception as e:
        print(f"Failed to load secrets from .env: {e}")
        return 1

    configure_logging(config.logging)

    try:
        engine = RebalancingEngine(config, secrets)
    except ValueError as e:
        print(f"ERROR: {e}")
        return 1
    if not args.watch:
        return engine.run()
    try:
        return asyncio.run(engine.watch())
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    sys.exit(main())
