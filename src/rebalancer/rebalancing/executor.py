"""Swap execution - run a plan one swap at a time against a swap provider."""

import uuid
from collections.abc import Iterable, Sequence
from decimal import Decimal
from enum import Enum

import structlog

from rebalancer.models import Asset, Transaction, TransactionStatus
from rebalancer.rebalancing.analyzer import allocate
from rebalancer.rebalancing.ledger import TransactionLedger
from rebalancer.rebalancing.planner import RebalancePlan, SwapPair
from rebalancer.trading.base import SwapExecutionError, SwapProvider

logger = structlog.get_logger(__name__)


class ExecutorState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    ABORTED = "aborted"
    DONE = "done"


class RebalanceInProgressError(Exception):
    """Raised when a rebalance is started or cancelled while one is executing."""


class SwapExecutor:
    """Executes a RebalancePlan sequentially, fail-fast, without rollback.

    State machine over the swap queue:

        idle --start--> running(0)
        running(i) --success--> running(i+1) | done (after the last swap)
        running(i) --failure--> aborted

    The executor owns its snapshot while running; nothing else writes to it.
    """

    def __init__(
        self,
        swap_provider: SwapProvider,
        ledger: TransactionLedger,
        stablecoins: Iterable[str] = (),
    ):
        self._provider = swap_provider
        self._ledger = ledger
        self._stablecoins = set(stablecoins)
        self._state = ExecutorState.IDLE
        self._position = 0
        self._total = 0

    @property
    def state(self) -> ExecutorState:
        return self._state

    @property
    def position(self) -> int:
        """Index of the swap currently executing (or where execution stopped)."""
        return self._position

    @property
    def is_running(self) -> bool:
        return self._state == ExecutorState.RUNNING

    def execute(self, plan: RebalancePlan, assets: Sequence[Asset]) -> list[Asset]:
        """Execute every swap in plan order and return the refreshed snapshot.

        After the run (complete or aborted) percentages are recomputed and all
        rebalancing targets are reset to 0.

        Raises:
            RebalanceInProgressError: If another plan is executing
            SwapExecutionError: On the first failed swap; carries the partially
                rebalanced snapshot in `assets`
        """
        if self.is_running:
            logger.warning("executor.rejected_in_flight", position=self._position)
            raise RebalanceInProgressError("A rebalance is already executing")

        snapshot = {asset.symbol: asset.model_copy() for asset in assets}
        self._start(len(plan.swaps))

        logger.info(
            "executor.starting",
            swaps=len(plan.swaps),
            total_usd=round(plan.total_usd, 2),
        )

        failure: SwapExecutionError | None = None
        try:
            while self.is_running:
                swap = plan.swaps[self._position]
                failure = self._run_swap(swap, snapshot)
                self._advance(failure is None)
        except Exception:
            self._state = ExecutorState.ABORTED
            raise
        finally:
            # Runs on abort too; a partially rebalanced snapshot stays in place
            refreshed = allocate(snapshot.values())
            for asset in refreshed:
                asset.rebalancing_target = 0.0

        if failure is not None:
            failure.assets = refreshed
            logger.error(
                "executor.aborted",
                completed=self._position,
                remaining=self._total - self._position - 1,
                error=str(failure),
            )
            raise failure

        logger.info("executor.completed", swaps=self._total)
        return refreshed

    def _start(self, total: int) -> None:
        self._total = total
        self._position = 0
        self._state = ExecutorState.RUNNING if total > 0 else ExecutorState.DONE

    def _advance(self, succeeded: bool) -> None:
        """Transition function driven by the outcome of the current swap."""
        if self._state != ExecutorState.RUNNING:
            raise RuntimeError(f"Cannot advance executor in state {self._state.value}")

        if not succeeded:
            self._state = ExecutorState.ABORTED
        elif self._position + 1 >= self._total:
            self._state = ExecutorState.DONE
        else:
            self._position += 1

    def _run_swap(self, swap: SwapPair, snapshot: dict[str, Asset]) -> SwapExecutionError | None:
        """Execute one swap and settle it in the ledger and snapshot.

        Returns the failure, or None on success.
        """
        tx = self._ledger.append(
            Transaction(
                id=uuid.uuid4().hex,
                from_symbol=swap.from_asset.symbol,
                to_symbol=swap.to_asset.symbol,
                from_amount=swap.from_amount,
                to_amount=swap.to_amount,
                usd_value=swap.usd_value,
            )
        )

        try:
            succeeded = self._provider.execute_swap(
                swap.from_asset,
                swap.to_asset,
                swap.from_amount,
                swap.to_amount,
                swap.usd_value,
            )
            cause = None
        except Exception as e:
            succeeded = False
            cause = e

        if not succeeded:
            self._ledger.update_status(tx.id, TransactionStatus.FAILED)
            reason = str(cause) if cause else "swap provider reported failure"
            error = SwapExecutionError(
                f"Swap {swap.from_asset.symbol} -> {swap.to_asset.symbol} "
                f"(${swap.usd_value:,.2f}) failed: {reason}",
                from_symbol=swap.from_asset.symbol,
                to_symbol=swap.to_asset.symbol,
                from_amount=swap.from_amount,
                to_amount=swap.to_amount,
                usd_value=swap.usd_value,
                tx_id=tx.id,
            )
            error.__cause__ = cause
            return error

        self._ledger.update_status(tx.id, TransactionStatus.COMPLETED)
        self._apply(swap, snapshot)

        logger.info(
            "executor.swap_completed",
            tx_id=tx.id,
            from_symbol=swap.from_asset.symbol,
            to_symbol=swap.to_asset.symbol,
            usd_value=round(swap.usd_value, 2),
            position=self._position,
        )
        return None

    def _apply(self, swap: SwapPair, snapshot: dict[str, Asset]) -> None:
        seller = snapshot[swap.from_asset.symbol]
        buyer = snapshot[swap.to_asset.symbol]

        seller.formatted_amount = max(seller.formatted_amount - swap.from_amount, 0.0)
        seller.usd_value = max(seller.usd_value - swap.usd_value, 0.0)
        seller.raw_amount = _to_raw(seller.formatted_amount, seller.decimals)

        if buyer.symbol in self._stablecoins:
            buyer.formatted_amount += swap.usd_value
        else:
            buyer.formatted_amount += swap.to_amount
        buyer.usd_value += swap.usd_value
        buyer.raw_amount = _to_raw(buyer.formatted_amount, buyer.decimals)


def _to_raw(formatted_amount: float, decimals: int) -> int:
    return int(Decimal(str(formatted_amount)).scaleb(decimals))
