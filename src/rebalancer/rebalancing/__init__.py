"""Rebalancing module: allocation analysis, planning and sequential execution."""

from rebalancer.rebalancing.analyzer import allocate, annotate, total_value
from rebalancer.rebalancing.executor import ExecutorState, RebalanceInProgressError, SwapExecutor
from rebalancer.rebalancing.ledger import InvalidTransitionError, TransactionLedger
from rebalancer.rebalancing.planner import RebalancePlan, SwapPair, build_plan, plan
from rebalancer.rebalancing.session import RebalanceSession
from rebalancer.rebalancing.validator import TargetValidation, TargetValidationError, validate

__all__ = [
    "allocate",
    "annotate",
    "total_value",
    "ExecutorState",
    "RebalanceInProgressError",
    "SwapExecutor",
    "InvalidTransitionError",
    "TransactionLedger",
    "RebalancePlan",
    "SwapPair",
    "build_plan",
    "plan",
    "RebalanceSession",
    "TargetValidation",
    "TargetValidationError",
    "validate",
]
