"""Target validation - the only gate between user targets and planning."""

from collections.abc import Iterable
from dataclasses import dataclass

from rebalancer.models import Asset

DEFAULT_TOLERANCE_PCT = 0.01


class TargetValidationError(Exception):
    """Raised when a plan is requested for targets that do not sum to 100."""

    def __init__(self, target_sum: float):
        self.target_sum = target_sum
        super().__init__(
            f"Target percentages must sum to 100%. Current sum: {target_sum:.2f}%"
        )


@dataclass(frozen=True)
class TargetValidation:
    sum: float
    is_valid: bool


def validate(
    assets: Iterable[Asset], tolerance: float = DEFAULT_TOLERANCE_PCT
) -> TargetValidation:
    """Check that rebalancing targets sum to 100 within tolerance.

    Sums over every asset passed in, absent targets counting as 0. Callers
    must pass the stored snapshot, not a filtered display view.
    """
    target_sum = sum(asset.rebalancing_target or 0.0 for asset in assets)
    return TargetValidation(sum=target_sum, is_valid=abs(target_sum - 100) < tolerance)
