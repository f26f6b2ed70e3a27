"""
Fee accrual for the collateral pool.

Tracks the cumulative fee multiplier and converts between raw and
fee-adjusted collateral.
"""

from .fee_model import (
    CollateralDelta,
    FeeCharge,
    FeeModel,
    FeeModelConfig,
    FeeSnapshot,
    FeeStore,
)

__all__ = [
    "CollateralDelta",
    "FeeCharge",
    "FeeModel",
    "FeeModelConfig",
    "FeeSnapshot",
    "FeeStore",
]
