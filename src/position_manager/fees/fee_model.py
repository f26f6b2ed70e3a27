"""
Fee accrual model.

Fees are charged against the whole collateral pool by shrinking a single
cumulative multiplier instead of touching every position:

  fee_adjusted_collateral = raw_collateral × cumulative_fee_multiplier

Charging fee F on pool P:
  effective_fee = ceil(F / P)
  multiplier    = multiplier × (1 − effective_fee)

Single-writer discipline:
- FeeModel is the only writer of the multiplier
- the ledger reads through an immutable FeeSnapshot, one per operation, and
  uses that same snapshot for the position and the aggregate counter

Store fee schedule:
  regular_fee  = pfc × Δt × fixed_fee_per_second
  late_penalty = pfc × weekly_delay_fee_per_second × ⌊Δt / 1 week⌋
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

from ...config.constants import SECONDS_PER_WEEK
from ..errors import InsufficientCollateral, Underflow
from ..fixed_point import FixedPoint, ONE, ZERO

if TYPE_CHECKING:
    from ...config.config import FeeConfig


@dataclass(frozen=True)
class CollateralDelta:
    """
    Result of adding/removing collateral through a snapshot.

    new_raw: the updated raw counter
    raw_change: raw units added or removed
    adjusted_change: exact fee-adjusted amount the counter moved by
    """
    new_raw: FixedPoint
    raw_change: FixedPoint
    adjusted_change: FixedPoint


@dataclass(frozen=True)
class FeeSnapshot:
    """Immutable view of the multiplier used for one ledger operation."""
    cumulative_fee_multiplier: FixedPoint

    def get_fee_adjusted_collateral(self, raw_collateral: FixedPoint) -> FixedPoint:
        return raw_collateral.mul(self.cumulative_fee_multiplier)

    def convert_to_raw_collateral(self, collateral: FixedPoint) -> FixedPoint:
        return collateral.div(self.cumulative_fee_multiplier)

    def add_collateral(self, raw_counter: FixedPoint, amount: FixedPoint) -> CollateralDelta:
        """
        Add a fee-adjusted amount to a raw counter.

        Args:
            raw_counter: Position or aggregate raw collateral
            amount: Fee-adjusted collateral to add

        Returns:
            CollateralDelta with the new raw value and the exact amounts moved
        """
        initial_balance = self.get_fee_adjusted_collateral(raw_counter)
        raw_increase = self.convert_to_raw_collateral(amount)
        new_raw = raw_counter.add(raw_increase)
        added = self.get_fee_adjusted_collateral(new_raw).sub(initial_balance)
        return CollateralDelta(new_raw=new_raw, raw_change=raw_increase, adjusted_change=added)

    def remove_collateral(self, raw_counter: FixedPoint, amount: FixedPoint) -> CollateralDelta:
        """
        Remove a fee-adjusted amount from a raw counter.

        Args:
            raw_counter: Position or aggregate raw collateral
            amount: Fee-adjusted collateral to remove

        Returns:
            CollateralDelta with the new raw value and the exact amounts moved

        Raises:
            InsufficientCollateral: If the raw counter would go negative
        """
        initial_balance = self.get_fee_adjusted_collateral(raw_counter)
        raw_decrease = self.convert_to_raw_collateral(amount)
        try:
            new_raw = raw_counter.sub(raw_decrease)
        except Underflow as exc:
            raise InsufficientCollateral(
                f"cannot remove {amount} collateral from balance of {initial_balance}"
            ) from exc
        removed = initial_balance.sub(self.get_fee_adjusted_collateral(new_raw))
        return CollateralDelta(new_raw=new_raw, raw_change=raw_decrease, adjusted_change=removed)


@dataclass
class FeeStore:
    """
    Fee schedule charged by the store collaborator.

    Rates are per second per unit of profit-from-corruption (PFC).
    """
    address: str = "store"
    fixed_fee_per_second_per_pfc: FixedPoint = ZERO
    weekly_delay_fee_per_second_per_pfc: FixedPoint = ZERO

    @classmethod
    def from_config(cls, config: "FeeConfig") -> "FeeStore":
        return cls(
            address=config.store_address,
            fixed_fee_per_second_per_pfc=FixedPoint.from_unscaled(config.fixed_fee_per_second_per_pfc),
            weekly_delay_fee_per_second_per_pfc=FixedPoint.from_unscaled(config.weekly_delay_fee_per_second_per_pfc),
        )

    def compute_regular_fee(
        self,
        start_time: int,
        end_time: int,
        pfc: FixedPoint,
    ) -> tuple[FixedPoint, FixedPoint]:
        """
        Compute the regular fee and late penalty for a period.

        Args:
            start_time: Last fee payment time (seconds)
            end_time: Current time (seconds)
            pfc: Fee-adjusted collateral pool

        Returns:
            (regular_fee, late_penalty)
        """
        if end_time < start_time:
            raise ValueError(f"end_time {end_time} is before start_time {start_time}")
        time_diff = end_time - start_time
        regular_fee = pfc.mul_int(time_diff).mul(self.fixed_fee_per_second_per_pfc)
        weeks_late = time_diff // SECONDS_PER_WEEK
        late_penalty = pfc.mul(self.weekly_delay_fee_per_second_per_pfc.mul_int(weeks_late))
        return regular_fee, late_penalty


@dataclass
class FeeCharge:
    """Outcome of a regular fee payment."""
    regular_fee: FixedPoint = ZERO
    late_penalty: FixedPoint = ZERO
    total_paid: FixedPoint = ZERO
    previous_multiplier: FixedPoint = ONE
    new_multiplier: FixedPoint = ONE

    def to_dict(self) -> dict:
        return {
            "regular_fee": str(self.regular_fee),
            "late_penalty": str(self.late_penalty),
            "total_paid": str(self.total_paid),
            "previous_multiplier": str(self.previous_multiplier),
            "new_multiplier": str(self.new_multiplier),
        }


@dataclass
class FeeModelConfig:
    """Configuration for fee model."""
    store: FeeStore = field(default_factory=FeeStore)
    initial_payment_time: Optional[int] = None


class FeeModel:
    """
    Owner of the cumulative fee multiplier.

    The multiplier starts at 1.0 and is only ever decreased, by
    pay_regular_fees() or charge(), never in the middle of a ledger operation.
    """

    def __init__(self, config: Optional[FeeModelConfig] = None):
        """
        Initialize fee model.

        Args:
            config: Optional configuration
        """
        self._config = config or FeeModelConfig()
        self._cumulative_fee_multiplier = ONE
        self._last_payment_time = self._config.initial_payment_time

    @property
    def store(self) -> FeeStore:
        return self._config.store

    @property
    def cumulative_fee_multiplier(self) -> FixedPoint:
        return self._cumulative_fee_multiplier

    @property
    def last_payment_time(self) -> Optional[int]:
        return self._last_payment_time

    def snapshot(self) -> FeeSnapshot:
        """Take the multiplier snapshot for one ledger operation."""
        return FeeSnapshot(self._cumulative_fee_multiplier)

    def charge(self, amount: FixedPoint, pfc: FixedPoint) -> FeeCharge:
        """
        Shrink the multiplier by charging amount against pool pfc.

        Args:
            amount: Fee to charge (capped at pfc)
            pfc: Fee-adjusted collateral pool

        Returns:
            FeeCharge with previous and new multiplier
        """
        previous = self._cumulative_fee_multiplier
        if pfc.is_zero() or amount.is_zero():
            return FeeCharge(previous_multiplier=previous, new_multiplier=previous)
        amount = FixedPoint.min(amount, pfc)
        effective_fee = amount.div_ceil(pfc)
        self._cumulative_fee_multiplier = previous.mul(ONE.sub(effective_fee))
        return FeeCharge(
            regular_fee=amount,
            total_paid=amount,
            previous_multiplier=previous,
            new_multiplier=self._cumulative_fee_multiplier,
        )

    def pay_regular_fees(self, pfc: FixedPoint, now: int) -> FeeCharge:
        """
        Charge the store's regular fee accrued since the last payment.

        The first call only records the payment time. A zero pool also only
        advances the payment time.

        Args:
            pfc: Fee-adjusted collateral pool
            now: Current time (seconds)

        Returns:
            FeeCharge (total_paid is zero when nothing was charged). When the
            fee exceeds the pool, regular_fee and late_penalty are the capped
            amounts actually paid and sum to total_paid.
        """
        previous = self._cumulative_fee_multiplier
        last = self._last_payment_time
        self._last_payment_time = now
        if last is None or last >= now or pfc.is_zero():
            return FeeCharge(previous_multiplier=previous, new_multiplier=previous)

        regular_fee, late_penalty = self.store.compute_regular_fee(last, now, pfc)
        total = regular_fee.add(late_penalty)
        if total.is_greater_than(pfc):
            # Cut the late penalty first, then the regular fee
            deficit = total.sub(pfc)
            late_cut = FixedPoint.min(late_penalty, deficit)
            late_penalty = late_penalty.sub(late_cut)
            regular_fee = regular_fee.sub(FixedPoint.min(regular_fee, deficit.sub(late_cut)))
            total = pfc
        if total.is_zero():
            return FeeCharge(previous_multiplier=previous, new_multiplier=previous)

        charge = self.charge(total, pfc)
        charge.regular_fee = regular_fee
        charge.late_penalty = late_penalty
        return charge

    def restore(self, multiplier: FixedPoint, last_payment_time: Optional[int]) -> None:
        """Roll back a charge whose transfer to the store failed."""
        self._cumulative_fee_multiplier = multiplier
        self._last_payment_time = last_payment_time
