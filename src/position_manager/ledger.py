"""
Position ledger with invariants.

Owns every Position record and the two aggregate counters:
- total_tokens_outstanding = Σ position.tokens_outstanding
- raw_total_position_collateral = Σ position.raw_collateral

Fee-adjusted values are read through a FeeSnapshot:
- position collateral = raw_collateral × multiplier
- total position collateral = raw_total_position_collateral × multiplier
- global ratio = total collateral / total tokens (zero when no tokens)

Invariants (while the contract is open):
1. Σ position.raw_collateral == raw_total_position_collateral (exact)
2. Σ position.tokens_outstanding == total_tokens_outstanding (exact)
3. tokens_outstanding == 0 or tokens_outstanding >= min_sponsor_tokens
4. no stored position is empty (tokens and collateral both zero)

Because each add/remove converts the amount to raw units once per counter
with the same snapshot, the raw deltas of position and aggregate are equal,
so (1) holds exactly; fee-adjusted sums agree up to one unit of truncation
per position.

Settlement deletes positions without touching the aggregates, so (1) and (2)
are only checked while the contract is open.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .errors import PositionNotFound, SponsorAlreadyHasPosition
from .fees import FeeSnapshot
from .fixed_point import FixedPoint, ZERO
from .types import (
    Address,
    ContractState,
    LedgerState,
    Position,
    PositionView,
    TransferRequest,
    WithdrawalRequest,
)


@dataclass
class LedgerConfig:
    """Configuration for the position ledger."""
    min_sponsor_tokens: FixedPoint = ZERO
    debug_check_invariants: bool = False  # Check invariants after every operation


@dataclass
class LedgerSnapshot:
    """Copy of all ledger state, used to roll back a failed operation."""
    positions: Dict[Address, Position] = field(default_factory=dict)
    total_tokens_outstanding: FixedPoint = ZERO
    raw_total_position_collateral: FixedPoint = ZERO


class PositionLedger:
    """
    Per-sponsor positions plus aggregate counters.

    Every method that changes collateral updates the position and the
    aggregate counter with the same FeeSnapshot.
    """

    def __init__(self, config: Optional[LedgerConfig] = None):
        """
        Initialize an empty ledger.

        Args:
            config: Optional ledger configuration
        """
        self._config = config or LedgerConfig()
        self._positions: Dict[Address, Position] = {}
        self._total_tokens_outstanding = ZERO
        self._raw_total_position_collateral = ZERO

    # ─────────────────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def min_sponsor_tokens(self) -> FixedPoint:
        return self._config.min_sponsor_tokens

    @property
    def total_tokens_outstanding(self) -> FixedPoint:
        return self._total_tokens_outstanding

    @property
    def raw_total_position_collateral(self) -> FixedPoint:
        return self._raw_total_position_collateral

    @property
    def sponsors(self) -> List[Address]:
        return list(self._positions)

    def __contains__(self, sponsor: Address) -> bool:
        return sponsor in self._positions

    def get(self, sponsor: Address) -> Optional[Position]:
        return self._positions.get(sponsor)

    def get_or_create(self, sponsor: Address) -> Position:
        """Return the sponsor's record, inserting an empty one if absent."""
        position = self._positions.get(sponsor)
        if position is None:
            position = Position()
            self._positions[sponsor] = position
        return position

    def collateral_of(self, sponsor: Address, snap: FeeSnapshot) -> FixedPoint:
        position = self._positions.get(sponsor)
        if position is None:
            return ZERO
        return snap.get_fee_adjusted_collateral(position.raw_collateral)

    def has_collateralized_position(self, sponsor: Address, snap: FeeSnapshot) -> bool:
        return self.collateral_of(sponsor, snap).is_greater_than(ZERO)

    def require_collateralized_position(self, sponsor: Address, snap: FeeSnapshot) -> Position:
        """
        Return the sponsor's position if it holds collateral.

        Raises:
            PositionNotFound: Fee-adjusted collateral is zero
        """
        if not self.has_collateralized_position(sponsor, snap):
            raise PositionNotFound(f"{sponsor} has no collateralized position")
        return self._positions[sponsor]

    def total_position_collateral(self, snap: FeeSnapshot) -> FixedPoint:
        return snap.get_fee_adjusted_collateral(self._raw_total_position_collateral)

    def view(self, sponsor: Address, snap: FeeSnapshot) -> PositionView:
        position = self._positions.get(sponsor) or Position()
        return PositionView(
            sponsor=sponsor,
            collateral=snap.get_fee_adjusted_collateral(position.raw_collateral),
            tokens_outstanding=position.tokens_outstanding,
            raw_collateral=position.raw_collateral,
            withdrawal_request=position.withdrawal_request,
            transfer_request=position.transfer_request,
        )

    def state(self, snap: FeeSnapshot, contract_state: ContractState = ContractState.OPEN) -> LedgerState:
        """Get current aggregate state."""
        total_collateral = self.total_position_collateral(snap)
        return LedgerState(
            total_tokens_outstanding=self._total_tokens_outstanding,
            raw_total_position_collateral=self._raw_total_position_collateral,
            total_position_collateral=total_collateral,
            cumulative_fee_multiplier=snap.cumulative_fee_multiplier,
            global_collateralization_ratio=_ratio(total_collateral, self._total_tokens_outstanding),
            sponsor_count=len(self._positions),
            contract_state=contract_state,
        )

    # ─────────────────────────────────────────────────────────────────────────
    # Collateralization
    # ─────────────────────────────────────────────────────────────────────────

    def global_collateralization_ratio(self, snap: FeeSnapshot) -> FixedPoint:
        return _ratio(self.total_position_collateral(snap), self._total_tokens_outstanding)

    def check_collateralization(self, collateral: FixedPoint, num_tokens: FixedPoint, snap: FeeSnapshot) -> bool:
        """
        True if collateral/num_tokens is at least the current global ratio.

        A candidate with zero tokens has ratio zero, so it passes only
        while the global ratio is also zero.
        """
        global_ratio = self.global_collateralization_ratio(snap)
        return not global_ratio.is_greater_than(_ratio(collateral, num_tokens))

    def check_position_collateralization(self, position: Position, snap: FeeSnapshot) -> bool:
        return self.check_collateralization(
            snap.get_fee_adjusted_collateral(position.raw_collateral),
            position.tokens_outstanding,
            snap,
        )

    # ─────────────────────────────────────────────────────────────────────────
    # Mutations (position + aggregate, same snapshot)
    # ─────────────────────────────────────────────────────────────────────────

    def increment_collateral(self, position: Position, amount: FixedPoint, snap: FeeSnapshot) -> FixedPoint:
        """
        Add fee-adjusted collateral to a position and to the aggregate.

        Returns:
            Exact fee-adjusted amount the position grew by
        """
        position_delta = snap.add_collateral(position.raw_collateral, amount)
        aggregate_delta = snap.add_collateral(self._raw_total_position_collateral, amount)
        position.raw_collateral = position_delta.new_raw
        self._raw_total_position_collateral = aggregate_delta.new_raw
        return position_delta.adjusted_change

    def decrement_collateral(self, position: Position, amount: FixedPoint, snap: FeeSnapshot) -> FixedPoint:
        """
        Remove fee-adjusted collateral from a position and from the aggregate.

        Returns:
            Exact fee-adjusted amount the position shrank by

        Raises:
            InsufficientCollateral: Position (or aggregate) holds less
        """
        position_delta = snap.remove_collateral(position.raw_collateral, amount)
        aggregate_delta = snap.remove_collateral(self._raw_total_position_collateral, amount)
        position.raw_collateral = position_delta.new_raw
        self._raw_total_position_collateral = aggregate_delta.new_raw
        return position_delta.adjusted_change

    def increment_tokens(self, position: Position, num_tokens: FixedPoint) -> None:
        position.tokens_outstanding = position.tokens_outstanding.add(num_tokens)
        self._total_tokens_outstanding = self._total_tokens_outstanding.add(num_tokens)

    def decrement_tokens(self, position: Position, num_tokens: FixedPoint) -> None:
        position.tokens_outstanding = position.tokens_outstanding.sub(num_tokens)
        self._total_tokens_outstanding = self._total_tokens_outstanding.sub(num_tokens)

    def delete_sponsor_position(self, sponsor: Address, snap: FeeSnapshot) -> FixedPoint:
        """
        Remove a sponsor's position and its share of both aggregates.

        Returns:
            Fee-adjusted collateral released, measured on the aggregate as
            (total before) − (total after)
        """
        position = self._positions.pop(sponsor)
        starting_global_collateral = self.total_position_collateral(snap)
        self._raw_total_position_collateral = self._raw_total_position_collateral.sub(position.raw_collateral)
        self._total_tokens_outstanding = self._total_tokens_outstanding.sub(position.tokens_outstanding)
        return starting_global_collateral.sub(self.total_position_collateral(snap))

    def discard_if_empty(self, sponsor: Address) -> None:
        position = self._positions.get(sponsor)
        if position is not None and position.is_empty():
            del self._positions[sponsor]

    def move_position(self, old_sponsor: Address, new_sponsor: Address) -> Position:
        """
        Re-key a position.

        Raises:
            SponsorAlreadyHasPosition: new_sponsor still carries debt
        """
        displaced = self._positions.get(new_sponsor)
        if displaced is not None and not displaced.tokens_outstanding.is_zero():
            raise SponsorAlreadyHasPosition(
                f"{new_sponsor} has {displaced.tokens_outstanding} tokens outstanding"
            )
        position = self._positions.pop(old_sponsor)
        self._positions[new_sponsor] = position
        return position

    def set_withdrawal_request(self, sponsor: Address, request: Optional[WithdrawalRequest]) -> None:
        self._positions[sponsor].withdrawal_request = request

    def set_transfer_request(self, sponsor: Address, request: Optional[TransferRequest]) -> None:
        self._positions[sponsor].transfer_request = request

    # ─────────────────────────────────────────────────────────────────────────
    # Settlement (aggregates only; positions are dropped separately)
    # ─────────────────────────────────────────────────────────────────────────

    def remove_settled_position(self, sponsor: Address) -> Optional[Position]:
        return self._positions.pop(sponsor, None)

    def remove_aggregate_collateral(self, amount: FixedPoint, snap: FeeSnapshot) -> FixedPoint:
        delta = snap.remove_collateral(self._raw_total_position_collateral, amount)
        self._raw_total_position_collateral = delta.new_raw
        return delta.adjusted_change

    def remove_aggregate_tokens(self, num_tokens: FixedPoint) -> None:
        self._total_tokens_outstanding = self._total_tokens_outstanding.sub(num_tokens)

    # ─────────────────────────────────────────────────────────────────────────
    # Snapshot / restore
    # ─────────────────────────────────────────────────────────────────────────

    def snapshot(self) -> LedgerSnapshot:
        return LedgerSnapshot(
            positions={s: p.copy() for s, p in self._positions.items()},
            total_tokens_outstanding=self._total_tokens_outstanding,
            raw_total_position_collateral=self._raw_total_position_collateral,
        )

    def restore(self, snapshot: LedgerSnapshot) -> None:
        self._positions = {s: p.copy() for s, p in snapshot.positions.items()}
        self._total_tokens_outstanding = snapshot.total_tokens_outstanding
        self._raw_total_position_collateral = snapshot.raw_total_position_collateral

    # ─────────────────────────────────────────────────────────────────────────
    # Invariants
    # ─────────────────────────────────────────────────────────────────────────

    def check_invariants(self, include_aggregates: bool = True) -> List[str]:
        """
        Check all ledger invariants.

        Args:
            include_aggregates: Check the aggregate sums (only valid while
                the contract is open)

        Returns:
            List of invariant violations (empty if all pass)
        """
        errors = []
        min_tokens = self._config.min_sponsor_tokens

        for sponsor, position in self._positions.items():
            if position.is_empty():
                errors.append(f"{sponsor}: empty position still stored")
            tokens = position.tokens_outstanding
            if not tokens.is_zero() and tokens.is_less_than(min_tokens):
                errors.append(f"{sponsor}: tokens_outstanding {tokens} below minimum {min_tokens}")

        if include_aggregates:
            raw_sum = sum((p.raw_collateral.raw for p in self._positions.values()), 0)
            token_sum = sum((p.tokens_outstanding.raw for p in self._positions.values()), 0)
            if raw_sum != self._raw_total_position_collateral.raw:
                errors.append(
                    f"Σ raw_collateral {FixedPoint(raw_sum)} != "
                    f"raw_total_position_collateral {self._raw_total_position_collateral}"
                )
            if token_sum != self._total_tokens_outstanding.raw:
                errors.append(
                    f"Σ tokens_outstanding {FixedPoint(token_sum)} != "
                    f"total_tokens_outstanding {self._total_tokens_outstanding}"
                )

        return errors

    def assert_invariants(self, include_aggregates: bool = True) -> None:
        """Raise if invariants fail and debug checking is enabled."""
        if not self._config.debug_check_invariants:
            return
        errors = self.check_invariants(include_aggregates)
        if errors:
            raise AssertionError(f"Ledger invariant violation: {errors}")


def _ratio(numerator: FixedPoint, denominator: FixedPoint) -> FixedPoint:
    if denominator.is_zero():
        return ZERO
    return numerator.div(denominator)
