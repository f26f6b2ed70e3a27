"""
Core types for the position manager.

Provides shared types, enums and snapshots:
- Position, WithdrawalRequest, TransferRequest: per-sponsor records
- ContractState: open / expired lifecycle
- PositionView, LedgerState: read-only fee-adjusted snapshots

Type design principles:
- Requests are immutable (frozen dataclasses); a Position is mutated only
  by the ledger
- All amounts are FixedPoint; "raw" fields are fee-unadjusted
- Serializable (to_dict methods)
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Optional

from .fixed_point import FixedPoint, ZERO

# Type alias for account addresses
Address = str


# ─────────────────────────────────────────────────────────────────────────────
# Enums
# ─────────────────────────────────────────────────────────────────────────────

class ContractState(str, Enum):
    """
    Contract lifecycle state.

    OPEN: positions can be created and modified
    EXPIRED_PRICE_REQUESTED: expired or shut down, waiting on the oracle
    EXPIRED_PRICE_RECEIVED: settlement price resolved and recorded
    """
    OPEN = "open"
    EXPIRED_PRICE_REQUESTED = "expired_price_requested"
    EXPIRED_PRICE_RECEIVED = "expired_price_received"

    def is_expired(self) -> bool:
        return self != ContractState.OPEN


# ─────────────────────────────────────────────────────────────────────────────
# Requests
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class WithdrawalRequest:
    """Pending slow withdrawal: amount is fee-adjusted at request time."""
    amount: FixedPoint
    pass_timestamp: int

    def has_passed(self, now: int) -> bool:
        return self.pass_timestamp <= now

    def to_dict(self) -> Dict[str, Any]:
        return {
            "amount": str(self.amount),
            "pass_timestamp": self.pass_timestamp,
        }


@dataclass(frozen=True)
class TransferRequest:
    """Pending position transfer."""
    pass_timestamp: int

    def has_passed(self, now: int) -> bool:
        return self.pass_timestamp <= now

    def to_dict(self) -> Dict[str, Any]:
        return {"pass_timestamp": self.pass_timestamp}


# ─────────────────────────────────────────────────────────────────────────────
# Position
# ─────────────────────────────────────────────────────────────────────────────

@dataclass
class Position:
    """
    One sponsor's collateralized debt position.

    Actual collateral = raw_collateral × cumulative fee multiplier. There is
    no existence flag: the ledger derives existence from the balances.
    """
    tokens_outstanding: FixedPoint = ZERO
    raw_collateral: FixedPoint = ZERO
    withdrawal_request: Optional[WithdrawalRequest] = None
    transfer_request: Optional[TransferRequest] = None

    def is_empty(self) -> bool:
        return self.tokens_outstanding.is_zero() and self.raw_collateral.is_zero()

    def copy(self) -> "Position":
        # FixedPoint and requests are immutable, a shallow replace is a full copy
        return replace(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tokens_outstanding": str(self.tokens_outstanding),
            "raw_collateral": str(self.raw_collateral),
            "withdrawal_request": self.withdrawal_request.to_dict() if self.withdrawal_request else None,
            "transfer_request": self.transfer_request.to_dict() if self.transfer_request else None,
        }


# ─────────────────────────────────────────────────────────────────────────────
# Snapshots
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class PositionView:
    """
    Fee-adjusted, read-only view of a sponsor position.

    An absent sponsor is reported with zero collateral and zero tokens.
    """
    sponsor: Address
    collateral: FixedPoint
    tokens_outstanding: FixedPoint
    raw_collateral: FixedPoint
    withdrawal_request: Optional[WithdrawalRequest] = None
    transfer_request: Optional[TransferRequest] = None

    @property
    def exists(self) -> bool:
        return not (self.collateral.is_zero() and self.tokens_outstanding.is_zero())

    @property
    def collateralization_ratio(self) -> Optional[FixedPoint]:
        if self.tokens_outstanding.is_zero():
            return None
        return self.collateral.div(self.tokens_outstanding)

    def to_dict(self) -> Dict[str, Any]:
        ratio = self.collateralization_ratio
        return {
            "sponsor": self.sponsor,
            "collateral": str(self.collateral),
            "tokens_outstanding": str(self.tokens_outstanding),
            "raw_collateral": str(self.raw_collateral),
            "collateralization_ratio": str(ratio) if ratio is not None else None,
            "withdrawal_request": self.withdrawal_request.to_dict() if self.withdrawal_request else None,
            "transfer_request": self.transfer_request.to_dict() if self.transfer_request else None,
        }


@dataclass(frozen=True)
class LedgerState:
    """
    Aggregate ledger state at a point in time.

    - total_position_collateral = raw_total_position_collateral × multiplier
    - global_collateralization_ratio = collateral / tokens (zero when no tokens)
    """
    total_tokens_outstanding: FixedPoint
    raw_total_position_collateral: FixedPoint
    total_position_collateral: FixedPoint
    cumulative_fee_multiplier: FixedPoint
    global_collateralization_ratio: FixedPoint
    sponsor_count: int
    contract_state: ContractState = ContractState.OPEN

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_tokens_outstanding": str(self.total_tokens_outstanding),
            "raw_total_position_collateral": str(self.raw_total_position_collateral),
            "total_position_collateral": str(self.total_position_collateral),
            "cumulative_fee_multiplier": str(self.cumulative_fee_multiplier),
            "global_collateralization_ratio": str(self.global_collateralization_ratio),
            "sponsor_count": self.sponsor_count,
            "contract_state": self.contract_state.value,
        }

