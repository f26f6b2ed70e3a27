"""
Two-phase request state machine.

Slow withdrawals and position transfers are liveness-gated:

  request  →  (wait withdrawal_liveness seconds)  →  execute
      └──────────────── cancel ────────────────────┘

There are no timers: a request "passes" when the injected clock reaches its
pass_timestamp. The model validates transitions and builds the immutable
request records; the ledger stores them on the Position.

Transitions:
- withdrawal: none → pending (request) → none (execute | cancel)
- transfer:   none → pending (request) → none (execute | cancel)
"""

from dataclasses import dataclass
from typing import Optional

from ...config.constants import DEFAULT_WITHDRAWAL_LIVENESS
from ..errors import (
    InvalidAmount,
    InvalidTransferRequest,
    NoPendingTransfer,
    NoPendingWithdrawal,
    PendingTransfer,
    PendingWithdrawal,
    RequestExpiresPostExpiry,
    RequestNotYetPassed,
)
from ..fixed_point import FixedPoint
from ..types import Position, TransferRequest, WithdrawalRequest


@dataclass
class RequestModelConfig:
    """Configuration for the request state machine."""
    withdrawal_liveness: int = DEFAULT_WITHDRAWAL_LIVENESS

    def __post_init__(self):
        if self.withdrawal_liveness <= 0:
            raise ValueError(
                f"withdrawal_liveness must be positive, got {self.withdrawal_liveness}"
            )


class RequestModel:
    """
    Validates request transitions against a Position and the clock.

    Pure: never mutates the Position it is given.
    """

    def __init__(self, config: Optional[RequestModelConfig] = None):
        self._config = config or RequestModelConfig()

    @property
    def withdrawal_liveness(self) -> int:
        return self._config.withdrawal_liveness

    # ─────────────────────────────────────────────────────────────────────────
    # Withdrawal
    # ─────────────────────────────────────────────────────────────────────────

    @staticmethod
    def require_no_pending_withdrawal(position: Optional[Position]) -> None:
        """Raise PendingWithdrawal if the position has a withdrawal request."""
        if position is not None and position.withdrawal_request is not None:
            raise PendingWithdrawal(
                f"withdrawal of {position.withdrawal_request.amount} pending until "
                f"{position.withdrawal_request.pass_timestamp}"
            )

    def open_withdrawal(
        self,
        position: Position,
        amount: FixedPoint,
        collateral: FixedPoint,
        now: int,
    ) -> WithdrawalRequest:
        """
        Build a withdrawal request.

        Args:
            position: Sponsor position
            amount: Fee-adjusted collateral to withdraw
            collateral: Current fee-adjusted collateral of the position
            now: Current time

        Returns:
            WithdrawalRequest passing at now + withdrawal_liveness

        Raises:
            PendingWithdrawal: A request is already pending
            InvalidAmount: amount is zero or above the current collateral
        """
        self.require_no_pending_withdrawal(position)
        if amount.is_zero() or amount.is_greater_than(collateral):
            raise InvalidAmount(
                f"withdrawal request must be in (0, {collateral}], got {amount}"
            )
        return WithdrawalRequest(amount=amount, pass_timestamp=now + self.withdrawal_liveness)

    @staticmethod
    def passed_withdrawal(position: Position, now: int) -> WithdrawalRequest:
        """
        Return the pending withdrawal request if it can be executed.

        Raises:
            NoPendingWithdrawal: Nothing requested
            RequestNotYetPassed: Liveness has not elapsed
        """
        request = position.withdrawal_request
        if request is None:
            raise NoPendingWithdrawal("no pending withdrawal request")
        if not request.has_passed(now):
            raise RequestNotYetPassed(
                f"withdrawal request passes at {request.pass_timestamp}, now is {now}"
            )
        return request

    @staticmethod
    def pending_withdrawal(position: Position) -> WithdrawalRequest:
        """Return the pending withdrawal request (for cancel)."""
        if position.withdrawal_request is None:
            raise NoPendingWithdrawal("no pending withdrawal request to cancel")
        return position.withdrawal_request

    # ─────────────────────────────────────────────────────────────────────────
    # Transfer
    # ─────────────────────────────────────────────────────────────────────────

    def open_transfer(
        self,
        position: Position,
        now: int,
        expiration_timestamp: int,
    ) -> TransferRequest:
        """
        Build a position transfer request.

        The request must pass strictly before expiration.

        Raises:
            PendingTransfer: A transfer request is already pending
            RequestExpiresPostExpiry: now + liveness >= expiration
        """
        if position.transfer_request is not None:
            raise PendingTransfer(
                f"transfer pending until {position.transfer_request.pass_timestamp}"
            )
        pass_timestamp = now + self.withdrawal_liveness
        if pass_timestamp >= expiration_timestamp:
            raise RequestExpiresPostExpiry(
                f"request would pass at {pass_timestamp}, "
                f"contract expires at {expiration_timestamp}"
            )
        return TransferRequest(pass_timestamp=pass_timestamp)

    @staticmethod
    def passed_transfer(position: Position, now: int) -> TransferRequest:
        """
        Return the pending transfer request if it can be executed.

        Raises:
            InvalidTransferRequest: No request, or liveness has not elapsed
        """
        request = position.transfer_request
        if request is None or not request.has_passed(now):
            raise InvalidTransferRequest("invalid transfer request")
        return request

    @staticmethod
    def pending_transfer(position: Position) -> TransferRequest:
        """Return the pending transfer request (for cancel)."""
        if position.transfer_request is None:
            raise NoPendingTransfer("no pending transfer request to cancel")
        return position.transfer_request
