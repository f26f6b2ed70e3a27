"""
Position manager orchestrator.

Thin coordinator over the ledger, fee model, request state machine,
settlement model and token boundary. Every public mutating operation:

1. runs under the manager's OperationGuard (serialized, non-reentrant)
2. opens a transaction: one clock read, one fee snapshot, a saved copy of
   all mutable state, a TransferBatch and a staged event list
3. checks preconditions and mutates the ledger
4. applies the token effects LAST
5. on any failure restores the saved state and raises; on success appends
   the staged events and logs the operation

Sponsors are passed explicitly (there is no implicit message sender).
"""

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional

from ..config.config import PositionManagerConfig
from ..utils.logger import SynthLogger, get_logger
from . import events as ev
from .errors import (
    BelowGlobalRatio,
    BelowMinimumSize,
    ContractExpired,
    ContractNotExpired,
    ContractNotOpen,
    InsufficientCollateral,
    InvalidAmount,
    InvalidTokenAmount,
    MintFailed,
    PositionManagerError,
    ReentrancyError,
    RequestExpiresPostExpiry,
    SponsorAlreadyHasPosition,
    TransferFailed,
    Unauthorized,
    UnsupportedPriceIdentifier,
)
from .fees import FeeCharge, FeeModel, FeeModelConfig, FeeSnapshot, FeeStore
from .fixed_point import FixedPoint, ZERO
from .guard import OperationGuard, non_reentrant
from .ledger import LedgerConfig, LedgerSnapshot, PositionLedger
from .requests import RequestModel, RequestModelConfig
from .settlement import IdentifierWhitelist, OracleInterface, SettlementModel
from .tokens import EffectKind, EffectResult, ExpandedToken, TokenFactory, TransferBatch
from .types import Address, ContractState, LedgerState, PositionView


@dataclass
class _SavedState:
    """Everything a failed operation must put back."""
    ledger: LedgerSnapshot
    contract_state: ContractState
    expiration_timestamp: int
    settlement_price: Optional[FixedPoint]
    cumulative_fee_multiplier: FixedPoint
    last_payment_time: Optional[int]


@dataclass
class Transaction:
    """Per-operation context handed to the operation body."""
    now: int
    snap: FeeSnapshot
    batch: TransferBatch = field(default_factory=TransferBatch)
    events: List[ev.Event] = field(default_factory=list)
    log_fields: Dict[str, Any] = field(default_factory=dict)

    def emit(self, event: ev.Event) -> None:
        self.events.append(event)

    def log(self, **fields) -> None:
        self.log_fields.update(fields)


class PositionManager:
    """
    Collateralized debt positions on one collateral / one synthetic token.

    Usage:
        manager = PositionManager(config, collateral_token, oracle, whitelist)
        manager.create("alice", fp(150), fp(100))
        manager.get_position("alice").collateral  # FixedPoint(150)
    """

    def __init__(
        self,
        config: PositionManagerConfig,
        collateral_token: ExpandedToken,
        oracle: OracleInterface,
        identifier_whitelist: IdentifierWhitelist,
        token_factory: Optional[TokenFactory] = None,
        fee_store: Optional[FeeStore] = None,
        get_time: Optional[Callable[[], int]] = None,
        logger: Optional[SynthLogger] = None,
    ):
        """
        Initialize the manager and create its synthetic token.

        Args:
            config: Deployment parameters
            collateral_token: Collateral currency
            oracle: Settlement price oracle
            identifier_whitelist: Checked once for config.price_identifier
            token_factory: Creates the synthetic token (new factory if None)
            fee_store: Fee schedule and payee (no fees if None)
            get_time: Clock in integer seconds (wall clock if None)
            logger: Logger (global logger if None)

        Raises:
            UnsupportedPriceIdentifier: Identifier not whitelisted
            ValueError: Expiration is not in the future
        """
        self._config = config
        self._get_time = get_time or (lambda: int(time.time()))
        self.logger = logger or get_logger()

        if not identifier_whitelist.is_identifier_supported(config.price_identifier):
            raise UnsupportedPriceIdentifier(f"unsupported price identifier {config.price_identifier}")
        now = self._get_time()
        if config.expiration_timestamp <= now:
            raise ValueError(
                f"expiration {config.expiration_timestamp} must be after current time {now}"
            )

        self.address: Address = config.manager_address
        self.collateral_token = collateral_token
        factory = token_factory or TokenFactory()
        self.synthetic_token = factory.create_token(
            config.synthetic_name,
            config.synthetic_symbol,
            config.synthetic_decimals,
            owner=self.address,
        )

        self._expiration_timestamp = config.expiration_timestamp
        self._contract_state = ContractState.OPEN

        self._ledger = PositionLedger(LedgerConfig(
            min_sponsor_tokens=FixedPoint.from_unscaled(config.min_sponsor_tokens),
            debug_check_invariants=config.debug_check_invariants,
        ))
        self._fees = FeeModel(FeeModelConfig(
            store=fee_store or FeeStore(),
            initial_payment_time=now,
        ))
        self._requests = RequestModel(RequestModelConfig(withdrawal_liveness=config.withdrawal_liveness))
        self._settlement = SettlementModel(oracle, config.price_identifier)
        self._events = ev.EventLog()
        self._guard = OperationGuard()

        self.logger.info(
            f"PositionManager {self.address} deployed | identifier={config.price_identifier} | "
            f"synthetic={config.synthetic_symbol} | collateral={collateral_token.symbol} | "
            f"expiration={config.expiration_timestamp}"
        )

    # ─────────────────────────────────────────────────────────────────────────
    # Properties
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def config(self) -> PositionManagerConfig:
        return self._config

    @property
    def events(self) -> ev.EventLog:
        return self._events

    @property
    def contract_state(self) -> ContractState:
        return self._contract_state

    @property
    def expiration_timestamp(self) -> int:
        return self._expiration_timestamp

    @property
    def withdrawal_liveness(self) -> int:
        return self._requests.withdrawal_liveness

    @property
    def min_sponsor_tokens(self) -> FixedPoint:
        return self._ledger.min_sponsor_tokens

    @property
    def cumulative_fee_multiplier(self) -> FixedPoint:
        return self._fees.cumulative_fee_multiplier

    @property
    def settlement_price(self) -> Optional[FixedPoint]:
        return self._settlement.settlement_price

    @property
    def fee_store(self) -> FeeStore:
        return self._fees.store

    @property
    def sponsors(self) -> List[Address]:
        return self._ledger.sponsors

    # ─────────────────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────────────────

    def get_position(self, sponsor: Address) -> PositionView:
        """Fee-adjusted view; an absent sponsor reads as zero/zero."""
        return self._ledger.view(sponsor, self._fees.snapshot())

    def get_collateral(self, sponsor: Address) -> FixedPoint:
        return self._ledger.collateral_of(sponsor, self._fees.snapshot())

    def total_position_collateral(self) -> FixedPoint:
        return self._ledger.total_position_collateral(self._fees.snapshot())

    def total_tokens_outstanding(self) -> FixedPoint:
        return self._ledger.total_tokens_outstanding

    def global_collateralization_ratio(self) -> FixedPoint:
        return self._ledger.global_collateralization_ratio(self._fees.snapshot())

    def state(self) -> LedgerState:
        return self._ledger.state(self._fees.snapshot(), self._contract_state)

    def check_invariants(self) -> List[str]:
        return self._ledger.check_invariants(include_aggregates=self._contract_state == ContractState.OPEN)

    # ─────────────────────────────────────────────────────────────────────────
    # Sponsor operations
    # ─────────────────────────────────────────────────────────────────────────

    @non_reentrant
    def create(self, sponsor: Address, collateral_amount: FixedPoint, num_tokens: FixedPoint) -> None:
        """
        Add collateral and mint synthetic tokens against it.

        Passes when either the resulting position or the added
        (collateral, tokens) pair alone is at least the global ratio.

        Raises:
            PendingWithdrawal, InsufficientCollateral, BelowMinimumSize
        """
        with self._transaction("create", sponsor) as tx:
            self._require_pre_expiration(tx.now)
            position = self._ledger.get(sponsor)
            self._requests.require_no_pending_withdrawal(position)

            current_collateral = self._ledger.collateral_of(sponsor, tx.snap)
            current_tokens = position.tokens_outstanding if position is not None else ZERO
            if not (
                self._ledger.check_collateralization(
                    current_collateral.add(collateral_amount), current_tokens.add(num_tokens), tx.snap
                )
                or self._ledger.check_collateralization(collateral_amount, num_tokens, tx.snap)
            ):
                raise InsufficientCollateral(
                    f"{collateral_amount} collateral for {num_tokens} tokens is below the global ratio "
                    f"{self._ledger.global_collateralization_ratio(tx.snap)}"
                )

            position = self._ledger.get_or_create(sponsor)
            if position.tokens_outstanding.is_zero():
                if num_tokens.is_less_than(self._ledger.min_sponsor_tokens):
                    raise BelowMinimumSize(
                        f"{num_tokens} tokens is below the minimum sponsor position "
                        f"{self._ledger.min_sponsor_tokens}"
                    )
                tx.emit(ev.NewSponsor(sponsor))

            self._ledger.increment_collateral(position, collateral_amount, tx.snap)
            self._ledger.increment_tokens(position, num_tokens)
            self._ledger.discard_if_empty(sponsor)
            tx.emit(ev.PositionCreated(sponsor, collateral_amount, num_tokens))

            tx.batch.transfer_from(self.collateral_token, sponsor, self.address, collateral_amount)
            tx.batch.mint(self.synthetic_token, self.address, sponsor, num_tokens)
            tx.log(collateral=collateral_amount, tokens=num_tokens)

    def deposit(self, sponsor: Address, collateral_amount: FixedPoint) -> None:
        """Deposit collateral into the caller's own position."""
        self.deposit_to(sponsor, sponsor, collateral_amount)

    @non_reentrant
    def deposit_to(self, payer: Address, sponsor: Address, collateral_amount: FixedPoint) -> None:
        """
        Add collateral to sponsor's position, paid by payer.

        Raises:
            PendingWithdrawal, InvalidAmount, PositionNotFound
        """
        with self._transaction("deposit", sponsor) as tx:
            self._require_pre_expiration(tx.now)
            self._requests.require_no_pending_withdrawal(self._ledger.get(sponsor))
            if collateral_amount.is_zero():
                raise InvalidAmount("deposit amount must be greater than zero")
            position = self._ledger.require_collateralized_position(sponsor, tx.snap)

            self._ledger.increment_collateral(position, collateral_amount, tx.snap)
            tx.emit(ev.Deposit(sponsor, collateral_amount))

            tx.batch.transfer_from(self.collateral_token, payer, self.address, collateral_amount)
            tx.log(collateral=collateral_amount, payer=payer)

    @non_reentrant
    def withdraw(self, sponsor: Address, collateral_amount: FixedPoint) -> FixedPoint:
        """
        Withdraw collateral immediately, keeping the position at or above
        the global ratio (checked after the withdrawal).

        Returns:
            Fee-adjusted collateral withdrawn

        Raises:
            PendingWithdrawal, InvalidAmount, PositionNotFound,
            InsufficientCollateral, BelowGlobalRatio
        """
        with self._transaction("withdraw", sponsor) as tx:
            self._require_pre_expiration(tx.now)
            self._requests.require_no_pending_withdrawal(self._ledger.get(sponsor))
            if collateral_amount.is_zero():
                raise InvalidAmount("withdrawal amount must be greater than zero")
            position = self._ledger.require_collateralized_position(sponsor, tx.snap)

            amount_withdrawn = self._ledger.decrement_collateral(position, collateral_amount, tx.snap)
            if not self._ledger.check_position_collateralization(position, tx.snap):
                raise BelowGlobalRatio(
                    f"withdrawing {collateral_amount} leaves the position below the global ratio "
                    f"{self._ledger.global_collateralization_ratio(tx.snap)}"
                )
            self._ledger.discard_if_empty(sponsor)
            tx.emit(ev.Withdrawal(sponsor, amount_withdrawn))

            tx.batch.transfer(self.collateral_token, self.address, sponsor, amount_withdrawn)
            tx.log(collateral=amount_withdrawn)
        return amount_withdrawn

    @non_reentrant
    def request_withdrawal(self, sponsor: Address, collateral_amount: FixedPoint) -> None:
        """
        Start a slow withdrawal that skips the global ratio check once
        withdrawal_liveness has elapsed.

        Raises:
            PendingWithdrawal, InvalidAmount, PositionNotFound,
            RequestExpiresPostExpiry
        """
        with self._transaction("request_withdrawal", sponsor) as tx:
            self._require_pre_expiration(tx.now)
            self._requests.require_no_pending_withdrawal(self._ledger.get(sponsor))
            position = self._ledger.require_collateralized_position(sponsor, tx.snap)
            collateral = self._ledger.collateral_of(sponsor, tx.snap)

            request = self._requests.open_withdrawal(position, collateral_amount, collateral, tx.now)
            if request.pass_timestamp >= self._expiration_timestamp:
                raise RequestExpiresPostExpiry(
                    f"request would pass at {request.pass_timestamp}, "
                    f"contract expires at {self._expiration_timestamp}"
                )
            self._ledger.set_withdrawal_request(sponsor, request)
            tx.emit(ev.RequestWithdrawal(sponsor, collateral_amount))
            tx.log(collateral=collateral_amount, pass_timestamp=request.pass_timestamp)

    @non_reentrant
    def withdraw_passed_request(self, sponsor: Address) -> FixedPoint:
        """
        Execute a withdrawal request whose liveness has elapsed.

        Withdraws min(requested amount, current collateral): fees may have
        shrunk the position since the request.

        Returns:
            Fee-adjusted collateral withdrawn

        Raises:
            PositionNotFound, NoPendingWithdrawal, RequestNotYetPassed
        """
        with self._transaction("withdraw_passed_request", sponsor) as tx:
            self._require_pre_expiration(tx.now)
            position = self._ledger.require_collateralized_position(sponsor, tx.snap)
            request = self._requests.passed_withdrawal(position, tx.now)

            collateral = self._ledger.collateral_of(sponsor, tx.snap)
            amount_to_withdraw = FixedPoint.min(request.amount, collateral)
            amount_withdrawn = self._ledger.decrement_collateral(position, amount_to_withdraw, tx.snap)
            self._ledger.set_withdrawal_request(sponsor, None)
            self._ledger.discard_if_empty(sponsor)
            tx.emit(ev.RequestWithdrawalExecuted(sponsor, amount_withdrawn))

            tx.batch.transfer(self.collateral_token, self.address, sponsor, amount_withdrawn)
            tx.log(collateral=amount_withdrawn, requested=request.amount)
        return amount_withdrawn

    @non_reentrant
    def cancel_withdrawal(self, sponsor: Address) -> None:
        """Raises: PositionNotFound, NoPendingWithdrawal"""
        with self._transaction("cancel_withdrawal", sponsor) as tx:
            self._require_pre_expiration(tx.now)
            position = self._ledger.require_collateralized_position(sponsor, tx.snap)
            request = self._requests.pending_withdrawal(position)
            self._ledger.set_withdrawal_request(sponsor, None)
            tx.emit(ev.RequestWithdrawalCanceled(sponsor, request.amount))
            tx.log(collateral=request.amount)

    @non_reentrant
    def request_transfer_position(self, sponsor: Address) -> None:
        """Raises: PositionNotFound, PendingTransfer, RequestExpiresPostExpiry"""
        with self._transaction("request_transfer_position", sponsor) as tx:
            self._require_pre_expiration(tx.now)
            position = self._ledger.require_collateralized_position(sponsor, tx.snap)
            request = self._requests.open_transfer(position, tx.now, self._expiration_timestamp)
            self._ledger.set_transfer_request(sponsor, request)
            tx.emit(ev.RequestTransferPosition(sponsor))
            tx.log(pass_timestamp=request.pass_timestamp)

    @non_reentrant
    def transfer_position_passed_request(self, sponsor: Address, new_sponsor: Address) -> None:
        """
        Move the whole position to new_sponsor once the transfer request
        has passed.

        new_sponsor qualifies when its fee-adjusted collateral is zero.

        Raises:
            PendingWithdrawal, SponsorAlreadyHasPosition, PositionNotFound,
            InvalidTransferRequest
        """
        with self._transaction("transfer_position_passed_request", sponsor) as tx:
            self._require_pre_expiration(tx.now)
            self._requests.require_no_pending_withdrawal(self._ledger.get(sponsor))
            if self._ledger.has_collateralized_position(new_sponsor, tx.snap):
                raise SponsorAlreadyHasPosition(f"{new_sponsor} already has a position")
            position = self._ledger.require_collateralized_position(sponsor, tx.snap)
            self._requests.passed_transfer(position, tx.now)

            self._ledger.set_transfer_request(sponsor, None)
            self._ledger.move_position(sponsor, new_sponsor)
            tx.emit(ev.RequestTransferPositionExecuted(sponsor, new_sponsor))
            tx.emit(ev.NewSponsor(new_sponsor))
            tx.emit(ev.EndedSponsorPosition(sponsor))
            tx.log(new_sponsor=new_sponsor)

    @non_reentrant
    def cancel_transfer_position(self, sponsor: Address) -> None:
        """Raises: PositionNotFound, NoPendingTransfer"""
        with self._transaction("cancel_transfer_position", sponsor) as tx:
            self._require_pre_expiration(tx.now)
            position = self._ledger.require_collateralized_position(sponsor, tx.snap)
            self._requests.pending_transfer(position)
            self._ledger.set_transfer_request(sponsor, None)
            tx.emit(ev.RequestTransferPositionCanceled(sponsor))

    @non_reentrant
    def redeem(self, sponsor: Address, num_tokens: FixedPoint) -> FixedPoint:
        """
        Burn synthetic tokens for a proportional share of collateral.

        Redeeming every outstanding token closes the position.

        Returns:
            Fee-adjusted collateral returned

        Raises:
            PendingWithdrawal, InvalidTokenAmount, BelowMinimumSize
        """
        with self._transaction("redeem", sponsor) as tx:
            self._require_pre_expiration(tx.now)
            position = self._ledger.get(sponsor)
            self._requests.require_no_pending_withdrawal(position)
            if not self._ledger.has_collateralized_position(sponsor, tx.snap):
                raise InvalidTokenAmount(f"{sponsor} has no collateralized position")
            tokens_outstanding = position.tokens_outstanding
            if (
                num_tokens.is_zero()
                or tokens_outstanding.is_zero()
                or num_tokens.is_greater_than(tokens_outstanding)
            ):
                raise InvalidTokenAmount(
                    f"cannot redeem {num_tokens} of {tokens_outstanding} tokens outstanding"
                )

            fraction_redeemed = num_tokens.div(tokens_outstanding)
            collateral_redeemed = fraction_redeemed.mul(self._ledger.collateral_of(sponsor, tx.snap))

            if num_tokens.is_equal(tokens_outstanding):
                amount_withdrawn = self._ledger.delete_sponsor_position(sponsor, tx.snap)
                tx.emit(ev.EndedSponsorPosition(sponsor))
            else:
                new_token_count = tokens_outstanding.sub(num_tokens)
                if new_token_count.is_less_than(self._ledger.min_sponsor_tokens):
                    raise BelowMinimumSize(
                        f"{new_token_count} remaining tokens is below the minimum sponsor position "
                        f"{self._ledger.min_sponsor_tokens}"
                    )
                amount_withdrawn = self._ledger.decrement_collateral(position, collateral_redeemed, tx.snap)
                self._ledger.decrement_tokens(position, num_tokens)
            tx.emit(ev.Redeem(sponsor, amount_withdrawn, num_tokens))

            tx.batch.transfer(self.collateral_token, self.address, sponsor, amount_withdrawn)
            tx.batch.transfer_from(self.synthetic_token, sponsor, self.address, num_tokens)
            tx.batch.burn(self.synthetic_token, self.address, num_tokens)
            tx.log(collateral=amount_withdrawn, tokens=num_tokens)
        return amount_withdrawn

    # ─────────────────────────────────────────────────────────────────────────
    # Expiry and settlement
    # ─────────────────────────────────────────────────────────────────────────

    @non_reentrant
    def expire(self, caller: Address) -> None:
        """
        Close the contract after expiration and request the settlement price.

        Raises:
            ContractNotExpired, ContractNotOpen
        """
        with self._transaction("expire", caller) as tx:
            if tx.now < self._expiration_timestamp:
                raise ContractNotExpired(
                    f"contract expires at {self._expiration_timestamp}, now is {tx.now}"
                )
            self._require_open()
            self._contract_state = ContractState.EXPIRED_PRICE_REQUESTED
            self._settlement.request(self._expiration_timestamp)
            tx.emit(ev.ContractExpired(caller))
            tx.log(expiration=self._expiration_timestamp)

    @non_reentrant
    def emergency_shutdown(self, caller: Address) -> None:
        """
        Expire the contract now (financial contracts admin only).

        Raises:
            ContractNotOpen, ContractExpired, Unauthorized
        """
        with self._transaction("emergency_shutdown", caller) as tx:
            self._require_open()
            self._require_pre_expiration(tx.now)
            if caller != self._config.financial_contracts_admin:
                raise Unauthorized(f"{caller} is not the financial contracts admin")
            original_expiration = self._expiration_timestamp
            self._contract_state = ContractState.EXPIRED_PRICE_REQUESTED
            self._expiration_timestamp = tx.now
            self._settlement.request(tx.now)
            tx.emit(ev.EmergencyShutdown(caller, original_expiration, tx.now))
            tx.log(original_expiration=original_expiration, shutdown=tx.now)

    @non_reentrant
    def settle_expired(self, caller: Address) -> FixedPoint:
        """
        Burn the caller's synthetic tokens for collateral at the settlement
        price, and release any excess collateral of the caller's position.

        payout = tokens × price + max(collateral − debt × price, 0), capped
        at the remaining collateral pool.

        Returns:
            Fee-adjusted collateral paid out

        Raises:
            ContractNotExpired, UnresolvedOraclePrice
        """
        with self._transaction("settle_expired", caller) as tx:
            if self._contract_state == ContractState.OPEN or tx.now < self._expiration_timestamp:
                raise ContractNotExpired("contract has not expired")
            price = self._settlement.resolve(self._expiration_timestamp)
            if self._contract_state == ContractState.EXPIRED_PRICE_REQUESTED:
                self._contract_state = ContractState.EXPIRED_PRICE_RECEIVED

            tokens_to_redeem = self.synthetic_token.balance_of(caller)
            payout = self._settlement.payout(price, tokens_to_redeem)
            if self._ledger.has_collateralized_position(caller, tx.snap):
                position = self._ledger.get(caller)
                payout = self._settlement.payout(
                    price,
                    tokens_to_redeem,
                    collateral=self._ledger.collateral_of(caller, tx.snap),
                    debt=position.tokens_outstanding,
                )
                self._ledger.remove_settled_position(caller)
                tx.emit(ev.EndedSponsorPosition(caller))

            pool = self._ledger.total_position_collateral(tx.snap)
            amount_withdrawn = self._ledger.remove_aggregate_collateral(FixedPoint.min(pool, payout.total), tx.snap)
            self._ledger.remove_aggregate_tokens(tokens_to_redeem)
            tx.emit(ev.SettleExpiredPosition(caller, amount_withdrawn, tokens_to_redeem))

            tx.batch.transfer(self.collateral_token, self.address, caller, amount_withdrawn)
            tx.batch.transfer_from(self.synthetic_token, caller, self.address, tokens_to_redeem)
            tx.batch.burn(self.synthetic_token, self.address, tokens_to_redeem)
            tx.log(collateral=amount_withdrawn, tokens=tokens_to_redeem, price=price)
        return amount_withdrawn

    # ─────────────────────────────────────────────────────────────────────────
    # Fees
    # ─────────────────────────────────────────────────────────────────────────

    @non_reentrant
    def pay_regular_fees(self, caller: Optional[Address] = None) -> FeeCharge:
        """
        Charge the store fee accrued since the last payment.

        The regular fee goes to the store; the late penalty goes to the
        caller (the store when no caller is given).

        Returns:
            FeeCharge (total_paid is zero when nothing was due)

        Raises:
            ContractNotOpen
        """
        store = self._fees.store
        with self._transaction("pay_regular_fees", caller or store.address) as tx:
            self._require_open()
            pfc = self._ledger.total_position_collateral(tx.snap)
            charge = self._fees.pay_regular_fees(pfc, tx.now)
            if not charge.total_paid.is_zero():
                regular_paid = charge.regular_fee
                late_paid = charge.late_penalty
                tx.emit(ev.RegularFeesPaid(regular_paid, late_paid))
                if not regular_paid.is_zero():
                    tx.batch.transfer(self.collateral_token, self.address, store.address, regular_paid)
                if not late_paid.is_zero():
                    tx.batch.transfer(self.collateral_token, self.address, caller or store.address, late_paid)
            tx.log(fee=charge.total_paid, multiplier=self._fees.cumulative_fee_multiplier)
        return charge

    @non_reentrant
    def trim_excess(self, caller: Optional[Address] = None) -> FixedPoint:
        """
        Send collateral held above the position pool to the excess token
        beneficiary (rounding dust left by fee charges).

        Returns:
            Amount sent
        """
        beneficiary = self._config.excess_token_beneficiary
        with self._transaction("trim_excess", caller or beneficiary) as tx:
            balance = self.collateral_token.balance_of(self.address)
            pfc = self._ledger.total_position_collateral(tx.snap)
            excess = balance.sub(pfc) if balance.is_greater_than(pfc) else ZERO
            if not excess.is_zero():
                tx.batch.transfer(self.collateral_token, self.address, beneficiary, excess)
            tx.log(excess=excess, beneficiary=beneficiary)
        return excess

    # ─────────────────────────────────────────────────────────────────────────
    # Internals
    # ─────────────────────────────────────────────────────────────────────────

    def _require_pre_expiration(self, now: int) -> None:
        if now >= self._expiration_timestamp:
            raise ContractExpired(f"contract expired at {self._expiration_timestamp}")

    def _require_open(self) -> None:
        if self._contract_state != ContractState.OPEN:
            raise ContractNotOpen(f"contract is {self._contract_state.value}")

    def _save_state(self) -> _SavedState:
        return _SavedState(
            ledger=self._ledger.snapshot(),
            contract_state=self._contract_state,
            expiration_timestamp=self._expiration_timestamp,
            settlement_price=self._settlement.settlement_price,
            cumulative_fee_multiplier=self._fees.cumulative_fee_multiplier,
            last_payment_time=self._fees.last_payment_time,
        )

    def _restore_state(self, saved: _SavedState) -> None:
        self._ledger.restore(saved.ledger)
        self._contract_state = saved.contract_state
        self._expiration_timestamp = saved.expiration_timestamp
        self._settlement.restore(saved.settlement_price)
        self._fees.restore(saved.cumulative_fee_multiplier, saved.last_payment_time)

    @contextmanager
    def _transaction(self, action: str, account: Address) -> Iterator[Transaction]:
        """
        All-or-nothing wrapper: ledger mutations, then token effects.

        Raises:
            PositionManagerError: Any rejection, with state restored
            TransferFailed / MintFailed: A token effect failed
            ReentrancyError: A token effect called back into the manager
        """
        saved = self._save_state()
        tx = Transaction(now=self._get_time(), snap=self._fees.snapshot())
        try:
            yield tx
        except PositionManagerError as exc:
            self._restore_state(saved)
            self.logger.rejected(action.upper(), account, exc.code, exc.message)
            raise
        except Exception:
            self._restore_state(saved)
            raise

        try:
            result = tx.batch.apply()
        except Exception:
            self._restore_state(saved)
            raise
        if not result.ok:
            self._restore_state(saved)
            error = _effect_error(result)
            self.logger.rejected(action.upper(), account, error.code, result.reason)
            if error is result.error:
                raise error
            raise error from result.error

        self._ledger.assert_invariants(include_aggregates=self._contract_state == ContractState.OPEN)
        failures = self._events.append_all(tx.events)
        self.logger.position(action.upper(), account, **tx.log_fields)
        for event, exc in failures:
            self.logger.error(f"[{action.upper()}] subscriber failed on {event.name}: {type(exc).__name__}: {exc}")


def _effect_error(result: EffectResult) -> PositionManagerError:
    """Map a failed EffectResult onto the error raised to the caller."""
    if isinstance(result.error, ReentrancyError):
        return result.error
    if result.failed_effect.kind == EffectKind.MINT:
        return MintFailed(f"minting synthetic tokens failed: {result.reason}")
    return TransferFailed(f"token transfer failed: {result.reason}")
