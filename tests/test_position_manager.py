"""
Tests for PositionManager sponsor operations.

Validates that:
1. create / deposit / withdraw / redeem move collateral and tokens
2. Each operation enforces its preconditions and rejects with no state change
3. Committed operations emit events and structured log lines
"""

import logging

import pytest

from src.position_manager import ContractState, ZERO, fp
from src.position_manager import events as ev
from src.position_manager.errors import (
    BelowGlobalRatio,
    BelowMinimumSize,
    ContractExpired,
    InsufficientCollateral,
    InvalidAmount,
    InvalidTokenAmount,
    PositionNotFound,
    TransferFailed,
    UnsupportedPriceIdentifier,
)
from src.position_manager import (
    ExpandedToken,
    IdentifierWhitelist,
    MockOracle,
    PositionManager,
    deploy_local,
)
from tests.conftest import EXPIRATION


class TestConstruction:
    """Manager construction."""

    def test_creates_synthetic_token(self, deployment, pm_config):
        token = deployment.synthetic_token
        assert token.symbol == pm_config.synthetic_symbol
        assert token.is_minter(deployment.manager.address)
        assert token.is_burner(deployment.manager.address)

    def test_initial_state(self, manager):
        assert manager.contract_state == ContractState.OPEN
        assert manager.expiration_timestamp == EXPIRATION
        assert manager.sponsors == []
        assert manager.global_collateralization_ratio() == ZERO

    def test_unsupported_identifier_rejected(self, pm_config, clock):
        collateral = ExpandedToken("Collateral WETH", "WETH")
        whitelist = IdentifierWhitelist.of(["BTC/USD"])
        with pytest.raises(UnsupportedPriceIdentifier):
            PositionManager(pm_config, collateral, MockOracle(), whitelist, get_time=clock)

    def test_expiration_must_be_in_future(self, pm_config, clock):
        clock.set(EXPIRATION)
        with pytest.raises(ValueError, match="must be after"):
            deploy_local(pm_config, clock=clock)


class TestCreate:
    """create()"""

    def test_first_create(self, deployment, manager):
        manager.create("alice", fp(150), fp(100))

        view = manager.get_position("alice")
        assert view.collateral == fp(150)
        assert view.tokens_outstanding == fp(100)
        assert view.collateralization_ratio == fp("1.5")
        assert deployment.synthetic_token.balance_of("alice") == fp(100)
        assert deployment.collateral_token.balance_of(manager.address) == fp(150)
        assert manager.global_collateralization_ratio() == fp("1.5")
        assert manager.events.names() == ["NewSponsor", "PositionCreated"]

    def test_create_adds_to_existing_position(self, manager):
        manager.create("alice", fp(150), fp(100))
        manager.create("alice", fp(30), fp(20))
        view = manager.get_position("alice")
        assert view.collateral == fp(180)
        assert view.tokens_outstanding == fp(120)
        assert manager.events.names().count("NewSponsor") == 1

    def test_below_minimum_size(self, manager):
        with pytest.raises(BelowMinimumSize):
            manager.create("alice", fp(150), fp(5))
        assert manager.sponsors == []

    def test_marginal_ratio_alone_can_pass(self, manager):
        """An undercollateralized position may add at or above the global ratio."""
        manager.create("alice", fp(150), fp(100))
        manager.create("bob", fp(300), fp(100))
        # global is now 2.25: alice would sit at 1.625, but the added 45/20 is 2.25
        manager.create("alice", fp(45), fp(20))
        assert manager.get_position("alice").collateral == fp(195)

    def test_collateral_only_create(self, manager):
        manager.create("alice", fp(150), fp(100))
        manager.create("alice", fp(50), ZERO)
        assert manager.get_position("alice").collateral == fp(200)

    def test_insufficient_funds_rolls_back(self, deployment, manager):
        with pytest.raises(TransferFailed):
            manager.create("dave", fp(150), fp(100))
        assert manager.sponsors == []
        assert deployment.synthetic_token.total_supply == ZERO

    def test_create_logs_position_line(self, manager, caplog):
        with caplog.at_level(logging.INFO, logger="synth"):
            manager.create("alice", fp(150), fp(100))
        assert "[CREATE] | sponsor=alice | collateral=150 | tokens=100" in caplog.text


class TestDeposit:
    """deposit() / deposit_to()"""

    def test_deposit(self, manager):
        manager.create("alice", fp(150), fp(100))
        manager.deposit("alice", fp(50))
        assert manager.get_position("alice").collateral == fp(200)
        assert manager.events.of_type(ev.Deposit)[0].collateral_amount == fp(50)

    def test_deposit_to_paid_by_another_account(self, deployment, manager):
        manager.create("alice", fp(150), fp(100))
        manager.deposit_to("bob", "alice", fp(50))
        assert manager.get_position("alice").collateral == fp(200)
        assert deployment.collateral_token.balance_of("bob") == fp(9_950)

    def test_zero_deposit_rejected(self, manager):
        manager.create("alice", fp(150), fp(100))
        with pytest.raises(InvalidAmount):
            manager.deposit("alice", ZERO)

    def test_deposit_without_position(self, manager):
        with pytest.raises(PositionNotFound):
            manager.deposit("alice", fp(50))


class TestWithdraw:
    """withdraw()"""

    def test_withdraw_keeps_global_ratio(self, deployment, manager):
        manager.create("alice", fp(150), fp(100))
        manager.create("bob", fp(300), fp(100))
        withdrawn = manager.withdraw("bob", fp(50))
        assert withdrawn == fp(50)
        assert manager.get_position("bob").collateral == fp(250)
        assert deployment.collateral_token.balance_of("bob") == fp(9_750)

    def test_withdraw_below_global_ratio_rejected(self, manager):
        manager.create("alice", fp(150), fp(100))
        manager.create("bob", fp(200), fp(100))
        with pytest.raises(BelowGlobalRatio):
            manager.withdraw("alice", fp(10))
        assert manager.get_position("alice").collateral == fp(150)

    def test_withdraw_more_than_collateral(self, manager):
        manager.create("alice", fp(150), fp(100))
        with pytest.raises(InsufficientCollateral):
            manager.withdraw("alice", fp(151))

    def test_zero_withdraw_rejected(self, manager):
        manager.create("alice", fp(150), fp(100))
        with pytest.raises(InvalidAmount):
            manager.withdraw("alice", ZERO)

    def test_rejection_is_logged(self, manager, caplog):
        manager.create("alice", fp(150), fp(100))
        with caplog.at_level(logging.WARNING, logger="synth"):
            with pytest.raises(InvalidAmount):
                manager.withdraw("alice", ZERO)
        assert "[WITHDRAW:REJECTED] | sponsor=alice | code=INVALID_AMOUNT" in caplog.text


class TestRedeem:
    """redeem()"""

    def test_partial_redeem_is_proportional(self, deployment, manager):
        manager.create("alice", fp(150), fp(100))
        returned = manager.redeem("alice", fp(40))
        assert returned == fp(60)
        view = manager.get_position("alice")
        assert view.collateral == fp(90)
        assert view.tokens_outstanding == fp(60)
        assert deployment.synthetic_token.balance_of("alice") == fp(60)
        assert deployment.synthetic_token.total_supply == fp(60)

    def test_full_redeem_closes_position(self, manager):
        manager.create("alice", fp(150), fp(100))
        assert manager.redeem("alice", fp(100)) == fp(150)
        assert not manager.get_position("alice").exists
        assert manager.sponsors == []
        assert "EndedSponsorPosition" in manager.events.names()

    def test_redeem_leaving_dust_rejected(self, manager):
        manager.create("alice", fp(150), fp(100))
        with pytest.raises(BelowMinimumSize):
            manager.redeem("alice", fp(95))

    def test_redeem_more_than_outstanding(self, manager):
        manager.create("alice", fp(150), fp(100))
        with pytest.raises(InvalidTokenAmount):
            manager.redeem("alice", fp(101))

    def test_redeem_zero_rejected(self, manager):
        manager.create("alice", fp(150), fp(100))
        with pytest.raises(InvalidTokenAmount):
            manager.redeem("alice", ZERO)

    def test_redeem_needs_tokens_in_wallet(self, deployment, manager):
        manager.create("alice", fp(150), fp(100))
        deployment.synthetic_token.transfer("alice", "bob", fp(100))
        with pytest.raises(TransferFailed):
            manager.redeem("alice", fp(50))
        assert manager.get_position("alice").tokens_outstanding == fp(100)
        assert deployment.collateral_token.balance_of(manager.address) == fp(150)


class TestExpiryGate:
    """Ledger operations require the contract to be before expiration."""

    def test_operations_rejected_after_expiration(self, deployment, manager):
        manager.create("alice", fp(150), fp(100))
        deployment.clock.set(EXPIRATION)
        with pytest.raises(ContractExpired):
            manager.create("bob", fp(150), fp(100))
        with pytest.raises(ContractExpired):
            manager.deposit("alice", fp(1))
        with pytest.raises(ContractExpired):
            manager.redeem("alice", fp(50))
