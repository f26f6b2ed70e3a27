"""
Tests for expiry, emergency shutdown and settlement.

Validates that:
1. expire / emergency_shutdown move the contract out of OPEN and request a price
2. settle_expired pays token value plus sponsor excess, capped at the pool
3. Negative oracle prices clamp to zero; unresolved prices reject and retry
"""

import pytest

from src.position_manager import ContractState, ZERO, fp
from src.position_manager import events as ev
from src.position_manager.errors import (
    ContractExpired,
    ContractNotExpired,
    ContractNotOpen,
    UnresolvedOraclePrice,
    Unauthorized,
)
from tests.conftest import EXPIRATION


@pytest.fixture
def two_sponsors(deployment):
    manager = deployment.manager
    manager.create("alice", fp(150), fp(100))
    manager.create("bob", fp(300), fp(100))
    return deployment


def _expire(local):
    local.clock.set(EXPIRATION)
    local.manager.expire(local.manager.config.financial_contracts_admin)


class TestExpire:
    """expire()"""

    def test_expire_requests_price(self, two_sponsors):
        _expire(two_sponsors)
        manager = two_sponsors.manager
        assert manager.contract_state == ContractState.EXPIRED_PRICE_REQUESTED
        assert two_sponsors.oracle.requests == [("ETH/BTC", EXPIRATION)]
        assert manager.events.names()[-1] == "ContractExpired"

    def test_expire_early_rejected(self, two_sponsors):
        with pytest.raises(ContractNotExpired):
            two_sponsors.manager.expire("anyone")
        assert two_sponsors.manager.contract_state == ContractState.OPEN

    def test_expire_twice_rejected(self, two_sponsors):
        _expire(two_sponsors)
        with pytest.raises(ContractNotOpen):
            two_sponsors.manager.expire("anyone")

    def test_settle_before_expiry_rejected(self, two_sponsors):
        with pytest.raises(ContractNotExpired):
            two_sponsors.manager.settle_expired("alice")


class TestSettleExpired:
    """settle_expired()"""

    def test_sponsors_settle_at_price(self, two_sponsors):
        manager = two_sponsors.manager
        _expire(two_sponsors)
        two_sponsors.push_settlement_price(fp("1.2"))

        assert manager.settle_expired("alice") == fp(150)
        assert manager.contract_state == ContractState.EXPIRED_PRICE_RECEIVED
        assert manager.settlement_price == fp("1.2")
        assert manager.settle_expired("bob") == fp(300)

        assert manager.sponsors == []
        assert two_sponsors.synthetic_token.total_supply == ZERO
        assert two_sponsors.collateral_token.balance_of(manager.address) == ZERO
        assert len(manager.events.of_type(ev.SettleExpiredPosition)) == 2

    def test_token_holder_without_position(self, two_sponsors):
        manager = two_sponsors.manager
        two_sponsors.synthetic_token.transfer("alice", "carol", fp(50))
        _expire(two_sponsors)
        two_sponsors.push_settlement_price(fp("1.2"))

        assert manager.settle_expired("carol") == fp(60)
        # alice: 50 tokens (60) plus excess 150 - 100 * 1.2
        assert manager.settle_expired("alice") == fp(90)

    def test_payout_capped_at_pool(self, deployment):
        manager = deployment.manager
        manager.create("alice", fp(150), fp(100))
        _expire(deployment)
        deployment.push_settlement_price(fp(2))
        assert manager.settle_expired("alice") == fp(150)

    def test_negative_price_clamps_to_zero(self, two_sponsors):
        manager = two_sponsors.manager
        _expire(two_sponsors)
        two_sponsors.push_settlement_price(fp(1), negative=True)

        assert manager.settle_expired("alice") == fp(150)
        assert manager.settlement_price == ZERO

    def test_unresolved_price_rejects_then_retries(self, two_sponsors):
        manager = two_sponsors.manager
        _expire(two_sponsors)

        with pytest.raises(UnresolvedOraclePrice):
            manager.settle_expired("alice")
        assert manager.contract_state == ContractState.EXPIRED_PRICE_REQUESTED
        assert manager.get_position("alice").collateral == fp(150)

        two_sponsors.push_settlement_price(fp("1.2"))
        assert manager.settle_expired("alice") == fp(150)

    def test_price_is_read_once(self, two_sponsors):
        manager = two_sponsors.manager
        _expire(two_sponsors)
        two_sponsors.push_settlement_price(fp("1.2"))
        manager.settle_expired("alice")
        two_sponsors.push_settlement_price(fp(5))
        assert manager.settle_expired("bob") == fp(300)

    def test_settling_with_nothing_pays_zero(self, two_sponsors):
        _expire(two_sponsors)
        two_sponsors.push_settlement_price(fp(1))
        assert two_sponsors.manager.settle_expired("nobody") == ZERO


class TestEmergencyShutdown:
    """emergency_shutdown()"""

    def test_admin_only(self, two_sponsors):
        with pytest.raises(Unauthorized):
            two_sponsors.manager.emergency_shutdown("alice")
        assert two_sponsors.manager.contract_state == ContractState.OPEN

    def test_shutdown_expires_now(self, two_sponsors):
        manager = two_sponsors.manager
        two_sponsors.clock.advance(500)
        now = two_sponsors.clock.now
        manager.emergency_shutdown(manager.config.financial_contracts_admin)

        assert manager.contract_state == ContractState.EXPIRED_PRICE_REQUESTED
        assert manager.expiration_timestamp == now
        shutdown = manager.events.of_type(ev.EmergencyShutdown)[0]
        assert shutdown.original_expiration_timestamp == EXPIRATION
        assert shutdown.shutdown_timestamp == now

        two_sponsors.push_settlement_price(fp(1))
        assert manager.settle_expired("alice") == fp(150)

    def test_operations_blocked_after_shutdown(self, two_sponsors):
        manager = two_sponsors.manager
        manager.emergency_shutdown(manager.config.financial_contracts_admin)
        with pytest.raises(ContractExpired):
            manager.deposit("alice", fp(1))
        with pytest.raises(ContractNotOpen):
            manager.pay_regular_fees()
