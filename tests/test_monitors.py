"""
Tests for the monitoring bots.

Validates that:
1. SyntheticPegMonitor alerts on peg deviation and on price volatility
2. BalanceMonitor warns per bot and per balance below its threshold
3. PositionEventMonitor reports each watched event exactly once
4. Monitor configs are validated (pydantic)
"""

import logging
from decimal import Decimal

import pytest
from pydantic import ValidationError

from src.config import MonitorConfig
from src.position_manager import ExpandedToken, ManualClock, fp
from src.monitors import (
    BalanceMonitor,
    BalanceMonitorConfig,
    ContractProps,
    PegMonitorConfig,
    PositionEventMonitor,
    SyntheticPegMonitor,
    TokenBalanceClient,
)
from src.price_feeds import PriceHistoryFeed

PROPS = ContractProps(collateral_symbol="WETH", synthetic_symbol="uETH", price_identifier="ETH/BTC")


def _alerts(caplog, at):
    return [r for r in caplog.records if r.getMessage().startswith(f"[ALERT:{at}]")]


# ─────────────────────────────────────────────────────────────────────────────
# SyntheticPegMonitor
# ─────────────────────────────────────────────────────────────────────────────

class TestSyntheticPegMonitor:
    """Peg deviation and volatility checks."""

    @pytest.fixture
    def clock(self):
        return ManualClock(now=1_400)

    def _monitor(self, clock, synthetic_prices, reference_prices, **config):
        synthetic = PriceHistoryFeed(synthetic_prices, get_time=clock, name="synthetic")
        reference = PriceHistoryFeed(reference_prices, get_time=clock, name="reference")
        synthetic.update()
        reference.update()
        cfg = PegMonitorConfig(volatility_window=600, **config)
        return SyntheticPegMonitor(synthetic, reference, PROPS, config=cfg)

    def test_off_peg_alert(self, clock, caplog):
        monitor = self._monitor(clock, [(1_000, fp("1.25"))], [(1_000, fp(1))])
        with caplog.at_level(logging.INFO, logger="synth"):
            monitor.check_price_deviation()

        (alert,) = _alerts(caplog, "SyntheticPegMonitor")
        assert alert.levelno == logging.WARNING
        assert "Synthetic off peg alert" in alert.getMessage()
        assert "Synthetic token uETH is trading at 1.2500. Target price is 1.0000. Error of 25.00%." in alert.getMessage()

    def test_within_threshold(self, clock, caplog):
        monitor = self._monitor(clock, [(1_000, fp("1.1"))], [(1_000, fp(1))])
        with caplog.at_level(logging.INFO, logger="synth"):
            monitor.check_price_deviation()
        assert _alerts(caplog, "SyntheticPegMonitor") == []

    def test_zero_threshold_disables_deviation_check(self, clock, caplog):
        monitor = self._monitor(clock, [(1_000, fp(5))], [(1_000, fp(1))], deviation_alert_threshold=0)
        with caplog.at_level(logging.INFO, logger="synth"):
            monitor.check_price_deviation()
        assert _alerts(caplog, "SyntheticPegMonitor") == []

    def test_missing_price(self, clock, caplog):
        synthetic = PriceHistoryFeed([(1_000, fp(1))], get_time=clock)
        reference = PriceHistoryFeed([(1_000, fp(1))], get_time=clock)
        reference.update()
        monitor = SyntheticPegMonitor(synthetic, reference, PROPS)
        with caplog.at_level(logging.INFO, logger="synth"):
            monitor.check_price_deviation()
        (alert,) = _alerts(caplog, "SyntheticPegMonitor")
        assert "Unable to get price | synthetic_price=N/A | reference_price=1" in alert.getMessage()

    def test_peg_volatility_alert(self, clock, caplog):
        monitor = self._monitor(clock, [(1_000, fp(1))], [(1_000, fp(1)), (1_300, fp("1.1"))])
        with caplog.at_level(logging.INFO, logger="synth"):
            monitor.check_peg_volatility()
        (alert,) = _alerts(caplog, "SyntheticPegMonitor")
        assert "Peg price volatility alert" in alert.getMessage()
        assert "Latest updated ETH/BTC price is 1.1000. Price moved 10.00%" in alert.getMessage()

    def test_synthetic_volatility_alert(self, clock, caplog):
        monitor = self._monitor(clock, [(1_000, fp("1.1")), (1_300, fp(1))], [(1_000, fp(1))])
        with caplog.at_level(logging.INFO, logger="synth"):
            monitor.check_synthetic_volatility()
        (alert,) = _alerts(caplog, "SyntheticPegMonitor")
        assert "Synthetic price volatility alert" in alert.getMessage()
        assert "Price moved -10.00%" in alert.getMessage()

    def test_quiet_market(self, clock, caplog):
        monitor = self._monitor(clock, [(1_000, fp(1))], [(1_000, fp(1)), (1_300, fp("1.01"))])
        with caplog.at_level(logging.INFO, logger="synth"):
            monitor.check_peg_volatility()
            monitor.check_synthetic_volatility()
        assert _alerts(caplog, "SyntheticPegMonitor") == []

    def test_volatility_unavailable(self, clock, caplog):
        reference = PriceHistoryFeed([(1_000, fp(1))], get_time=clock)
        monitor = SyntheticPegMonitor(PriceHistoryFeed(get_time=clock), reference, PROPS)
        with caplog.at_level(logging.INFO, logger="synth"):
            monitor.check_peg_volatility()
        (alert,) = _alerts(caplog, "SyntheticPegMonitor")
        assert "Unable to get volatility data | pricefeed=reference" in alert.getMessage()

    def test_pricefeed_volatility_window_ends_at_last_update(self, clock):
        monitor = self._monitor(clock, [(1_000, fp(1))], [(1_000, fp(2)), (1_300, fp(1))])
        data = monitor.pricefeed_volatility(monitor.reference_feed)
        assert data.latest_price == fp(1)
        assert data.min_price == fp(1)
        assert data.max_price == fp(2)
        # max (2.0) was seen before min (1.0): a fall
        assert data.volatility == Decimal(-1)

    def test_calculate_deviation_error(self):
        assert SyntheticPegMonitor.calculate_deviation_error(fp("1.2"), fp(1)) == Decimal("0.2")
        assert SyntheticPegMonitor.calculate_deviation_error(fp("0.9"), fp(1)) == Decimal("-0.1")

    def test_config_from_environment_defaults(self):
        cfg = PegMonitorConfig.from_monitor_config(MonitorConfig(volatility_window=120))
        assert cfg.volatility_window == 120
        assert cfg.deviation_alert_threshold == Decimal("0.2")

    def test_config_rejects_zero_volatility_threshold(self):
        with pytest.raises(ValidationError):
            PegMonitorConfig(volatility_alert_threshold=0)


# ─────────────────────────────────────────────────────────────────────────────
# BalanceMonitor
# ─────────────────────────────────────────────────────────────────────────────

def _token(symbol):
    token = ExpandedToken(symbol, symbol)
    token.add_minter("minter")
    return token


BOT = {
    "name": "Liquidator bot",
    "address": "0xbot",
    "collateral_threshold": "500",
    "synthetic_threshold": "100",
    "ether_threshold": "1",
}


class TestBalanceMonitor:
    """Bot balance thresholds."""

    @pytest.fixture
    def tokens(self):
        collateral, synthetic, ether = _token("WETH"), _token("uETH"), _token("ETH")
        collateral.mint("minter", "0xbot", fp(400))
        synthetic.mint("minter", "0xbot", fp(200))
        ether.mint("minter", "0xbot", fp("0.5"))
        return collateral, synthetic, ether

    @pytest.fixture
    def client(self, tokens):
        return TokenBalanceClient(*tokens)

    def test_warns_for_each_low_balance(self, client, caplog):
        monitor = BalanceMonitor(client, {"bots_to_monitor": [BOT]}, PROPS)
        client.update()
        with caplog.at_level(logging.INFO, logger="synth"):
            assert monitor.check_bot_balances() == 2

        messages = [r.getMessage() for r in _alerts(caplog, "BalanceMonitor")]
        assert messages[0] == (
            "[ALERT:BalanceMonitor] | Liquidator bot collateral balance warning | address=0xbot | "
            "detail=collateral balance is below the threshold of 500.00 WETH. Current balance is 400.00 WETH."
        )
        assert "Liquidator bot Ether balance warning" in messages[1]
        assert "Current balance is 0.50 Ether." in messages[1]

    def test_warning_repeats_until_topped_up(self, tokens, client, caplog):
        monitor = BalanceMonitor(client, {"bots_to_monitor": [BOT]}, PROPS)
        client.update()
        assert monitor.check_bot_balances() == 2
        assert monitor.check_bot_balances() == 2

        collateral, _, ether = tokens
        collateral.mint("minter", "0xbot", fp(100))
        ether.mint("minter", "0xbot", fp(1))
        # balances are only re-read on update
        assert monitor.check_bot_balances() == 2
        client.update()
        assert monitor.check_bot_balances() == 0

    def test_log_override_level(self, client, caplog):
        monitor = BalanceMonitor(
            client,
            {"bots_to_monitor": [dict(BOT, synthetic_threshold="1000")],
             "log_overrides": {"synthetic_threshold": "error"}},
            PROPS,
        )
        client.update()
        with caplog.at_level(logging.INFO, logger="synth"):
            monitor.check_bot_balances()
        levels = {r.getMessage().split(" | ")[1]: r.levelno for r in _alerts(caplog, "BalanceMonitor")}
        assert levels["Liquidator bot synthetic balance warning"] == logging.ERROR
        assert levels["Liquidator bot collateral balance warning"] == logging.WARNING

    def test_no_snapshot_no_warning(self, client):
        monitor = BalanceMonitor(client, {"bots_to_monitor": [BOT]}, PROPS)
        assert monitor.check_bot_balances() == 0

    def test_without_native_token_ether_is_skipped(self, tokens):
        collateral, synthetic, _ = tokens
        client = TokenBalanceClient(collateral, synthetic)
        monitor = BalanceMonitor(client, {"bots_to_monitor": [BOT]}, PROPS)
        client.update()
        assert client.get_ether_balance("0xbot") is None
        assert monitor.check_bot_balances() == 1

    def test_empty_config(self, client):
        monitor = BalanceMonitor(client, None, PROPS)
        assert monitor.config == BalanceMonitorConfig()
        assert monitor.check_bot_balances() == 0

    @pytest.mark.parametrize("bad", [
        dict(BOT, address="0x bot"),
        dict(BOT, address=""),
        dict(BOT, name=""),
        dict(BOT, collateral_threshold="-1"),
        {k: v for k, v in BOT.items() if k != "ether_threshold"},
        dict(BOT, unexpected=True),
    ], ids=["space-in-address", "blank-address", "blank-name", "negative", "missing-field", "extra-key"])
    def test_invalid_bot_config(self, client, bad):
        with pytest.raises(ValidationError):
            BalanceMonitor(client, {"bots_to_monitor": [bad]}, PROPS)

    def test_invalid_override_level(self, client):
        with pytest.raises(ValidationError):
            BalanceMonitor(client, {"log_overrides": {"eth_threshold": "loud"}}, PROPS)


# ─────────────────────────────────────────────────────────────────────────────
# PositionEventMonitor
# ─────────────────────────────────────────────────────────────────────────────

class TestPositionEventMonitor:
    """Event log consumer."""

    def test_reports_watched_events_once(self, manager, caplog):
        monitor = PositionEventMonitor(manager.events, ContractProps.from_manager(manager))
        manager.create("alice", fp(150), fp(100))
        manager.request_withdrawal("alice", fp(50))

        with caplog.at_level(logging.INFO, logger="synth"):
            reported = monitor.check_for_new_events()
        assert [e.name for e in reported] == ["NewSponsor", "RequestWithdrawal"]
        assert monitor.cursor == 3

        messages = [r.getMessage() for r in _alerts(caplog, "PositionEventMonitor")]
        assert messages == [
            "[ALERT:PositionEventMonitor] | New sponsor | sponsor=alice",
            "[ALERT:PositionEventMonitor] | Withdrawal request | sponsor=alice | amount=50.00 WETH",
        ]
        assert monitor.check_for_new_events() == []

    def test_transfer_and_shutdown(self, deployment, manager, caplog):
        monitor = PositionEventMonitor(manager.events, ContractProps.from_manager(manager))
        manager.create("alice", fp(150), fp(100))
        monitor.check_for_new_events()

        manager.request_transfer_position("alice")
        deployment.clock.advance(manager.withdrawal_liveness)
        manager.transfer_position_passed_request("alice", "carol")
        manager.emergency_shutdown(manager.config.financial_contracts_admin)

        with caplog.at_level(logging.INFO, logger="synth"):
            reported = monitor.check_for_new_events()
        assert [e.name for e in reported] == [
            "RequestTransferPosition", "RequestTransferPositionExecuted", "NewSponsor", "EmergencyShutdown",
        ]
        shutdown = _alerts(caplog, "PositionEventMonitor")[-1]
        assert shutdown.levelno == logging.WARNING
        assert "Emergency shutdown" in shutdown.getMessage()

    def test_contract_props_from_manager(self, manager):
        props = ContractProps.from_manager(manager)
        assert props.collateral_symbol == "WETH"
        assert props.synthetic_symbol == manager.synthetic_token.symbol
        assert props.price_identifier == "ETH/BTC"
