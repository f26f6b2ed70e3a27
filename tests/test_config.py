"""
Tests for environment configuration and deployment YAML files.

Validates that:
1. Config reads its settings from the environment (and .env files)
2. Dataclass configs reject invalid values at construction
3. Deployment YAML parses into PositionManagerConfig + FeeConfig, failing loud
"""

import pytest

from src.config import Config, FeeConfig, MonitorConfig, PositionManagerConfig, PriceFeedConfig
from src.config.deployment import list_deployments, load_deployment_config, parse_deployment_config


@pytest.fixture
def fresh_config(monkeypatch, tmp_path):
    """Build a Config from a clean environment in an empty directory."""
    monkeypatch.chdir(tmp_path)
    for key in ("EXPIRATION_TIMESTAMP", "WITHDRAWAL_LIVENESS", "TRADERMADE_API_KEY", "LOG_LEVEL"):
        monkeypatch.delenv(key, raising=False)

    def build() -> Config:
        Config._instance = None
        return Config()

    yield build
    Config._instance = None


class TestEnvironmentConfig:
    """Config singleton."""

    def test_defaults(self, fresh_config):
        config = fresh_config()
        assert config.position_manager.expiration_timestamp == 0
        assert config.position_manager.price_identifier == "ETH/BTC"
        assert config.fees.fixed_fee_per_second_per_pfc == "0"
        assert config.log.level == "INFO"

    def test_reads_environment(self, fresh_config, monkeypatch):
        monkeypatch.setenv("EXPIRATION_TIMESTAMP", "1767225600")
        monkeypatch.setenv("WITHDRAWAL_LIVENESS", "3600")
        monkeypatch.setenv("PRICE_IDENTIFIER", "btc/usd")
        config = fresh_config()
        assert config.position_manager.expiration_timestamp == 1767225600
        assert config.position_manager.withdrawal_liveness == 3600
        assert config.position_manager.price_identifier == "BTC/USD"

    def test_reads_dotenv_file(self, fresh_config, tmp_path, monkeypatch):
        monkeypatch.setenv("TRADERMADE_API_KEY", "")
        monkeypatch.setenv("TRADERMADE_PAIR", "EURUSD")
        (tmp_path / ".env").write_text("TRADERMADE_API_KEY=secret\nTRADERMADE_PAIR=GBPUSD\n")
        config = fresh_config()
        assert config.price_feed.has_api_key
        assert config.price_feed.pair == "GBPUSD"

    def test_validate_requires_expiration(self, fresh_config):
        ok, messages = fresh_config().validate()
        assert not ok
        assert "EXPIRATION_TIMESTAMP is not set" in messages

    def test_validate_passes_with_warnings(self, fresh_config, monkeypatch):
        monkeypatch.setenv("EXPIRATION_TIMESTAMP", "1767225600")
        ok, messages = fresh_config().validate()
        assert ok
        assert any("TRADERMADE_API_KEY" in m for m in messages)

    def test_summary_hides_api_key(self, fresh_config, monkeypatch):
        monkeypatch.setenv("TRADERMADE_API_KEY", "secret")
        summary = fresh_config().summary()
        assert "SYNTHETIC POSITION MANAGER" in summary
        assert "secret" not in summary

    def test_singleton(self, fresh_config):
        config = fresh_config()
        assert Config() is config


class TestDataclassValidation:
    """Construction-time checks."""

    def test_liveness_must_be_positive(self):
        with pytest.raises(ValueError, match="withdrawal_liveness"):
            PositionManagerConfig(withdrawal_liveness=0)

    def test_negative_min_sponsor_tokens(self):
        with pytest.raises(ValueError, match="non-negative"):
            PositionManagerConfig(min_sponsor_tokens="-1")

    def test_blank_admin(self):
        with pytest.raises(ValueError, match="Address is required"):
            PositionManagerConfig(financial_contracts_admin="  ")

    def test_fixed_fee_below_one(self):
        with pytest.raises(ValueError, match="below 1"):
            FeeConfig(fixed_fee_per_second_per_pfc="1")

    def test_fee_must_be_decimal(self):
        with pytest.raises(ValueError, match="decimal number"):
            FeeConfig(fixed_fee_per_second_per_pfc="lots")

    def test_monitor_polling_delay(self):
        with pytest.raises(ValueError, match="polling_delay"):
            MonitorConfig(polling_delay=0)

    def test_price_feed_ohlc_period(self):
        with pytest.raises(ValueError, match="ohlc_period"):
            PriceFeedConfig(ohlc_period=7)


class TestDeploymentConfig:
    """Deployment YAML."""

    def test_parse(self):
        deployment = parse_deployment_config({
            "deployment": {
                "expiration_timestamp": 1767225600,
                "min_sponsor_tokens": 0.1,
                "synthetic": {"name": "uETH", "symbol": "uETH-DEC25"},
            },
            "fees": {"store_address": "0xstore", "fixed_fee_per_second_per_pfc": "0.0000001"},
        }, name="ueth")
        pm = deployment.position_manager
        assert deployment.name == "ueth"
        assert pm.expiration_timestamp == 1767225600
        assert pm.min_sponsor_tokens == "0.1"
        assert pm.synthetic_symbol == "uETH-DEC25"
        assert deployment.fees.store_address == "0xstore"
        assert deployment.to_dict()["synthetic_symbol"] == "uETH-DEC25"

    def test_missing_section(self):
        with pytest.raises(ValueError, match="top-level 'deployment'"):
            parse_deployment_config({"fees": {}})

    def test_missing_expiration_fails_loud(self):
        with pytest.raises(ValueError, match="expiration_timestamp"):
            parse_deployment_config({"deployment": {"synthetic": {"symbol": "X"}}})

    def test_invalid_values_name_the_deployment(self):
        with pytest.raises(ValueError, match="Invalid deployment 'bad'"):
            parse_deployment_config({"deployment": {"expiration_timestamp": 1, "withdrawal_liveness": 0}}, name="bad")

    def test_load_from_path(self, tmp_path):
        path = tmp_path / "mine.yml"
        path.write_text(
            "deployment:\n"
            "  expiration_timestamp: 2000000000\n"
            "  price_identifier: BTC/USD\n"
        )
        deployment = load_deployment_config(path)
        assert deployment.name == "mine"
        assert deployment.position_manager.price_identifier == "BTC/USD"

    def test_load_by_name(self):
        assert "eth_btc_local" in list_deployments()
        deployment = load_deployment_config("eth_btc_local")
        assert deployment.position_manager.expiration_timestamp == 1767225600
        assert deployment.fees.fixed_fee_per_second_per_pfc == "0.0000000001"

    def test_unknown_name(self):
        with pytest.raises(FileNotFoundError, match="not found"):
            load_deployment_config("does_not_exist")

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yml"
        path.write_text("")
        with pytest.raises(ValueError, match="Empty or invalid"):
            load_deployment_config(path)
