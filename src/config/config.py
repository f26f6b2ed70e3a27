"""
Configuration management for the position manager and its bots.
Loads settings from environment variables with sensible defaults.
"""

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .constants import (
    DEFAULT_MIN_SPONSOR_TOKENS,
    DEFAULT_PRICE_FEED_DECIMALS,
    DEFAULT_SYNTHETIC_DECIMALS,
    DEFAULT_WITHDRAWAL_LIVENESS,
    MAX_HOURLY_LOOKBACK,
    MAX_MINUTE_LOOKBACK,
    VALID_OHLC_PERIODS,
    validate_address,
    validate_identifier,
)


def _parse_non_negative(name: str, value: str) -> Decimal:
    try:
        parsed = Decimal(value)
    except (InvalidOperation, ValueError, TypeError):
        raise ValueError(f"{name} must be a decimal number, got {value!r}")
    if parsed < 0:
        raise ValueError(f"{name} must be non-negative, got {value}")
    return parsed


@dataclass
class PositionManagerConfig:
    """
    Construction parameters of one deployment.

    Amounts are decimal strings (whole units); they are converted to
    FixedPoint by the manager, never through float.
    """
    expiration_timestamp: int = 0
    withdrawal_liveness: int = DEFAULT_WITHDRAWAL_LIVENESS
    min_sponsor_tokens: str = DEFAULT_MIN_SPONSOR_TOKENS
    price_identifier: str = "ETH/BTC"
    synthetic_name: str = "Synthetic Token"
    synthetic_symbol: str = "SYNTH"
    synthetic_decimals: int = DEFAULT_SYNTHETIC_DECIMALS
    collateral_symbol: str = "WETH"
    excess_token_beneficiary: str = "excess-token-beneficiary"
    financial_contracts_admin: str = "financial-contracts-admin"
    manager_address: str = "position-manager"
    debug_check_invariants: bool = False

    def __post_init__(self):
        if self.withdrawal_liveness <= 0:
            raise ValueError(f"withdrawal_liveness must be positive, got {self.withdrawal_liveness}")
        if self.expiration_timestamp < 0:
            raise ValueError(f"expiration_timestamp must be non-negative, got {self.expiration_timestamp}")
        _parse_non_negative("min_sponsor_tokens", self.min_sponsor_tokens)
        self.price_identifier = validate_identifier(self.price_identifier)
        self.excess_token_beneficiary = validate_address(self.excess_token_beneficiary)
        self.financial_contracts_admin = validate_address(self.financial_contracts_admin)
        self.manager_address = validate_address(self.manager_address)
        if not self.synthetic_symbol.strip():
            raise ValueError("synthetic_symbol is required")


@dataclass
class FeeConfig:
    """Store fee schedule (rates per second per unit of PFC)."""
    store_address: str = "store"
    fixed_fee_per_second_per_pfc: str = "0"
    weekly_delay_fee_per_second_per_pfc: str = "0"

    def __post_init__(self):
        self.store_address = validate_address(self.store_address)
        rate = _parse_non_negative("fixed_fee_per_second_per_pfc", self.fixed_fee_per_second_per_pfc)
        if rate >= 1:
            raise ValueError(f"fixed_fee_per_second_per_pfc must be below 1, got {rate}")
        _parse_non_negative("weekly_delay_fee_per_second_per_pfc", self.weekly_delay_fee_per_second_per_pfc)


@dataclass
class MonitorConfig:
    """Defaults for the monitoring bots."""
    polling_delay: int = 60
    deviation_alert_threshold: str = "0.2"
    volatility_window: int = 600
    volatility_alert_threshold: str = "0.05"

    def __post_init__(self):
        if self.polling_delay <= 0:
            raise ValueError(f"polling_delay must be positive, got {self.polling_delay}")
        if self.volatility_window <= 0:
            raise ValueError(f"volatility_window must be positive, got {self.volatility_window}")
        _parse_non_negative("deviation_alert_threshold", self.deviation_alert_threshold)
        _parse_non_negative("volatility_alert_threshold", self.volatility_alert_threshold)


@dataclass
class PriceFeedConfig:
    """TraderMade price feed settings."""
    api_key: str = ""
    pair: str = "EURUSD"
    minute_lookback: int = 7200
    hourly_lookback: int = 259200
    ohlc_period: int = 1
    min_time_between_updates: int = 60
    price_feed_decimals: int = DEFAULT_PRICE_FEED_DECIMALS

    def __post_init__(self):
        if self.ohlc_period not in VALID_OHLC_PERIODS:
            raise ValueError(f"ohlc_period must be one of {VALID_OHLC_PERIODS}, got {self.ohlc_period}")
        if not 0 <= self.minute_lookback <= MAX_MINUTE_LOOKBACK:
            raise ValueError(f"minute_lookback must be in [0, {MAX_MINUTE_LOOKBACK}]")
        if not 0 <= self.hourly_lookback <= MAX_HOURLY_LOOKBACK:
            raise ValueError(f"hourly_lookback must be in [0, {MAX_HOURLY_LOOKBACK}]")
        if self.min_time_between_updates < 0:
            raise ValueError("min_time_between_updates must be non-negative")

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key)


@dataclass
class LogConfig:
    """Logging configuration."""
    level: str = "INFO"
    log_dir: str = "logs"


class Config:
    """
    Central configuration manager.

    Loads configuration from environment variables and provides
    typed access to all settings.
    """

    _instance: Optional['Config'] = None

    def __new__(cls, *args, **kwargs):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self, env_file: str = ".env"):
        if self._initialized:
            return

        # Later files override earlier ones
        for env_name in ["api_keys.env", ".env", env_file]:
            env_path = Path(env_name)
            if env_path.exists():
                load_dotenv(env_path, override=True)

        self.position_manager = self._load_position_manager_config()
        self.fees = self._load_fee_config()
        self.monitor = self._load_monitor_config()
        self.price_feed = self._load_price_feed_config()
        self.log = self._load_log_config()

        self._initialized = True

    def _load_position_manager_config(self) -> PositionManagerConfig:
        """Load deployment parameters from environment."""
        return PositionManagerConfig(
            expiration_timestamp=int(os.getenv("EXPIRATION_TIMESTAMP", "0")),
            withdrawal_liveness=int(os.getenv("WITHDRAWAL_LIVENESS", str(DEFAULT_WITHDRAWAL_LIVENESS))),
            min_sponsor_tokens=os.getenv("MIN_SPONSOR_TOKENS", DEFAULT_MIN_SPONSOR_TOKENS),
            price_identifier=os.getenv("PRICE_IDENTIFIER", "ETH/BTC"),
            synthetic_name=os.getenv("SYNTHETIC_NAME", "Synthetic Token"),
            synthetic_symbol=os.getenv("SYNTHETIC_SYMBOL", "SYNTH"),
            collateral_symbol=os.getenv("COLLATERAL_SYMBOL", "WETH"),
            excess_token_beneficiary=os.getenv("EXCESS_TOKEN_BENEFICIARY", "excess-token-beneficiary"),
            financial_contracts_admin=os.getenv("FINANCIAL_CONTRACTS_ADMIN", "financial-contracts-admin"),
            debug_check_invariants=os.getenv("DEBUG_CHECK_INVARIANTS", "false").lower() == "true",
        )

    def _load_fee_config(self) -> FeeConfig:
        """Load store fee schedule from environment."""
        return FeeConfig(
            store_address=os.getenv("STORE_ADDRESS", "store"),
            fixed_fee_per_second_per_pfc=os.getenv("FIXED_FEE_PER_SECOND_PER_PFC", "0"),
            weekly_delay_fee_per_second_per_pfc=os.getenv("WEEKLY_DELAY_FEE_PER_SECOND_PER_PFC", "0"),
        )

    def _load_monitor_config(self) -> MonitorConfig:
        """Load monitor defaults from environment."""
        return MonitorConfig(
            polling_delay=int(os.getenv("POLLING_DELAY", "60")),
            deviation_alert_threshold=os.getenv("DEVIATION_ALERT_THRESHOLD", "0.2"),
            volatility_window=int(os.getenv("VOLATILITY_WINDOW", "600")),
            volatility_alert_threshold=os.getenv("VOLATILITY_ALERT_THRESHOLD", "0.05"),
        )

    def _load_price_feed_config(self) -> PriceFeedConfig:
        """Load TraderMade settings from environment."""
        return PriceFeedConfig(
            api_key=os.getenv("TRADERMADE_API_KEY", ""),
            pair=os.getenv("TRADERMADE_PAIR", "EURUSD"),
            minute_lookback=int(os.getenv("TRADERMADE_MINUTE_LOOKBACK", "7200")),
            hourly_lookback=int(os.getenv("TRADERMADE_HOURLY_LOOKBACK", "259200")),
            ohlc_period=int(os.getenv("TRADERMADE_OHLC_PERIOD", "1")),
            min_time_between_updates=int(os.getenv("PRICE_FEED_MIN_TIME_BETWEEN_UPDATES", "60")),
        )

    def _load_log_config(self) -> LogConfig:
        """Load logging configuration from environment."""
        return LogConfig(
            level=os.getenv("LOG_LEVEL", "INFO"),
            log_dir=os.getenv("LOG_DIR", "logs"),
        )

    def reload(self, env_file: str = ".env"):
        """Reload configuration from environment."""
        self._initialized = False
        Config._instance = None
        return Config(env_file)

    def validate(self) -> tuple[bool, List[str]]:
        """
        Validate settings that can only be checked together.

        Returns:
            Tuple of (is_valid, messages)
        """
        errors = []
        warnings = []
        pm = self.position_manager
        if pm.expiration_timestamp == 0:
            errors.append("EXPIRATION_TIMESTAMP is not set")
        if pm.excess_token_beneficiary == pm.manager_address:
            errors.append("EXCESS_TOKEN_BENEFICIARY must not be the manager itself")
        if not self.price_feed.has_api_key:
            warnings.append("TRADERMADE_API_KEY is not set (price feeds disabled)")
        return not errors, errors + warnings

    def summary(self) -> str:
        """Generate a human-readable configuration summary."""
        pm = self.position_manager
        lines = [
            "=" * 55,
            "SYNTHETIC POSITION MANAGER - CONFIGURATION",
            "=" * 55,
            f"Identifier:   {pm.price_identifier}",
            f"Synthetic:    {pm.synthetic_name} ({pm.synthetic_symbol})",
            f"Collateral:   {pm.collateral_symbol}",
            f"Expiration:   {pm.expiration_timestamp or '(not set)'}",
            f"Liveness:     {pm.withdrawal_liveness}s",
            f"Min Sponsor:  {pm.min_sponsor_tokens} {pm.synthetic_symbol}",
            "",
            "Fees:",
            f"  Store:      {self.fees.store_address}",
            f"  Fixed:      {self.fees.fixed_fee_per_second_per_pfc} /s/PFC",
            f"  Late:       {self.fees.weekly_delay_fee_per_second_per_pfc} /s/PFC/week",
            "",
            "Price Feed:",
            f"  TraderMade: {self.price_feed.pair} "
            f"({'✓ Configured' if self.price_feed.has_api_key else '✗ Missing API key'})",
            "=" * 55,
        ]
        return "\n".join(lines)


def get_config(env_file: str = ".env") -> Config:
    """Get or create the global config instance."""
    return Config(env_file)
