"""
Pydantic models for monitor configuration.

Monitors are configured from dicts (YAML / JSON / env), so every field is
validated on construction and unknown keys are rejected.
"""

from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..config.config import MonitorConfig
from ..config.constants import validate_address

LogLevelName = Literal["debug", "info", "warning", "error", "critical"]


class ContractProps(BaseModel):
    """Contract facts quoted in alert messages."""

    model_config = ConfigDict(extra="forbid")

    collateral_symbol: str = "WETH"
    synthetic_symbol: str = "SYNTH"
    price_identifier: str = "ETH/BTC"

    @classmethod
    def from_manager(cls, manager) -> "ContractProps":
        return cls(
            collateral_symbol=manager.collateral_token.symbol,
            synthetic_symbol=manager.synthetic_token.symbol,
            price_identifier=manager.config.price_identifier,
        )


class PegMonitorConfig(BaseModel):
    """SyntheticPegMonitor thresholds."""

    model_config = ConfigDict(extra="forbid")

    # 0 disables the deviation check
    deviation_alert_threshold: Decimal = Field(default=Decimal("0.2"), ge=0, lt=100)
    volatility_window: int = Field(default=3600, ge=0)
    volatility_alert_threshold: Decimal = Field(default=Decimal("0.05"), gt=0, lt=100)

    @classmethod
    def from_monitor_config(cls, config: MonitorConfig) -> "PegMonitorConfig":
        return cls(
            deviation_alert_threshold=Decimal(config.deviation_alert_threshold),
            volatility_window=config.volatility_window,
            volatility_alert_threshold=Decimal(config.volatility_alert_threshold),
        )


class BotToMonitor(BaseModel):
    """One bot wallet and the balances it must keep."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    address: str
    collateral_threshold: Decimal = Field(ge=0)
    synthetic_threshold: Decimal = Field(ge=0)
    ether_threshold: Decimal = Field(ge=0)

    @field_validator("address")
    @classmethod
    def _check_address(cls, value: str) -> str:
        address = validate_address(value)
        if any(ch.isspace() for ch in address):
            raise ValueError(f"address must not contain whitespace: {address!r}")
        return address


class LogOverrides(BaseModel):
    """Per-check log level overrides (warning when unset)."""

    model_config = ConfigDict(extra="forbid")

    collateral_threshold: Optional[LogLevelName] = None
    synthetic_threshold: Optional[LogLevelName] = None
    eth_threshold: Optional[LogLevelName] = None


class BalanceMonitorConfig(BaseModel):
    """BalanceMonitor settings."""

    model_config = ConfigDict(extra="forbid")

    bots_to_monitor: list[BotToMonitor] = Field(default_factory=list)
    log_overrides: LogOverrides = Field(default_factory=LogOverrides)
