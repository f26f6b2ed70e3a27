"""
Bot wallet balance monitor.

Warns while a monitored bot holds less collateral, synthetic or native
currency than its configured threshold. The warning repeats on every check
until the balance is topped up.
"""

from decimal import Decimal
from typing import Any, Dict, Optional, Union

from ..position_manager.fixed_point import FixedPoint
from ..utils.helpers import format_amount
from ..utils.logger import SynthLogger, get_logger
from .config import BalanceMonitorConfig, BotToMonitor, ContractProps
from .token_balance_client import TokenBalanceClient

AT = "BalanceMonitor"
NATIVE_CURRENCY_SYMBOL = "Ether"


class BalanceMonitor:
    """
    Usage:
        monitor = BalanceMonitor(client, {"bots_to_monitor": [...]}, props)
        client.update()
        monitor.check_bot_balances()
    """

    def __init__(
        self,
        balance_client: TokenBalanceClient,
        config: Optional[Union[BalanceMonitorConfig, Dict[str, Any]]],
        contract_props: ContractProps,
        logger: Optional[SynthLogger] = None,
    ):
        """
        Raises:
            pydantic.ValidationError: Invalid config (missing fields, bad address)
        """
        if not isinstance(config, BalanceMonitorConfig):
            config = BalanceMonitorConfig.model_validate(config or {})
        self._config = config
        self.balance_client = balance_client
        self.contract_props = contract_props
        self.logger = logger or get_logger()

        for bot in self._config.bots_to_monitor:
            self.balance_client.add_address(bot.address)

    @property
    def config(self) -> BalanceMonitorConfig:
        return self._config

    def check_bot_balances(self) -> int:
        """
        Compare every bot's last snapshotted balances with its thresholds.

        Returns:
            Number of warnings logged
        """
        overrides = self._config.log_overrides
        warnings = 0
        for bot in self._config.bots_to_monitor:
            self.logger.debug(f"[{AT}] Checking balances | bot={bot.name} | address={bot.address}")
            checks = (
                ("collateral", self.balance_client.get_collateral_balance(bot.address),
                 bot.collateral_threshold, self.contract_props.collateral_symbol, overrides.collateral_threshold),
                ("synthetic", self.balance_client.get_synthetic_balance(bot.address),
                 bot.synthetic_threshold, self.contract_props.synthetic_symbol, overrides.synthetic_threshold),
                ("Ether", self.balance_client.get_ether_balance(bot.address),
                 bot.ether_threshold, NATIVE_CURRENCY_SYMBOL, overrides.eth_threshold),
            )
            for kind, balance, threshold, symbol, level in checks:
                if balance is None or not _below(balance, threshold):
                    continue
                self._warn(bot, kind, balance, threshold, symbol, level or "warning")
                warnings += 1
        return warnings

    def _warn(
        self,
        bot: BotToMonitor,
        kind: str,
        balance: FixedPoint,
        threshold: Decimal,
        symbol: str,
        level: str,
    ) -> None:
        self.logger.alert(
            AT,
            f"{bot.name} {kind} balance warning",
            level=level,
            address=bot.address,
            detail=(
                f"{kind} balance is below the threshold of {format_amount(threshold)} {symbol}. "
                f"Current balance is {format_amount(balance)} {symbol}."
            ),
        )


def _below(balance: FixedPoint, threshold: Decimal) -> bool:
    return balance.to_decimal() < threshold
