"""
Monitoring bots: synthetic peg, bot wallet balances, position events.
"""

from .balance_monitor import BalanceMonitor
from .config import BalanceMonitorConfig, BotToMonitor, ContractProps, LogOverrides, PegMonitorConfig
from .position_event_monitor import PositionEventMonitor
from .synthetic_peg_monitor import SyntheticPegMonitor, VolatilityData
from .token_balance_client import BalanceSnapshot, TokenBalanceClient

__all__ = [
    "BalanceMonitor",
    "BalanceMonitorConfig",
    "BalanceSnapshot",
    "BotToMonitor",
    "ContractProps",
    "LogOverrides",
    "PegMonitorConfig",
    "PositionEventMonitor",
    "SyntheticPegMonitor",
    "TokenBalanceClient",
    "VolatilityData",
]
