"""
Configuration management.
"""

from .config import (
    Config,
    get_config,
    PositionManagerConfig,
    FeeConfig,
    MonitorConfig,
    PriceFeedConfig,
    LogConfig,
)

__all__ = [
    # Config classes
    "Config",
    "get_config",
    "PositionManagerConfig",
    "FeeConfig",
    "MonitorConfig",
    "PriceFeedConfig",
    "LogConfig",
]
