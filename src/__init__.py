"""
SYNTH - Synthetic Asset Position Manager

Collateralized debt positions on a single collateral currency, settled
against an oracle price at expiry. Includes the fee-adjusted position ledger,
monitoring bots, price feeds and a Merkle reward distributor.
"""

__version__ = "1.0.0"
__author__ = "SYNTH"

from .config import get_config, PositionManagerConfig
from .position_manager import PositionManager, deploy_local, fp

__all__ = [
    "__version__",
    "get_config",
    "PositionManagerConfig",
    "PositionManager",
    "deploy_local",
    "fp",
]
