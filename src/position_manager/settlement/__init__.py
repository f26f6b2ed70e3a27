"""Oracle consumption and expiry settlement."""

from .oracle import IdentifierWhitelist, MockOracle, OracleInterface
from .settlement_model import SettlementModel, SettlementPayout

__all__ = [
    "IdentifierWhitelist",
    "MockOracle",
    "OracleInterface",
    "SettlementModel",
    "SettlementPayout",
]
