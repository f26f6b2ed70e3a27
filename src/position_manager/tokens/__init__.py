"""Collateral and synthetic token boundary."""

from .effects import EffectKind, EffectResult, TokenEffect, TransferBatch
from .factory import TokenFactory
from .token import ExpandedToken, TokenError

__all__ = [
    "EffectKind",
    "EffectResult",
    "ExpandedToken",
    "TokenEffect",
    "TokenError",
    "TokenFactory",
    "TransferBatch",
]
