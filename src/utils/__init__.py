"""
Utility modules.
"""

from .logger import get_logger, setup_logger, SynthLogger
from .helpers import format_amount, safe_decimal

__all__ = [
    # Logger
    "get_logger",
    "setup_logger",
    "SynthLogger",
    # Conversion and formatting helpers
    "format_amount",
    "safe_decimal",
]
