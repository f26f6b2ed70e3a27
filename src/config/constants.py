"""
Centralized constants for the position manager.

IMPORTANT: Amounts are never floats.
- Ledger values: FixedPoint with 18 decimals (raw integers)
- Timestamps: integer seconds since epoch
- Addresses: plain strings, compared case-sensitively

NO function should silently coerce a float into a ledger amount.
"""

from typing import List


# ==================== Fixed-point ====================

FIXED_POINT_DECIMALS = 18
FIXED_POINT_SCALE = 10 ** FIXED_POINT_DECIMALS

# Raw values must fit in an unsigned 256-bit word
UINT256_MAX = 2 ** 256 - 1
INT256_MIN = -(2 ** 255)
INT256_MAX = 2 ** 255 - 1


# ==================== Time ====================

SECONDS_PER_MINUTE = 60
SECONDS_PER_HOUR = 60 * 60
SECONDS_PER_DAY = 24 * SECONDS_PER_HOUR
SECONDS_PER_WEEK = 7 * SECONDS_PER_DAY


# ==================== Deployment defaults ====================

DEFAULT_WITHDRAWAL_LIVENESS = 2 * SECONDS_PER_HOUR
DEFAULT_MIN_SPONSOR_TOKENS = "5"
DEFAULT_SYNTHETIC_DECIMALS = 18

# Identifiers the local whitelist accepts out of the box
DEFAULT_PRICE_IDENTIFIERS: List[str] = [
    "ETH/BTC",
    "BTC/USD",
    "ETH/USD",
    "USD/CNY",
    "GOLD/USD",
]


# ==================== Price feeds ====================

# TraderMade timeseries limits
VALID_OHLC_PERIODS = (1, 5, 10, 15, 30)
MAX_MINUTE_LOOKBACK = 2 * SECONDS_PER_DAY
MAX_HOURLY_LOOKBACK = 60 * SECONDS_PER_DAY
DEFAULT_PRICE_FEED_DECIMALS = 18


def validate_address(address: str) -> str:
    """
    Validate an account address string.

    Args:
        address: The address to validate (e.g., "0xabc...", "sponsor-1")

    Returns:
        The address with surrounding whitespace removed

    Raises:
        ValueError: If address is empty
    """
    if not address or not address.strip():
        raise ValueError("Address is required - it must be explicitly provided")
    return address.strip()


def validate_identifier(identifier: str) -> str:
    """
    Validate and normalize a price identifier.

    Args:
        identifier: Price identifier (e.g., "eth/btc", "ETH/BTC ")

    Returns:
        Normalized identifier (uppercase, no surrounding whitespace)

    Raises:
        ValueError: If identifier is empty
    """
    if not identifier or not identifier.strip():
        raise ValueError("Price identifier is required - it must be explicitly provided")
    return identifier.strip().upper()
