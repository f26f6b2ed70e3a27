"""
Price feeds consumed by the monitoring bots.
"""

from .interface import PriceFeedError, PriceFeedInterface
from .networker import Networker
from .price_history import PriceHistoryFeed
from .trader_made import PriceFeedUpdateError, TraderMadePriceFeed

__all__ = [
    "Networker",
    "PriceFeedError",
    "PriceFeedInterface",
    "PriceFeedUpdateError",
    "PriceHistoryFeed",
    "TraderMadePriceFeed",
]
