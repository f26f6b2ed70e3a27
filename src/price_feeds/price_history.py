"""
In-memory price feed over a recorded (timestamp, price) series.

Used wherever prices come from inside the process rather than an API: the
CLI demo, the monitors' tests, and replaying a saved series.
"""

import time as _time
from typing import Callable, Iterable, Optional, Tuple

import pandas as pd

from ..position_manager.fixed_point import FixedPoint
from .interface import PriceFeedError, PriceFeedInterface


class PriceHistoryFeed(PriceFeedInterface):
    """
    Step-function feed: the price at time t is the last price recorded at
    or before t.

    Usage:
        feed = PriceHistoryFeed([(1000, fp(1)), (1060, fp("1.02"))], get_time=clock)
        feed.update()
        feed.get_historical_price(1030)  # FixedPoint(1)
    """

    def __init__(
        self,
        prices: Optional[Iterable[Tuple[int, FixedPoint]]] = None,
        get_time: Optional[Callable[[], int]] = None,
        name: str = "history",
    ):
        self.name = name
        self.get_time = get_time or (lambda: int(_time.time()))
        self._prices = pd.Series(dtype=object)
        self._last_update_time: Optional[int] = None
        for timestamp, price in prices or []:
            self.add_price(timestamp, price)

    @property
    def prices(self) -> pd.Series:
        return self._prices

    def add_price(self, timestamp: int, price: FixedPoint) -> None:
        """Record a price; a later record at the same timestamp replaces it."""
        self._prices.loc[int(timestamp)] = price
        self._prices = self._prices.sort_index()

    def update(self) -> None:
        self._last_update_time = self.get_time()

    def get_last_update_time(self) -> Optional[int]:
        return self._last_update_time

    def get_current_price(self) -> Optional[FixedPoint]:
        if self._last_update_time is None:
            return None
        seen = self._prices[self._prices.index <= self._last_update_time]
        return seen.iloc[-1] if not seen.empty else None

    def get_historical_price(self, time: int) -> Optional[FixedPoint]:
        if self._prices.empty:
            raise PriceFeedError(f"{self.name}: no prices recorded")
        first = int(self._prices.index[0])
        if time < first:
            raise PriceFeedError(f"{self.name}: time {time} is before the first price at {first}")
        return self._prices[self._prices.index <= time].iloc[-1]
