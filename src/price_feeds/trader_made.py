"""
TraderMade forex price feed.

Pulls three things from the TraderMade market data API:
- the live ask quote (current price)
- a minute OHLC timeseries covering minute_lookback seconds
- an hourly OHLC timeseries covering hourly_lookback seconds

The minute series is the primary source for historical lookups. TraderMade
publishes no timeseries data over the weekend, so when the minute request
fails the hourly series (with its much longer lookback) is used instead and
still holds the last weekday close.

Timeseries are held as DataFrames with columns:
    open_time   int  unix seconds, close_time - period
    close_time  int  unix seconds, the quote's "date"
    close       FixedPoint
ordered oldest first.
"""

import time as _time
from decimal import ROUND_DOWN, Decimal
from typing import Any, Callable, List, Optional
from urllib.parse import urlencode

import pandas as pd

from ..config.config import PriceFeedConfig
from ..config.constants import SECONDS_PER_HOUR, SECONDS_PER_MINUTE
from ..position_manager.errors import FixedPointError
from ..position_manager.fixed_point import FixedPoint
from ..utils.helpers import safe_decimal
from ..utils.logger import SynthLogger, get_logger
from .interface import PriceFeedError, PriceFeedInterface
from .networker import Networker

PRICE_COLUMNS = ["open_time", "close_time", "close"]

_EPOCH = pd.Timestamp("1970-01-01", tz="UTC")


def _empty_prices() -> pd.DataFrame:
    return pd.DataFrame(columns=PRICE_COLUMNS)


class PriceFeedUpdateError(PriceFeedError):
    """Both the minute series and its hourly fallback failed."""

    def __init__(self, errors: List[Exception]):
        self.errors = errors
        super().__init__("; ".join(str(e) for e in errors))


class TraderMadePriceFeed(PriceFeedInterface):
    """
    Price feed backed by the TraderMade live and timeseries endpoints.

    Usage:
        feed = TraderMadePriceFeed(Networker(), config=PriceFeedConfig(api_key="...", pair="EURUSD"))
        feed.update()
        feed.get_current_price()
        feed.get_historical_price(1611624000)
    """

    BASE_URL = "https://marketdata.tradermade.com/api/v1"

    def __init__(
        self,
        networker: Networker,
        get_time: Optional[Callable[[], int]] = None,
        config: Optional[PriceFeedConfig] = None,
        logger: Optional[SynthLogger] = None,
    ):
        """
        Args:
            networker: Issues the HTTP requests
            get_time: Clock in unix seconds (wall clock if None)
            config: Pair, API key, lookbacks, OHLC period and throttling
            logger: Logger (global logger if None)
        """
        self._config = config or PriceFeedConfig()
        self.networker = networker
        self.get_time = get_time or (lambda: int(_time.time()))
        self.logger = logger or get_logger()

        self.pair = self._config.pair
        self.uuid = f"TraderMade-{self.pair}"

        self._current_price: Optional[FixedPoint] = None
        self._last_update_time: Optional[int] = None
        self._minute_prices = _empty_prices()
        self._hourly_prices = _empty_prices()

    # ─────────────────────────────────────────────────────────────────────────
    # Accessors
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def minute_lookback(self) -> int:
        return self._config.minute_lookback

    @property
    def hourly_lookback(self) -> int:
        return self._config.hourly_lookback

    @property
    def ohlc_period(self) -> int:
        return self._config.ohlc_period

    @property
    def price_feed_decimals(self) -> int:
        return self._config.price_feed_decimals

    @property
    def minute_prices(self) -> pd.DataFrame:
        return self._minute_prices

    @property
    def hourly_prices(self) -> pd.DataFrame:
        return self._hourly_prices

    def get_current_price(self) -> Optional[FixedPoint]:
        return self._current_price

    def get_last_update_time(self) -> Optional[int]:
        return self._last_update_time

    def get_historical_price_periods(self) -> pd.DataFrame:
        """Hourly OHLC periods, oldest first."""
        return self._hourly_prices

    def get_historical_price(self, time: int) -> Optional[FixedPoint]:
        """
        Close price of the first period whose close time is after `time`.

        Uses the minute series when it holds data, the hourly series
        otherwise. A time past the last period resolves to the current price.

        Raises:
            PriceFeedError: Never updated, no data, or time before the window
        """
        if self._last_update_time is None:
            raise PriceFeedError(f"{self.uuid}: undefined last update time")

        prices = self._minute_prices if not self._minute_prices.empty else self._hourly_prices
        valid = prices[prices["open_time"] > 0]
        if valid.empty:
            raise PriceFeedError(f"{self.uuid}: no valid price time")

        first_open_time = int(valid["open_time"].iloc[0])
        if time < first_open_time:
            raise PriceFeedError(f"{self.uuid}: time {time} is before the first open time {first_open_time}")

        later = prices[prices["close_time"] > time]
        if later.empty:
            return self._current_price
        return later["close"].iloc[0]

    # ─────────────────────────────────────────────────────────────────────────
    # Updates
    # ─────────────────────────────────────────────────────────────────────────

    def update(self) -> None:
        """
        Refresh the live price and the timeseries.

        No-op when the previous update was less than
        min_time_between_updates seconds ago.

        Raises:
            PriceFeedError: The live quote or the minute series failed
                (with no hourly fallback configured)
            PriceFeedUpdateError: Minute series and hourly fallback both failed
        """
        current_time = self.get_time()
        last_update_time = self._last_update_time
        if last_update_time is not None and last_update_time + self._config.min_time_between_updates > current_time:
            self.logger.debug(
                f"{self.uuid} update skipped: last update {last_update_time}, "
                f"{last_update_time + self._config.min_time_between_updates - current_time}s remaining"
            )
            return

        self.update_latest(current_time)

        if self.minute_lookback:
            try:
                self.update_minute(current_time)
            except PriceFeedError as minute_error:
                self._minute_prices = _empty_prices()
                if not self.hourly_lookback:
                    raise
                self.logger.debug(f"{self.uuid} minute update failed, falling back to hourly")
                try:
                    self.update_hourly(current_time)
                except PriceFeedError as hourly_error:
                    self.logger.debug(f"{self.uuid} hourly fallback also failed")
                    raise PriceFeedUpdateError([minute_error, hourly_error]) from hourly_error

        if self._hourly_prices.empty and self.hourly_lookback:
            self.update_hourly(current_time)

    def update_latest(self, current_time: int) -> None:
        """Fetch the live ask quote."""
        self.logger.debug(f"{self.uuid} updating latest price at {current_time}")
        response = self.networker.get_json(self._url("live"))
        try:
            ask = response["quotes"][0]["ask"]
        except (KeyError, IndexError, TypeError) as e:
            raise PriceFeedError(f"{self.uuid}: could not parse live price result") from e

        self._current_price = self._to_price(ask)
        self._last_update_time = current_time

    def update_minute(self, current_time: int) -> None:
        """Fetch the minute OHLC series, floored to the OHLC period."""
        self.logger.debug(f"{self.uuid} updating minute prices at {current_time}")
        period = self.ohlc_period * SECONDS_PER_MINUTE
        earliest = (current_time - self.minute_lookback) // period * period
        url = self._url(
            "timeseries",
            start_date=_to_datetime_param(earliest),
            end_date=_to_datetime_param(current_time),
            format="records",
            interval="minute",
            period=self.ohlc_period,
        )
        self._minute_prices = self._parse_ohlc(self.networker.get_json(url), period, "minute")

    def update_hourly(self, current_time: int) -> None:
        """Fetch the hourly OHLC series, floored to the hour."""
        self.logger.debug(f"{self.uuid} updating hourly prices at {current_time}")
        earliest = (current_time - self.hourly_lookback) // SECONDS_PER_HOUR * SECONDS_PER_HOUR
        url = self._url(
            "timeseries",
            start_date=_to_datetime_param(earliest),
            end_date=_to_datetime_param(current_time),
            format="records",
            interval="hourly",
        )
        self._hourly_prices = self._parse_ohlc(self.networker.get_json(url), SECONDS_PER_HOUR, "hourly")

    # ─────────────────────────────────────────────────────────────────────────
    # Parsing
    # ─────────────────────────────────────────────────────────────────────────

    def _url(self, endpoint: str, **params: Any) -> str:
        query = {"currency": self.pair, "api_key": self._config.api_key}
        query.update(params)
        return f"{self.BASE_URL}/{endpoint}?{urlencode(query, safe=':-')}"

    def _parse_ohlc(self, response: Any, period_seconds: int, interval: str) -> pd.DataFrame:
        quotes = response.get("quotes") if isinstance(response, dict) else None
        if not quotes or not quotes[0].get("close"):
            raise PriceFeedError(f"{self.uuid}: could not parse ohlc {interval} price result")

        frame = pd.DataFrame(quotes)
        close_time = _to_unix_seconds(frame["date"])
        prices = pd.DataFrame({
            "open_time": close_time - period_seconds,
            "close_time": close_time,
            "close": [self._to_price(value) for value in frame["close"]],
        })
        return prices.sort_values("open_time", kind="stable").reset_index(drop=True)

    def _to_price(self, value: Any) -> FixedPoint:
        price = safe_decimal(value)
        if price is None:
            raise PriceFeedError(f"{self.uuid}: missing price value {value!r}")
        quantum = Decimal(1).scaleb(-self.price_feed_decimals)
        try:
            return FixedPoint.from_unscaled(price.quantize(quantum, rounding=ROUND_DOWN))
        except FixedPointError as e:
            raise PriceFeedError(f"{self.uuid}: invalid price {value!r}") from e


def _to_datetime_param(timestamp: int) -> str:
    """Unix seconds to TraderMade's YYYY-MM-DD-HH:MM (UTC)."""
    return pd.Timestamp(timestamp, unit="s", tz="UTC").strftime("%Y-%m-%d-%H:%M")


def _to_unix_seconds(dates: pd.Series) -> pd.Series:
    """TraderMade "YYYY-MM-DD HH:MM:SS" quote dates (UTC) to unix seconds."""
    parsed = pd.to_datetime(dates, utc=True, format="%Y-%m-%d %H:%M:%S")
    return ((parsed - _EPOCH) // pd.Timedelta(seconds=1)).astype("int64")
