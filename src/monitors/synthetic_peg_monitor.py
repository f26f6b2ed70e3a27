"""
Synthetic peg monitor.

Reports when:
1. the synthetic trades off its peg (synthetic feed vs reference feed)
2. the reference price is volatile over the volatility window
3. the synthetic price is volatile over the volatility window
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from ..config.constants import SECONDS_PER_HOUR
from ..position_manager.fixed_point import FixedPoint
from ..price_feeds import PriceFeedError, PriceFeedInterface
from ..utils.helpers import format_amount
from ..utils.logger import SynthLogger, get_logger
from .config import ContractProps, PegMonitorConfig

AT = "SyntheticPegMonitor"


@dataclass
class VolatilityData:
    """Price range over a volatility window."""
    volatility: Decimal
    latest_price: FixedPoint
    min_price: FixedPoint
    max_price: FixedPoint


class SyntheticPegMonitor:
    """
    Compares a synthetic's market price with the price it tracks.

    Usage:
        monitor = SyntheticPegMonitor(synthetic_feed, reference_feed, props)
        monitor.check_price_deviation()
        monitor.check_peg_volatility()
        monitor.check_synthetic_volatility()
    """

    def __init__(
        self,
        synthetic_feed: PriceFeedInterface,
        reference_feed: PriceFeedInterface,
        contract_props: ContractProps,
        config: Optional[PegMonitorConfig] = None,
        logger: Optional[SynthLogger] = None,
    ):
        self.synthetic_feed = synthetic_feed
        self.reference_feed = reference_feed
        self.contract_props = contract_props
        self._config = config or PegMonitorConfig()
        self.logger = logger or get_logger()

    @property
    def config(self) -> PegMonitorConfig:
        return self._config

    # ─────────────────────────────────────────────────────────────────────────
    # Checks
    # ─────────────────────────────────────────────────────────────────────────

    def check_price_deviation(self) -> None:
        """Alert when |synthetic - reference| / reference exceeds the threshold."""
        threshold = self._config.deviation_alert_threshold
        if threshold == 0:
            return

        synthetic_price = self.synthetic_feed.get_current_price()
        reference_price = self.reference_feed.get_current_price()
        if synthetic_price is None or reference_price is None:
            self.logger.alert(
                AT,
                "Unable to get price",
                synthetic_price=synthetic_price if synthetic_price is not None else "N/A",
                reference_price=reference_price if reference_price is not None else "N/A",
            )
            return

        self.logger.debug(
            f"[{AT}] Checking price deviation | synthetic={synthetic_price} | reference={reference_price}"
        )
        deviation = self.calculate_deviation_error(synthetic_price, reference_price)
        if abs(deviation) > threshold:
            self.logger.alert(
                AT,
                "Synthetic off peg alert",
                detail=(
                    f"Synthetic token {self.contract_props.synthetic_symbol} is trading at "
                    f"{format_amount(synthetic_price, 4)}. Target price is "
                    f"{format_amount(reference_price, 4)}. Error of {format_amount(deviation * 100)}%."
                ),
            )

    def check_peg_volatility(self) -> None:
        """Alert when the reference price moved more than the threshold."""
        self._check_volatility(self.reference_feed, "reference", "Peg price volatility alert", "peg")

    def check_synthetic_volatility(self) -> None:
        """Alert when the synthetic price moved more than the threshold."""
        self._check_volatility(self.synthetic_feed, "synthetic", "Synthetic price volatility alert", "synthetic")

    def _check_volatility(self, feed: PriceFeedInterface, feed_name: str, headline: str, kind: str) -> None:
        data = self.pricefeed_volatility(feed)
        if data is None:
            self.logger.alert(AT, "Unable to get volatility data", pricefeed=feed_name)
            return

        self.logger.debug(
            f"[{AT}] Checking {kind} price volatility | volatility={data.volatility} | "
            f"latest={data.latest_price} | min={data.min_price} | max={data.max_price}"
        )
        threshold = self._config.volatility_alert_threshold
        if abs(data.volatility) > threshold:
            hours = Decimal(self._config.volatility_window) / SECONDS_PER_HOUR
            self.logger.alert(
                AT,
                headline,
                detail=(
                    f"Latest updated {self.contract_props.price_identifier} price is "
                    f"{format_amount(data.latest_price, 4)}. Price moved "
                    f"{format_amount(data.volatility * 100)}% over the last {format_amount(hours)} hour(s). "
                    f"Threshold is {threshold * 100}%."
                ),
            )

    # ─────────────────────────────────────────────────────────────────────────
    # Calculations
    # ─────────────────────────────────────────────────────────────────────────

    def pricefeed_volatility(self, feed: PriceFeedInterface) -> Optional[VolatilityData]:
        """
        Volatility over the window ending at the feed's last update time.

        Counts back from the last update rather than the current time so the
        range and the latest price refer to the same instant.
        """
        latest_time = feed.get_last_update_time()
        if latest_time is None:
            return None
        latest_price = _historical_price(feed, latest_time)
        if latest_price is None or latest_price.is_zero():
            return None

        min_price = max_price = latest_price
        min_timestamp = max_timestamp = 0
        for offset in range(self._config.volatility_window):
            timestamp = latest_time - offset
            price = _historical_price(feed, timestamp)
            if price is None:
                continue
            if price < min_price:
                min_price, min_timestamp = price, timestamp
            if price > max_price:
                max_price, max_timestamp = price, timestamp

        # Scanning runs backwards in time: max seen later than min is a rise
        direction = 1 if max_timestamp < min_timestamp else -1
        if min_price.is_zero():
            return None
        return VolatilityData(
            volatility=self.calculate_deviation_error(max_price, min_price) * direction,
            latest_price=latest_price,
            min_price=min_price,
            max_price=max_price,
        )

    @staticmethod
    def calculate_deviation_error(observed: FixedPoint, expected: FixedPoint) -> Decimal:
        """
        Signed relative error (observed - expected) / expected.

        Example: observed 1.2, expected 1.0 gives 0.2.
        """
        return (observed.to_decimal() - expected.to_decimal()) / expected.to_decimal()


def _historical_price(feed: PriceFeedInterface, timestamp: int) -> Optional[FixedPoint]:
    try:
        return feed.get_historical_price(timestamp)
    except PriceFeedError:
        return None
