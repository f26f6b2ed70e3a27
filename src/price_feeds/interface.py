"""
Price feed interface.

Every feed exposes the same four calls so monitors can compare a synthetic
price against its reference price without knowing where either comes from.
Prices are FixedPoint values; a feed that has no data returns None from the
getters rather than raising, except for historical lookups outside the
window it holds.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from ..position_manager.fixed_point import FixedPoint


class PriceFeedError(Exception):
    """A feed could not produce the requested price."""
    pass


class PriceFeedInterface(ABC):
    """Base class for price feeds."""

    @abstractmethod
    def get_current_price(self) -> Optional[FixedPoint]:
        """
        Latest price seen by the feed.

        Returns:
            Price, or None if the feed has never been updated
        """
        ...

    @abstractmethod
    def get_historical_price(self, time: int) -> Optional[FixedPoint]:
        """
        Price in effect at a unix timestamp.

        Args:
            time: Unix timestamp in seconds

        Returns:
            Price at that time

        Raises:
            PriceFeedError: No data, or time precedes the feed's window
        """
        ...

    @abstractmethod
    def get_last_update_time(self) -> Optional[int]:
        """Unix timestamp of the last successful update, None before the first."""
        ...

    @abstractmethod
    def update(self) -> None:
        """Refresh the feed's data."""
        ...
