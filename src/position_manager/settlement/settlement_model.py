"""
Settlement price consumer.

On expiry or emergency shutdown the manager requests a price for the
expiration timestamp; the first settlement after the oracle resolves reads
it once and keeps it. Negative prices clamp to zero.

Settlement payout for a caller holding `tokens` and (optionally) a sponsor
position with `collateral` and `debt`:

  payout = tokens × price + max(collateral − debt × price, 0)
"""

from dataclasses import dataclass
from typing import Optional

from ..errors import UnresolvedOraclePrice
from ..fixed_point import FixedPoint, ZERO
from .oracle import OracleInterface


@dataclass(frozen=True)
class SettlementPayout:
    """Collateral owed to a settling caller."""
    token_value: FixedPoint
    position_value: FixedPoint

    @property
    def total(self) -> FixedPoint:
        return self.token_value.add(self.position_value)

    def to_dict(self) -> dict:
        return {
            "token_value": str(self.token_value),
            "position_value": str(self.position_value),
            "total": str(self.total),
        }


class SettlementModel:
    """Requests, resolves and caches the settlement price."""

    def __init__(self, oracle: OracleInterface, price_identifier: str):
        self._oracle = oracle
        self._identifier = price_identifier
        self._settlement_price: Optional[FixedPoint] = None

    @property
    def price_identifier(self) -> str:
        return self._identifier

    @property
    def settlement_price(self) -> Optional[FixedPoint]:
        return self._settlement_price

    def request(self, timestamp: int) -> None:
        self._oracle.request_price(self._identifier, timestamp)

    def resolve(self, timestamp: int) -> FixedPoint:
        """
        Read the oracle price once and cache it.

        Args:
            timestamp: Expiration timestamp the price was requested for

        Returns:
            Settlement price (never negative)

        Raises:
            UnresolvedOraclePrice: Oracle has not resolved the price yet
        """
        if self._settlement_price is not None:
            return self._settlement_price
        if not self._oracle.has_price(self._identifier, timestamp):
            raise UnresolvedOraclePrice(
                f"oracle has not resolved {self._identifier} at {timestamp}"
            )
        raw = self._oracle.get_price(self._identifier, timestamp)
        self._settlement_price = FixedPoint.from_raw(max(raw, 0))
        return self._settlement_price

    def restore(self, settlement_price: Optional[FixedPoint]) -> None:
        self._settlement_price = settlement_price

    @staticmethod
    def payout(
        price: FixedPoint,
        tokens_held: FixedPoint,
        collateral: FixedPoint = ZERO,
        debt: FixedPoint = ZERO,
    ) -> SettlementPayout:
        """
        Collateral owed for tokens held plus any sponsor excess.

        Args:
            price: Settlement price
            tokens_held: Synthetic tokens the caller surrenders
            collateral: Fee-adjusted collateral of the caller's position
            debt: Tokens outstanding of the caller's position

        Returns:
            SettlementPayout
        """
        token_value = tokens_held.mul(price)
        debt_value = debt.mul(price)
        position_value = ZERO
        if collateral.is_greater_than(debt_value):
            position_value = collateral.sub(debt_value)
        return SettlementPayout(token_value=token_value, position_value=position_value)
