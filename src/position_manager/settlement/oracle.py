"""
Oracle collaborators.

The manager only needs three calls on an oracle:
- request_price(identifier, timestamp): fire-and-forget
- has_price(identifier, timestamp) -> bool
- get_price(identifier, timestamp) -> signed raw int (18 decimals)

Prices are signed: a reported price may be negative and is clamped by the
settlement model, not here.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Protocol, Set, Tuple

from ...config.constants import validate_identifier
from ..errors import UnresolvedOraclePrice


class OracleInterface(Protocol):
    """Price oracle consumed at expiry and emergency shutdown."""

    def request_price(self, identifier: str, timestamp: int) -> None:
        ...

    def has_price(self, identifier: str, timestamp: int) -> bool:
        ...

    def get_price(self, identifier: str, timestamp: int) -> int:
        ...


@dataclass
class IdentifierWhitelist:
    """Set of price identifiers the oracle will resolve."""
    identifiers: Set[str] = field(default_factory=set)

    @classmethod
    def of(cls, identifiers: Iterable[str]) -> "IdentifierWhitelist":
        return cls({validate_identifier(i) for i in identifiers})

    def add_supported_identifier(self, identifier: str) -> None:
        self.identifiers.add(validate_identifier(identifier))

    def remove_supported_identifier(self, identifier: str) -> None:
        self.identifiers.discard(validate_identifier(identifier))

    def is_identifier_supported(self, identifier: str) -> bool:
        return validate_identifier(identifier) in self.identifiers


class MockOracle:
    """
    In-memory oracle.

    Requests are recorded; prices are pushed explicitly (by tests or by an
    operator) and then become resolvable.
    """

    def __init__(self):
        self._requests: List[Tuple[str, int]] = []
        self._prices: Dict[Tuple[str, int], int] = {}

    @property
    def requests(self) -> List[Tuple[str, int]]:
        return list(self._requests)

    def request_price(self, identifier: str, timestamp: int) -> None:
        key = (validate_identifier(identifier), timestamp)
        if key not in self._requests:
            self._requests.append(key)

    def push_price(self, identifier: str, timestamp: int, price: int) -> None:
        """
        Resolve a price.

        Args:
            identifier: Price identifier
            timestamp: Request timestamp
            price: Signed raw price scaled by 10**18
        """
        self._prices[(validate_identifier(identifier), timestamp)] = int(price)

    def has_price(self, identifier: str, timestamp: int) -> bool:
        return (validate_identifier(identifier), timestamp) in self._prices

    def get_price(self, identifier: str, timestamp: int) -> int:
        key = (validate_identifier(identifier), timestamp)
        if key not in self._prices:
            raise UnresolvedOraclePrice(f"no price for {key[0]} at {timestamp}")
        return self._prices[key]
