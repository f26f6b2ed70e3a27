"""
Balance snapshots for monitored wallets.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, Optional

from ..position_manager.fixed_point import FixedPoint
from ..position_manager.tokens import ExpandedToken
from ..position_manager.types import Address


@dataclass(frozen=True)
class BalanceSnapshot:
    collateral: FixedPoint
    synthetic: FixedPoint
    ether: Optional[FixedPoint]


class TokenBalanceClient:
    """
    Reads collateral, synthetic and native-currency balances of a set of
    addresses. Balances only change on update(), so every check in one
    polling round sees the same numbers.

    The native (gas) currency is optional; without it ether balances read
    as None and ether checks are skipped.
    """

    def __init__(
        self,
        collateral_token: ExpandedToken,
        synthetic_token: ExpandedToken,
        native_token: Optional[ExpandedToken] = None,
        addresses: Optional[Iterable[Address]] = None,
    ):
        self.collateral_token = collateral_token
        self.synthetic_token = synthetic_token
        self.native_token = native_token
        self._addresses: set = set(addresses or [])
        self._snapshots: Dict[Address, BalanceSnapshot] = {}

    def add_address(self, address: Address) -> None:
        self._addresses.add(address)

    def update(self) -> None:
        """Re-read every monitored balance."""
        self._snapshots = {
            address: BalanceSnapshot(
                collateral=self.collateral_token.balance_of(address),
                synthetic=self.synthetic_token.balance_of(address),
                ether=self.native_token.balance_of(address) if self.native_token else None,
            )
            for address in self._addresses
        }

    def get_collateral_balance(self, address: Address) -> Optional[FixedPoint]:
        snapshot = self._snapshots.get(address)
        return snapshot.collateral if snapshot else None

    def get_synthetic_balance(self, address: Address) -> Optional[FixedPoint]:
        snapshot = self._snapshots.get(address)
        return snapshot.synthetic if snapshot else None

    def get_ether_balance(self, address: Address) -> Optional[FixedPoint]:
        snapshot = self._snapshots.get(address)
        return snapshot.ether if snapshot else None
