"""
Events emitted by the merkle distributor.
"""

from dataclasses import dataclass

from ..position_manager.events import Event
from ..position_manager.fixed_point import FixedPoint
from ..position_manager.types import Address


@dataclass(frozen=True)
class CreatedWindow(Event):
    window_index: int
    rewards_deposited: FixedPoint
    reward_token: str
    owner: Address


@dataclass(frozen=True)
class Claimed(Event):
    caller: Address
    window_index: int
    account: Address
    account_index: int
    amount: FixedPoint
    reward_token: str


@dataclass(frozen=True)
class DeleteWindow(Event):
    window_index: int
    owner: Address


@dataclass(frozen=True)
class WithdrawRewards(Event):
    owner: Address
    amount: FixedPoint
    reward_token: str
