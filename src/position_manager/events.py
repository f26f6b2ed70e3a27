"""
Events emitted by the position manager.

Event names and fields are the contract consumed by the off-chain monitors
and reporters; they must not be renamed or reshaped. All collateral amounts
are fee-adjusted.

Events are staged during an operation and appended to the EventLog only when
the operation commits. Subscribers are notified after the append, outside the
manager's critical section bookkeeping.
"""

from dataclasses import dataclass, fields
from typing import Any, Callable, Dict, List, Optional, Tuple, Type, TypeVar

from .fixed_point import FixedPoint
from .types import Address


@dataclass(frozen=True)
class Event:
    """Base event. ``name`` is the wire name used by consumers."""

    @property
    def name(self) -> str:
        return type(self).__name__

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"event": self.name}
        for f in fields(self):
            value = getattr(self, f.name)
            out[f.name] = str(value) if isinstance(value, FixedPoint) else value
        return out


# ─────────────────────────────────────────────────────────────────────────────
# Sponsor lifecycle
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class NewSponsor(Event):
    sponsor: Address


@dataclass(frozen=True)
class EndedSponsorPosition(Event):
    sponsor: Address


@dataclass(frozen=True)
class PositionCreated(Event):
    """Tokens minted against collateral."""
    sponsor: Address
    collateral_amount: FixedPoint
    token_amount: FixedPoint


@dataclass(frozen=True)
class Deposit(Event):
    sponsor: Address
    collateral_amount: FixedPoint


@dataclass(frozen=True)
class Withdrawal(Event):
    sponsor: Address
    collateral_amount: FixedPoint


@dataclass(frozen=True)
class Redeem(Event):
    """Tokens burned in exchange for collateral."""
    sponsor: Address
    collateral_amount: FixedPoint
    token_amount: FixedPoint


# ─────────────────────────────────────────────────────────────────────────────
# Requests
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class RequestWithdrawal(Event):
    sponsor: Address
    collateral_amount: FixedPoint


@dataclass(frozen=True)
class RequestWithdrawalExecuted(Event):
    sponsor: Address
    collateral_amount: FixedPoint


@dataclass(frozen=True)
class RequestWithdrawalCanceled(Event):
    sponsor: Address
    collateral_amount: FixedPoint


@dataclass(frozen=True)
class RequestTransferPosition(Event):
    old_sponsor: Address


@dataclass(frozen=True)
class RequestTransferPositionExecuted(Event):
    old_sponsor: Address
    new_sponsor: Address


@dataclass(frozen=True)
class RequestTransferPositionCanceled(Event):
    old_sponsor: Address


# ─────────────────────────────────────────────────────────────────────────────
# Contract lifecycle
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ContractExpired(Event):
    caller: Address


@dataclass(frozen=True)
class EmergencyShutdown(Event):
    caller: Address
    original_expiration_timestamp: int
    shutdown_timestamp: int


@dataclass(frozen=True)
class SettleExpiredPosition(Event):
    caller: Address
    collateral_returned: FixedPoint
    tokens_burned: FixedPoint


@dataclass(frozen=True)
class RegularFeesPaid(Event):
    regular_fee: FixedPoint
    late_fee: FixedPoint


# ─────────────────────────────────────────────────────────────────────────────
# Event log
# ─────────────────────────────────────────────────────────────────────────────

E = TypeVar("E", bound=Event)
Subscriber = Callable[[Event], None]


class EventLog:
    """
    Append-only record of committed events.

    Consumers read by cursor (index into the log) so a monitor can pick up
    where its previous check left off.
    """

    def __init__(self):
        self._events: List[Event] = []
        self._subscribers: List[Subscriber] = []

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self):
        return iter(list(self._events))

    def subscribe(self, callback: Subscriber) -> None:
        self._subscribers.append(callback)

    def append_all(self, events: List[Event]) -> List[Tuple[Event, Exception]]:
        """
        Commit events, then notify every subscriber of each one.

        A subscriber that raises does not stop delivery to the others or
        undo the commit.

        Returns:
            (event, exception) pairs for each failed delivery
        """
        self._events.extend(events)
        failures: List[Tuple[Event, Exception]] = []
        for event in events:
            for callback in self._subscribers:
                try:
                    callback(event)
                except Exception as exc:
                    failures.append((event, exc))
        return failures

    def since(self, cursor: int) -> List[Event]:
        return self._events[cursor:]

    def of_type(self, event_type: Type[E], sponsor: Optional[Address] = None) -> List[E]:
        """
        Filter events by type and (optionally) sponsor.

        Args:
            event_type: Event class to select
            sponsor: Match against the event's sponsor/old_sponsor/caller field

        Returns:
            Matching events in emission order
        """
        matched = [e for e in self._events if isinstance(e, event_type)]
        if sponsor is None:
            return matched
        return [e for e in matched if _event_account(e) == sponsor]

    def names(self) -> List[str]:
        return [e.name for e in self._events]


def _event_account(event: Event) -> Optional[Address]:
    for attr in ("sponsor", "old_sponsor", "caller"):
        if hasattr(event, attr):
            return getattr(event, attr)
    return None
