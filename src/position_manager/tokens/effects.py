"""
External token effect boundary.

An operation stages its token effects in a TransferBatch while it mutates the
ledger, then applies the batch as its very last step:

  checks → ledger mutations → batch.apply()

apply() runs effects in staging order. If one fails, every effect already
applied is compensated in reverse order and an EffectResult describing the
failure is returned; the caller rolls back its own ledger state. Failures are
reported as values, not raised.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from ..fixed_point import FixedPoint
from ..types import Address
from .token import ExpandedToken, TokenError


class EffectKind(str, Enum):
    TRANSFER_FROM = "transfer_from"
    TRANSFER = "transfer"
    MINT = "mint"
    BURN = "burn"


@dataclass(frozen=True)
class TokenEffect:
    """One staged token movement."""
    kind: EffectKind
    token: ExpandedToken
    sender: Address
    recipient: Address
    amount: FixedPoint

    def describe(self) -> str:
        return (
            f"{self.kind.value} {self.amount} {self.token.symbol} "
            f"{self.sender} -> {self.recipient}"
        )


@dataclass
class EffectResult:
    """
    Outcome of applying a batch.

    ok: all effects applied
    applied: number of effects applied (before compensation on failure)
    failed_effect: the effect that failed
    error: the exception raised while applying the effect (token, hook or re-entrant call)
    """
    ok: bool = True
    applied: int = 0
    failed_effect: Optional[TokenEffect] = None
    error: Optional[Exception] = None

    @property
    def reason(self) -> str:
        if self.ok:
            return ""
        return f"{self.failed_effect.describe()}: {self.error}"


@dataclass
class TransferBatch:
    """Ordered token effects staged by one operation."""
    effects: List[TokenEffect] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.effects)

    def transfer_from(self, token: ExpandedToken, owner: Address, recipient: Address, amount: FixedPoint) -> None:
        self.effects.append(TokenEffect(EffectKind.TRANSFER_FROM, token, owner, recipient, amount))

    def transfer(self, token: ExpandedToken, sender: Address, recipient: Address, amount: FixedPoint) -> None:
        self.effects.append(TokenEffect(EffectKind.TRANSFER, token, sender, recipient, amount))

    def mint(self, token: ExpandedToken, minter: Address, recipient: Address, amount: FixedPoint) -> None:
        self.effects.append(TokenEffect(EffectKind.MINT, token, minter, recipient, amount))

    def burn(self, token: ExpandedToken, burner: Address, amount: FixedPoint) -> None:
        self.effects.append(TokenEffect(EffectKind.BURN, token, burner, burner, amount))

    def apply(self) -> EffectResult:
        """
        Apply all effects, compensating on the first failure.

        Returns:
            EffectResult (ok=False carries the failed effect and its error)
        """
        applied: List[TokenEffect] = []
        for effect in self.effects:
            try:
                succeeded = _apply_one(effect)
            except Exception as exc:
                _compensate(applied)
                return EffectResult(ok=False, applied=len(applied), failed_effect=effect, error=exc)
            if not succeeded:
                _compensate(applied)
                return EffectResult(
                    ok=False,
                    applied=len(applied),
                    failed_effect=effect,
                    error=TokenError(f"{effect.kind.value} returned false"),
                )
            applied.append(effect)
        return EffectResult(ok=True, applied=len(applied))


def _apply_one(effect: TokenEffect) -> bool:
    token = effect.token
    if effect.kind == EffectKind.TRANSFER_FROM:
        return token.transfer_from(effect.sender, effect.recipient, effect.amount)
    if effect.kind == EffectKind.TRANSFER:
        return token.transfer(effect.sender, effect.recipient, effect.amount)
    if effect.kind == EffectKind.MINT:
        return token.mint(effect.sender, effect.recipient, effect.amount)
    token.burn(effect.sender, effect.amount)
    return True


def _compensate(applied: List[TokenEffect]) -> None:
    for effect in reversed(applied):
        token = effect.token
        if effect.kind == EffectKind.MINT:
            token.rollback_mint(effect.recipient, effect.amount)
        elif effect.kind == EffectKind.BURN:
            token.rollback_burn(effect.sender, effect.amount)
        else:
            token.rollback_transfer(effect.sender, effect.recipient, effect.amount)
