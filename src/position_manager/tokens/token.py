"""
In-memory ERC-20 style token with minter and burner roles.

Used for both the collateral currency and the synthetic token. Transfers are
fallible external effects: they raise TokenError on insufficient balance,
blocked accounts, missing roles, or when a registered hook raises.

Hooks run BEFORE balances move, so a failing hook leaves the token untouched.
They are the point where control leaves the manager (a hook may call back
into it).
"""

from typing import Callable, Dict, Optional, Set

from ...config.constants import DEFAULT_SYNTHETIC_DECIMALS
from ..fixed_point import FixedPoint, ZERO
from ..types import Address

TransferHook = Callable[[Address, Address, FixedPoint], None]


class TokenError(Exception):
    """Token-level failure (balance, role, blocked account)."""


class ExpandedToken:
    """
    Mintable / burnable token.

    Roles:
    - owner: may grant minter and burner roles
    - minters: may mint to any account
    - burners: may burn their own balance
    """

    def __init__(
        self,
        name: str,
        symbol: str,
        decimals: int = DEFAULT_SYNTHETIC_DECIMALS,
        owner: Optional[Address] = None,
    ):
        self.name = name
        self.symbol = symbol
        self.decimals = decimals
        self.owner = owner
        self._balances: Dict[Address, FixedPoint] = {}
        self._total_supply = ZERO
        self._minters: Set[Address] = set()
        self._burners: Set[Address] = set()
        self.blocked: Set[Address] = set()
        self.on_transfer: Optional[TransferHook] = None
        self.on_mint: Optional[TransferHook] = None

    def __repr__(self) -> str:
        return f"ExpandedToken({self.symbol}, supply={self._total_supply})"

    # ─────────────────────────────────────────────────────────────────────────
    # Views
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def total_supply(self) -> FixedPoint:
        return self._total_supply

    def balance_of(self, account: Address) -> FixedPoint:
        return self._balances.get(account, ZERO)

    def is_minter(self, account: Address) -> bool:
        return account in self._minters

    def is_burner(self, account: Address) -> bool:
        return account in self._burners

    # ─────────────────────────────────────────────────────────────────────────
    # Roles
    # ─────────────────────────────────────────────────────────────────────────

    def add_minter(self, account: Address, caller: Optional[Address] = None) -> None:
        self._require_owner(caller)
        self._minters.add(account)

    def add_burner(self, account: Address, caller: Optional[Address] = None) -> None:
        self._require_owner(caller)
        self._burners.add(account)

    def _require_owner(self, caller: Optional[Address]) -> None:
        if self.owner is not None and caller != self.owner:
            raise TokenError(f"{caller} is not the owner of {self.symbol}")

    # ─────────────────────────────────────────────────────────────────────────
    # Effects
    # ─────────────────────────────────────────────────────────────────────────

    def transfer(self, sender: Address, recipient: Address, amount: FixedPoint) -> bool:
        """
        Move amount from sender to recipient.

        Raises:
            TokenError: Insufficient balance or blocked account
        """
        self._check_transfer(sender, recipient, amount)
        if self.on_transfer is not None:
            self.on_transfer(sender, recipient, amount)
        self._move(sender, recipient, amount)
        return True

    def transfer_from(self, owner: Address, recipient: Address, amount: FixedPoint) -> bool:
        """Pull amount from owner to recipient (no allowance bookkeeping)."""
        return self.transfer(owner, recipient, amount)

    def mint(self, minter: Address, recipient: Address, amount: FixedPoint) -> bool:
        """
        Mint new tokens.

        Returns:
            True when minted

        Raises:
            TokenError: minter lacks the minter role or recipient is blocked
        """
        if minter not in self._minters:
            raise TokenError(f"{minter} is not a minter of {self.symbol}")
        if recipient in self.blocked:
            raise TokenError(f"{recipient} is blocked for {self.symbol}")
        if self.on_mint is not None:
            self.on_mint(minter, recipient, amount)
        self._credit(recipient, amount)
        self._total_supply = self._total_supply.add(amount)
        return True

    def burn(self, burner: Address, amount: FixedPoint) -> None:
        """Burn amount from the burner's own balance."""
        if burner not in self._burners:
            raise TokenError(f"{burner} is not a burner of {self.symbol}")
        self._debit(burner, amount)
        self._total_supply = self._total_supply.sub(amount)

    # ─────────────────────────────────────────────────────────────────────────
    # Compensation (effect boundary only; no hooks, no blocks)
    # ─────────────────────────────────────────────────────────────────────────

    def rollback_transfer(self, sender: Address, recipient: Address, amount: FixedPoint) -> None:
        self._move(recipient, sender, amount)

    def rollback_mint(self, recipient: Address, amount: FixedPoint) -> None:
        self._debit(recipient, amount)
        self._total_supply = self._total_supply.sub(amount)

    def rollback_burn(self, burner: Address, amount: FixedPoint) -> None:
        self._credit(burner, amount)
        self._total_supply = self._total_supply.add(amount)

    # ─────────────────────────────────────────────────────────────────────────
    # Internals
    # ─────────────────────────────────────────────────────────────────────────

    def _check_transfer(self, sender: Address, recipient: Address, amount: FixedPoint) -> None:
        for account in (sender, recipient):
            if account in self.blocked:
                raise TokenError(f"{account} is blocked for {self.symbol}")
        balance = self.balance_of(sender)
        if balance.is_less_than(amount):
            raise TokenError(
                f"{sender} has {balance} {self.symbol}, cannot transfer {amount}"
            )

    def _move(self, sender: Address, recipient: Address, amount: FixedPoint) -> None:
        self._debit(sender, amount)
        self._credit(recipient, amount)

    def _credit(self, account: Address, amount: FixedPoint) -> None:
        self._balances[account] = self.balance_of(account).add(amount)

    def _debit(self, account: Address, amount: FixedPoint) -> None:
        balance = self.balance_of(account)
        if balance.is_less_than(amount):
            raise TokenError(f"{account} has {balance} {self.symbol}, cannot debit {amount}")
        self._balances[account] = balance.sub(amount)
