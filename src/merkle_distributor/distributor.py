"""
Merkle reward distributor.

The owner seeds reward windows: each window holds a merkle root over
(account, amount, account_index) leaves, the reward token and the amount
deposited for it. Anyone may then claim on an account's behalf by supplying
the leaf data and its proof; the reward always goes to the account.

Claims are tracked per window in a bitmap keyed by account_index, so each
leaf pays out at most once. A claim batch is all-or-nothing: a failed
claim or reward transfer leaves bitmaps, window balances and token balances
as they were.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from ..position_manager.events import Event, EventLog
from ..position_manager.fixed_point import FixedPoint
from ..position_manager.guard import OperationGuard, non_reentrant
from ..position_manager.tokens import ExpandedToken, TokenError, TransferBatch
from ..position_manager.types import Address
from ..utils.logger import SynthLogger, get_logger
from . import events as ev
from .merkle_tree import MerkleTree, create_leaf

DISTRIBUTOR_ADDRESS = "merkle-distributor"
BITMAP_WORD_BITS = 256


# ─────────────────────────────────────────────────────────────────────────────
# Errors
# ─────────────────────────────────────────────────────────────────────────────

class MerkleDistributorError(Exception):
    """Base class for rejected distributor calls."""
    pass


class NotOwner(MerkleDistributorError):
    pass


class InvalidWindow(MerkleDistributorError):
    pass


class AlreadyClaimed(MerkleDistributorError):
    pass


class InvalidProof(MerkleDistributorError):
    pass


class InsufficientWindowRewards(MerkleDistributorError):
    pass


class RewardTransferFailed(MerkleDistributorError):
    pass


# ─────────────────────────────────────────────────────────────────────────────
# Types
# ─────────────────────────────────────────────────────────────────────────────

@dataclass
class Window:
    merkle_root: str
    remaining_amount: FixedPoint
    reward_token: ExpandedToken
    ipfs_hash: str = ""


@dataclass(frozen=True)
class Claim:
    window_index: int
    account: Address
    account_index: int
    amount: FixedPoint
    merkle_proof: List[str] = field(default_factory=list)


class MerkleDistributor:
    """
    Usage:
        distributor = MerkleDistributor(owner="owner")
        index = distributor.set_window("owner", fp(600), reward_token, tree.get_root())
        distributor.claim(Claim(index, "alice", 0, fp(100), tree.get_proof(leaf)))
    """

    def __init__(
        self,
        owner: Address,
        address: Address = DISTRIBUTOR_ADDRESS,
        logger: Optional[SynthLogger] = None,
    ):
        self.owner = owner
        self.address = address
        self.logger = logger or get_logger()
        self._windows: Dict[int, Window] = {}
        self._claimed: Dict[int, Dict[int, int]] = {}
        self._next_created_index = 0
        self._events = EventLog()
        self._guard = OperationGuard()

    # ─────────────────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def events(self) -> EventLog:
        return self._events

    @property
    def next_created_index(self) -> int:
        """Index the next window will get (the number of windows ever created)."""
        return self._next_created_index

    def get_window(self, window_index: int) -> Optional[Window]:
        return self._windows.get(window_index)

    def is_claimed(self, window_index: int, account_index: int) -> bool:
        word, bit = divmod(account_index, BITMAP_WORD_BITS)
        return bool(self._claimed.get(window_index, {}).get(word, 0) >> bit & 1)

    def verify_claim(self, claim: Claim) -> bool:
        """True when the claim's leaf and proof match the window's root."""
        window = self._windows.get(claim.window_index)
        if window is None:
            return False
        leaf = create_leaf(claim.account, claim.amount, claim.account_index)
        return MerkleTree.verify_proof(claim.merkle_proof, window.merkle_root, leaf)

    # ─────────────────────────────────────────────────────────────────────────
    # Owner operations
    # ─────────────────────────────────────────────────────────────────────────

    @non_reentrant
    def set_window(
        self,
        caller: Address,
        rewards_to_deposit: FixedPoint,
        reward_token: ExpandedToken,
        merkle_root: str,
        ipfs_hash: str = "",
    ) -> int:
        """
        Create the next window and pull its rewards from the owner.

        Returns:
            The new window's index

        Raises:
            NotOwner, RewardTransferFailed
        """
        self._require_owner(caller)
        try:
            reward_token.transfer_from(caller, self.address, rewards_to_deposit)
        except TokenError as e:
            raise RewardTransferFailed(f"depositing {rewards_to_deposit} {reward_token.symbol}: {e}") from e

        window_index = self._next_created_index
        self._next_created_index += 1
        self._windows[window_index] = Window(merkle_root, rewards_to_deposit, reward_token, ipfs_hash)

        self._publish([ev.CreatedWindow(window_index, rewards_to_deposit, reward_token.symbol, caller)])
        self.logger.info(
            f"MerkleDistributor window {window_index} created | rewards={rewards_to_deposit} "
            f"{reward_token.symbol} | root={merkle_root}"
        )
        return window_index

    @non_reentrant
    def delete_window(self, caller: Address, window_index: int) -> None:
        """Remove a window; its remaining rewards stay in the distributor."""
        self._require_owner(caller)
        self._windows.pop(window_index, None)
        self._publish([ev.DeleteWindow(window_index, caller)])
        self.logger.info(f"MerkleDistributor window {window_index} deleted")

    @non_reentrant
    def withdraw_rewards(self, caller: Address, reward_token: ExpandedToken, amount: FixedPoint) -> None:
        """
        Send reward tokens held by the distributor back to the owner.

        Raises:
            NotOwner, RewardTransferFailed
        """
        self._require_owner(caller)
        try:
            reward_token.transfer(self.address, caller, amount)
        except TokenError as e:
            raise RewardTransferFailed(f"withdrawing {amount} {reward_token.symbol}: {e}") from e
        self._publish([ev.WithdrawRewards(caller, amount, reward_token.symbol)])
        self.logger.warning(f"MerkleDistributor rewards withdrawn | amount={amount} {reward_token.symbol}")

    # ─────────────────────────────────────────────────────────────────────────
    # Claims
    # ─────────────────────────────────────────────────────────────────────────

    @non_reentrant
    def claim(self, claim: Claim, caller: Optional[Address] = None) -> None:
        """
        Pay one claim to its account.

        Raises:
            InvalidWindow, AlreadyClaimed, InvalidProof,
            InsufficientWindowRewards, RewardTransferFailed
        """
        self._claim_all([claim], caller or claim.account)

    @non_reentrant
    def claim_multi(
        self,
        claims: Iterable[Claim],
        accounts_to_pay: Iterable[Address],
        reward_tokens: Iterable[ExpandedToken],
        caller: Optional[Address] = None,
    ) -> int:
        """
        Pay every claim whose account is in accounts_to_pay and whose
        window pays out in one of reward_tokens; other claims are skipped.

        Returns:
            Number of claims paid

        Raises:
            Any claim error (nothing is paid when one selected claim fails)
        """
        accounts = set(accounts_to_pay)
        symbols = {token.symbol for token in reward_tokens}
        selected = []
        for claim in claims:
            if claim.account not in accounts:
                continue
            window = self._windows.get(claim.window_index)
            if window is not None and window.reward_token.symbol not in symbols:
                continue
            selected.append(claim)
        self._claim_all(selected, caller or self.owner)
        return len(selected)

    def _claim_all(self, claims: List[Claim], caller: Address) -> None:
        saved_claimed = {index: dict(words) for index, words in self._claimed.items()}
        saved_remaining = {index: window.remaining_amount for index, window in self._windows.items()}

        batch = TransferBatch()
        staged: List[Event] = []
        try:
            for claim in claims:
                window = self._verify_and_mark_claimed(claim)
                batch.transfer(window.reward_token, self.address, claim.account, claim.amount)
                staged.append(ev.Claimed(
                    caller, claim.window_index, claim.account, claim.account_index,
                    claim.amount, window.reward_token.symbol,
                ))
        except MerkleDistributorError:
            self._restore(saved_claimed, saved_remaining)
            raise

        try:
            result = batch.apply()
        except Exception:
            self._restore(saved_claimed, saved_remaining)
            raise
        if not result.ok:
            self._restore(saved_claimed, saved_remaining)
            raise RewardTransferFailed(f"reward transfer failed: {result.reason}") from result.error

        self._publish(staged)
        for event in staged:
            self.logger.info(
                f"MerkleDistributor claim paid | window={event.window_index} | account={event.account} | "
                f"amount={event.amount} {event.reward_token}"
            )

    def _verify_and_mark_claimed(self, claim: Claim) -> Window:
        window = self._windows.get(claim.window_index)
        if window is None:
            raise InvalidWindow(f"window {claim.window_index} does not exist")
        if self.is_claimed(claim.window_index, claim.account_index):
            raise AlreadyClaimed(
                f"account index {claim.account_index} already claimed in window {claim.window_index}"
            )
        if not self.verify_claim(claim):
            raise InvalidProof(f"incorrect merkle proof for {claim.account} in window {claim.window_index}")
        if claim.amount > window.remaining_amount:
            raise InsufficientWindowRewards(
                f"claim of {claim.amount} exceeds the {window.remaining_amount} left in window {claim.window_index}"
            )

        word, bit = divmod(claim.account_index, BITMAP_WORD_BITS)
        words = self._claimed.setdefault(claim.window_index, {})
        words[word] = words.get(word, 0) | (1 << bit)
        window.remaining_amount = window.remaining_amount - claim.amount
        return window

    def _restore(self, claimed: Dict[int, Dict[int, int]], remaining: Dict[int, FixedPoint]) -> None:
        self._claimed = claimed
        for index, amount in remaining.items():
            self._windows[index].remaining_amount = amount

    def _publish(self, events: List[Event]) -> None:
        for event, exc in self._events.append_all(events):
            self.logger.error(f"MerkleDistributor subscriber failed on {event.name}: {type(exc).__name__}: {exc}")

    def _require_owner(self, caller: Address) -> None:
        if caller != self.owner:
            raise NotOwner(f"{caller} is not the distributor owner")
