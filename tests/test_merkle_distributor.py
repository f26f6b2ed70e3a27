"""
Tests for the merkle tree and the reward distributor.

Validates that:
1. Proofs built by MerkleTree verify against its root, and only there
2. set_window pulls the deposit from the owner
3. Each leaf pays out at most once, always to its account
4. A claim batch is all-or-nothing, whatever a token hook raises
5. Owner-only calls reject everyone else
6. A subscriber that raises does not undo a paid claim
"""

import logging

import pytest

from src.position_manager import ExpandedToken, fp
from src.merkle_distributor import events as distributor_events
from src.merkle_distributor import (
    AlreadyClaimed,
    Claim,
    InsufficientWindowRewards,
    InvalidProof,
    InvalidWindow,
    MerkleDistributor,
    MerkleTree,
    NotOwner,
    RewardTransferFailed,
    create_leaf,
)

OWNER = "owner"
PAYOUTS = {"alice": (fp(100), 0), "bob": (fp(200), 1), "carol": (fp(300), 2)}


def _reward_token(symbol="uKIP"):
    token = ExpandedToken(f"{symbol} reward", symbol)
    token.add_minter("minter")
    token.mint("minter", OWNER, fp(1_000))
    return token


def _tree(payouts=PAYOUTS):
    leaves = {account: create_leaf(account, amount, index) for account, (amount, index) in payouts.items()}
    return MerkleTree(leaves.values()), leaves


def _claim(tree, leaves, account, window_index=0, payouts=PAYOUTS):
    amount, index = payouts[account]
    return Claim(window_index, account, index, amount, tree.get_proof(leaves[account]))


# ─────────────────────────────────────────────────────────────────────────────
# MerkleTree
# ─────────────────────────────────────────────────────────────────────────────

class TestMerkleTree:
    """Sorted-pair merkle tree."""

    def test_every_proof_verifies(self):
        tree, leaves = _tree()
        root = tree.get_root()
        for leaf in leaves.values():
            assert MerkleTree.verify_proof(tree.get_proof(leaf), root, leaf)

    def test_root_ignores_leaf_order_and_duplicates(self):
        tree, leaves = _tree()
        shuffled = MerkleTree(list(reversed(list(leaves.values()))) + [leaves["alice"]])
        assert shuffled.get_root() == tree.get_root()
        assert len(shuffled.leaves) == 3

    def test_wrong_leaf_fails(self):
        tree, leaves = _tree()
        forged = create_leaf("alice", fp(101), 0)
        assert not MerkleTree.verify_proof(tree.get_proof(leaves["alice"]), tree.get_root(), forged)

    def test_single_leaf_is_its_own_root(self):
        leaf = create_leaf("alice", fp(1), 0)
        tree = MerkleTree([leaf])
        assert tree.get_root() == leaf
        assert tree.get_proof(leaf) == []

    def test_empty_tree_rejected(self):
        with pytest.raises(ValueError):
            MerkleTree([])

    def test_unknown_leaf_has_no_proof(self):
        tree, _ = _tree()
        with pytest.raises(ValueError, match="does not exist"):
            tree.get_proof(create_leaf("mallory", fp(1), 9))

    def test_leaf_depends_on_every_field(self):
        base = create_leaf("alice", fp(100), 0)
        assert base != create_leaf("bob", fp(100), 0)
        assert base != create_leaf("alice", fp(100), 1)
        assert base != create_leaf("alice", fp(99), 0)
        assert base == create_leaf("alice", fp(100).raw, 0)

    def test_negative_index_rejected(self):
        with pytest.raises(ValueError):
            create_leaf("alice", fp(1), -1)


# ─────────────────────────────────────────────────────────────────────────────
# Windows
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def token():
    return _reward_token()


@pytest.fixture
def distributor():
    return MerkleDistributor(owner=OWNER)


@pytest.fixture
def seeded(distributor, token):
    tree, leaves = _tree()
    distributor.set_window(OWNER, fp(600), token, tree.get_root(), ipfs_hash="Qm-window-0")
    return distributor, tree, leaves


class TestWindows:
    """Owner window management."""

    def test_set_window_pulls_rewards(self, distributor, token):
        tree, _ = _tree()
        index = distributor.set_window(OWNER, fp(600), token, tree.get_root())

        assert index == 0
        assert distributor.next_created_index == 1
        assert token.balance_of(OWNER) == fp(400)
        assert token.balance_of(distributor.address) == fp(600)
        window = distributor.get_window(0)
        assert window.merkle_root == tree.get_root()
        assert window.remaining_amount == fp(600)
        assert distributor.events.names() == ["CreatedWindow"]

    def test_window_indices_increase(self, distributor, token):
        tree, _ = _tree()
        assert distributor.set_window(OWNER, fp(100), token, tree.get_root()) == 0
        distributor.delete_window(OWNER, 0)
        assert distributor.set_window(OWNER, fp(100), token, tree.get_root()) == 1

    def test_set_window_requires_owner(self, distributor, token):
        with pytest.raises(NotOwner):
            distributor.set_window("alice", fp(1), token, "0x00")

    def test_set_window_without_funds(self, distributor, token):
        with pytest.raises(RewardTransferFailed):
            distributor.set_window(OWNER, fp(5_000), token, "0x00")
        assert distributor.next_created_index == 0
        assert distributor.get_window(0) is None

    def test_delete_window(self, seeded, token):
        distributor, tree, leaves = seeded
        distributor.delete_window(OWNER, 0)

        assert distributor.get_window(0) is None
        assert token.balance_of(distributor.address) == fp(600)
        with pytest.raises(InvalidWindow):
            distributor.claim(_claim(tree, leaves, "alice"))

    def test_delete_missing_window_is_silent(self, distributor):
        distributor.delete_window(OWNER, 42)
        assert distributor.events.names() == ["DeleteWindow"]

    def test_delete_window_requires_owner(self, seeded):
        distributor, _, _ = seeded
        with pytest.raises(NotOwner):
            distributor.delete_window("alice", 0)

    def test_withdraw_rewards(self, seeded, token):
        distributor, _, _ = seeded
        distributor.withdraw_rewards(OWNER, token, fp(250))
        assert token.balance_of(OWNER) == fp(650)
        assert token.balance_of(distributor.address) == fp(350)

        with pytest.raises(NotOwner):
            distributor.withdraw_rewards("alice", token, fp(1))
        with pytest.raises(RewardTransferFailed):
            distributor.withdraw_rewards(OWNER, token, fp(351))


# ─────────────────────────────────────────────────────────────────────────────
# Claims
# ─────────────────────────────────────────────────────────────────────────────

class TestClaim:
    """Single claims."""

    def test_claim_pays_account(self, seeded, token):
        distributor, tree, leaves = seeded
        distributor.claim(_claim(tree, leaves, "alice"))

        assert token.balance_of("alice") == fp(100)
        assert distributor.get_window(0).remaining_amount == fp(500)
        assert distributor.is_claimed(0, 0)
        assert not distributor.is_claimed(0, 1)
        (event,) = distributor.events.of_type(distributor_events.Claimed)
        assert event.caller == "alice"
        assert event.account == "alice"

    def test_failing_subscriber_keeps_claim(self, seeded, token, caplog):
        distributor, tree, leaves = seeded

        def broken(event):
            raise RuntimeError("subscriber crashed")

        distributor.events.subscribe(broken)
        with caplog.at_level(logging.ERROR, logger="synth"):
            distributor.claim(_claim(tree, leaves, "alice"))

        assert token.balance_of("alice") == fp(100)
        assert distributor.is_claimed(0, 0)
        assert len(distributor.events.of_type(distributor_events.Claimed)) == 1
        assert any("subscriber failed on Claimed" in r.getMessage() for r in caplog.records)

    def test_third_party_claim_pays_account(self, seeded, token):
        distributor, tree, leaves = seeded
        distributor.claim(_claim(tree, leaves, "bob"), caller="keeper")
        assert token.balance_of("bob") == fp(200)
        assert token.balance_of("keeper") == fp(0)

    def test_claim_only_once(self, seeded, token):
        distributor, tree, leaves = seeded
        distributor.claim(_claim(tree, leaves, "alice"))
        with pytest.raises(AlreadyClaimed):
            distributor.claim(_claim(tree, leaves, "alice"))
        assert token.balance_of("alice") == fp(100)

    def test_inflated_amount_rejected(self, seeded):
        distributor, tree, leaves = seeded
        claim = Claim(0, "alice", 0, fp(150), tree.get_proof(leaves["alice"]))
        assert not distributor.verify_claim(claim)
        with pytest.raises(InvalidProof):
            distributor.claim(claim)
        assert not distributor.is_claimed(0, 0)

    def test_stolen_proof_rejected(self, seeded):
        distributor, tree, leaves = seeded
        claim = Claim(0, "mallory", 0, fp(100), tree.get_proof(leaves["alice"]))
        with pytest.raises(InvalidProof):
            distributor.claim(claim)

    def test_unknown_window(self, seeded):
        distributor, tree, leaves = seeded
        with pytest.raises(InvalidWindow):
            distributor.claim(_claim(tree, leaves, "alice", window_index=3))

    def test_underfunded_window(self, distributor, token):
        tree, leaves = _tree()
        distributor.set_window(OWNER, fp(250), token, tree.get_root())
        distributor.claim(_claim(tree, leaves, "alice"))
        with pytest.raises(InsufficientWindowRewards):
            distributor.claim(_claim(tree, leaves, "carol"))
        assert distributor.get_window(0).remaining_amount == fp(150)
        assert not distributor.is_claimed(0, 2)

    def test_bitmap_spans_words(self, distributor, token):
        payouts = {"alice": (fp(10), 300), "bob": (fp(20), 44)}
        tree, leaves = _tree(payouts)
        distributor.set_window(OWNER, fp(30), token, tree.get_root())
        distributor.claim(_claim(tree, leaves, "alice", payouts=payouts))

        assert distributor.is_claimed(0, 300)
        assert not distributor.is_claimed(0, 44)


class TestClaimMulti:
    """Batched claims."""

    def test_pays_selected_accounts(self, seeded, token):
        distributor, tree, leaves = seeded
        claims = [_claim(tree, leaves, account) for account in ("alice", "bob", "carol")]

        paid = distributor.claim_multi(claims, ["alice", "bob"], [token])

        assert paid == 2
        assert token.balance_of("alice") == fp(100)
        assert token.balance_of("bob") == fp(200)
        assert token.balance_of("carol") == fp(0)
        assert distributor.get_window(0).remaining_amount == fp(300)

    def test_skips_other_reward_tokens(self, seeded, token):
        distributor, tree, leaves = seeded
        other = _reward_token("uOTHER")
        distributor.set_window(OWNER, fp(600), other, tree.get_root())

        claims = [_claim(tree, leaves, "alice", window_index=0), _claim(tree, leaves, "alice", window_index=1)]
        assert distributor.claim_multi(claims, ["alice"], [other]) == 1
        assert other.balance_of("alice") == fp(100)
        assert token.balance_of("alice") == fp(0)

    def test_missing_window_fails_batch(self, seeded, token):
        distributor, tree, leaves = seeded
        claims = [_claim(tree, leaves, "alice"), _claim(tree, leaves, "bob", window_index=7)]
        with pytest.raises(InvalidWindow):
            distributor.claim_multi(claims, ["alice", "bob"], [token])
        assert token.balance_of("alice") == fp(0)

    def test_bad_claim_rolls_back_batch(self, seeded, token):
        distributor, tree, leaves = seeded
        bad = Claim(0, "bob", 1, fp(999), tree.get_proof(leaves["bob"]))
        with pytest.raises(InvalidProof):
            distributor.claim_multi([_claim(tree, leaves, "alice"), bad], ["alice", "bob"], [token])

        assert token.balance_of("alice") == fp(0)
        assert not distributor.is_claimed(0, 0)
        assert distributor.get_window(0).remaining_amount == fp(600)
        assert distributor.events.of_type(distributor_events.Claimed) == []

    def test_failed_transfer_rolls_back_batch(self, seeded, token):
        distributor, tree, leaves = seeded
        token.blocked.add("bob")
        with pytest.raises(RewardTransferFailed):
            distributor.claim_multi(
                [_claim(tree, leaves, "alice"), _claim(tree, leaves, "bob")], ["alice", "bob"], [token]
            )

        assert token.balance_of("alice") == fp(0)
        assert token.balance_of(distributor.address) == fp(600)
        assert not distributor.is_claimed(0, 0)
        assert distributor.get_window(0).remaining_amount == fp(600)

    def test_crashing_transfer_hook_rolls_back_batch(self, seeded, token):
        distributor, tree, leaves = seeded

        def explode(sender, recipient, amount):
            if recipient == "bob":
                raise RuntimeError("transfer hook crashed")

        token.on_transfer = explode
        with pytest.raises(RewardTransferFailed) as excinfo:
            distributor.claim_multi(
                [_claim(tree, leaves, "alice"), _claim(tree, leaves, "bob")], ["alice", "bob"], [token]
            )

        assert isinstance(excinfo.value.__cause__, RuntimeError)
        assert token.balance_of("alice") == fp(0)
        assert token.balance_of(distributor.address) == fp(600)
        assert not distributor.is_claimed(0, 0)
        assert distributor.get_window(0).remaining_amount == fp(600)
        assert distributor.events.of_type(distributor_events.Claimed) == []

    def test_duplicate_in_batch(self, seeded, token):
        distributor, tree, leaves = seeded
        claim = _claim(tree, leaves, "alice")
        with pytest.raises(AlreadyClaimed):
            distributor.claim_multi([claim, claim], ["alice"], [token])
        assert not distributor.is_claimed(0, 0)
