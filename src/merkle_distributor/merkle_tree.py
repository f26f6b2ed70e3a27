"""
Merkle tree over 32-byte leaves with sorted-pair hashing.

Each parent is hash(min(a, b) + max(a, b)), so a proof is just the list of
sibling hashes with no left/right flags. Leaves are de-duplicated and
sorted before the tree is built; a node without a sibling is promoted to
the next layer unchanged.

Hashes are SHA3-256 and travel as 0x-prefixed hex strings.
"""

import hashlib
from typing import Dict, Iterable, List, Union

from ..position_manager.fixed_point import FixedPoint

HashLike = Union[str, bytes]


def sha3(data: bytes) -> bytes:
    return hashlib.sha3_256(data).digest()


def to_bytes(value: HashLike) -> bytes:
    if isinstance(value, bytes):
        return value
    text = value[2:] if value.startswith("0x") else value
    return bytes.fromhex(text)


def to_hex(value: bytes) -> str:
    return "0x" + value.hex()


def combined_hash(first: bytes, second: bytes) -> bytes:
    """Hash of the sorted pair; a missing sibling passes the node through."""
    if not first:
        return second
    if not second:
        return first
    return sha3(b"".join(sorted([first, second])))


def create_leaf(account: str, amount: Union[FixedPoint, int], account_index: int) -> str:
    """
    Leaf for one reward recipient: hash(account || amount || account_index).

    The amount is the raw (scaled) integer; amount and index are packed as
    32-byte big-endian words after the UTF-8 account.

    Returns:
        0x-prefixed hex hash
    """
    raw_amount = amount.raw if isinstance(amount, FixedPoint) else int(amount)
    if raw_amount < 0 or account_index < 0:
        raise ValueError("amount and account_index must be non-negative")
    packed = account.encode("utf-8") + raw_amount.to_bytes(32, "big") + account_index.to_bytes(32, "big")
    return to_hex(sha3(packed))


class MerkleTree:
    """
    Usage:
        tree = MerkleTree([create_leaf("alice", 100, 0), create_leaf("bob", 200, 1)])
        root = tree.get_root()
        proof = tree.get_proof(leaf)
        MerkleTree.verify_proof(proof, root, leaf)  # True
    """

    def __init__(self, leaves: Iterable[HashLike]):
        elements = sorted({to_bytes(leaf) for leaf in leaves})
        if not elements:
            raise ValueError("a merkle tree needs at least one leaf")
        self._elements: List[bytes] = elements
        self._positions: Dict[bytes, int] = {el: i for i, el in enumerate(elements)}
        self._layers: List[List[bytes]] = self._build_layers(elements)

    @staticmethod
    def _build_layers(elements: List[bytes]) -> List[List[bytes]]:
        layers = [elements]
        while len(layers[-1]) > 1:
            layer = layers[-1]
            layers.append([
                combined_hash(layer[i], layer[i + 1] if i + 1 < len(layer) else b"")
                for i in range(0, len(layer), 2)
            ])
        return layers

    @property
    def leaves(self) -> List[str]:
        return [to_hex(el) for el in self._elements]

    def get_root(self) -> str:
        return to_hex(self._layers[-1][0])

    def get_proof(self, leaf: HashLike) -> List[str]:
        """
        Sibling hashes from the leaf up to (not including) the root.

        Raises:
            ValueError: Leaf is not in the tree
        """
        key = to_bytes(leaf)
        if key not in self._positions:
            raise ValueError(f"element does not exist in merkle tree: {to_hex(key)}")
        index = self._positions[key]
        proof = []
        for layer in self._layers[:-1]:
            pair_index = index + 1 if index % 2 == 0 else index - 1
            if pair_index < len(layer):
                proof.append(to_hex(layer[pair_index]))
            index //= 2
        return proof

    @staticmethod
    def verify_proof(proof: List[HashLike], root: HashLike, leaf: HashLike) -> bool:
        computed = to_bytes(leaf)
        for sibling in proof:
            computed = combined_hash(computed, to_bytes(sibling))
        return computed == to_bytes(root)
