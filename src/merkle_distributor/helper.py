"""
Build claim proofs for a reward window.
"""

from typing import Any, Dict, Mapping, Tuple

from .merkle_tree import MerkleTree, create_leaf


def create_merkle_distribution_proofs(
    recipients: Mapping[str, Mapping[str, Any]],
    window_index: int,
) -> Tuple[Dict[str, Dict[str, Any]], str]:
    """
    Assign account indices and proofs to every recipient of a window.

    Account indices follow the recipients' order.

    Args:
        recipients: account -> {"amount": raw integer string, ...extra data}
        window_index: Window the claims belong to

    Returns:
        (account -> recipient data plus accountIndex, windowIndex and proof,
         merkle root)
    """
    with_index = {
        account: {**data, "accountIndex": index}
        for index, (account, data) in enumerate(recipients.items())
    }
    leaves = {
        account: create_leaf(account, int(data["amount"]), data["accountIndex"])
        for account, data in with_index.items()
    }
    tree = MerkleTree(leaves.values())

    with_proof = {
        account: {**data, "windowIndex": window_index, "proof": tree.get_proof(leaves[account])}
        for account, data in with_index.items()
    }
    return with_proof, tree.get_root()
