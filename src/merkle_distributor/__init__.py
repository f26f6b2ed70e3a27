"""
Merkle reward distributor and claim tooling.
"""

from .distributor import (
    AlreadyClaimed,
    Claim,
    InsufficientWindowRewards,
    InvalidProof,
    InvalidWindow,
    MerkleDistributor,
    MerkleDistributorError,
    NotOwner,
    RewardTransferFailed,
    Window,
)
from .helper import create_merkle_distribution_proofs
from .merkle_tree import MerkleTree, create_leaf

__all__ = [
    "AlreadyClaimed",
    "Claim",
    "InsufficientWindowRewards",
    "InvalidProof",
    "InvalidWindow",
    "MerkleDistributor",
    "MerkleDistributorError",
    "MerkleTree",
    "NotOwner",
    "RewardTransferFailed",
    "Window",
    "create_leaf",
    "create_merkle_distribution_proofs",
]
