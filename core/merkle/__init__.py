"""
Merkle Tree and Commitments
Merkle tree construction over credential commitments + proof
generation/verification.

This module provides:
- build_tree: Tree over commitments, all layers kept
- get_root / get_full_root / root_of: Chain, full, and tagged roots
- get_proof: Inclusion proof for a leaf
- verify_proof: Pure proof check (no truncation)
- verify_proof_against_root: Check against a FullRoot or ChainRoot

Canonical Commitment Rules:
1. Parent hashing: sha256(bytes(left) || bytes(right))
2. Padding: Pair the odd tail node with itself at any level
3. Empty input: EmptyInputError
4. Single leaf: root = leaf
5. Chain root: first 60 hex chars of the full root

Usage:
    from core.merkle import build_tree, get_proof, root_of, verify_proof_against_root

    tree = build_tree(commitments)
    proof = get_proof(tree, 2)
    chain_root = root_of(tree).to_chain()
    assert verify_proof_against_root(
        commitments[2], proof.path_elements, proof.path_indices, chain_root
    )
"""
from .merkle_tree import (
    SIBLING_LEFT,
    SIBLING_RIGHT,
    build_tree,
    compute_root_from_path,
    get_full_root,
    get_proof,
    get_root,
    hash_pair,
    root_of,
    verify_proof,
)

from .merkle_proofs import (
    MerkleProver,
    MerkleVerifier,
    verify_proof_against_root,
)


__all__ = [
    "SIBLING_LEFT",
    "SIBLING_RIGHT",
    # Core functions
    "hash_pair",
    "build_tree",
    "get_root",
    "get_full_root",
    "root_of",
    "get_proof",
    "compute_root_from_path",
    "verify_proof",
    "verify_proof_against_root",
    # Convenience classes
    "MerkleProver",
    "MerkleVerifier",
]
