"""
Merkle Tree Implementation
Binary hash tree over credential commitments, proof generation, and
verification.

This module provides:
- Tree construction that keeps every layer
- Root extraction (chain-truncated and full)
- Inclusion proofs for any leaf index
- Pure proof verification

Canonical Commitment Rules (Hard Contracts):
1. Leaves are commitments (0x hex) in batch input order
2. Parent hashing: parent = sha256(bytes(left) || bytes(right)), 0x hex
3. Padding rule: an odd tail node is paired with itself
4. Empty input: rejected
5. Single leaf: root = leaf
6. Chain root: first 60 hex chars of the full root

Determinism Notes:
- No randomness or non-deterministic ordering
- This module never sorts leaves - it trusts input order
"""
from __future__ import annotations

import logging
from typing import Sequence

from core.crypto.hashing import from_hex, sha256_hex, strip_hex_prefix
from core.schemas.credential import FullRoot, MerkleProof, MerkleTree, truncate_for_chain
from core.schemas.errors import EmptyInputError, IndexOutOfRangeError, InvalidTreeError

logger = logging.getLogger(__name__)

# pathIndices values: where the sibling sits relative to the current node
SIBLING_LEFT = 0
SIBLING_RIGHT = 1


def hash_pair(left: str, right: str) -> str:
    """
    Compute the parent hash of two child nodes.

    The hex of both children (prefixes stripped) is concatenated, decoded
    to bytes, and hashed.

    Raises:
        ValueError: If either child is not valid hex.
    """
    combined = from_hex("0x" + strip_hex_prefix(left) + strip_hex_prefix(right))
    return sha256_hex(combined)


def build_tree(commitments: Sequence[str]) -> MerkleTree:
    """
    Build a Merkle tree over commitments, keeping every layer.

    Padding Rule: the last node of an odd layer is paired with itself.
    Example: [a, b, c] -> [hash(a,b), hash(c,c)] -> [root]

    Raises:
        EmptyInputError: If commitments is empty.
    """
    if len(commitments) == 0:
        raise EmptyInputError("Cannot build a Merkle tree with no leaves")

    leaves = list(commitments)
    layers: list[list[str]] = [leaves]
    current_level = leaves

    while len(current_level) > 1:
        next_level: list[str] = []
        for i in range(0, len(current_level), 2):
            left = current_level[i]
            right = current_level[i + 1] if i + 1 < len(current_level) else left
            next_level.append(hash_pair(left, right))
        layers.append(next_level)
        current_level = next_level

    logger.debug("Built Merkle tree: %d leaves, %d layers", len(leaves), len(layers))
    return MerkleTree(leaves=leaves, layers=layers)


def get_full_root(tree: MerkleTree) -> str:
    """
    Return the untruncated root.

    Raises:
        InvalidTreeError: If the tree has no layers or the last layer does
            not hold exactly one element.
    """
    if not tree.layers:
        raise InvalidTreeError("Merkle tree has no layers")
    top = tree.layers[-1]
    if len(top) != 1:
        raise InvalidTreeError(
            f"Root layer must hold exactly one element, found {len(top)}",
            details={"root_layer_size": len(top)},
        )
    return top[0]


def get_root(tree: MerkleTree) -> str:
    """
    Return the root in its on-chain form (first 60 hex chars).

    Raises:
        InvalidTreeError: See get_full_root.
    """
    return truncate_for_chain(get_full_root(tree))


def root_of(tree: MerkleTree) -> FullRoot:
    """Tagged full root; call .to_chain() for the chain form."""
    return FullRoot(value=get_full_root(tree))


def get_proof(tree: MerkleTree, leaf_index: int) -> MerkleProof:
    """
    Generate the inclusion proof for one leaf.

    At each layer below the root: an odd index takes its left neighbour
    (pathIndex 0); an even index takes its right neighbour (pathIndex 1), or
    itself when it is the odd tail.

    Raises:
        IndexOutOfRangeError: If leaf_index is negative or >= leaf count.
    """
    leaf_count = len(tree.leaves)
    if leaf_index < 0 or leaf_index >= leaf_count:
        raise IndexOutOfRangeError(
            f"Leaf index {leaf_index} out of range for {leaf_count} leaves",
            leaf_index=leaf_index,
            leaf_count=leaf_count,
        )

    path_elements: list[str] = []
    path_indices: list[int] = []
    index = leaf_index

    for layer in tree.layers[:-1]:
        if index % 2 == 1:
            path_elements.append(layer[index - 1])
            path_indices.append(SIBLING_LEFT)
        elif index + 1 < len(layer):
            path_elements.append(layer[index + 1])
            path_indices.append(SIBLING_RIGHT)
        else:
            path_elements.append(layer[index])
            path_indices.append(SIBLING_RIGHT)
        index //= 2

    return MerkleProof(path_elements=path_elements, path_indices=path_indices)


def compute_root_from_path(
    leaf: str,
    path_elements: Sequence[str],
    path_indices: Sequence[int],
) -> str:
    """
    Fold a leaf up its proof path.

    Raises:
        ValueError: On length mismatch, an index other than 0/1, or bad hex.
    """
    if len(path_elements) != len(path_indices):
        raise ValueError(
            f"Proof length mismatch: {len(path_elements)} elements, "
            f"{len(path_indices)} indices"
        )
    current = leaf
    for sibling, position in zip(path_elements, path_indices):
        if position == SIBLING_RIGHT:
            current = hash_pair(current, sibling)
        elif position == SIBLING_LEFT:
            current = hash_pair(sibling, current)
        else:
            raise ValueError(f"Path index must be 0 or 1, got {position!r}")
    return current


def _same_hash(a: str, b: str) -> bool:
    return strip_hex_prefix(a).lower() == strip_hex_prefix(b).lower()


def verify_proof(
    leaf: str,
    path_elements: Sequence[str],
    path_indices: Sequence[int],
    expected_root: str,
) -> bool:
    """
    Verify an inclusion proof against a root of the same form.

    Pure: no truncation is applied. Fails closed (False) on length mismatch,
    bad indices, or malformed hex. A zero-length path succeeds iff the leaf
    equals the root.
    """
    if len(path_elements) != len(path_indices):
        return False
    if len(path_elements) == 0:
        return _same_hash(leaf, expected_root)
    try:
        computed = compute_root_from_path(leaf, path_elements, path_indices)
    except (ValueError, TypeError):
        return False
    return _same_hash(computed, expected_root)


__all__ = [
    "SIBLING_LEFT",
    "SIBLING_RIGHT",
    "hash_pair",
    "build_tree",
    "get_root",
    "get_full_root",
    "root_of",
    "get_proof",
    "compute_root_from_path",
    "verify_proof",
]
