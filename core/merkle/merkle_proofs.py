"""
Merkle Proofs Convenience Wrappers

This module provides:
- verify_proof_against_root: root-kind aware verification
- MerkleProver: proofs for every leaf of a tree, in leaf order
- MerkleVerifier: verify MerkleProof objects against tagged roots

A chain root only holds the first 60 hex chars of the tree root, so a
computed root must be canonicalized to the same kind before comparing.
"""
from __future__ import annotations

from typing import Sequence

from core.merkle.merkle_tree import (
    compute_root_from_path,
    get_proof,
    verify_proof,
)
from core.schemas.credential import ChainRoot, FullRoot, MerkleProof, MerkleTree


def verify_proof_against_root(
    leaf: str,
    path_elements: Sequence[str],
    path_indices: Sequence[int],
    root: FullRoot | ChainRoot,
) -> bool:
    """
    Verify a proof against a tagged root.

    The computed root is canonicalized to root.kind before comparison.
    Fails closed on malformed proofs.
    """
    if isinstance(root, FullRoot):
        return verify_proof(leaf, path_elements, path_indices, root.value)

    if len(path_elements) != len(path_indices):
        return False
    try:
        computed = compute_root_from_path(leaf, path_elements, path_indices)
        return FullRoot(value=computed).to_chain().value == root.value
    except (ValueError, TypeError):
        # pydantic.ValidationError is a ValueError
        return False


class MerkleProver:
    """
    Convenience class for generating Merkle proofs.

    Example:
        >>> tree = build_tree(commitments)
        >>> proofs = MerkleProver.prove_all(tree)
        >>> len(proofs) == len(commitments)
        True
    """

    @staticmethod
    def prove(tree: MerkleTree, index: int) -> MerkleProof:
        return get_proof(tree, index)

    @staticmethod
    def prove_all(tree: MerkleTree) -> list[MerkleProof]:
        """Proofs for every leaf, indexed by leaf position."""
        return [get_proof(tree, i) for i in range(len(tree.leaves))]


class MerkleVerifier:
    """Convenience class for verifying MerkleProof objects."""

    @staticmethod
    def verify(leaf: str, proof: MerkleProof, root: FullRoot | ChainRoot) -> bool:
        return verify_proof_against_root(
            leaf, proof.path_elements, proof.path_indices, root
        )

    @staticmethod
    def verify_all(
        leaves: Sequence[str],
        proofs: Sequence[MerkleProof],
        root: FullRoot | ChainRoot,
    ) -> list[int]:
        """Return the indices of leaves whose proofs fail."""
        if len(leaves) != len(proofs):
            raise ValueError(
                f"Got {len(leaves)} leaves but {len(proofs)} proofs"
            )
        return [
            i for i, (leaf, proof) in enumerate(zip(leaves, proofs))
            if not MerkleVerifier.verify(leaf, proof, root)
        ]


__all__ = [
    "verify_proof_against_root",
    "MerkleProver",
    "MerkleVerifier",
]
