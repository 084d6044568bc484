"""
Schemas & Canonicalization
File: credential.py

Purpose: Credential, batch, and Merkle record schemas.

Wire (JSON) field names are camelCase through aliases; Python attributes are
snake_case. Dump with ``model_dump(by_alias=True)`` for the wire form.
"""

from __future__ import annotations

import re
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, JsonValue, field_validator
from pydantic.alias_generators import to_camel

from .versioning import PACKAGE_VERSION, PackageVersion

# Hex characters of the root kept on chain (240 bits)
CHAIN_ROOT_HEX_LENGTH = 60
DIGEST_HEX_LENGTH = 64

PathIndex = Literal[0, 1]

_HEX_RE = re.compile(r"[0-9a-fA-F]+")


def truncate_for_chain(value: str) -> str:
    """
    Canonicalize a 256-bit hex digest for the chain's smaller field.

    Strips 0x, keeps the first 60 hex characters, re-prefixes 0x.
    """
    raw = value[2:] if value.startswith("0x") else value
    return "0x" + raw[:CHAIN_ROOT_HEX_LENGTH].lower()


class WireModel(BaseModel):
    """Base for records that travel as camelCase JSON."""

    model_config = ConfigDict(
        extra="forbid",
        populate_by_name=True,
        alias_generator=to_camel,
        frozen=True,
    )

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


# =============================================================================
# Keys
# =============================================================================

class KeyPair(WireModel):
    """A secp256k1 keypair in wire (hex) form."""

    private_key: str = Field(..., description="0x + 64 hex chars")
    public_key: str = Field(..., description="0x04 + 128 hex chars (uncompressed)")


# =============================================================================
# Merkle
# =============================================================================

class MerkleTree(WireModel):
    """
    Binary hash tree over commitments.

    layers[0] is the leaf layer; the last layer holds the single root.
    """

    leaves: list[str] = Field(..., min_length=1)
    layers: list[list[str]] = Field(default_factory=list)

    @property
    def leaf_count(self) -> int:
        return len(self.leaves)

    @property
    def depth(self) -> int:
        """Number of layers below the root."""
        return max(len(self.layers) - 1, 0)


class MerkleProof(WireModel):
    """Inclusion proof: one sibling per layer below the root."""

    path_elements: list[str] = Field(default_factory=list)
    path_indices: list[int] = Field(default_factory=list)

    def __len__(self) -> int:
        return len(self.path_elements)


class FullRoot(WireModel):
    """Untruncated 256-bit root as produced by the tree."""

    kind: Literal["full"] = "full"
    value: str

    @field_validator("value")
    @classmethod
    def _check_value(cls, v: str) -> str:
        raw = v[2:] if v.startswith("0x") else v
        if len(raw) != DIGEST_HEX_LENGTH:
            raise ValueError(f"Full root must have {DIGEST_HEX_LENGTH} hex chars, got {len(raw)}")
        if not _HEX_RE.fullmatch(raw):
            raise ValueError("Root must be hex")
        return "0x" + raw.lower()

    def to_chain(self) -> ChainRoot:
        """Canonicalize for chain storage."""
        return ChainRoot(value=truncate_for_chain(self.value))


class ChainRoot(WireModel):
    """
    Root as stored on chain: the first 60 hex chars of the full root.

    Values read back from a ledger may have lost leading zeros; they are
    left-padded back to 60 hex chars.
    """

    kind: Literal["chain"] = "chain"
    value: str

    @field_validator("value")
    @classmethod
    def _check_value(cls, v: str) -> str:
        raw = v[2:] if v.startswith("0x") else v
        if not raw or len(raw) > CHAIN_ROOT_HEX_LENGTH:
            raise ValueError(
                f"Chain root must have 1..{CHAIN_ROOT_HEX_LENGTH} hex chars, got {len(raw)}"
            )
        if not _HEX_RE.fullmatch(raw):
            raise ValueError("Root must be hex")
        return "0x" + raw.lower().zfill(CHAIN_ROOT_HEX_LENGTH)

    def to_chain(self) -> ChainRoot:
        return self


MerkleRoot = Annotated[Union[FullRoot, ChainRoot], Field(discriminator="kind")]


# =============================================================================
# Issuance
# =============================================================================

class EncryptedAttributes(WireModel):
    """AES-256-GCM envelope of an attribute set (0x hex fields)."""

    ciphertext: str
    iv: str
    auth_tag: str


class CredentialData(WireModel):
    """
    One credential as submitted by an issuing organization.

    Fields are optional at the schema level so issuance can report every
    missing field at once.
    """

    credential_id: str | None = None
    holder_public_key: str | None = None
    attributes: dict[str, JsonValue] | None = None
    issuer_signed_message: str | None = None


class IssuedCredential(WireModel):
    """Output of issuing one credential. Holds no plaintext."""

    credential_id: str
    commitment: str
    encrypted_attributes: EncryptedAttributes
    encrypted_key: str
    attribute_salts: dict[str, str]
    salt: str
    attributes_hash: str
    holder_public_key: str


# =============================================================================
# Batching
# =============================================================================

class BatchMetadata(WireModel):
    """Descriptive batch metadata. timestamp is Unix milliseconds."""

    description: str = ""
    purpose: str = ""
    issued_by: str = ""
    timestamp: int = Field(..., ge=0)


class BatchProcessingRequest(WireModel):
    credentials: list[CredentialData] = Field(default_factory=list)
    issuer_address: str | None = None
    batch_metadata: BatchMetadata | None = None


class CredentialPackage(WireModel):
    """
    The unit shipped to a holder.

    batch_id starts empty and is stamped once, before persistence, with the
    id the chain assigned to the batch.
    """

    version: PackageVersion = PACKAGE_VERSION
    commitment: str
    path_elements: list[str]
    path_indices: list[PathIndex]
    encrypted_attributes: EncryptedAttributes
    encrypted_key: str
    batch_id: str = ""
    credential_id: str
    issued_at: int
    issuer_signed_message: str
    holder_public_key: str
    attribute_salts: dict[str, str] = Field(default_factory=dict)
    salt: str

    @property
    def proof(self) -> MerkleProof:
        return MerkleProof(
            path_elements=list(self.path_elements),
            path_indices=list(self.path_indices),
        )

    @property
    def is_stamped(self) -> bool:
        return bool(self.batch_id)

    def with_batch_id(self, batch_id: str | int) -> CredentialPackage:
        """
        Return a copy stamped with the chain-assigned batch id.

        Raises:
            ValueError: If the package already carries a different batch id.
        """
        batch_id = str(batch_id)
        if not batch_id:
            raise ValueError("Batch id must be non-empty")
        if self.batch_id and self.batch_id != batch_id:
            raise ValueError(
                f"Package {self.credential_id} already stamped with batch {self.batch_id}"
            )
        return self.model_copy(update={"batch_id": batch_id})


class BatchProcessingResult(WireModel):
    """
    Output of processing one batch.

    merkle_root is the chain form; full_root the untruncated tree root.
    """

    merkle_root: str
    full_root: str
    merkle_tree: MerkleTree
    credential_packages: list[CredentialPackage]
    issued_credentials: list[IssuedCredential]

    @property
    def size(self) -> int:
        return len(self.credential_packages)

    def chain_root(self) -> ChainRoot:
        return ChainRoot(value=self.merkle_root)

    def stamped(self, batch_id: str | int) -> list[CredentialPackage]:
        """Packages stamped with the batch id, in leaf order."""
        return [pkg.with_batch_id(batch_id) for pkg in self.credential_packages]


__all__ = [
    "CHAIN_ROOT_HEX_LENGTH",
    "truncate_for_chain",
    "WireModel",
    "KeyPair",
    "MerkleTree",
    "MerkleProof",
    "FullRoot",
    "ChainRoot",
    "MerkleRoot",
    "EncryptedAttributes",
    "CredentialData",
    "IssuedCredential",
    "BatchMetadata",
    "BatchProcessingRequest",
    "CredentialPackage",
    "BatchProcessingResult",
]
