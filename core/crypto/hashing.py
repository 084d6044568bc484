"""
Hash & Commitment Primitives

This module provides:
- SHA-256 hashing for raw bytes, with 0x-prefixed hex helpers
- Attribute-set hashing (top-level keys sorted)
- CSPRNG salts
- Credential commitments: H(credentialId || holderPublicKey || attributesHash || salt)

Security/Determinism Notes:
- Commitment input order is part of the wire contract; do not reorder
- Salts come from the OS CSPRNG via `secrets`
- All hashes are lowercase hex with a 0x prefix
"""
from __future__ import annotations

import hashlib
import secrets
from typing import Any

from core.schemas.canonical import AttributeSet, dumps_attributes, dumps_canonical

SALT_LENGTH = 32
HEX_PREFIX = "0x"


def sha256(data: bytes) -> bytes:
    """
    Compute SHA-256 hash of raw bytes.

    Example:
        >>> sha256(b"hello").hex()
        '2cf24dba5fb0a30e26e83b2ac5b9e29e1b161e5c1fa7425e73043362938b9824'
    """
    return hashlib.sha256(data).digest()


def to_hex(data: bytes) -> str:
    """
    Convert bytes to hexadecimal string with 0x prefix.

    Example:
        >>> to_hex(bytes.fromhex("deadbeef"))
        '0xdeadbeef'
    """
    return HEX_PREFIX + data.hex()


def strip_hex_prefix(hex_string: str) -> str:
    """Remove a leading 0x if present."""
    return hex_string[2:] if hex_string.startswith(HEX_PREFIX) else hex_string


def from_hex(hex_string: str) -> bytes:
    """
    Convert hexadecimal string (with 0x prefix) to bytes.

    Raises:
        ValueError: If string doesn't start with 0x, has odd length,
                   or contains invalid hex characters
    """
    if not isinstance(hex_string, str) or not hex_string.startswith(HEX_PREFIX):
        raise ValueError(
            f"Hex string must start with '0x' prefix, got: {str(hex_string)[:10]}..."
        )

    hex_content = hex_string[2:]

    if len(hex_content) % 2 != 0:
        raise ValueError(
            f"Hex string must have even length after 0x prefix, "
            f"got length {len(hex_content)}"
        )

    try:
        return bytes.fromhex(hex_content)
    except ValueError as e:
        raise ValueError(f"Invalid hex characters in string: {e}") from e


def sha256_hex(data: bytes) -> str:
    """SHA-256 of raw bytes as 0x hex."""
    return to_hex(sha256(data))


def hash_canonical(obj: Any) -> str:
    """
    Hash an object's fully canonical JSON (all levels sorted).

    Used for signing digests, where both sides rebuild the object from
    named fields.

    Example:
        >>> hash_canonical({"b": 2, "a": 1}) == hash_canonical({"a": 1, "b": 2})
        True
    """
    return sha256_hex(dumps_canonical(obj).encode("utf-8"))


def hash_attributes(attributes: AttributeSet) -> str:
    """
    Hash an attribute set.

    Top-level keys are sorted, the result is serialized as compact JSON and
    hashed with SHA-256. Equal attribute sets hash identically regardless of
    key insertion order.

    Raises:
        CanonicalizationException: If attributes are not a JSON object of
            finite JSON values.
    """
    return sha256_hex(dumps_attributes(attributes).encode("utf-8"))


def generate_salt() -> str:
    """Return 32 CSPRNG bytes as 0x hex."""
    return to_hex(secrets.token_bytes(SALT_LENGTH))


def compute_commitment(
    credential_id: str,
    holder_public_key: str,
    attributes_hash: str,
    salt: str,
) -> str:
    """
    Compute a credential commitment (the Merkle leaf).

    The four inputs are concatenated as strings in this fixed order and the
    UTF-8 bytes are hashed.
    """
    combined = credential_id + holder_public_key + attributes_hash + salt
    return sha256_hex(combined.encode("utf-8"))


__all__ = [
    "SALT_LENGTH",
    "sha256",
    "sha256_hex",
    "to_hex",
    "from_hex",
    "strip_hex_prefix",
    "hash_canonical",
    "hash_attributes",
    "generate_salt",
    "compute_commitment",
]
