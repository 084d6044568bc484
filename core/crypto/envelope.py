"""
Envelope Encryption

Attributes are encrypted under a fresh per-credential AES-256-GCM key, and
that key is wrapped to the holder with ECIES on secp256k1.

Wire formats (all 0x-hex):
- symmetric key: 32 bytes
- iv: 12 bytes
- tag: 16 bytes
- wrapped key blob: ephemeralPublicKey(65) || iv(12) || tag(16) || ciphertext

ECIES key derivation: the ECDH shared secret is the x-coordinate of the
shared point, hashed once with SHA-256 to get the AES-256 key.
"""
from __future__ import annotations

import json
import secrets

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from core.crypto.hashing import from_hex, sha256, to_hex
from core.crypto.keys import (
    CURVE,
    PUBLIC_KEY_LENGTH,
    load_private_key,
    load_public_key,
    public_key_bytes,
    public_key_from_bytes,
)
from core.schemas.canonical import AttributeSet, dumps_compact, validate_attributes
from core.schemas.credential import EncryptedAttributes
from core.schemas.errors import AuthenticationError, MalformedCiphertextError

KEY_LENGTH = 32
IV_LENGTH = 12
TAG_LENGTH = 16
MIN_WRAPPED_KEY_LENGTH = PUBLIC_KEY_LENGTH + IV_LENGTH + TAG_LENGTH


def _decode(hex_string: str, field: str, length: int | None = None) -> bytes:
    try:
        raw = from_hex(hex_string)
    except ValueError as e:
        raise MalformedCiphertextError(
            f"Invalid hex for {field}",
            details={"field": field},
        ) from e
    if length is not None and len(raw) != length:
        raise MalformedCiphertextError(
            f"{field} must be {length} bytes, got {len(raw)}",
            details={"field": field, "expected": length, "actual": len(raw)},
        )
    return raw


def generate_symmetric_key() -> str:
    """Fresh AES-256 key from the OS CSPRNG."""
    return to_hex(secrets.token_bytes(KEY_LENGTH))


def _seal(key: bytes, plaintext: bytes) -> tuple[bytes, bytes, bytes]:
    iv = secrets.token_bytes(IV_LENGTH)
    sealed = AESGCM(key).encrypt(iv, plaintext, None)
    return iv, sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]


def _open(key: bytes, iv: bytes, ciphertext: bytes, tag: bytes) -> bytes:
    try:
        return AESGCM(key).decrypt(iv, ciphertext + tag, None)
    except InvalidTag as e:
        raise AuthenticationError("Authentication tag mismatch") from e


def encrypt_attributes(attributes: AttributeSet, symmetric_key: str) -> EncryptedAttributes:
    """
    Encrypt an attribute set with AES-256-GCM under a fresh 12-byte IV.

    The plaintext is the compact JSON of the attributes in insertion order.
    """
    key = _decode(symmetric_key, "symmetricKey", KEY_LENGTH)
    plaintext = dumps_compact(validate_attributes(attributes)).encode("utf-8")
    iv, ciphertext, tag = _seal(key, plaintext)
    return EncryptedAttributes(
        ciphertext=to_hex(ciphertext),
        iv=to_hex(iv),
        auth_tag=to_hex(tag),
    )


def decrypt_attributes(
    ciphertext: str,
    symmetric_key: str,
    iv: str,
    auth_tag: str,
) -> AttributeSet:
    """
    Decrypt and parse an attribute set.

    Raises:
        MalformedCiphertextError: On bad hex or wrong key/iv/tag widths.
        AuthenticationError: If the tag does not verify.
    """
    key = _decode(symmetric_key, "symmetricKey", KEY_LENGTH)
    nonce = _decode(iv, "iv", IV_LENGTH)
    tag = _decode(auth_tag, "authTag", TAG_LENGTH)
    sealed = _decode(ciphertext, "ciphertext")
    plaintext = _open(key, nonce, sealed, tag)
    try:
        attributes = json.loads(plaintext.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedCiphertextError("Decrypted attributes are not valid JSON") from e
    return validate_attributes(attributes)


def _derive_key(private_key: ec.EllipticCurvePrivateKey, peer: ec.EllipticCurvePublicKey) -> bytes:
    # exchange() returns the x-coordinate of the shared point
    return sha256(private_key.exchange(ec.ECDH(), peer))


def encrypt_key_to_holder(symmetric_key: str, holder_public_key: str) -> str:
    """
    Wrap a symmetric key for a holder with ECIES.

    Raises:
        MalformedCiphertextError: If the symmetric key is not 32 bytes of hex.
        ValueError: If the holder public key is not a valid secp256k1 point.
    """
    key = _decode(symmetric_key, "symmetricKey", KEY_LENGTH)
    holder = load_public_key(holder_public_key)
    ephemeral = ec.generate_private_key(CURVE)
    iv, ciphertext, tag = _seal(_derive_key(ephemeral, holder), key)
    blob = public_key_bytes(ephemeral.public_key()) + iv + tag + ciphertext
    return to_hex(blob)


def decrypt_key_from_holder(encrypted_key: str, holder_private_key: str) -> str:
    """
    Unwrap a symmetric key with the holder's private key.

    Raises:
        MalformedCiphertextError: On bad hex, a blob shorter than 93 bytes,
            or an invalid ephemeral point.
        AuthenticationError: If the blob was not wrapped for this holder or
            was tampered with.
    """
    blob = _decode(encrypted_key, "encryptedKey")
    if len(blob) < MIN_WRAPPED_KEY_LENGTH:
        raise MalformedCiphertextError(
            f"Wrapped key must be at least {MIN_WRAPPED_KEY_LENGTH} bytes, got {len(blob)}",
            details={"actual": len(blob)},
        )
    offset = PUBLIC_KEY_LENGTH
    try:
        ephemeral = public_key_from_bytes(blob[:offset])
    except ValueError as e:
        raise MalformedCiphertextError("Invalid ephemeral public key") from e
    iv = blob[offset:offset + IV_LENGTH]
    offset += IV_LENGTH
    tag = blob[offset:offset + TAG_LENGTH]
    ciphertext = blob[offset + TAG_LENGTH:]

    private_key = load_private_key(holder_private_key)
    key = _open(_derive_key(private_key, ephemeral), iv, ciphertext, tag)
    return to_hex(key)


__all__ = [
    "KEY_LENGTH",
    "IV_LENGTH",
    "TAG_LENGTH",
    "MIN_WRAPPED_KEY_LENGTH",
    "EncryptedAttributes",
    "generate_symmetric_key",
    "encrypt_attributes",
    "decrypt_attributes",
    "encrypt_key_to_holder",
    "decrypt_key_from_holder",
]
