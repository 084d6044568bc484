"""
secp256k1 key handling.

Holder, issuer, and ephemeral keys all live on secp256k1. On the wire:
- private keys are 0x + 64 hex chars (big-endian scalar)
- public keys are 0x + 130 hex chars: the 65-byte uncompressed point 04 || X || Y

An issuer or organization "address" is its uncompressed public key hex.
"""
from __future__ import annotations

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from core.crypto.hashing import from_hex, to_hex
from core.schemas.credential import KeyPair

CURVE = ec.SECP256K1()
PRIVATE_KEY_LENGTH = 32
PUBLIC_KEY_LENGTH = 65


def load_private_key(private_key: str) -> ec.EllipticCurvePrivateKey:
    """
    Parse a 0x-hex private scalar.

    Raises:
        ValueError: If the hex is malformed or the scalar is out of range.
    """
    raw = from_hex(private_key)
    if not raw or len(raw) > PRIVATE_KEY_LENGTH:
        raise ValueError(f"Private key must be at most {PRIVATE_KEY_LENGTH} bytes")
    return ec.derive_private_key(int.from_bytes(raw, "big"), CURVE)


def load_public_key(public_key: str) -> ec.EllipticCurvePublicKey:
    """
    Parse a 0x-hex uncompressed public point.

    Raises:
        ValueError: If the hex is malformed, not 65 bytes, or not on the curve.
    """
    raw = from_hex(public_key)
    return public_key_from_bytes(raw)


def public_key_from_bytes(raw: bytes) -> ec.EllipticCurvePublicKey:
    if len(raw) != PUBLIC_KEY_LENGTH or raw[0] != 0x04:
        raise ValueError(
            f"Public key must be a {PUBLIC_KEY_LENGTH}-byte uncompressed point"
        )
    return ec.EllipticCurvePublicKey.from_encoded_point(CURVE, raw)


def public_key_bytes(public_key: ec.EllipticCurvePublicKey) -> bytes:
    """Uncompressed X9.62 encoding (65 bytes)."""
    return public_key.public_bytes(
        serialization.Encoding.X962,
        serialization.PublicFormat.UncompressedPoint,
    )


def private_key_hex(private_key: ec.EllipticCurvePrivateKey) -> str:
    value = private_key.private_numbers().private_value
    return to_hex(value.to_bytes(PRIVATE_KEY_LENGTH, "big"))


def public_key_from_private(private_key: str) -> str:
    """Derive the uncompressed public key hex for a private key hex."""
    return to_hex(public_key_bytes(load_private_key(private_key).public_key()))


def generate_keypair() -> KeyPair:
    """Generate a fresh secp256k1 keypair from the OS CSPRNG."""
    key = ec.generate_private_key(CURVE)
    return KeyPair(
        private_key=private_key_hex(key),
        public_key=to_hex(public_key_bytes(key.public_key())),
    )
