"""
Signatures

One canonical signing contract for the whole protocol: ECDSA over secp256k1
on a SHA-256 digest the caller has already computed. Signatures travel as
0x + r(32 bytes) || s(32 bytes).

Signed messages:
- Issuer, per credential: credential_message_hash(credentialId,
  holderPublicKey, attributesHash). Binds the signature to content.
- Holder, per verification: nonce_message_hash(nonce).
- Organization, at registration: organization_message_hash(address).
"""
from __future__ import annotations

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import (
    Prehashed,
    decode_dss_signature,
    encode_dss_signature,
)

from core.crypto.hashing import from_hex, hash_canonical, sha256_hex, to_hex
from core.crypto.keys import load_private_key, load_public_key

SIGNATURE_LENGTH = 64
DIGEST_LENGTH = 32

_ALGORITHM = ec.ECDSA(Prehashed(hashes.SHA256()))


def _digest_bytes(message_hash: str) -> bytes:
    digest = from_hex(message_hash)
    if len(digest) != DIGEST_LENGTH:
        raise ValueError(f"Message hash must be {DIGEST_LENGTH} bytes, got {len(digest)}")
    return digest


def sign_message_hash(message_hash: str, private_key: str) -> str:
    """
    Sign a 0x-hex SHA-256 digest.

    Raises:
        ValueError: If the digest or private key is malformed.
    """
    key = load_private_key(private_key)
    der = key.sign(_digest_bytes(message_hash), _ALGORITHM)
    r, s = decode_dss_signature(der)
    return to_hex(r.to_bytes(32, "big") + s.to_bytes(32, "big"))


def verify_signature(message_hash: str, signature: str, public_key: str) -> bool:
    """
    Verify a signature over a digest against an uncompressed public key.

    Never raises: malformed digests, signatures, or keys yield False.
    """
    try:
        raw = from_hex(signature)
        if len(raw) != SIGNATURE_LENGTH:
            return False
        r = int.from_bytes(raw[:32], "big")
        s = int.from_bytes(raw[32:], "big")
        if r == 0 or s == 0:
            return False
        key = load_public_key(public_key)
        key.verify(encode_dss_signature(r, s), _digest_bytes(message_hash), _ALGORITHM)
        return True
    except (InvalidSignature, ValueError, TypeError, AttributeError):
        return False


def credential_message_hash(
    credential_id: str,
    holder_public_key: str,
    attributes_hash: str,
) -> str:
    """Digest an issuer signs to vouch for one credential's content."""
    return hash_canonical({
        "attributesHash": attributes_hash,
        "credentialId": credential_id,
        "holderPublicKey": holder_public_key,
    })


def nonce_message_hash(nonce: str) -> str:
    """Digest a holder signs to prove liveness for a verifier nonce."""
    return sha256_hex(nonce.encode("utf-8"))


def organization_message_hash(address: str) -> str:
    """Digest an organization signs when registering its address."""
    return hash_canonical({"action": "create_org", "orgAddress": address})


def sign_credential(
    credential_id: str,
    holder_public_key: str,
    attributes_hash: str,
    issuer_private_key: str,
) -> str:
    """Produce the issuerSignedMessage for a credential."""
    digest = credential_message_hash(credential_id, holder_public_key, attributes_hash)
    return sign_message_hash(digest, issuer_private_key)


__all__ = [
    "SIGNATURE_LENGTH",
    "sign_message_hash",
    "verify_signature",
    "credential_message_hash",
    "nonce_message_hash",
    "organization_message_hash",
    "sign_credential",
]
