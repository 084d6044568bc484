"""
Core cryptographic utilities.

hashing: SHA-256 helpers, attribute hashing, salts, commitments.
keys: secp256k1 key generation and encoding.
signatures: ECDSA signing contract and message digests.
envelope: AES-256-GCM attribute encryption and ECIES key wrapping.
"""
from .hashing import (
    compute_commitment,
    from_hex,
    generate_salt,
    hash_attributes,
    hash_canonical,
    sha256,
    sha256_hex,
    to_hex,
)
from .keys import (
    generate_keypair,
    public_key_from_private,
)
from .signatures import (
    credential_message_hash,
    nonce_message_hash,
    organization_message_hash,
    sign_credential,
    sign_message_hash,
    verify_signature,
)
from .envelope import (
    decrypt_attributes,
    decrypt_key_from_holder,
    encrypt_attributes,
    encrypt_key_to_holder,
    generate_symmetric_key,
)

__all__ = [
    "sha256",
    "sha256_hex",
    "to_hex",
    "from_hex",
    "hash_canonical",
    "hash_attributes",
    "generate_salt",
    "compute_commitment",
    "generate_keypair",
    "public_key_from_private",
    "sign_message_hash",
    "verify_signature",
    "credential_message_hash",
    "nonce_message_hash",
    "organization_message_hash",
    "sign_credential",
    "generate_symmetric_key",
    "encrypt_attributes",
    "decrypt_attributes",
    "encrypt_key_to_holder",
    "decrypt_key_from_holder",
]
