"""
Credential Issuance

Turns raw attributes plus a holder key into an issued, encrypted credential
record. Stateless: no I/O, and the only randomness is the CSPRNG draws for
salts, the symmetric key and the ECIES ephemeral key.

Steps:
1. Reject missing fields
2. Verify the issuer's content-bound signature
3. attributesHash, salt, commitment
4. Encrypt attributes under a fresh key, wrap the key to the holder
5. One selective-disclosure salt per attribute key
"""
from __future__ import annotations

import logging
from typing import Any, Mapping

from pydantic import ValidationError as PydanticValidationError

from core.crypto.envelope import (
    encrypt_attributes,
    encrypt_key_to_holder,
    generate_symmetric_key,
)
from core.crypto.hashing import compute_commitment, generate_salt, hash_attributes
from core.crypto.signatures import (
    credential_message_hash,
    sign_credential,
    verify_signature,
)
from core.schemas.credential import CredentialData, IssuedCredential
from core.schemas.errors import (
    InvalidSignatureError,
    MissingFieldError,
    ValidationException,
)

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = (
    "credential_id",
    "holder_public_key",
    "attributes",
    "issuer_signed_message",
)


def _coerce(credential_data: CredentialData | Mapping[str, Any]) -> CredentialData:
    if isinstance(credential_data, CredentialData):
        return credential_data
    try:
        return CredentialData.model_validate(dict(credential_data))
    except PydanticValidationError as e:
        raise ValidationException(
            "Malformed credential data",
            details={"errors": [err["msg"] for err in e.errors()]},
        ) from e


def _missing_fields(data: CredentialData, issuer_address: str | None) -> list[str]:
    missing = [name for name in REQUIRED_FIELDS if getattr(data, name) in (None, "")]
    if not issuer_address:
        missing.append("issuer_address")
    return missing


def issue_credential(
    credential_data: CredentialData | Mapping[str, Any],
    issuer_address: str | None,
) -> IssuedCredential:
    """
    Issue one credential.

    Args:
        credential_data: Credential id, holder public key, attributes and
            the issuer's signature over credential_message_hash.
        issuer_address: The issuer's public key hex.

    Raises:
        MissingFieldError: If any required field is absent or empty.
        InvalidSignatureError: If the issuer signature does not verify.
        CanonicalizationException: If attributes are not JSON values.
    """
    data = _coerce(credential_data)

    missing = _missing_fields(data, issuer_address)
    if missing:
        raise MissingFieldError(
            f"Missing required credential data fields: {', '.join(missing)}",
            missing=missing,
            details={"credential_id": data.credential_id},
        )

    attributes = data.attributes
    attributes_hash = hash_attributes(attributes)

    message_hash = credential_message_hash(
        data.credential_id, data.holder_public_key, attributes_hash
    )
    if not verify_signature(message_hash, data.issuer_signed_message, issuer_address):
        raise InvalidSignatureError(
            "Invalid issuer signature",
            details={"credential_id": data.credential_id},
        )

    salt = generate_salt()
    commitment = compute_commitment(
        data.credential_id, data.holder_public_key, attributes_hash, salt
    )

    symmetric_key = generate_symmetric_key()
    encrypted_attributes = encrypt_attributes(attributes, symmetric_key)
    try:
        encrypted_key = encrypt_key_to_holder(symmetric_key, data.holder_public_key)
    except ValueError as e:
        raise ValidationException(
            "Holder public key is not a valid secp256k1 point",
            details={"credential_id": data.credential_id},
        ) from e

    attribute_salts = {key: generate_salt() for key in attributes}

    logger.debug("Issued credential %s commitment=%s", data.credential_id, commitment)

    return IssuedCredential(
        credential_id=data.credential_id,
        commitment=commitment,
        encrypted_attributes=encrypted_attributes,
        encrypted_key=encrypted_key,
        attribute_salts=attribute_salts,
        salt=salt,
        attributes_hash=attributes_hash,
        holder_public_key=data.holder_public_key,
    )


def prepare_credential(
    credential_id: str,
    holder_public_key: str,
    attributes: Mapping[str, Any],
    issuer_private_key: str,
) -> CredentialData:
    """
    Build CredentialData signed by the issuer.

    This is the issuer-side step that precedes issue_credential: the
    signature covers credential_message_hash of the hashed attributes.
    """
    attributes = dict(attributes)
    signature = sign_credential(
        credential_id,
        holder_public_key,
        hash_attributes(attributes),
        issuer_private_key,
    )
    return CredentialData(
        credential_id=credential_id,
        holder_public_key=holder_public_key,
        attributes=attributes,
        issuer_signed_message=signature,
    )
