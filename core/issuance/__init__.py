"""
Credential issuance.

issue_credential: validate, verify the issuer signature, commit and encrypt.
prepare_credential: issuer-side signing of credential data.
"""
from .issuer import REQUIRED_FIELDS, issue_credential, prepare_credential

__all__ = [
    "REQUIRED_FIELDS",
    "issue_credential",
    "prepare_credential",
]
