"""
Credential verification against chain state.
"""
from .engine import ChainReader, verify_credential
from .nonce import (
    DEFAULT_NONCE_WINDOW_SECONDS,
    generate_nonce,
    nonce_timestamp,
    validate_nonce,
)

__all__ = [
    "ChainReader",
    "verify_credential",
    "DEFAULT_NONCE_WINDOW_SECONDS",
    "generate_nonce",
    "nonce_timestamp",
    "validate_nonce",
]
