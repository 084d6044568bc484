"""
Verifier nonces.

Format: 0x + 32 random hex chars + 13-digit Unix millisecond timestamp.
The holder signs nonce_message_hash(nonce); the verifier checks the
embedded timestamp against a freshness window.
"""
from __future__ import annotations

import re
import secrets
import time

DEFAULT_NONCE_WINDOW_SECONDS = 300
NONCE_RANDOM_BYTES = 16
TIMESTAMP_DIGITS = 13

_NONCE_RE = re.compile(r"0x[0-9a-f]{32}[0-9]{13}")


def current_time_ms() -> int:
    return int(time.time() * 1000)


def generate_nonce(now_ms: int | None = None) -> str:
    """Fresh verifier nonce stamped with now_ms (defaults to the clock)."""
    if now_ms is None:
        now_ms = current_time_ms()
    return "0x" + secrets.token_hex(NONCE_RANDOM_BYTES) + str(now_ms).zfill(TIMESTAMP_DIGITS)


def nonce_timestamp(nonce: str) -> int:
    """
    Extract the millisecond timestamp (last 13 characters).

    Raises:
        ValueError: If the nonce is not in the expected format.
    """
    if not isinstance(nonce, str) or not _NONCE_RE.fullmatch(nonce):
        raise ValueError("Nonce must be 0x + 32 hex chars + 13-digit ms timestamp")
    return int(nonce[-TIMESTAMP_DIGITS:])


def validate_nonce(
    nonce: str,
    now_ms: int | None = None,
    window_seconds: int = DEFAULT_NONCE_WINDOW_SECONDS,
) -> bool:
    """
    True iff the nonce is well formed and its timestamp is within
    window_seconds of now_ms in either direction.
    """
    try:
        issued_ms = nonce_timestamp(nonce)
    except ValueError:
        return False
    if now_ms is None:
        now_ms = current_time_ms()
    return abs(now_ms - issued_ms) <= window_seconds * 1000
