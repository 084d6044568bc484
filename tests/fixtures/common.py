"""
Common test fixtures shared by all modules.

Provides factory functions for core Kirocred data structures:
- keypairs and signed CredentialData
- BatchProcessingRequest / processed batches
- holder presentations (CredentialVerificationRequest)
- FakeChain, an in-memory ChainReader with failure injection

These are the foundational building blocks used by higher-level fixtures.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional

from core.batch.processor import process_batch
from core.crypto.keys import generate_keypair
from core.crypto.signatures import nonce_message_hash, sign_message_hash
from core.issuance.issuer import prepare_credential
from core.schemas.credential import (
    BatchMetadata,
    BatchProcessingRequest,
    BatchProcessingResult,
    CredentialData,
    CredentialPackage,
    KeyPair,
    truncate_for_chain,
)
from core.schemas.verification import CredentialVerificationRequest
from core.verification.nonce import current_time_ms, generate_nonce

BATCH_TIMESTAMP = 1_700_000_000_000


def run(coro):
    """Drive a coroutine to completion."""
    return asyncio.run(coro)


# =============================================================================
# Keys & credentials
# =============================================================================

def make_keypair() -> KeyPair:
    return generate_keypair()


def make_attributes(name: str = "Alice", **extra: Any) -> dict[str, Any]:
    attributes: dict[str, Any] = {
        "name": name,
        "degree": "BSc Computer Science",
        "graduationYear": 2024,
        "honours": True,
    }
    attributes.update(extra)
    return attributes


def make_credential_data(
    issuer: KeyPair,
    holder: KeyPair,
    credential_id: str = "cred-001",
    attributes: Optional[dict[str, Any]] = None,
) -> CredentialData:
    """CredentialData signed by issuer for holder."""
    return prepare_credential(
        credential_id,
        holder.public_key,
        attributes if attributes is not None else make_attributes(),
        issuer.private_key,
    )


def make_batch_metadata(timestamp: int = BATCH_TIMESTAMP) -> BatchMetadata:
    return BatchMetadata(
        description="Spring 2024 graduates",
        purpose="degree",
        issued_by="Example University",
        timestamp=timestamp,
    )


def make_batch_request(
    issuer: KeyPair,
    holders: list[KeyPair],
    names: Optional[list[str]] = None,
    timestamp: int = BATCH_TIMESTAMP,
) -> BatchProcessingRequest:
    """One credential per holder, ids cred-000, cred-001, ..."""
    names = names or [f"Holder {i}" for i in range(len(holders))]
    credentials = [
        make_credential_data(issuer, holder, f"cred-{i:03d}", make_attributes(name))
        for i, (holder, name) in enumerate(zip(holders, names))
    ]
    return BatchProcessingRequest(
        credentials=credentials,
        issuer_address=issuer.public_key,
        batch_metadata=make_batch_metadata(timestamp),
    )


def make_batch(
    size: int = 3,
) -> tuple[BatchProcessingResult, KeyPair, list[KeyPair]]:
    """Processed (unpublished) batch with its issuer and holder keys."""
    issuer = make_keypair()
    holders = [make_keypair() for _ in range(size)]
    result = process_batch(make_batch_request(issuer, holders))
    return result, issuer, holders


# =============================================================================
# Chain
# =============================================================================

class FakeChain:
    """
    ChainReader over dicts.

    fail, when set, is raised by every read.
    """

    def __init__(
        self,
        roots: Optional[dict[int, str]] = None,
        issuers: Optional[dict[int, str]] = None,
        fail: Optional[Exception] = None,
    ) -> None:
        self.roots = dict(roots or {})
        self.issuers = dict(issuers or {})
        self.revoked: set[tuple[str, int]] = set()
        self.fail = fail

    def revoke(self, commitment: str, batch_id: int) -> None:
        self.revoked.add((truncate_for_chain(commitment), batch_id))

    async def get_merkle_root(self, batch_id: int) -> str:
        if self.fail:
            raise self.fail
        return self.roots.get(batch_id, "0x0")

    async def is_revoked(self, commitment: str, batch_id: int) -> bool:
        if self.fail:
            raise self.fail
        return (truncate_for_chain(commitment), batch_id) in self.revoked

    async def get_issuer_public_key(self, batch_id: int) -> str:
        if self.fail:
            raise self.fail
        return self.issuers.get(batch_id, "")


def make_published_batch(
    size: int = 3,
    batch_id: int = 1,
) -> tuple[BatchProcessingResult, list[CredentialPackage], FakeChain, KeyPair, list[KeyPair]]:
    """A batch whose root and issuer sit on a FakeChain under batch_id."""
    result, issuer, holders = make_batch(size)
    chain = FakeChain(
        roots={batch_id: result.merkle_root},
        issuers={batch_id: issuer.public_key},
    )
    return result, result.stamped(batch_id), chain, issuer, holders


# =============================================================================
# Presentation
# =============================================================================

def make_presentation(
    package: CredentialPackage,
    holder: KeyPair,
    attributes_hash: Optional[str],
    now_ms: Optional[int] = None,
    nonce: Optional[str] = None,
) -> CredentialVerificationRequest:
    """Holder answers a fresh verifier nonce for package."""
    nonce = nonce or generate_nonce(now_ms if now_ms is not None else current_time_ms())
    signature = sign_message_hash(nonce_message_hash(nonce), holder.private_key)
    return CredentialVerificationRequest.from_package(
        package,
        nonce=nonce,
        holder_signature=signature,
        attributes_hash=attributes_hash,
    )
