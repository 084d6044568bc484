"""
Collaborator contracts for publication.

The core never talks to these directly except through ChainReader during
verification. Implementations wrap their own failures in ChainError,
StorageError or DiscoveryError.
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable

from core.verification.engine import ChainReader


@runtime_checkable
class ChainClient(ChainReader, Protocol):
    """Read/write ledger surface."""

    async def create_organization(self, address: str, signature: str) -> str:
        """Register an organization; emits OrganizationCreated. Returns tx hash."""
        ...

    async def read_organization_id(self, tx_hash: str) -> int: ...

    async def get_org_by_address(self, address: str) -> int:
        """Organization id for an address, or 0."""
        ...

    async def create_batch(self, batch_type: str, org_id: int) -> str:
        """Create a batch record; emits BatchCreated. Returns tx hash."""
        ...

    async def read_batch_id(self, tx_hash: str) -> int: ...

    async def store_merkle_root(self, batch_id: int, root: str) -> str: ...

    async def revoke(self, commitment: str, batch_id: int) -> str: ...


@runtime_checkable
class ContentStore(Protocol):
    """Content-addressed blob storage."""

    async def store(self, blob: bytes) -> str:
        """Store a blob, return its content id."""
        ...

    async def retrieve(self, content_id: str) -> bytes: ...


@runtime_checkable
class DiscoveryIndex(Protocol):
    """
    Lookup convenience only. Verifiers must never trust it for validity.
    """

    async def record_organization(self, org_id: int, name: str, address: str) -> None: ...

    async def record_batch(self, batch_id: int, org_id: int, description: str = "") -> None: ...

    async def record_credentials(self, rows: list[dict[str, str]]) -> None:
        """Rows of {holderAddress, batchId, contentId, credentialId}."""
        ...

    async def credentials_for_holder(self, holder_address: str) -> list[dict[str, str]]: ...


__all__ = [
    "ChainReader",
    "ChainClient",
    "ContentStore",
    "DiscoveryIndex",
]
