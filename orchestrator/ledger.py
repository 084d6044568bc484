"""
Reference ledger.

An in-process stand-in for the credential registry contract, used by tests
and the CLI. Contract rules:
- an address registers one organization, authorized by its signature over
  organization_message_hash(address)
- a batch references an existing organization
- a batch root may be stored once (re-storing the same root is a no-op)
- revocation is keyed by (chain-truncated commitment, batch id)
- every write returns a transaction hash whose event can be read back

Pass state_path to persist state as JSON between processes.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

from core.crypto.hashing import hash_canonical
from core.crypto.signatures import organization_message_hash, verify_signature
from core.schemas.credential import ChainRoot, truncate_for_chain
from core.schemas.errors import ChainError
from orchestrator.persistence import read_json, write_json_atomic

logger = logging.getLogger(__name__)

EMPTY_ROOT = "0x0"

ORGANIZATION_CREATED = "OrganizationCreated"
BATCH_CREATED = "BatchCreated"
MERKLE_ROOT_STORED = "MerkleRootStored"
CREDENTIAL_REVOKED = "CredentialRevoked"


class InMemoryLedger:
    """ChainClient over in-memory state with optional JSON persistence."""

    def __init__(self, state_path: Optional[str | Path] = None) -> None:
        self.state_path = Path(state_path) if state_path else None
        self._orgs: dict[int, dict[str, Any]] = {}
        self._org_by_address: dict[str, int] = {}
        self._batches: dict[int, dict[str, Any]] = {}
        self._revoked: set[tuple[str, int]] = set()
        self._events: dict[str, dict[str, Any]] = {}
        self._tx_count = 0
        if self.state_path:
            self._load()

    # ------------------------------------------------------------------ state

    def _load(self) -> None:
        state = read_json(self.state_path)
        if not state:
            return
        self._orgs = {int(k): v for k, v in state.get("orgs", {}).items()}
        self._org_by_address = {v["address"]: k for k, v in self._orgs.items()}
        self._batches = {int(k): v for k, v in state.get("batches", {}).items()}
        self._revoked = {(c, int(b)) for c, b in state.get("revoked", [])}
        self._events = state.get("events", {})
        self._tx_count = state.get("tx_count", len(self._events))

    def _save(self) -> None:
        if not self.state_path:
            return
        write_json_atomic(self.state_path, {
            "orgs": {str(k): v for k, v in self._orgs.items()},
            "batches": {str(k): v for k, v in self._batches.items()},
            "revoked": sorted([c, b] for c, b in self._revoked),
            "events": self._events,
            "tx_count": self._tx_count,
        })

    def _emit(self, name: str, payload: dict[str, Any]) -> str:
        self._tx_count += 1
        tx_hash = hash_canonical({"n": self._tx_count, "event": name, "data": payload})
        self._events[tx_hash] = {"name": name, "data": payload}
        self._save()
        logger.debug("Ledger tx %s: %s %s", tx_hash[:18], name, payload)
        return tx_hash

    def _read_event(self, tx_hash: str, name: str) -> dict[str, Any]:
        event = self._events.get(tx_hash)
        if event is None or event["name"] != name:
            raise ChainError(
                f"No {name} event in transaction {tx_hash}",
                operation="read_event",
            )
        return event["data"]

    def _batch(self, batch_id: int, operation: str) -> dict[str, Any]:
        batch = self._batches.get(int(batch_id))
        if batch is None:
            raise ChainError(f"Unknown batch {batch_id}", operation=operation)
        return batch

    # ---------------------------------------------------------- organizations

    async def create_organization(self, address: str, signature: str) -> str:
        if address in self._org_by_address:
            raise ChainError(
                f"Organization already registered for {address[:18]}...",
                operation="create_organization",
            )
        if not verify_signature(organization_message_hash(address), signature, address):
            raise ChainError(
                "Organization signature does not verify",
                operation="create_organization",
            )
        org_id = len(self._orgs) + 1
        self._orgs[org_id] = {"address": address}
        self._org_by_address[address] = org_id
        return self._emit(ORGANIZATION_CREATED, {"org_id": org_id, "address": address})

    async def read_organization_id(self, tx_hash: str) -> int:
        return int(self._read_event(tx_hash, ORGANIZATION_CREATED)["org_id"])

    async def get_org_by_address(self, address: str) -> int:
        return self._org_by_address.get(address, 0)

    # ---------------------------------------------------------------- batches

    async def create_batch(self, batch_type: str, org_id: int) -> str:
        if int(org_id) not in self._orgs:
            raise ChainError(f"Unknown organization {org_id}", operation="create_batch")
        batch_id = len(self._batches) + 1
        self._batches[batch_id] = {"org_id": int(org_id), "type": batch_type, "root": None}
        return self._emit(BATCH_CREATED, {"batch_id": batch_id, "org_id": int(org_id)})

    async def read_batch_id(self, tx_hash: str) -> int:
        return int(self._read_event(tx_hash, BATCH_CREATED)["batch_id"])

    async def store_merkle_root(self, batch_id: int, root: str) -> str:
        batch = self._batch(batch_id, "store_merkle_root")
        try:
            value = ChainRoot(value=root).value
        except ValueError as e:
            raise ChainError(f"Invalid root {root!r}", operation="store_merkle_root") from e
        if batch["root"] is not None:
            if batch["root"] == value:
                return batch["root_tx"]
            raise ChainError(
                f"Batch {batch_id} already has a different root",
                operation="store_merkle_root",
            )
        batch["root"] = value
        tx_hash = self._emit(MERKLE_ROOT_STORED, {"batch_id": int(batch_id), "root": value})
        batch["root_tx"] = tx_hash
        self._save()
        return tx_hash

    async def get_merkle_root(self, batch_id: int) -> str:
        batch = self._batch(batch_id, "get_merkle_root")
        return batch["root"] or EMPTY_ROOT

    async def get_issuer_public_key(self, batch_id: int) -> str:
        batch = self._batch(batch_id, "get_issuer_public_key")
        return self._orgs[batch["org_id"]]["address"]

    # ------------------------------------------------------------- revocation

    async def revoke(self, commitment: str, batch_id: int) -> str:
        self._batch(batch_id, "revoke")
        key = (truncate_for_chain(commitment), int(batch_id))
        self._revoked.add(key)
        return self._emit(CREDENTIAL_REVOKED, {"commitment": key[0], "batch_id": key[1]})

    async def is_revoked(self, commitment: str, batch_id: int) -> bool:
        return (truncate_for_chain(commitment), int(batch_id)) in self._revoked
