"""
Discovery index.

Maps holders to the packages issued to them so a wallet can find its
credentials. Lookup convenience only: nothing here is trusted during
verification.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

from core.schemas.errors import DiscoveryError
from orchestrator.persistence import read_json, write_json_atomic

logger = logging.getLogger(__name__)

CREDENTIAL_ROW_FIELDS = ("holderAddress", "batchId", "contentId", "credentialId")


class InMemoryDiscoveryIndex:
    """DiscoveryIndex over dicts, optionally persisted to one JSON file."""

    def __init__(self, path: Optional[str | Path] = None) -> None:
        self.path = Path(path) if path else None
        self.organizations: dict[int, dict[str, Any]] = {}
        self.batches: dict[int, dict[str, Any]] = {}
        self.credentials: list[dict[str, str]] = []
        if self.path:
            state = read_json(self.path, default={})
            self.organizations = {int(k): v for k, v in state.get("organizations", {}).items()}
            self.batches = {int(k): v for k, v in state.get("batches", {}).items()}
            self.credentials = list(state.get("credentials", []))

    def _save(self) -> None:
        if not self.path:
            return
        try:
            write_json_atomic(self.path, {
                "organizations": {str(k): v for k, v in self.organizations.items()},
                "batches": {str(k): v for k, v in self.batches.items()},
                "credentials": self.credentials,
            })
        except OSError as e:
            raise DiscoveryError(f"Failed to write {self.path}: {e}", operation="save") from e

    async def record_organization(self, org_id: int, name: str, address: str) -> None:
        self.organizations[int(org_id)] = {"name": name, "address": address}
        self._save()

    async def record_batch(self, batch_id: int, org_id: int, description: str = "") -> None:
        self.batches[int(batch_id)] = {"orgId": int(org_id), "description": description}
        self._save()

    async def record_credentials(self, rows: list[dict[str, str]]) -> None:
        for row in rows:
            missing = [name for name in CREDENTIAL_ROW_FIELDS if not row.get(name)]
            if missing:
                raise DiscoveryError(
                    f"Credential row missing {', '.join(missing)}",
                    operation="record_credentials",
                )
        known = {(r["contentId"], r["credentialId"]) for r in self.credentials}
        added = [
            {name: str(row[name]) for name in CREDENTIAL_ROW_FIELDS}
            for row in rows
            if (row["contentId"], row["credentialId"]) not in known
        ]
        self.credentials.extend(added)
        self._save()
        logger.debug("Indexed %d credential rows", len(added))

    async def credentials_for_holder(self, holder_address: str) -> list[dict[str, str]]:
        return [dict(r) for r in self.credentials if r["holderAddress"] == holder_address]
