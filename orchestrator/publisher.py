"""
Batch publication.

Takes a processed batch out of the process: creates the batch on the
ledger, stamps the assigned batch id into every package, stores the
encrypted packages, stores the Merkle root and indexes the holders.

Steps run in order and each one's outputs are written to the intent log
before the next starts. A failure leaves the intent "failed" at that step;
resume() continues from there with the recorded batch id and content ids.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping, Optional

from core.batch.processor import process_batch, verify_batch_result
from core.config.runtime import RuntimeConfig
from core.schemas.credential import (
    BatchProcessingRequest,
    BatchProcessingResult,
    CredentialPackage,
)
from core.schemas.errors import PublicationError, ValidationException
from orchestrator.discovery import InMemoryDiscoveryIndex
from orchestrator.intent_log import (
    STEP_CREATE_BATCH,
    STEP_INDEX,
    STEP_STORE_PACKAGES,
    STEP_STORE_ROOT,
    IntentLog,
    InMemoryIntentLog,
    PublicationIntent,
    build_intent_log,
)
from orchestrator.ledger import InMemoryLedger
from orchestrator.ports import ChainClient, ContentStore, DiscoveryIndex
from orchestrator.storage import PackageVault, build_content_store

logger = logging.getLogger(__name__)

DEFAULT_BATCH_TYPE = "credential"


@dataclass
class BatchPublication:
    """Outcome of a completed publication."""

    intent_id: str
    batch_id: int
    merkle_root: str
    full_root: str
    batch_tx: Optional[str]
    root_tx: Optional[str]
    content_ids: list[str] = field(default_factory=list)
    packages: list[CredentialPackage] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "intentId": self.intent_id,
            "batchId": self.batch_id,
            "merkleRoot": self.merkle_root,
            "fullRoot": self.full_root,
            "batchTx": self.batch_tx,
            "rootTx": self.root_tx,
            "credentials": [
                {
                    "credentialId": pkg.credential_id,
                    "holderAddress": pkg.holder_public_key,
                    "contentId": content_id,
                }
                for pkg, content_id in zip(self.packages, self.content_ids)
            ],
        }


StepFn = Callable[[PublicationIntent, BatchProcessingResult], Awaitable[None]]


class BatchPublisher:
    """
    Publishes batches through injected chain, storage and discovery adapters.
    """

    def __init__(
        self,
        chain: ChainClient,
        store: ContentStore,
        discovery: Optional[DiscoveryIndex] = None,
        vault: Optional[PackageVault] = None,
        intent_log: Optional[IntentLog] = None,
        *,
        batch_type: str = DEFAULT_BATCH_TYPE,
    ) -> None:
        self.chain = chain
        self.store = store
        self.discovery = discovery
        self.vault = vault or PackageVault()
        self.intent_log = intent_log or InMemoryIntentLog()
        self.batch_type = batch_type

    @classmethod
    def from_config(cls, config: RuntimeConfig) -> BatchPublisher:
        """Wire the reference adapters from configuration."""
        return cls(
            chain=InMemoryLedger(config.chain.state_path),
            store=build_content_store(config.storage, config.http),
            discovery=InMemoryDiscoveryIndex(config.publication.discovery_path),
            vault=PackageVault(config.storage.package_key),
            intent_log=build_intent_log(config.publication.intent_log_path),
        )

    # ---------------------------------------------------------- organizations

    async def register_organization(
        self,
        address: str,
        signature: str,
        name: Optional[str] = None,
    ) -> int:
        """
        Register an issuing organization, or return its id if it exists.

        signature is the address key's signature over
        organization_message_hash(address).
        """
        existing = await self.chain.get_org_by_address(address)
        if existing:
            logger.info("Organization already registered: %d", existing)
            return existing

        tx_hash = await self.chain.create_organization(address, signature)
        org_id = await self.chain.read_organization_id(tx_hash)
        if self.discovery is not None:
            await self.discovery.record_organization(org_id, name or "", address)
        logger.info("Registered organization %d", org_id)
        return org_id

    # ------------------------------------------------------------ publication

    async def publish(
        self,
        result: BatchProcessingResult,
        org_id: int,
        description: str = "",
    ) -> BatchPublication:
        """
        Publish a processed batch.

        Raises:
            ValidationException: If the batch fails its self-check; nothing
                is written in that case.
            PublicationError: If a step fails. The intent id is on the error.
        """
        check = verify_batch_result(result)
        if not check.ok:
            raise ValidationException(
                "Batch result failed its self-check",
                details={"failed_checks": [c.check_id for c in check.get_failed_checks()]},
            )

        intent = PublicationIntent(
            org_id=int(org_id),
            description=description,
            merkle_root=result.merkle_root,
            credential_ids=[pkg.credential_id for pkg in result.credential_packages],
        )
        self.intent_log.save(intent)
        logger.info("Publishing batch of %d as intent %s", result.size, intent.intent_id)
        return await self._run(intent, result)

    async def resume(self, intent_id: str, result: BatchProcessingResult) -> BatchPublication:
        """
        Continue a failed or interrupted publication.

        result must be the same batch the intent was created for.
        """
        intent = self.intent_log.get(intent_id)
        if intent is None:
            raise ValidationException(f"Unknown publication intent {intent_id}")
        if intent.merkle_root != result.merkle_root:
            raise ValidationException(
                "Batch result does not match the publication intent",
                details={"intent_id": intent_id},
            )
        logger.info(
            "Resuming intent %s at %s", intent_id, ", ".join(intent.pending_steps) or "done"
        )
        return await self._run(intent, result)

    async def process_and_publish(
        self,
        request: BatchProcessingRequest | Mapping[str, Any],
        org_id: int,
    ) -> BatchPublication:
        result = process_batch(request)
        description = ""
        if isinstance(request, BatchProcessingRequest) and request.batch_metadata:
            description = request.batch_metadata.description
        elif isinstance(request, Mapping):
            description = (request.get("batchMetadata") or {}).get("description", "")
        return await self.publish(result, org_id, description=description)

    async def _run(
        self,
        intent: PublicationIntent,
        result: BatchProcessingResult,
    ) -> BatchPublication:
        steps: list[tuple[str, StepFn]] = [
            (STEP_CREATE_BATCH, self._step_create_batch),
            (STEP_STORE_PACKAGES, self._step_store_packages),
            (STEP_STORE_ROOT, self._step_store_root),
            (STEP_INDEX, self._step_index),
        ]
        for name, step in steps:
            if intent.is_done(name):
                continue
            try:
                await step(intent, result)
            except Exception as e:
                intent.fail(name, str(e))
                self.intent_log.save(intent)
                logger.error("Publication %s failed at %s: %s", intent.intent_id, name, e)
                raise PublicationError(
                    f"Publication failed at step {name}: {e}",
                    intent_id=intent.intent_id,
                    step=name,
                ) from e
            intent.complete(name)
            self.intent_log.save(intent)

        logger.info("Published batch %s (intent %s)", intent.batch_id, intent.intent_id)
        return BatchPublication(
            intent_id=intent.intent_id,
            batch_id=intent.batch_id,
            merkle_root=result.merkle_root,
            full_root=result.full_root,
            batch_tx=intent.batch_tx,
            root_tx=intent.root_tx,
            content_ids=list(intent.content_ids),
            packages=result.stamped(intent.batch_id),
        )

    async def _step_create_batch(
        self, intent: PublicationIntent, result: BatchProcessingResult
    ) -> None:
        if intent.batch_tx is None:
            intent.batch_tx = await self.chain.create_batch(self.batch_type, intent.org_id)
            self.intent_log.save(intent)
        intent.batch_id = await self.chain.read_batch_id(intent.batch_tx)

    async def _step_store_packages(
        self, intent: PublicationIntent, result: BatchProcessingResult
    ) -> None:
        blobs = [self.vault.seal(pkg) for pkg in result.stamped(intent.batch_id)]
        outcomes = await asyncio.gather(
            *(self.store.store(blob) for blob in blobs), return_exceptions=True
        )
        failures = [o for o in outcomes if isinstance(o, BaseException)]
        if failures:
            logger.warning("%d of %d package stores failed", len(failures), len(blobs))
            raise failures[0]
        intent.content_ids = list(outcomes)

    async def _step_store_root(
        self, intent: PublicationIntent, result: BatchProcessingResult
    ) -> None:
        intent.root_tx = await self.chain.store_merkle_root(intent.batch_id, result.merkle_root)

    async def _step_index(
        self, intent: PublicationIntent, result: BatchProcessingResult
    ) -> None:
        if self.discovery is None:
            return
        await self.discovery.record_batch(intent.batch_id, intent.org_id, intent.description)
        await self.discovery.record_credentials([
            {
                "holderAddress": pkg.holder_public_key,
                "batchId": str(intent.batch_id),
                "contentId": content_id,
                "credentialId": pkg.credential_id,
            }
            for pkg, content_id in zip(result.credential_packages, intent.content_ids)
        ])

    # ------------------------------------------------------------- lifecycle

    async def revoke(self, commitment: str, batch_id: int | str) -> str:
        tx_hash = await self.chain.revoke(commitment, int(batch_id))
        logger.info("Revoked credential in batch %s", batch_id)
        return tx_hash

    async def fetch_package(self, content_id: str) -> CredentialPackage:
        """Retrieve and decrypt a stored package."""
        blob = await self.store.retrieve(content_id)
        return self.vault.open(blob)
