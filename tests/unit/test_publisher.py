"""
Batch publication tests
Tests for orchestrator/publisher.py

- Happy path: batch id stamped, packages stored, root on chain, holders indexed
- Step failure leaves a resumable intent; resume never creates a second batch
- Self-check failures write nothing
"""
import asyncio

import pytest

from core.batch.processor import process_batch
from core.crypto.signatures import organization_message_hash, sign_message_hash
from core.schemas.errors import ChainError, PublicationError, StorageError, ValidationException
from core.verification.engine import verify_credential
from orchestrator import (
    BatchPublisher,
    FileIntentLog,
    InMemoryContentStore,
    InMemoryDiscoveryIndex,
    InMemoryIntentLog,
    InMemoryLedger,
    PackageVault,
)
from orchestrator.intent_log import PUBLICATION_STEPS
from fixtures.common import make_batch, make_batch_request, make_keypair, make_presentation, run


class FlakyStore(InMemoryContentStore):
    """Fails the first `failures` store calls."""

    def __init__(self, failures: int = 1) -> None:
        super().__init__()
        self.failures = failures
        self.calls = 0

    async def store(self, blob: bytes) -> str:
        self.calls += 1
        if self.failures > 0:
            self.failures -= 1
            raise StorageError("IPFS gateway timeout", operation="store")
        return await super().store(blob)


class SlowStore(InMemoryContentStore):
    """The call at fail_at fails at once; every other call finishes after a pause."""

    def __init__(self, fail_at: int) -> None:
        super().__init__()
        self.fail_at = fail_at
        self.calls = 0
        self.finished = 0

    async def store(self, blob: bytes) -> str:
        call = self.calls
        self.calls += 1
        if call == self.fail_at:
            raise StorageError("pin rejected", operation="store")
        await asyncio.sleep(0.01)
        content_id = await super().store(blob)
        self.finished += 1
        return content_id


class CountingLedger(InMemoryLedger):

    def __init__(self) -> None:
        super().__init__()
        self.batches_created = 0
        self.read_failures = 0

    async def create_batch(self, batch_type: str, org_id: int) -> str:
        self.batches_created += 1
        return await super().create_batch(batch_type, org_id)

    async def read_batch_id(self, tx_hash: str) -> int:
        if self.read_failures > 0:
            self.read_failures -= 1
            raise ChainError("RPC node unavailable", operation="read_batch_id")
        return await super().read_batch_id(tx_hash)


def org_signature(keypair):
    return sign_message_hash(organization_message_hash(keypair.public_key), keypair.private_key)


def make_batch_for(issuer):
    """A processed two-credential batch signed by issuer."""
    return process_batch(make_batch_request(issuer, [make_keypair(), make_keypair()]))


def make_publisher(store=None, chain=None, intent_log=None):
    return BatchPublisher(
        chain=chain if chain is not None else InMemoryLedger(),
        store=store if store is not None else InMemoryContentStore(),
        discovery=InMemoryDiscoveryIndex(),
        intent_log=intent_log if intent_log is not None else InMemoryIntentLog(),
    )


@pytest.fixture
def setup():
    result, issuer, holders = make_batch(3)
    publisher = make_publisher()
    org_id = run(publisher.register_organization(issuer.public_key, org_signature(issuer), "Example University"))
    return publisher, result, issuer, holders, org_id


class TestRegisterOrganization:

    def test_register_records_discovery(self, issuer):
        publisher = make_publisher()
        org_id = run(publisher.register_organization(issuer.public_key, org_signature(issuer), "Uni"))
        assert org_id == 1
        assert publisher.discovery.organizations[1] == {"name": "Uni", "address": issuer.public_key}

    def test_register_is_idempotent(self, issuer):
        publisher = make_publisher()
        first = run(publisher.register_organization(issuer.public_key, org_signature(issuer)))
        assert run(publisher.register_organization(issuer.public_key, org_signature(issuer))) == first


class TestPublish:

    def test_publish(self, setup):
        publisher, result, issuer, _, org_id = setup

        publication = run(publisher.publish(result, org_id, "Spring 2024"))

        assert publication.batch_id == 1
        assert publication.merkle_root == result.merkle_root
        assert len(publication.content_ids) == 3
        assert all(pkg.batch_id == "1" for pkg in publication.packages)
        assert run(publisher.chain.get_merkle_root(1)) == result.merkle_root
        assert run(publisher.chain.get_issuer_public_key(1)) == issuer.public_key

    def test_stored_packages_are_stamped(self, setup):
        publisher, result, _, _, org_id = setup
        publication = run(publisher.publish(result, org_id))

        for content_id, expected in zip(publication.content_ids, publication.packages):
            assert run(publisher.fetch_package(content_id)) == expected

    def test_holders_indexed(self, setup):
        publisher, result, _, holders, org_id = setup
        publication = run(publisher.publish(result, org_id, "Spring 2024"))

        rows = run(publisher.discovery.credentials_for_holder(holders[1].public_key))
        assert rows == [{
            "holderAddress": holders[1].public_key,
            "batchId": "1",
            "contentId": publication.content_ids[1],
            "credentialId": "cred-001",
        }]
        assert publisher.discovery.batches[1] == {"orgId": org_id, "description": "Spring 2024"}

    def test_intent_completed(self, setup):
        publisher, result, _, _, org_id = setup
        publication = run(publisher.publish(result, org_id))

        intent = publisher.intent_log.get(publication.intent_id)
        assert intent.status == "completed"
        assert intent.completed_steps == list(PUBLICATION_STEPS)
        assert intent.batch_id == 1

    def test_published_packages_verify(self, setup):
        publisher, result, _, holders, org_id = setup
        publication = run(publisher.publish(result, org_id))

        package = run(publisher.fetch_package(publication.content_ids[0]))
        request = make_presentation(package, holders[0], result.issued_credentials[0].attributes_hash)
        assert run(verify_credential(request, publisher.chain)).valid

    def test_to_dict(self, setup):
        publisher, result, _, holders, org_id = setup
        data = run(publisher.publish(result, org_id)).to_dict()
        assert data["batchId"] == 1
        assert data["credentials"][2]["holderAddress"] == holders[2].public_key
        assert set(data) == {"intentId", "batchId", "merkleRoot", "fullRoot", "batchTx", "rootTx", "credentials"}

    def test_self_check_failure_writes_nothing(self, setup):
        publisher, result, _, _, org_id = setup
        broken = result.model_copy(update={"merkle_root": "0x" + "0" * 60})

        with pytest.raises(ValidationException) as exc:
            run(publisher.publish(broken, org_id))

        assert "roots" in exc.value.details["failed_checks"]
        assert publisher.intent_log.list_intents() == []
        assert len(publisher.store) == 0

    def test_unknown_org_fails_at_create_batch(self, setup):
        publisher, result, _, _, _ = setup
        with pytest.raises(PublicationError) as exc:
            run(publisher.publish(result, 42))
        assert exc.value.step == "create_batch"

    def test_process_and_publish(self, issuer):
        publisher = make_publisher()
        org_id = run(publisher.register_organization(issuer.public_key, org_signature(issuer)))
        request = make_batch_request(issuer, [make_keypair(), make_keypair()])

        publication = run(publisher.process_and_publish(request, org_id))

        assert len(publication.packages) == 2
        assert publisher.discovery.batches[publication.batch_id]["description"] == "Spring 2024 graduates"

    def test_process_and_publish_wire_request(self, issuer):
        publisher = make_publisher()
        org_id = run(publisher.register_organization(issuer.public_key, org_signature(issuer)))
        request = make_batch_request(issuer, [make_keypair()]).to_wire()

        publication = run(publisher.process_and_publish(request, org_id))

        assert publisher.discovery.batches[publication.batch_id]["description"] == "Spring 2024 graduates"


class TestResume:

    def test_store_failure_then_resume(self, issuer):
        chain = CountingLedger()
        store = FlakyStore(failures=1)
        publisher = make_publisher(store=store, chain=chain)
        org_id = run(publisher.register_organization(issuer.public_key, org_signature(issuer)))
        result = make_batch_for(issuer)

        with pytest.raises(PublicationError) as exc:
            run(publisher.publish(result, org_id))

        assert exc.value.step == "store_packages"
        assert exc.value.retryable
        intent = publisher.intent_log.get(exc.value.intent_id)
        assert intent.status == "failed"
        assert intent.failed_step == "store_packages"
        assert intent.completed_steps == ["create_batch"]
        assert "IPFS gateway timeout" in intent.error
        assert run(chain.get_merkle_root(intent.batch_id)) == "0x0"

        publication = run(publisher.resume(exc.value.intent_id, result))

        assert chain.batches_created == 1
        assert publication.batch_id == intent.batch_id
        assert run(chain.get_merkle_root(publication.batch_id)) == result.merkle_root
        assert publisher.intent_log.get(exc.value.intent_id).status == "completed"

    def test_store_failure_waits_for_sibling_stores(self, issuer):
        store = SlowStore(fail_at=1)
        publisher = make_publisher(store=store)
        org_id = run(publisher.register_organization(issuer.public_key, org_signature(issuer)))
        result = process_batch(make_batch_request(issuer, [make_keypair() for _ in range(3)]))

        with pytest.raises(PublicationError) as exc:
            run(publisher.publish(result, org_id))

        assert exc.value.step == "store_packages"
        assert "pin rejected" in str(exc.value)
        assert store.calls == 3
        assert store.finished == 2
        assert publisher.intent_log.get(exc.value.intent_id).content_ids == []

    def test_batch_read_failure_then_resume_reuses_transaction(self, issuer):
        chain = CountingLedger()
        chain.read_failures = 1
        publisher = make_publisher(chain=chain)
        org_id = run(publisher.register_organization(issuer.public_key, org_signature(issuer)))
        result = make_batch_for(issuer)

        with pytest.raises(PublicationError) as exc:
            run(publisher.publish(result, org_id))

        assert exc.value.step == "create_batch"
        intent = publisher.intent_log.get(exc.value.intent_id)
        assert intent.batch_tx is not None
        assert intent.completed_steps == []

        publication = run(publisher.resume(exc.value.intent_id, result))

        assert chain.batches_created == 1
        assert publication.batch_id == 1
        assert publication.batch_tx == intent.batch_tx

    def test_resume_completed_intent_is_a_no_op(self, setup):
        publisher, result, _, _, org_id = setup
        publication = run(publisher.publish(result, org_id))
        again = run(publisher.resume(publication.intent_id, result))
        assert again.batch_id == publication.batch_id
        assert again.content_ids == publication.content_ids

    def test_resume_unknown_intent(self, setup):
        publisher, result, _, _, _ = setup
        with pytest.raises(ValidationException, match="Unknown publication intent"):
            run(publisher.resume("missing", result))

    def test_resume_with_other_batch(self, setup, issuer):
        publisher, result, _, _, org_id = setup
        publication = run(publisher.publish(result, org_id))
        other, _, _ = make_batch(2)
        with pytest.raises(ValidationException, match="does not match"):
            run(publisher.resume(publication.intent_id, other))

    def test_file_intent_log_survives_restart(self, tmp_path, issuer):
        log_path = tmp_path / "intents.json"
        chain = CountingLedger()
        publisher = make_publisher(store=FlakyStore(failures=1), chain=chain, intent_log=FileIntentLog(log_path))
        org_id = run(publisher.register_organization(issuer.public_key, org_signature(issuer)))
        result = make_batch_for(issuer)

        with pytest.raises(PublicationError) as exc:
            run(publisher.publish(result, org_id))

        restarted = BatchPublisher(
            chain=chain,
            store=InMemoryContentStore(),
            discovery=InMemoryDiscoveryIndex(),
            vault=PackageVault(),
            intent_log=FileIntentLog(log_path),
        )
        publication = run(restarted.resume(exc.value.intent_id, result))

        assert chain.batches_created == 1
        assert len(publication.content_ids) == result.size
        assert [i.status for i in FileIntentLog(log_path).list_intents()] == ["completed"]


class TestRevoke:

    def test_revoke_published_credential(self, setup):
        publisher, result, _, holders, org_id = setup
        publication = run(publisher.publish(result, org_id))
        package = publication.packages[0]

        run(publisher.revoke(package.commitment, package.batch_id))

        assert run(publisher.chain.is_revoked(package.commitment, 1))
        request = make_presentation(package, holders[0], result.issued_credentials[0].attributes_hash)
        outcome = run(verify_credential(request, publisher.chain))
        assert not outcome.valid
        assert not outcome.checks.not_revoked
