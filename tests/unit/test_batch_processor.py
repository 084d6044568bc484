"""
Batch processing tests
Tests for core/batch/processor.py
"""
import pytest

from core.batch.processor import process_batch, verify_batch_result
from core.merkle import verify_proof, verify_proof_against_root
from core.schemas.credential import BatchProcessingRequest, ChainRoot, CredentialData
from core.schemas.errors import (
    DuplicateCredentialError,
    EmptyBatchError,
    InvalidSignatureError,
    MissingFieldError,
    MissingMetadataError,
    ValidationException,
)
from fixtures.common import (
    BATCH_TIMESTAMP,
    make_batch_metadata,
    make_batch_request,
    make_credential_data,
    make_keypair,
)


class TestProcessBatch:

    def test_counts_and_order(self, batch):
        result, _, holders = batch

        assert result.size == 3
        assert [p.credential_id for p in result.credential_packages] == ["cred-000", "cred-001", "cred-002"]
        assert [p.commitment for p in result.credential_packages] == result.merkle_tree.leaves
        assert [p.holder_public_key for p in result.credential_packages] == [h.public_key for h in holders]

    def test_roots(self, batch):
        result, _, _ = batch
        assert len(result.full_root) == 66
        assert result.merkle_root == result.full_root[:62]

    def test_every_package_proof_verifies(self, batch):
        result, _, _ = batch
        for package in result.credential_packages:
            assert verify_proof(package.commitment, package.path_elements, package.path_indices, result.full_root)
            assert verify_proof_against_root(
                package.commitment, package.path_elements, package.path_indices, result.chain_root()
            )

    def test_issued_at_is_batch_timestamp(self, batch):
        result, _, _ = batch
        assert {p.issued_at for p in result.credential_packages} == {BATCH_TIMESTAMP}

    def test_issuer_signature_carried_into_package(self, issuer):
        holders = [make_keypair()]
        request = make_batch_request(issuer, holders)
        result = process_batch(request)
        assert result.credential_packages[0].issuer_signed_message == \
            request.credentials[0].issuer_signed_message

    def test_single_credential_root_is_commitment(self, issuer):
        result = process_batch(make_batch_request(issuer, [make_keypair()]))
        assert result.full_root == result.credential_packages[0].commitment
        assert result.credential_packages[0].path_elements == []

    def test_accepts_wire_mapping(self, issuer):
        request = make_batch_request(issuer, [make_keypair(), make_keypair()])
        result = process_batch(request.to_wire())
        assert result.size == 2


class TestProcessBatchErrors:

    def test_empty_batch(self, issuer):
        request = BatchProcessingRequest(
            credentials=[], issuer_address=issuer.public_key, batch_metadata=make_batch_metadata()
        )
        with pytest.raises(EmptyBatchError):
            process_batch(request)

    def test_missing_metadata(self, issuer, holder):
        request = BatchProcessingRequest(
            credentials=[make_credential_data(issuer, holder)], issuer_address=issuer.public_key
        )
        with pytest.raises(MissingMetadataError) as exc:
            process_batch(request)
        assert exc.value.details["missing"] == ["batch_metadata"]

    def test_missing_issuer(self, issuer, holder):
        request = BatchProcessingRequest(
            credentials=[make_credential_data(issuer, holder)], batch_metadata=make_batch_metadata()
        )
        with pytest.raises(MissingMetadataError):
            process_batch(request)

    def test_duplicate_ids(self, issuer, holder):
        request = BatchProcessingRequest(
            credentials=[
                make_credential_data(issuer, holder, "same"),
                make_credential_data(issuer, make_keypair(), "other"),
                make_credential_data(issuer, make_keypair(), "same"),
            ],
            issuer_address=issuer.public_key,
            batch_metadata=make_batch_metadata(),
        )
        with pytest.raises(DuplicateCredentialError) as exc:
            process_batch(request)
        assert exc.value.details["first_index"] == 0
        assert exc.value.details["index"] == 2

    def test_failure_reports_index(self, issuer):
        holders = [make_keypair() for _ in range(3)]
        request = make_batch_request(issuer, holders)
        credentials = list(request.credentials)
        credentials[1] = credentials[1].model_copy(update={"issuer_signed_message": credentials[0].issuer_signed_message})
        with pytest.raises(InvalidSignatureError) as exc:
            process_batch(request.model_copy(update={"credentials": credentials}))
        assert exc.value.details["index"] == 1

    def test_missing_field_reports_index(self, issuer):
        request = make_batch_request(issuer, [make_keypair(), make_keypair()])
        credentials = [request.credentials[0], CredentialData(credential_id="x")]
        with pytest.raises(MissingFieldError) as exc:
            process_batch(request.model_copy(update={"credentials": credentials}))
        assert exc.value.details["index"] == 1

    def test_malformed_mapping(self):
        with pytest.raises(ValidationException):
            process_batch({"credentials": "nope"})


class TestVerifyBatchResult:

    def test_fresh_batch_passes(self, batch):
        result, _, _ = batch
        report = verify_batch_result(result)
        assert report.ok
        assert [c.check_id for c in report.checks] == ["counts", "leaf_order", "roots", "proofs"]

    def test_reordered_packages_fail(self, batch):
        result, _, _ = batch
        reordered = result.model_copy(
            update={"credential_packages": list(reversed(result.credential_packages))}
        )
        report = verify_batch_result(reordered)
        assert not report.ok
        assert "leaf_order" in [c.check_id for c in report.get_failed_checks()]

    def test_wrong_chain_root_fails(self, batch):
        result, _, _ = batch
        tampered = result.model_copy(update={"merkle_root": "0x" + "0" * 60})
        report = verify_batch_result(tampered)
        assert [c.check_id for c in report.get_failed_checks()] == ["roots", "proofs"]

    def test_malformed_root_fails_without_raising(self, batch):
        result, _, _ = batch
        report = verify_batch_result(result.model_copy(update={"full_root": "0xnope"}))
        assert not report.ok
        assert report.checks[-1].check_id == "roots"

    def test_tampered_proof_fails(self, batch):
        result, _, _ = batch
        packages = list(result.credential_packages)
        packages[0] = packages[0].model_copy(update={"path_elements": list(reversed(packages[0].path_elements))})
        report = verify_batch_result(result.model_copy(update={"credential_packages": packages}))
        failed = report.get_failed_checks()
        assert [c.check_id for c in failed] == ["proofs"]
        assert failed[0].details["full_root"] == [0]

    def test_dropped_package_fails_counts(self, batch):
        result, _, _ = batch
        report = verify_batch_result(
            result.model_copy(update={"credential_packages": result.credential_packages[:2]})
        )
        assert not report.ok
        assert report.checks[0].check_id == "counts"
        assert not report.checks[0].ok
