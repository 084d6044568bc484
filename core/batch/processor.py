"""
Batch Processor

Issues N credentials, builds one Merkle tree over their commitments and
assembles one package per holder. Pure: storage, chain and discovery writes
belong to the orchestrator, which stamps the chain-assigned batch id into
each package before persisting it.

Leaf order is input order. A failure on any credential fails the whole
batch so leaf indices stay contiguous.
"""
from __future__ import annotations

import logging
from typing import Any, Mapping

from pydantic import ValidationError as PydanticValidationError

from core.issuance.issuer import issue_credential
from core.merkle.merkle_proofs import MerkleProver, MerkleVerifier
from core.merkle.merkle_tree import build_tree, get_full_root, get_root
from core.schemas.credential import (
    BatchProcessingRequest,
    BatchProcessingResult,
    ChainRoot,
    CredentialPackage,
    FullRoot,
    IssuedCredential,
)
from core.schemas.errors import (
    DuplicateCredentialError,
    EmptyBatchError,
    KirocredException,
    MissingMetadataError,
    ValidationException,
)
from core.schemas.verification import CheckResult, VerificationResult

logger = logging.getLogger(__name__)


def _coerce(request: BatchProcessingRequest | Mapping[str, Any]) -> BatchProcessingRequest:
    if isinstance(request, BatchProcessingRequest):
        return request
    try:
        return BatchProcessingRequest.model_validate(dict(request))
    except PydanticValidationError as e:
        raise ValidationException(
            "Malformed batch request",
            details={"errors": [err["msg"] for err in e.errors()]},
        ) from e


def _check_duplicates(request: BatchProcessingRequest) -> None:
    seen: dict[str, int] = {}
    for index, credential in enumerate(request.credentials):
        credential_id = credential.credential_id
        if credential_id is None:
            continue
        if credential_id in seen:
            raise DuplicateCredentialError(
                f"Duplicate credential id in batch: {credential_id}",
                details={
                    "credential_id": credential_id,
                    "first_index": seen[credential_id],
                    "index": index,
                },
            )
        seen[credential_id] = index


def _package(
    issued: IssuedCredential,
    proof_elements: list[str],
    proof_indices: list[int],
    issued_at: int,
    issuer_signed_message: str,
) -> CredentialPackage:
    return CredentialPackage(
        commitment=issued.commitment,
        path_elements=proof_elements,
        path_indices=proof_indices,
        encrypted_attributes=issued.encrypted_attributes,
        encrypted_key=issued.encrypted_key,
        batch_id="",
        credential_id=issued.credential_id,
        issued_at=issued_at,
        issuer_signed_message=issuer_signed_message,
        holder_public_key=issued.holder_public_key,
        attribute_salts=dict(issued.attribute_salts),
        salt=issued.salt,
    )


def process_batch(
    request: BatchProcessingRequest | Mapping[str, Any],
) -> BatchProcessingResult:
    """
    Process a batch of credentials.

    Raises:
        EmptyBatchError: If there are no credentials.
        MissingMetadataError: If issuer address or batch metadata is absent.
        DuplicateCredentialError: If two credentials share an id.
        KirocredException: Any issuance failure, re-raised with the failing
            index added to its details.
    """
    request = _coerce(request)

    if not request.credentials:
        raise EmptyBatchError("No credentials provided")
    if not request.issuer_address or request.batch_metadata is None:
        missing = [
            name for name, value in (
                ("issuer_address", request.issuer_address),
                ("batch_metadata", request.batch_metadata),
            ) if not value
        ]
        raise MissingMetadataError(
            "Missing issuer address or batch metadata",
            details={"missing": missing},
        )
    _check_duplicates(request)

    issued_credentials: list[IssuedCredential] = []
    for index, credential in enumerate(request.credentials):
        try:
            issued_credentials.append(issue_credential(credential, request.issuer_address))
        except KirocredException as e:
            e.details.setdefault("index", index)
            logger.warning("Batch failed at credential %d: %s", index, e.message)
            raise

    commitments = [issued.commitment for issued in issued_credentials]
    tree = build_tree(commitments)
    full_root = get_full_root(tree)
    merkle_root = get_root(tree)
    proofs = MerkleProver.prove_all(tree)

    issued_at = request.batch_metadata.timestamp
    packages = [
        _package(
            issued,
            list(proof.path_elements),
            list(proof.path_indices),
            issued_at,
            credential.issuer_signed_message,
        )
        for issued, proof, credential in zip(issued_credentials, proofs, request.credentials)
    ]

    logger.info(
        "Processed batch: %d credentials, root=%s", len(packages), merkle_root
    )

    return BatchProcessingResult(
        merkle_root=merkle_root,
        full_root=full_root,
        merkle_tree=tree,
        credential_packages=packages,
        issued_credentials=issued_credentials,
    )


def verify_batch_result(result: BatchProcessingResult) -> VerificationResult:
    """
    Self-check a batch before anything is published.

    Checks counts, leaf order, the root forms and every package proof
    against both roots. Never raises.
    """
    checks: list[CheckResult] = []

    packages = result.credential_packages
    if len(packages) == len(result.issued_credentials) == len(result.merkle_tree.leaves):
        checks.append(CheckResult.passed("counts", f"{len(packages)} packages"))
    else:
        checks.append(CheckResult.failed(
            "counts",
            "Package, credential and leaf counts differ",
            details={
                "packages": len(packages),
                "issued": len(result.issued_credentials),
                "leaves": len(result.merkle_tree.leaves),
            },
        ))

    leaf_order = [pkg.commitment for pkg in packages]
    if leaf_order == list(result.merkle_tree.leaves):
        checks.append(CheckResult.passed("leaf_order"))
    else:
        checks.append(CheckResult.failed("leaf_order", "Package order does not match leaves"))

    try:
        full_root = FullRoot(value=get_full_root(result.merkle_tree))
        chain_root = ChainRoot(value=result.merkle_root)
        stored_full = FullRoot(value=result.full_root)
    except (KirocredException, ValueError) as e:
        checks.append(CheckResult.failed("roots", f"Invalid roots: {e}"))
        return VerificationResult.from_checks(checks)

    if full_root == stored_full and full_root.to_chain() == chain_root:
        checks.append(CheckResult.passed("roots"))
    else:
        checks.append(CheckResult.failed("roots", "Stored roots do not match the tree"))

    proofs = [pkg.proof for pkg in packages]
    bad_full = MerkleVerifier.verify_all(leaf_order, proofs, full_root)
    bad_chain = MerkleVerifier.verify_all(leaf_order, proofs, chain_root)
    if not bad_full and not bad_chain:
        checks.append(CheckResult.passed("proofs", f"{len(proofs)} proofs verify"))
    else:
        checks.append(CheckResult.failed(
            "proofs",
            "Package proofs do not verify",
            details={"full_root": bad_full, "chain_root": bad_chain},
        ))

    return VerificationResult.from_checks(checks)
