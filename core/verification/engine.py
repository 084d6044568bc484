"""
Verification Engine

Checks a presented credential against chain state. Unlike the rest of the
core this never fails fast: every check runs, and every failure is reported
as a failed check plus a human-readable reason.

Checks:
- merkle_proof: proof folds to the root the chain holds for the batch
- not_revoked: the chain has not revoked (commitment, batch)
- holder_signature: holder signed the verifier's nonce with the package key
- nonce_fresh: nonce timestamp is inside the window
- issuer_signature: commitment opens to (id, holder key, attributesHash,
  salt) and the batch issuer signed the content digest
- attributes_match: selective disclosure placeholder, always passes
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping, Protocol, runtime_checkable

from pydantic import ValidationError as PydanticValidationError

from core.crypto.hashing import compute_commitment
from core.crypto.signatures import (
    credential_message_hash,
    nonce_message_hash,
    verify_signature,
)
from core.merkle.merkle_proofs import verify_proof_against_root
from core.schemas.credential import ChainRoot
from core.schemas.verification import (
    CheckResult,
    CredentialVerificationRequest,
    CredentialVerificationResult,
    VerificationChecks,
)
from core.verification.nonce import (
    DEFAULT_NONCE_WINDOW_SECONDS,
    current_time_ms,
    validate_nonce,
)

logger = logging.getLogger(__name__)


@runtime_checkable
class ChainReader(Protocol):
    """Read-only chain surface the verifier needs."""

    async def get_merkle_root(self, batch_id: int) -> str: ...

    async def is_revoked(self, commitment: str, batch_id: int) -> bool: ...

    async def get_issuer_public_key(self, batch_id: int) -> str: ...


def _parse_batch_id(batch_id: str) -> int | None:
    try:
        value = int(batch_id)
    except (TypeError, ValueError):
        return None
    return value if value >= 0 else None


def _error_text(error: BaseException) -> str:
    return getattr(error, "message", None) or str(error) or type(error).__name__


async def _read_chain(
    chain: ChainReader, batch_id: int, commitment: str
) -> tuple[Any, Any, Any]:
    """Root, revocation flag and issuer key; exceptions are returned, not raised."""
    results = await asyncio.gather(
        chain.get_merkle_root(batch_id),
        chain.is_revoked(commitment, batch_id),
        chain.get_issuer_public_key(batch_id),
        return_exceptions=True,
    )
    return results[0], results[1], results[2]


def _check_merkle(request: CredentialVerificationRequest, root: Any) -> CheckResult:
    if isinstance(root, BaseException):
        return CheckResult.failed(
            "merkle_proof", f"Failed to fetch merkle root: {_error_text(root)}"
        )
    if not root:
        return CheckResult.failed("merkle_proof", "No merkle root published for batch")
    try:
        chain_root = ChainRoot(value=str(root))
    except PydanticValidationError:
        return CheckResult.failed("merkle_proof", f"Malformed merkle root from chain: {root}")
    if int(chain_root.value, 16) == 0:
        return CheckResult.failed("merkle_proof", "No merkle root published for batch")
    if verify_proof_against_root(
        request.commitment, request.path_elements, request.path_indices, chain_root
    ):
        return CheckResult.passed("merkle_proof", "Commitment is in the batch")
    return CheckResult.failed(
        "merkle_proof", "Merkle proof verification failed - credential not in batch"
    )


def _check_revocation(revoked: Any) -> CheckResult:
    if isinstance(revoked, BaseException):
        return CheckResult.failed(
            "not_revoked", f"Failed to check revocation status: {_error_text(revoked)}"
        )
    if revoked:
        return CheckResult.failed("not_revoked", "Credential has been revoked by issuer")
    return CheckResult.passed("not_revoked", "Credential is not revoked")


def _check_holder(request: CredentialVerificationRequest) -> CheckResult:
    ok = verify_signature(
        nonce_message_hash(request.nonce),
        request.holder_signature,
        request.holder_public_key,
    )
    if ok:
        return CheckResult.passed("holder_signature", "Holder signed the nonce")
    return CheckResult.failed("holder_signature", "Holder signature verification failed")


def _check_nonce(
    request: CredentialVerificationRequest, now_ms: int, window_seconds: int
) -> CheckResult:
    if validate_nonce(request.nonce, now_ms, window_seconds):
        return CheckResult.passed("nonce_fresh", "Nonce is fresh")
    return CheckResult.failed(
        "nonce_fresh",
        "Invalid nonce format or nonce outside the freshness window",
        details={"window_seconds": window_seconds},
    )


def _check_issuer(request: CredentialVerificationRequest, issuer_key: Any) -> CheckResult:
    if isinstance(issuer_key, BaseException):
        return CheckResult.failed(
            "issuer_signature", f"Failed to fetch issuer key: {_error_text(issuer_key)}"
        )
    if not issuer_key:
        return CheckResult.failed("issuer_signature", "No issuer registered for batch")
    if not request.attributes_hash or not request.salt:
        return CheckResult.failed(
            "issuer_signature",
            "Issuer signature needs the disclosed attributes hash and commitment salt",
        )

    recomputed = compute_commitment(
        request.credential_id,
        request.holder_public_key,
        request.attributes_hash,
        request.salt,
    )
    if recomputed.lower() != request.commitment.lower():
        return CheckResult.failed(
            "issuer_signature", "Commitment does not open to the disclosed attributes hash"
        )

    digest = credential_message_hash(
        request.credential_id, request.holder_public_key, request.attributes_hash
    )
    if verify_signature(digest, request.issuer_signed_message, str(issuer_key)):
        return CheckResult.passed("issuer_signature", "Issuer signed the credential content")
    return CheckResult.failed("issuer_signature", "Issuer signature verification failed")


def _result(
    request_fields: Mapping[str, str],
    report: list[CheckResult],
    now_ms: int,
) -> CredentialVerificationResult:
    by_id = {check.check_id: check for check in report}
    checks = VerificationChecks(
        merkle_proof_valid=by_id["merkle_proof"].ok,
        not_revoked=by_id["not_revoked"].ok,
        holder_signature_valid=by_id["holder_signature"].ok,
        nonce_valid=by_id["nonce_fresh"].ok,
        issuer_signature_valid=by_id["issuer_signature"].ok,
        attributes_match=by_id["attributes_match"].ok,
    )
    return CredentialVerificationResult(
        valid=all(checks.load_bearing),
        checks=checks,
        errors=[check.message for check in report if not check.ok],
        report=report,
        batch_id=request_fields.get("batch_id", ""),
        credential_id=request_fields.get("credential_id", ""),
        verified_at=now_ms,
    )


async def verify_credential(
    request: CredentialVerificationRequest | Mapping[str, Any],
    chain_reader: ChainReader,
    *,
    now_ms: int | None = None,
    nonce_window_seconds: int = DEFAULT_NONCE_WINDOW_SECONDS,
) -> CredentialVerificationResult:
    """
    Verify a presented credential. Never raises.

    Args:
        request: Package fields plus nonce, holder signature and the
            disclosed attributes hash.
        chain_reader: Source of roots, revocation state and issuer keys.
        now_ms: Verification time in Unix ms (defaults to the clock).
        nonce_window_seconds: Nonce freshness window.
    """
    if now_ms is None:
        now_ms = current_time_ms()

    if not isinstance(request, CredentialVerificationRequest):
        try:
            request = CredentialVerificationRequest.model_validate(dict(request))
        except (PydanticValidationError, TypeError, ValueError) as e:
            names = ("merkle_proof", "not_revoked", "holder_signature", "nonce_fresh", "issuer_signature")
            report = [CheckResult.failed(name, f"Malformed verification request: {e}") for name in names]
            report.append(CheckResult.warning("attributes_match", "Selective disclosure not checked"))
            return _result({}, report, now_ms)

    batch_id = _parse_batch_id(request.batch_id)
    if batch_id is None:
        invalid = ValueError(f"Invalid batch ID format: {request.batch_id!r}")
        root, revoked, issuer_key = invalid, invalid, invalid
    else:
        try:
            root, revoked, issuer_key = await _read_chain(chain_reader, batch_id, request.commitment)
        except Exception as e:
            logger.warning("Chain read failed for batch %s: %s", batch_id, e)
            root, revoked, issuer_key = e, e, e

    report = [
        _check_merkle(request, root),
        _check_revocation(revoked),
        _check_holder(request),
        _check_nonce(request, now_ms, nonce_window_seconds),
        _check_issuer(request, issuer_key),
        CheckResult.warning("attributes_match", "Selective disclosure not checked"),
    ]

    result = _result(
        {"batch_id": request.batch_id, "credential_id": request.credential_id},
        report,
        now_ms,
    )
    logger.info(
        "Verified credential %s in batch %s: valid=%s",
        request.credential_id, request.batch_id, result.valid,
    )
    return result
