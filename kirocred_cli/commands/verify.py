"""
Holder and verifier commands.

Usage:
    kirocred decrypt (--package FILE | --content-id ID) --key HOLDER_KEY [--json]
    kirocred verify (--package FILE | --content-id ID) --nonce N --signature S
                    (--attributes-hash H | --holder-key HOLDER_KEY) [--json] [--debug]

verify exits 2 when the credential is not valid.
"""

from __future__ import annotations

import asyncio
import logging
from argparse import Namespace
from dataclasses import asdict, dataclass, field
from typing import Any

from core.crypto.envelope import decrypt_attributes, decrypt_key_from_holder
from core.crypto.hashing import hash_attributes
from core.schemas.credential import CredentialPackage
from core.schemas.verification import CredentialVerificationRequest
from core.verification.engine import verify_credential
from kirocred_cli.state import emit, open_publisher, read_package, read_private_key
from orchestrator.publisher import BatchPublisher

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_RUNTIME_ERROR = 1
EXIT_VERIFICATION_FAILED = 2


@dataclass
class VerifySummary:
    """Summary of a credential verification for CLI output."""
    credential_id: str = ""
    batch_id: str = ""
    valid: bool = False
    checks: dict[str, bool] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)
    report: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        if not d["errors"]:
            del d["errors"]
        if not d["report"]:
            del d["report"]
        return d


def load_package(args: Namespace, publisher: BatchPublisher) -> CredentialPackage:
    if args.package:
        return read_package(args.package)
    return asyncio.run(publisher.fetch_package(args.content_id))


def open_attributes(package: CredentialPackage, holder_private_key: str) -> dict[str, Any]:
    """Holder side: unwrap the symmetric key and decrypt the attributes."""
    symmetric_key = decrypt_key_from_holder(package.encrypted_key, holder_private_key)
    encrypted = package.encrypted_attributes
    return decrypt_attributes(
        encrypted.ciphertext, symmetric_key, encrypted.iv, encrypted.auth_tag
    )


def decrypt_cmd(args: Namespace) -> int:
    publisher = open_publisher(args)
    package = load_package(args, publisher)
    attributes = open_attributes(package, read_private_key(args.key))
    emit({"credentialId": package.credential_id, "attributes": attributes}, True)
    return EXIT_SUCCESS


def _format_human(summary: VerifySummary) -> str:
    lines = [
        f"Credential: {summary.credential_id} (batch {summary.batch_id})",
        f"Valid: {'YES' if summary.valid else 'NO'}",
    ]
    for name, ok in summary.checks.items():
        lines.append(f"  [{'PASS' if ok else 'FAIL'}] {name}")
    for error in summary.errors:
        lines.append(f"  - {error}")
    return "\n".join(lines)


def verify_cmd(args: Namespace) -> int:
    """Verify a presented credential against the ledger."""
    publisher = open_publisher(args)
    package = load_package(args, publisher)

    attributes_hash = args.attributes_hash
    if not attributes_hash and args.holder_key:
        attributes_hash = hash_attributes(open_attributes(package, read_private_key(args.holder_key)))

    request = CredentialVerificationRequest.from_package(
        package,
        nonce=args.nonce,
        holder_signature=args.signature,
        attributes_hash=attributes_hash,
    )
    config = args.runtime_config
    result = asyncio.run(verify_credential(
        request,
        publisher.chain,
        nonce_window_seconds=config.verification.nonce_window_seconds,
    ))

    summary = VerifySummary(
        credential_id=result.credential_id,
        batch_id=result.batch_id,
        valid=result.valid,
        checks=result.checks.model_dump(),
        errors=list(result.errors),
        report=[c.model_dump(mode="json") for c in result.report] if args.debug else [],
    )
    emit(summary.to_dict(), args.json, _format_human(summary))

    return EXIT_SUCCESS if result.valid else EXIT_VERIFICATION_FAILED
