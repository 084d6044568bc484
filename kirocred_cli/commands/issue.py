"""
Issuer commands: organization registration, batch issuance, revocation.

Usage:
    kirocred org register --key ISSUER_KEY [--name NAME]
    kirocred batch issue --key ISSUER_KEY --input batch.json [--out DIR]
    kirocred revoke --commitment C --batch-id N

batch.json:
    {
      "batchMetadata": {"description": "...", "purpose": "...", "issuedBy": "..."},
      "credentials": [
        {"credentialId": "...", "holderPublicKey": "0x04...", "attributes": {...}}
      ]
    }
Unsigned credentials are signed with the issuer key.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from argparse import Namespace
from pathlib import Path

from core.crypto.keys import public_key_from_private
from core.crypto.signatures import organization_message_hash, sign_message_hash
from core.issuance.issuer import prepare_credential
from core.schemas.credential import (
    BatchMetadata,
    BatchProcessingRequest,
    CredentialData,
)
from core.verification.nonce import current_time_ms
from kirocred_cli.state import emit, open_publisher, read_private_key, write_json

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_RUNTIME_ERROR = 1


def org_register_cmd(args: Namespace) -> int:
    """Register the key's address as an issuing organization."""
    private_key = read_private_key(args.key)
    address = public_key_from_private(private_key)
    signature = sign_message_hash(organization_message_hash(address), private_key)

    publisher = open_publisher(args)
    org_id = asyncio.run(publisher.register_organization(address, signature, args.name))

    emit(
        {"orgId": org_id, "address": address},
        args.json,
        f"Organization {org_id} registered for {address[:18]}...",
    )
    return EXIT_SUCCESS


def build_request(data: dict, issuer_private_key: str) -> BatchProcessingRequest:
    """Batch request from batch.json, signing credentials that are not signed yet."""
    issuer_address = public_key_from_private(issuer_private_key)

    credentials = []
    for raw in data.get("credentials") or []:
        credential = CredentialData.model_validate(raw)
        if not credential.issuer_signed_message:
            credential = prepare_credential(
                credential.credential_id or "",
                credential.holder_public_key or "",
                credential.attributes or {},
                issuer_private_key,
            )
        credentials.append(credential)

    metadata = dict(data.get("batchMetadata") or {})
    metadata.setdefault("timestamp", current_time_ms())

    return BatchProcessingRequest(
        credentials=credentials,
        issuer_address=issuer_address,
        batch_metadata=BatchMetadata.model_validate(metadata),
    )


def batch_issue_cmd(args: Namespace) -> int:
    """Process a batch and publish it under the issuer's organization."""
    input_path = Path(args.input)
    if not input_path.exists():
        print(f"Error: Input file not found: {input_path}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    private_key = read_private_key(args.key)
    request = build_request(json.loads(input_path.read_text(encoding="utf-8")), private_key)

    publisher = open_publisher(args)
    org_id = asyncio.run(publisher.chain.get_org_by_address(request.issuer_address))
    if not org_id:
        print("Error: Issuer is not registered; run `kirocred org register` first", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    publication = asyncio.run(publisher.process_and_publish(request, org_id))

    if args.out:
        out_dir = Path(args.out)
        for package in publication.packages:
            write_json(out_dir / f"{package.credential_id}.json", package.to_wire())
        logger.info(f"Wrote {len(publication.packages)} packages to {out_dir}")

    emit(
        publication.to_dict(),
        args.json,
        f"Published batch {publication.batch_id}: "
        f"{len(publication.packages)} credentials, root {publication.merkle_root}",
    )
    return EXIT_SUCCESS


def revoke_cmd(args: Namespace) -> int:
    publisher = open_publisher(args)
    tx_hash = asyncio.run(publisher.revoke(args.commitment, args.batch_id))
    emit(
        {"txHash": tx_hash, "commitment": args.commitment, "batchId": args.batch_id},
        args.json,
        f"Revoked in batch {args.batch_id} (tx {tx_hash})",
    )
    return EXIT_SUCCESS
