"""
Key, nonce and signing commands.

Usage:
    kirocred keygen [--out FILE] [--json]
    kirocred nonce [--json]
    kirocred sign --key KEY (--nonce NONCE | --org)
"""

from __future__ import annotations

import logging
import sys
from argparse import Namespace
from pathlib import Path

from core.crypto.keys import generate_keypair, public_key_from_private
from core.crypto.signatures import (
    nonce_message_hash,
    organization_message_hash,
    sign_message_hash,
)
from core.verification.nonce import generate_nonce
from kirocred_cli.state import emit, read_private_key, write_json

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_RUNTIME_ERROR = 1


def keygen_cmd(args: Namespace) -> int:
    """Generate a secp256k1 keypair."""
    keypair = generate_keypair()
    data = keypair.to_wire()

    if args.out:
        out = Path(args.out)
        if out.exists():
            print(f"Error: Key file already exists: {out}", file=sys.stderr)
            return EXIT_RUNTIME_ERROR
        write_json(out, data)
        out.chmod(0o600)
        emit(
            {"publicKey": keypair.public_key, "path": str(out)},
            args.json,
            f"Wrote keypair to {out}\nPublic key (address): {keypair.public_key}",
        )
        return EXIT_SUCCESS

    emit(data, True)
    return EXIT_SUCCESS


def nonce_cmd(args: Namespace) -> int:
    nonce = generate_nonce()
    emit({"nonce": nonce}, args.json, nonce)
    return EXIT_SUCCESS


def sign_cmd(args: Namespace) -> int:
    """Sign a verifier's nonce (holder) or an organization registration."""
    private_key = read_private_key(args.key)

    if args.org:
        address = public_key_from_private(private_key)
        message_hash = organization_message_hash(address)
    elif args.nonce:
        message_hash = nonce_message_hash(args.nonce)
    else:
        print("Error: one of --nonce or --org is required", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    signature = sign_message_hash(message_hash, private_key)
    emit({"messageHash": message_hash, "signature": signature}, args.json, signature)
    return EXIT_SUCCESS
