"""
Kirocred CLI Main Entry Point

Parses command-line arguments and dispatches to subcommands.

Usage:
    python -m kirocred_cli keygen [--out FILE]
    python -m kirocred_cli org register --key KEY [--name NAME]
    python -m kirocred_cli batch issue --key KEY --input batch.json [--out DIR]
    python -m kirocred_cli nonce
    python -m kirocred_cli sign --key KEY (--nonce NONCE | --org)
    python -m kirocred_cli verify (--package FILE | --content-id ID) --nonce N --signature S
    python -m kirocred_cli decrypt (--package FILE | --content-id ID) --key KEY
    python -m kirocred_cli revoke --commitment C --batch-id N
    python -m kirocred_cli config --init

Environment Variables:
    KIROCRED_STORAGE_BACKEND    Package storage: memory, file, pinata
    KIROCRED_PACKAGE_KEY        Package-at-rest encryption key (0x hex)
    KIROCRED_NONCE_WINDOW       Nonce freshness window in seconds (default: 300)
    KIROCRED_LOG_LEVEL          Log level (default: INFO)
    PINATA_JWT                  Pinata API token
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import traceback
from pathlib import Path
from typing import Sequence

import yaml

from core.config.runtime import RuntimeConfig
from kirocred_cli import __version__
from kirocred_cli.commands import issue, keys, verify
from kirocred_cli.state import DEFAULT_STATE_DIR, apply_state_dir, load_runtime_config


# Exit codes
EXIT_SUCCESS = 0
EXIT_RUNTIME_ERROR = 1
EXIT_VERIFICATION_FAILED = 2


def setup_logging(level: str = "INFO", log_file: str | None = None) -> None:
    """Configure logging for the CLI."""
    log_level = getattr(logging, level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]

    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=handlers,
    )


def _add_package_source(parser: argparse.ArgumentParser) -> None:
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--package", "-p", type=str, help="Path to a package JSON file")
    source.add_argument("--content-id", type=str, help="Content id of a stored package")


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="kirocred",
        description="Kirocred CLI - Issue credential batches, present and verify credentials.",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "--config", "-c",
        type=Path,
        default=None,
        help="Path to a YAML configuration file",
    )
    parser.add_argument(
        "--state-dir",
        type=Path,
        default=Path(DEFAULT_STATE_DIR),
        help=f"Directory for ledger, packages and logs (default: {DEFAULT_STATE_DIR})",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (overrides config)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # --- keygen command ---
    keygen_parser = subparsers.add_parser(
        "keygen",
        help="Generate a secp256k1 keypair",
    )
    keygen_parser.add_argument("--out", "-o", type=str, default=None, help="Write keypair JSON here")
    keygen_parser.add_argument("--json", action="store_true", help="JSON output")
    keygen_parser.set_defaults(func=keys.keygen_cmd)

    # --- org command ---
    org_parser = subparsers.add_parser("org", help="Manage issuing organizations")
    org_subparsers = org_parser.add_subparsers(dest="org_command", help="Organization command")

    org_register = org_subparsers.add_parser(
        "register",
        help="Register the key's address as an organization",
    )
    org_register.add_argument("--key", "-k", type=str, required=True, help="Issuer key file or 0x hex")
    org_register.add_argument("--name", type=str, default=None, help="Organization name")
    org_register.add_argument("--json", action="store_true", help="JSON output")
    org_register.set_defaults(func=issue.org_register_cmd)

    org_parser.set_defaults(func=lambda args: org_parser.print_help() or EXIT_SUCCESS)

    # --- batch command ---
    batch_parser = subparsers.add_parser("batch", help="Issue credential batches")
    batch_subparsers = batch_parser.add_subparsers(dest="batch_command", help="Batch command")

    batch_issue = batch_subparsers.add_parser(
        "issue",
        help="Process and publish a batch",
        description="Sign, commit, batch and publish credentials from a JSON file.",
    )
    batch_issue.add_argument("--key", "-k", type=str, required=True, help="Issuer key file or 0x hex")
    batch_issue.add_argument("--input", "-i", type=str, required=True, help="Batch JSON file")
    batch_issue.add_argument("--out", "-o", type=str, default=None, help="Directory for holder packages")
    batch_issue.add_argument("--json", action="store_true", help="JSON output")
    batch_issue.set_defaults(func=issue.batch_issue_cmd)

    batch_parser.set_defaults(func=lambda args: batch_parser.print_help() or EXIT_SUCCESS)

    # --- nonce command ---
    nonce_parser = subparsers.add_parser("nonce", help="Generate a verifier nonce")
    nonce_parser.add_argument("--json", action="store_true", help="JSON output")
    nonce_parser.set_defaults(func=keys.nonce_cmd)

    # --- sign command ---
    sign_parser = subparsers.add_parser(
        "sign",
        help="Sign a nonce (holder) or an organization registration",
    )
    sign_parser.add_argument("--key", "-k", type=str, required=True, help="Key file or 0x hex")
    what = sign_parser.add_mutually_exclusive_group(required=True)
    what.add_argument("--nonce", type=str, help="Verifier nonce to sign")
    what.add_argument("--org", action="store_true", help="Sign the organization registration message")
    sign_parser.add_argument("--json", action="store_true", help="JSON output")
    sign_parser.set_defaults(func=keys.sign_cmd)

    # --- verify command ---
    verify_parser = subparsers.add_parser(
        "verify",
        help="Verify a presented credential",
        description="Check Merkle inclusion, revocation, holder and issuer signatures and nonce freshness.",
    )
    _add_package_source(verify_parser)
    verify_parser.add_argument("--nonce", type=str, required=True, help="Nonce the holder signed")
    verify_parser.add_argument("--signature", type=str, required=True, help="Holder signature over the nonce")
    disclosed = verify_parser.add_mutually_exclusive_group()
    disclosed.add_argument("--attributes-hash", type=str, default=None, help="Disclosed attributes hash")
    disclosed.add_argument(
        "--holder-key",
        type=str,
        default=None,
        help="Holder key; decrypts the package to compute the attributes hash",
    )
    verify_parser.add_argument("--json", action="store_true", help="JSON output")
    verify_parser.add_argument("--debug", action="store_true", help="Include detailed checks")
    verify_parser.set_defaults(func=verify.verify_cmd)

    # --- decrypt command ---
    decrypt_parser = subparsers.add_parser("decrypt", help="Decrypt a package's attributes")
    _add_package_source(decrypt_parser)
    decrypt_parser.add_argument("--key", "-k", type=str, required=True, help="Holder key file or 0x hex")
    decrypt_parser.set_defaults(func=verify.decrypt_cmd)

    # --- revoke command ---
    revoke_parser = subparsers.add_parser("revoke", help="Revoke a credential")
    revoke_parser.add_argument("--commitment", type=str, required=True, help="Credential commitment")
    revoke_parser.add_argument("--batch-id", type=int, required=True, help="Batch id")
    revoke_parser.add_argument("--json", action="store_true", help="JSON output")
    revoke_parser.set_defaults(func=issue.revoke_cmd)

    # --- config command ---
    config_parser = subparsers.add_parser(
        "config",
        help="Manage configuration",
        description="Initialize or display configuration.",
    )
    config_parser.add_argument(
        "--init",
        action="store_true",
        default=False,
        help="Create a template configuration file",
    )
    config_parser.add_argument(
        "--show",
        action="store_true",
        default=False,
        help="Show current configuration (secrets redacted)",
    )
    config_parser.add_argument(
        "--path",
        type=str,
        default="kirocred.yaml",
        help="Path for config file (default: kirocred.yaml)",
    )
    config_parser.set_defaults(func=config_cmd)

    return parser


def get_default_config_template() -> str:
    return yaml.safe_dump(RuntimeConfig().to_dict(), sort_keys=False)


def config_cmd(args: argparse.Namespace) -> int:
    """Handle config command."""
    if args.init:
        config_path = Path(args.path)
        if config_path.exists():
            print(f"Error: Config file already exists: {config_path}", file=sys.stderr)
            return EXIT_RUNTIME_ERROR

        config_path.write_text(get_default_config_template())
        print(f"Created configuration file: {config_path}")
        print("\nEdit this file to configure your settings.")
        print("You can also use environment variables (KIROCRED_* prefix).")
        return EXIT_SUCCESS

    if args.show:
        print(json.dumps(args.runtime_config.to_dict(redact=True), indent=2))
        return EXIT_SUCCESS

    # Default: show help
    print("Usage: kirocred config [--init|--show]")
    print("  --init  Create a template configuration file")
    print("  --show  Show current configuration")
    return EXIT_SUCCESS


def main(argv: Sequence[str] | None = None) -> int:
    """
    Main entry point for the CLI.

    Returns:
        Exit code (0=success, 1=error, 2=verification failed)
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return EXIT_RUNTIME_ERROR

    # Load configuration
    try:
        config = load_runtime_config(args.config)
        if args.command != "config":
            config = apply_state_dir(config, args.state_dir)
    except Exception as e:
        print(f"Error loading configuration: {e}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    # Setup logging
    log_level = args.log_level or config.logging.level
    setup_logging(level=log_level, log_file=config.logging.file)

    # Attach config to args for commands to use
    args.runtime_config = config

    try:
        return args.func(args)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return EXIT_RUNTIME_ERROR
    except Exception as e:
        if getattr(args, "debug", False):
            traceback.print_exc()
        else:
            print(f"Error: {e}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR


if __name__ == "__main__":
    sys.exit(main())
