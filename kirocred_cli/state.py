"""
CLI state and shared helpers.

Everything a command needs between invocations lives in files under the
state directory: the ledger, the package store, the intent log, the
discovery index and the package-at-rest key.
"""

from __future__ import annotations

import json
from argparse import Namespace
from pathlib import Path
from typing import Any, Optional

from core.config.runtime import RuntimeConfig
from core.crypto.envelope import generate_symmetric_key
from core.schemas.credential import CredentialPackage
from orchestrator.publisher import BatchPublisher

DEFAULT_STATE_DIR = ".kirocred"
PACKAGE_KEY_FILE = "package.key"


def load_runtime_config(config_path: Optional[Path] = None) -> RuntimeConfig:
    """YAML file (if given) overlaid with environment variables."""
    if config_path is not None:
        return RuntimeConfig.from_yaml(config_path).with_env_overrides()
    return RuntimeConfig.from_env()


def apply_state_dir(config: RuntimeConfig, state_dir: str | Path) -> RuntimeConfig:
    """
    Point unset file locations at the state directory.

    The in-memory storage backend does not survive between commands, so it
    is switched to the file backend here.
    """
    state_dir = Path(state_dir)
    state_dir.mkdir(parents=True, exist_ok=True)

    if not config.chain.state_path:
        config.chain.state_path = str(state_dir / "ledger.json")
    if config.storage.backend == "memory":
        config.storage.backend = "file"
    if config.storage.backend == "file" and not config.storage.directory:
        config.storage.directory = str(state_dir / "packages")
    if not config.publication.intent_log_path:
        config.publication.intent_log_path = str(state_dir / "intents.json")
    if not config.publication.discovery_path:
        config.publication.discovery_path = str(state_dir / "discovery.json")
    if not config.storage.package_key:
        config.storage.package_key = _package_key(state_dir)
    return config


def _package_key(state_dir: Path) -> str:
    path = state_dir / PACKAGE_KEY_FILE
    if path.exists():
        return path.read_text(encoding="utf-8").strip()
    key = generate_symmetric_key()
    path.write_text(key, encoding="utf-8")
    path.chmod(0o600)
    return key


def open_publisher(args: Namespace) -> BatchPublisher:
    return BatchPublisher.from_config(args.runtime_config)


def read_private_key(value: str) -> str:
    """
    Private key from a keygen JSON file or a literal 0x hex string.
    """
    if value.startswith("0x"):
        return value
    path = Path(value)
    if not path.exists():
        raise FileNotFoundError(f"Key file not found: {path}")
    data = json.loads(path.read_text(encoding="utf-8"))
    key = data.get("privateKey")
    if not key:
        raise ValueError(f"No privateKey in {path}")
    return key


def read_package(path: str | Path) -> CredentialPackage:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Package file not found: {path}")
    return CredentialPackage.model_validate_json(path.read_text(encoding="utf-8"))


def write_json(path: str | Path, data: Any) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


def emit(data: Any, as_json: bool, human: Optional[str] = None) -> None:
    """Print JSON when asked (or when there is no human form)."""
    if as_json or human is None:
        print(json.dumps(data, indent=2))
    else:
        print(human)
