"""
Runtime Configuration

Central configuration for the chain, storage, verification, publication and
logging setup used by the orchestrator and CLI.
"""

from __future__ import annotations

import copy
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

from core.verification.nonce import DEFAULT_NONCE_WINDOW_SECONDS

load_dotenv()

STORAGE_BACKENDS = ("memory", "file", "pinata")


@dataclass
class ChainConfig:
    """Ledger connection. state_path backs the file-persisted reference ledger."""
    rpc_url: Optional[str] = None
    contract_address: Optional[str] = None
    account_address: Optional[str] = None
    state_path: Optional[str] = None


@dataclass
class StorageConfig:
    """Content-addressed package storage."""
    backend: str = "memory"
    directory: Optional[str] = None
    pinata_jwt: Optional[str] = None
    pinata_gateway_url: Optional[str] = None
    # 0x hex AES-256 key used to encrypt packages at rest
    package_key: Optional[str] = None

    def __post_init__(self):
        if self.backend not in STORAGE_BACKENDS:
            raise ValueError(
                f"Unknown storage backend {self.backend!r}; expected one of {STORAGE_BACKENDS}"
            )


@dataclass
class HttpConfig:
    """Configuration for HTTP client."""
    timeout: float = 30.0
    user_agent: str = "kirocred/0.1"


@dataclass
class VerificationConfig:
    nonce_window_seconds: int = DEFAULT_NONCE_WINDOW_SECONDS


@dataclass
class PublicationConfig:
    """Where the publication intent log and discovery index live."""
    intent_log_path: Optional[str] = None
    discovery_path: Optional[str] = None


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: Optional[str] = None


@dataclass
class RuntimeConfig:
    """
    Complete runtime configuration for Kirocred.

    Can be loaded from:
    - Environment variables (and a .env file)
    - YAML file
    - Programmatic construction
    """
    chain: ChainConfig = field(default_factory=ChainConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    verification: VerificationConfig = field(default_factory=VerificationConfig)
    publication: PublicationConfig = field(default_factory=PublicationConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    extra: dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def _get_env_overrides() -> dict[str, Any]:
        """
        Get configuration overrides from environment variables.

        This is the SINGLE source of truth for all env var reading.

        Supported variables:
        - STARKNET_RPC_URL / KIROCRED_RPC_URL: ledger RPC endpoint
        - CONTRACT_ADDRESS / KIROCRED_CONTRACT_ADDRESS: ledger contract
        - KIROCRED_ACCOUNT_ADDRESS: issuing account
        - KIROCRED_CHAIN_STATE: reference ledger state file
        - KIROCRED_STORAGE_BACKEND: memory | file | pinata
        - KIROCRED_STORAGE_DIR: file store directory
        - PINATA_JWT, PINATA_GATEWAY_URL: Pinata credentials and gateway
        - KIROCRED_PACKAGE_KEY: package-at-rest encryption key (0x hex)
        - KIROCRED_NONCE_WINDOW: nonce freshness window in seconds
        - KIROCRED_INTENT_LOG: publication intent log file
        - KIROCRED_DISCOVERY_PATH: discovery index file
        - KIROCRED_LOG_LEVEL, KIROCRED_LOG_FILE: logging
        """
        overrides: dict[str, Any] = {}

        def put(section: str, key: str, *names: str) -> None:
            for name in names:
                value = os.getenv(name)
                if value:
                    overrides.setdefault(section, {})[key] = value
                    return

        # Chain settings (prefixed names win over the legacy ones)
        put("chain", "rpc_url", "KIROCRED_RPC_URL", "STARKNET_RPC_URL")
        put("chain", "contract_address", "KIROCRED_CONTRACT_ADDRESS", "CONTRACT_ADDRESS")
        put("chain", "account_address", "KIROCRED_ACCOUNT_ADDRESS")
        put("chain", "state_path", "KIROCRED_CHAIN_STATE")

        # Storage settings
        put("storage", "backend", "KIROCRED_STORAGE_BACKEND")
        put("storage", "directory", "KIROCRED_STORAGE_DIR")
        put("storage", "pinata_jwt", "KIROCRED_PINATA_JWT", "PINATA_JWT")
        put("storage", "pinata_gateway_url", "KIROCRED_PINATA_GATEWAY_URL", "PINATA_GATEWAY_URL")
        put("storage", "package_key", "KIROCRED_PACKAGE_KEY")

        # Verification
        if os.getenv("KIROCRED_NONCE_WINDOW"):
            overrides.setdefault("verification", {})["nonce_window_seconds"] = int(
                os.getenv("KIROCRED_NONCE_WINDOW")
            )

        # Publication
        put("publication", "intent_log_path", "KIROCRED_INTENT_LOG")
        put("publication", "discovery_path", "KIROCRED_DISCOVERY_PATH")

        # Logging
        put("logging", "level", "KIROCRED_LOG_LEVEL")
        put("logging", "file", "KIROCRED_LOG_FILE")

        return overrides

    @classmethod
    def from_env(cls) -> "RuntimeConfig":
        """
        Load configuration purely from environment variables.

        Uses defaults for any values not specified in env vars.
        """
        return cls.from_dict(cls._get_env_overrides())

    @classmethod
    def from_yaml(cls, path: str | Path) -> "RuntimeConfig":
        """Load configuration from a YAML file."""
        import yaml
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path) as f:
            data = yaml.safe_load(f)

        return cls.from_dict(data or {})

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RuntimeConfig":
        """Load configuration from a dictionary (supports partial data)."""
        return cls(
            chain=ChainConfig(**(data.get("chain") or {})),
            storage=StorageConfig(**(data.get("storage") or {})),
            http=HttpConfig(**(data.get("http") or {})),
            verification=VerificationConfig(**(data.get("verification") or {})),
            publication=PublicationConfig(**(data.get("publication") or {})),
            logging=LoggingConfig(**(data.get("logging") or {})),
            extra=data.get("extra", {}),
        )

    def with_env_overrides(self) -> "RuntimeConfig":
        """
        Return a new config with environment variable overrides applied.

        This allows loading from a config file first, then overlaying env vars.
        """
        overrides = self._get_env_overrides()
        if not overrides:
            return self

        new_config = copy.deepcopy(self)
        for section, values in overrides.items():
            target = getattr(new_config, section)
            for key, value in values.items():
                setattr(target, key, value)
        # Re-run section validation
        new_config.storage.__post_init__()
        return new_config

    def to_dict(self, redact: bool = True) -> dict[str, Any]:
        """Convert configuration to a dictionary, redacting secrets by default."""
        data = asdict(self)
        if redact:
            for key in ("pinata_jwt", "package_key"):
                if data["storage"].get(key):
                    data["storage"][key] = "***"
        return data
