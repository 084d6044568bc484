"""
Package storage.

- PackageVault: AES-256-GCM encrypts a package's JSON before it leaves the
  process; the stored blob is JSON {encryptedData, iv, authTag}.
- ContentStore adapters: in-memory, file (content id = SHA-256 of the blob)
  and Pinata (pin JSON, read back through a gateway).
"""
from __future__ import annotations

import asyncio
import json
import logging
import secrets
from pathlib import Path
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from pydantic import ValidationError as PydanticValidationError

from core.config.runtime import HttpConfig, StorageConfig
from core.crypto.envelope import (
    IV_LENGTH,
    KEY_LENGTH,
    TAG_LENGTH,
    generate_symmetric_key,
)
from core.crypto.hashing import from_hex, sha256_hex, to_hex
from core.http.client import HttpClient, HttpError
from core.schemas.credential import CredentialPackage
from core.schemas.errors import (
    AuthenticationError,
    MalformedCiphertextError,
    StorageError,
)
from core.schemas.versioning import assert_supported_package_version
from orchestrator.ports import ContentStore

logger = logging.getLogger(__name__)

PINATA_API_URL = "https://api.pinata.cloud"


# =============================================================================
# Vault
# =============================================================================

class PackageVault:
    """
    Encrypts packages at rest under one AES-256 key.

    Without a key a fresh one is generated; it must then be kept (see
    .key) or stored packages cannot be read back.
    """

    def __init__(self, key: Optional[str] = None) -> None:
        self.key = key or generate_symmetric_key()
        raw = from_hex(self.key)
        if len(raw) != KEY_LENGTH:
            raise ValueError(f"Package key must be {KEY_LENGTH} bytes")
        self._aead = AESGCM(raw)

    def seal(self, package: CredentialPackage) -> bytes:
        plaintext = json.dumps(package.to_wire(), separators=(",", ":")).encode("utf-8")
        iv = secrets.token_bytes(IV_LENGTH)
        sealed = self._aead.encrypt(iv, plaintext, None)
        envelope = {
            "encryptedData": to_hex(sealed[:-TAG_LENGTH]),
            "iv": to_hex(iv),
            "authTag": to_hex(sealed[-TAG_LENGTH:]),
        }
        return json.dumps(envelope, separators=(",", ":")).encode("utf-8")

    def open(self, blob: bytes) -> CredentialPackage:
        """
        Raises:
            MalformedCiphertextError: If the blob is not a vault envelope.
            AuthenticationError: If the blob was sealed under another key or
                was modified.
        """
        try:
            envelope = json.loads(blob.decode("utf-8"))
            ciphertext = from_hex(envelope["encryptedData"])
            iv = from_hex(envelope["iv"])
            tag = from_hex(envelope["authTag"])
        except (UnicodeDecodeError, ValueError, KeyError, TypeError) as e:
            raise MalformedCiphertextError("Stored blob is not a package envelope") from e
        if len(iv) != IV_LENGTH or len(tag) != TAG_LENGTH:
            raise MalformedCiphertextError("Package envelope has wrong iv/tag width")
        try:
            plaintext = self._aead.decrypt(iv, ciphertext + tag, None)
        except InvalidTag as e:
            raise AuthenticationError("Package envelope failed authentication") from e
        data = json.loads(plaintext.decode("utf-8"))
        assert_supported_package_version(data.get("version", "v1"))
        try:
            return CredentialPackage.model_validate(data)
        except PydanticValidationError as e:
            raise MalformedCiphertextError("Decrypted package does not match the package schema") from e


# =============================================================================
# Content stores
# =============================================================================

class InMemoryContentStore:
    """Dict-backed store. Content id is the blob's SHA-256."""

    def __init__(self) -> None:
        self._blobs: dict[str, bytes] = {}

    async def store(self, blob: bytes) -> str:
        content_id = sha256_hex(blob)
        self._blobs[content_id] = bytes(blob)
        return content_id

    async def retrieve(self, content_id: str) -> bytes:
        try:
            return self._blobs[content_id]
        except KeyError:
            raise StorageError(f"Unknown content id {content_id}", operation="retrieve") from None

    def __len__(self) -> int:
        return len(self._blobs)


class FileContentStore:
    """One file per blob, named by its SHA-256 hex (without 0x)."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, content_id: str) -> Path:
        name = content_id[2:] if content_id.startswith("0x") else content_id
        if not name or not all(c in "0123456789abcdef" for c in name):
            raise StorageError(f"Invalid content id {content_id}", operation="retrieve")
        return self.directory / name

    async def store(self, blob: bytes) -> str:
        content_id = sha256_hex(blob)
        path = self._path(content_id)
        try:
            if not path.exists():
                await asyncio.to_thread(path.write_bytes, blob)
        except OSError as e:
            raise StorageError(f"Failed to write {path}: {e}", operation="store") from e
        return content_id

    async def retrieve(self, content_id: str) -> bytes:
        path = self._path(content_id)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError:
            raise StorageError(f"Unknown content id {content_id}", operation="retrieve") from None
        except OSError as e:
            raise StorageError(f"Failed to read {path}: {e}", operation="retrieve") from e


class PinataContentStore:
    """
    Pins JSON blobs with Pinata and reads them back through a gateway.

    Blobs must be JSON (vault envelopes are). Content ids are IPFS CIDs.
    """

    def __init__(
        self,
        jwt: str,
        gateway_url: str,
        *,
        http: Optional[HttpClient] = None,
        api_url: str = PINATA_API_URL,
    ) -> None:
        if not jwt:
            raise ValueError("Pinata JWT is required")
        if not gateway_url:
            raise ValueError("Pinata gateway URL is required")
        self.gateway_url = gateway_url.rstrip("/")
        if not self.gateway_url.startswith("http"):
            self.gateway_url = f"https://{self.gateway_url}"
        self.api_url = api_url.rstrip("/")
        self.http = http or HttpClient()
        self._auth = {"Authorization": f"Bearer {jwt}"}

    def _store_sync(self, blob: bytes) -> str:
        try:
            content = json.loads(blob.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise StorageError("Pinata store accepts JSON blobs only", operation="store") from e
        try:
            response = self.http.post(
                f"{self.api_url}/pinning/pinJSONToIPFS",
                headers=self._auth,
                json={"pinataContent": content},
            )
            response.raise_for_status()
            return response.json()["IpfsHash"]
        except (HttpError, KeyError, ValueError) as e:
            raise StorageError(f"Failed to store package on IPFS: {e}", operation="store") from e

    def _retrieve_sync(self, content_id: str) -> bytes:
        try:
            response = self.http.get(f"{self.gateway_url}/ipfs/{content_id}")
            response.raise_for_status()
        except HttpError as e:
            raise StorageError(
                f"Failed to retrieve package from IPFS: {e}", operation="retrieve"
            ) from e
        return response.content

    async def store(self, blob: bytes) -> str:
        return await asyncio.to_thread(self._store_sync, blob)

    async def retrieve(self, content_id: str) -> bytes:
        return await asyncio.to_thread(self._retrieve_sync, content_id)


def build_content_store(
    config: StorageConfig,
    http_config: Optional[HttpConfig] = None,
) -> ContentStore:
    """Content store selected by config.backend."""
    if config.backend == "file":
        if not config.directory:
            raise ValueError("storage.directory is required for the file backend")
        return FileContentStore(config.directory)
    if config.backend == "pinata":
        http = HttpClient.from_config(http_config or HttpConfig())
        return PinataContentStore(
            config.pinata_jwt or "", config.pinata_gateway_url or "", http=http
        )
    return InMemoryContentStore()
