"""
Schemas & Canonicalization
File: versioning.py

Purpose: Centralize package/protocol version constants.
Has no imports from other schema files to avoid circular dependencies.
"""

from typing import Literal

# Version stamped on every credential package
PACKAGE_VERSION: str = "v1"

# Commitment/proof wire format version
PROTOCOL_VERSION: str = "v1"

PackageVersion = Literal["v1"]

SUPPORTED_PACKAGE_VERSIONS: frozenset[str] = frozenset({"v1"})


class UnsupportedPackageVersionError(ValueError):
    """Raised when a package declares a version this library cannot read."""

    def __init__(self, version: str, supported: frozenset[str] | None = None) -> None:
        self.version = version
        self.supported = supported or SUPPORTED_PACKAGE_VERSIONS
        super().__init__(
            f"Unsupported package version: '{version}'. "
            f"Supported versions: {sorted(self.supported)}"
        )


def assert_supported_package_version(version: str) -> None:
    """
    Validate that the given package version is supported.

    Raises:
        UnsupportedPackageVersionError: If the version is not supported.
    """
    if version not in SUPPORTED_PACKAGE_VERSIONS:
        raise UnsupportedPackageVersionError(version)
