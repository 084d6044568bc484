"""
Schemas & Canonicalization
File: __init__.py

Purpose: Export the public API for the schemas module.
This is the main entry point for other modules to import schema definitions.
"""

# Version constants
from .versioning import (
    PACKAGE_VERSION,
    PROTOCOL_VERSION,
    SUPPORTED_PACKAGE_VERSIONS,
    PackageVersion,
    UnsupportedPackageVersionError,
    assert_supported_package_version,
)

# Canonical serialization API
from .canonical import (
    AttributeSet,
    canonical_equals,
    canonicalize_value,
    dumps_attributes,
    dumps_canonical,
    dumps_compact,
    loads_canonical,
    validate_attributes,
)

# Error models and exceptions
from .errors import (
    AuthenticationError,
    CanonicalizationException,
    ChainError,
    CryptographicException,
    DiscoveryError,
    DuplicateCredentialError,
    EmptyBatchError,
    EmptyInputError,
    ErrorCodes,
    ExternalFailure,
    IndexOutOfRangeError,
    InvalidSignatureError,
    InvalidTreeError,
    KirocredError,
    KirocredException,
    MalformedCiphertextError,
    MissingFieldError,
    MissingMetadataError,
    PublicationError,
    StorageError,
    StructuralException,
    ValidationException,
)

# Credential, batch and Merkle records
from .credential import (
    CHAIN_ROOT_HEX_LENGTH,
    BatchMetadata,
    BatchProcessingRequest,
    BatchProcessingResult,
    ChainRoot,
    CredentialData,
    CredentialPackage,
    EncryptedAttributes,
    FullRoot,
    IssuedCredential,
    KeyPair,
    MerkleProof,
    MerkleRoot,
    MerkleTree,
    truncate_for_chain,
)

# Verification results
from .verification import (
    CheckResult,
    CheckSeverity,
    CredentialVerificationRequest,
    CredentialVerificationResult,
    VerificationChecks,
    VerificationResult,
)

__all__ = [
    # Versioning
    "PACKAGE_VERSION",
    "PROTOCOL_VERSION",
    "SUPPORTED_PACKAGE_VERSIONS",
    "PackageVersion",
    "UnsupportedPackageVersionError",
    "assert_supported_package_version",
    # Canonical
    "AttributeSet",
    "canonical_equals",
    "canonicalize_value",
    "dumps_attributes",
    "dumps_canonical",
    "dumps_compact",
    "loads_canonical",
    "validate_attributes",
    # Errors
    "AuthenticationError",
    "CanonicalizationException",
    "ChainError",
    "CryptographicException",
    "DiscoveryError",
    "DuplicateCredentialError",
    "EmptyBatchError",
    "EmptyInputError",
    "ErrorCodes",
    "ExternalFailure",
    "IndexOutOfRangeError",
    "InvalidSignatureError",
    "InvalidTreeError",
    "KirocredError",
    "KirocredException",
    "MalformedCiphertextError",
    "MissingFieldError",
    "MissingMetadataError",
    "PublicationError",
    "StorageError",
    "StructuralException",
    "ValidationException",
    # Credential
    "CHAIN_ROOT_HEX_LENGTH",
    "BatchMetadata",
    "BatchProcessingRequest",
    "BatchProcessingResult",
    "ChainRoot",
    "CredentialData",
    "CredentialPackage",
    "EncryptedAttributes",
    "FullRoot",
    "IssuedCredential",
    "KeyPair",
    "MerkleProof",
    "MerkleRoot",
    "MerkleTree",
    "truncate_for_chain",
    # Verification
    "CheckResult",
    "CheckSeverity",
    "CredentialVerificationRequest",
    "CredentialVerificationResult",
    "VerificationChecks",
    "VerificationResult",
]
