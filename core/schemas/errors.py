"""
Schemas & Canonicalization
File: errors.py

Purpose: Standard error taxonomy across the Kirocred credential protocol.
Defines both Pydantic models for structured error communication
and Python exceptions for control flow.

Families:
- Validation: missing/malformed fields, rejected at component entry
- Cryptographic: bad signatures, AEAD tag mismatches (always fail closed)
- Structural: empty batches, bad leaf indices, malformed trees
- External: chain/storage/discovery failures (retryable at a higher layer)
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Error Codes (Machine-Readable Constants)
# =============================================================================

class ErrorCodes:
    """Stable machine-readable error codes used across the protocol."""

    # Validation Errors
    SCHEMA_VALIDATION_ERROR = "SCHEMA_VALIDATION_ERROR"
    CANONICALIZATION_ERROR = "CANONICALIZATION_ERROR"
    UNSUPPORTED_VERSION = "UNSUPPORTED_VERSION"
    MISSING_FIELD = "MISSING_FIELD"
    MISSING_METADATA = "MISSING_METADATA"
    DUPLICATE_CREDENTIAL = "DUPLICATE_CREDENTIAL"
    MALFORMED_CIPHERTEXT = "MALFORMED_CIPHERTEXT"

    # Cryptographic Errors
    INVALID_SIGNATURE = "INVALID_SIGNATURE"
    AUTHENTICATION_FAILED = "AUTHENTICATION_FAILED"

    # Structural Errors
    EMPTY_INPUT = "EMPTY_INPUT"
    EMPTY_BATCH = "EMPTY_BATCH"
    INDEX_OUT_OF_RANGE = "INDEX_OUT_OF_RANGE"
    INVALID_TREE = "INVALID_TREE"

    # External Errors
    CHAIN_FAILURE = "CHAIN_FAILURE"
    STORAGE_FAILURE = "STORAGE_FAILURE"
    DISCOVERY_FAILURE = "DISCOVERY_FAILURE"
    PUBLICATION_FAILURE = "PUBLICATION_FAILURE"

    # Verification
    VERIFICATION_FAILED = "VERIFICATION_FAILED"


# =============================================================================
# Pydantic Error Models (Structured Communication)
# =============================================================================

class KirocredError(BaseModel):
    """
    Base error model for structured error communication.

    Used for passing errors between modules without exceptions,
    enabling structured error handling and serialization.
    """

    model_config = ConfigDict(
        extra="forbid",
        frozen=False,
        validate_assignment=True,
    )

    code: str = Field(
        ...,
        description="Stable machine-readable error code",
        examples=[ErrorCodes.SCHEMA_VALIDATION_ERROR],
    )
    message: str = Field(
        ...,
        description="Human-readable error message",
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional structured details about the error",
    )
    retryable: bool = Field(
        default=False,
        description="Whether the operation can be retried",
    )

    def to_exception(self) -> "KirocredException":
        """Convert this error model to a raised exception."""
        return KirocredException(
            code=self.code,
            message=self.message,
            details=self.details,
            retryable=self.retryable,
        )


# =============================================================================
# Python Exceptions (Control Flow)
# =============================================================================

class KirocredException(Exception):
    """
    Base exception for all Kirocred protocol errors.

    Carries structured error information and can be
    converted to/from KirocredError models.
    """

    default_code = "KIROCRED_ERROR"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.code = code or self.default_code
        self.message = message
        self.details = details or {}
        self.retryable = retryable

    def to_error_model(self) -> KirocredError:
        """Convert this exception to a KirocredError model."""
        return KirocredError(
            code=self.code,
            message=self.message,
            details=self.details,
            retryable=self.retryable,
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


# --- Validation ---------------------------------------------------------------

class ValidationException(KirocredException):
    """Missing or malformed input, caught before any crypto runs."""

    default_code = ErrorCodes.SCHEMA_VALIDATION_ERROR


class CanonicalizationException(ValidationException):
    """Exception raised when canonical serialization fails."""

    default_code = ErrorCodes.CANONICALIZATION_ERROR


class MissingFieldError(ValidationException):
    """A required credential field is absent or empty."""

    default_code = ErrorCodes.MISSING_FIELD

    def __init__(
        self,
        message: str,
        missing: list[str] | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        full_details = details or {}
        if missing:
            full_details["missing"] = list(missing)
        super().__init__(message=message, details=full_details)
        self.missing = list(missing or [])


class MissingMetadataError(ValidationException):
    """Batch request lacks issuer address or batch metadata."""

    default_code = ErrorCodes.MISSING_METADATA


class DuplicateCredentialError(ValidationException):
    """Two credentials in one batch share a credential id."""

    default_code = ErrorCodes.DUPLICATE_CREDENTIAL


class MalformedCiphertextError(ValidationException):
    """Ciphertext, IV, tag, or key blob cannot be decoded."""

    default_code = ErrorCodes.MALFORMED_CIPHERTEXT


# --- Cryptographic --------------------------------------------------------------

class CryptographicException(KirocredException):
    """Signature or AEAD failure."""

    default_code = ErrorCodes.VERIFICATION_FAILED


class InvalidSignatureError(CryptographicException):
    """Signature does not verify under the claimed key."""

    default_code = ErrorCodes.INVALID_SIGNATURE


class AuthenticationError(CryptographicException):
    """AES-GCM authentication tag did not verify."""

    default_code = ErrorCodes.AUTHENTICATION_FAILED


# --- Structural -----------------------------------------------------------------

class StructuralException(KirocredException):
    """Programming or input-shape error; never transient."""

    default_code = ErrorCodes.INVALID_TREE


class EmptyInputError(StructuralException):
    """Merkle tree requested over no leaves."""

    default_code = ErrorCodes.EMPTY_INPUT


class EmptyBatchError(StructuralException):
    """Batch request carries no credentials."""

    default_code = ErrorCodes.EMPTY_BATCH


class IndexOutOfRangeError(StructuralException):
    """Leaf index outside the tree."""

    default_code = ErrorCodes.INDEX_OUT_OF_RANGE

    def __init__(self, message: str, leaf_index: int, leaf_count: int) -> None:
        super().__init__(
            message=message,
            details={"leaf_index": leaf_index, "leaf_count": leaf_count},
        )
        self.leaf_index = leaf_index
        self.leaf_count = leaf_count


class InvalidTreeError(StructuralException):
    """Tree has no layers or a root layer of the wrong size."""

    default_code = ErrorCodes.INVALID_TREE


# --- External -------------------------------------------------------------------

class ExternalFailure(KirocredException):
    """
    Chain, storage, or network failure.

    Transient by nature: surfaced with enough context to retry at a higher
    layer, never retried or swallowed by the core.
    """

    default_code = ErrorCodes.CHAIN_FAILURE

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        full_details = details or {}
        if operation:
            full_details["operation"] = operation
        super().__init__(message=message, details=full_details, retryable=True)
        self.operation = operation


class ChainError(ExternalFailure):
    """Ledger read or transaction failed."""

    default_code = ErrorCodes.CHAIN_FAILURE


class StorageError(ExternalFailure):
    """Content-addressed storage failed."""

    default_code = ErrorCodes.STORAGE_FAILURE


class DiscoveryError(ExternalFailure):
    """Discovery index write or read failed."""

    default_code = ErrorCodes.DISCOVERY_FAILURE


class PublicationError(ExternalFailure):
    """A publication step failed; the intent can be resumed."""

    default_code = ErrorCodes.PUBLICATION_FAILURE

    def __init__(
        self,
        message: str,
        intent_id: str,
        step: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        full_details = details or {}
        full_details["intent_id"] = intent_id
        full_details["step"] = step
        super().__init__(message=message, operation=step, details=full_details)
        self.intent_id = intent_id
        self.step = step
