"""
Schemas & Canonicalization
File: verification.py

Purpose: Standard result format for verification steps, plus the request
and report of credential verification.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from .credential import CredentialPackage, WireModel


# Severity levels for checks
CheckSeverity = Literal["info", "warn", "error"]


class CheckResult(BaseModel):
    """
    Result of a single verification check.

    Checks are atomic verification steps that can pass or fail.
    """

    model_config = ConfigDict(extra="forbid")

    check_id: str = Field(
        ...,
        description="Unique identifier for this check",
        min_length=1,
    )
    ok: bool = Field(
        ...,
        description="Whether the check passed",
    )
    severity: CheckSeverity = Field(
        ...,
        description="Severity level of this check",
    )
    message: str = Field(
        ...,
        description="Human-readable message describing the result",
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional details about the check",
    )

    @property
    def is_error(self) -> bool:
        """Check if this is an error-level failure."""
        return not self.ok and self.severity == "error"

    @property
    def is_warning(self) -> bool:
        return self.severity == "warn"

    @classmethod
    def passed(
        cls,
        check_id: str,
        message: str = "Check passed",
        details: dict[str, Any] | None = None,
    ) -> CheckResult:
        """Create a passed check result."""
        return cls(
            check_id=check_id,
            ok=True,
            severity="info",
            message=message,
            details=details or {},
        )

    @classmethod
    def warning(
        cls,
        check_id: str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> CheckResult:
        """Create a warning check result."""
        return cls(
            check_id=check_id,
            ok=True,  # Warnings don't fail the check
            severity="warn",
            message=message,
            details=details or {},
        )

    @classmethod
    def failed(
        cls,
        check_id: str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> CheckResult:
        """Create a failed check result."""
        return cls(
            check_id=check_id,
            ok=False,
            severity="error",
            message=message,
            details=details or {},
        )


class VerificationResult(BaseModel):
    """
    Complete result of a verification process.

    Used to report outcomes between modules without using exceptions.
    """

    model_config = ConfigDict(extra="forbid")

    ok: bool = Field(
        ...,
        description="Overall verification success",
    )
    checks: list[CheckResult] = Field(
        default_factory=list,
        description="Individual check results",
    )

    @property
    def error_count(self) -> int:
        return sum(1 for check in self.checks if check.is_error)

    @property
    def passed_count(self) -> int:
        return sum(1 for check in self.checks if check.ok)

    def get_failed_checks(self) -> list[CheckResult]:
        return [check for check in self.checks if not check.ok]

    def get_error_messages(self) -> list[str]:
        return [check.message for check in self.checks if check.is_error]

    @classmethod
    def from_checks(cls, checks: list[CheckResult]) -> VerificationResult:
        """ok is True iff no check failed."""
        return cls(ok=all(check.ok for check in checks), checks=checks)


# =============================================================================
# Credential verification
# =============================================================================

class CredentialVerificationRequest(WireModel):
    """
    What a holder presents to a verifier.

    attributes_hash is disclosed by the holder after decrypting the
    package; without it the issuer signature cannot be checked.
    """

    commitment: str
    path_elements: list[str]
    path_indices: list[int]
    batch_id: str
    credential_id: str
    holder_public_key: str
    issuer_signed_message: str
    salt: str | None = None
    nonce: str
    holder_signature: str
    attributes_hash: str | None = None

    @classmethod
    def from_package(
        cls,
        package: CredentialPackage,
        nonce: str,
        holder_signature: str,
        attributes_hash: str | None = None,
    ) -> CredentialVerificationRequest:
        return cls(
            commitment=package.commitment,
            path_elements=list(package.path_elements),
            path_indices=list(package.path_indices),
            batch_id=package.batch_id,
            credential_id=package.credential_id,
            holder_public_key=package.holder_public_key,
            issuer_signed_message=package.issuer_signed_message,
            salt=package.salt,
            nonce=nonce,
            holder_signature=holder_signature,
            attributes_hash=attributes_hash,
        )


class VerificationChecks(WireModel):
    """One boolean per verification check."""

    merkle_proof_valid: bool = False
    not_revoked: bool = False
    holder_signature_valid: bool = False
    nonce_valid: bool = False
    issuer_signature_valid: bool = False
    attributes_match: bool = True

    @property
    def load_bearing(self) -> tuple[bool, ...]:
        return (
            self.merkle_proof_valid,
            self.not_revoked,
            self.holder_signature_valid,
            self.nonce_valid,
            self.issuer_signature_valid,
        )


class CredentialVerificationResult(WireModel):
    """
    Full verification report.

    valid is the AND of the load-bearing checks; every failed check adds
    a reason to errors.
    """

    valid: bool
    checks: VerificationChecks
    errors: list[str] = Field(default_factory=list)
    report: list[CheckResult] = Field(default_factory=list)
    batch_id: str = ""
    credential_id: str = ""
    verified_at: int = 0


__all__ = [
    "CheckSeverity",
    "CheckResult",
    "VerificationResult",
    "CredentialVerificationRequest",
    "VerificationChecks",
    "CredentialVerificationResult",
]
