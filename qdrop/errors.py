"""
Error taxonomy for submit flows.

Every failure surfaced to the user maps to one stable ErrorKind.
"""
from enum import Enum
from typing import Optional, Sequence


class ErrorKind(Enum):
    """Stable error kinds reported in SubmitResult."""
    VALIDATION_FAILED = "validation_failed"
    ORGANIZATION_NOT_FOUND = "organization_not_found"
    DIRECTORY_UNAVAILABLE = "directory_unavailable"
    AUTHORIZATION_DENIED = "authorization_denied"
    TRANSFER_FAILED = "transfer_failed"
    PERSISTENCE_FAILED = "persistence_failed"
    RECORD_NOT_FOUND = "record_not_found"
    SESSION_IN_PROGRESS = "session_in_progress"
    CANCELLED = "cancelled"


class UploadError(Exception):
    """
    Base exception for qdrop submit failures.

    Subclasses set ``kind``; the submit handler reports it as-is.
    """

    kind: ErrorKind


class ValidationError(UploadError):
    """Raised when input validation fails. Carries every violation found."""

    kind = ErrorKind.VALIDATION_FAILED

    def __init__(self, violations: Sequence):
        self.violations = tuple(violations)
        super().__init__("; ".join(v.message for v in self.violations))


class IdentityError(UploadError):
    """Organization identity could not be confirmed."""


class OrganizationNotFoundError(IdentityError):
    """Organization id does not exist in the directory."""

    kind = ErrorKind.ORGANIZATION_NOT_FOUND


class DirectoryUnavailableError(IdentityError):
    """The directory lookup itself failed (network, permission)."""

    kind = ErrorKind.DIRECTORY_UNAVAILABLE


class AuthorizationDeniedError(UploadError):
    """The broker refused to grant a transfer credential."""

    kind = ErrorKind.AUTHORIZATION_DENIED


class TransferFailedError(UploadError):
    """Network or storage failure while sending bytes."""

    kind = ErrorKind.TRANSFER_FAILED

    def __init__(self, reason: str, status_code: Optional[int] = None):
        self.reason = reason
        self.status_code = status_code
        super().__init__(reason)


class RegistryError(UploadError):
    """Build registry read or write failed."""

    kind = ErrorKind.PERSISTENCE_FAILED


class PersistenceError(RegistryError):
    """Metadata write failed after the artifact was already uploaded."""

    kind = ErrorKind.PERSISTENCE_FAILED


class RecordNotFoundError(RegistryError):
    """Replacement target no longer exists."""

    kind = ErrorKind.RECORD_NOT_FOUND

    def __init__(self, key: str, message: Optional[str] = None):
        self.key = key
        super().__init__(message or f"Build record {key} no longer exists")


class APIError(RuntimeError):
    """Non-success HTTP response from a backing service."""

    def __init__(self, method: str, endpoint: str, status_code: int, detail=None):
        self.method = method
        self.endpoint = endpoint
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"API error {status_code} on {method} {endpoint}: {detail}")
