"""
Custom Exceptions Module.

This module defines all custom exceptions used throughout invoice scan
core. Using specific exceptions allows callers to tell a recognizer
outage apart from a tampered record or a storage failure.

Exception Hierarchy:
    InvoiceScanError (base)
    ├── InputError
    ├── ConfigurationError
    ├── RecognitionError
    │   └── RecognitionUnavailableError
    ├── IntegrityError
    │   ├── HashGenerationError
    │   └── TamperedRecordError
    ├── StorageError
    │   └── RecordNotFoundError
    └── AuditError
        └── AuditWriteError
"""


class InvoiceScanError(Exception):
    """
    Base exception for all invoice scan errors.

    All custom exceptions in this system inherit from this class,
    allowing for easy catching of all system-specific errors.

    Attributes:
        message: Human-readable error message.
        details: Optional dictionary with additional error details.
    """

    def __init__(self, message: str, details: dict = None):
        """
        Initialize the exception.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional context.
        """
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# INPUT / CONFIGURATION ERRORS
# =============================================================================

class InputError(InvoiceScanError):
    """Raised when caller-supplied input cannot be read or parsed."""

    def __init__(self, source: str, reason: str = None):
        message = f"Invalid input: {source}"
        details = {"source": source, "reason": reason}
        super().__init__(message, details)


class ConfigurationError(InvoiceScanError):
    """Raised when a configuration value is missing or malformed."""

    def __init__(self, key: str, reason: str = None):
        message = f"Invalid configuration value: {key}"
        details = {"key": key, "reason": reason}
        super().__init__(message, details)


# =============================================================================
# RECOGNITION ERRORS
# =============================================================================

class RecognitionError(InvoiceScanError):
    """Base exception for text recognition errors."""
    pass


class RecognitionUnavailableError(RecognitionError):
    """
    Raised when the text recognizer cannot be initialized or invoked.

    Extraction is not attempted when this is raised, and no partial
    result is returned.

    Example:
        >>> raise RecognitionUnavailableError("tesseract", "not in PATH")
    """

    def __init__(self, engine_name: str, reason: str = None):
        message = f"Text recognizer not available: {engine_name}"
        details = {"engine": engine_name, "reason": reason}
        super().__init__(message, details)


# =============================================================================
# INTEGRITY ERRORS
# =============================================================================

class IntegrityError(InvoiceScanError):
    """Base exception for record integrity errors."""
    pass


class HashGenerationError(IntegrityError):
    """Raised when a record cannot be canonicalized or hashed."""

    def __init__(self, reason: str = None):
        message = "Hash generation failed"
        details = {"reason": reason}
        super().__init__(message, details)


class TamperedRecordError(IntegrityError):
    """
    Raised when a mutating operation is attempted on a tampered record.

    There is no override path: the operation must not proceed.
    """

    def __init__(
        self,
        operation: str,
        record_id: str = None,
        stored_digest: str = None,
        current_digest: str = None
    ):
        message = f"Refusing to {operation}: record may have been tampered with"
        details = {
            "operation": operation,
            "record_id": record_id,
            "stored_digest": stored_digest,
            "current_digest": current_digest,
        }
        super().__init__(message, details)


# =============================================================================
# STORAGE ERRORS
# =============================================================================

class StorageError(InvoiceScanError):
    """Raised when the key-value storage medium fails."""

    def __init__(self, operation: str, reason: str = None):
        message = f"Storage operation failed: {operation}"
        details = {"operation": operation, "reason": reason}
        super().__init__(message, details)


class RecordNotFoundError(StorageError):
    """Raised when a stored record does not exist."""

    def __init__(self, target_type: str, record_id: str):
        super().__init__(
            "lookup",
            f"{target_type} '{record_id}' does not exist"
        )
        self.target_type = target_type
        self.record_id = record_id


class DuplicateRecordError(StorageError):
    """Raised when a record is created under an identifier already in use."""

    def __init__(self, target_type: str, record_id: str):
        super().__init__(
            "create",
            f"{target_type} '{record_id}' already exists"
        )
        self.target_type = target_type
        self.record_id = record_id


# =============================================================================
# AUDIT ERRORS
# =============================================================================

class AuditError(InvoiceScanError):
    """Base exception for audit log errors."""
    pass


class AuditWriteError(AuditError):
    """Raised inside the audit boundary when an entry cannot be persisted."""

    def __init__(self, entry_id: str, reason: str = None):
        message = f"Failed to append audit entry: {entry_id}"
        details = {"entry_id": entry_id, "reason": reason}
        super().__init__(message, details)


__all__ = [
    'InvoiceScanError',
    'InputError',
    'ConfigurationError',
    'RecognitionError',
    'RecognitionUnavailableError',
    'IntegrityError',
    'HashGenerationError',
    'TamperedRecordError',
    'StorageError',
    'RecordNotFoundError',
    'AuditError',
    'AuditWriteError',
]
