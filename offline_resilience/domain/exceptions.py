"""
Offline Layer Exceptions

Error taxonomy for the offline resilience layer. Provider failures are
resolved locally whenever a fallback tier succeeds; only total exhaustion and
critical privacy violations reach the caller.
"""

from enum import Enum
from typing import Any, Dict, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from ..services.privacy.models import PrivacyViolation


class ErrorCategory(str, Enum):
    """Coarse classification of a provider failure."""

    NETWORK = "network"
    CACHE = "cache"
    STORAGE = "storage"
    CONTENT = "content"
    UNKNOWN = "unknown"


class OfflineLayerError(Exception):
    """Base exception for offline layer errors.

    Carries a machine-readable error code and structured details; never
    carries personal data.
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            ctx = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
            return f"{self.message} ({ctx})"
        return self.message


class ConfigurationError(OfflineLayerError):
    """Raised when the layer is wired or configured incorrectly."""

    def __init__(self, message: str, **details: Any):
        super().__init__(message, error_code="CONFIGURATION_ERROR", details=details)


class TransientProviderFailure(OfflineLayerError):
    """Raised when a provider call fails for network/timeout reasons."""

    def __init__(
        self,
        operation: str,
        original_error: Optional[Exception] = None,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
    ):
        details: Dict[str, Any] = {"operation": operation, "category": category.value}
        if original_error is not None:
            details["original_error_type"] = type(original_error).__name__
        super().__init__(
            message=f"Provider call '{operation}' failed",
            error_code="TRANSIENT_PROVIDER_FAILURE",
            details=details,
        )
        self.operation = operation
        self.category = category
        self.original_error = original_error
        # Preserve exception context for debugging (exception chaining)
        if original_error is not None:
            self.__cause__ = original_error


class NoDataAvailable(OfflineLayerError):
    """Raised when no fallback tier produced data for a read."""

    def __init__(self, operation: str, tiers_attempted: Optional[list] = None):
        super().__init__(
            message=f"No data available for '{operation}'",
            error_code="NO_DATA_AVAILABLE",
            details={"operation": operation, "tiers_attempted": tiers_attempted or []},
        )
        self.operation = operation
        self.tiers_attempted = tiers_attempted or []


class PrivacyViolationError(OfflineLayerError):
    """Raised when a privacy violation aborts an operation."""

    def __init__(self, violation: "PrivacyViolation", operation: Optional[str] = None):
        details: Dict[str, Any] = {
            "kind": violation.kind.value,
            "severity": violation.severity.value,
        }
        if operation:
            details["operation"] = operation
        super().__init__(
            message=violation.description,
            error_code="PRIVACY_VIOLATION",
            details=details,
        )
        self.violation = violation


class QueueExhausted(OfflineLayerError):
    """Describes a queued mutation that exceeded its retry budget.

    Recorded against dropped operations; never raised to callers.
    """

    def __init__(self, operation_id: str, operation_name: str, max_retries: int):
        super().__init__(
            message=f"Mutation '{operation_name}' dropped after {max_retries} retries",
            error_code="QUEUE_EXHAUSTED",
            details={
                "operation_id": operation_id,
                "operation_name": operation_name,
                "max_retries": max_retries,
            },
        )


class UnknownOperationError(OfflineLayerError):
    """Raised when an operation or mutation kind has no registration."""

    def __init__(self, operation: str):
        super().__init__(
            message=f"Unknown operation '{operation}'",
            error_code="UNKNOWN_OPERATION",
            details={"operation": operation},
        )
        self.operation = operation


def categorize_error(error: Exception) -> ErrorCategory:
    """Classify a provider exception from its type and message."""
    if isinstance(error, (ConnectionError, TimeoutError)):
        return ErrorCategory.NETWORK

    message = f"{type(error).__name__} {error}".lower()
    if any(p in message for p in ("network", "fetch", "connection", "timeout")):
        return ErrorCategory.NETWORK
    if "cache" in message or "expired" in message:
        return ErrorCategory.CACHE
    if "storage" in message or "database" in message:
        return ErrorCategory.STORAGE
    if "content" in message or "question" in message:
        return ErrorCategory.CONTENT
    return ErrorCategory.UNKNOWN
