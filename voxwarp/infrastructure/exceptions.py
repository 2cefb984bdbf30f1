"""
Custom Exceptions for VoxWarp

Hierarchical exception classes for proper error handling across layers.
"""

from typing import Optional, Dict, Any


class VoxWarpError(Exception):
    """Base exception for all VoxWarp errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.original_error = original_error

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details
        }


class ValidationError(VoxWarpError):
    """Raised when input validation fails."""
    pass


# =============================================================================
# Admission rejections
# =============================================================================

class AdmissionError(VoxWarpError):
    """Raised when a metered request is rejected before inference."""

    def __init__(
        self,
        message: str,
        remaining: int,
        required: Optional[int] = None,
    ):
        details = {"remaining": remaining}
        if required is not None:
            details["required"] = required
        super().__init__(message, details)
        self.remaining = remaining
        self.required = required


class QuotaExhaustedError(AdmissionError):
    """Raised when tokens_used has already reached tokens_limit."""

    def __init__(self, remaining: int = 0):
        super().__init__(
            "Token limit reached. Please upgrade your plan.",
            remaining=remaining,
        )


class InsufficientRemainingError(AdmissionError):
    """Raised when the estimated cost would exceed the remaining tokens."""

    def __init__(self, remaining: int, required: int):
        super().__init__(
            f"Not enough tokens. Required: ~{required}, available: {remaining}",
            remaining=remaining,
            required=required,
        )


# =============================================================================
# Inference provider errors (never chargeable)
# =============================================================================

class ProviderError(VoxWarpError):
    """Raised when the inference provider call fails."""

    def __init__(
        self,
        message: str,
        model: Optional[str] = None,
        operation: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if model:
            details["model"] = model
        if operation:
            details["operation"] = operation
        super().__init__(message, details, original_error)


class ProviderRateLimitError(ProviderError):
    """Raised when the provider rate limits or exhausts its own quota."""
    pass


class ProviderAuthError(ProviderError):
    """Raised when the provider rejects our credentials."""
    pass


class ProviderTimeoutError(ProviderError):
    """Raised when the provider call exceeds the configured timeout."""
    pass


# =============================================================================
# Billing / webhook errors
# =============================================================================

class InvalidSignatureError(VoxWarpError):
    """Raised when a webhook signature is missing or does not verify."""
    pass


class MalformedEventError(VoxWarpError):
    """Raised when a webhook payload lacks required fields."""

    def __init__(
        self,
        message: str,
        event_id: Optional[str] = None,
        event_type: Optional[str] = None,
    ):
        details = {}
        if event_id:
            details["event_id"] = event_id
        if event_type:
            details["event_type"] = event_type
        super().__init__(message, details)


class BillingServiceError(VoxWarpError):
    """Raised when a call to the payment processor fails."""
    pass


class ConfigurationError(VoxWarpError):
    """Raised when configuration is missing or invalid."""

    def __init__(
        self,
        message: str,
        missing_keys: Optional[list] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if missing_keys:
            details["missing_keys"] = missing_keys
        super().__init__(message, details, original_error)
