"""
Shared error handling for the storefront integrity layer.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel

from shared.logging import request_id_var


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class StorefrontException(Exception):
    """Base exception for storefront services."""

    status_code: int = 400

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id_var.get(),
            code=self.code,
            message=self.message,
            details=self.details
        )


class ValidationError(StorefrontException):
    """Validation-related errors."""

    status_code = 422

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class InvalidSignatureError(StorefrontException):
    """Payment signature did not match the payload.

    The expected signature is never carried in the error.
    """

    status_code = 400

    def __init__(self, message: str = "Invalid signature"):
        super().__init__("INVALID_SIGNATURE", message)


class CsrfError(StorefrontException):
    """CSRF verification failures share one public message."""

    status_code = 403

    def __init__(self, code: str):
        super().__init__(code, "Invalid CSRF token")


class CsrfTokenMissingError(CsrfError):

    def __init__(self):
        super().__init__("CSRF_TOKEN_MISSING")


class CsrfTokenMismatchError(CsrfError):

    def __init__(self):
        super().__init__("CSRF_TOKEN_MISMATCH")


class RateLimitError(StorefrontException):
    """Rate limiting errors."""

    status_code = 429

    def __init__(self, retry_after: int, message: str = "Too many requests. Please try again later.",
                 details: Optional[Dict[str, Any]] = None):
        self.retry_after = retry_after
        super().__init__("RATE_LIMIT_EXCEEDED", message, details)


class PaymentNotConfiguredError(StorefrontException):
    """Merchant credentials are missing."""

    status_code = 503

    def __init__(self, gateway: str = "payfast"):
        super().__init__("PAYMENT_NOT_CONFIGURED", f"{gateway} is not configured")


class PaymentGatewayError(StorefrontException):
    """Payment provider call failed."""

    status_code = 502

    def __init__(self, gateway: str, message: str = "Payment gateway error", details: Optional[Dict[str, Any]] = None):
        super().__init__("PAYMENT_GATEWAY_ERROR", f"{gateway}: {message}", details)
