"""
Custom exceptions for the Mechinweb portal web application.

Provides a hierarchy of exceptions for clean error handling in routes.
"""

from typing import Optional, Dict, Any


class AppException(Exception):
    """Base exception for application errors."""

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if status_code:
            self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON response."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(AppException):
    """Raised when input validation fails."""

    status_code = 400
    error_code = "VALIDATION_ERROR"


class UnsupportedCurrencyError(ValidationError):
    """Raised when a currency code has no known rate."""

    error_code = "UNSUPPORTED_CURRENCY"

    def __init__(self, currency: str):
        super().__init__(
            f"Unsupported currency: {currency}",
            details={"currency": currency},
        )


class AuthenticationRequiredError(AppException):
    """Raised when an endpoint needs a signed-in user."""

    status_code = 401
    error_code = "AUTHENTICATION_REQUIRED"


class NotFoundError(AppException):
    """Raised when a requested resource does not exist."""

    status_code = 404
    error_code = "NOT_FOUND"


class ServiceNotFoundError(NotFoundError):
    """Raised for unknown catalog services or tiers."""

    error_code = "SERVICE_NOT_FOUND"


class ConfigurationError(AppException):
    """Raised when configuration is missing or invalid."""

    status_code = 503
    error_code = "CONFIGURATION_ERROR"


class ExternalAPIError(AppException):
    """Raised when an external API (Zoho) fails."""

    status_code = 502
    error_code = "EXTERNAL_API_ERROR"

    def __init__(self, message: str, api_name: str = "Zoho Invoice"):
        super().__init__(message, details={"api": api_name})
