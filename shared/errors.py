"""
Shared error handling for the storefront data services.
"""

from typing import Dict, Any, Optional

from opentelemetry import trace
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    trace_id: Optional[str] = None
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
        trace_id = None
        current_span = trace.get_current_span()
        if current_span and current_span.is_recording():
            span_context = current_span.get_span_context()
            if span_context.trace_id != 0:
                trace_id = f"{span_context.trace_id:032x}"

        return ErrorResponse(
            trace_id=trace_id,
            code=self.code,
            message=self.message,
            details=self.details
        )


class NotFoundError(StorefrontException):
    """Requested resource does not exist."""

    status_code = 404

    def __init__(self, message: str = "Not found", details: Optional[Dict[str, Any]] = None):
        super().__init__("NOT_FOUND", message, details)


class RegionNotFound(StorefrontException):
    """Country is not mapped to any pricing region."""

    status_code = 404

    def __init__(self, country: str):
        self.country = country
        super().__init__("REGION_NOT_FOUND", "Country not found", {"country": country})

    def __repr__(self) -> str:
        return f"RegionNotFound({self.country!r})"


class ValidationError(StorefrontException):
    """Validation-related errors."""

    status_code = 400

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class AuthorizationError(StorefrontException):
    """Authorization-related errors."""

    status_code = 403

    def __init__(self, message: str = "Authorization failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("AUTHORIZATION_ERROR", message, details)


class DataSourceError(StorefrontException):
    """The underlying document store failed to answer a query."""

    status_code = 500

    def __init__(self, message: str = "Failed to fetch data", details: Optional[Dict[str, Any]] = None):
        super().__init__("DATA_SOURCE_ERROR", message, details)


class CacheBackendError(StorefrontException):
    """Key-value store unavailable or erroring. Never reaches clients."""

    status_code = 503

    def __init__(self, message: str = "Cache backend error", details: Optional[Dict[str, Any]] = None):
        super().__init__("CACHE_BACKEND_ERROR", message, details)


class SerializationError(StorefrontException):
    """Cached payload could not be encoded or decoded. Never reaches clients."""

    status_code = 500

    def __init__(self, message: str = "Serialization error", details: Optional[Dict[str, Any]] = None):
        super().__init__("SERIALIZATION_ERROR", message, details)
