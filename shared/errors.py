"""
Shared error handling for the storefront catalog services.
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

    status_code = 400

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

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class NotFoundError(StorefrontException):
    """Requested resource does not exist."""

    status_code = 404

    def __init__(self, message: str = "Not found", details: Optional[Dict[str, Any]] = None):
        super().__init__("NOT_FOUND", message, details)


class ExternalServiceError(StorefrontException):
    """External service errors."""

    status_code = 502

    def __init__(self, service: str, message: str = "External service error", details: Optional[Dict[str, Any]] = None):
        super().__init__("EXTERNAL_SERVICE_ERROR", f"{service}: {message}", details)
        self.service = service


class UpstreamUnavailable(StorefrontException):
    """Catalog fetch failed and no snapshot of any age could be served."""

    status_code = 503

    def __init__(self, cause: BaseException, message: str = "Catalog upstream unavailable"):
        super().__init__("UPSTREAM_UNAVAILABLE", message, {"cause": str(cause)})
        self.cause = cause


class PersistenceError(StorefrontException):
    """Durable snapshot storage failed. Never surfaced to API callers."""

    status_code = 500

    def __init__(self, message: str = "Snapshot persistence failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("PERSISTENCE_ERROR", message, details)
