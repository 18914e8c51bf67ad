"""
Shared error handling for the storefront relay.

Every relay failure is expressed as a ``RelayException`` subclass so the
HTTP boundary can always answer with a JSON body of the shape
``{"error": ..., "code": ..., "details": {...}}``.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error response format."""

    error: str
    code: str
    details: Dict[str, Any] = Field(default_factory=dict)


class RelayException(Exception):
    """Base exception for relay failures."""

    status_code: int = 500

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(error=self.message, code=self.code, details=self.details)


class ConfigurationError(RelayException):
    """Required relay configuration is missing or a route is miswired."""

    status_code = 500

    def __init__(self, message: str = "Server configuration incomplete", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIGURATION_ERROR", message, details)


class UnresolvedPlaceholderError(ConfigurationError):
    """A route template placeholder has no bound value."""

    status_code = 400

    def __init__(self, template: str, placeholders: list):
        super().__init__(
            f"Missing route parameter(s): {', '.join(placeholders)}",
            details={"template": template, "placeholders": placeholders},
        )


class AuthenticationError(RelayException):
    """Credential absent or rejected by the core service."""

    status_code = 401

    def __init__(self, message: str = "Authentication token not found", details: Optional[Dict[str, Any]] = None):
        super().__init__("AUTHENTICATION_ERROR", message, details)


class ValidationError(RelayException):
    """Inbound request is missing something the route needs."""

    status_code = 400

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class NotFoundError(RelayException):
    """The core service had nothing for the requested resource."""

    status_code = 404

    def __init__(self, message: str = "Resource not found", details: Optional[Dict[str, Any]] = None):
        super().__init__("NOT_FOUND", message, details)


class UpstreamError(RelayException):
    """Core service reachable but answered with a non-2xx status."""

    def __init__(
        self,
        status_code: int,
        message: str = "Core service error",
        body: Any = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__("UPSTREAM_ERROR", message, details, status_code=status_code)
        self.body = body


class TransportError(RelayException):
    """Core service unreachable or its response could not be read."""

    status_code = 500

    def __init__(self, reason: str, message: str = "Core service unavailable", details: Optional[Dict[str, Any]] = None):
        details = dict(details or {})
        details.setdefault("reason", reason)
        super().__init__("TRANSPORT_ERROR", message, details)
        self.reason = reason


class ShapeError(RelayException):
    """2xx response whose content does not match the expected shape."""

    status_code = 500

    def __init__(self, message: str = "Core service did not return a valid JSON response", details: Optional[Dict[str, Any]] = None):
        super().__init__("SHAPE_ERROR", message, details)
