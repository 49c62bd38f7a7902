"""
Shared error handling for the Registry Gateway.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class RegistryGatewayException(Exception):
    """Base exception for Registry Gateway services."""

    status_code = 500

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self, request_id: Optional[str] = None) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id,
            code=self.code,
            message=self.message,
            details=self.details
        )


class ValidationError(RegistryGatewayException):
    """Validation-related errors."""

    status_code = 400

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class PackageNotFoundError(RegistryGatewayException):
    """The upstream registry confirmed the package or version does not exist."""

    status_code = 404

    def __init__(self, message: str = "Package not found", details: Optional[Dict[str, Any]] = None):
        super().__init__("PACKAGE_NOT_FOUND", message, details)


class UpstreamRegistryError(RegistryGatewayException):
    """The upstream registry failed or could not be reached."""

    status_code = 502

    def __init__(self, registry: str, message: str = "Upstream registry error", details: Optional[Dict[str, Any]] = None):
        super().__init__("UPSTREAM_REGISTRY_ERROR", f"{registry}: {message}", details)


class MalformedDocumentError(UpstreamRegistryError):
    """The upstream registry answered 200 with an unusable body."""

    def __init__(self, registry: str, message: str = "Malformed registry document", details: Optional[Dict[str, Any]] = None):
        super().__init__(registry, message, details)
        self.code = "MALFORMED_DOCUMENT"
