"""
Shared error handling for the protection limits service.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    code: str
    message: str
    details: Dict[str, Any] = {}


class AccessLayerException(Exception):
    """Base exception for limits service errors."""

    status_code = 400

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            code=self.code,
            message=self.message,
            details=self.details
        )


class ConfigError(AccessLayerException):
    """A limits configuration value or section could not be parsed."""

    def __init__(self, message: str = "Invalid limits configuration", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIG_ERROR", message, details)


class UnknownSubtypeError(AccessLayerException):
    """A configuration key names a material the catalog does not know."""

    def __init__(self, material: str, path: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.material = material
        self.path = path
        details = dict(details or {})
        details.setdefault("material", material)
        if path:
            details.setdefault("path", path)
        super().__init__("UNKNOWN_MATERIAL", f"Unknown material '{material}'", details)


class BackingStoreError(AccessLayerException):
    """The protection count could not be fetched."""

    status_code = 503

    def __init__(self, message: str = "Protection store unavailable", details: Optional[Dict[str, Any]] = None):
        super().__init__("BACKING_STORE_ERROR", message, details)


class ExternalServiceError(AccessLayerException):
    """External service errors."""

    status_code = 503

    def __init__(self, service: str, message: str = "External service error", details: Optional[Dict[str, Any]] = None):
        super().__init__("EXTERNAL_SERVICE_ERROR", f"{service}: {message}", details)
