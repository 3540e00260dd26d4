"""
Shared error handling for the Daylight traffic cache layer.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    code: str
    message: str
    details: Dict[str, Any] = {}


class DaylightError(Exception):
    """Base exception for the cache layer and its upstream adapters."""

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


class ConfigurationAbsentError(DaylightError):
    """Distributed store is not configured (a selection signal, not a fault)."""

    def __init__(self, message: str = "Distributed store not configured", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIGURATION_ABSENT", message, details)


class BackendUnavailableError(DaylightError):
    """Distributed store could not be reached during construction."""

    def __init__(self, backend: str, message: str = "Backend unavailable", details: Optional[Dict[str, Any]] = None):
        super().__init__("BACKEND_UNAVAILABLE", f"{backend}: {message}", details)


class BackendIOError(DaylightError):
    """A single read or write against the distributed store failed."""

    def __init__(self, backend: str, message: str = "Backend I/O error", details: Optional[Dict[str, Any]] = None):
        super().__init__("BACKEND_IO_ERROR", f"{backend}: {message}", details)


class UpstreamError(DaylightError):
    """Upstream provider call failed (transport or protocol)."""

    def __init__(
        self,
        provider: str,
        message: str = "Upstream error",
        details: Optional[Dict[str, Any]] = None,
        code: str = "UPSTREAM_ERROR",
    ):
        self.provider = provider
        super().__init__(code, f"{provider}: {message}", details)


class UpstreamTimeoutError(UpstreamError):
    """Upstream call exceeded its deadline."""

    def __init__(self, provider: str, timeout: float, details: Optional[Dict[str, Any]] = None):
        self.timeout = timeout
        super().__init__(
            provider,
            f"timed out after {timeout:g}s",
            details,
            code="UPSTREAM_TIMEOUT",
        )


class UpstreamHTTPError(UpstreamError):
    """Upstream answered with a non-2xx status."""

    def __init__(self, provider: str, status_code: int, details: Optional[Dict[str, Any]] = None):
        self.status_code = status_code
        super().__init__(
            provider,
            f"unexpected status {status_code}",
            {"status_code": status_code, **(details or {})},
            code="UPSTREAM_HTTP_ERROR",
        )


class UpstreamParseError(UpstreamError):
    """Upstream payload could not be interpreted."""

    def __init__(self, provider: str, message: str = "unparseable payload", details: Optional[Dict[str, Any]] = None):
        super().__init__(provider, message, details, code="UPSTREAM_PARSE_ERROR")


class MissingCredentialsError(DaylightError):
    """No API key could be resolved for the upstream provider."""

    def __init__(self, provider: str, message: str = "API key not set", details: Optional[Dict[str, Any]] = None):
        self.provider = provider
        super().__init__("MISSING_CREDENTIALS", f"{provider}: {message}", details)
