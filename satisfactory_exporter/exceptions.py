"""
Custom exceptions for the exporter
Configuration errors are fatal, fetch errors are absorbed by the poller
"""
from typing import Optional


class ExporterException(Exception):
    """Base exception for all exporter errors"""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Convert exception to dictionary for API responses"""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details
        }

# ============================================================
# Startup Exceptions
# ============================================================

class ConfigurationError(ExporterException):
    """Invalid or incomplete startup configuration"""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(
            message=message,
            error_code="CONFIGURATION_ERROR",
            details={"field": field} if field else {}
        )
        self.field = field

# ============================================================
# Upstream Exceptions
# ============================================================

class FetchError(ExporterException):
    """A single upstream fetch failed"""

    kind = "unknown"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        status_code: Optional[int] = None
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            details={"status_code": status_code} if status_code else {}
        )
        self.status_code = status_code


class UpstreamTransportError(FetchError):
    """Connection, TLS, timeout or unexpected HTTP status"""

    kind = "transport"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(
            message=message,
            error_code="UPSTREAM_TRANSPORT_ERROR",
            status_code=status_code
        )


class UpstreamAuthenticationError(FetchError):
    """Upstream rejected the bearer token"""

    kind = "authentication"

    def __init__(self, message: str = "Upstream rejected the bearer token", status_code: Optional[int] = None):
        super().__init__(
            message=message,
            error_code="UPSTREAM_AUTHENTICATION_ERROR",
            status_code=status_code
        )


class UpstreamResponseError(FetchError):
    """Upstream payload does not match the expected shape"""

    kind = "malformed_response"

    def __init__(self, message: str):
        super().__init__(
            message=message,
            error_code="UPSTREAM_RESPONSE_ERROR"
        )
