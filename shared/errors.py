"""
Shared error handling for the Edge Proxy.
"""

from typing import Any, Dict, Optional, Sequence, Tuple

from pydantic import BaseModel, Field


Headers = Sequence[Tuple[str, str]]


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class EdgeProxyException(Exception):
    """Base exception for Edge Proxy request handling."""

    status_code = 500

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        *,
        status_code: Optional[int] = None,
        headers: Headers = (),
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        # Response headers (CORS) to attach when this error is rendered.
        self.headers = tuple(headers)
        super().__init__(message)

    def to_response(self, request_id: Optional[str] = None) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id,
            code=self.code,
            message=self.message,
            details=self.details,
        )

    def to_body(self, request_id: Optional[str] = None) -> Dict[str, Any]:
        """JSON body rendered for this error."""
        return self.to_response(request_id).model_dump(exclude_none=True)


class ConfigurationError(EdgeProxyException):
    """Mandatory configuration is missing."""

    def __init__(self, message: str = "Server configuration error", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIGURATION_ERROR", message, details, status_code=500)


class OriginRejectedError(EdgeProxyException):
    """Caller origin is not permitted by the CORS policy."""

    def __init__(self, message: str = "Origin is not permitted"):
        super().__init__("ORIGIN_REJECTED", message, status_code=403)


class RouteNotFoundError(EdgeProxyException):
    """No route matches the requested path."""

    def __init__(self, path: str, headers: Headers = ()):
        super().__init__("NOT_FOUND", "Not Found", {"path": path}, status_code=404, headers=headers)


class PurgeError(EdgeProxyException):
    """Cache purge was refused."""

    def __init__(self, code: str, message: str, headers: Headers = ()):
        super().__init__(code, message, status_code=403, headers=headers)

    def to_body(self, request_id: Optional[str] = None) -> Dict[str, Any]:
        return {"purged": False, "error": self.message}


class PurgeUnauthorizedError(PurgeError):
    """Purge secret is missing or wrong."""

    def __init__(self, headers: Headers = ()):
        super().__init__(
            "PURGE_UNAUTHORIZED",
            "Forbidden: Invalid or missing purge secret.",
            headers=headers,
        )


class PurgeNotAllowedError(PurgeError):
    """Purge target is not a cacheable master data resource."""

    def __init__(self, headers: Headers = ()):
        super().__init__(
            "PURGE_NOT_ALLOWED",
            "Purge denied: Endpoint is not a cacheable master data table.",
            headers=headers,
        )


class UpstreamUnavailableError(EdgeProxyException):
    """The upstream API could not be reached or timed out."""

    def __init__(
        self,
        message: str = "Upstream service unavailable",
        *,
        timed_out: bool = False,
        details: Optional[Dict[str, Any]] = None,
        headers: Headers = (),
    ):
        super().__init__(
            "UPSTREAM_TIMEOUT" if timed_out else "UPSTREAM_UNAVAILABLE",
            message,
            details,
            status_code=504 if timed_out else 502,
            headers=headers,
        )


class CacheStoreUnavailable(Exception):
    """Transient failure of the external response cache."""

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"cache store {operation} failed: {reason}")
