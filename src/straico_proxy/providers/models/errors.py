"""Error models for the proxy.

Every failure that can reach a client is one of the ``ProxyError`` subclasses
below. The kind tag drives the client-visible status and code, see
``straico_proxy.api.errors.ErrorMapper``.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Stable error codes exposed on the wire."""

    INVALID_REQUEST = "invalid_request"
    AUTH_FAILURE = "authentication_error"
    UPSTREAM_TIMEOUT = "upstream_timeout"
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"
    UPSTREAM_REJECTED = "upstream_rejected"
    INTERNAL_FAILURE = "internal_error"


class ProxyError(Exception):
    """Base proxy error with details."""

    kind: ErrorKind = ErrorKind.INTERNAL_FAILURE
    transient: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        upstream_code: Optional[int] = None,
    ) -> None:
        """Initialize proxy error.

        Args:
            message: Client-safe error message
            details: Optional details, logged but only partially exposed
            upstream_code: Status code reported by the upstream, if any
        """
        self.message = message
        self.details = details or {}
        self.upstream_code = upstream_code
        super().__init__(message)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(message={self.message!r}, "
            f"upstream_code={self.upstream_code!r})"
        )


class InvalidRequest(ProxyError):
    """Client sent a request that cannot be translated."""

    kind = ErrorKind.INVALID_REQUEST

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        """Initialize validation error.

        Args:
            message: Error message
            field: Field that failed validation
        """
        super().__init__(message=message, details={"field": field} if field else {})
        self.field = field


class AuthFailure(ProxyError):
    """Missing or invalid client credentials."""

    kind = ErrorKind.AUTH_FAILURE


class UpstreamTimeout(ProxyError):
    """Upstream call exceeded its deadline."""

    kind = ErrorKind.UPSTREAM_TIMEOUT
    transient = True


class UpstreamUnavailable(ProxyError):
    """Upstream unreachable, failing with 5xx, or pool exhausted."""

    kind = ErrorKind.UPSTREAM_UNAVAILABLE
    transient = True


class UpstreamRejected(ProxyError):
    """Upstream refused the request with a non-transient status."""

    kind = ErrorKind.UPSTREAM_REJECTED

    def __init__(
        self,
        upstream_code: int,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, details=details, upstream_code=upstream_code)


class InternalFailure(ProxyError):
    """Unexpected local defect."""

    kind = ErrorKind.INTERNAL_FAILURE
