"""Conversion of proxy errors into client-visible responses."""
import json
from typing import Any, Dict

from fastapi.responses import JSONResponse

from ..providers.models import ErrorKind, InternalFailure, ProxyError

ERROR_STATUS = {
    ErrorKind.INVALID_REQUEST: 400,
    ErrorKind.AUTH_FAILURE: 401,
    ErrorKind.UPSTREAM_TIMEOUT: 504,
    ErrorKind.UPSTREAM_UNAVAILABLE: 503,
    ErrorKind.UPSTREAM_REJECTED: 502,
    ErrorKind.INTERNAL_FAILURE: 500,
}

ERROR_TYPES = {
    ErrorKind.INVALID_REQUEST: "invalid_request_error",
    ErrorKind.AUTH_FAILURE: "authentication_error",
    ErrorKind.UPSTREAM_TIMEOUT: "upstream_error",
    ErrorKind.UPSTREAM_UNAVAILABLE: "upstream_error",
    ErrorKind.UPSTREAM_REJECTED: "upstream_error",
    ErrorKind.INTERNAL_FAILURE: "server_error",
}

INTERNAL_MESSAGE = "Internal server error"


class ErrorMapper:
    """Maps every ProxyError to one status code and one wire body.

    The mapping is total: anything that is not a ProxyError is reported as an
    InternalFailure with a fixed message, so exception text never reaches the
    client.
    """

    @staticmethod
    def from_exception(error: BaseException) -> ProxyError:
        """Return the proxy error to report for an arbitrary exception."""
        if isinstance(error, ProxyError):
            return error
        return InternalFailure(
            message=INTERNAL_MESSAGE,
            details={"exception": type(error).__name__},
        )

    @staticmethod
    def status_code(error: ProxyError) -> int:
        """HTTP status for an error.

        Upstream 4xx codes are passed through, any other upstream rejection
        becomes 502.
        """
        if (
            error.kind is ErrorKind.UPSTREAM_REJECTED
            and error.upstream_code is not None
            and 400 <= error.upstream_code < 500
        ):
            return error.upstream_code
        return ERROR_STATUS[error.kind]

    @staticmethod
    def to_body(error: ProxyError) -> Dict[str, Any]:
        """Error envelope in the OpenAI style."""
        body: Dict[str, Any] = {
            "code": error.kind.value,
            "message": error.message,
            "type": ERROR_TYPES[error.kind],
        }
        if error.upstream_code is not None:
            body["upstream_code"] = error.upstream_code
        field = error.details.get("field")
        if error.kind is ErrorKind.INVALID_REQUEST and field:
            body["param"] = field
        return {"error": body}

    @classmethod
    def to_response(cls, error: BaseException) -> JSONResponse:
        """JSON response for an error raised before any output was sent."""
        proxy_error = cls.from_exception(error)
        return JSONResponse(
            status_code=cls.status_code(proxy_error),
            content=cls.to_body(proxy_error),
        )

    @classmethod
    def to_event(cls, error: BaseException) -> bytes:
        """Terminal SSE event for an error raised mid-stream."""
        body = cls.to_body(cls.from_exception(error))
        return f"data: {json.dumps(body)}\n\n".encode("utf-8")
