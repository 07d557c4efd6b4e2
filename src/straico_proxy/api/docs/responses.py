"""Common response examples for API documentation."""
from typing import Dict


def _error_example(description: str, code: str, message: str, type_: str) -> Dict:
    return {
        "description": description,
        "content": {
            "application/json": {
                "example": {"error": {"code": code, "message": message, "type": type_}}
            }
        },
    }


# Common error responses
ERROR_RESPONSES: Dict[int, Dict] = {
    400: _error_example(
        "Bad request",
        "invalid_request",
        "Model 'gpt-x' is not supported",
        "invalid_request_error",
    ),
    401: _error_example(
        "Unauthorized", "authentication_error", "Missing API key", "authentication_error"
    ),
    500: _error_example(
        "Internal server error", "internal_error", "Internal server error", "server_error"
    ),
    502: _error_example(
        "Upstream rejected the request",
        "upstream_rejected",
        "Upstream rejected the request",
        "upstream_error",
    ),
    503: _error_example(
        "Upstream unavailable",
        "upstream_unavailable",
        "Upstream service error",
        "upstream_error",
    ),
    504: _error_example(
        "Upstream timeout", "upstream_timeout", "Upstream request timed out", "upstream_error"
    ),
}
