"""ASGI middlewares."""
from .auth import AuthMiddleware
from .content_type import ContentTypeMiddleware
from .error_handler import ErrorHandlerMiddleware
from .request_id import RequestIDMiddleware

__all__ = [
    "AuthMiddleware",
    "ContentTypeMiddleware",
    "ErrorHandlerMiddleware",
    "RequestIDMiddleware",
]
