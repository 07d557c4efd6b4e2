"""Content type enforcement middleware."""
from fastapi import Request
from starlette.types import ASGIApp, Receive, Scope, Send

from ...core.logger import LoggerService
from ...core.settings import Settings
from ...providers.models import InvalidRequest
from ..errors import ErrorMapper
from .auth import is_protected


class ContentTypeMiddleware:
    """Rejects POST bodies on upstream-facing routes that are not JSON."""

    def __init__(
        self,
        app: ASGIApp,
        logger: LoggerService,
        settings: Settings,
    ) -> None:
        self.app = app
        self.logger = logger.get_logger(__name__)
        self.settings = settings

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Process the request.

        Args:
            scope: ASGI scope
            receive: ASGI receive function
            send: ASGI send function
        """
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope, receive)
        if request.method != "POST" or not is_protected(request.url.path):
            await self.app(scope, receive, send)
            return

        content_type = request.headers.get("content-type", "")
        media_type = content_type.split(";", 1)[0].strip().lower()
        if media_type == "application/json":
            await self.app(scope, receive, send)
            return

        self.logger.warning(
            "Unsupported content type",
            extra={
                "request_id": getattr(request.state, "request_id", None),
                "path": request.url.path,
                "content_type": content_type or None,
            },
        )
        response = ErrorMapper.to_response(
            InvalidRequest(
                message="Content-Type must be application/json",
                field="content-type",
            )
        )
        await response(scope, receive, send)
