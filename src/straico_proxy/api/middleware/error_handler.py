"""Error handling middleware."""
from fastapi import Request
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from ...core.logger import LoggerService
from ...core.settings import Settings
from ...providers.models import ProxyError
from ..errors import ErrorMapper


class ErrorHandlerMiddleware:
    """Middleware for handling errors.

    Catches exceptions escaping the routes and answers with the error
    envelope built by ``ErrorMapper``:

    {
        "error": {
            "code": string,
            "message": string,
            "type": string,
            "upstream_code"?: number,
            "param"?: string
        }
    }

    Once the response has started nothing can be replaced, so the exception
    is only logged.
    """

    def __init__(
        self,
        app: ASGIApp,
        logger: LoggerService,
        settings: Settings,
    ) -> None:
        """Initialize middleware.

        Args:
            app: ASGI application
            logger: Logger service
            settings: Application settings
        """
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
        request_id = getattr(request.state, "request_id", None)
        response_started = False

        async def tracking_send(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, tracking_send)
            return

        except ProxyError as e:
            self.logger.error(
                "Proxy error",
                extra={
                    "request_id": request_id,
                    "path": request.url.path,
                    "method": request.method,
                    "error_kind": e.kind.value,
                    "error_message": e.message,
                    "error_details": e.details,
                    "upstream_code": e.upstream_code,
                },
            )
            error: Exception = e

        except Exception as e:
            self.logger.error(
                "Unexpected error",
                extra={
                    "request_id": request_id,
                    "path": request.url.path,
                    "method": request.method,
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                },
                exc_info=True,
            )
            error = e

        if response_started:
            self.logger.warning(
                "Response already started, error not sent",
                extra={"request_id": request_id, "path": request.url.path},
            )
            return

        response = ErrorMapper.to_response(error)
        await response(scope, receive, send)
