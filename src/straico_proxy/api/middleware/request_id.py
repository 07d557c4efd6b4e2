"""Request identifier and access log middleware."""
import re
import time
from typing import Optional
from uuid import uuid4

from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from ...core.logger import LoggerService
from ...core.settings import Settings

REQUEST_ID_HEADER = "x-request-id"

# Accepted shape of a client supplied id
_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9_.:\-]{1,128}$")


class RequestIDMiddleware:
    """Assigns every HTTP request an id and writes one access log line.

    A well-formed ``X-Request-ID`` from the client is reused, otherwise a
    UUID is generated. The id is stored in ``request.state.request_id`` and
    returned in the response headers.
    """

    SLOW_REQUEST_THRESHOLD = 1.0

    def __init__(
        self,
        app: ASGIApp,
        logger: LoggerService,
        settings: Settings,
    ) -> None:
        self.app = app
        self.logger = logger.get_logger(__name__)
        self.settings = settings

    @staticmethod
    def _incoming_id(scope: Scope) -> Optional[str]:
        for name, value in scope.get("headers", []):
            if name == REQUEST_ID_HEADER.encode():
                candidate = value.decode("latin-1").strip()
                if _VALID_REQUEST_ID.match(candidate):
                    return candidate
        return None

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = self._incoming_id(scope) or str(uuid4())
        scope.setdefault("state", {})["request_id"] = request_id
        access = {
            "request_id": request_id,
            "method": scope["method"],
            "path": scope["path"],
        }
        status_code: Optional[int] = None
        started = time.perf_counter()

        async def send_with_request_id(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
                MutableHeaders(scope=message)[REQUEST_ID_HEADER] = request_id
            await send(message)

        self.logger.debug("Incoming request", extra=access)
        try:
            await self.app(scope, receive, send_with_request_id)
        except Exception as e:
            self.logger.error(
                "Request failed",
                extra={
                    **access,
                    "error_type": type(e).__name__,
                    "process_time_seconds": round(time.perf_counter() - started, 4),
                },
                exc_info=True,
            )
            raise

        elapsed = round(time.perf_counter() - started, 4)
        if elapsed > self.SLOW_REQUEST_THRESHOLD:
            self.logger.warning(
                "Slow request detected",
                extra={**access, "process_time_seconds": elapsed},
            )
        self.logger.info(
            "Request completed",
            extra={**access, "status_code": status_code, "process_time_seconds": elapsed},
        )
