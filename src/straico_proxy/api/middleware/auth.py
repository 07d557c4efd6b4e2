"""Authentication middleware."""
import hmac
import re
from typing import Optional

from fastapi import Request
from starlette.types import ASGIApp, Receive, Scope, Send

from ...core.logger import LoggerService
from ...core.settings import Settings
from ...providers.models import AuthFailure
from ..errors import ErrorMapper

# Routes that reach the upstream and therefore require a client key
PROTECTED_ROUTES = {
    "/v1/chat/completions",
    "/chat/completions",
    "/v1/images/generations",
}


def is_protected(path: str) -> bool:
    """Check whether a path is one of the upstream-facing routes."""
    return path.rstrip("/") in PROTECTED_ROUTES


class AuthMiddleware:
    """Middleware for Bearer token authentication.

    This middleware:
    1. Skips everything except the upstream-facing routes
    2. Extracts the Bearer token from the Authorization header
    3. Checks it against PROXY_API_KEYS when that list is configured

    A rejected request never reaches the routes, so no upstream call is made.
    """

    # Bearer token regex
    TOKEN_PATTERN = re.compile(r"^Bearer\s+(\S+)$")

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
            settings: Settings instance
        """
        self.app = app
        self.logger = logger.get_logger(__name__)
        self.settings = settings
        self._keys = [key.encode() for key in settings.PROXY_API_KEYS]

    def _get_token(self, request: Request) -> Optional[str]:
        """Extract Bearer token from request.

        Raises:
            AuthFailure: If the header is present but malformed
        """
        auth_header = request.headers.get("Authorization")
        if not auth_header:
            return None

        match = self.TOKEN_PATTERN.match(auth_header.strip())
        if not match:
            raise AuthFailure(
                message="Invalid Authorization header, expected 'Bearer <token>'"
            )
        return match.group(1)

    def _is_known_key(self, token: str) -> bool:
        """Compare against every configured key in constant time."""
        candidate = token.encode()
        matched = False
        for key in self._keys:
            matched |= hmac.compare_digest(candidate, key)
        return matched

    def _authenticate(self, request: Request) -> None:
        """Validate the request credentials.

        Raises:
            AuthFailure: If credentials are missing or unknown
        """
        token = self._get_token(request)
        if not token:
            raise AuthFailure(message="Missing API key")
        if self._keys and not self._is_known_key(token):
            raise AuthFailure(message="Invalid API key")

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Process the request.

        Args:
            scope: ASGI scope
            receive: ASGI receive function
            send: ASGI send function
        """
        if scope["type"] != "http" or not self.settings.ENABLE_AUTH:
            await self.app(scope, receive, send)
            return

        request = Request(scope, receive)
        if request.method == "OPTIONS" or not is_protected(request.url.path):
            await self.app(scope, receive, send)
            return

        request_id = getattr(request.state, "request_id", None)
        try:
            self._authenticate(request)
        except AuthFailure as e:
            self.logger.warning(
                "Authentication failed",
                extra={
                    "request_id": request_id,
                    "path": request.url.path,
                    "method": request.method,
                    "reason": e.message,
                },
            )
            response = ErrorMapper.to_response(e)
            await response(scope, receive, send)
            return

        self.logger.debug(
            "Authentication successful",
            extra={"request_id": request_id, "path": request.url.path},
        )
        await self.app(scope, receive, send)
