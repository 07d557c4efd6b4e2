"""Straico proxy FastAPI application."""
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from .api.errors import ErrorMapper
from .api.middleware import (
    AuthMiddleware,
    ContentTypeMiddleware,
    ErrorHandlerMiddleware,
    RequestIDMiddleware,
)
from .api.routes import ChatCompletionRouter, HealthRouter, ImagesRouter, ModelsRouter
from .providers.models import InvalidRequest

HTTP_ERROR_CODES = {
    404: "not_found",
    405: "method_not_allowed",
}

# Attributes setup_di must fill in before configure()
REQUIRED_STATE = (
    "logger",
    "settings",
    "model_mapper",
    "provider",
    "chat_completion_service",
    "image_generation_service",
)


class StraicoProxyApp(FastAPI):
    """OpenAI-compatible front for the Straico API.

    Construction only creates the FastAPI shell. Dependencies are attached to
    ``app.state`` by ``setup_di`` and ``configure()`` then installs the
    middleware stack, routers and exception handlers exactly once.
    """

    def __init__(self, lifespan: Optional[Callable] = None) -> None:
        self._configured = False
        super().__init__(
            title="Straico Proxy",
            description=(
                "Accepts OpenAI chat completion, model listing and image "
                "generation requests and serves them from the Straico API."
            ),
            docs_url="/docs",
            redoc_url="/redoc",
            lifespan=lifespan,
        )
        for name in REQUIRED_STATE:
            setattr(self.state, name, None)

    def configure(self) -> None:
        """Install middleware, routers and exception handlers.

        Raises:
            RuntimeError: If called twice or before the dependencies are set
        """
        if self._configured:
            raise RuntimeError("Application is already configured")
        missing = [name for name in REQUIRED_STATE if getattr(self.state, name) is None]
        if missing:
            raise RuntimeError(f"Dependencies must be set before configuring: {missing}")

        self.version = self.state.settings.VERSION
        self._install_middleware()
        self._install_routers()
        self.add_exception_handler(HTTPException, self._http_exception_handler)
        self.add_exception_handler(
            RequestValidationError, self._validation_exception_handler
        )

        self.state.logger.get_logger(__name__).info(
            "Application configured",
            extra={
                "version": self.version,
                "middleware_count": len(self.user_middleware),
                "router_count": len(self.router.routes),
                "auth_enabled": self.state.settings.ENABLE_AUTH,
                "client_keys": len(self.state.settings.PROXY_API_KEYS),
            },
        )
        self._configured = True

    def _install_middleware(self) -> None:
        logger = self.state.logger
        settings = self.state.settings

        # Outermost first: RequestID, Auth, ContentType, ErrorHandler, CORS
        self.add_middleware(
            CORSMiddleware,
            allow_origins=settings.BACKEND_CORS_ORIGINS,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
        for middleware in (
            ErrorHandlerMiddleware,
            ContentTypeMiddleware,
            AuthMiddleware,
            RequestIDMiddleware,
        ):
            self.add_middleware(middleware, logger=logger, settings=settings)

    def _install_routers(self) -> None:
        logger = self.state.logger
        routers = (
            HealthRouter(logger=logger),
            ChatCompletionRouter(
                logger=logger,
                service=self.state.chat_completion_service,
                settings=self.state.settings,
            ),
            ModelsRouter(logger=logger, model_mapper=self.state.model_mapper),
            ImagesRouter(logger=logger, service=self.state.image_generation_service),
        )
        for router in routers:
            self.include_router(router.router)

    async def _http_exception_handler(
        self, request: Request, exc: HTTPException
    ) -> JSONResponse:
        """Render routing errors (404, 405, ...) in the error envelope."""
        self.state.logger.get_logger(__name__).warning(
            "HTTP error",
            extra={
                "request_id": getattr(request.state, "request_id", None),
                "method": request.method,
                "path": request.url.path,
                "status_code": exc.status_code,
                "detail": exc.detail,
            },
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": {
                    "code": HTTP_ERROR_CODES.get(exc.status_code, "http_error"),
                    "message": str(exc.detail),
                    "type": "invalid_request_error",
                }
            },
            headers=getattr(exc, "headers", None),
        )

    async def _validation_exception_handler(
        self, request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Report the first schema violation as an invalid request.

        The offending field path, without the leading ``body``, becomes
        ``param`` in the error envelope.
        """
        errors = exc.errors()
        self.state.logger.get_logger(__name__).warning(
            "Request validation failed",
            extra={
                "request_id": getattr(request.state, "request_id", None),
                "path": request.url.path,
                "errors": [
                    {"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")}
                    for e in errors
                ],
            },
        )

        first = errors[0] if errors else {}
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = first.get("msg", "Invalid request")
        if field:
            message = f"{field}: {message}"
        return ErrorMapper.to_response(
            InvalidRequest(message=message, field=field or None)
        )
