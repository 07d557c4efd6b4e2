"""Straico proxy entry point."""
import argparse
from contextlib import asynccontextmanager
from typing import AsyncGenerator, List, Optional

import uvicorn
from dependency_injector import providers
from fastapi import FastAPI

from .app import StraicoProxyApp
from .core.settings import Settings
from .di import Container, container as default_container
from .di.setup import cleanup_di, setup_di


@asynccontextmanager
async def lifespan(app: StraicoProxyApp) -> AsyncGenerator[None, None]:
    """Manage application lifespan.

    Args:
        app: FastAPI application instance

    Yields:
        None
    """
    app_logger = app.state.logger.get_logger(__name__)
    app_logger.info(
        "Application started",
        extra={
            "environment": app.state.settings.ENVIRONMENT,
            "upstream": app.state.settings.STRAICO_BASE_URL,
        },
    )
    if not app.state.settings.STRAICO_API_KEY:
        app_logger.warning("STRAICO_API_KEY is not set, upstream calls will fail")

    try:
        yield
    finally:
        app_logger.info("Shutting down application")
        await app.state.provider.close()
        cleanup_di(app, app.state.container)


def init_app(container: Optional[Container] = None) -> FastAPI:
    """Initialize FastAPI application.

    Args:
        container: Container to build the app from, the module one by default
    """
    app = StraicoProxyApp(lifespan=lifespan)
    setup_di(app, container or default_container)
    app.configure()
    return app


def get_app() -> FastAPI:
    """Factory function to create the FastAPI app."""
    return init_app()


def run(argv: Optional[List[str]] = None) -> None:
    """Run the server.

    Everything except the listen address comes from the environment.
    """
    parser = argparse.ArgumentParser(
        prog="straico-proxy",
        description="OpenAI-compatible gateway in front of the Straico API",
    )
    parser.add_argument("--host", help="Address to bind, HOST by default")
    parser.add_argument("--port", type=int, help="Port to bind, PORT by default")
    args = parser.parse_args(argv)

    overrides = {}
    if args.host is not None:
        overrides["HOST"] = args.host
    if args.port is not None:
        overrides["PORT"] = args.port
    settings = Settings(**overrides)
    default_container.settings.override(providers.Object(settings))

    app = init_app()
    uvicorn.run(
        app,
        host=settings.HOST,
        port=settings.PORT,
        log_config=None,
    )


if __name__ == "__main__":
    run()
