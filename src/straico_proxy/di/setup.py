"""FastAPI dependency injection setup."""
from typing import Optional

from fastapi import FastAPI

from .dependencies import Container


def setup_di(app: FastAPI, container: Container) -> None:
    """Resolve the container singletons the application needs.

    Routers receive their services through constructors, so everything is
    attached to ``app.state`` for ``StraicoProxyApp.configure()`` and the
    lifespan.

    Args:
        app: FastAPI application instance
        container: Container to resolve dependencies from

    Raises:
        RuntimeError: If a dependency cannot be built
    """
    logger = container.logger().get_logger(__name__)
    try:
        app.state.container = container
        app.state.logger = container.logger()
        app.state.settings = container.settings()
        app.state.model_mapper = container.model_mapper()
        app.state.provider = container.provider()
        app.state.chat_completion_service = container.chat_completion_service()
        app.state.image_generation_service = container.image_generation_service()
        logger.info("Dependencies resolved")
    except Exception as e:
        logger.error("Failed to resolve dependencies: %s" % str(e))
        cleanup_di(app, container)
        raise RuntimeError("Dependency injection configuration failed") from e


def cleanup_di(app: Optional[FastAPI], container: Container) -> None:
    """Release container resources. Safe to call more than once."""
    logger = container.logger().get_logger(__name__)
    container.shutdown_resources()
    container.reset_singletons()
    if app:
        app.state.container = None
    logger.info("Dependencies released")
