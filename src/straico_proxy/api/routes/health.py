"""Liveness endpoint."""
from typing import Literal

from pydantic import BaseModel

from ...core.logger import LoggerService
from .base import BaseRouter


class HealthResponse(BaseModel):
    status: Literal["healthy"] = "healthy"


class HealthRouter(BaseRouter):
    """Liveness probe, never calls the upstream."""

    def __init__(self, logger: LoggerService):
        super().__init__(logger=logger, tags=["health"])

    def _setup_routes(self) -> None:
        self.router.add_api_route(
            "/health",
            self.health_check,
            methods=["GET"],
            response_model=HealthResponse,
            summary="Health Check",
            description="Reports that the proxy process is serving requests.",
            operation_id="get_health_status_v1",
        )

    async def health_check(self) -> HealthResponse:
        return HealthResponse()
