"""Models router implementation."""
from fastapi import Request
from starlette.exceptions import HTTPException

from ...core.logger import LoggerService
from ...providers.straico.model_mapper import StraicoModelMapper
from ...router.models import ModelListResponse, ModelObject
from ..docs import ERROR_RESPONSES
from .base import BaseRouter


class ModelsRouter(BaseRouter):
    """Models router implementation."""

    def __init__(
        self,
        logger: LoggerService,
        model_mapper: StraicoModelMapper,
    ) -> None:
        """Initialize router.

        Args:
            logger: Logger service instance
            model_mapper: Static model table
        """
        self.logger = logger.get_logger(__name__)
        self.model_mapper = model_mapper

        super().__init__(logger=logger, prefix="", tags=["models"])

    def _setup_routes(self) -> None:
        """Setup router endpoints."""
        self.router.add_api_route(
            "/v1/models",
            self.get_models,
            methods=["GET"],
            response_model=ModelListResponse,
            operation_id="get_models_v1",
            summary="Get Models",
            description="List every model id accepted by the proxy.",
            responses={500: ERROR_RESPONSES[500]},
        )
        self.router.add_api_route(
            "/v1/models/{model_id:path}",
            self.get_model,
            methods=["GET"],
            response_model=ModelObject,
            operation_id="get_model_v1",
            summary="Get Model",
            description="Get a model by its client-facing or Straico id.",
            responses={
                404: {"description": "Model not found"},
                500: ERROR_RESPONSES[500],
            },
        )

    async def get_models(self, request: Request) -> ModelListResponse:
        """List the model table."""
        models = self.model_mapper.list_models()
        self.logger.debug(
            "Listing models",
            extra={
                "request_id": self.request_id(request),
                "count": len(models),
            },
        )
        return ModelListResponse(
            data=[ModelObject.from_provider_model(m) for m in models]
        )

    async def get_model(self, model_id: str, request: Request) -> ModelObject:
        """Get a single model.

        Raises:
            HTTPException: If the model is not in the table
        """
        model = self.model_mapper.find(model_id)
        if model is None:
            self.logger.info(
                "Model not found",
                extra={
                    "request_id": self.request_id(request),
                    "model_id": model_id,
                },
            )
            raise HTTPException(status_code=404, detail=f"Model '{model_id}' not found")
        return ModelObject.from_provider_model(model)
