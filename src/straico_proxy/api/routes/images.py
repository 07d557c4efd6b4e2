"""Image generation router implementation."""
from fastapi import Request

from ...core.logger import LoggerService
from ...router.images import ImageGenerationRequest, ImageGenerationResponse
from ...router.images.service import ImageGenerationService
from ..docs import ERROR_RESPONSES
from .base import BaseRouter


class ImagesRouter(BaseRouter):
    """Image generation router implementation."""

    def __init__(
        self,
        logger: LoggerService,
        service: ImageGenerationService,
    ) -> None:
        """Initialize router.

        Args:
            logger: Logger service instance
            service: Image generation service
        """
        self.logger = logger.get_logger(__name__)
        self.service = service

        super().__init__(logger=logger, prefix="", tags=["images"])

    def _setup_routes(self) -> None:
        """Setup router endpoints."""
        self.router.add_api_route(
            "/v1/images/generations",
            self.create_image,
            methods=["POST"],
            response_model=ImageGenerationResponse,
            response_model_exclude_none=True,
            operation_id="create_image_v1",
            summary="Create Image",
            description=(
                "Generate images from a prompt. Sizes map to Straico's square, "
                "landscape and portrait formats, `n` maps to variations."
            ),
            responses=ERROR_RESPONSES,
        )

    async def create_image(
        self, image_request: ImageGenerationRequest, request: Request
    ) -> ImageGenerationResponse:
        """Generate images.

        Raises:
            ProxyError: If translation or the upstream call fails
        """
        request_id = self.request_id(request)
        self.logger.info(
            "Processing image generation request",
            extra={
                "request_id": request_id,
                "model": image_request.model,
                "n": image_request.n,
                "size": image_request.size,
            },
        )
        return await self.service.generate(image_request, request_id)
