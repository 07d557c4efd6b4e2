"""Image generation service."""
import time

from ...core.logger import LoggerService
from ...providers.straico.mapper import StraicoMapper
from ...providers.straico.provider import StraicoProvider
from .models import ImageGenerationRequest, ImageGenerationResponse


class ImageGenerationService:
    """Translates OpenAI image requests and forwards them to Straico."""

    def __init__(
        self,
        logger: LoggerService,
        mapper: StraicoMapper,
        provider: StraicoProvider,
    ) -> None:
        self.logger = logger.get_logger(__name__)
        self.mapper = mapper
        self.provider = provider

    async def generate(
        self, request: ImageGenerationRequest, request_id: str
    ) -> ImageGenerationResponse:
        """Generate images.

        Raises:
            ProxyError: If translation or the upstream call fails
        """
        upstream_request = self.mapper.map_image_request(request)
        data = await self.provider.create_image(upstream_request, request_id)
        response = self.mapper.map_image_response(data, created=int(time.time()))
        self.logger.info(
            "Generated images",
            extra={
                "request_id": request_id,
                "model": request.model,
                "images": len(response.data),
                "price": data.price.total,
            },
        )
        return response
