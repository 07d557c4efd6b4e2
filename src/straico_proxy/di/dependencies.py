"""Dependency injection container."""
import asyncio

from dependency_injector import containers, providers

from ..core.logger import LoggerService
from ..core.settings import Settings
from ..providers.retry import RetryPolicy
from ..providers.straico.mapper import StraicoMapper
from ..providers.straico.model_mapper import StraicoModelMapper
from ..providers.straico.provider import StraicoProvider
from ..router.chat_completion.service import ChatCompletionService
from ..router.chat_completion.streamer import ResponseStreamer
from ..router.images.service import ImageGenerationService


class Container(containers.DeclarativeContainer):
    """Main application container."""

    # Settings
    settings = providers.Singleton(Settings)

    # Core services
    logger = providers.Singleton(LoggerService, settings_instance=settings)

    # Translation
    model_mapper = providers.Singleton(
        StraicoModelMapper, logger=logger, settings=settings
    )
    mapper = providers.Singleton(StraicoMapper, logger=logger, model_mapper=model_mapper)

    # Upstream client, transport and sleep are replaceable for tests
    upstream_transport = providers.Object(None)
    upstream_sleep = providers.Object(asyncio.sleep)
    retry_policy = providers.Singleton(RetryPolicy.from_settings, settings=settings)
    provider = providers.Singleton(
        StraicoProvider,
        logger=logger,
        settings=settings,
        mapper=mapper,
        retry_policy=retry_policy,
        transport=upstream_transport,
        sleep=upstream_sleep,
    )

    # Business services
    streamer = providers.Singleton(ResponseStreamer, logger=logger, mapper=mapper)
    chat_completion_service = providers.Singleton(
        ChatCompletionService,
        logger=logger,
        mapper=mapper,
        provider=provider,
        streamer=streamer,
    )
    image_generation_service = providers.Singleton(
        ImageGenerationService,
        logger=logger,
        mapper=mapper,
        provider=provider,
    )


container = Container()
