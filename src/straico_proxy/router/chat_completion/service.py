"""Chat completion service implementation."""
from typing import AsyncGenerator, AsyncIterator

from ...core.logger import LoggerService
from ...providers.models import StreamChunk
from ...providers.straico.mapper import StraicoMapper
from ...providers.straico.provider import StraicoProvider
from .models import ChatCompletionResponse, ChatContext
from .streamer import ResponseStreamer


async def _resume(
    first: StreamChunk, fragments: AsyncGenerator[StreamChunk, None]
) -> AsyncGenerator[StreamChunk, None]:
    """Yield an already pulled chunk, then the rest of the stream."""
    try:
        yield first
        async for chunk in fragments:
            yield chunk
    finally:
        await fragments.aclose()


class ChatCompletionService:
    """Service for handling chat completion requests."""

    def __init__(
        self,
        logger: LoggerService,
        mapper: StraicoMapper,
        provider: StraicoProvider,
        streamer: ResponseStreamer,
    ) -> None:
        """Initialize service.

        Args:
            logger: Logger service instance
            mapper: Request and response translator
            provider: Straico API client
            streamer: SSE response streamer
        """
        self.logger = logger.get_logger(__name__)
        self.mapper = mapper
        self.provider = provider
        self.streamer = streamer

    async def create_completion(self, context: ChatContext) -> ChatCompletionResponse:
        """Handle a non-streaming chat completion.

        Args:
            context: Chat request context

        Returns:
            Aggregated chat completion

        Raises:
            ProxyError: If translation or the upstream call fails
        """
        upstream_request = self.mapper.map_to_provider_request(context.request)
        self.logger.info(
            "Starting chat completion request",
            extra={
                "request_id": context.request_id,
                "model": context.model,
                "upstream_model": upstream_request.models[0],
                "stream": False,
            },
        )
        data = await self.provider.create_completion(
            upstream_request, context.request_id
        )
        response = self.mapper.map_provider_response(data, context)
        self.logger.info(
            "Completed chat completion request",
            extra={
                "request_id": context.request_id,
                "completion_id": response.id,
                "finish_reason": (
                    response.choices[0].finish_reason if response.choices else None
                ),
                "total_tokens": response.usage.total_tokens,
            },
        )
        return response

    async def create_stream(self, context: ChatContext) -> AsyncIterator[bytes]:
        """Start a streaming chat completion.

        The first upstream chunk is awaited here, before the HTTP response
        starts, so failures that happen before any output still surface as a
        regular error status.

        Args:
            context: Chat request context

        Returns:
            SSE event iterator

        Raises:
            ProxyError: If translation fails or no chunk could be obtained
        """
        upstream_request = self.mapper.map_to_provider_request(context.request)
        self.logger.info(
            "Starting chat completion stream",
            extra={
                "request_id": context.request_id,
                "model": context.model,
                "upstream_model": upstream_request.models[0],
                "stream": True,
            },
        )
        fragments = self.provider.stream_completion(
            upstream_request, context.request_id
        )
        try:
            first = await fragments.__anext__()
        except StopAsyncIteration:
            self.logger.warning(
                "Upstream stream ended without chunks",
                extra={"request_id": context.request_id},
            )
            return self.streamer.stream(fragments, context)
        except BaseException:
            await fragments.aclose()
            raise

        return self.streamer.stream(_resume(first, fragments), context)
