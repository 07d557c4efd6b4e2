"""Server-sent event streaming of chat completion chunks."""
from typing import AsyncGenerator, AsyncIterator, Optional

from ...api.errors import ErrorMapper
from ...core.logger import LoggerService
from ...providers.models import ProxyError, StraicoUsage, StreamChunk
from ...providers.straico.mapper import StraicoMapper
from .models import ChatContext

DONE_EVENT = b"data: [DONE]\n\n"


class ResponseStreamer:
    """Turns upstream stream chunks into SSE events.

    The streamer pulls one chunk, emits one event and only then pulls the
    next, so a slow client slows down the upstream read. There is no buffer
    between the two. The upstream iterator is closed on every exit path,
    cancellation included, which returns its connection to the pool.
    """

    def __init__(self, logger: LoggerService, mapper: StraicoMapper) -> None:
        """Initialize streamer.

        Args:
            logger: Logger service instance
            mapper: Mapper producing the client chunk objects
        """
        self.logger = logger.get_logger(__name__)
        self.mapper = mapper

    async def stream(
        self,
        fragments: AsyncIterator[StreamChunk],
        context: ChatContext,
    ) -> AsyncGenerator[bytes, None]:
        """Relay chunks as SSE events.

        Args:
            fragments: Upstream chunks in arrival order
            context: Chat request context

        Yields:
            Encoded ``data:`` events, ending with ``[DONE]`` or one error event
        """
        sent = 0
        usage: Optional[StraicoUsage] = None
        try:
            async for chunk in fragments:
                if chunk.usage is not None:
                    usage = chunk.usage
                event = self.mapper.map_stream_chunk(chunk, context, first=sent == 0)
                yield f"data: {event.model_dump_json(exclude_none=True)}\n\n".encode(
                    "utf-8"
                )
                sent += 1

            if context.request.include_usage:
                usage_event = self.mapper.map_usage_chunk(usage, context)
                yield f"data: {usage_event.model_dump_json()}\n\n".encode("utf-8")

            yield DONE_EVENT
            self.logger.info(
                "Stream completed",
                extra={"request_id": context.request_id, "chunks": sent},
            )
        except ProxyError as e:
            self.logger.error(
                "Proxy error during streaming",
                extra={
                    "request_id": context.request_id,
                    "chunks": sent,
                    "error_kind": e.kind.value,
                    "error": e.message,
                    "details": e.details,
                },
            )
            yield ErrorMapper.to_event(e)
        except Exception as e:
            self.logger.error(
                "Unexpected error during streaming",
                extra={
                    "request_id": context.request_id,
                    "chunks": sent,
                    "error": str(e),
                },
                exc_info=True,
            )
            yield ErrorMapper.to_event(e)
        finally:
            aclose = getattr(fragments, "aclose", None)
            if aclose is not None:
                await aclose()
