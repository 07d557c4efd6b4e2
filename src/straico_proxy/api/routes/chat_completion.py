"""Chat completion router implementation."""
import asyncio
import contextlib
from typing import Union

from fastapi import Request, Response
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.status import HTTP_200_OK

from ...core.logger import LoggerService
from ...core.settings import Settings
from ...router.chat_completion.models import (
    ChatCompletionRequest,
    ChatCompletionResponse,
    ChatContext,
)
from ...router.chat_completion.service import ChatCompletionService
from ..docs import (
    CHAT_COMPLETION_DESCRIPTION,
    CHAT_COMPLETION_OPERATION_ID,
    CHAT_COMPLETION_RESPONSES,
    CHAT_COMPLETION_SUMMARY,
    CHAT_COMPLETION_TAGS,
)
from .base import BaseRouter

# Not sent to anyone, only recorded in the access log
CLIENT_CLOSED_REQUEST = 499


class ChatCompletionRouter(BaseRouter):
    """Chat completion router implementation."""

    def __init__(
        self,
        logger: LoggerService,
        service: ChatCompletionService,
        settings: Settings,
    ) -> None:
        """Initialize router.

        Args:
            logger: Logger service instance
            service: Chat completion service
            settings: Settings instance
        """
        self.logger = logger.get_logger(__name__)
        self.service = service
        self.settings = settings

        super().__init__(logger=logger, prefix="", tags=["chat"])

    def _setup_routes(self) -> None:
        """Setup router endpoints."""
        for path, include_in_schema in (
            ("/v1/chat/completions", True),
            ("/chat/completions", False),
        ):
            self.router.add_api_route(
                path,
                self.create_chat_completion,
                methods=["POST"],
                response_model=ChatCompletionResponse,
                responses=CHAT_COMPLETION_RESPONSES,
                summary=CHAT_COMPLETION_SUMMARY,
                description=CHAT_COMPLETION_DESCRIPTION,
                operation_id=CHAT_COMPLETION_OPERATION_ID if include_in_schema else None,
                tags=CHAT_COMPLETION_TAGS,
                include_in_schema=include_in_schema,
            )

    async def create_chat_completion(
        self,
        chat_request: ChatCompletionRequest,
        fastapi_request: Request,
    ) -> Union[JSONResponse, StreamingResponse, Response]:
        """Create a chat completion.

        Args:
            chat_request: Validated chat completion request
            fastapi_request: FastAPI request

        Returns:
            Chat completion response or streaming response

        Raises:
            ProxyError: If request processing fails before any output
        """
        request_id = self.request_id(fastapi_request)
        context = ChatContext(request=chat_request, request_id=request_id)

        self.logger.info(
            "Processing chat completion request",
            extra={
                "request_id": request_id,
                "model": chat_request.model,
                "stream": chat_request.stream,
                "message_count": len(chat_request.messages),
                "completion_id": context.completion_id,
            },
        )

        if chat_request.stream:
            events = await self.service.create_stream(context)
            return StreamingResponse(
                content=events,
                media_type="text/event-stream",
                headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
            )

        return await self._complete_unless_disconnected(context, fastapi_request)

    async def _complete_unless_disconnected(
        self, context: ChatContext, fastapi_request: Request
    ) -> Union[JSONResponse, Response]:
        """Run a non-streaming completion, cancelling it if the client leaves.

        Cancelling the upstream task closes its pooled connection.
        """
        task = asyncio.ensure_future(self.service.create_completion(context))
        try:
            while True:
                done, _ = await asyncio.wait(
                    {task}, timeout=self.settings.DISCONNECT_POLL_INTERVAL
                )
                if done:
                    response = task.result()
                    return JSONResponse(
                        status_code=HTTP_200_OK,
                        content=response.model_dump(exclude_none=True),
                    )
                if await fastapi_request.is_disconnected():
                    self.logger.info(
                        "Client disconnected, cancelling upstream call",
                        extra={"request_id": context.request_id},
                    )
                    task.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                        await task
                    return Response(status_code=CLIENT_CLOSED_REQUEST)
        finally:
            if not task.done():
                task.cancel()
