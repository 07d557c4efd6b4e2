"""Straico provider implementation."""
import asyncio
import json
from typing import Any, AsyncGenerator, Awaitable, Callable, Dict, Optional, Type, TypeVar

import httpx
from httpx import AsyncClient
from pydantic import BaseModel, ValidationError

from ...core.logger import LoggerService
from ...core.settings import Settings
from ..models import (
    ProxyError,
    StraicoCompletionData,
    StraicoCompletionRequest,
    StraicoImageData,
    StraicoImageRequest,
    StreamChunk,
    UpstreamRejected,
    UpstreamTimeout,
    UpstreamUnavailable,
)
from ..retry import RetryPolicy
from .mapper import StraicoMapper

COMPLETION_PATH = "/v1/prompt/completion"
IMAGE_PATH = "/v0/image/generation"

DataT = TypeVar("DataT", bound=BaseModel)


class StraicoProvider:
    """Straico API client.

    Owns the process-wide connection pool. Every call goes through the same
    failure classification and retry policy:

    - timeouts, transport errors and 5xx answers are retried with backoff
    - 4xx answers are returned to the caller as UpstreamRejected at once
    - waiting too long for a pooled connection is UpstreamUnavailable and is
      not retried, so a saturated pool sheds load instead of queueing
    """

    def __init__(
        self,
        logger: LoggerService,
        settings: Settings,
        mapper: StraicoMapper,
        retry_policy: RetryPolicy,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """Initialize Straico provider.

        Args:
            logger: Logger service instance
            settings: Application settings instance
            mapper: Straico mapper instance
            retry_policy: Backoff policy for transient failures
            transport: Optional transport replacing the network one
            sleep: Coroutine used to wait between attempts
        """
        self.logger = logger.get_logger(__name__)
        self.settings = settings
        self.mapper = mapper
        self.retry_policy = retry_policy
        self._sleep = sleep
        self._timeout = settings.UPSTREAM_TIMEOUT
        self._client = AsyncClient(
            base_url=settings.STRAICO_BASE_URL,
            headers={
                "Authorization": f"Bearer {settings.STRAICO_API_KEY}",
                "Content-Type": "application/json",
            },
            limits=httpx.Limits(
                max_connections=settings.UPSTREAM_POOL_SIZE,
                max_keepalive_connections=settings.UPSTREAM_POOL_KEEPALIVE,
            ),
            timeout=httpx.Timeout(
                settings.UPSTREAM_TIMEOUT,
                connect=settings.UPSTREAM_CONNECT_TIMEOUT,
                pool=settings.UPSTREAM_POOL_TIMEOUT,
            ),
            verify=not settings.DISABLE_SSL_VERIFICATION,
            transport=transport,
        )
        self.logger.info(
            "Initialized StraicoProvider",
            extra={
                "base_url": settings.STRAICO_BASE_URL,
                "timeout": settings.UPSTREAM_TIMEOUT,
                "pool_size": settings.UPSTREAM_POOL_SIZE,
                "max_retries": retry_policy.max_retries,
                "client_id": id(self._client),
            },
        )

    def _classify(self, error: Exception) -> ProxyError:
        """Map a transport-level exception onto the proxy error taxonomy."""
        if isinstance(error, httpx.PoolTimeout):
            unavailable = UpstreamUnavailable(
                message="Upstream connection pool exhausted",
                details={"reason": "pool_timeout"},
            )
            unavailable.transient = False
            return unavailable
        if isinstance(error, (httpx.TimeoutException, asyncio.TimeoutError)):
            return UpstreamTimeout(
                message="Upstream request timed out",
                details={"timeout": self._timeout},
            )
        return UpstreamUnavailable(
            message="Upstream unreachable",
            details={"error": type(error).__name__},
        )

    def _check_status(self, status_code: int, body: bytes) -> None:
        """Raise the proxy error matching a non-2xx upstream status."""
        if status_code < 400:
            return

        upstream_message = ""
        try:
            parsed = json.loads(body)
            if isinstance(parsed, dict):
                upstream_message = str(
                    parsed.get("error") or parsed.get("message") or ""
                )
        except ValueError:
            upstream_message = body.decode("utf-8", errors="replace")
        upstream_message = upstream_message[:500]

        if status_code >= 500:
            raise UpstreamUnavailable(
                message="Upstream service error",
                details={"upstream_message": upstream_message},
                upstream_code=status_code,
            )
        raise UpstreamRejected(
            upstream_code=status_code,
            message=upstream_message or "Upstream rejected the request",
        )

    def _parse_envelope(
        self, status_code: int, body: bytes, model: Type[DataT]
    ) -> DataT:
        """Validate a Straico ``{"data": ..., "success": ...}`` envelope."""
        try:
            payload = json.loads(body)
        except ValueError:
            payload = None
        if not isinstance(payload, dict):
            malformed = UpstreamUnavailable(
                message="Upstream returned a malformed response",
                upstream_code=status_code,
            )
            malformed.transient = False
            raise malformed

        if payload.get("success") is False:
            raise UpstreamRejected(
                upstream_code=status_code,
                message=str(payload.get("error") or "Upstream reported failure"),
            )

        try:
            data = model.model_validate(payload.get("data"))
            if isinstance(data, StraicoCompletionData):
                data.get_completion()
            return data
        except (ValidationError, ValueError) as e:
            malformed = UpstreamUnavailable(
                message="Upstream returned a malformed response",
                details={"error": str(e)},
                upstream_code=status_code,
            )
            malformed.transient = False
            raise malformed

    async def _with_retries(
        self,
        attempt: Callable[[], Awaitable[DataT]],
        request_id: str,
        operation: str,
    ) -> DataT:
        """Run an attempt factory under the retry policy."""
        last_attempt = self.retry_policy.max_attempts - 1
        for number in range(self.retry_policy.max_attempts):
            try:
                return await attempt()
            except ProxyError as e:
                if not e.transient or number == last_attempt:
                    self.logger.error(
                        "Upstream call failed",
                        extra={
                            "request_id": request_id,
                            "operation": operation,
                            "attempt": number + 1,
                            "error_kind": e.kind.value,
                            "upstream_code": e.upstream_code,
                            "error": e.message,
                        },
                    )
                    raise
                delay = self.retry_policy.delay(number)
                self.logger.warning(
                    "Retrying upstream call",
                    extra={
                        "request_id": request_id,
                        "operation": operation,
                        "attempt": number + 1,
                        "delay": round(delay, 3),
                        "error_kind": e.kind.value,
                        "upstream_code": e.upstream_code,
                    },
                )
                await self._sleep(delay)
        raise AssertionError("unreachable")

    async def _post(self, path: str, payload: Dict[str, Any], model: Type[DataT]) -> DataT:
        """Single POST attempt bounded by the per-call deadline."""
        try:
            response = await asyncio.wait_for(
                self._client.post(path, json=payload), timeout=self._timeout
            )
        except (httpx.TransportError, asyncio.TimeoutError) as e:
            raise self._classify(e)
        self._check_status(response.status_code, response.content)
        return self._parse_envelope(response.status_code, response.content, model)

    async def create_completion(
        self, request: StraicoCompletionRequest, request_id: str
    ) -> StraicoCompletionData:
        """Create a completion.

        Args:
            request: Straico completion request
            request_id: Request identifier for tracing

        Returns:
            Straico completion data

        Raises:
            ProxyError: If the upstream call fails after retries
        """
        payload = request.model_dump(exclude_none=True)
        self.logger.info(
            "Sending completion request",
            extra={"request_id": request_id, "models": request.models},
        )
        data = await self._with_retries(
            lambda: self._post(COMPLETION_PATH, payload, StraicoCompletionData),
            request_id,
            "completion",
        )
        self.logger.info(
            "Completion received",
            extra={
                "request_id": request_id,
                "price": data.overall_price.total,
                "words": data.overall_words.total,
            },
        )
        return data

    async def create_image(
        self, request: StraicoImageRequest, request_id: str
    ) -> StraicoImageData:
        """Generate images.

        Args:
            request: Straico image request
            request_id: Request identifier for tracing

        Returns:
            Straico image data

        Raises:
            ProxyError: If the upstream call fails after retries
        """
        payload = request.model_dump()
        self.logger.info(
            "Sending image generation request",
            extra={
                "request_id": request_id,
                "model": request.model,
                "variations": request.variations,
            },
        )
        return await self._with_retries(
            lambda: self._post(IMAGE_PATH, payload, StraicoImageData),
            request_id,
            "image",
        )

    async def stream_completion(  # noqa: C901
        self, request: StraicoCompletionRequest, request_id: str
    ) -> AsyncGenerator[StreamChunk, None]:
        """Stream a completion as ordered chunks.

        Event-stream answers are relayed line by line. JSON answers are split
        into a content chunk and a final chunk. Attempts are retried only until
        the first chunk has been yielded.

        Args:
            request: Straico completion request
            request_id: Request identifier for tracing

        Yields:
            Stream chunks in upstream arrival order

        Raises:
            ProxyError: If the upstream call fails
        """
        payload = request.model_dump(exclude_none=True)
        last_attempt = self.retry_policy.max_attempts - 1
        sequence = 0

        for number in range(self.retry_policy.max_attempts):
            loop = asyncio.get_running_loop()
            deadline = loop.time() + self._timeout
            response: Optional[httpx.Response] = None
            try:
                try:
                    response = await asyncio.wait_for(
                        self._client.send(
                            self._client.build_request(
                                "POST", COMPLETION_PATH, json=payload
                            ),
                            stream=True,
                        ),
                        timeout=self._timeout,
                    )
                    if response.status_code >= 400:
                        body = await asyncio.wait_for(
                            response.aread(), timeout=max(deadline - loop.time(), 0)
                        )
                        self._check_status(response.status_code, body)

                    content_type = response.headers.get("content-type", "")
                    if "text/event-stream" in content_type:
                        async for line in response.aiter_lines():
                            chunk_data = self.mapper.parse_sse_line(line)
                            if not chunk_data:
                                continue
                            if chunk_data.get("event") == "done":
                                break
                            chunk = self.mapper.map_provider_stream_chunk(
                                chunk_data, sequence
                            )
                            if chunk is None:
                                continue
                            sequence += 1
                            yield chunk
                    else:
                        body = await asyncio.wait_for(
                            response.aread(), timeout=max(deadline - loop.time(), 0)
                        )
                        data = self._parse_envelope(
                            response.status_code, body, StraicoCompletionData
                        )
                        for chunk in self.mapper.split_completion(data.get_completion()):
                            sequence += 1
                            yield chunk
                except (httpx.TransportError, asyncio.TimeoutError) as e:
                    raise self._classify(e)
                finally:
                    if response is not None:
                        await response.aclose()
            except ProxyError as e:
                retryable = e.transient and sequence == 0 and number < last_attempt
                extra = {
                    "request_id": request_id,
                    "attempt": number + 1,
                    "chunks_sent": sequence,
                    "error_kind": e.kind.value,
                    "upstream_code": e.upstream_code,
                }
                if not retryable:
                    self.logger.error("Upstream stream failed", extra=extra)
                    raise
                delay = self.retry_policy.delay(number)
                self.logger.warning(
                    "Retrying upstream stream", extra={**extra, "delay": round(delay, 3)}
                )
                await self._sleep(delay)
                continue

            self.logger.info(
                "Upstream stream finished",
                extra={"request_id": request_id, "chunks": sequence},
            )
            return

    async def close(self) -> None:
        """Close the connection pool."""
        await self._client.aclose()
        self.logger.info("Closed StraicoProvider", extra={"client_id": id(self._client)})
