"""Shared fixtures: settings, container, app client and a scripted upstream."""
import json
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Union

import httpx
import pytest
from dependency_injector import providers

from straico_proxy.core.logger import LoggerService
from straico_proxy.core.settings import Settings
from straico_proxy.di import Container
from straico_proxy.main import init_app
from straico_proxy.providers.retry import RetryPolicy
from straico_proxy.providers.straico.mapper import StraicoMapper
from straico_proxy.providers.straico.model_mapper import StraicoModelMapper
from straico_proxy.providers.straico.provider import StraicoProvider

CLIENT_KEY = "client-key"
GPT_4O = "openai/gpt-4o-2024-11-20"


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


def completion_body(
    content: Optional[str] = "Hello there",
    finish_reason: str = "end_turn",
    model: str = GPT_4O,
) -> Dict[str, Any]:
    """Straico completion envelope as returned by /v1/prompt/completion."""
    return {
        "data": {
            "completions": {
                model: {
                    "completion": {
                        "id": "chatcmpl-upstream",
                        "object": "chat.completion",
                        "created": 1700000000,
                        "model": model,
                        "choices": [
                            {
                                "index": 0,
                                "message": {"role": "assistant", "content": content},
                                "finish_reason": finish_reason,
                            }
                        ],
                        "usage": {
                            "prompt_tokens": 5,
                            "completion_tokens": 7,
                            "total_tokens": 12,
                        },
                    },
                    "price": {"input": 0.1, "output": 0.2, "total": 0.3},
                    "words": {"input": 3, "output": 5, "total": 8},
                }
            },
            "overall_price": {"input": 0.1, "output": 0.2, "total": 0.3},
            "overall_words": {"input": 3, "output": 5, "total": 8},
        },
        "success": True,
    }


def sse_event(content: str) -> bytes:
    payload = {"choices": [{"index": 0, "delta": {"content": content}}]}
    return f"data: {json.dumps(payload)}\n\n".encode()


class DroppingStream(httpx.AsyncByteStream):
    """Response body that sends some bytes and then loses the connection."""

    def __init__(self, parts: List[bytes], drop: bool = True) -> None:
        self.parts = parts
        self.drop = drop
        self.closed = False

    async def __aiter__(self) -> AsyncIterator[bytes]:
        for part in self.parts:
            yield part
        if self.drop:
            raise httpx.ReadError("connection dropped")

    async def aclose(self) -> None:
        self.closed = True


Reply = Union[httpx.Response, Exception, Callable[[httpx.Request], Any]]


class ScriptedUpstream:
    """Mock Straico endpoint answering with a fixed sequence of replies.

    The last reply repeats once the script is exhausted.
    """

    def __init__(self, *replies: Reply) -> None:
        self.replies = list(replies)
        self.requests: List[httpx.Request] = []

    @property
    def calls(self) -> int:
        return len(self.requests)

    def json_bodies(self) -> List[Dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests]

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        index = min(len(self.requests), len(self.replies)) - 1
        reply = self.replies[index]
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, httpx.Response):
            # Fresh copy, a response object cannot be consumed twice
            return httpx.Response(
                reply.status_code, headers=reply.headers, content=reply.content
            )
        return await reply(request)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


class RecordingSleep:
    """Replacement for asyncio.sleep that only records the delays."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        STRAICO_API_KEY="straico-secret",
        STRAICO_BASE_URL="https://api.straico.test",
        PROXY_API_KEYS=[CLIENT_KEY],
        UPSTREAM_MAX_RETRIES=3,
        UPSTREAM_RETRY_BASE_DELAY=0.5,
        UPSTREAM_RETRY_JITTER=0.5,
        UPSTREAM_TIMEOUT=5.0,
        DISCONNECT_POLL_INTERVAL=0.05,
        LOG_LEVEL="WARNING",
    )


@pytest.fixture
def logger(settings: Settings) -> LoggerService:
    return LoggerService(settings)


@pytest.fixture
def model_mapper(logger: LoggerService, settings: Settings) -> StraicoModelMapper:
    return StraicoModelMapper(logger=logger, settings=settings)


@pytest.fixture
def mapper(logger: LoggerService, model_mapper: StraicoModelMapper) -> StraicoMapper:
    return StraicoMapper(logger=logger, model_mapper=model_mapper)


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def make_provider(logger, settings, mapper, sleep):
    """Build a provider talking to a scripted upstream."""
    created: List[StraicoProvider] = []

    def factory(upstream: ScriptedUpstream) -> StraicoProvider:
        provider = StraicoProvider(
            logger=logger,
            settings=settings,
            mapper=mapper,
            retry_policy=RetryPolicy.from_settings(settings),
            transport=upstream.transport(),
            sleep=sleep,
        )
        created.append(provider)
        return provider

    return factory


@pytest.fixture
def upstream() -> ScriptedUpstream:
    return ScriptedUpstream(httpx.Response(200, json=completion_body()))


@pytest.fixture
def container(settings: Settings, upstream: ScriptedUpstream, sleep) -> Container:
    container = Container()
    container.settings.override(providers.Object(settings))
    container.upstream_transport.override(providers.Object(upstream.transport()))
    container.upstream_sleep.override(providers.Object(sleep))
    return container


@pytest.fixture
async def client(container: Container) -> AsyncIterator[httpx.AsyncClient]:
    app = init_app(container)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(
        transport=transport,
        base_url="http://proxy.test",
        headers={"Authorization": f"Bearer {CLIENT_KEY}"},
    ) as http_client:
        yield http_client
    await container.provider().close()


def sse_events(body: str) -> List[str]:
    """Split an SSE body into the payloads of its data lines."""
    return [
        line[len("data: "):]
        for line in body.split("\n\n")
        if line.startswith("data: ")
    ]
