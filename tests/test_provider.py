"""Upstream client tests against a scripted Straico endpoint."""
import asyncio
import json

import httpx
import pytest

from straico_proxy.providers.models import (
    StraicoCompletionRequest,
    StraicoImageRequest,
    UpstreamRejected,
    UpstreamTimeout,
    UpstreamUnavailable,
)
from tests.conftest import (
    GPT_4O,
    DroppingStream,
    ScriptedUpstream,
    completion_body,
    sse_event,
)

pytestmark = pytest.mark.anyio

REQUEST = StraicoCompletionRequest(models=[GPT_4O], message="<user>Hi</user>")


def ok() -> httpx.Response:
    return httpx.Response(200, json=completion_body("Hello"))


class TestCreateCompletion:
    async def test_sends_straico_request(self, make_provider):
        upstream = ScriptedUpstream(ok())
        provider = make_provider(upstream)

        data = await provider.create_completion(REQUEST, "req-1")

        assert data.get_completion().choices[0].message.content == "Hello"
        sent = upstream.requests[0]
        assert sent.url == "https://api.straico.test/v1/prompt/completion"
        assert sent.headers["Authorization"] == "Bearer straico-secret"
        assert json.loads(sent.content) == {"models": [GPT_4O], "message": "<user>Hi</user>"}

    async def test_transient_failures_then_success(self, make_provider, sleep):
        upstream = ScriptedUpstream(httpx.Response(503), httpx.Response(503), ok())
        provider = make_provider(upstream)

        data = await provider.create_completion(REQUEST, "req-1")

        assert data.get_completion().choices[0].message.content == "Hello"
        assert upstream.calls == 3
        assert len(sleep.delays) == 2
        assert sleep.delays[0] < sleep.delays[1]

    async def test_retries_are_bounded(self, make_provider, sleep, settings):
        upstream = ScriptedUpstream(httpx.Response(502))
        provider = make_provider(upstream)

        with pytest.raises(UpstreamUnavailable) as exc_info:
            await provider.create_completion(REQUEST, "req-1")

        assert exc_info.value.upstream_code == 502
        assert upstream.calls == settings.UPSTREAM_MAX_RETRIES + 1
        assert len(sleep.delays) == settings.UPSTREAM_MAX_RETRIES
        assert sleep.delays == sorted(set(sleep.delays))

    @pytest.mark.parametrize("status", [400, 401, 404, 422, 429])
    async def test_client_errors_are_not_retried(self, make_provider, sleep, status):
        upstream = ScriptedUpstream(
            httpx.Response(status, json={"error": "Model not available"}), ok()
        )
        provider = make_provider(upstream)

        with pytest.raises(UpstreamRejected) as exc_info:
            await provider.create_completion(REQUEST, "req-1")

        assert exc_info.value.upstream_code == status
        assert exc_info.value.message == "Model not available"
        assert upstream.calls == 1
        assert sleep.delays == []

    async def test_timeouts_exhaust_as_timeout(self, make_provider):
        upstream = ScriptedUpstream(httpx.ReadTimeout("slow"))
        provider = make_provider(upstream)

        with pytest.raises(UpstreamTimeout):
            await provider.create_completion(REQUEST, "req-1")
        assert upstream.calls == 4

    async def test_last_failure_kind_wins(self, make_provider):
        upstream = ScriptedUpstream(
            httpx.ReadTimeout("slow"),
            httpx.ConnectError("refused"),
            httpx.ReadTimeout("slow"),
            httpx.ConnectError("refused"),
        )
        provider = make_provider(upstream)

        with pytest.raises(UpstreamUnavailable):
            await provider.create_completion(REQUEST, "req-1")

    async def test_pool_exhaustion_is_not_retried(self, make_provider):
        upstream = ScriptedUpstream(httpx.PoolTimeout("no connection"), ok())
        provider = make_provider(upstream)

        with pytest.raises(UpstreamUnavailable) as exc_info:
            await provider.create_completion(REQUEST, "req-1")

        assert exc_info.value.details["reason"] == "pool_timeout"
        assert upstream.calls == 1

    async def test_malformed_body(self, make_provider):
        upstream = ScriptedUpstream(httpx.Response(200, content=b"<html>oops</html>"))
        provider = make_provider(upstream)

        with pytest.raises(UpstreamUnavailable):
            await provider.create_completion(REQUEST, "req-1")
        assert upstream.calls == 1

    async def test_unsuccessful_envelope(self, make_provider):
        upstream = ScriptedUpstream(
            httpx.Response(200, json={"success": False, "error": "Insufficient coins"})
        )
        provider = make_provider(upstream)

        with pytest.raises(UpstreamRejected) as exc_info:
            await provider.create_completion(REQUEST, "req-1")
        assert exc_info.value.message == "Insufficient coins"

    async def test_cancellation_reaches_the_transport(self, make_provider):
        started = asyncio.Event()
        released = asyncio.Event()

        async def hang(request: httpx.Request) -> httpx.Response:
            started.set()
            try:
                await asyncio.sleep(30)
            finally:
                released.set()
            return ok()

        provider = make_provider(ScriptedUpstream(hang))
        task = asyncio.ensure_future(provider.create_completion(REQUEST, "req-1"))
        await started.wait()

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert released.is_set()


class TestStreamCompletion:
    async def collect(self, provider):
        return [chunk async for chunk in provider.stream_completion(REQUEST, "req-1")]

    async def test_json_answer_is_split(self, make_provider):
        provider = make_provider(ScriptedUpstream(ok()))

        chunks = await self.collect(provider)

        assert [c.content for c in chunks] == ["Hello", ""]
        assert chunks[-1].finish_reason == "stop"
        assert chunks[-1].usage.total_tokens == 12

    async def test_event_stream_is_relayed_in_order(self, make_provider):
        async def events(request: httpx.Request) -> httpx.Response:
            body = DroppingStream(
                [sse_event("a"), sse_event("b"), sse_event("c"), b"data: [DONE]\n\n"],
                drop=False,
            )
            return httpx.Response(
                200, headers={"content-type": "text/event-stream"}, stream=body
            )

        provider = make_provider(ScriptedUpstream(events))

        chunks = await self.collect(provider)

        assert [c.content for c in chunks] == ["a", "b", "c"]
        assert [c.sequence for c in chunks] == [0, 1, 2]

    async def test_retried_before_first_chunk(self, make_provider):
        upstream = ScriptedUpstream(httpx.Response(503), ok())
        provider = make_provider(upstream)

        chunks = await self.collect(provider)

        assert upstream.calls == 2
        assert chunks[0].content == "Hello"

    async def test_not_retried_after_first_chunk(self, make_provider):
        async def dropping(request: httpx.Request) -> httpx.Response:
            body = DroppingStream([sse_event("a"), sse_event("b"), sse_event("c")])
            return httpx.Response(
                200, headers={"content-type": "text/event-stream"}, stream=body
            )

        upstream = ScriptedUpstream(dropping)
        provider = make_provider(upstream)
        received = []

        with pytest.raises(UpstreamUnavailable):
            async for chunk in provider.stream_completion(REQUEST, "req-1"):
                received.append(chunk.content)

        assert received == ["a", "b", "c"]
        assert upstream.calls == 1

    async def test_closing_the_stream_releases_the_response(self, make_provider):
        body = DroppingStream([sse_event("a"), sse_event("b")], drop=False)

        async def events(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200, headers={"content-type": "text/event-stream"}, stream=body
            )

        provider = make_provider(ScriptedUpstream(events))
        stream = provider.stream_completion(REQUEST, "req-1")

        first = await stream.__anext__()
        await stream.aclose()

        assert first.content == "a"
        assert body.closed

    async def test_malformed_tool_call_is_not_retried(self, make_provider, sleep):
        upstream = ScriptedUpstream(
            httpx.Response(200, json=completion_body("<tool_call>{not json}</tool_call>"))
        )
        provider = make_provider(upstream)

        with pytest.raises(UpstreamUnavailable) as exc_info:
            await self.collect(provider)

        assert exc_info.value.transient is False
        assert upstream.calls == 1
        assert sleep.delays == []

    async def test_malformed_event_is_not_retried(self, make_provider, sleep):
        async def broken(request: httpx.Request) -> httpx.Response:
            body = DroppingStream([b"data: {broken\n\n"], drop=False)
            return httpx.Response(
                200, headers={"content-type": "text/event-stream"}, stream=body
            )

        upstream = ScriptedUpstream(broken)
        provider = make_provider(upstream)

        with pytest.raises(UpstreamUnavailable):
            await self.collect(provider)

        assert upstream.calls == 1
        assert sleep.delays == []

    async def test_malformed_usage_is_not_retried(self, make_provider, sleep):
        async def bad_usage(request: httpx.Request) -> httpx.Response:
            event = {"choices": [], "usage": {"total_tokens": "many"}}
            body = DroppingStream(
                [f"data: {json.dumps(event)}\n\n".encode()], drop=False
            )
            return httpx.Response(
                200, headers={"content-type": "text/event-stream"}, stream=body
            )

        upstream = ScriptedUpstream(bad_usage)
        provider = make_provider(upstream)

        with pytest.raises(UpstreamUnavailable):
            await self.collect(provider)

        assert upstream.calls == 1

    async def test_client_error_before_stream(self, make_provider):
        upstream = ScriptedUpstream(httpx.Response(400, json={"message": "bad prompt"}))
        provider = make_provider(upstream)

        with pytest.raises(UpstreamRejected) as exc_info:
            await self.collect(provider)
        assert exc_info.value.upstream_code == 400
        assert upstream.calls == 1


async def test_create_image(make_provider):
    upstream = ScriptedUpstream(
        httpx.Response(
            200,
            json={
                "data": {
                    "zip": "https://img/all.zip",
                    "images": ["https://img/1.png"],
                    "price": {"price_per_image": 120, "quantity_images": 1, "total": 120},
                },
                "success": True,
            },
        )
    )
    provider = make_provider(upstream)

    data = await provider.create_image(
        StraicoImageRequest(model="openai/dall-e-3", description="a cat"), "req-1"
    )

    assert data.images == ["https://img/1.png"]
    assert upstream.requests[0].url.path == "/v0/image/generation"
    assert json.loads(upstream.requests[0].content) == {
        "model": "openai/dall-e-3",
        "description": "a cat",
        "size": "square",
        "variations": 1,
    }
