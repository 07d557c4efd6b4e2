"""SSE relay tests."""
import json
from typing import AsyncGenerator, List

import pytest

from straico_proxy.providers.models import (
    StraicoUsage,
    StreamChunk,
    UpstreamUnavailable,
)
from straico_proxy.router.chat_completion.models import (
    ChatCompletionRequest,
    ChatContext,
)
from straico_proxy.router.chat_completion.streamer import DONE_EVENT, ResponseStreamer

pytestmark = pytest.mark.anyio


class Fragments:
    """Async iterator over chunks that counts pulls and may fail."""

    def __init__(self, chunks: List[StreamChunk], error: Exception = None) -> None:
        self.chunks = chunks
        self.error = error
        self.pulls = 0
        self.closed = False

    def __aiter__(self) -> "Fragments":
        return self

    async def __anext__(self) -> StreamChunk:
        if self.pulls < len(self.chunks):
            chunk = self.chunks[self.pulls]
            self.pulls += 1
            return chunk
        if self.error is not None:
            raise self.error
        raise StopAsyncIteration

    async def aclose(self) -> None:
        self.closed = True


def make_context(**request_fields) -> ChatContext:
    request = ChatCompletionRequest(
        model="gpt-4o",
        messages=[{"role": "user", "content": "Hi"}],
        stream=True,
        **request_fields,
    )
    return ChatContext(request=request, request_id="req-1")


def text_chunks(*parts: str) -> List[StreamChunk]:
    return [StreamChunk(sequence=i, content=part) for i, part in enumerate(parts)]


def decode(events: List[bytes]) -> List[str]:
    payloads = []
    for event in events:
        text = event.decode("utf-8")
        assert text.startswith("data: ") and text.endswith("\n\n")
        payloads.append(text[len("data: "):-2])
    return payloads


@pytest.fixture
def streamer(logger, mapper) -> ResponseStreamer:
    return ResponseStreamer(logger=logger, mapper=mapper)


async def collect(stream: AsyncGenerator[bytes, None]) -> List[bytes]:
    return [event async for event in stream]


async def test_chunks_relayed_in_order(streamer):
    context = make_context()
    fragments = Fragments(
        text_chunks("Hel", "lo", "!")
        + [StreamChunk(sequence=3, finish_reason="stop")]
    )

    events = await collect(streamer.stream(fragments, context))

    assert events[-1] == DONE_EVENT
    payloads = [json.loads(p) for p in decode(events[:-1])]
    assert [p["choices"][0]["delta"].get("content") for p in payloads] == [
        "Hel",
        "lo",
        "!",
        None,
    ]
    assert payloads[-1]["choices"][0]["finish_reason"] == "stop"
    assert {p["id"] for p in payloads} == {context.completion_id}
    assert {p["model"] for p in payloads} == {"gpt-4o"}
    assert all(p["object"] == "chat.completion.chunk" for p in payloads)


async def test_role_only_on_first_event(streamer):
    events = await collect(
        streamer.stream(Fragments(text_chunks("a", "b")), make_context())
    )

    payloads = [json.loads(p) for p in decode(events[:-1])]
    assert payloads[0]["choices"][0]["delta"]["role"] == "assistant"
    assert "role" not in payloads[1]["choices"][0]["delta"]


async def test_usage_chunk_before_done(streamer):
    context = make_context(stream_options={"include_usage": True})
    usage = StraicoUsage(prompt_tokens=2, completion_tokens=3, total_tokens=5)
    fragments = Fragments(
        text_chunks("a") + [StreamChunk(sequence=1, finish_reason="stop", usage=usage)]
    )

    events = await collect(streamer.stream(fragments, context))

    assert events[-1] == DONE_EVENT
    usage_event = json.loads(decode([events[-2]])[0])
    assert usage_event["choices"] == []
    assert usage_event["usage"] == {
        "prompt_tokens": 2,
        "completion_tokens": 3,
        "total_tokens": 5,
    }


async def test_no_usage_chunk_unless_requested(streamer):
    usage = StraicoUsage(prompt_tokens=2, completion_tokens=3, total_tokens=5)
    fragments = Fragments([StreamChunk(sequence=0, content="a", usage=usage)])

    events = await collect(streamer.stream(fragments, make_context()))

    assert len(events) == 2
    assert "usage" not in json.loads(decode([events[0]])[0])


async def test_failure_ends_with_one_error_event(streamer):
    fragments = Fragments(
        text_chunks("a", "b", "c"),
        error=UpstreamUnavailable(message="Upstream unreachable"),
    )

    events = await collect(streamer.stream(fragments, make_context()))

    assert len(events) == 4
    assert DONE_EVENT not in events
    error = json.loads(decode([events[-1]])[0])["error"]
    assert error["code"] == "upstream_unavailable"
    assert error["type"] == "upstream_error"
    assert fragments.closed


async def test_unexpected_failure_is_not_leaked(streamer):
    fragments = Fragments(text_chunks("a"), error=KeyError("secret-internal-key"))

    events = await collect(streamer.stream(fragments, make_context()))

    assert len(events) == 2
    error = json.loads(decode([events[-1]])[0])["error"]
    assert error["code"] == "internal_error"
    assert error["message"] == "Internal server error"
    assert b"secret-internal-key" not in events[-1]


async def test_empty_upstream_only_done(streamer):
    events = await collect(streamer.stream(Fragments([]), make_context()))

    assert events == [DONE_EVENT]


async def test_pulls_follow_consumption(streamer):
    fragments = Fragments(text_chunks("a", "b", "c", "d"))
    stream = streamer.stream(fragments, make_context())

    await stream.__anext__()
    assert fragments.pulls == 1
    await stream.__anext__()
    assert fragments.pulls == 2

    await stream.aclose()
    assert fragments.closed
    assert fragments.pulls == 2
