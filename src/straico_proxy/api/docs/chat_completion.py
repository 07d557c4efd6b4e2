"""Chat completion API documentation."""
from typing import Dict

from .responses import ERROR_RESPONSES

CHAT_COMPLETION_SUMMARY = "Create chat completion"
CHAT_COMPLETION_OPERATION_ID = "create_chat_completion_v1"
CHAT_COMPLETION_TAGS = ["chat"]

CHAT_COMPLETION_DESCRIPTION = """
Creates a completion for the chat message through the Straico API.

This endpoint follows the OpenAI API specification and is compatible with OpenAI
client libraries. The model parameter takes a client-facing id such as `gpt-4o`
or a Straico id such as `anthropic/claude-3.5-sonnet`. See `GET /v1/models`.

The endpoint supports both streaming and non-streaming responses:
- For streaming, set `stream: true` in the request and handle SSE responses
- For non-streaming, set `stream: false` (default) and receive a single JSON response

The endpoint also supports:
- Function calling through the `tools` parameter
- `temperature` and `max_tokens`
- A trailing usage chunk with `stream_options.include_usage`

A stream that fails after it started ends with one `data: {"error": ...}` event
instead of `data: [DONE]`.
"""

OPENAI_SUCCESS_EXAMPLE = {
    "id": "chatcmpl-123",
    "object": "chat.completion",
    "created": 1694268190,
    "model": "gpt-4o",
    "choices": [
        {
            "index": 0,
            "message": {
                "role": "assistant",
                "tool_calls": [
                    {
                        "id": "call_abc123",
                        "type": "function",
                        "function": {
                            "name": "get_weather",
                            "arguments": '{"location": "Paris", "unit": "celsius"}',
                        },
                    }
                ],
            },
            "finish_reason": "tool_calls",
        }
    ],
    "usage": {"prompt_tokens": 25, "completion_tokens": 32, "total_tokens": 57},
}

OPENAI_STREAM_EXAMPLE = {
    "id": "chatcmpl-123",
    "object": "chat.completion.chunk",
    "created": 1694268190,
    "model": "gpt-4o",
    "choices": [{"index": 0, "delta": {"role": "assistant", "content": "Hello"}}],
}

CHAT_COMPLETION_RESPONSES: Dict[int, Dict] = {
    200: {
        "description": "Successful response",
        "content": {
            "application/json": {"example": OPENAI_SUCCESS_EXAMPLE},
            "text/event-stream": {"example": OPENAI_STREAM_EXAMPLE},
        },
    },
    **ERROR_RESPONSES,
}
