"""OpenAI-compatible chat completion response models."""
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class ResponseFunctionCall(BaseModel):
    """Function invocation generated by the model."""

    name: str
    arguments: str = "{}"


class ResponseToolCall(BaseModel):
    """Tool call generated by the model."""

    id: str
    type: Literal["function"] = "function"
    function: ResponseFunctionCall


class Usage(BaseModel):
    """Token usage of a completion."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ResponseMessage(BaseModel):
    """Generated assistant message."""

    role: Literal["assistant"] = "assistant"
    content: Optional[str] = None
    tool_calls: Optional[List[ResponseToolCall]] = None


class Choice(BaseModel):
    """Non-streaming choice."""

    index: int = 0
    message: ResponseMessage
    finish_reason: Optional[str] = None


class ChatCompletionResponse(BaseModel):
    """Aggregated chat completion."""

    id: str = Field(..., description="Unique identifier for this completion")
    object: Literal["chat.completion"] = "chat.completion"
    created: int
    model: str
    choices: List[Choice]
    usage: Usage = Field(default_factory=Usage)


class ChunkToolCall(ResponseToolCall):
    """Tool call delta, carries its position in the tool call list."""

    index: int = 0


class Delta(BaseModel):
    """Incremental message content."""

    role: Optional[Literal["assistant"]] = None
    content: Optional[str] = None
    tool_calls: Optional[List[ChunkToolCall]] = None


class ChunkChoice(BaseModel):
    """Streaming choice."""

    index: int = 0
    delta: Delta
    finish_reason: Optional[str] = None


class ChatCompletionChunk(BaseModel):
    """One streamed event of a chat completion."""

    id: str = Field(..., description="Unique identifier for this completion")
    object: Literal["chat.completion.chunk"] = "chat.completion.chunk"
    created: int
    model: str
    choices: List[ChunkChoice]
    usage: Optional[Usage] = None
