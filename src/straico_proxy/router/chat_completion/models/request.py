"""OpenAI-compatible chat completion request models.

The schema is exhaustive: every accepted field is declared here and has a
defined translation. Unknown fields are rejected instead of being dropped.
"""
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class RequestModel(BaseModel):
    """Base for request-side models: immutable, closed schema."""

    model_config = ConfigDict(extra="forbid", frozen=True)


class TextContent(RequestModel):
    """Text content part."""

    type: Literal["text"] = "text"
    text: str = Field(description="The text content")


class FunctionCall(RequestModel):
    """Function invocation requested by the model."""

    name: str = Field(min_length=1)
    arguments: str = Field(
        "{}", description="JSON-encoded arguments, as produced by the model"
    )


class ToolCall(RequestModel):
    """Tool call attached to an assistant message."""

    id: str = Field(pattern=r"^[A-Za-z0-9_.:\-]+$")
    type: Literal["function"] = "function"
    function: FunctionCall


class SystemMessage(RequestModel):
    """Developer-provided instructions."""

    role: Literal["system"]
    content: Union[str, List[TextContent]]


class UserMessage(RequestModel):
    """Message sent by the end user."""

    role: Literal["user"]
    content: Union[str, List[TextContent]]


class AssistantMessage(RequestModel):
    """Earlier model output replayed as conversation history."""

    role: Literal["assistant"]
    content: Optional[str] = None
    tool_calls: Optional[List[ToolCall]] = None

    @model_validator(mode="after")
    def validate_content(self) -> "AssistantMessage":
        """Require either content or tool calls."""
        if self.content is None and not self.tool_calls:
            raise ValueError("Assistant message must have content or tool_calls")
        return self


class ToolMessage(RequestModel):
    """Result of a tool call."""

    role: Literal["tool"]
    content: str
    tool_call_id: str = Field(pattern=r"^[A-Za-z0-9_.:\-]+$")


Message = Annotated[
    Union[SystemMessage, UserMessage, AssistantMessage, ToolMessage],
    Field(discriminator="role"),
]


class FunctionDefinition(RequestModel):
    """Function exposed to the model."""

    name: str = Field(min_length=1, max_length=64)
    description: Optional[str] = None
    parameters: Optional[Dict[str, Any]] = None


class Tool(RequestModel):
    """Tool definition."""

    type: Literal["function"] = "function"
    function: FunctionDefinition


class ToolChoiceFunction(RequestModel):
    """Named function for a forced tool choice."""

    name: str


class NamedToolChoice(RequestModel):
    """Force a specific tool."""

    type: Literal["function"] = "function"
    function: ToolChoiceFunction


ToolChoice = Union[Literal["none", "auto", "required"], NamedToolChoice]


class StreamOptions(RequestModel):
    """Streaming options."""

    include_usage: bool = False


class ChatCompletionRequest(RequestModel):
    """OpenAI-compatible chat completion request."""

    model: str = Field(..., min_length=1, description="ID of the model to use")
    messages: List[Message] = Field(
        ...,
        description="A list of messages comprising the conversation so far",
    )
    temperature: Optional[float] = Field(
        None,
        ge=0.0,
        le=2.0,
        description="Sampling temperature, higher values make output more random",
    )
    max_tokens: Optional[int] = Field(
        None, ge=1, description="The maximum number of tokens to generate"
    )
    max_completion_tokens: Optional[int] = Field(
        None,
        ge=1,
        description="Alias of max_tokens used by newer OpenAI clients",
    )
    n: int = Field(1, ge=1, le=1, description="Only a single choice is supported")
    stream: bool = Field(
        False,
        description="If true, partial message deltas will be sent",
    )
    stream_options: Optional[StreamOptions] = None
    tools: Optional[List[Tool]] = Field(None, max_length=128)
    tool_choice: Optional[ToolChoice] = None

    @property
    def include_usage(self) -> bool:
        """Whether a usage chunk is requested at the end of a stream."""
        return bool(self.stream_options and self.stream_options.include_usage)
