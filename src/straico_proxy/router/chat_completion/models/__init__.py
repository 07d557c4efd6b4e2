"""Chat completion models."""
from .context import ChatContext
from .request import (
    AssistantMessage,
    ChatCompletionRequest,
    FunctionCall,
    FunctionDefinition,
    NamedToolChoice,
    StreamOptions,
    SystemMessage,
    TextContent,
    Tool,
    ToolCall,
    ToolChoiceFunction,
    ToolMessage,
    UserMessage,
)
from .response import (
    ChatCompletionChunk,
    ChatCompletionResponse,
    Choice,
    ChunkChoice,
    ChunkToolCall,
    Delta,
    ResponseFunctionCall,
    ResponseMessage,
    ResponseToolCall,
    Usage,
)

__all__ = [
    "ChatContext",
    "AssistantMessage",
    "ChatCompletionRequest",
    "FunctionCall",
    "FunctionDefinition",
    "NamedToolChoice",
    "StreamOptions",
    "SystemMessage",
    "TextContent",
    "Tool",
    "ToolCall",
    "ToolChoiceFunction",
    "ToolMessage",
    "UserMessage",
    "ChatCompletionChunk",
    "ChatCompletionResponse",
    "Choice",
    "ChunkChoice",
    "ChunkToolCall",
    "Delta",
    "ResponseFunctionCall",
    "ResponseMessage",
    "ResponseToolCall",
    "Usage",
]
