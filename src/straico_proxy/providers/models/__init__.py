"""Provider models package."""
from .errors import (
    AuthFailure,
    ErrorKind,
    InternalFailure,
    InvalidRequest,
    ProxyError,
    UpstreamRejected,
    UpstreamTimeout,
    UpstreamUnavailable,
)
from .model import ProviderModel
from .straico import (
    StraicoChoice,
    StraicoCompletion,
    StraicoCompletionData,
    StraicoCompletionRequest,
    StraicoFunctionCall,
    StraicoImageData,
    StraicoImageRequest,
    StraicoMessage,
    StraicoModelCompletion,
    StraicoToolCall,
    StraicoUsage,
)
from .stream import StreamChunk

__all__ = [
    "AuthFailure",
    "ErrorKind",
    "InternalFailure",
    "InvalidRequest",
    "ProxyError",
    "UpstreamRejected",
    "UpstreamTimeout",
    "UpstreamUnavailable",
    "ProviderModel",
    "StraicoChoice",
    "StraicoCompletion",
    "StraicoCompletionData",
    "StraicoCompletionRequest",
    "StraicoFunctionCall",
    "StraicoImageData",
    "StraicoImageRequest",
    "StraicoMessage",
    "StraicoModelCompletion",
    "StraicoToolCall",
    "StraicoUsage",
    "StreamChunk",
]
