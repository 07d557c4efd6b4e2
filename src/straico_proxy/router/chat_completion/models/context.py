"""Context models for chat completion functionality."""
import time
import uuid

from pydantic import BaseModel, Field

from .request import ChatCompletionRequest


def _completion_id() -> str:
    return f"chatcmpl-{uuid.uuid4().hex}"


class ChatContext(BaseModel):
    """Per-request state shared by the service, mapper and streamer."""

    request: ChatCompletionRequest = Field(description="Original chat request")
    request_id: str = Field(description="Request identifier for tracing")
    completion_id: str = Field(
        default_factory=_completion_id,
        description="Identifier reported on every response object",
    )
    created: int = Field(
        default_factory=lambda: int(time.time()),
        description="Unix timestamp shared by every chunk of the response",
    )

    @property
    def model(self) -> str:
        """Client-facing model id echoed in responses."""
        return self.request.model
