"""Straico API request and response schemas."""
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class StraicoCompletionRequest(BaseModel):
    """Body of ``POST /v1/prompt/completion``."""

    model_config = ConfigDict(frozen=True)

    models: List[str] = Field(
        ...,
        min_length=1,
        max_length=4,
        description="Provider-qualified model identifiers",
    )
    message: str = Field(..., min_length=1, description="Rendered prompt")
    temperature: Optional[float] = Field(None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(None, ge=1)


class Price(BaseModel):
    """Price breakdown in Straico coins."""

    input: float = 0.0
    output: float = 0.0
    total: float = 0.0


class Words(BaseModel):
    """Word count statistics."""

    input: int = 0
    output: int = 0
    total: int = 0


class StraicoUsage(BaseModel):
    """Token usage reported by the upstream model."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class StraicoFunctionCall(BaseModel):
    """Function call as reported inside an upstream message."""

    name: str
    arguments: Any = None


class StraicoToolCall(BaseModel):
    """Tool call as reported inside an upstream message."""

    id: str = "func"
    type: Literal["function"] = "function"
    function: StraicoFunctionCall


class StraicoMessage(BaseModel):
    """Message of an upstream completion choice."""

    role: str = "assistant"
    content: Optional[str] = None
    tool_calls: Optional[List[StraicoToolCall]] = None


class StraicoChoice(BaseModel):
    """Single upstream completion choice."""

    message: StraicoMessage
    index: int = 0
    finish_reason: Optional[str] = None


class StraicoCompletion(BaseModel):
    """OpenAI-shaped completion nested in the Straico envelope."""

    choices: List[StraicoChoice] = Field(default_factory=list)
    object: str = "chat.completion"
    id: str = ""
    model: str = ""
    created: int = 0
    usage: StraicoUsage = Field(default_factory=StraicoUsage)


class StraicoModelCompletion(BaseModel):
    """Per-model entry of the completions map."""

    completion: StraicoCompletion
    price: Price = Field(default_factory=Price)
    words: Words = Field(default_factory=Words)


class StraicoCompletionData(BaseModel):
    """``data`` member of a completion response."""

    completions: Dict[str, StraicoModelCompletion]
    overall_price: Price = Field(default_factory=Price)
    overall_words: Words = Field(default_factory=Words)

    def get_completion(self) -> StraicoCompletion:
        """Return the completion of the first (and only requested) model."""
        if not self.completions:
            raise ValueError("Upstream returned no completions")
        return next(iter(self.completions.values())).completion


class StraicoImageRequest(BaseModel):
    """Body of ``POST /v0/image/generation``."""

    model_config = ConfigDict(frozen=True)

    model: str
    description: str = Field(..., min_length=1)
    size: Literal["square", "landscape", "portrait"] = "square"
    variations: int = Field(1, ge=1, le=4)


class ImagePrice(BaseModel):
    """Image generation pricing."""

    price_per_image: float = 0
    quantity_images: int = 0
    total: float = 0


class StraicoImageData(BaseModel):
    """``data`` member of an image generation response."""

    zip: Optional[str] = None
    images: List[str] = Field(default_factory=list)
    price: ImagePrice = Field(default_factory=ImagePrice)
