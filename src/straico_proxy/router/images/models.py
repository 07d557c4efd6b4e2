"""OpenAI-compatible image generation models."""
from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field


class ImageGenerationRequest(BaseModel):
    """Image generation request."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    model: str = Field("dall-e-3", min_length=1)
    prompt: str = Field(..., min_length=1)
    n: int = Field(1, ge=1, le=4)
    size: Literal["1024x1024", "1792x1024", "1024x1792"] = "1024x1024"
    response_format: Literal["url"] = "url"


class ImageObject(BaseModel):
    """Generated image reference."""

    url: str


class ImageGenerationResponse(BaseModel):
    """Image generation response."""

    created: int
    data: List[ImageObject]
