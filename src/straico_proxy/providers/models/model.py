"""Provider model schemas."""
from typing import Literal, Optional

from pydantic import BaseModel, Field


class ProviderModel(BaseModel):
    """Entry of the client-to-upstream model table."""

    model_id: str = Field(..., description="Client-facing model identifier")
    upstream_id: str = Field(
        ..., description="Provider-qualified identifier in format provider/model"
    )
    name: str = Field(..., description="Human-readable model name")
    owned_by: str = Field(..., description="Model vendor")
    modality: Literal["text", "image"] = Field("text", description="Output modality")
    context_length: Optional[int] = Field(None, description="Maximum context length")
    max_output_tokens: Optional[int] = Field(
        None, description="Largest accepted max_tokens value"
    )
