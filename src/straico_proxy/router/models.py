"""OpenAI-compatible model listing schemas."""
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from ..providers.models import ProviderModel


class ModelObject(BaseModel):
    """Single model entry."""

    id: str = Field(..., description="Client-facing model id")
    object: Literal["model"] = "model"
    created: int = 0
    owned_by: str
    name: str
    upstream_id: str = Field(..., description="Straico model id")
    modality: str = "text"
    context_length: Optional[int] = None
    max_output_tokens: Optional[int] = None

    @classmethod
    def from_provider_model(cls, model: ProviderModel) -> "ModelObject":
        """Build the listing entry from a model table entry."""
        return cls(
            id=model.model_id,
            owned_by=model.owned_by,
            name=model.name,
            upstream_id=model.upstream_id,
            modality=model.modality,
            context_length=model.context_length,
            max_output_tokens=model.max_output_tokens,
        )


class ModelListResponse(BaseModel):
    """Model list response."""

    object: Literal["list"] = "list"
    data: List[ModelObject]
