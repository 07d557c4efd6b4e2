"""Provider-agnostic stream chunk."""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .straico import StraicoToolCall, StraicoUsage


class StreamChunk(BaseModel):
    """Incremental unit of generated content, in upstream arrival order."""

    model_config = ConfigDict(frozen=True)

    sequence: int = Field(..., ge=0, description="0-based arrival index")
    content: str = Field("", description="Delta text")
    finish_reason: Optional[str] = Field(None, description="Set on the last chunk")
    tool_calls: Optional[List[StraicoToolCall]] = None
    usage: Optional[StraicoUsage] = None
