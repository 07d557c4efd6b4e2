"""Image generation pipeline."""
from .models import ImageGenerationRequest, ImageGenerationResponse, ImageObject

__all__ = ["ImageGenerationRequest", "ImageGenerationResponse", "ImageObject"]
