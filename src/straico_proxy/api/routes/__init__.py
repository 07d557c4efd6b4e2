"""API routers."""
from .chat_completion import ChatCompletionRouter
from .health import HealthRouter
from .images import ImagesRouter
from .models import ModelsRouter

__all__ = ["ChatCompletionRouter", "HealthRouter", "ImagesRouter", "ModelsRouter"]
