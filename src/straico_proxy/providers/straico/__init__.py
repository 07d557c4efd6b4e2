"""Straico provider package."""
from .mapper import StraicoMapper
from .model_mapper import StraicoModelMapper
from .provider import StraicoProvider

__all__ = ["StraicoMapper", "StraicoModelMapper", "StraicoProvider"]
