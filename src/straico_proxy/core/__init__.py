"""Core services: settings and logging."""
from .logger import LoggerService
from .settings import Settings

__all__ = ["LoggerService", "Settings"]
