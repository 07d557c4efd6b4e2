"""Base router implementation."""
from abc import ABC, abstractmethod
from typing import List, Optional

from fastapi import APIRouter, Request

from ...core.logger import LoggerService


class BaseRouter(ABC):
    """Owns an ``APIRouter`` and registers its endpoints on construction."""

    def __init__(
        self,
        logger: LoggerService,
        prefix: str = "",
        tags: Optional[List[str]] = None,
    ):
        if logger is None:
            raise ValueError("Logger service is required")

        self.router = APIRouter(prefix=prefix, tags=tags or [])
        self._setup_routes()

    @staticmethod
    def request_id(request: Request) -> str:
        """Identifier assigned by RequestIDMiddleware."""
        return getattr(request.state, "request_id", None) or "unknown"

    @abstractmethod
    def _setup_routes(self) -> None:
        """Register the router endpoints."""
