"""API documentation package.

This package contains OpenAPI documentation for API endpoints:
- chat_completion.py: Chat completion endpoints
- responses.py: Common response examples
"""

from .chat_completion import (
    CHAT_COMPLETION_DESCRIPTION,
    CHAT_COMPLETION_OPERATION_ID,
    CHAT_COMPLETION_RESPONSES,
    CHAT_COMPLETION_SUMMARY,
    CHAT_COMPLETION_TAGS,
)
from .responses import ERROR_RESPONSES

__all__ = [
    "CHAT_COMPLETION_DESCRIPTION",
    "CHAT_COMPLETION_OPERATION_ID",
    "CHAT_COMPLETION_RESPONSES",
    "CHAT_COMPLETION_SUMMARY",
    "CHAT_COMPLETION_TAGS",
    "ERROR_RESPONSES",
]
