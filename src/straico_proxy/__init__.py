"""OpenAI-compatible gateway in front of the Straico API."""

__version__ = "0.1.0"
