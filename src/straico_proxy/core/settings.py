"""Application settings."""
import json
from typing import Dict, List, Union

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings.

    Built once at startup and handed to the container. Nothing reads
    configuration from module globals.
    """

    model_config = SettingsConfigDict(
        extra="ignore",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # Project
    PROJECT_NAME: str = "straico-proxy"
    VERSION: str = "0.1.0"

    # Host
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # CORS
    BACKEND_CORS_ORIGINS: List[str] = ["*"]

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> Union[List[str], str]:
        """Validate CORS origins."""
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",")]
        elif isinstance(v, (list, str)):
            return v
        raise ValueError(v)

    # Straico upstream
    STRAICO_API_KEY: str = ""
    STRAICO_BASE_URL: str = "https://api.straico.com"

    # Upstream call policy
    UPSTREAM_TIMEOUT: float = 120.0  # seconds, per upstream call
    UPSTREAM_CONNECT_TIMEOUT: float = 10.0
    UPSTREAM_MAX_RETRIES: int = 3
    UPSTREAM_RETRY_BASE_DELAY: float = 0.5  # seconds, doubled per attempt
    UPSTREAM_RETRY_JITTER: float = 0.5  # fraction of the current delay

    @field_validator("UPSTREAM_RETRY_JITTER")
    @classmethod
    def validate_jitter(cls, v: float) -> float:
        """Jitter must stay below one delay step so backoff keeps growing."""
        if not 0.0 <= v < 1.0:
            raise ValueError("UPSTREAM_RETRY_JITTER must be in [0, 1)")
        return v

    # Upstream connection pool
    UPSTREAM_POOL_SIZE: int = 20
    UPSTREAM_POOL_KEEPALIVE: int = 10
    UPSTREAM_POOL_TIMEOUT: float = 5.0  # max wait for a pooled connection
    DISABLE_SSL_VERIFICATION: bool = False

    # Client authentication
    ENABLE_AUTH: bool = True
    PROXY_API_KEYS: List[str] = []

    @field_validator("PROXY_API_KEYS", mode="before")
    @classmethod
    def parse_proxy_api_keys(cls, v: Union[str, List[str]]) -> List[str]:
        """Parse accepted client keys from JSON list or comma-separated string."""
        if isinstance(v, str):
            if v.startswith("["):
                parsed = json.loads(v)
                if not isinstance(parsed, list):
                    raise ValueError("PROXY_API_KEYS must be a list")
                return [str(item) for item in parsed]
            return [i.strip() for i in v.split(",") if i.strip()]
        elif isinstance(v, list):
            return [str(item) for item in v]
        raise ValueError(v)

    # Additional client-facing model ids, {"alias": "provider/model"}
    EXTRA_MODEL_MAPPINGS: Dict[str, str] = {}

    @field_validator("EXTRA_MODEL_MAPPINGS", mode="before")
    @classmethod
    def parse_extra_model_mappings(cls, v: Union[str, Dict[str, str]]) -> Dict[str, str]:
        """Parse extra model mappings from a JSON object string or dict."""
        if isinstance(v, str):
            if not v.strip():
                return {}
            parsed = json.loads(v)
            if not isinstance(parsed, dict):
                raise ValueError("EXTRA_MODEL_MAPPINGS must be a JSON object")
            return {str(k): str(val) for k, val in parsed.items()}
        elif isinstance(v, dict):
            return {str(k): str(val) for k, val in v.items()}
        raise ValueError(v)

    # Seconds between client disconnect checks on non-streaming requests
    DISCONNECT_POLL_INTERVAL: float = 0.5

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"  # Available formats: json, text, structured
    LOG_EXTRA_FIELDS: list[str] = []  # Additional fields for logs
