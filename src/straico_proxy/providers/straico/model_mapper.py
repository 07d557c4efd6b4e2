"""Straico model mapper."""
from typing import Dict, List, Optional

from ...core.logger import LoggerService
from ...core.settings import Settings
from ..models import InvalidRequest, ProviderModel

# Client-facing ids mapped to Straico provider-qualified ids.
# Order matters: the first entry for an upstream id is its canonical alias.
STRAICO_MODELS = [
    {
        "model_id": "gpt-4o",
        "upstream_id": "openai/gpt-4o-2024-11-20",
        "name": "OpenAI: GPT-4o",
        "owned_by": "openai",
        "context_length": 128000,
        "max_output_tokens": 16384,
    },
    {
        "model_id": "gpt-4o-mini",
        "upstream_id": "openai/gpt-4o-mini",
        "name": "OpenAI: GPT-4o mini",
        "owned_by": "openai",
        "context_length": 128000,
        "max_output_tokens": 16384,
    },
    {
        "model_id": "gpt-4-turbo",
        "upstream_id": "openai/gpt-4-turbo-2024-04-09",
        "name": "OpenAI: GPT-4 Turbo",
        "owned_by": "openai",
        "context_length": 128000,
        "max_output_tokens": 4096,
    },
    {
        "model_id": "o1-mini",
        "upstream_id": "openai/o1-mini",
        "name": "OpenAI: o1-mini",
        "owned_by": "openai",
        "context_length": 128000,
        "max_output_tokens": 65536,
    },
    {
        "model_id": "o3-mini",
        "upstream_id": "openai/o3-mini",
        "name": "OpenAI: o3-mini",
        "owned_by": "openai",
        "context_length": 200000,
        "max_output_tokens": 100000,
    },
    {
        "model_id": "claude-3-5-sonnet",
        "upstream_id": "anthropic/claude-3.5-sonnet",
        "name": "Anthropic: Claude 3.5 Sonnet",
        "owned_by": "anthropic",
        "context_length": 200000,
        "max_output_tokens": 8192,
    },
    {
        "model_id": "claude-3-7-sonnet",
        "upstream_id": "anthropic/claude-3.7-sonnet",
        "name": "Anthropic: Claude 3.7 Sonnet",
        "owned_by": "anthropic",
        "context_length": 200000,
        "max_output_tokens": 64000,
    },
    {
        "model_id": "claude-3-opus",
        "upstream_id": "anthropic/claude-3-opus",
        "name": "Anthropic: Claude 3 Opus",
        "owned_by": "anthropic",
        "context_length": 200000,
        "max_output_tokens": 4096,
    },
    {
        "model_id": "claude-3-haiku",
        "upstream_id": "anthropic/claude-3-haiku:beta",
        "name": "Anthropic: Claude 3 Haiku",
        "owned_by": "anthropic",
        "context_length": 200000,
        "max_output_tokens": 4096,
    },
    {
        "model_id": "gemini-1.5-pro",
        "upstream_id": "google/gemini-pro-1.5",
        "name": "Google: Gemini Pro 1.5",
        "owned_by": "google",
        "context_length": 2000000,
        "max_output_tokens": 8192,
    },
    {
        "model_id": "gemini-2.0-flash",
        "upstream_id": "google/gemini-2.0-flash-001",
        "name": "Google: Gemini 2.0 Flash",
        "owned_by": "google",
        "context_length": 1000000,
        "max_output_tokens": 8192,
    },
    {
        "model_id": "llama-3.1-405b",
        "upstream_id": "meta-llama/llama-3.1-405b-instruct",
        "name": "Meta: Llama 3.1 405B Instruct",
        "owned_by": "meta-llama",
        "context_length": 131072,
        "max_output_tokens": 4096,
    },
    {
        "model_id": "llama-3.3-70b",
        "upstream_id": "meta-llama/llama-3.3-70b-instruct",
        "name": "Meta: Llama 3.3 70B Instruct",
        "owned_by": "meta-llama",
        "context_length": 131072,
        "max_output_tokens": 4096,
    },
    {
        "model_id": "mistral-large",
        "upstream_id": "mistralai/mistral-large",
        "name": "Mistral Large",
        "owned_by": "mistralai",
        "context_length": 128000,
        "max_output_tokens": 4096,
    },
    {
        "model_id": "deepseek-chat",
        "upstream_id": "deepseek/deepseek-chat",
        "name": "DeepSeek V3",
        "owned_by": "deepseek",
        "context_length": 64000,
        "max_output_tokens": 8192,
    },
    {
        "model_id": "deepseek-reasoner",
        "upstream_id": "deepseek/deepseek-r1",
        "name": "DeepSeek R1",
        "owned_by": "deepseek",
        "context_length": 64000,
        "max_output_tokens": 8192,
    },
    {
        "model_id": "grok-2",
        "upstream_id": "x-ai/grok-2-1212",
        "name": "xAI: Grok 2",
        "owned_by": "x-ai",
        "context_length": 131072,
        "max_output_tokens": 4096,
    },
    {
        "model_id": "sonar-large-online",
        "upstream_id": "perplexity/llama-3.1-sonar-large-128k-online",
        "name": "Perplexity: Llama 3.1 Sonar 70B Online",
        "owned_by": "perplexity",
        "context_length": 127072,
        "max_output_tokens": 4096,
    },
    {
        "model_id": "qwen-2.5-72b",
        "upstream_id": "qwen/qwen-2.5-72b-instruct",
        "name": "Qwen 2.5 72B Instruct",
        "owned_by": "qwen",
        "context_length": 131072,
        "max_output_tokens": 8192,
    },
    {
        "model_id": "nova-pro",
        "upstream_id": "amazon/nova-pro-v1",
        "name": "Amazon: Nova Pro 1.0",
        "owned_by": "amazon",
        "context_length": 300000,
        "max_output_tokens": 5120,
    },
]

STRAICO_IMAGE_MODELS = [
    {
        "model_id": "dall-e-3",
        "upstream_id": "openai/dall-e-3",
        "name": "OpenAI: DALL-E 3",
        "owned_by": "openai",
    },
    {
        "model_id": "flux-1.1-pro",
        "upstream_id": "flux/1.1",
        "name": "Flux 1.1 Pro",
        "owned_by": "flux",
    },
    {
        "model_id": "ideogram-v2a",
        "upstream_id": "ideogram/V_2A",
        "name": "Ideogram V2A",
        "owned_by": "ideogram",
    },
]


class StraicoModelMapper:
    """Resolves client-facing model ids against the static Straico table.

    Lookup is case-insensitive. Every upstream id is also accepted as an
    identity alias of itself. Anything else fails closed with InvalidRequest.
    """

    def __init__(self, logger: LoggerService, settings: Settings) -> None:
        """Initialize mapper.

        Args:
            logger: Logger service instance
            settings: Application settings instance
        """
        self.logger = logger.get_logger(__name__)
        self.settings = settings
        self._models: List[ProviderModel] = [
            ProviderModel(modality="text", **m) for m in STRAICO_MODELS
        ] + [ProviderModel(modality="image", **m) for m in STRAICO_IMAGE_MODELS]

        for alias, upstream_id in settings.EXTRA_MODEL_MAPPINGS.items():
            self._models.append(self._build_extra_model(alias, upstream_id))

        self._by_alias: Dict[str, ProviderModel] = {}
        self._canonical: Dict[str, ProviderModel] = {}
        for model in self._models:
            self._by_alias.setdefault(model.model_id.lower(), model)
            self._canonical.setdefault(model.upstream_id, model)
        for upstream_id, model in self._canonical.items():
            self._by_alias.setdefault(upstream_id.lower(), model)

        self.logger.info(
            "Model table loaded",
            extra={
                "model_count": len(self._models),
                "extra_mappings": len(settings.EXTRA_MODEL_MAPPINGS),
            },
        )

    def _build_extra_model(self, alias: str, upstream_id: str) -> ProviderModel:
        """Create a table entry for a configured alias."""
        known = next((m for m in self._models if m.upstream_id == upstream_id), None)
        if known is not None:
            return known.model_copy(update={"model_id": alias})
        if "/" not in upstream_id:
            raise ValueError(
                f"EXTRA_MODEL_MAPPINGS target must be provider/model: {upstream_id}"
            )
        return ProviderModel(
            model_id=alias,
            upstream_id=upstream_id,
            name=alias,
            owned_by=upstream_id.split("/", 1)[0],
        )

    def find(self, model_id: str) -> Optional[ProviderModel]:
        """Return the table entry for a client or upstream id, if any."""
        return self._by_alias.get(model_id.lower())

    def _lookup(self, model_id: str, modality: str) -> ProviderModel:
        model = self.find(model_id)
        if model is None or model.modality != modality:
            self.logger.warning(
                "Unmapped model requested",
                extra={"model": model_id, "modality": modality},
            )
            raise InvalidRequest(
                message=f"Model '{model_id}' is not supported",
                field="model",
            )
        return model

    def resolve(self, model_id: str) -> ProviderModel:
        """Resolve a chat model id.

        Raises:
            InvalidRequest: If the id is not in the table
        """
        return self._lookup(model_id, "text")

    def resolve_image_model(self, model_id: str) -> ProviderModel:
        """Resolve an image model id.

        Raises:
            InvalidRequest: If the id is not in the table
        """
        return self._lookup(model_id, "image")

    def canonical_model(self, upstream_id: str) -> Optional[ProviderModel]:
        """Return the canonical table entry for an upstream id."""
        return self._canonical.get(upstream_id)

    def list_models(self) -> List[ProviderModel]:
        """Return every table entry in declaration order."""
        return list(self._models)
