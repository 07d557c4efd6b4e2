"""Model table tests."""
import pytest

from straico_proxy.core.settings import Settings
from straico_proxy.providers.models import InvalidRequest
from straico_proxy.providers.straico.model_mapper import (
    STRAICO_IMAGE_MODELS,
    STRAICO_MODELS,
    StraicoModelMapper,
)
from tests.conftest import GPT_4O


def test_resolves_alias_case_insensitively(model_mapper):
    assert model_mapper.resolve("GPT-4o").upstream_id == GPT_4O


def test_upstream_id_is_an_identity_alias(model_mapper):
    model = model_mapper.resolve("anthropic/claude-3.5-sonnet")
    assert model.model_id == "claude-3-5-sonnet"


def test_unknown_model_fails_closed(model_mapper):
    with pytest.raises(InvalidRequest) as exc_info:
        model_mapper.resolve("gpt-x")
    assert "gpt-x" in exc_info.value.message


def test_image_and_text_models_are_separate(model_mapper):
    assert model_mapper.resolve_image_model("dall-e-3").upstream_id == "openai/dall-e-3"
    with pytest.raises(InvalidRequest):
        model_mapper.resolve("dall-e-3")


def test_list_models(model_mapper):
    models = model_mapper.list_models()
    assert len(models) == len(STRAICO_MODELS) + len(STRAICO_IMAGE_MODELS)
    assert models[0].model_id == STRAICO_MODELS[0]["model_id"]


def test_canonical_model(model_mapper):
    assert model_mapper.canonical_model(GPT_4O).model_id == "gpt-4o"
    assert model_mapper.canonical_model("nobody/nothing") is None


def test_extra_mappings(logger):
    settings = Settings(
        _env_file=None,
        EXTRA_MODEL_MAPPINGS={"my-claude": "anthropic/claude-3.5-sonnet", "r1": "new/model-r1"},
    )
    mapper = StraicoModelMapper(logger=logger, settings=settings)

    alias = mapper.resolve("my-claude")
    assert alias.upstream_id == "anthropic/claude-3.5-sonnet"
    assert alias.max_output_tokens == 8192
    assert mapper.resolve("r1").owned_by == "new"
    # Built-in entry stays canonical for its upstream id
    assert mapper.canonical_model("anthropic/claude-3.5-sonnet").model_id == "claude-3-5-sonnet"


def test_extra_mapping_target_must_be_qualified(logger):
    settings = Settings(_env_file=None, EXTRA_MODEL_MAPPINGS={"bad": "no-slash"})
    with pytest.raises(ValueError):
        StraicoModelMapper(logger=logger, settings=settings)
