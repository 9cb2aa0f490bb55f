"""Tests for StepwiseConfig loading, saving and factories."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from stepwise.config import StepwiseConfig
from stepwise.core.messages import SystemMessage, UserMessage
from stepwise.tools.registry import ToolRegistry


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in (
        "STEPWISE_MODEL",
        "STEPWISE_API_KEY",
        "STEPWISE_BASE_URL",
        "STEPWISE_REASONING_EFFORT",
        "STEPWISE_MAX_STEPS",
    ):
        # recorded by monkeypatch, so values set by load_dotenv are undone too
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


def test_defaults_from_environment(monkeypatch):
    monkeypatch.setenv("STEPWISE_MODEL", "anthropic/claude-sonnet-4")
    monkeypatch.setenv("STEPWISE_MAX_STEPS", "8")
    monkeypatch.setenv("STEPWISE_REASONING_EFFORT", "low")

    config = StepwiseConfig()
    assert config.model == "anthropic/claude-sonnet-4"
    assert config.max_steps == 8
    assert config.reasoning_effort == "low"
    assert config.api_key is None


def test_builtin_defaults():
    config = StepwiseConfig()
    assert config.model == "openai/gpt-5-mini"
    assert config.max_steps is None
    assert config.extras == {}


def test_from_env_reads_dotenv_file(tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("STEPWISE_MODEL=openai/gpt-4o\nSTEPWISE_API_KEY=sk-from-file\n")

    config = StepwiseConfig.from_env(env_file)
    assert config.model == "openai/gpt-4o"
    assert config.api_key == "sk-from-file"


def test_from_file_splits_known_and_extra_fields(tmp_path):
    path = tmp_path / "assistant.yaml"
    path.write_text(
        "model: openai/gpt-5\n"
        "system_prompt: You are terse.\n"
        "temperature: 0.2\n"
        "max_steps: 5\n"
        "owner: platform-team\n"
    )

    config = StepwiseConfig.from_file(path)
    assert config.model == "openai/gpt-5"
    assert config.system_prompt == "You are terse."
    assert config.temperature == 0.2
    assert config.max_steps == 5
    assert config.extras == {"owner": "platform-team"}


def test_from_file_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        StepwiseConfig.from_file(tmp_path / "nope.yaml")


def test_from_file_rejects_non_mapping(tmp_path):
    path = tmp_path / "list.yaml"
    path.write_text("- a\n- b\n")
    with pytest.raises(ValueError):
        StepwiseConfig.from_file(path)


def test_from_file_empty_gives_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")
    config = StepwiseConfig.from_file(path)
    assert config.model == "openai/gpt-5-mini"
    assert config.tool_output_dir is None
    assert config.extras == {}


def test_from_file_reads_tool_output_settings(tmp_path):
    path = tmp_path / "tools.yaml"
    path.write_text(f"max_tool_output_chars: 500\ntool_output_dir: {tmp_path / 'out'}\n")
    config = StepwiseConfig.from_file(path)
    assert config.max_tool_output_chars == 500
    assert config.tool_output_dir == str(tmp_path / "out")
    assert config.extras == {}


def test_to_file_round_trip_without_api_key(tmp_path):
    config = StepwiseConfig(
        model="openai/gpt-5",
        api_key="sk-secret",
        system_prompt="Be brief.",
        max_steps=3,
        extras={"owner": "me"},
    )
    path = tmp_path / "nested" / "out.yaml"
    config.to_file(path)

    assert "sk-secret" not in path.read_text()
    loaded = StepwiseConfig.from_file(path)
    assert loaded.model == "openai/gpt-5"
    assert loaded.system_prompt == "Be brief."
    assert loaded.max_steps == 3
    assert loaded.extras == {"owner": "me"}


def test_call_options():
    config = StepwiseConfig(system_prompt="Sys", temperature=0.5, max_steps=4, reasoning_effort="medium")
    options = config.call_options()
    assert options.system == "Sys"
    assert options.temperature == 0.5
    assert options.max_steps == 4
    assert options.reasoning_effort == "medium"


def test_call_options_rejects_bad_effort():
    with pytest.raises(ValueError):
        StepwiseConfig(reasoning_effort="maximal").call_options()


def test_create_model_passes_settings():
    config = StepwiseConfig(model="openai/gpt-5", api_key="sk", base_url="http://x", chunk_timeout=30)
    with patch("stepwise.client.litellm_model.LiteLLMModel") as model_cls:
        config.create_model()
    model_cls.assert_called_once_with("openai/gpt-5", api_key="sk", base_url="http://x", chunk_timeout=30)


def test_create_tool_registry_uses_lock_timeout():
    registry = StepwiseConfig(tool_lock_timeout=2.5).create_tool_registry()
    assert isinstance(registry, ToolRegistry)
    assert registry._lock_timeout == 2.5


def test_create_tool_registry_passes_output_settings(tmp_path):
    config = StepwiseConfig(max_tool_output_chars=500, tool_output_dir=str(tmp_path))
    registry = config.create_tool_registry()
    assert registry._max_output_chars == 500
    assert registry._spill_dir == str(tmp_path)


def test_request_builder_and_options():
    model = MagicMock()
    model.name = "fake"
    config = StepwiseConfig(system_prompt="Sys", temperature=0.1, max_steps=2)

    builder = config.request_builder(model).prompt("hi")
    request = config.apply_options(builder).build()
    assert request.model is model
    assert request.messages() == [SystemMessage("Sys"), UserMessage("hi")]
    assert request.options.temperature == 0.1
    assert request.options.max_steps == 2
