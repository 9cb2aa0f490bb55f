"""Portable configuration: which model to call and with what defaults."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from .core.options import CallOptions
from .core.request import RequestBuilder
from .tools.truncate import MAX_TOOL_OUTPUT_CHARS


def _env_int(name: str) -> int | None:
    value = os.getenv(name)
    return int(value) if value else None


@dataclass
class StepwiseConfig:
    """Model and call defaults, loadable from YAML and the environment.

    Unknown YAML fields are preserved in ``extras`` so teams can keep notes
    or ownership metadata in the same file.

    Usage::

        config = StepwiseConfig.from_file("configs/assistant.yaml")
        request = config.request_builder().prompt("Hello").build()
    """

    model: str = field(default_factory=lambda: os.getenv("STEPWISE_MODEL", "openai/gpt-5-mini"))
    api_key: str | None = field(default_factory=lambda: os.getenv("STEPWISE_API_KEY"))
    base_url: str | None = field(default_factory=lambda: os.getenv("STEPWISE_BASE_URL"))
    system_prompt: str | None = None
    temperature: float | None = None
    max_output_tokens: int | None = None
    reasoning_effort: str | None = field(
        default_factory=lambda: os.getenv("STEPWISE_REASONING_EFFORT")
    )
    max_steps: int | None = field(default_factory=lambda: _env_int("STEPWISE_MAX_STEPS"))
    chunk_timeout: float | None = None
    tool_lock_timeout: float | None = None
    max_tool_output_chars: int = MAX_TOOL_OUTPUT_CHARS
    tool_output_dir: str | None = None
    extras: dict[str, Any] = field(default_factory=dict)

    _KNOWN_FIELDS = frozenset(
        {
            "model",
            "api_key",
            "base_url",
            "system_prompt",
            "temperature",
            "max_output_tokens",
            "reasoning_effort",
            "max_steps",
            "chunk_timeout",
            "tool_lock_timeout",
            "max_tool_output_chars",
            "tool_output_dir",
        }
    )

    @classmethod
    def from_env(cls, env_file: str | Path | None = None) -> StepwiseConfig:
        """Load ``.env`` (or ``env_file``) into the environment, then read defaults."""
        load_dotenv(env_file)
        return cls()

    @classmethod
    def from_file(cls, path: str | Path) -> StepwiseConfig:
        """Read a YAML mapping of the fields above.

        Fields left out of the file fall back to their environment defaults.
        An empty file gives the defaults. Keys stepwise does not know land in
        ``extras`` untouched.
        """
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"Config file not found: {path}")
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        if not isinstance(data, dict):
            raise ValueError(
                f"{path}: expected a mapping of stepwise settings, got {type(data).__name__}"
            )
        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> StepwiseConfig:
        settings = {k: v for k, v in data.items() if k in cls._KNOWN_FIELDS}
        extras = {k: v for k, v in data.items() if k not in cls._KNOWN_FIELDS}
        return cls(**settings, extras=extras)

    def to_file(self, path: str | Path) -> None:
        """Write every setting that is not ``None`` as YAML.

        ``api_key`` is never written; supply it through ``STEPWISE_API_KEY``.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            yaml.safe_dump(self._to_dict(), default_flow_style=False, sort_keys=False),
            encoding="utf-8",
        )

    def _to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"model": self.model}
        for name in sorted(self._KNOWN_FIELDS - {"model", "api_key"}):
            value = getattr(self, name)
            if value is not None:
                data[name] = value
        data.update(self.extras)
        return data

    # --- Factories ---

    def call_options(self) -> CallOptions:
        return CallOptions(
            system=self.system_prompt,
            temperature=self.temperature,
            max_output_tokens=self.max_output_tokens,
            reasoning_effort=self.reasoning_effort,
            max_steps=self.max_steps,
        )

    def create_model(self) -> Any:
        from .client.litellm_model import LiteLLMModel

        return LiteLLMModel(
            self.model,
            api_key=self.api_key,
            base_url=self.base_url,
            chunk_timeout=self.chunk_timeout,
        )

    def create_tool_registry(self) -> Any:
        from .tools.registry import ToolRegistry

        return ToolRegistry(
            lock_timeout=self.tool_lock_timeout,
            max_output_chars=self.max_tool_output_chars,
            spill_dir=self.tool_output_dir,
        )

    def request_builder(self, model: Any = None) -> RequestBuilder:
        """A builder past the model stage, with system prompt from this config.

        Call options are applied by ``apply_options`` once the prompt or
        messages are set, since options belong to the last stage.
        """
        builder = RequestBuilder().model(model if model is not None else self.create_model())
        if self.system_prompt:
            builder.system(self.system_prompt)
        return builder

    def apply_options(self, builder: RequestBuilder) -> RequestBuilder:
        return builder.options(self.call_options())
