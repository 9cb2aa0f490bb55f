"""Call options passed through to the language model capability."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any

REASONING_EFFORTS = ("low", "medium", "high")

# Carried for capabilities that retry; the loop itself never retries.
DEFAULT_MAX_RETRIES = 100


@dataclass
class CallOptions:
    """Sampling and limit options for a request. ``None`` means provider default."""

    system: str | None = None
    seed: int | None = None
    temperature: float | None = None
    top_p: float | None = None
    top_k: int | None = None
    max_output_tokens: int | None = None
    stop_sequences: list[str] | None = None
    presence_penalty: float | None = None
    frequency_penalty: float | None = None
    reasoning_effort: str | None = None
    max_retries: int = DEFAULT_MAX_RETRIES
    max_steps: int | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.reasoning_effort is not None and self.reasoning_effort not in REASONING_EFFORTS:
            raise ValueError(
                f"reasoning_effort must be one of {', '.join(REASONING_EFFORTS)}, "
                f"got {self.reasoning_effort!r}"
            )
        if self.max_steps is not None and self.max_steps < 1:
            raise ValueError("max_steps must be >= 1")

    def sampling_kwargs(self) -> dict[str, Any]:
        """Options set by the caller that a provider call should receive.

        ``system``, ``max_retries`` and ``max_steps`` are orchestration
        settings and are left out.
        """
        skip = {"system", "max_retries", "max_steps", "extra"}
        kwargs = {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name not in skip and getattr(self, f.name) is not None
        }
        kwargs.update(self.extra)
        return kwargs
