"""Value types shared by the message log, tool dispatch and the loop."""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field, fields
from typing import Any


def _sum_optional(a: int | None, b: int | None) -> int | None:
    if a is None:
        return b
    if b is None:
        return a
    return a + b


@dataclass(frozen=True)
class Usage:
    """Token accounting for one model call, or a sum of several.

    Every field is optional: providers report different subsets. Adding two
    values sums the fields present on either side, so ``Usage()`` is the
    identity.
    """

    input_tokens: int | None = None
    output_tokens: int | None = None
    total_tokens: int | None = None
    cached_tokens: int | None = None
    reasoning_tokens: int | None = None

    def __add__(self, other: Usage) -> Usage:
        if not isinstance(other, Usage):
            return NotImplemented
        return Usage(
            **{
                f.name: _sum_optional(getattr(self, f.name), getattr(other, f.name))
                for f in fields(self)
            }
        )

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))

    def to_dict(self) -> dict[str, int]:
        """Present fields only."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Usage:
        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        return cls(**{k: int(v) for k, v in data.items() if k in known and v is not None})


@dataclass(frozen=True)
class ToolDescriptor:
    """Identifies a tool call: tool name, call id, and the tool's input schema."""

    name: str
    id: str = field(default_factory=lambda: f"call_{uuid.uuid4().hex[:12]}")
    schema: dict[str, Any] = field(default_factory=dict, compare=False)


@dataclass(frozen=True)
class ToolCallInfo:
    """A tool invocation requested by the model.

    ``input`` is kept exactly as the model sent it. Anything other than a JSON
    object is rejected at dispatch with an error result.
    """

    tool: ToolDescriptor
    input: Any = field(default_factory=dict)

    @classmethod
    def new(cls, name: str, input: Any = None, *, id: str | None = None) -> ToolCallInfo:
        descriptor = ToolDescriptor(name=name, id=id) if id else ToolDescriptor(name=name)
        if input is None:
            input = {}
        elif isinstance(input, dict):
            input = dict(input)
        return cls(tool=descriptor, input=input)

    @property
    def id(self) -> str:
        return self.tool.id

    @property
    def name(self) -> str:
        return self.tool.name

    def arguments_json(self) -> str:
        return json.dumps(self.input)


@dataclass(frozen=True)
class ToolResultInfo:
    """Outcome of a tool invocation, correlated to its call by ``tool.id``.

    ``output`` holds either the tool's payload or the error text; ``success``
    tells which.
    """

    tool: ToolDescriptor
    output: Any = None
    success: bool = True

    @property
    def id(self) -> str:
        return self.tool.id

    @property
    def name(self) -> str:
        return self.tool.name

    def output_text(self) -> str:
        if isinstance(self.output, str):
            return self.output
        return json.dumps(self.output, default=str)


@dataclass(frozen=True)
class ResponseContent:
    """Content of an assistant message.

    Types:
    - ``text``: final answer text (``text`` set).
    - ``reasoning``: intermediate reasoning output (``text`` set).
    - ``tool_call``: a tool invocation request (``tool_call`` set).
    """

    type: str
    text: str | None = None
    tool_call: ToolCallInfo | None = None

    def __post_init__(self) -> None:
        if self.type not in ("text", "reasoning", "tool_call"):
            raise ValueError(f"Unknown content type: {self.type}")
        if self.type == "tool_call" and self.tool_call is None:
            raise ValueError("tool_call content requires a ToolCallInfo")

    @classmethod
    def of_text(cls, text: str) -> ResponseContent:
        return cls(type="text", text=text)

    @classmethod
    def of_reasoning(cls, text: str) -> ResponseContent:
        return cls(type="reasoning", text=text)

    @classmethod
    def of_tool_call(cls, call: ToolCallInfo) -> ResponseContent:
        return cls(type="tool_call", tool_call=call)

    @property
    def is_text(self) -> bool:
        return self.type == "text"

    @property
    def is_reasoning(self) -> bool:
        return self.type == "reasoning"

    @property
    def is_tool_call(self) -> bool:
        return self.type == "tool_call"
