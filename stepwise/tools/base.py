"""Tool handler interface and the callable-backed implementation."""

from __future__ import annotations

import inspect
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any


@dataclass
class ToolInvocation:
    """A single call routed to a handler."""

    call_id: str
    tool_name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolOutput:
    """What a handler returns. ``success=False`` marks ``content`` as error text."""

    content: Any
    success: bool = True
    metadata: dict[str, Any] | None = None


class ToolHandler(ABC):
    """Base class for tools the model can call."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Tool name as the model sees it."""

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable description sent to the model."""

    @property
    @abstractmethod
    def parameters(self) -> dict[str, Any]:
        """JSON schema of the tool input."""

    @property
    def is_enabled(self) -> bool:
        return True

    @abstractmethod
    async def handle(self, invocation: ToolInvocation) -> ToolOutput:
        """Run the tool."""

    def to_spec(self) -> dict[str, Any]:
        """OpenAI function-tool spec."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


class FunctionTool(ToolHandler):
    """Wraps a plain function as a tool.

    The function receives the call's input as keyword arguments and may be
    sync or async. Its return value is the success payload; raising signals
    failure and the exception text becomes the error output.

    Usage::

        def get_weather(city: str) -> str:
            return "sunny"

        tool = FunctionTool(
            "get_weather",
            "Current weather for a city",
            {"type": "object", "properties": {"city": {"type": "string"}}},
            get_weather,
        )
    """

    def __init__(
        self,
        name: str,
        description: str,
        parameters: dict[str, Any] | None,
        func: Callable[..., Any],
        *,
        enabled: bool = True,
    ) -> None:
        self._name = name
        self._description = description
        self._parameters = parameters or {"type": "object", "properties": {}}
        self._func = func
        self._enabled = enabled

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return self._description

    @property
    def parameters(self) -> dict[str, Any]:
        return self._parameters

    @property
    def is_enabled(self) -> bool:
        return self._enabled

    async def handle(self, invocation: ToolInvocation) -> ToolOutput:
        result = self._func(**invocation.arguments)
        if inspect.isawaitable(result):
            result = await result
        if isinstance(result, ToolOutput):
            return result
        return ToolOutput(content=result)
