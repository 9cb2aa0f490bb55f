"""Tool registry: stores handlers and turns tool calls into tool results."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

from ..core.types import ToolCallInfo, ToolDescriptor, ToolResultInfo
from ..errors import ToolCallError
from .base import ToolHandler, ToolInvocation, ToolOutput
from .truncate import MAX_TOOL_OUTPUT_CHARS, clip_tool_output

logger = logging.getLogger(__name__)


def _coerce_arguments(arguments: dict[str, Any], schema: dict[str, Any]) -> dict[str, Any]:
    """Coerce argument types based on JSON schema (LLMs sometimes pass strings)."""
    properties = schema.get("properties", {})
    coerced = dict(arguments)

    for key, value in arguments.items():
        if key not in properties or value is None:
            continue

        expected_type = properties[key].get("type")

        if expected_type == "boolean" and not isinstance(value, bool):
            if isinstance(value, str):
                coerced[key] = value.lower() in ("true", "1", "yes")
            else:
                coerced[key] = bool(value)

        elif expected_type == "integer" and not isinstance(value, int):
            try:
                coerced[key] = int(value)
            except (ValueError, TypeError):
                pass  # handler reports it

        elif expected_type == "number" and not isinstance(value, (int, float)):
            try:
                coerced[key] = float(value)
            except (ValueError, TypeError):
                pass

    return coerced


class ToolRegistry:
    """Registry of tool handlers with serialized dispatch.

    At most one handler runs at a time per registry: ``dispatch`` waits for
    any in-flight call to finish. With ``lock_timeout`` set, a call that
    waits longer gets a "busy" error result instead.

    String output longer than ``max_output_chars`` is clipped to its head and
    tail. With ``spill_dir`` set, the full text is kept on disk, one file per
    call id.

    Failures never raise out of ``dispatch``; they come back as a
    ``ToolResultInfo`` with ``success=False`` and the error text as output,
    so the conversation can continue and the model can self-correct.
    """

    def __init__(
        self,
        handlers: list[ToolHandler] | None = None,
        *,
        lock_timeout: float | None = None,
        max_output_chars: int = MAX_TOOL_OUTPUT_CHARS,
        spill_dir: str | Path | None = None,
    ) -> None:
        self._handlers: dict[str, ToolHandler] = {}
        self._lock = asyncio.Lock()
        self._lock_timeout = lock_timeout
        self._max_output_chars = max_output_chars
        self._spill_dir = spill_dir
        for handler in handlers or []:
            self.register(handler)

    def register(self, handler: ToolHandler) -> None:
        """Register a tool handler (replaces one with the same name)."""
        self._handlers[handler.name] = handler

    def unregister(self, name: str) -> None:
        """Unregister a tool handler by name (no-op if missing)."""
        self._handlers.pop(name, None)

    def get(self, name: str) -> ToolHandler | None:
        return self._handlers.get(name)

    def names(self) -> list[str]:
        return sorted(self._handlers)

    def get_specs(self) -> list[dict[str, Any]]:
        """Tool specs for enabled handlers, sorted by name for prompt-cache stability."""
        return [
            self._handlers[name].to_spec()
            for name in sorted(self._handlers)
            if self._handlers[name].is_enabled
        ]

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    async def dispatch(self, call: ToolCallInfo) -> ToolResultInfo:
        """Run the tool named by ``call`` and fold the outcome into a result."""
        try:
            await self._acquire()
        except ToolCallError as e:
            logger.warning("Tool %s (%s) not run: %s", call.name, call.id, e)
            return self._result(call, str(e), success=False)

        try:
            output = await self._invoke(call)
        finally:
            self._lock.release()

        content = output.content
        if isinstance(content, str):
            content = clip_tool_output(
                content, self._max_output_chars, call_id=call.id, spill_dir=self._spill_dir
            )
        return self._result(call, content, success=output.success)

    async def _acquire(self) -> None:
        if self._lock_timeout is None:
            await self._lock.acquire()
            return
        try:
            await asyncio.wait_for(self._lock.acquire(), timeout=self._lock_timeout)
        except asyncio.TimeoutError:
            raise ToolCallError(
                f"Tool registry is busy: no slot within {self._lock_timeout}s"
            ) from None

    async def _invoke(self, call: ToolCallInfo) -> ToolOutput:
        handler = self._handlers.get(call.name)
        if handler is None:
            logger.warning("Model requested unknown tool %s", call.name)
            return ToolOutput(content=f"Error: Unknown tool: {call.name}", success=False)

        if not handler.is_enabled:
            return ToolOutput(
                content=f"Error: Tool '{call.name}' is currently disabled", success=False
            )

        if not isinstance(call.input, dict):
            return ToolOutput(
                content=(
                    f"Error: Tool '{call.name}' input must be a JSON object, "
                    f"got {type(call.input).__name__}"
                ),
                success=False,
            )

        try:
            invocation = ToolInvocation(
                call_id=call.id,
                tool_name=call.name,
                arguments=_coerce_arguments(call.input, handler.parameters),
            )
            output = await handler.handle(invocation)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            return ToolOutput(
                content=f"Error: Tool '{call.name}' failed: {type(e).__name__}: {e}",
                success=False,
            )

        if not output.success and isinstance(output.content, str):
            if not output.content.startswith("Error"):
                output = ToolOutput(
                    content=f"Error: {output.content}",
                    success=False,
                    metadata=output.metadata,
                )
        return output

    def _result(self, call: ToolCallInfo, output: Any, *, success: bool) -> ToolResultInfo:
        handler = self._handlers.get(call.name)
        descriptor = ToolDescriptor(
            name=call.name,
            id=call.id,
            schema=handler.parameters if handler is not None else dict(call.tool.schema),
        )
        return ToolResultInfo(tool=descriptor, output=output, success=success)

    def __len__(self) -> int:
        return len(self._handlers)

    def __contains__(self, name: str) -> bool:
        return name in self._handlers
