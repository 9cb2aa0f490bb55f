"""Tests for ToolRegistry dispatch, coercion, serialization and error handling."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from stepwise.core.types import ToolCallInfo, ToolDescriptor
from stepwise.tools.base import FunctionTool, ToolHandler, ToolInvocation, ToolOutput
from stepwise.tools.registry import ToolRegistry, _coerce_arguments


# --- Inline stub handler ---


class StubHandler(ToolHandler):
    """Minimal handler for testing registry dispatch."""

    def __init__(
        self,
        name: str = "stub",
        *,
        enabled: bool = True,
        response: Any = "ok",
        success: bool = True,
        raise_on_handle: Exception | None = None,
        parameters: dict[str, Any] | None = None,
    ):
        self._name = name
        self._enabled = enabled
        self._response = response
        self._success = success
        self._raise_on_handle = raise_on_handle
        self._parameters = parameters or {"type": "object", "properties": {}}
        self.seen: list[ToolInvocation] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return f"Stub: {self._name}"

    @property
    def parameters(self) -> dict[str, Any]:
        return self._parameters

    @property
    def is_enabled(self) -> bool:
        return self._enabled

    async def handle(self, invocation: ToolInvocation) -> ToolOutput:
        self.seen.append(invocation)
        if self._raise_on_handle:
            raise self._raise_on_handle
        return ToolOutput(content=self._response, success=self._success)


class SlowHandler(StubHandler):
    """Records overlapping executions."""

    def __init__(self, name: str = "slow", delay: float = 0.05):
        super().__init__(name)
        self._delay = delay
        self.active = 0
        self.max_active = 0

    async def handle(self, invocation: ToolInvocation) -> ToolOutput:
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        await asyncio.sleep(self._delay)
        self.active -= 1
        return ToolOutput(content="done")


def _call(name: str, **kwargs: Any) -> ToolCallInfo:
    return ToolCallInfo.new(name, kwargs, id="call_test")


# --- Dispatch tests ---


@pytest.mark.asyncio
async def test_dispatch_routes_to_correct_handler():
    reg = ToolRegistry()
    reg.register(StubHandler("alpha", response="from-alpha"))
    reg.register(StubHandler("beta", response="from-beta"))

    result = await reg.dispatch(_call("beta"))
    assert result.output == "from-beta"
    assert result.success is True
    assert result.id == "call_test"
    assert result.name == "beta"


@pytest.mark.asyncio
async def test_dispatch_passes_call_id_and_arguments():
    handler = StubHandler("echo", parameters={"type": "object", "properties": {"n": {"type": "integer"}}})
    reg = ToolRegistry([handler])

    await reg.dispatch(_call("echo", n="3"))
    invocation = handler.seen[0]
    assert invocation.call_id == "call_test"
    assert invocation.tool_name == "echo"
    assert invocation.arguments == {"n": 3}


@pytest.mark.asyncio
async def test_dispatch_unknown_tool_returns_error():
    reg = ToolRegistry()
    result = await reg.dispatch(_call("nonexistent"))
    assert result.success is False
    assert result.output == "Error: Unknown tool: nonexistent"
    assert result.id == "call_test"


@pytest.mark.asyncio
async def test_dispatch_disabled_tool_returns_error():
    reg = ToolRegistry()
    reg.register(StubHandler("disabled_tool", enabled=False, response="should not see"))

    result = await reg.dispatch(_call("disabled_tool"))
    assert result.success is False
    assert "disabled_tool" in result.output


@pytest.mark.asyncio
async def test_dispatch_handler_exception_wrapped():
    reg = ToolRegistry()
    reg.register(StubHandler("boom", raise_on_handle=RuntimeError("kaboom")))

    result = await reg.dispatch(_call("boom"))
    assert result.success is False
    assert "RuntimeError" in result.output
    assert "kaboom" in result.output


@pytest.mark.asyncio
async def test_failed_output_gets_error_prefix():
    reg = ToolRegistry([StubHandler("bad", response="city not found", success=False)])
    result = await reg.dispatch(_call("bad"))
    assert result.success is False
    assert result.output == "Error: city not found"


@pytest.mark.asyncio
async def test_structured_output_passes_through():
    reg = ToolRegistry([StubHandler("data", response={"temp": 21})])
    result = await reg.dispatch(_call("data"))
    assert result.output == {"temp": 21}


@pytest.mark.asyncio
async def test_long_output_truncated():
    reg = ToolRegistry([StubHandler("big", response="A" + "x" * 500 + "Z")], max_output_chars=100)
    result = await reg.dispatch(_call("big"))
    assert len(result.output) < 300
    assert "characters removed" in result.output
    assert result.output.startswith("A")
    assert result.output.endswith("Z")


@pytest.mark.asyncio
async def test_long_output_saved_per_call(tmp_path):
    text = "A" + "x" * 500 + "Z"
    reg = ToolRegistry([StubHandler("big", response=text)], max_output_chars=100, spill_dir=tmp_path)

    result = await reg.dispatch(_call("big"))
    saved = tmp_path / "call_test.txt"
    assert saved.read_text(encoding="utf-8") == text
    assert str(saved) in result.output


# --- Malformed input ---


@pytest.mark.asyncio
@pytest.mark.parametrize("raw_input", [["Paris"], "Paris", 42])
async def test_non_object_input_is_error_result(raw_input):
    handler = StubHandler("get_weather")
    reg = ToolRegistry([handler])
    call = ToolCallInfo(tool=ToolDescriptor(name="get_weather", id="call_raw"), input=raw_input)

    result = await reg.dispatch(call)
    assert result.success is False
    assert "must be a JSON object" in result.output
    assert result.id == "call_raw"
    assert handler.seen == []
    assert not reg.busy


@pytest.mark.asyncio
async def test_bad_schema_during_coercion_is_error_result():
    handler = StubHandler("odd", parameters={"type": "object", "properties": None})
    reg = ToolRegistry([handler])

    result = await reg.dispatch(_call("odd", city="Paris"))
    assert result.success is False
    assert "TypeError" in result.output
    assert not reg.busy


# --- Serialization ---


@pytest.mark.asyncio
async def test_dispatch_is_serialized():
    handler = SlowHandler()
    reg = ToolRegistry([handler])

    results = await asyncio.gather(*(reg.dispatch(_call("slow")) for _ in range(3)))
    assert all(r.success for r in results)
    assert handler.max_active == 1
    assert not reg.busy


@pytest.mark.asyncio
async def test_lock_timeout_returns_busy_error():
    reg = ToolRegistry([SlowHandler(delay=0.2)], lock_timeout=0.01)

    first = asyncio.create_task(reg.dispatch(_call("slow")))
    await asyncio.sleep(0.02)
    assert reg.busy
    second = await reg.dispatch(_call("slow"))
    assert second.success is False
    assert "busy" in second.output
    assert (await first).success is True


@pytest.mark.asyncio
async def test_lock_released_after_handler_exception():
    reg = ToolRegistry([StubHandler("boom", raise_on_handle=ValueError("x"))])
    await reg.dispatch(_call("boom"))
    assert not reg.busy


# --- FunctionTool ---


@pytest.mark.asyncio
async def test_function_tool_sync_and_async():
    def get_weather(city: str) -> str:
        return f"sunny in {city}"

    async def get_time(zone: str) -> str:
        return f"noon {zone}"

    reg = ToolRegistry(
        [
            FunctionTool("get_weather", "Weather", None, get_weather),
            FunctionTool("get_time", "Time", None, get_time),
        ]
    )
    assert (await reg.dispatch(_call("get_weather", city="Paris"))).output == "sunny in Paris"
    assert (await reg.dispatch(_call("get_time", zone="UTC"))).output == "noon UTC"


@pytest.mark.asyncio
async def test_function_tool_exception_becomes_error_result():
    def broken() -> str:
        raise KeyError("missing")

    reg = ToolRegistry([FunctionTool("broken", "Broken", None, broken)])
    result = await reg.dispatch(_call("broken"))
    assert result.success is False
    assert "KeyError" in result.output


# --- Coercion tests ---


def test_coerce_string_true_to_bool():
    schema = {"properties": {"flag": {"type": "boolean"}}}
    result = _coerce_arguments({"flag": "true"}, schema)
    assert result["flag"] is True


def test_coerce_string_int():
    schema = {"properties": {"count": {"type": "integer"}}}
    result = _coerce_arguments({"count": "5"}, schema)
    assert result["count"] == 5
    assert isinstance(result["count"], int)


def test_coerce_string_number():
    schema = {"properties": {"ratio": {"type": "number"}}}
    assert _coerce_arguments({"ratio": "0.5"}, schema)["ratio"] == 0.5


def test_coerce_leaves_bad_values_for_handler():
    schema = {"properties": {"count": {"type": "integer"}}}
    assert _coerce_arguments({"count": "many"}, schema)["count"] == "many"


# --- Specs ---


def test_get_specs_excludes_disabled_and_sorts():
    reg = ToolRegistry()
    reg.register(StubHandler("zeta"))
    reg.register(StubHandler("alpha"))
    reg.register(StubHandler("hidden", enabled=False))

    names = [s["function"]["name"] for s in reg.get_specs()]
    assert names == ["alpha", "zeta"]
    assert reg.names() == ["alpha", "hidden", "zeta"]
    assert "hidden" in reg
    assert len(reg) == 3


def test_unregister_is_noop_for_missing():
    reg = ToolRegistry([StubHandler("a")])
    reg.unregister("a")
    reg.unregister("a")
    assert len(reg) == 0
