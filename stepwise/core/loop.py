"""The orchestration loop: model call -> output -> tools -> hooks -> repeat.

One loop run drives a ``LanguageModelRequest`` through as many steps as it
takes for the model to produce final text, a hook to ask for a stop, the
model to fail, or the run to be cut short (cancellation, step limit).

Per step:
1. Bump the step counter and run the ``prepare_step`` hook.
2. Open the model stream. Failing to open it ends the run with an error.
3. Forward every delta to the caller as it arrives. For every ``done`` unit:
   append the assistant message; text marks the run finished, reasoning
   changes nothing, a tool call is dispatched and its result appended at the
   same step. Then run ``on_step_finish`` and the stop predicate.
4. When the model stream ends: finished runs emit ``end``; otherwise the
   loop calls the model again with the updated log.

The same loop backs ``stream_text`` (chunks go to a channel) and
``generate_text`` (chunks are dropped and errors are raised).
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from ..client.model import LanguageModelResponse
from ..errors import HookError, ModelError, StepwiseError
from .cancellation import CancellationToken
from .channel import LanguageModelStream
from .events import OutputUnit, StopReason, StreamChunk
from .messages import AssistantMessage
from .request import LanguageModelRequest
from .steps import Step
from .types import Usage

logger = logging.getLogger(__name__)

Emit = Callable[[StreamChunk], Awaitable[Any]]

STOPPED_BY_HOOK = "Stopped by hook"
NO_FINAL_MESSAGE = "Model stream ended without a final message"

# Keeps producer tasks alive after the caller drops its response object.
_background_tasks: set[asyncio.Task[Any]] = set()


@dataclass
class LoopResult:
    """Terminal state of one loop run."""

    request: LanguageModelRequest
    error: StepwiseError | None = None
    final_message: AssistantMessage | None = None

    @property
    def stop_reason(self) -> StopReason | None:
        return self.request.stop_reason


async def _open_stream(request: LanguageModelRequest) -> Any:
    stream = request.model.generate_stream(request)
    if inspect.isawaitable(stream):
        stream = await stream
    return stream.__aiter__()


async def _close_stream(stream: Any) -> None:
    aclose = getattr(stream, "aclose", None)
    if aclose is None:
        return
    try:
        await aclose()
    except Exception:
        logger.debug("Error closing model stream", exc_info=True)


def _as_units(item: Any) -> list[OutputUnit]:
    if isinstance(item, OutputUnit):
        return [item]
    return list(item)


class _Terminate(Exception):
    """Internal: unwinds the step once the run has a stop reason."""


class _Run:
    """State of one loop run. Not reused."""

    def __init__(
        self,
        request: LanguageModelRequest,
        emit: Emit,
        cancel_token: CancellationToken | None,
    ) -> None:
        self.request = request
        self.emit = emit
        self.cancel_token = cancel_token
        self.steps_run = 0
        self.error: StepwiseError | None = None
        self.final_message: AssistantMessage | None = None

    def _cancelled(self) -> bool:
        return self.cancel_token is not None and self.cancel_token.is_cancelled()

    async def _stop(self, reason: StopReason, chunk: StreamChunk) -> None:
        self.request.set_stop_reason(reason)
        logger.debug("Run stopped at step %d: %s", self.request.current_step_id, reason)
        await self.emit(chunk)
        raise _Terminate

    async def _fail(self, error: StepwiseError) -> None:
        self.error = error
        logger.warning("Run failed at step %d: %s", self.request.current_step_id, error)
        await self._stop(StopReason.error(str(error)), StreamChunk("failed", content=str(error)))

    async def _incomplete(self, details: str) -> None:
        await self._stop(StopReason.incomplete(details), StreamChunk("incomplete", content=details))

    async def run(self) -> LoopResult:
        self.request.reset_stop_reason()
        await self.emit(StreamChunk("start"))
        try:
            while True:
                await self._step()
        except _Terminate:
            pass
        except Exception as e:
            logger.exception("Unexpected error at step %d", self.request.current_step_id)
            try:
                await self._fail(StepwiseError(f"Unexpected error: {type(e).__name__}: {e}"))
            except _Terminate:
                pass
        return LoopResult(self.request, self.error, self.final_message)

    async def _step(self) -> None:
        if self._cancelled():
            await self._incomplete(self.cancel_token.details)
        max_steps = self.request.options.max_steps
        if max_steps is not None and self.steps_run >= max_steps:
            await self._incomplete(f"max steps reached ({max_steps})")

        step_id = self.request.next_step()
        self.steps_run += 1
        logger.debug("Step %d starting", step_id)

        try:
            self.request = await self.request.hooks.run_prepare_step(self.request)
        except Exception as e:
            await self._fail(HookError("prepare_step", e))

        try:
            stream = await _open_stream(self.request)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            await self._fail(ModelError(str(e), e))

        finished = False
        done_units = 0
        try:
            while True:
                try:
                    item = await stream.__anext__()
                except StopAsyncIteration:
                    break
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    await self._fail(ModelError(str(e), e))

                if isinstance(item, Exception):
                    await self._fail(ModelError(str(item), item))
                if self._cancelled():
                    await self._incomplete(self.cancel_token.details)

                for unit in _as_units(item):
                    if unit.type == "delta" and unit.delta is not None:
                        await self.emit(StreamChunk(unit.delta.type, content=unit.delta.content))
                    elif unit.type == "done" and unit.final is not None:
                        done_units += 1
                        finished = await self._consume_done(unit) or finished
                    else:
                        logger.warning("Ignoring malformed output unit: %r", unit)
        finally:
            await _close_stream(stream)

        if finished:
            await self._stop(
                StopReason.finish(), StreamChunk("end", message=self.final_message)
            )
        if done_units == 0:
            await self._incomplete(NO_FINAL_MESSAGE)

    async def _consume_done(self, unit: OutputUnit) -> bool:
        """Fold a ``done`` unit into the log. Returns True for final text."""
        message = unit.final.to_assistant_message()
        self.request.add_message(message)
        content = message.content

        if content.is_text:
            self.final_message = message
        elif content.is_tool_call and content.tool_call is not None:
            await self.request.handle_tool_call(content.tool_call)

        try:
            self.request = await self.request.hooks.run_on_step_finish(self.request)
        except Exception as e:
            await self._fail(HookError("on_step_finish", e))

        try:
            stop = await self.request.hooks.should_stop(self.request)
        except Exception as e:
            await self._fail(HookError("stop_when", e))

        if stop:
            await self._stop(StopReason.hook(), StreamChunk("incomplete", content=STOPPED_BY_HOOK))
        return content.is_text


async def run_loop(
    request: LanguageModelRequest,
    emit: Emit,
    *,
    cancel_token: CancellationToken | None = None,
) -> LoopResult:
    """Drive ``request`` to a stop reason, sending chunks through ``emit``."""
    return await _Run(request, emit, cancel_token).run()


# ---------------------------------------------------------------------------
# Streaming
# ---------------------------------------------------------------------------


@dataclass
class StreamTextResponse:
    """Handle on a streaming run.

    Iterate ``stream`` (or the response itself) for chunks; ``await
    response.request()`` for the final request once the run has ended. The run
    keeps going even if nobody reads the stream.
    """

    stream: LanguageModelStream
    model: str | None
    _task: asyncio.Task[LoopResult] = field(repr=False)

    def __aiter__(self) -> LanguageModelStream:
        return self.stream

    async def result(self) -> LoopResult:
        return await self._task

    async def request(self) -> LanguageModelRequest:
        return (await self._task).request

    async def stop_reason(self) -> StopReason | None:
        return (await self._task).stop_reason

    async def text(self) -> str | None:
        return (await self.request()).text()

    def done(self) -> bool:
        return self._task.done()


async def _produce(
    request: LanguageModelRequest,
    stream: LanguageModelStream,
    cancel_token: CancellationToken | None,
) -> LoopResult:
    try:
        return await run_loop(request, stream.send, cancel_token=cancel_token)
    except Exception as e:
        logger.exception("Streaming run failed outside the loop")
        error = StepwiseError(f"{type(e).__name__}: {e}")
        request.set_stop_reason(StopReason.error(str(error)))
        if not stream.terminated:
            await stream.send(StreamChunk("failed", content=str(error)))
        return LoopResult(request, error=error)
    finally:
        await stream.close_producer()


async def stream_text(
    request: LanguageModelRequest,
    *,
    cancel_token: CancellationToken | None = None,
    max_buffer: int | None = None,
) -> StreamTextResponse:
    """Start a streaming run of ``request`` and return at once.

    Args:
        request: Request built by ``RequestBuilder``.
        cancel_token: Checked before each step and between model outputs.
        max_buffer: Chunk queue size. ``None`` queues without limit; a number
            makes the loop wait while the caller is that many chunks behind.
    """
    stream = LanguageModelStream(max_buffer=max_buffer)
    task = asyncio.create_task(_produce(request, stream, cancel_token))
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return StreamTextResponse(
        stream=stream,
        model=getattr(request.model, "name", None),
        _task=task,
    )


# ---------------------------------------------------------------------------
# Batch
# ---------------------------------------------------------------------------


@dataclass
class GenerateTextResponse:
    """Outcome of a batch run."""

    request: LanguageModelRequest
    model: str | None = None

    @property
    def text(self) -> str | None:
        return self.request.text()

    @property
    def stop_reason(self) -> StopReason | None:
        return self.request.stop_reason

    def steps(self) -> list[Step]:
        return self.request.steps()

    def usage(self) -> Usage:
        return self.request.usage()


async def _discard(_chunk: StreamChunk) -> None:
    return None


async def generate_text(
    request: LanguageModelRequest,
    *,
    cancel_token: CancellationToken | None = None,
) -> GenerateTextResponse:
    """Run the full loop without streaming.

    Tools and hooks behave exactly as in ``stream_text``. Model and hook
    failures are raised (``ModelError``, ``HookError``, or ``StepwiseError``
    for anything unexpected) after the stop reason is recorded on the
    request; a hook stop or a cut-short run returns normally with the
    matching stop reason.
    """
    result = await run_loop(request, _discard, cancel_token=cancel_token)
    if result.error is not None:
        raise result.error
    return GenerateTextResponse(
        request=result.request,
        model=getattr(result.request.model, "name", None),
    )


async def generate_once(request: LanguageModelRequest) -> LanguageModelResponse:
    """One model round-trip: no loop, no hooks, no tool dispatch.

    For callers that only need a single completion. Requests that may need
    tool calls should use ``generate_text`` or ``stream_text``.
    """
    try:
        response = await request.model.generate(request)
    except asyncio.CancelledError:
        raise
    except Exception as e:
        raise ModelError(str(e), e) from e
    if response.model is None:
        response.model = getattr(request.model, "name", None)
    return response
