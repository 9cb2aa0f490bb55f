"""Units flowing in and out of the orchestration loop, and stop reasons."""

from __future__ import annotations

from dataclasses import dataclass

from .messages import AssistantMessage
from .types import ResponseContent, Usage

# Stream chunk types that end a caller-facing stream
TERMINAL_CHUNK_TYPES = frozenset({"end", "failed", "incomplete"})


@dataclass(frozen=True)
class StopReason:
    """Why a loop run ended.

    Types:
    - ``finish``: the model produced its final text.
    - ``hook``: the stop predicate hook asked to stop.
    - ``error``: the model call or its stream failed (``details`` set).
    - ``incomplete``: the run ended without a final answer, e.g. cancelled or
      out of steps (``details`` set).
    """

    type: str
    details: str | None = None

    @classmethod
    def finish(cls) -> StopReason:
        return cls("finish")

    @classmethod
    def hook(cls) -> StopReason:
        return cls("hook")

    @classmethod
    def error(cls, details: str) -> StopReason:
        return cls("error", details)

    @classmethod
    def incomplete(cls, details: str) -> StopReason:
        return cls("incomplete", details)


@dataclass(frozen=True)
class ContentDelta:
    """A partial fragment of model output.

    ``type`` is ``text``, ``reasoning``, or ``tool_call`` (tool-call argument
    fragments).
    """

    type: str
    content: str = ""


@dataclass(frozen=True)
class FinalMessage:
    """The aggregated output of one model call, with its usage."""

    content: ResponseContent
    usage: Usage | None = None

    def to_assistant_message(self) -> AssistantMessage:
        return AssistantMessage(content=self.content, usage=self.usage)


@dataclass(frozen=True)
class OutputUnit:
    """One unit produced by a model stream: a ``delta`` or a ``done`` marker."""

    type: str
    delta: ContentDelta | None = None
    final: FinalMessage | None = None

    @classmethod
    def text_delta(cls, text: str) -> OutputUnit:
        return cls("delta", delta=ContentDelta("text", text))

    @classmethod
    def reasoning_delta(cls, text: str) -> OutputUnit:
        return cls("delta", delta=ContentDelta("reasoning", text))

    @classmethod
    def tool_call_delta(cls, arguments: str) -> OutputUnit:
        return cls("delta", delta=ContentDelta("tool_call", arguments))

    @classmethod
    def done(cls, content: ResponseContent, usage: Usage | None = None) -> OutputUnit:
        return cls("done", final=FinalMessage(content, usage))


@dataclass(frozen=True)
class StreamChunk:
    """Unit delivered to the caller of ``stream_text``.

    Types, in protocol order:
    - ``start``: the run has begun.
    - ``text`` / ``reasoning`` / ``tool_call``: forwarded deltas (``content`` set).
    - ``end``: run finished with the final message (``message`` set).
    - ``failed``: the model failed (``content`` has the error).
    - ``incomplete``: stopped before a final answer (``content`` has the reason).

    Exactly one of ``end``, ``failed``, ``incomplete`` closes the stream.
    """

    type: str
    content: str | None = None
    message: AssistantMessage | None = None

    @property
    def is_terminal(self) -> bool:
        return self.type in TERMINAL_CHUNK_TYPES
