"""Step-tagged message log and per-step views.

The log is the single source of truth for a request's conversation. Steps are
never stored separately: every view here is recomputed from the tagged
messages, so the log can only grow and a step's content is exactly the
messages tagged with its id.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

from .messages import AssistantMessage, Message, TaggedMessage, ToolMessage
from .types import ResponseContent, ToolCallInfo, ToolResultInfo, Usage


def _tool_calls(messages: Iterable[Message]) -> list[ToolCallInfo] | None:
    calls = [
        m.content.tool_call
        for m in messages
        if isinstance(m, AssistantMessage) and m.content.tool_call is not None
    ]
    return calls or None


def _tool_results(messages: Iterable[Message]) -> list[ToolResultInfo] | None:
    results = [m.result for m in messages if isinstance(m, ToolMessage)]
    return results or None


@dataclass
class Step:
    """One round of model interaction: the messages sharing a step id."""

    step_id: int
    messages: list[Message] = field(default_factory=list)

    def usage(self) -> Usage:
        total = Usage()
        for msg in self.messages:
            if isinstance(msg, AssistantMessage) and msg.usage is not None:
                total = total + msg.usage
        return total

    def tool_calls(self) -> list[ToolCallInfo] | None:
        return _tool_calls(self.messages)

    def tool_results(self) -> list[ToolResultInfo] | None:
        return _tool_results(self.messages)


class MessageLog:
    """Append-only list of ``TaggedMessage``."""

    def __init__(self, tagged: Iterable[TaggedMessage] | None = None) -> None:
        self._tagged: list[TaggedMessage] = list(tagged or [])

    def append(self, tagged: TaggedMessage) -> None:
        self._tagged.append(tagged)

    def add(self, step_id: int, message: Message) -> TaggedMessage:
        """Tag ``message`` with ``step_id`` and append it."""
        tagged = TaggedMessage(step_id=step_id, message=message)
        self._tagged.append(tagged)
        return tagged

    def copy(self) -> MessageLog:
        return MessageLog(self._tagged)

    def __len__(self) -> int:
        return len(self._tagged)

    def __iter__(self) -> Iterator[TaggedMessage]:
        return iter(list(self._tagged))

    @property
    def tagged(self) -> list[TaggedMessage]:
        return list(self._tagged)

    def messages(self) -> list[Message]:
        return [t.message for t in self._tagged]

    def step_ids(self) -> list[int]:
        return [t.step_id for t in self._tagged]

    # --- Step views ---

    def steps(self) -> list[Step]:
        """Group by step id, ascending; insertion order is kept within a step."""
        grouped: dict[int, list[Message]] = {}
        for tagged in self._tagged:
            grouped.setdefault(tagged.step_id, []).append(tagged.message)
        return [Step(step_id, grouped[step_id]) for step_id in sorted(grouped)]

    def step(self, index: int) -> Step | None:
        messages = [t.message for t in self._tagged if t.step_id == index]
        if not messages:
            return None
        return Step(index, messages)

    def last_step(self) -> Step | None:
        if not self._tagged:
            return None
        return self.step(max(t.step_id for t in self._tagged))

    def usage(self) -> Usage:
        total = Usage()
        for step in self.steps():
            total = total + step.usage()
        return total

    # --- Final output views ---

    def content(self) -> ResponseContent | None:
        """Content of the last message if it is non-reasoning assistant output."""
        if not self._tagged:
            return None
        last = self._tagged[-1].message
        if not isinstance(last, AssistantMessage) or last.content.is_reasoning:
            return None
        return last.content

    def text(self) -> str | None:
        content = self.content()
        if content is None or not content.is_text:
            return None
        return content.text

    def tool_calls(self) -> list[ToolCallInfo] | None:
        return _tool_calls(self.messages())

    def tool_results(self) -> list[ToolResultInfo] | None:
        return _tool_results(self.messages())
