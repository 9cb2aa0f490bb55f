"""Conversation messages and the ordered message-list builder."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from ..errors import InvalidInputError
from .types import ResponseContent, ToolCallInfo, ToolResultInfo, Usage


@dataclass(frozen=True)
class SystemMessage:
    content: str
    role: str = "system"


@dataclass(frozen=True)
class UserMessage:
    content: str
    role: str = "user"


@dataclass(frozen=True)
class DeveloperMessage:
    content: str
    role: str = "developer"


@dataclass(frozen=True)
class AssistantMessage:
    """Assistant output: text, reasoning, or a tool call, with optional usage."""

    content: ResponseContent
    usage: Usage | None = None
    role: str = "assistant"

    @classmethod
    def text(cls, text: str, usage: Usage | None = None) -> AssistantMessage:
        return cls(content=ResponseContent.of_text(text), usage=usage)

    @classmethod
    def reasoning(cls, text: str, usage: Usage | None = None) -> AssistantMessage:
        return cls(content=ResponseContent.of_reasoning(text), usage=usage)

    @classmethod
    def tool_call(cls, call: ToolCallInfo, usage: Usage | None = None) -> AssistantMessage:
        return cls(content=ResponseContent.of_tool_call(call), usage=usage)


@dataclass(frozen=True)
class ToolMessage:
    """Result of a tool call, folded back into the conversation."""

    result: ToolResultInfo
    role: str = "tool"

    @property
    def content(self) -> str:
        return self.result.output_text()


Message = Union[SystemMessage, UserMessage, AssistantMessage, ToolMessage, DeveloperMessage]


@dataclass(frozen=True)
class TaggedMessage:
    """A message plus the step that produced it."""

    step_id: int
    message: Message

    def __post_init__(self) -> None:
        if self.step_id < 0:
            raise ValueError(f"step_id must be >= 0, got {self.step_id}")


def to_chat_dict(message: Message) -> dict[str, Any]:
    """Convert a message to OpenAI chat format.

    Reasoning output is internal to the step that produced it and is not
    replayed to the model; callers should filter it with ``is_replayable``.
    """
    if isinstance(message, ToolMessage):
        return {
            "role": "tool",
            "tool_call_id": message.result.id,
            "content": message.content,
        }
    if isinstance(message, AssistantMessage):
        content = message.content
        if content.is_tool_call and content.tool_call is not None:
            call = content.tool_call
            return {
                "role": "assistant",
                "content": None,
                "tool_calls": [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {"name": call.name, "arguments": call.arguments_json()},
                    }
                ],
            }
        return {"role": "assistant", "content": content.text or ""}
    return {"role": message.role, "content": message.content}


def is_replayable(message: Message) -> bool:
    return not (isinstance(message, AssistantMessage) and message.content.is_reasoning)


class MessageBuilder:
    """Builds an ordered message list.

    ``MessageBuilder()`` starts in the initial state where the first message
    must be a system prompt or a user message. ``MessageBuilder.conversation()``
    starts directly in the conversation state. System prompts are only
    accepted as the first message::

        messages = (
            MessageBuilder()
            .system("You are helpful.")
            .user("Hello!")
            .assistant("Hi there.")
            .build()
        )
    """

    def __init__(self, *, conversation: bool = False) -> None:
        self._messages: list[Message] = []
        self._started = conversation

    @classmethod
    def conversation(cls) -> MessageBuilder:
        return cls(conversation=True)

    def system(self, content: str) -> MessageBuilder:
        if self._started:
            raise InvalidInputError("A system message must be the first message")
        self._messages.append(SystemMessage(content))
        self._started = True
        return self

    def user(self, content: str) -> MessageBuilder:
        self._messages.append(UserMessage(content))
        self._started = True
        return self

    def assistant(self, content: str) -> MessageBuilder:
        if not self._started:
            raise InvalidInputError("The first message must be a system or user message")
        self._messages.append(AssistantMessage.text(content))
        return self

    def developer(self, content: str) -> MessageBuilder:
        if not self._started:
            raise InvalidInputError("The first message must be a system or user message")
        self._messages.append(DeveloperMessage(content))
        return self

    def build(self) -> list[Message]:
        return list(self._messages)
