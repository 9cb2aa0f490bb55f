"""Core orchestration API: messages, steps, hooks, requests and the loop."""

from __future__ import annotations

from .cancellation import CancellationToken
from .channel import LanguageModelStream
from .events import ContentDelta, FinalMessage, OutputUnit, StopReason, StreamChunk
from .hooks import HookRegistry
from .loop import (
    GenerateTextResponse,
    LoopResult,
    StreamTextResponse,
    generate_once,
    generate_text,
    run_loop,
    stream_text,
)
from .messages import (
    AssistantMessage,
    DeveloperMessage,
    Message,
    MessageBuilder,
    SystemMessage,
    TaggedMessage,
    ToolMessage,
    UserMessage,
)
from .options import CallOptions
from .request import LanguageModelRequest, RequestBuilder
from .steps import MessageLog, Step
from .types import ResponseContent, ToolCallInfo, ToolDescriptor, ToolResultInfo, Usage

__all__ = [
    "AssistantMessage",
    "CallOptions",
    "CancellationToken",
    "ContentDelta",
    "DeveloperMessage",
    "FinalMessage",
    "GenerateTextResponse",
    "HookRegistry",
    "LanguageModelRequest",
    "LanguageModelStream",
    "LoopResult",
    "Message",
    "MessageBuilder",
    "MessageLog",
    "OutputUnit",
    "RequestBuilder",
    "ResponseContent",
    "Step",
    "StopReason",
    "StreamChunk",
    "StreamTextResponse",
    "SystemMessage",
    "TaggedMessage",
    "ToolCallInfo",
    "ToolDescriptor",
    "ToolMessage",
    "ToolResultInfo",
    "Usage",
    "UserMessage",
    "generate_once",
    "generate_text",
    "run_loop",
    "stream_text",
]
