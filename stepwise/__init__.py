"""stepwise: a step-based orchestration loop for language model calls."""

__version__ = "0.1.0"

from .client import LanguageModel, LanguageModelResponse, LiteLLMModel
from .config import StepwiseConfig
from .core import (
    AssistantMessage,
    CallOptions,
    CancellationToken,
    DeveloperMessage,
    GenerateTextResponse,
    HookRegistry,
    LanguageModelRequest,
    LanguageModelStream,
    MessageBuilder,
    OutputUnit,
    RequestBuilder,
    ResponseContent,
    Step,
    StopReason,
    StreamChunk,
    StreamTextResponse,
    SystemMessage,
    ToolCallInfo,
    ToolMessage,
    ToolResultInfo,
    Usage,
    UserMessage,
    generate_once,
    generate_text,
    stream_text,
)
from .errors import (
    HookError,
    InvalidInputError,
    MissingFieldError,
    ModelError,
    StageError,
    StepwiseError,
    ToolCallError,
)
from .tools import FunctionTool, ToolHandler, ToolInvocation, ToolOutput, ToolRegistry

__all__ = [
    "__version__",
    "RequestBuilder",
    "LanguageModelRequest",
    "CallOptions",
    "HookRegistry",
    "stream_text",
    "generate_text",
    "generate_once",
    "StreamTextResponse",
    "GenerateTextResponse",
    "LanguageModelStream",
    "StreamChunk",
    "StopReason",
    "OutputUnit",
    "CancellationToken",
    "MessageBuilder",
    "SystemMessage",
    "UserMessage",
    "AssistantMessage",
    "DeveloperMessage",
    "ToolMessage",
    "ResponseContent",
    "ToolCallInfo",
    "ToolResultInfo",
    "Usage",
    "Step",
    "LanguageModel",
    "LanguageModelResponse",
    "LiteLLMModel",
    "StepwiseConfig",
    "ToolHandler",
    "ToolInvocation",
    "ToolOutput",
    "FunctionTool",
    "ToolRegistry",
    "StepwiseError",
    "MissingFieldError",
    "InvalidInputError",
    "StageError",
    "ToolCallError",
    "ModelError",
    "HookError",
]
