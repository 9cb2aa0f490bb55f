"""Request state and the staged builder that creates it.

A ``LanguageModelRequest`` is the whole state of one conversation being
orchestrated: model handle, options, tools, hooks, the step-tagged message
log, the step counter and the stop reason. Its shape is fixed at build time;
its content changes as the loop runs.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from ..errors import InvalidInputError, MissingFieldError, StageError
from .hooks import HookRegistry, StepHook, StopHook
from .messages import (
    Message,
    SystemMessage,
    ToolMessage,
    UserMessage,
    is_replayable,
    to_chat_dict,
)
from .options import CallOptions
from .steps import MessageLog, Step
from .types import ResponseContent, ToolCallInfo, ToolDescriptor, ToolResultInfo, Usage

if TYPE_CHECKING:
    from ..client.model import LanguageModel
    from ..tools.base import ToolHandler
    from ..tools.registry import ToolRegistry
    from .events import StopReason

logger = logging.getLogger(__name__)

NO_TOOLS_MESSAGE = "Error: No tools are configured for this request"


class LanguageModelRequest:
    """Orchestration state for one conversation.

    Created by ``RequestBuilder``. Only the loop (and the hooks it calls)
    should mutate it: messages are appended, the step counter moves forward,
    and the stop reason is set once per run.
    """

    def __init__(
        self,
        *,
        model: LanguageModel,
        options: CallOptions,
        messages: Iterable[Message],
        prompt: str | None = None,
        tools: ToolRegistry | None = None,
        hooks: HookRegistry | None = None,
    ) -> None:
        self.model = model
        self.options = options
        self.prompt = prompt
        self.tools = tools
        self.hooks = hooks if hooks is not None else HookRegistry()
        self.log = MessageLog()
        for message in messages:
            self.log.add(0, message)
        self.current_step_id = 0
        self._stop_reason: StopReason | None = None

    @staticmethod
    def builder() -> RequestBuilder:
        return RequestBuilder()

    def __repr__(self) -> str:
        return (
            f"LanguageModelRequest(model={getattr(self.model, 'name', self.model)!r}, "
            f"step={self.current_step_id}, messages={len(self.log)}, "
            f"stop_reason={self._stop_reason!r})"
        )

    @property
    def system(self) -> str | None:
        return self.options.system

    # --- Stop reason ---

    @property
    def stop_reason(self) -> StopReason | None:
        return self._stop_reason

    def set_stop_reason(self, reason: StopReason) -> bool:
        """Record why the run ended. Only the first call per run takes effect."""
        if self._stop_reason is not None:
            logger.debug("Stop reason already %s; ignoring %s", self._stop_reason, reason)
            return False
        self._stop_reason = reason
        return True

    def reset_stop_reason(self) -> None:
        """Clear the stop reason so the conversation can be continued by a new run."""
        self._stop_reason = None

    # --- Log mutation ---

    def next_step(self) -> int:
        self.current_step_id += 1
        return self.current_step_id

    def add_message(self, message: Message) -> None:
        """Append ``message`` tagged with the current step."""
        self.log.add(self.current_step_id, message)

    def add_user_message(self, content: str) -> None:
        self.add_message(UserMessage(content))

    def copy(self) -> LanguageModelRequest:
        """Independent copy of the state; model, tools and hooks are shared."""
        clone = copy.copy(self)
        clone.options = copy.deepcopy(self.options)
        clone.log = self.log.copy()
        return clone

    async def handle_tool_call(self, call: ToolCallInfo) -> ToolResultInfo:
        """Dispatch ``call`` and append the resulting tool message at the current step."""
        if self.tools is None:
            logger.warning("Tool call %s (%s) but no tools are configured", call.name, call.id)
            result = ToolResultInfo(
                tool=ToolDescriptor(name=call.name, id=call.id, schema=call.tool.schema),
                output=NO_TOOLS_MESSAGE,
                success=False,
            )
        else:
            result = await self.tools.dispatch(call)
        self.add_message(ToolMessage(result))
        return result

    # --- Views ---

    def messages(self) -> list[Message]:
        return self.log.messages()

    def steps(self) -> list[Step]:
        return self.log.steps()

    def step(self, index: int) -> Step | None:
        return self.log.step(index)

    def last_step(self) -> Step | None:
        return self.log.last_step()

    def usage(self) -> Usage:
        return self.log.usage()

    def content(self) -> ResponseContent | None:
        return self.log.content()

    def text(self) -> str | None:
        return self.log.text()

    def tool_calls(self) -> list[ToolCallInfo] | None:
        return self.log.tool_calls()

    def tool_results(self) -> list[ToolResultInfo] | None:
        return self.log.tool_results()

    def tool_specs(self) -> list[dict[str, Any]]:
        return self.tools.get_specs() if self.tools is not None else []

    def chat_messages(self) -> list[dict[str, Any]]:
        """The log in OpenAI chat format, reasoning output left out."""
        return [to_chat_dict(m) for m in self.log.messages() if is_replayable(m)]


# Builder stages, in order
_MODEL = "model"
_SYSTEM = "system"
_CONVERSATION = "conversation"
_OPTIONS = "options"


class RequestBuilder:
    """Staged constructor for ``LanguageModelRequest``.

    Order is enforced at runtime: ``model()`` first, then optionally
    ``system()``, then exactly one of ``prompt()`` or ``messages()``, then any
    tools, hooks and options::

        request = (
            RequestBuilder()
            .model(model)
            .system("You are terse.")
            .prompt("2+2?")
            .with_tool(weather_tool)
            .stop_when(lambda req: req.current_step_id >= 5)
            .build()
        )
    """

    def __init__(self) -> None:
        self._stage = _MODEL
        self._model: LanguageModel | None = None
        self._system: str | None = None
        self._prompt: str | None = None
        self._messages: list[Message] | None = None
        self._options = CallOptions()
        self._tools: ToolRegistry | None = None
        self._hooks: HookRegistry | None = None

    def _require(self, method: str, *stages: str) -> None:
        if self._stage not in stages:
            raise StageError(method, self._stage, " or ".join(stages) + " stage")

    # --- Stage 1: model ---

    def model(self, model: LanguageModel) -> RequestBuilder:
        self._require("model", _MODEL)
        if model is None:
            raise MissingFieldError("model")
        self._model = model
        self._stage = _SYSTEM
        return self

    # --- Stage 2: system prompt, then prompt or messages ---

    def system(self, system: str) -> RequestBuilder:
        self._require("system", _SYSTEM)
        self._system = system
        self._stage = _CONVERSATION
        return self

    def prompt(self, prompt: str) -> RequestBuilder:
        self._reject_second_conversation("prompt")
        self._require("prompt", _SYSTEM, _CONVERSATION)
        self._prompt = prompt
        self._stage = _OPTIONS
        return self

    def messages(self, messages: Iterable[Message]) -> RequestBuilder:
        self._reject_second_conversation("messages")
        self._require("messages", _SYSTEM, _CONVERSATION)
        self._messages = list(messages)
        self._stage = _OPTIONS
        return self

    def _reject_second_conversation(self, method: str) -> None:
        if self._prompt is not None or self._messages is not None:
            raise InvalidInputError(f"Cannot set both prompt and messages ({method}() called twice)")

    # --- Stage 3: tools, hooks, options ---

    def with_tool(self, tool: ToolHandler) -> RequestBuilder:
        self._require("with_tool", _OPTIONS)
        if self._tools is None:
            from ..tools.registry import ToolRegistry

            self._tools = ToolRegistry()
        self._tools.register(tool)
        return self

    def tools(self, registry: ToolRegistry) -> RequestBuilder:
        self._require("tools", _OPTIONS)
        self._tools = registry
        return self

    def hooks(self, registry: HookRegistry) -> RequestBuilder:
        """Share an existing hook registry instead of building one per request."""
        self._require("hooks", _OPTIONS)
        self._hooks = registry
        return self

    def _own_hooks(self) -> HookRegistry:
        if self._hooks is None:
            self._hooks = HookRegistry()
        return self._hooks

    def prepare_step(self, hook: StepHook) -> RequestBuilder:
        self._require("prepare_step", _OPTIONS)
        self._own_hooks().set_prepare_step(hook)
        return self

    def on_step_finish(self, hook: StepHook) -> RequestBuilder:
        self._require("on_step_finish", _OPTIONS)
        self._own_hooks().set_on_step_finish(hook)
        return self

    def stop_when(self, hook: StopHook) -> RequestBuilder:
        self._require("stop_when", _OPTIONS)
        self._own_hooks().set_stop_when(hook)
        return self

    def options(self, options: CallOptions) -> RequestBuilder:
        """Replace all call options. A system prompt set earlier is kept."""
        self._require("options", _OPTIONS)
        self._options = copy.deepcopy(options)
        return self

    def _set_option(self, name: str, value: Any) -> RequestBuilder:
        self._require(name, _OPTIONS)
        setattr(self._options, name, value)
        self._options.__post_init__()
        return self

    def temperature(self, value: float) -> RequestBuilder:
        return self._set_option("temperature", value)

    def top_p(self, value: float) -> RequestBuilder:
        return self._set_option("top_p", value)

    def top_k(self, value: int) -> RequestBuilder:
        return self._set_option("top_k", value)

    def seed(self, value: int) -> RequestBuilder:
        return self._set_option("seed", value)

    def max_output_tokens(self, value: int) -> RequestBuilder:
        return self._set_option("max_output_tokens", value)

    def stop_sequences(self, value: list[str]) -> RequestBuilder:
        return self._set_option("stop_sequences", list(value))

    def presence_penalty(self, value: float) -> RequestBuilder:
        return self._set_option("presence_penalty", value)

    def frequency_penalty(self, value: float) -> RequestBuilder:
        return self._set_option("frequency_penalty", value)

    def reasoning_effort(self, value: str) -> RequestBuilder:
        return self._set_option("reasoning_effort", value)

    def max_retries(self, value: int) -> RequestBuilder:
        return self._set_option("max_retries", value)

    def max_steps(self, value: int) -> RequestBuilder:
        return self._set_option("max_steps", value)

    # --- Build ---

    def build(self) -> LanguageModelRequest:
        if self._model is None:
            raise MissingFieldError("model")
        if self._prompt is not None and self._messages is not None:
            raise InvalidInputError("Cannot set both prompt and messages")
        if self._prompt is None and not self._messages:
            raise InvalidInputError("Messages or prompt must be set")

        options = copy.deepcopy(self._options)
        messages = self._resolve_messages()
        if self._system is not None:
            options.system = self._system
        elif options.system is None:
            options.system = next(
                (m.content for m in messages if isinstance(m, SystemMessage)), None
            )

        return LanguageModelRequest(
            model=self._model,
            options=options,
            messages=messages,
            prompt=self._prompt,
            tools=self._tools,
            hooks=self._hooks,
        )

    def _resolve_messages(self) -> list[Message]:
        system = self._system if self._system is not None else self._options.system
        if self._prompt is not None:
            messages: list[Message] = []
            if system:
                messages.append(SystemMessage(system))
            messages.append(UserMessage(self._prompt))
            return messages

        messages = list(self._messages or [])
        has_system = any(isinstance(m, SystemMessage) for m in messages)
        if system and not has_system:
            messages.insert(0, SystemMessage(system))
        return messages

