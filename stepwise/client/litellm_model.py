"""LiteLLM-backed language model for multi-provider support.

Wraps ``litellm.acompletion`` behind the ``LanguageModel`` capability:
- Any provider LiteLLM routes to (OpenAI, Anthropic, Google, ...)
- Streamed text, reasoning and tool-call fragments mapped to output units
- Token usage from the final chunk, cost from LiteLLM's pricing database
- Chunk timeout so a stalled provider fails the step instead of hanging

Usage:
    model = LiteLLMModel("anthropic/claude-3-5-sonnet-20241022")
    request = RequestBuilder().model(model).prompt("Hi").build()
    response = await generate_text(request)
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Any

from ..core.events import OutputUnit
from ..core.types import ResponseContent, ToolCallInfo, Usage
from ..errors import ModelError
from .model import LanguageModelResponse, StreamItem

if TYPE_CHECKING:
    from ..core.request import LanguageModelRequest

logger = logging.getLogger(__name__)

# Call option name -> litellm.acompletion keyword
_OPTION_KWARGS = {
    "temperature": "temperature",
    "top_p": "top_p",
    "top_k": "top_k",
    "seed": "seed",
    "max_output_tokens": "max_tokens",
    "stop_sequences": "stop",
    "presence_penalty": "presence_penalty",
    "frequency_penalty": "frequency_penalty",
    "reasoning_effort": "reasoning_effort",
}


class LiteLLMModel:
    """``LanguageModel`` implementation over LiteLLM.

    Streaming uses a chunk timeout to handle long-running requests (high
    reasoning effort) while still detecting stuck APIs.
    """

    DEFAULT_CHUNK_TIMEOUT: float = 180.0
    DEFAULT_REQUEST_TIMEOUT: float = 600.0

    def __init__(
        self,
        model: str,
        api_key: str | None = None,
        base_url: str | None = None,
        chunk_timeout: float | None = None,
    ) -> None:
        """Initialize the model.

        Args:
            model: LiteLLM model identifier (e.g. "openai/gpt-5-mini").
            api_key: Optional API key (falls back to provider env variables).
            base_url: Optional custom endpoint.
            chunk_timeout: Max seconds to wait for the next chunk (default: 180).
        """
        try:
            import litellm

            self._litellm = litellm
        except ImportError:
            raise ImportError(
                "litellm is required for LiteLLMModel. Install with: pip install litellm"
            )

        self._model = model
        self._api_key = api_key
        self._base_url = base_url
        self._chunk_timeout = chunk_timeout or self.DEFAULT_CHUNK_TIMEOUT
        self.total_cost_usd = 0.0

        litellm.suppress_debug_info = True

    @property
    def name(self) -> str:
        return self._model

    def __repr__(self) -> str:
        return f"LiteLLMModel({self._model!r})"

    # --- Request mapping ---

    def _build_kwargs(self, request: LanguageModelRequest, stream: bool) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self._model,
            "messages": request.chat_messages(),
            "stream": stream,
        }
        if stream:
            # Request usage in final chunk (OpenAI API feature)
            kwargs["stream_options"] = {"include_usage": True}
        if self._api_key:
            kwargs["api_key"] = self._api_key
        if self._base_url:
            kwargs["base_url"] = self._base_url

        options = request.options.sampling_kwargs()
        for name, value in options.items():
            kwargs[_OPTION_KWARGS.get(name, name)] = value
        # reasoning_effort and temperature are mutually exclusive
        if "reasoning_effort" in kwargs:
            kwargs.pop("temperature", None)

        tools = request.tool_specs()
        if tools:
            kwargs["tools"] = tools
        return kwargs

    def _extract_usage(self, usage_obj: Any) -> Usage:
        """Map a LiteLLM usage object to ``Usage`` and record its cost."""
        if not usage_obj:
            return Usage()

        input_tokens = getattr(usage_obj, "prompt_tokens", None)
        output_tokens = getattr(usage_obj, "completion_tokens", None)
        total_tokens = getattr(usage_obj, "total_tokens", None)
        cached_tokens = None
        reasoning_tokens = None

        details = getattr(usage_obj, "prompt_tokens_details", None)
        if details is not None:
            cached_tokens = getattr(details, "cached_tokens", None)

        # Reasoning tokens are a subset of completion_tokens, not additive
        details = getattr(usage_obj, "completion_tokens_details", None)
        if details is not None:
            reasoning_tokens = getattr(details, "reasoning_tokens", None)

        try:
            cost = self._litellm.completion_cost(
                model=self._model,
                prompt_tokens=input_tokens or 0,
                completion_tokens=output_tokens or 0,
            )
            if cost is not None:
                self.total_cost_usd += cost
        except Exception as e:
            logger.debug("No pricing data for %s: %s", self._model, e)

        return Usage(
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=total_tokens,
            cached_tokens=cached_tokens,
            reasoning_tokens=reasoning_tokens,
        )

    # --- LanguageModel ---

    async def generate(self, request: LanguageModelRequest) -> LanguageModelResponse:
        kwargs = self._build_kwargs(request, stream=False)
        kwargs["timeout"] = self.DEFAULT_REQUEST_TIMEOUT
        response = await self._litellm.acompletion(**kwargs)

        content = response.choices[0].message.content or ""
        return LanguageModelResponse(
            text=content,
            model=getattr(response, "model", None) or self._model,
            usage=self._extract_usage(getattr(response, "usage", None)),
        )

    async def generate_stream(self, request: LanguageModelRequest) -> AsyncIterator[StreamItem]:
        kwargs = self._build_kwargs(request, stream=True)

        try:
            response = await self._litellm.acompletion(**kwargs)

            text_parts: list[str] = []
            reasoning_parts: list[str] = []
            # Tool calls arrive in pieces, keyed by index
            tool_calls_in_progress: dict[int, dict[str, str]] = {}
            usage = Usage()

            async for chunk in self._iter_with_timeout(response):
                if getattr(chunk, "usage", None):
                    usage = self._extract_usage(chunk.usage)

                if not chunk.choices:
                    continue

                delta = chunk.choices[0].delta

                reasoning = getattr(delta, "reasoning_content", None)
                if reasoning:
                    reasoning_parts.append(reasoning)
                    yield [OutputUnit.reasoning_delta(reasoning)]

                if delta.content:
                    text_parts.append(delta.content)
                    yield [OutputUnit.text_delta(delta.content)]

                for tc_delta in getattr(delta, "tool_calls", None) or []:
                    tc = tool_calls_in_progress.setdefault(
                        tc_delta.index, {"id": "", "name": "", "arguments": ""}
                    )
                    if tc_delta.id:
                        tc["id"] = tc_delta.id
                    if tc_delta.function:
                        if tc_delta.function.name:
                            tc["name"] = tc_delta.function.name
                        if tc_delta.function.arguments:
                            tc["arguments"] += tc_delta.function.arguments
                            yield [OutputUnit.tool_call_delta(tc_delta.function.arguments)]

            yield self._final_units(
                "".join(text_parts), "".join(reasoning_parts), tool_calls_in_progress, usage
            )

        except asyncio.TimeoutError:
            yield ModelError(f"Chunk timeout: no response received for {self._chunk_timeout}s")
        except Exception as e:
            yield ModelError(str(e), e)

    def _final_units(
        self,
        text: str,
        reasoning: str,
        tool_calls: dict[int, dict[str, str]],
        usage: Usage,
    ) -> list[OutputUnit]:
        """Build the ``done`` units for one completed model call.

        Text that accompanies tool calls was already streamed as deltas and is
        not repeated as a final message. Usage rides on the last unit only.
        """
        contents: list[ResponseContent] = []
        if reasoning:
            contents.append(ResponseContent.of_reasoning(reasoning))
        if tool_calls:
            for idx in sorted(tool_calls):
                tc = tool_calls[idx]
                try:
                    args = json.loads(tc["arguments"]) if tc["arguments"] else {}
                except json.JSONDecodeError:
                    logger.warning("Invalid JSON arguments for tool %s", tc["name"])
                    args = {}
                call = ToolCallInfo.new(tc["name"], args, id=tc["id"] or None)
                contents.append(ResponseContent.of_tool_call(call))
        else:
            contents.append(ResponseContent.of_text(text))

        last = len(contents) - 1
        return [
            OutputUnit.done(content, usage if i == last and not usage.is_empty() else None)
            for i, content in enumerate(contents)
        ]

    async def _iter_with_timeout(self, response: Any) -> AsyncIterator[Any]:
        """Iterate a streaming response, raising asyncio.TimeoutError on a stalled chunk."""
        aiter = response.__aiter__()
        while True:
            try:
                chunk = await asyncio.wait_for(aiter.__anext__(), timeout=self._chunk_timeout)
            except StopAsyncIteration:
                break
            yield chunk
