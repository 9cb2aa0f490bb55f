"""The language model capability the loop drives.

Any object with ``generate`` and ``generate_stream`` works; no base class is
required. ``generate_stream`` may be an async generator function or a
coroutine returning an async iterator. Each item it yields is a list of
``OutputUnit`` (a single unit is accepted too). Yielding an ``Exception``
instance reports a per-unit failure without tearing down the iterator.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, Union, runtime_checkable

from ..core.events import OutputUnit
from ..core.types import Usage

if TYPE_CHECKING:
    from ..core.request import LanguageModelRequest

StreamItem = Union[list[OutputUnit], OutputUnit, Exception]
ModelStream = AsyncIterator[StreamItem]


@dataclass
class LanguageModelResponse:
    """Result of a single non-streaming model call."""

    text: str
    model: str | None = None
    usage: Usage | None = None


@runtime_checkable
class LanguageModel(Protocol):
    """Capability implemented by each model backend."""

    @property
    def name(self) -> str:
        """Model identifier."""
        ...

    async def generate(self, request: LanguageModelRequest) -> LanguageModelResponse:
        """One complete response for the request's messages."""
        ...

    def generate_stream(
        self, request: LanguageModelRequest
    ) -> ModelStream | Awaitable[ModelStream]:
        """Stream output units for the request's messages."""
        ...
