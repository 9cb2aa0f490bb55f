"""Single-producer, single-consumer channel carrying ``StreamChunk`` to a caller.

With ``max_buffer=None`` the queue is unbounded: the producer never waits and
chunks pile up behind a slow consumer. A positive ``max_buffer`` makes
``send`` wait while the queue is full, so a slow consumer slows the loop down.

Closing the consumer side never stops the producer; later sends are dropped.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import cast

from .events import StreamChunk

_EOF = object()


class LanguageModelStream:
    """Async iterator over the chunks of one loop run."""

    def __init__(self, max_buffer: int | None = None) -> None:
        if max_buffer is not None and max_buffer < 1:
            raise ValueError("max_buffer must be a positive integer or None")
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=max_buffer or 0)
        self._terminated = False
        self._producer_closed = False
        self._consumer_closed = False
        self._sent = 0

    # --- Producer side ---

    async def send(self, chunk: StreamChunk) -> bool:
        """Queue ``chunk``. Returns False when it was dropped."""
        if self._consumer_closed or self._terminated or self._producer_closed:
            return False
        if chunk.is_terminal:
            self._terminated = True
        await self._queue.put(chunk)
        self._sent += 1
        return True

    async def close_producer(self) -> None:
        if self._producer_closed:
            return
        self._producer_closed = True
        if not self._consumer_closed:
            await self._queue.put(_EOF)

    # --- Consumer side ---

    def close(self) -> None:
        """Stop consuming. Pending and future chunks are discarded."""
        self._consumer_closed = True
        while not self._queue.empty():
            self._queue.get_nowait()

    @property
    def terminated(self) -> bool:
        """True once a terminal chunk has been queued."""
        return self._terminated

    @property
    def sent(self) -> int:
        return self._sent

    def __aiter__(self) -> AsyncIterator[StreamChunk]:
        return self

    async def __anext__(self) -> StreamChunk:
        if self._consumer_closed:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _EOF:
            self._consumer_closed = True
            raise StopAsyncIteration
        return cast(StreamChunk, item)

    async def collect(self) -> list[StreamChunk]:
        """Drain the stream into a list."""
        return [chunk async for chunk in self]
