"""Customization hooks run by the orchestration loop.

Three optional hooks, each sync or async:

- ``prepare_step(request) -> request | None``: runs before each model call.
- ``on_step_finish(request) -> request | None``: runs after a step's output
  has been folded into the log.
- ``stop_when(request) -> bool``: runs after ``on_step_finish``; ``True``
  ends the run with a ``hook`` stop reason.

For the first two, a returned request replaces the loop's working request and
``None`` keeps it. Hooks can be called many times per run and must not hold on
to the request after they return.
"""

from __future__ import annotations

import inspect
import threading
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Union

if TYPE_CHECKING:
    from .request import LanguageModelRequest

StepHook = Callable[
    ["LanguageModelRequest"],
    Union["LanguageModelRequest", None, Awaitable[Union["LanguageModelRequest", None]]],
]
StopHook = Callable[["LanguageModelRequest"], Union[bool, Awaitable[bool]]]


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


@dataclass(frozen=True)
class HookSnapshot:
    """Hooks as registered at one moment; what a single hook call sees."""

    prepare_step: StepHook | None = None
    on_step_finish: StepHook | None = None
    stop_when: StopHook | None = None


class HookRegistry:
    """Holds the three optional hooks.

    A registry may be shared by many requests and updated from other threads.
    Each invocation reads a consistent snapshot taken under the lock, so a
    hook replaced mid-run takes effect from the next invocation on.
    """

    def __init__(
        self,
        *,
        prepare_step: StepHook | None = None,
        on_step_finish: StepHook | None = None,
        stop_when: StopHook | None = None,
    ) -> None:
        self._lock = threading.RLock()
        self._hooks = HookSnapshot(prepare_step, on_step_finish, stop_when)

    def snapshot(self) -> HookSnapshot:
        with self._lock:
            return self._hooks

    def set_prepare_step(self, hook: StepHook | None) -> None:
        with self._lock:
            h = self._hooks
            self._hooks = HookSnapshot(hook, h.on_step_finish, h.stop_when)

    def set_on_step_finish(self, hook: StepHook | None) -> None:
        with self._lock:
            h = self._hooks
            self._hooks = HookSnapshot(h.prepare_step, hook, h.stop_when)

    def set_stop_when(self, hook: StopHook | None) -> None:
        with self._lock:
            h = self._hooks
            self._hooks = HookSnapshot(h.prepare_step, h.on_step_finish, hook)

    def copy(self) -> HookRegistry:
        h = self.snapshot()
        return HookRegistry(
            prepare_step=h.prepare_step,
            on_step_finish=h.on_step_finish,
            stop_when=h.stop_when,
        )

    def __bool__(self) -> bool:
        h = self.snapshot()
        return any((h.prepare_step, h.on_step_finish, h.stop_when))

    # --- Invocation ---

    async def run_prepare_step(self, request: LanguageModelRequest) -> LanguageModelRequest:
        return await self._run_step_hook(self.snapshot().prepare_step, request, "prepare_step")

    async def run_on_step_finish(self, request: LanguageModelRequest) -> LanguageModelRequest:
        return await self._run_step_hook(self.snapshot().on_step_finish, request, "on_step_finish")

    async def should_stop(self, request: LanguageModelRequest) -> bool:
        hook = self.snapshot().stop_when
        if hook is None:
            return False
        return bool(await _resolve(hook(request)))

    @staticmethod
    async def _run_step_hook(
        hook: StepHook | None, request: LanguageModelRequest, name: str
    ) -> LanguageModelRequest:
        if hook is None:
            return request
        replacement = await _resolve(hook(request))
        if replacement is None:
            return request
        from .request import LanguageModelRequest

        if not isinstance(replacement, LanguageModelRequest):
            raise TypeError(
                f"{name} hook must return a LanguageModelRequest or None, "
                f"got {type(replacement).__name__}"
            )
        return replacement
