"""Cooperative cancellation for loop runs."""

from __future__ import annotations

import threading
from datetime import datetime, timezone


class CancellationToken:
    """Shared between a caller and a running loop.

    ``cancel`` may be called from any thread. The loop polls the token at the
    top of each step and after each batch of model output; it never interrupts
    a tool call or a model read in progress.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self.reason: str | None = None
        self.cancelled_at: datetime | None = None

    def cancel(self, reason: str = "requested") -> bool:
        """Request cancellation. Returns False if it was already requested."""
        if self._event.is_set():
            return False
        self.reason = reason
        self.cancelled_at = datetime.now(timezone.utc)
        self._event.set()
        return True

    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def details(self) -> str:
        """Stop reason details for a run ended by this token."""
        return f"cancelled: {self.reason}"

    def __repr__(self) -> str:
        state = f"cancelled ({self.reason!r})" if self.is_cancelled() else "active"
        return f"CancellationToken({state})"
