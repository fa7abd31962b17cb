"""
Per-request cancellation signal shared by the pipeline and the bridge.
"""

import asyncio
from typing import Callable, List, Optional


class CancellationToken:
    """Single-fire cancellation signal.

    Once cancelled it stays cancelled for the lifetime of the request.
    Callbacks registered before firing run exactly once, in registration
    order; callbacks registered afterwards run immediately.
    """

    def __init__(self, reason: Optional[str] = None):
        self._event = asyncio.Event()
        self._callbacks: List[Callable[[], None]] = []
        self.reason = reason

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: Optional[str] = None) -> bool:
        """Fire the signal. Returns False if it had already fired."""
        if self._event.is_set():
            return False
        self.reason = reason or self.reason
        self._event.set()

        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()
        return True

    def add_callback(self, callback: Callable[[], None]) -> None:
        if self._event.is_set():
            callback()
            return
        self._callbacks.append(callback)

    async def wait(self) -> None:
        await self._event.wait()

    def __repr__(self) -> str:
        state = f"cancelled reason={self.reason!r}" if self.cancelled else "active"
        return f"<CancellationToken {state}>"
