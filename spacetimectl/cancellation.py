"""Cooperative cancellation for asyncio call sites."""

from __future__ import annotations

import asyncio
from typing import Callable, List, Optional


class CancelToken:
    """
    A cancellation signal that can be shared between a caller and the runner.

    Must be created and used from inside a running event loop when a timeout
    is involved.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._callbacks: List[Callable[[], None]] = []
        self._timer: Optional[asyncio.TimerHandle] = None
        self._parent_unregister: Optional[Callable[[], None]] = None

    @classmethod
    def with_timeout(
        cls, seconds: float, parent: Optional["CancelToken"] = None
    ) -> "CancelToken":
        """A token that cancels itself after `seconds`, or when `parent` does."""
        token = cls()
        loop = asyncio.get_running_loop()
        token._timer = loop.call_later(seconds, token.cancel)
        if parent is not None:
            token._parent_unregister = parent.register(token.cancel)
        return token

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        if self._event.is_set():
            return
        self._event.set()
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    async def wait(self) -> None:
        await self._event.wait()

    def register(self, callback: Callable[[], None]) -> Callable[[], None]:
        """
        Run `callback` on cancellation. Fires immediately if already cancelled.

        Returns:
            A function that removes the registration
        """
        if self.cancelled:
            callback()
            return lambda: None

        self._callbacks.append(callback)

        def unregister() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unregister

    def dispose(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._parent_unregister is not None:
            self._parent_unregister()
            self._parent_unregister = None
