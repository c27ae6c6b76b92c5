"""Cancellation tokens shared between a run and its adapter workers."""

import asyncio

from .exceptions import CancelledError


class CancellationToken:
    """Signal that a run (and every adapter in it) should stop.

    Cancelling a parent token cancels all children created from it, so
    cancelling the whole run reaches each adapter's own token.
    """

    def __init__(self, parent: "CancellationToken | None" = None) -> None:
        self._event = asyncio.Event()
        self._children: list[CancellationToken] = []
        self.reason: str | None = None
        if parent is not None:
            parent._children.append(self)
            if parent.cancelled:
                self.cancel(parent.reason)

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str | None = None) -> None:
        if self.cancelled:
            return
        self.reason = reason or "cancelled"
        self._event.set()
        for child in self._children:
            child.cancel(self.reason)

    def child(self) -> "CancellationToken":
        return CancellationToken(parent=self)

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise CancelledError(self.reason or "cancelled")

    async def wait(self) -> None:
        await self._event.wait()
