# src/chatcore/cancellation.py
"""
Cooperative cancellation for in-flight turns.

One :class:`CancellationToken` is created per turn. Transports check it
between stream chunks (and race their reads against it), so a cancel takes
effect at the next suspension point of the stream.
"""

import asyncio
from typing import Optional


class TurnCancelled(Exception):
    """Raised inside a transport when the turn's token is cancelled."""


class CancellationToken:
    """An :class:`asyncio.Event` with a cancel reason."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "stopped by user") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise TurnCancelled(self.reason or "cancelled")
