"""Cooperative cancellation tokens threaded through catalog fetches."""

from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

from .errors import CancellationError

T = TypeVar("T")


class CancellationToken:
    """Cancellation signal tagged with the generation that issued it.

    Transports call :meth:`raise_if_cancelled` before each suspension point and
    wrap long waits in :meth:`guard` so a cancelled token interrupts them.
    """

    __slots__ = ("generation", "reason", "_event")

    def __init__(self, generation: int = 0) -> None:
        self.generation = generation
        self.reason: str | None = None
        self._event = asyncio.Event()

    def __repr__(self) -> str:
        state = "cancelled" if self.cancelled else "active"
        return f"CancellationToken(generation={self.generation}, {state})"

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "superseded") -> None:
        if self._event.is_set():
            return
        self.reason = reason
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise CancellationError(
                f"Request generation {self.generation} cancelled ({self.reason})"
            )

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the token is cancelled first."""

        self.raise_if_cancelled()
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait(
                {task, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            waiter.cancel()
            if not task.done():
                task.cancel()
        if task in done:
            return task.result()
        raise CancellationError(
            f"Request generation {self.generation} cancelled ({self.reason})"
        )

    async def sleep(self, delay: float) -> None:
        await self.guard(asyncio.sleep(delay))
