"""Quiescence gate for rapidly changing input."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Generic, Protocol, TypeVar

T = TypeVar("T")


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    """Anything that can run a callback later; an asyncio loop qualifies."""

    def call_later(
        self, delay: float, callback: Callable[..., Any], *args: Any
    ) -> TimerHandle:
        ...


class DebounceGate(Generic[T]):
    """Emit the latest value once updates have stopped for ``delay`` seconds.

    The gate owns a single timer. Each :meth:`update` re-arms it, so a burst
    of updates produces one emission carrying the last value of the burst.
    Closing the gate cancels the pending timer and nothing is emitted
    afterwards.
    """

    def __init__(
        self,
        delay: float,
        *,
        initial: T | None = None,
        scheduler: Scheduler | None = None,
    ) -> None:
        if delay < 0:
            raise ValueError("Debounce delay must not be negative")
        self._delay = delay
        self._scheduler = scheduler
        self._value: T | None = initial
        self._pending_value: T | None = None
        self._handle: TimerHandle | None = None
        self._listeners: list[Callable[[T], None]] = []
        self._closed = False

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def value(self) -> T | None:
        """The most recently emitted value (or the initial one)."""

        return self._value

    @property
    def pending(self) -> bool:
        return self._handle is not None

    @property
    def closed(self) -> bool:
        return self._closed

    def on_emit(self, listener: Callable[[T], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def update(self, value: T) -> None:
        if self._closed:
            return
        self._cancel_timer()
        scheduler = self._scheduler or asyncio.get_running_loop()
        self._pending_value = value
        self._handle = scheduler.call_later(self._delay, self._fire, value)

    def flush(self) -> bool:
        """Emit the pending value right away; returns whether one was pending."""

        if self._closed or self._handle is None:
            return False
        value = self._pending_value
        self._cancel_timer()
        self._emit(value)  # type: ignore[arg-type]
        return True

    def close(self) -> None:
        self._cancel_timer()
        self._closed = True
        self._listeners.clear()

    def __enter__(self) -> "DebounceGate[T]":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _cancel_timer(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
        self._handle = None
        self._pending_value = None

    def _fire(self, value: T) -> None:
        self._handle = None
        self._pending_value = None
        if self._closed:
            return
        self._emit(value)

    def _emit(self, value: T) -> None:
        self._value = value
        for listener in list(self._listeners):
            listener(value)
