"""Latest-request-wins coordination of catalog fetches."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Generic, Protocol, TypeVar

from .cancellation import CancellationToken
from .errors import CancellationError
from .models import QueryState, ResourceRequest

logger = logging.getLogger(__name__)

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)


class Fetcher(Protocol[T_co]):
    def __call__(
        self, identifier: str, *, token: CancellationToken
    ) -> Awaitable[T_co]:
        ...


Listener = Callable[[QueryState[Any]], None]


class RequestCoordinator(Generic[T]):
    """Fetch the resource named by the current identifier.

    Every change of ``(identifier, enabled)`` and every :meth:`refetch` issues
    a new generation. Only the result carrying the latest generation is
    applied to :attr:`state`; superseded requests are cancelled and their
    eventual outcome is discarded.
    """

    def __init__(self, fetcher: Fetcher[T], *, initial_data: T | None = None) -> None:
        self._fetcher = fetcher
        self._state: QueryState[T] = QueryState(data=initial_data)
        self._request: ResourceRequest | None = None
        self._generation = 0
        self._token: CancellationToken | None = None
        self._task: asyncio.Task[None] | None = None
        self._listeners: list[Listener] = []
        self._closed = False

    @property
    def state(self) -> QueryState[T]:
        return self._state

    @property
    def request(self) -> ResourceRequest | None:
        return self._request

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def closed(self) -> bool:
        return self._closed

    def on_change(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for state transitions; returns an unsubscriber."""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def subscribe(self, identifier: str | None, enabled: bool = True) -> QueryState[T]:
        """Point the coordinator at ``identifier`` and return the new state.

        Repeating the current ``(identifier, enabled)`` pair is a no-op.
        """

        if self._closed:
            raise RuntimeError("RequestCoordinator has been closed")
        request = ResourceRequest(identifier=identifier, enabled=enabled)
        if request == self._request:
            return self._state
        self._request = request
        self._issue()
        return self._state

    def refetch(self) -> None:
        """Re-issue the current request, e.g. to recover from an error."""

        if self._closed or self._request is None:
            return
        self._issue()

    async def settle(self) -> QueryState[T]:
        """Wait until the latest issued request has finished."""

        while self._task is not None and not self._task.done():
            await asyncio.wait({self._task})
        return self._state

    def close(self) -> None:
        """Detach: cancel in-flight work and stop publishing state."""

        if self._closed:
            return
        self._cancel_inflight("detached")
        self._closed = True
        self._listeners.clear()

    async def __aenter__(self) -> "RequestCoordinator[T]":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()

    def _issue(self) -> None:
        assert self._request is not None
        self._cancel_inflight("superseded")
        self._generation += 1

        request = self._request
        if not request.active:
            self._set_state(QueryState(data=self._state.data, status="idle"))
            return

        token = CancellationToken(self._generation)
        self._token = token
        self._set_state(QueryState(data=self._state.data, status="loading"))
        self._task = asyncio.get_running_loop().create_task(
            self._run(request.identifier, token)
        )

    def _cancel_inflight(self, reason: str) -> None:
        if self._token is not None:
            self._token.cancel(reason)
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._token = None
        self._task = None

    def _is_current(self, token: CancellationToken) -> bool:
        return (
            not self._closed
            and self._token is token
            and token.generation == self._generation
        )

    async def _run(self, identifier: str, token: CancellationToken) -> None:
        try:
            result = await self._fetcher(identifier, token=token)
        except CancellationError:
            logger.debug("Request generation %s cancelled", token.generation)
            return
        except Exception as exc:
            if not self._is_current(token):
                logger.debug(
                    "Ignoring failure of superseded generation %s: %s",
                    token.generation,
                    exc,
                )
                return
            logger.warning("Request for %s failed: %s", identifier, exc)
            self._set_state(
                QueryState(data=self._state.data, status="error", error=exc)
            )
            return

        if not self._is_current(token):
            logger.debug("Discarding stale result of generation %s", token.generation)
            return
        self._set_state(QueryState(data=result, status="success"))

    def _set_state(self, state: QueryState[T]) -> None:
        if self._closed:
            return
        self._state = state
        for listener in list(self._listeners):
            listener(state)
