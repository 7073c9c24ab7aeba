"""Rate limited, cached access to the TVmaze catalog."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

import httpx
from aiolimiter import AsyncLimiter

from ..cancellation import CancellationToken
from ..config import Settings
from ..errors import MalformedResponseError, TransportError
from ..models import Episode, parse_episodes

logger = logging.getLogger(__name__)

Clock = Callable[[], float]

MISSING = object()


def build_rate_limiter(settings: Settings) -> AsyncLimiter:
    """Leaky bucket allowing a burst of ``RATE_LIMIT_BURST`` requests.

    Capacity drains at ``RATE_LIMIT_REFILL`` requests per second.
    """

    return AsyncLimiter(
        max_rate=settings.rate_limit_burst,
        time_period=settings.rate_limit_burst
        / settings.rate_limit_refill_per_second,
    )


class ResponseCache:
    """Time-bounded payload cache evicting the oldest entry when full."""

    def __init__(
        self,
        ttl_seconds: float,
        max_entries: int = 200,
        *,
        clock: Clock = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return MISSING
        stored_at, data = entry
        if self._clock() - stored_at >= self._ttl:
            return MISSING
        return data

    def set(self, key: str, data: Any) -> None:
        if self._ttl <= 0:
            return
        self._entries[key] = (self._clock(), data)
        while len(self._entries) > self._max_entries:
            oldest = next(iter(self._entries))
            del self._entries[oldest]

    def clear(self) -> None:
        self._entries.clear()


class CatalogClient:
    """Fetch catalog resources by their opaque resource key (a URL)."""

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient,
        *,
        clock: Clock = time.monotonic,
    ) -> None:
        self._settings = settings
        self._client = http_client
        self._limiter = build_rate_limiter(settings)
        self._cache = ResponseCache(
            settings.response_cache_seconds,
            settings.response_cache_max_entries,
            clock=clock,
        )
        self._max_retries = settings.rate_limit_max_retries
        self._retry_delay = settings.rate_limit_retry_delay

    @property
    def limiter(self) -> AsyncLimiter:
        return self._limiter

    async def fetch(
        self,
        resource_key: str,
        *,
        token: CancellationToken | None = None,
        skip_cache: bool = False,
    ) -> Any:
        """Return the decoded JSON payload for ``resource_key``.

        Raises :class:`CancellationError` once ``token`` is cancelled,
        :class:`TransportError` for network and HTTP failures and
        :class:`MalformedResponseError` when the body is not JSON.
        """

        if token is None:
            token = CancellationToken()

        if not skip_cache:
            cached = self._cache.get(resource_key)
            if cached is not MISSING:
                return cached

        attempt = 0
        while True:
            token.raise_if_cancelled()
            await token.guard(self._limiter.acquire())
            try:
                response = await token.guard(self._client.get(resource_key))
            except httpx.HTTPError as exc:
                logger.warning("Catalog request for %s failed: %s", resource_key, exc)
                raise TransportError(
                    f"Request failed: {exc.__class__.__name__}"
                ) from exc

            if response.status_code == 429:
                attempt += 1
                if attempt <= self._max_retries:
                    logger.info(
                        "Catalog rate limited for %s. Retrying in %.1fs",
                        resource_key,
                        self._retry_delay,
                    )
                    await token.sleep(self._retry_delay)
                    continue
            break

        if response.status_code >= 400:
            logger.warning(
                "Catalog request for %s returned HTTP %s",
                resource_key,
                response.status_code,
            )
            raise TransportError(
                f"API error: {response.status_code}", status_code=response.status_code
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise MalformedResponseError(
                f"Response for {resource_key} is not valid JSON"
            ) from exc

        self._cache.set(resource_key, data)
        token.raise_if_cancelled()
        return data

    async def fetch_episodes(
        self,
        resource_key: str,
        *,
        token: CancellationToken | None = None,
    ) -> list[Episode]:
        """Fetch a schedule-like resource and parse it into episodes."""

        payload = await self.fetch(resource_key, token=token)
        return parse_episodes(payload)

    def clear_cache(self) -> None:
        self._cache.clear()
