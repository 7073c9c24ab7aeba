"""Best-effort "tracked shows airing today" counter."""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from datetime import date, datetime, timezone
from typing import Callable, Mapping, Sequence

from ..aggregation import SourceLoader, TrackedRegistry, airing_count
from ..endpoints import CatalogEndpoints
from .catalog_api import CatalogClient

logger = logging.getLogger(__name__)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


class AiringMonitor:
    """Keep a count of tracked shows airing on the current day.

    Failures never surface: the monitor keeps its previous count when a
    refresh cannot complete.
    """

    def __init__(
        self,
        catalog: CatalogClient,
        endpoints: CatalogEndpoints,
        registry: TrackedRegistry | Mapping[object, Sequence[object] | None],
        *,
        country: str = "US",
        today: Callable[[], date] = utc_today,
    ) -> None:
        self._catalog = catalog
        self._endpoints = endpoints
        self._registry = registry
        self._country = country
        self._today = today
        self._count = 0
        self._refresh_task: asyncio.Task[None] | None = None

    @property
    def count(self) -> int:
        return self._count

    def sources(self, day: date) -> list[SourceLoader]:
        """Regional and web schedule loaders for ``day``."""

        day_str = day.isoformat()
        regional = self._endpoints.schedule(self._country, day_str)
        web = self._endpoints.schedule_web(day_str)

        async def _regional():
            return await self._catalog.fetch_episodes(regional)

        async def _web():
            return await self._catalog.fetch_episodes(web)

        return [_regional, _web]

    async def refresh(self, day: date | None = None) -> int:
        """Recompute the count and return it (or the last known one)."""

        target = day or self._today()
        try:
            count = await airing_count(self.sources(target), self._registry)
        except Exception:
            logger.debug("Airing count refresh failed", exc_info=True)
            return self._count
        self._count = count
        return count

    async def start(self, interval_seconds: float) -> None:
        """Refresh immediately and then every ``interval_seconds``."""

        await self.refresh()
        if self._refresh_task is None:
            self._refresh_task = asyncio.create_task(
                self._refresh_loop(interval_seconds)
            )

    async def stop(self) -> None:
        if self._refresh_task is None:
            return
        self._refresh_task.cancel()
        with suppress(asyncio.CancelledError):
            await self._refresh_task
        self._refresh_task = None

    async def _refresh_loop(self, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            await self.refresh()
