"""Schedule views built from regional and web schedules."""

from __future__ import annotations

import logging
from datetime import date

from ..aggregation import AiringBucket, group_by_airtime
from ..config import Settings
from ..endpoints import CatalogEndpoints
from ..models import Episode
from .catalog_api import CatalogClient

logger = logging.getLogger(__name__)


class ScheduleService:
    """Fetch daily schedules and shape them for presentation."""

    def __init__(
        self,
        settings: Settings,
        catalog: CatalogClient,
        endpoints: CatalogEndpoints,
    ) -> None:
        self._settings = settings
        self._catalog = catalog
        self._endpoints = endpoints

    def _country(self, country: str | None) -> str:
        return (country or self._settings.schedule_country).upper()

    async def episodes(
        self, day: date | None = None, *, country: str | None = None
    ) -> list[Episode]:
        """Episodes of the regional schedule; fetch errors propagate."""

        resource_key = self._endpoints.schedule(
            self._country(country), day.isoformat() if day else None
        )
        return await self._catalog.fetch_episodes(resource_key)

    async def web_episodes(self, day: date | None = None) -> list[Episode]:
        resource_key = self._endpoints.schedule_web(day.isoformat() if day else None)
        return await self._catalog.fetch_episodes(resource_key)

    async def buckets(
        self, day: date | None = None, *, country: str | None = None
    ) -> AiringBucket:
        """Regional schedule grouped into time buckets."""

        episodes = await self.episodes(day, country=country)
        grouped = group_by_airtime(episodes)
        logger.debug(
            "Grouped %s episodes into %s buckets", len(episodes), len(grouped)
        )
        return grouped

    async def airing_today(self, *, limit: int | None = None) -> list[Episode]:
        """Today's episodes that have show artwork, capped for a strip view."""

        cap = limit if limit is not None else self._settings.airing_today_limit
        episodes = await self.episodes()
        with_art = [
            episode
            for episode in episodes
            if episode.show is not None
            and episode.show.image is not None
            and episode.show.image.best()
        ]
        return with_art[:cap]
