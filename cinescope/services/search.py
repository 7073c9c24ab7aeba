"""Show and movie search suggestions."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from ..cancellation import CancellationToken
from ..config import Settings
from ..coordinator import RequestCoordinator
from ..debounce import DebounceGate, Scheduler
from ..endpoints import CatalogEndpoints
from ..models import QueryState, Show, parse_show_results
from .catalog_api import CatalogClient
from .tmdb import MovieSuggestion, TMDBClient

logger = logging.getLogger(__name__)


class SearchService:
    """One-shot search used by the HTTP surface."""

    def __init__(
        self,
        settings: Settings,
        catalog: CatalogClient,
        endpoints: CatalogEndpoints,
        tmdb: TMDBClient | None = None,
    ) -> None:
        self._settings = settings
        self._catalog = catalog
        self._endpoints = endpoints
        self._tmdb = tmdb

    def accepts(self, query: str) -> bool:
        return len(query.strip()) >= self._settings.search_min_length

    async def shows(self, query: str) -> list[Show]:
        """Matching shows; short queries return nothing without a request."""

        if not self.accepts(query):
            return []
        payload = await self._catalog.fetch(self._endpoints.search_shows(query.strip()))
        return parse_show_results(payload)[: self._settings.show_suggestion_limit]

    async def movies(self, query: str) -> list[MovieSuggestion]:
        if self._tmdb is None or not self.accepts(query):
            return []
        return await self._tmdb.search_movies(
            query, limit=self._settings.movie_suggestion_limit
        )

    async def suggest(self, query: str) -> tuple[list[Show], list[MovieSuggestion]]:
        shows, movies = await asyncio.gather(self.shows(query), self.movies(query))
        return shows, movies


class SearchSession:
    """Type-ahead search: debounced input drives coordinated fetches.

    Keystrokes go through :meth:`update_query`. Once the input has been quiet
    for the configured window the show (and, when TMDB is configured, movie)
    coordinators are pointed at the new query. Queries shorter than the
    minimum length disable fetching.
    """

    def __init__(
        self,
        settings: Settings,
        catalog: CatalogClient,
        endpoints: CatalogEndpoints,
        *,
        tmdb: TMDBClient | None = None,
        scheduler: Scheduler | None = None,
    ) -> None:
        self._settings = settings
        self._endpoints = endpoints
        self._tmdb = tmdb if tmdb is not None and tmdb.enabled else None
        self._gate: DebounceGate[str] = DebounceGate(
            settings.debounce_delay_seconds, initial="", scheduler=scheduler
        )
        self._shows: RequestCoordinator[Any] = RequestCoordinator(catalog.fetch)
        self._movies: RequestCoordinator[list[MovieSuggestion]] | None = None
        if self._tmdb is not None:
            self._movies = RequestCoordinator(self._fetch_movies)
        self._gate.on_emit(self._on_query)

    @property
    def query(self) -> str:
        """The debounced query currently driving the requests."""

        return (self._gate.value or "").strip()

    @property
    def active(self) -> bool:
        return len(self.query) >= self._settings.search_min_length

    @property
    def state(self) -> QueryState[Any]:
        return self._shows.state

    @property
    def movie_state(self) -> QueryState[list[MovieSuggestion]] | None:
        return self._movies.state if self._movies is not None else None

    def suggestions(self) -> list[Show]:
        if not self.active:
            return []
        shows = parse_show_results(self._shows.state.data)
        return shows[: self._settings.show_suggestion_limit]

    def movie_suggestions(self) -> list[MovieSuggestion]:
        if not self.active or self._movies is None:
            return []
        return list(self._movies.state.data or [])

    def update_query(self, text: str) -> None:
        self._gate.update(text)

    def submit(self) -> str:
        """Stop waiting for quiescence and search for the pending input now."""

        self._gate.flush()
        return self.query

    def retry(self) -> None:
        self._shows.refetch()
        if self._movies is not None:
            self._movies.refetch()

    async def settle(self) -> QueryState[Any]:
        if self._movies is not None:
            await self._movies.settle()
        return await self._shows.settle()

    def close(self) -> None:
        self._gate.close()
        self._shows.close()
        if self._movies is not None:
            self._movies.close()

    async def __aenter__(self) -> "SearchSession":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()

    def _on_query(self, text: str) -> None:
        query = text.strip()
        enabled = len(query) >= self._settings.search_min_length
        logger.debug("Search query settled on %r (enabled=%s)", query, enabled)
        self._shows.subscribe(
            self._endpoints.search_shows(query) if enabled else None, enabled
        )
        if self._movies is not None:
            self._movies.subscribe(query if enabled else None, enabled)

    async def _fetch_movies(
        self, query: str, *, token: CancellationToken
    ) -> list[MovieSuggestion]:
        assert self._tmdb is not None
        return await token.guard(
            self._tmdb.search_movies(query, limit=self._settings.movie_suggestion_limit)
        )
