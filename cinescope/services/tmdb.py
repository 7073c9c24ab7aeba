"""Movie suggestions from The Movie Database (TMDB)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from ..config import Settings
from .catalog_api import MISSING, ResponseCache

logger = logging.getLogger(__name__)

POSTER_BASE_URL = "https://image.tmdb.org/t/p/w342"
TMDB_CACHE_SECONDS = 600


@dataclass(slots=True)
class MovieSuggestion:
    """Normalized view of a TMDB movie search result."""

    tmdb_id: int
    title: str
    overview: str | None
    poster: str | None
    year: int | None

    def to_view(self) -> dict[str, object]:
        view: dict[str, object] = {"id": self.tmdb_id, "title": self.title}
        if self.year:
            view["year"] = self.year
        if self.poster:
            view["poster"] = self.poster
        return view


class TMDBClient:
    """Best-effort TMDB lookups; every failure degrades to an empty result."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        self._settings = settings
        self._client = http_client
        self._cache = ResponseCache(TMDB_CACHE_SECONDS)

    @property
    def enabled(self) -> bool:
        return bool(self._settings.tmdb_api_key)

    async def search_movies(
        self, query: str, *, limit: int | None = None
    ) -> list[MovieSuggestion]:
        """Return movie matches for ``query``, most relevant first."""

        query = (query or "").strip()
        if not query or not self.enabled:
            return []

        data = await self._get("/search/movie", {"query": query})
        if data is None:
            return []
        results = data.get("results") or []
        suggestions: list[MovieSuggestion] = []
        for candidate in results:
            suggestion = self._to_suggestion(candidate)
            if suggestion is not None:
                suggestions.append(suggestion)
        if limit is not None:
            suggestions = suggestions[:limit]
        return suggestions

    async def _get(self, path: str, params: dict[str, Any]) -> dict[str, Any] | None:
        cache_key = f"{path}?{sorted(params.items())}"
        cached = self._cache.get(cache_key)
        if cached is not MISSING:
            return cached

        try:
            response = await self._client.get(
                path, params={**params, "api_key": self._settings.tmdb_api_key}
            )
        except httpx.HTTPError as exc:
            logger.debug("TMDB request %s failed: %s", path, exc)
            return None
        if response.status_code >= 400:
            logger.debug("TMDB request %s returned HTTP %s", path, response.status_code)
            return None
        try:
            data = response.json()
        except ValueError:
            return None
        if not isinstance(data, dict):
            return None
        self._cache.set(cache_key, data)
        return data

    @classmethod
    def _to_suggestion(cls, candidate: Any) -> MovieSuggestion | None:
        if not isinstance(candidate, dict) or candidate.get("id") is None:
            return None
        title = candidate.get("title") or candidate.get("name")
        if not title:
            return None
        try:
            tmdb_id = int(candidate["id"])
        except (TypeError, ValueError):
            return None
        poster_path = candidate.get("poster_path")
        return MovieSuggestion(
            tmdb_id=tmdb_id,
            title=str(title),
            overview=candidate.get("overview") or None,
            poster=cls._build_image_url(poster_path, POSTER_BASE_URL)
            if poster_path
            else None,
            year=cls._extract_year(candidate),
        )

    @staticmethod
    def _extract_year(result: dict[str, Any]) -> int | None:
        date_value = result.get("release_date")
        if not isinstance(date_value, str) or len(date_value) < 4:
            return None
        try:
            return int(date_value[:4])
        except ValueError:
            return None

    @staticmethod
    def _build_image_url(path: str, base_url: str) -> str:
        if path.startswith("http"):
            return path
        return f"{base_url}{path}"
