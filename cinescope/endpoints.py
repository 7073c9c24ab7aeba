"""Builders for TVmaze resource keys."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable
from urllib.parse import quote, urlencode

DEFAULT_BASE_URL = "https://api.tvmaze.com"


@dataclass(frozen=True, slots=True)
class CatalogEndpoints:
    """Construct the opaque resource keys handed to the catalog client."""

    base_url: str = DEFAULT_BASE_URL

    def __post_init__(self) -> None:
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))

    def _url(self, path: str, params: dict[str, object] | None = None) -> str:
        url = f"{self.base_url}{path}"
        if params:
            url = f"{url}?{urlencode(params)}"
        return url

    def search_shows(self, query: str) -> str:
        return f"{self.base_url}/search/shows?q={quote(query, safe='')}"

    def single_search(self, query: str) -> str:
        return f"{self.base_url}/singlesearch/shows?q={quote(query, safe='')}"

    def search_people(self, query: str) -> str:
        return f"{self.base_url}/search/people?q={quote(query, safe='')}"

    def show(self, show_id: int, embeds: Iterable[str] = ()) -> str:
        params = "&".join(f"embed[]={embed}" for embed in embeds)
        url = f"{self.base_url}/shows/{show_id}"
        return f"{url}?{params}" if params else url

    def show_episodes(self, show_id: int, *, specials: bool = False) -> str:
        return self._url(
            f"/shows/{show_id}/episodes", {"specials": 1} if specials else None
        )

    def show_seasons(self, show_id: int) -> str:
        return self._url(f"/shows/{show_id}/seasons")

    def show_cast(self, show_id: int) -> str:
        return self._url(f"/shows/{show_id}/cast")

    def show_crew(self, show_id: int) -> str:
        return self._url(f"/shows/{show_id}/crew")

    def show_images(self, show_id: int) -> str:
        return self._url(f"/shows/{show_id}/images")

    def show_akas(self, show_id: int) -> str:
        return self._url(f"/shows/{show_id}/akas")

    def show_episodes_by_date(self, show_id: int, date: str) -> str:
        return self._url(f"/shows/{show_id}/episodesbydate", {"date": date})

    def season_episodes(self, season_id: int) -> str:
        return self._url(f"/seasons/{season_id}/episodes")

    def episode(self, episode_id: int) -> str:
        return self._url(f"/episodes/{episode_id}")

    def person(self, person_id: int) -> str:
        return self._url(f"/people/{person_id}")

    def person_cast_credits(self, person_id: int) -> str:
        return self._url(f"/people/{person_id}/castcredits", {"embed": "show"})

    def person_crew_credits(self, person_id: int) -> str:
        return self._url(f"/people/{person_id}/crewcredits", {"embed": "show"})

    def schedule(self, country: str = "US", date: str | None = None) -> str:
        """Regional broadcast schedule, optionally for a specific ``YYYY-MM-DD``."""

        params: dict[str, object] = {"country": country}
        if date:
            params["date"] = date
        return self._url("/schedule", params)

    def schedule_web(self, date: str | None = None) -> str:
        """Worldwide streaming schedule."""

        return self._url("/schedule/web", {"date": date} if date else None)

    def schedule_full(self) -> str:
        return self._url("/schedule/full")

    def show_updates(self, since: str = "day") -> str:
        return self._url("/updates/shows", {"since": since})

    def show_index(self, page: int = 0) -> str:
        return self._url("/shows", {"page": page})

    def people_index(self, page: int = 0) -> str:
        return self._url("/people", {"page": page})
