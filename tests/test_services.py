"""Schedule, airing and search services over mocked catalog transports."""

from __future__ import annotations

import asyncio
from datetime import date
from typing import Any, Callable

import httpx
import pytest

from cinescope.aggregation import InMemoryTrackedRegistry
from cinescope.endpoints import CatalogEndpoints
from cinescope.errors import TransportError
from cinescope.models import TBA
from cinescope.services.catalog_api import CatalogClient
from cinescope.services.notifications import AiringMonitor
from cinescope.services.schedule import ScheduleService
from cinescope.services.search import SearchService, SearchSession
from cinescope.services.tmdb import TMDBClient
from conftest import ManualScheduler, build_settings, schedule_entry

DAY = date(2024, 5, 1)

Handler = Callable[[httpx.Request], httpx.Response]


def _catalog_handler(routes: dict[str, Any], calls: list[str] | None = None) -> Handler:
    """Route TVmaze requests by path; a route may be a status code or JSON body."""

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(str(request.url))
        route = routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, json={"message": "not found"})
        if isinstance(route, int):
            return httpx.Response(route)
        if callable(route):
            return httpx.Response(200, json=route(request))
        return httpx.Response(200, json=route)

    return handler


def _tmdb_handler(results: list[dict[str, Any]], calls: list[str] | None = None) -> Handler:
    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request.url.params.get("query", ""))
        assert request.url.params["api_key"] == "tmdb-key"
        return httpx.Response(200, json={"results": results})

    return handler


def test_schedule_buckets_group_regional_episodes() -> None:
    calls: list[str] = []
    handler = _catalog_handler(
        {
            "/schedule": [
                schedule_entry(1, 10, airtime="21:00"),
                schedule_entry(2, 11, airtime=None),
                schedule_entry(3, 12, airtime="08:30"),
                schedule_entry(4, 13, airtime="21:00"),
            ]
        },
        calls,
    )

    async def runner():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
            settings = build_settings(SCHEDULE_COUNTRY="gb")
            service = ScheduleService(
                settings, CatalogClient(settings, http_client), CatalogEndpoints()
            )
            return await service.buckets(DAY)

    buckets = asyncio.run(runner())

    assert list(buckets) == ["08:30", "21:00", TBA]
    assert [episode.id for episode in buckets["21:00"]] == [1, 4]
    assert calls == ["https://api.tvmaze.com/schedule?country=GB&date=2024-05-01"]


def test_schedule_errors_propagate() -> None:
    handler = _catalog_handler({"/schedule": 500})

    async def runner():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
            settings = build_settings()
            service = ScheduleService(
                settings, CatalogClient(settings, http_client), CatalogEndpoints()
            )
            return await service.buckets(DAY, country="US")

    with pytest.raises(TransportError):
        asyncio.run(runner())


def test_airing_today_keeps_episodes_with_artwork() -> None:
    handler = _catalog_handler(
        {
            "/schedule": [
                schedule_entry(1, 10),
                schedule_entry(2, 11, image=False),
                schedule_entry(3, None),
                schedule_entry(4, 12),
                schedule_entry(5, 13),
            ]
        }
    )

    async def runner():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
            settings = build_settings(AIRING_TODAY_LIMIT=2)
            service = ScheduleService(
                settings, CatalogClient(settings, http_client), CatalogEndpoints()
            )
            capped = await service.airing_today()
            wider = await service.airing_today(limit=10)
            return capped, wider

    capped, wider = asyncio.run(runner())

    assert [episode.id for episode in capped] == [1, 4]
    assert [episode.id for episode in wider] == [1, 4, 5]


def _monitor_runner(
    handler: Handler,
    registry: Any,
    action: Callable[[AiringMonitor], Any],
):
    async def runner():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
            monitor = AiringMonitor(
                CatalogClient(build_settings(), http_client),
                CatalogEndpoints(),
                registry,
                country="US",
                today=lambda: DAY,
            )
            return await action(monitor)

    return asyncio.run(runner())


def test_airing_monitor_counts_tracked_shows_across_schedules() -> None:
    calls: list[str] = []
    handler = _catalog_handler(
        {
            "/schedule": [schedule_entry(1, 100), schedule_entry(2, 300)],
            "/schedule/web": [
                schedule_entry(3, 100, embedded=True),
                schedule_entry(4, 400, embedded=True),
            ],
        },
        calls,
    )
    registry = InMemoryTrackedRegistry({"100": [1], "200": [], "400": [7]})

    async def action(monitor: AiringMonitor) -> int:
        return await monitor.refresh()

    assert _monitor_runner(handler, registry, action) == 2
    assert sorted(calls) == [
        "https://api.tvmaze.com/schedule/web?date=2024-05-01",
        "https://api.tvmaze.com/schedule?country=US&date=2024-05-01",
    ]


def test_airing_monitor_skips_fetching_without_tracked_shows() -> None:
    calls: list[str] = []
    handler = _catalog_handler({"/schedule": [schedule_entry(1, 100)]}, calls)

    async def action(monitor: AiringMonitor) -> int:
        return await monitor.refresh()

    assert _monitor_runner(handler, {"100": []}, action) == 0
    assert calls == []


def test_airing_monitor_tolerates_a_failing_schedule() -> None:
    handler = _catalog_handler(
        {
            "/schedule": 503,
            "/schedule/web": [schedule_entry(3, 100, embedded=True)],
        }
    )

    async def action(monitor: AiringMonitor) -> int:
        return await monitor.refresh()

    assert _monitor_runner(handler, {"100": [1]}, action) == 1


class _BrokenRegistry:
    def __init__(self) -> None:
        self.broken = False

    def entries(self) -> dict[str, list[int]]:
        if self.broken:
            raise RuntimeError("registry unavailable")
        return {"100": [1]}


def test_airing_monitor_keeps_last_count_when_refresh_fails() -> None:
    handler = _catalog_handler({"/schedule": [schedule_entry(1, 100)], "/schedule/web": []})
    registry = _BrokenRegistry()

    async def action(monitor: AiringMonitor) -> tuple[int, int]:
        first = await monitor.refresh()
        registry.broken = True
        second = await monitor.refresh()
        return first, second

    assert _monitor_runner(handler, registry, action) == (1, 1)


def test_airing_monitor_start_and_stop() -> None:
    handler = _catalog_handler({"/schedule": [schedule_entry(1, 100)], "/schedule/web": []})

    async def action(monitor: AiringMonitor) -> tuple[int, bool]:
        await monitor.start(3600)
        running = monitor._refresh_task is not None and not monitor._refresh_task.done()
        await monitor.stop()
        await monitor.stop()
        return monitor.count, running

    count, running = _monitor_runner(handler, {"100": [1]}, action)

    assert count == 1
    assert running


def _search_routes(calls: list[str]) -> Handler:
    def results(request: httpx.Request) -> list[dict[str, Any]]:
        query = request.url.params["q"]
        return [{"score": 1.0, "show": {"id": len(query), "name": query.title()}}]

    return _catalog_handler({"/search/shows": results}, calls)


def test_search_session_fetches_once_per_burst(scheduler: ManualScheduler) -> None:
    calls: list[str] = []

    async def runner():
        transport = httpx.MockTransport(_search_routes(calls))
        async with httpx.AsyncClient(transport=transport) as http_client:
            settings = build_settings()
            session = SearchSession(
                settings,
                CatalogClient(settings, http_client),
                CatalogEndpoints(),
                scheduler=scheduler,
            )
            async with session:
                for at, text in ((0, "b"), (50, "br"), (100, "bre"), (400, "break")):
                    scheduler.advance_to(at)
                    session.update_query(text)
                assert session.query == ""
                assert session.state.status == "idle"

                scheduler.advance_to(1_000)
                assert session.query == "break"
                assert session.state.status == "loading"
                await session.settle()
                return session.suggestions(), session.movie_state

    shows, movie_state = asyncio.run(runner())

    assert calls == ["https://api.tvmaze.com/search/shows?q=break"]
    assert [show.name for show in shows] == ["Break"]
    assert movie_state is None


def test_search_session_short_query_disables_fetching(scheduler: ManualScheduler) -> None:
    calls: list[str] = []

    async def runner():
        transport = httpx.MockTransport(_search_routes(calls))
        async with httpx.AsyncClient(transport=transport) as http_client:
            settings = build_settings()
            async with SearchSession(
                settings,
                CatalogClient(settings, http_client),
                CatalogEndpoints(),
                scheduler=scheduler,
            ) as session:
                session.update_query("lost")
                scheduler.advance_to(400)
                await session.settle()
                assert [show.name for show in session.suggestions()] == ["Lost"]

                session.update_query("l")
                scheduler.advance_to(800)
                assert not session.active
                return session.state.status, session.suggestions()

    status, shows = asyncio.run(runner())

    assert status == "idle"
    assert shows == []
    assert calls == ["https://api.tvmaze.com/search/shows?q=lost"]


def test_search_session_submit_skips_the_debounce(scheduler: ManualScheduler) -> None:
    calls: list[str] = []

    async def runner():
        transport = httpx.MockTransport(_search_routes(calls))
        async with httpx.AsyncClient(transport=transport) as http_client:
            settings = build_settings()
            async with SearchSession(
                settings,
                CatalogClient(settings, http_client),
                CatalogEndpoints(),
                scheduler=scheduler,
            ) as session:
                session.update_query("  dark ")
                assert session.submit() == "dark"
                await session.settle()
                assert scheduler.pending == 0
                return session.suggestions()

    shows = asyncio.run(runner())

    assert [show.name for show in shows] == ["Dark"]
    assert calls == ["https://api.tvmaze.com/search/shows?q=dark"]


def test_search_session_includes_movies_when_tmdb_configured(
    scheduler: ManualScheduler,
) -> None:
    calls: list[str] = []
    movie_queries: list[str] = []
    movies = [
        {"id": 1, "title": "Heat", "release_date": "1995-12-15", "poster_path": "/heat.jpg"},
        {"id": 2, "title": "Heat 2"},
        {"id": None, "title": "Broken"},
    ]

    async def runner():
        settings = build_settings(TMDB_API_KEY="tmdb-key", MOVIE_SUGGESTION_LIMIT=2)
        catalog_transport = httpx.MockTransport(_search_routes(calls))
        tmdb_transport = httpx.MockTransport(_tmdb_handler(movies, movie_queries))
        async with httpx.AsyncClient(transport=catalog_transport) as catalog_http, httpx.AsyncClient(
            base_url=settings.tmdb_base_url, transport=tmdb_transport
        ) as tmdb_http:
            async with SearchSession(
                settings,
                CatalogClient(settings, catalog_http),
                CatalogEndpoints(),
                tmdb=TMDBClient(settings, tmdb_http),
                scheduler=scheduler,
            ) as session:
                session.update_query("heat")
                session.submit()
                await session.settle()
                return session.suggestions(), session.movie_suggestions()

    shows, suggestions = asyncio.run(runner())

    assert [show.name for show in shows] == ["Heat"]
    assert [movie.title for movie in suggestions] == ["Heat", "Heat 2"]
    assert suggestions[0].year == 1995
    assert suggestions[0].poster == "https://image.tmdb.org/t/p/w342/heat.jpg"
    assert movie_queries == ["heat"]


def test_search_service_suggest_combines_sources() -> None:
    calls: list[str] = []

    async def runner():
        settings = build_settings(TMDB_API_KEY="tmdb-key")
        async with httpx.AsyncClient(
            transport=httpx.MockTransport(_search_routes(calls))
        ) as catalog_http, httpx.AsyncClient(
            base_url=settings.tmdb_base_url,
            transport=httpx.MockTransport(_tmdb_handler([{"id": 5, "title": "Fargo"}])),
        ) as tmdb_http:
            service = SearchService(
                settings,
                CatalogClient(settings, catalog_http),
                CatalogEndpoints(),
                TMDBClient(settings, tmdb_http),
            )
            short = await service.suggest("f")
            full = await service.suggest("fargo")
            return short, full

    short, (shows, movies) = asyncio.run(runner())

    assert short == ([], [])
    assert [show.name for show in shows] == ["Fargo"]
    assert [movie.tmdb_id for movie in movies] == [5]
    assert calls == ["https://api.tvmaze.com/search/shows?q=fargo"]


def test_tmdb_failures_degrade_to_empty_results() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"status_message": "Invalid API key"})

    async def runner():
        settings = build_settings(TMDB_API_KEY="bad")
        async with httpx.AsyncClient(
            base_url=settings.tmdb_base_url, transport=httpx.MockTransport(handler)
        ) as http_client:
            client = TMDBClient(settings, http_client)
            return await client.search_movies("heat")

    assert asyncio.run(runner()) == []


def test_tmdb_without_key_makes_no_requests() -> None:
    calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return httpx.Response(200, json={"results": []})

    async def runner():
        settings = build_settings()
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
            client = TMDBClient(settings, http_client)
            return client.enabled, await client.search_movies("heat")

    assert asyncio.run(runner()) == (False, [])
    assert calls == []


def _many_results(request: httpx.Request) -> list[dict[str, Any]]:
    return [
        {"score": 1.0, "show": {"id": index, "name": f"Lost {index}"}}
        for index in range(6)
    ]


def test_show_suggestions_are_capped(scheduler: ManualScheduler) -> None:
    async def runner():
        settings = build_settings(SHOW_SUGGESTION_LIMIT=2)
        handler = _catalog_handler({"/search/shows": _many_results})
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
            catalog = CatalogClient(settings, http_client)
            service = SearchService(settings, catalog, CatalogEndpoints())
            one_shot = await service.shows("lost")
            async with SearchSession(
                settings, catalog, CatalogEndpoints(), scheduler=scheduler
            ) as session:
                session.update_query("lost")
                session.submit()
                await session.settle()
                return one_shot, session.suggestions()

    one_shot, typed = asyncio.run(runner())

    assert [show.id for show in one_shot] == [0, 1]
    assert [show.id for show in typed] == [0, 1]


def test_show_suggestion_limit_defaults_to_four() -> None:
    assert build_settings().show_suggestion_limit == 4
