"""Entry point for the FastAPI-powered schedule and search service."""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from datetime import date
from typing import Any

import httpx
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from .aggregation import InMemoryTrackedRegistry
from .config import settings
from .endpoints import CatalogEndpoints
from .errors import CatalogError
from .services.catalog_api import CatalogClient
from .services.notifications import AiringMonitor
from .services.schedule import ScheduleService
from .services.search import SearchService
from .services.tmdb import TMDBClient

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app: FastAPI


class AiringCountRequest(BaseModel):
    """Snapshot of the caller's tracked registry."""

    tracked: dict[str, list[int | str] | None] = Field(default_factory=dict)
    day: date | None = Field(default=None, alias="date")
    country: str | None = Field(default=None, min_length=2, max_length=2)


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    exit_stack = AsyncExitStack()
    catalog_http = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            timeout=httpx.Timeout(settings.http_timeout_seconds, connect=10.0),
            headers={"User-Agent": f"{settings.app_name} (cinescope)"},
        )
    )
    tmdb_http = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            base_url=settings.tmdb_base_url,
            timeout=httpx.Timeout(15.0, connect=5.0),
        )
    )

    endpoints = CatalogEndpoints(settings.tvmaze_base_url)
    catalog = CatalogClient(settings, catalog_http)
    tmdb = TMDBClient(settings, tmdb_http)

    fastapi_app.state.endpoints = endpoints
    fastapi_app.state.catalog_client = catalog
    fastapi_app.state.schedule_service = ScheduleService(settings, catalog, endpoints)
    fastapi_app.state.search_service = SearchService(settings, catalog, endpoints, tmdb)

    registry = InMemoryTrackedRegistry()
    monitor = AiringMonitor(
        catalog, endpoints, registry, country=settings.schedule_country
    )
    fastapi_app.state.tracked_registry = registry
    fastapi_app.state.airing_monitor = monitor
    await monitor.start(settings.airing_refresh_interval_seconds)

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        await monitor.stop()
        await exit_stack.aclose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Schedules, search suggestions and airing notifications",
        version="1.0.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def _require_state(fastapi_app: FastAPI, name: str, expected: type) -> Any:
    value = getattr(fastapi_app.state, name, None)
    if not isinstance(value, expected):
        raise RuntimeError(f"{name} not initialised")
    return value


def register_routes(fastapi_app: FastAPI) -> None:
    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.get("/schedule")
    async def schedule(
        day: date | None = Query(default=None, alias="date"),
        country: str | None = Query(default=None, min_length=2, max_length=2),
    ) -> dict[str, Any]:
        service: ScheduleService = _require_state(
            fastapi_app, "schedule_service", ScheduleService
        )
        try:
            buckets = await service.buckets(day, country=country)
        except CatalogError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        return {
            "date": day.isoformat() if day else None,
            "buckets": [
                {
                    "time": label,
                    "count": len(episodes),
                    "episodes": [episode.to_view() for episode in episodes],
                }
                for label, episodes in buckets.items()
            ],
            "total": sum(len(episodes) for episodes in buckets.values()),
        }

    @fastapi_app.get("/airing-today")
    async def airing_today(
        limit: int | None = Query(default=None, ge=1, le=200),
    ) -> dict[str, Any]:
        service: ScheduleService = _require_state(
            fastapi_app, "schedule_service", ScheduleService
        )
        try:
            episodes = await service.airing_today(limit=limit)
        except CatalogError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        return {"episodes": [episode.to_view() for episode in episodes]}

    @fastapi_app.get("/search")
    async def search(q: str = Query(default="", max_length=200)) -> dict[str, Any]:
        service: SearchService = _require_state(
            fastapi_app, "search_service", SearchService
        )
        if not service.accepts(q):
            return {"query": q, "shows": [], "movies": []}
        try:
            shows, movies = await service.suggest(q)
        except CatalogError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        return {
            "query": q,
            "shows": [show.to_view() for show in shows],
            "movies": [movie.to_view() for movie in movies],
        }

    @fastapi_app.post("/airing-count")
    async def airing_count(payload: AiringCountRequest) -> dict[str, int]:
        catalog: CatalogClient = _require_state(
            fastapi_app, "catalog_client", CatalogClient
        )
        endpoints: CatalogEndpoints = _require_state(
            fastapi_app, "endpoints", CatalogEndpoints
        )
        monitor = AiringMonitor(
            catalog,
            endpoints,
            payload.tracked,
            country=(payload.country or settings.schedule_country).upper(),
        )
        count = await monitor.refresh(payload.day)
        return {"count": count}

    @fastapi_app.get("/airing-count")
    async def current_airing_count() -> dict[str, int]:
        monitor: AiringMonitor = _require_state(
            fastapi_app, "airing_monitor", AiringMonitor
        )
        return {"count": monitor.count}

    @fastapi_app.put("/tracked/{show_id}/episodes/{episode_id}")
    async def mark_watched(show_id: str, episode_id: str) -> dict[str, Any]:
        registry: InMemoryTrackedRegistry = _require_state(
            fastapi_app, "tracked_registry", InMemoryTrackedRegistry
        )
        monitor: AiringMonitor = _require_state(
            fastapi_app, "airing_monitor", AiringMonitor
        )
        registry.mark_watched(show_id, episode_id)
        count = await monitor.refresh()
        return {"tracked": registry.entries(), "count": count}

    @fastapi_app.delete("/tracked/{show_id}/episodes/{episode_id}")
    async def unmark_watched(show_id: str, episode_id: str) -> dict[str, Any]:
        registry: InMemoryTrackedRegistry = _require_state(
            fastapi_app, "tracked_registry", InMemoryTrackedRegistry
        )
        monitor: AiringMonitor = _require_state(
            fastapi_app, "airing_monitor", AiringMonitor
        )
        registry.unmark_watched(show_id, episode_id)
        count = await monitor.refresh()
        return {"tracked": registry.entries(), "count": count}


app = create_app()


if __name__ == "__main__":  # pragma: no cover - manual execution
    import uvicorn

    uvicorn.run(
        "cinescope.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.environment == "development",
    )
