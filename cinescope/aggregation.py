"""Grouping and cross-source counting over schedule episodes."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, Mapping, Protocol, Sequence

from .models import TBA, Episode

logger = logging.getLogger(__name__)

AiringBucket = dict[str, list[Episode]]
SourceLoader = Callable[[], Awaitable[Sequence[Episode]]]


class TrackedRegistry(Protocol):
    """Externally owned record of which episodes the user has watched."""

    def entries(self) -> Mapping[str, Sequence[object]]:
        ...


class InMemoryTrackedRegistry:
    """Process-local registry; readers always receive a copy."""

    def __init__(self, entries: Mapping[object, Iterable[object]] | None = None) -> None:
        self._entries: dict[str, list[object]] = {}
        for show_id, episode_ids in (entries or {}).items():
            self._entries[str(show_id)] = list(episode_ids or [])

    def entries(self) -> dict[str, list[object]]:
        return {show_id: list(ids) for show_id, ids in self._entries.items()}

    def mark_watched(self, show_id: object, episode_id: object) -> None:
        watched = self._entries.setdefault(str(show_id), [])
        if episode_id not in watched:
            watched.append(episode_id)

    def unmark_watched(self, show_id: object, episode_id: object) -> None:
        watched = self._entries.get(str(show_id))
        if watched and episode_id in watched:
            watched.remove(episode_id)

    def clear_show(self, show_id: object) -> None:
        self._entries.pop(str(show_id), None)


def _time_sort_key(label: str) -> tuple[int, str]:
    return (1, "") if label == TBA else (0, label)


def group_by_airtime(episodes: Iterable[Episode]) -> AiringBucket:
    """Partition ``episodes`` by airtime with ``TBA`` as the last bucket.

    Buckets are ordered by their ``HH:MM`` label; inside a bucket the input
    order is kept.
    """

    grouped: dict[str, list[Episode]] = {}
    for episode in episodes:
        grouped.setdefault(episode.time_label, []).append(episode)
    return {label: grouped[label] for label in sorted(grouped, key=_time_sort_key)}


def tracked_show_ids(
    registry: TrackedRegistry | Mapping[object, Sequence[object] | None],
) -> set[str]:
    """Return ids of shows with at least one watched episode."""

    entries = registry if isinstance(registry, Mapping) else registry.entries()
    # Snapshot before iterating; the owner may mutate it concurrently.
    snapshot = dict(entries)
    return {str(show_id) for show_id, watched in snapshot.items() if watched}


def count_tracked_airing(
    episode_lists: Iterable[Sequence[Episode]], tracked_ids: set[str]
) -> int:
    """Count tracked shows appearing anywhere in the merged episode lists."""

    airing_ids: set[str] = set()
    for episodes in episode_lists:
        for episode in episodes:
            show_id = episode.show_id
            if show_id is not None:
                airing_ids.add(show_id)
    return len(airing_ids & tracked_ids)


async def airing_count(
    sources: Iterable[SourceLoader],
    registry: TrackedRegistry | Mapping[object, Sequence[object] | None],
) -> int:
    """Number of actively watched shows airing in any of ``sources``.

    Sources are only loaded when at least one show is tracked. A source that
    fails contributes nothing instead of failing the count.
    """

    tracked = tracked_show_ids(registry)
    if not tracked:
        return 0

    loaders = list(sources)
    results = await asyncio.gather(
        *(loader() for loader in loaders), return_exceptions=True
    )
    episode_lists: list[Sequence[Episode]] = []
    for index, result in enumerate(results):
        if isinstance(result, BaseException):
            logger.debug("Airing source %s unavailable: %r", index, result)
            continue
        episode_lists.append(result)
    return count_tracked_airing(episode_lists, tracked)
