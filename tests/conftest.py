"""Pytest configuration and test helpers."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Callable


# Ensure the application package is importable when running tests without an
# editable install. This mirrors the expected runtime layout where
# ``cinescope`` sits at the project root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


import pytest

from cinescope.config import Settings


def build_settings(**overrides: Any) -> Settings:
    """Return a settings object isolated from the local environment."""

    base: dict[str, Any] = {"RATE_LIMIT_RETRY_DELAY": 0}
    base.update(overrides)
    return Settings(_env_file=None, **base)  # type: ignore[arg-type]


class _ManualTimer:
    def __init__(self, when: int, callback: Callable[..., Any], args: tuple[Any, ...]):
        self.when = when
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Deterministic stand-in for ``loop.call_later`` measured in milliseconds."""

    def __init__(self) -> None:
        self.now = 0
        self._timers: list[_ManualTimer] = []

    def call_later(
        self, delay: float, callback: Callable[..., Any], *args: Any
    ) -> _ManualTimer:
        timer = _ManualTimer(self.now + round(delay * 1000), callback, args)
        self._timers.append(timer)
        return timer

    @property
    def pending(self) -> int:
        return sum(1 for timer in self._timers if not timer.cancelled)

    def advance_to(self, target_ms: int) -> None:
        """Fire every timer due strictly before ``target_ms`` in order."""

        while True:
            due = [
                timer
                for timer in self._timers
                if not timer.cancelled and timer.when < target_ms
            ]
            if not due:
                break
            timer = min(due, key=lambda item: item.when)
            self._timers.remove(timer)
            self.now = timer.when
            timer.callback(*timer.args)
        self.now = target_ms


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


def schedule_entry(
    episode_id: int,
    show_id: int | None,
    *,
    airtime: str | None = "20:00",
    embedded: bool = False,
    image: bool = True,
) -> dict[str, Any]:
    """Build a TVmaze-shaped schedule entry."""

    entry: dict[str, Any] = {
        "id": episode_id,
        "name": f"Episode {episode_id}",
        "season": 1,
        "number": episode_id,
        "airtime": airtime,
        "airdate": "2024-05-01",
        "runtime": 30,
    }
    if show_id is not None:
        show = {
            "id": show_id,
            "name": f"Show {show_id}",
            "image": {"medium": f"https://img.example.com/{show_id}.jpg"}
            if image
            else None,
            "network": None if embedded else {"id": 1, "name": "NBC"},
            "webChannel": {"id": 2, "name": "Netflix"} if embedded else None,
        }
        if embedded:
            entry["_embedded"] = {"show": show}
        else:
            entry["show"] = show
    return entry
