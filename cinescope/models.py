"""Models describing catalog payloads and request state."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Generic, Literal, Mapping, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    ValidatorFunctionWrapHandler,
    field_validator,
)

logger = logging.getLogger(__name__)

TBA = "TBA"

AIRTIME_RE = re.compile(r"^(\d{1,2}):(\d{2})$")

QueryStatus = Literal["idle", "loading", "success", "error"]

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class ResourceRequest:
    """What a coordinator should fetch; ``None`` or disabled means nothing."""

    identifier: str | None = None
    enabled: bool = True

    @property
    def active(self) -> bool:
        return bool(self.identifier) and self.enabled


@dataclass(frozen=True, slots=True)
class QueryState(Generic[T]):
    """Snapshot of a coordinated request."""

    data: T | None = None
    status: QueryStatus = "idle"
    error: BaseException | None = None

    @property
    def is_loading(self) -> bool:
        return self.status == "loading"

    @property
    def is_error(self) -> bool:
        return self.status == "error"


def _lenient(
    model: type[BaseModel],
    value: Any,
    handler: ValidatorFunctionWrapHandler,
    info: ValidationInfo,
) -> Any:
    """Validate an optional field, substituting its default when unusable."""

    try:
        return handler(value)
    except ValidationError:
        logger.debug(
            "Dropping invalid %s.%s: %r", model.__name__, info.field_name, value
        )
        field = model.model_fields[info.field_name or ""]
        return field.get_default(call_default_factory=True)


class ImageSet(BaseModel):
    medium: str | None = None
    original: str | None = None

    def best(self, *, prefer_original: bool = False) -> str | None:
        if prefer_original:
            return self.original or self.medium
        return self.medium or self.original


class Network(BaseModel):
    """Broadcast network or streaming web channel."""

    id: int | None = None
    name: str
    country_code: str | None = None


class Show(BaseModel):
    """The subset of show metadata used by schedule and search views."""

    model_config = ConfigDict(populate_by_name=True)

    id: int
    name: str = ""
    image: ImageSet | None = None
    network: Network | None = None
    genres: list[str] = Field(default_factory=list)
    premiered: str | None = None

    @field_validator("name", "image", "network", "genres", "premiered", mode="wrap")
    @classmethod
    def _default_when_invalid(
        cls, value: Any, handler: ValidatorFunctionWrapHandler, info: ValidationInfo
    ) -> Any:
        return _lenient(cls, value, handler, info)

    @classmethod
    def from_payload(cls, data: object) -> "Show | None":
        """Normalise a raw show object, returning ``None`` when unusable."""

        if not isinstance(data, Mapping) or data.get("id") is None:
            return None

        image = data.get("image")
        channel = data.get("network") or data.get("webChannel")
        network: dict[str, Any] | None = None
        if isinstance(channel, Mapping) and channel.get("name"):
            country = channel.get("country")
            network = {
                "id": channel.get("id"),
                "name": channel["name"],
                "country_code": country.get("code")
                if isinstance(country, Mapping)
                else None,
            }
        genres = data.get("genres")
        try:
            return cls.model_validate(
                {
                    "id": data["id"],
                    "name": data.get("name") or "",
                    "image": image if isinstance(image, Mapping) else None,
                    "network": network,
                    "genres": [str(genre) for genre in genres]
                    if isinstance(genres, list)
                    else [],
                    "premiered": data.get("premiered"),
                }
            )
        except ValidationError:
            logger.debug("Discarding malformed show payload: %r", data.get("id"))
            return None

    def to_view(self) -> dict[str, object]:
        view: dict[str, object] = {"id": self.id, "name": self.name}
        if self.image and self.image.best():
            view["image"] = self.image.best()
        if self.network:
            view["network"] = self.network.name
        if self.genres:
            view["genres"] = self.genres
        return view


class Episode(BaseModel):
    """A scheduled episode with optional nested show metadata."""

    id: int
    name: str = ""
    season: int | None = None
    number: int | None = None
    airtime: str | None = None
    airdate: str | None = None
    runtime: int | None = None
    show: Show | None = None

    @field_validator(
        "name", "season", "number", "airtime", "airdate", "runtime", mode="wrap"
    )
    @classmethod
    def _default_when_invalid(
        cls, value: Any, handler: ValidatorFunctionWrapHandler, info: ValidationInfo
    ) -> Any:
        return _lenient(cls, value, handler, info)

    @property
    def time_label(self) -> str:
        return self.airtime or TBA

    @property
    def show_id(self) -> str | None:
        """Show identifier as a string, matching tracked registry keys."""

        if self.show is None:
            return None
        return str(self.show.id)

    @property
    def episode_code(self) -> str:
        season = self.season if self.season is not None else 0
        number = self.number if self.number is not None else 0
        return f"S{season:02d}E{number:02d}"

    @classmethod
    def from_payload(cls, data: object) -> "Episode | None":
        """Normalise a raw schedule entry.

        Regional schedules nest the show under ``show`` while the web schedule
        embeds it under ``_embedded.show``. Missing or invalid optional fields
        fall back to their defaults; only entries without a usable identifier
        are rejected.
        """

        if not isinstance(data, Mapping) or data.get("id") is None:
            return None

        raw_show = data.get("show")
        if raw_show is None:
            embedded = data.get("_embedded")
            if isinstance(embedded, Mapping):
                raw_show = embedded.get("show")

        try:
            return cls.model_validate(
                {
                    "id": data["id"],
                    "name": data.get("name") or "",
                    "season": data.get("season"),
                    "number": data.get("number"),
                    "airtime": normalise_airtime(data.get("airtime")),
                    "airdate": data.get("airdate") or None,
                    "runtime": data.get("runtime"),
                    "show": Show.from_payload(raw_show),
                }
            )
        except ValidationError:
            logger.debug("Discarding malformed episode payload: %r", data.get("id"))
            return None

    def to_view(self) -> dict[str, object]:
        view: dict[str, object] = {
            "id": self.id,
            "name": self.name,
            "code": self.episode_code,
            "airtime": self.time_label,
        }
        if self.show is not None:
            view["show"] = self.show.to_view()
        return view


def normalise_airtime(value: object) -> str | None:
    """Return ``HH:MM`` for usable airtimes and ``None`` otherwise."""

    if not isinstance(value, str):
        return None
    match = AIRTIME_RE.match(value.strip())
    if not match:
        return None
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        return None
    return f"{hours:02d}:{minutes:02d}"


def parse_episodes(payload: object) -> list[Episode]:
    """Parse a schedule payload, skipping entries that cannot be used."""

    if not isinstance(payload, list):
        if payload is not None:
            logger.debug("Expected a list of episodes, got %s", type(payload).__name__)
        return []
    episodes: list[Episode] = []
    for entry in payload:
        episode = Episode.from_payload(entry)
        if episode is not None:
            episodes.append(episode)
    return episodes


def parse_show_results(payload: object) -> list[Show]:
    """Parse a show search payload (``[{"score": ..., "show": {...}}]``)."""

    if not isinstance(payload, list):
        return []
    shows: list[Show] = []
    for entry in payload:
        raw = entry.get("show") if isinstance(entry, Mapping) else None
        show = Show.from_payload(raw)
        if show is not None:
            shows.append(show)
    return shows
