"""
Configuration document data structures.

Defines Configuration, Schedule, Region and MediaDescriptor. All of them are
frozen once parsed; a new configuration replaces the old one wholesale.

``from_dict`` accepts the documented camelCase keys and the legacy publisher
aliases (``configurationEid``, ``crontab``, ``layoutPlaylists``,
``playlistMedias`` and friends).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Mapping

from marquee.infra.exceptions import ConfigurationFormatError

_logger = logging.getLogger(__name__)

DEFAULT_MEDIA_DURATION_S = 10.0
DEFAULT_ORDINAL = 1


class MediaType(Enum):
    """Kind of visual a media descriptor refers to."""

    IMAGE = "image"
    VIDEO = "video"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Any) -> MediaType:
        """Case-insensitive lookup; anything unrecognised is UNKNOWN."""
        if isinstance(value, MediaType):
            return value
        if not isinstance(value, str):
            return cls.UNKNOWN
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.UNKNOWN


def _first(data: Mapping[str, Any], keys: Iterable[str], default: Any = None) -> Any:
    """Return the value of the first key present (and not None) in data."""
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return default


def _as_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _as_float(value: Any, default: float | None) -> float | None:
    if value is None or isinstance(value, bool):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _as_int(value: Any, default: int | None) -> int | None:
    number = _as_float(value, None)
    if number is None:
        return default
    return int(number)


def _as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def parse_instant(value: Any) -> datetime | None:
    """
    Parse an ISO-8601 timestamp into an aware datetime.

    A trailing ``Z`` is accepted; naive timestamps are taken as UTC.
    Returns None for empty values and raises ConfigurationFormatError for
    anything that does not parse.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            raise ConfigurationFormatError(f"Invalid timestamp: {value!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _unwrap_crontab(value: Any) -> str | None:
    # Publisher exports sometimes wrap the expression: [{"string": "0 * * * *"}]
    if isinstance(value, list):
        if not value:
            return None
        head = value[0]
        if isinstance(head, Mapping):
            return _as_str(head.get("string"))
        return _as_str(head)
    return _as_str(value)


@dataclass(frozen=True)
class MediaDescriptor:
    """
    One playlist entry.

    ``duration`` is authoritative for images; for videos it only applies when
    ``force_duration`` is set. ``valid_from``/``valid_to`` bound the window in
    which the item may be shown. Looping belongs to the region; a per-media
    ``loop`` key in the document is ignored.
    """

    id: str
    name: str
    type: MediaType
    source_url: str
    duration: float = DEFAULT_MEDIA_DURATION_S
    ordinal: int = DEFAULT_ORDINAL
    mute: bool = True
    force_duration: bool = False
    content_type: str | None = None
    valid_from: datetime | None = None
    valid_to: datetime | None = None

    @property
    def has_validity_window(self) -> bool:
        return self.valid_from is not None or self.valid_to is not None

    def is_valid_at(self, now: datetime) -> bool:
        """True when now falls inside [valid_from, valid_to] (open ends allowed)."""
        if self.valid_from is not None and now < self.valid_from:
            return False
        if self.valid_to is not None and now > self.valid_to:
            return False
        return True

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], index: int = 0) -> MediaDescriptor:
        """Deserialize from dict (e.g. loaded from JSON)."""
        if not isinstance(data, Mapping):
            raise ConfigurationFormatError(f"Media entry {index} must be an object")

        duration = _as_float(data.get("duration"), None)
        if duration is None or duration <= 0:
            duration = DEFAULT_MEDIA_DURATION_S

        return cls(
            id=_as_str(_first(data, ("id", "mediaEid", "eid", "playlistMediaEid"))) or f"media_{index}",
            name=_as_str(data.get("name")) or "",
            type=MediaType.parse(data.get("type")),
            source_url=_as_str(_first(data, ("sourceUrl", "source_url", "fileDO", "url", "file", "uri"))) or "",
            duration=duration,
            ordinal=_as_int(data.get("ordinal"), DEFAULT_ORDINAL) or DEFAULT_ORDINAL,
            mute=_as_bool(data.get("mute"), True),
            force_duration=_as_bool(_first(data, ("forceDuration", "force_duration")), False),
            content_type=_as_str(_first(data, ("contentType", "content_type", "mimeType"))),
            valid_from=parse_instant(_first(data, ("validFrom", "valid_from"))),
            valid_to=parse_instant(_first(data, ("validTo", "valid_to"))),
        )


@dataclass(frozen=True)
class Region:
    """
    A positioned content slot. Position fields stay None when the document
    omits them; the layout transformer resolves the defaults.
    """

    id: str | None
    name: str | None
    left: float | None = None
    top: float | None = None
    width: float | None = None
    height: float | None = None
    z_index: int | None = None
    in_pixels: bool = False
    loop: bool = True
    media: tuple[MediaDescriptor, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Region:
        """Deserialize from dict; malformed media entries are skipped."""
        if not isinstance(data, Mapping):
            raise ConfigurationFormatError("Region entry must be an object")

        raw_media = _first(data, ("media", "playlistMedias", "mediaItems"), [])
        if not isinstance(raw_media, list):
            raise ConfigurationFormatError(
                f"Region {data.get('id')!r}: media must be a list"
            )

        media: list[MediaDescriptor] = []
        for index, entry in enumerate(raw_media):
            try:
                media.append(MediaDescriptor.from_dict(entry, index))
            except ConfigurationFormatError as exc:
                _logger.warning("Skipping media entry %d: %s", index, exc)

        return cls(
            id=_as_str(_first(data, ("id", "regionEid", "eid"))),
            name=_as_str(_first(data, ("name", "regionName"))),
            left=_as_float(data.get("left"), None),
            top=_as_float(data.get("top"), None),
            width=_as_float(data.get("width"), None),
            height=_as_float(data.get("height"), None),
            z_index=_as_int(_first(data, ("zIndex", "zindex", "z_index")), None),
            in_pixels=_as_bool(_first(data, ("inPixels", "in_pixels")), False),
            loop=_as_bool(data.get("loop"), True),
            media=tuple(media),
        )


@dataclass(frozen=True)
class Schedule:
    """A recurrence expression bound to one layout."""

    id: str
    name: str
    recurrence_expression: str | None
    layout_id: str | None
    regions: tuple[Region, ...] = ()
    width: int | None = None
    height: int | None = None

    @property
    def has_layout(self) -> bool:
        return len(self.regions) > 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], index: int = 0) -> Schedule:
        """Deserialize from dict (e.g. loaded from JSON)."""
        if not isinstance(data, Mapping):
            raise ConfigurationFormatError(f"Schedule entry {index} must be an object")

        raw_regions = _first(data, ("regions", "layoutPlaylists"), [])
        if not isinstance(raw_regions, list):
            raise ConfigurationFormatError(
                f"Schedule {data.get('id')!r}: regions must be a list"
            )

        schedule_id = _as_str(_first(data, ("id", "eid", "_id"))) or f"schedule_{index}"
        return cls(
            id=schedule_id,
            name=_as_str(data.get("name")) or schedule_id,
            recurrence_expression=_unwrap_crontab(
                _first(data, ("recurrenceExpression", "recurrence_expression", "crontab"))
            ),
            layout_id=_as_str(_first(data, ("layoutId", "layout_id", "layoutEid"))),
            regions=tuple(Region.from_dict(region) for region in raw_regions),
            width=_as_int(_first(data, ("width", "layoutWidth")), None),
            height=_as_int(_first(data, ("height", "layoutHeight")), None),
        )


@dataclass(frozen=True)
class Configuration:
    """
    A published configuration document.

    Replaced wholesale on each successful poll. A configuration without any
    schedule carrying at least one region is not usable and is treated as
    absent by the cache.
    """

    configuration_id: str
    published_at: datetime | None
    schedules: tuple[Schedule, ...] = field(default_factory=tuple)

    @property
    def is_usable(self) -> bool:
        return any(schedule.has_layout for schedule in self.schedules)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Configuration:
        """
        Deserialize from dict (e.g. loaded from JSON).

        Raises:
            ConfigurationFormatError: If the document or its schedule list is
                not shaped like a configuration. Individual malformed
                schedules are skipped with a warning.
        """
        if not isinstance(data, Mapping):
            raise ConfigurationFormatError("Configuration document must be an object")

        raw_schedules = data.get("schedules")
        if not isinstance(raw_schedules, list):
            raise ConfigurationFormatError("Configuration is missing a schedules list")

        schedules: list[Schedule] = []
        for index, entry in enumerate(raw_schedules):
            try:
                schedules.append(Schedule.from_dict(entry, index))
            except ConfigurationFormatError as exc:
                _logger.warning("Skipping schedule entry %d: %s", index, exc)

        return cls(
            configuration_id=_as_str(
                _first(data, ("configurationId", "configuration_id", "configurationEid"))
            ) or "",
            published_at=parse_instant(_first(data, ("publishedAt", "published_at"))),
            schedules=tuple(schedules),
        )
