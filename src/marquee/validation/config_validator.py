"""
Configuration document validation.

Checks a raw configuration document before it is published or loaded and
reports every problem at once. Errors describe content the player would
skip or reject; warnings describe content that plays but probably not as
intended (percentages above 100, overlapping regions, non-positive
durations).

Both the documented camelCase keys and the legacy publisher aliases are
understood.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping
from urllib.parse import urlparse

from marquee.domain.entities import parse_instant
from marquee.infra.exceptions import ConfigurationFormatError, RecurrenceParseError
from marquee.scheduling.recurrence import parse_expression

_VALID_MEDIA_TYPES = {"image", "video"}
_URL_SCHEMES = {"http", "https", "file"}
_RECT_FIELDS = ("left", "top", "width", "height")


@dataclass
class ValidationReport:
    """Errors and warnings found in one document."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.is_valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }


def _get(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_absolute_url(value: Any) -> bool:
    if not isinstance(value, str) or not value.strip():
        return False
    parsed = urlparse(value.strip())
    if parsed.scheme not in _URL_SCHEMES:
        return False
    return parsed.scheme == "file" or bool(parsed.netloc)


def _crontab(value: Any) -> Any:
    if isinstance(value, list) and value and isinstance(value[0], Mapping):
        return value[0].get("string")
    return value


def validate_document(document: Any) -> ValidationReport:
    """Validate a raw configuration document."""
    report = ValidationReport()
    if not isinstance(document, Mapping):
        report.errors.append("Configuration must be an object")
        return report

    if not _get(document, "configurationId", "configuration_id", "configurationEid"):
        report.errors.append("Missing required field: configurationId")

    schedules = document.get("schedules")
    if not isinstance(schedules, list):
        report.errors.append("Schedules array is missing or invalid")
        return report
    if not schedules:
        report.warnings.append("Configuration has no schedules")

    for index, schedule in enumerate(schedules):
        _validate_schedule(schedule, index, report)
    return report


def _validate_schedule(schedule: Any, index: int, report: ValidationReport) -> None:
    if not isinstance(schedule, Mapping):
        report.errors.append(f"Schedule #{index}: must be an object")
        return

    schedule_id = _get(schedule, "id", "eid", "_id") or f"#{index}"
    label = f"Schedule {schedule_id}"

    if not _get(schedule, "id", "eid", "_id"):
        report.errors.append(f"{label}: Missing required field: id")

    expression = _crontab(_get(schedule, "recurrenceExpression", "recurrence_expression", "crontab"))
    if not expression:
        report.errors.append(f"{label}: Missing required field: recurrenceExpression")
    else:
        try:
            parse_expression(str(expression))
        except RecurrenceParseError as exc:
            report.errors.append(f"{label}: Invalid recurrence expression: {exc.reason}")

    regions = _get(schedule, "regions", "layoutPlaylists")
    if not isinstance(regions, list):
        report.errors.append(f"{label}: regions is missing or invalid")
        return
    if not regions:
        report.warnings.append(f"{label}: has no regions and will never be shown")

    rectangles: list[tuple[str, tuple[float, float, float, float]]] = []
    for region_index, region in enumerate(regions):
        rectangle = _validate_region(region, region_index, label, report)
        if rectangle is not None:
            rectangles.append(rectangle)

    _check_overlaps(rectangles, label, report)


def _validate_region(
    region: Any,
    index: int,
    schedule_label: str,
    report: ValidationReport,
) -> tuple[str, tuple[float, float, float, float]] | None:
    if not isinstance(region, Mapping):
        report.errors.append(f"{schedule_label}, Region #{index}: must be an object")
        return None

    region_id = str(_get(region, "id", "regionEid", "eid") or f"#{index}")
    label = f"{schedule_label}, Region {region_id}"

    rect_ok = True
    for name in _RECT_FIELDS:
        value = region.get(name)
        if not _is_number(value):
            report.errors.append(f"{label}: Missing or invalid {name}. Value {value!r}")
            rect_ok = False

    in_pixels = bool(_get(region, "inPixels", "in_pixels"))
    if rect_ok and not in_pixels:
        for name in ("width", "height"):
            if not 0 <= region[name] <= 100:
                report.warnings.append(f"{label}: {name.capitalize()} should be between 0 and 100")

    media = _get(region, "media", "playlistMedias", "mediaItems")
    if not isinstance(media, list):
        report.errors.append(f"{label}: media is missing or invalid")
    else:
        if not media:
            report.warnings.append(f"{label}: playlist is empty")
        for media_index, entry in enumerate(media):
            _validate_media(entry, media_index, label, report)

    if not rect_ok or in_pixels:
        return None
    return region_id, tuple(float(region[name]) for name in _RECT_FIELDS)  # type: ignore[return-value]


def _validate_media(entry: Any, index: int, region_label: str, report: ValidationReport) -> None:
    if not isinstance(entry, Mapping):
        report.errors.append(f"{region_label}, Media #{index}: must be an object")
        return

    media_id = _get(entry, "id", "mediaEid", "eid", "playlistMediaEid") or f"#{index}"
    label = f"{region_label}, Media {media_id}"

    if not entry.get("name"):
        report.errors.append(f"{label}: Missing required field: name")

    media_type = entry.get("type")
    if media_type is not None and str(media_type).strip().lower() not in _VALID_MEDIA_TYPES:
        report.errors.append(f"{label}: Invalid media type: {media_type}")

    url = _get(entry, "sourceUrl", "source_url", "fileDO", "url", "file", "uri")
    if url is None:
        report.errors.append(f"{label}: Missing required field: sourceUrl")
    elif not _is_absolute_url(url):
        report.errors.append(f"{label}: Invalid file URL: {url}")

    duration = entry.get("duration")
    if duration is not None and (not _is_number(duration) or duration <= 0):
        report.warnings.append(f"{label}: Non-positive duration {duration!r}; default will be used")

    valid_from = _instant(entry, ("validFrom", "valid_from"), "validFrom", label, report)
    valid_to = _instant(entry, ("validTo", "valid_to"), "validTo", label, report)
    if valid_from is not None and valid_to is not None and valid_from > valid_to:
        report.errors.append(f"{label}: validFrom date is after validTo date")


def _instant(
    entry: Mapping[str, Any],
    keys: tuple[str, ...],
    name: str,
    label: str,
    report: ValidationReport,
) -> datetime | None:
    value = _get(entry, *keys)
    if value is None:
        return None
    try:
        return parse_instant(value)
    except ConfigurationFormatError:
        report.errors.append(f"{label}: Invalid {name} date: {value}")
        return None


def _check_overlaps(
    rectangles: list[tuple[str, tuple[float, float, float, float]]],
    schedule_label: str,
    report: ValidationReport,
) -> None:
    for i, (first_id, (l1, t1, w1, h1)) in enumerate(rectangles):
        for second_id, (l2, t2, w2, h2) in rectangles[i + 1:]:
            overlap_x = min(l1 + w1, l2 + w2) - max(l1, l2)
            overlap_y = min(t1 + h1, t2 + h2) - max(t1, t2)
            if overlap_x > 0 and overlap_y > 0:
                report.warnings.append(
                    f"{schedule_label}: Regions {first_id} and {second_id} overlap"
                )
