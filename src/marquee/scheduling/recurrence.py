"""Recurrence expressions: parsing and most-recent-fire evaluation.

Expressions are six-field cron strings (second, minute, hour, day-of-month,
month, day-of-week). Five-field strings are accepted and normalized by
prepending a ``0`` seconds field.

Parsing and validation happen here. Calendar arithmetic is delegated to a
``RecurrenceMath`` helper (croniter by default). When the helper is missing
or fails, a coarse fallback keeps the selector working:

    * * * * * *   -> now, floored to the second
    0 * * * * *   -> now, floored to the minute
    0 0 * * * *   -> now, floored to the hour
    anything else -> now - 1 hour
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo
from functools import lru_cache
from typing import Protocol, runtime_checkable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from croniter import croniter

from marquee.infra.exceptions import ContractError, RecurrenceParseError

_logger = logging.getLogger(__name__)

_MONTH_NAMES = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}
_DAY_NAMES = {"sun": 0, "mon": 1, "tue": 2, "wed": 3, "thu": 4, "fri": 5, "sat": 6}


@dataclass(frozen=True)
class _FieldSpec:
    name: str
    low: int
    high: int
    names: dict[str, int] | None = None
    allows_question: bool = False


_FIELDS = (
    _FieldSpec("second", 0, 59),
    _FieldSpec("minute", 0, 59),
    _FieldSpec("hour", 0, 23),
    _FieldSpec("day-of-month", 1, 31, allows_question=True),
    _FieldSpec("month", 1, 12, names=_MONTH_NAMES),
    # 7 is accepted as an alias for Sunday and folded to 0 after parsing.
    _FieldSpec("day-of-week", 0, 7, names=_DAY_NAMES, allows_question=True),
)

# Coarse fallback: one evaluation unit back from now.
_COARSE_FALLBACK = timedelta(hours=1)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RecurrenceExpression:
    """A parsed and normalized six-field recurrence expression.

    Each field is the frozen set of values it matches. A field covering its
    whole range renders as ``*`` (``1-31`` and ``?`` included), so the two
    day fields are ORed only when both are narrower than their range.
    """

    source: str
    seconds: frozenset[int]
    minutes: frozenset[int]
    hours: frozenset[int]
    days_of_month: frozenset[int]
    months: frozenset[int]
    days_of_week: frozenset[int]

    def _fields(self) -> tuple[frozenset[int], ...]:
        return (
            self.seconds,
            self.minutes,
            self.hours,
            self.days_of_month,
            self.months,
            self.days_of_week,
        )

    def canonical_fields(self) -> tuple[str, ...]:
        """Fields rendered as ``*`` or a sorted comma list, seconds first."""
        rendered = []
        for spec, values in zip(_FIELDS, self._fields()):
            high = 6 if spec.name == "day-of-week" else spec.high
            if values == frozenset(range(spec.low, high + 1)):
                rendered.append("*")
            else:
                rendered.append(",".join(str(v) for v in sorted(values)))
        return tuple(rendered)

    @property
    def normalized(self) -> str:
        return " ".join(self.canonical_fields())

    def to_croniter(self) -> str:
        """Render in croniter's default layout (seconds as the trailing field)."""
        second, minute, hour, dom, month, dow = self.canonical_fields()
        return " ".join((minute, hour, dom, month, dow, second))


def _parse_value(token: str, spec: _FieldSpec, expression: str) -> int:
    lowered = token.lower()
    if spec.names and lowered in spec.names:
        return spec.names[lowered]
    if not token.isdigit():
        raise RecurrenceParseError(expression, f"bad {spec.name} value {token!r}")
    value = int(token)
    if value < spec.low or value > spec.high:
        raise RecurrenceParseError(
            expression,
            f"{spec.name} value {value} outside {spec.low}-{spec.high}",
        )
    return value


def _parse_field(text: str, spec: _FieldSpec, expression: str) -> frozenset[int]:
    """Return the values one field matches."""
    if text == "?":
        if not spec.allows_question:
            raise RecurrenceParseError(expression, f"'?' not allowed in {spec.name}")
        text = "*"

    values: set[int] = set()
    for part in text.split(","):
        if not part:
            raise RecurrenceParseError(expression, f"empty list item in {spec.name}")

        step = 1
        if "/" in part:
            base, _, step_text = part.partition("/")
            if not step_text.isdigit() or int(step_text) == 0:
                raise RecurrenceParseError(expression, f"bad step in {spec.name}: {part!r}")
            step = int(step_text)
        else:
            base = part

        if base == "*":
            low, high = spec.low, spec.high
        elif "-" in base:
            start_text, _, end_text = base.partition("-")
            low = _parse_value(start_text, spec, expression)
            high = _parse_value(end_text, spec, expression)
            if low > high:
                raise RecurrenceParseError(expression, f"descending range in {spec.name}: {base!r}")
        else:
            low = _parse_value(base, spec, expression)
            # "a/n" means "from a to the end of the range, every n".
            high = spec.high if "/" in part else low

        values.update(range(low, high + 1, step))

    if spec.name == "day-of-week" and 7 in values:
        values.discard(7)
        values.add(0)

    return frozenset(values)


@lru_cache(maxsize=256)
def parse_expression(expression: str) -> RecurrenceExpression:
    """Parse a five- or six-field expression.

    Raises:
        RecurrenceParseError: If the expression is empty, has the wrong
            number of fields, or any field is malformed or out of range.
    """
    if not isinstance(expression, str) or not expression.strip():
        raise RecurrenceParseError(expression, "empty expression")

    parts = expression.split()
    if len(parts) == 5:
        parts.insert(0, "0")
    if len(parts) != 6:
        raise RecurrenceParseError(expression, f"expected 5 or 6 fields, got {len(parts)}")

    parsed = [_parse_field(part, spec, expression) for part, spec in zip(parts, _FIELDS)]
    return RecurrenceExpression(
        source=expression,
        seconds=parsed[0],
        minutes=parsed[1],
        hours=parsed[2],
        days_of_month=parsed[3],
        months=parsed[4],
        days_of_week=parsed[5],
    )


# ---------------------------------------------------------------------------
# Calendar math
# ---------------------------------------------------------------------------

@runtime_checkable
class RecurrenceMath(Protocol):
    """Computes the latest fire instant at or before ``now``."""

    def previous_fire(self, expression: RecurrenceExpression, now: datetime) -> datetime:
        """``now`` is aware and in the evaluation timezone."""
        ...


class CroniterRecurrenceMath:
    """RecurrenceMath backed by croniter."""

    def previous_fire(self, expression: RecurrenceExpression, now: datetime) -> datetime:
        # get_prev() is strictly-before; start one second past now so an
        # exact match on now is included.
        base = now.replace(microsecond=0) + timedelta(seconds=1)
        return croniter(expression.to_croniter(), base).get_prev(datetime)


def coarse_previous_fire(expression: RecurrenceExpression, now: datetime) -> datetime:
    """Fallback used when no calendar helper is available."""
    second, minute, hour, dom, month, dow = expression.canonical_fields()
    if (dom, month, dow) == ("*", "*", "*"):
        if (second, minute, hour) == ("*", "*", "*"):
            return now.replace(microsecond=0)
        if (second, minute, hour) == ("0", "*", "*"):
            return now.replace(second=0, microsecond=0)
        if (second, minute, hour) == ("0", "0", "*"):
            return now.replace(minute=0, second=0, microsecond=0)
    return now - _COARSE_FALLBACK


def _resolve_timezone(tz: str | tzinfo) -> tzinfo:
    if isinstance(tz, tzinfo):
        return tz
    if tz.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ContractError(f"Unknown timezone: {tz!r}") from exc


# ---------------------------------------------------------------------------
# Evaluator
# ---------------------------------------------------------------------------

class RecurrenceEvaluator:
    """Answers "when did this expression most recently fire, at or before now"."""

    def __init__(
        self,
        math: RecurrenceMath | None = None,
        tz: str | tzinfo = "UTC",
        coarse_only: bool = False,
    ) -> None:
        if coarse_only:
            self._math: RecurrenceMath | None = None
        else:
            self._math = math if math is not None else CroniterRecurrenceMath()
        self._tz = _resolve_timezone(tz)
        self._reported: set[str] = set()

    @property
    def timezone(self) -> tzinfo:
        return self._tz

    def most_recent_fire_before(self, expression: str | None, now: datetime) -> datetime | None:
        """Latest fire instant at or before ``now`` as an aware UTC datetime.

        Returns None only when the expression is missing or unparseable.
        """
        if expression is None:
            return None
        try:
            parsed = parse_expression(expression)
        except RecurrenceParseError as exc:
            if expression not in self._reported:
                self._reported.add(expression)
                _logger.warning("Ignoring schedule expression: %s", exc)
            return None

        local_now = self._localize(now)
        fire: datetime | None = None
        if self._math is not None:
            try:
                fire = self._math.previous_fire(parsed, local_now)
            except Exception as exc:
                _logger.warning(
                    "Recurrence math failed for %r, using coarse fallback: %s",
                    expression,
                    exc,
                )
        if fire is None:
            fire = coarse_previous_fire(parsed, local_now)
        if fire.tzinfo is None:
            fire = fire.replace(tzinfo=self._tz)
        return fire.astimezone(timezone.utc)

    def _localize(self, now: datetime) -> datetime:
        if now.tzinfo is None:
            return now.replace(tzinfo=self._tz)
        return now.astimezone(self._tz)
