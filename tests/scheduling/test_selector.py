"""
Tests for ScheduleSelector.

Verifies:
- The schedule with the latest fire instant at or before now wins
- Ties go to the schedule listed first
- Schedules without a usable expression are never selected
- A selection requested during another selection returns None
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from marquee.domain.entities import Configuration
from marquee.scheduling.recurrence import RecurrenceEvaluator
from marquee.scheduling.selector import ScheduleSelector

from conftest import T0, schedule_entry


def _configuration(*schedules) -> Configuration:
    return Configuration.from_dict({"configurationId": "c", "schedules": list(schedules)})


class ReentrantEvaluator(RecurrenceEvaluator):
    """Calls back into the selector while it is evaluating."""

    def __init__(self):
        super().__init__()
        self.selector: ScheduleSelector | None = None
        self.nested_results: list = []
        self.saw_guard: list[bool] = []

    def most_recent_fire_before(self, expression, now):
        if self.selector is not None and not self.nested_results:
            self.saw_guard.append(self.selector.is_evaluating)
            self.nested_results.append(self.selector.select_active(_configuration(), now))
        return super().most_recent_fire_before(expression, now)


def test_latest_fire_wins(document):
    configuration = Configuration.from_dict(document)
    selector = ScheduleSelector()

    assert selector.select_active(configuration, T0).id == "half-past"
    assert selector.select_active(configuration, T0 + timedelta(minutes=20)).id == "top-of-hour"


def test_rank_keeps_configuration_order(document):
    fires = ScheduleSelector().rank(Configuration.from_dict(document), T0)

    assert [fire.schedule.id for fire in fires] == ["top-of-hour", "half-past"]
    assert [fire.fired_at for fire in fires] == [
        datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc),
        datetime(2026, 3, 2, 10, 30, tzinfo=timezone.utc),
    ]


def test_tie_goes_to_first_listed():
    configuration = _configuration(
        schedule_entry("first", "0 0 * * * *"),
        schedule_entry("second", "0 0 * * * *"),
    )

    assert ScheduleSelector().select_active(configuration, T0).id == "first"


def test_unusable_expressions_are_never_selected():
    configuration = _configuration(
        schedule_entry("no-expression", None),
        schedule_entry("garbage", "every day at nine"),
        schedule_entry("daily", "0 0 6 * * *"),
    )

    assert ScheduleSelector().select_active(configuration, T0).id == "daily"


def test_nothing_selectable():
    configuration = _configuration(schedule_entry("garbage", "nope"))
    selector = ScheduleSelector()

    assert selector.select_active(configuration, T0) is None
    assert selector.select_active(None, T0) is None


def test_reentrant_selection_is_skipped(document):
    evaluator = ReentrantEvaluator()
    selector = ScheduleSelector(evaluator)
    evaluator.selector = selector

    selected = selector.select_active(Configuration.from_dict(document), T0)

    assert selected.id == "half-past"
    assert evaluator.saw_guard == [True]
    assert evaluator.nested_results == [None]
    assert not selector.is_evaluating
