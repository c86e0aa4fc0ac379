"""Schedule selection: the most recently fired schedule wins."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime

from marquee.domain.entities import Configuration, Schedule

from .recurrence import RecurrenceEvaluator

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScheduleFire:
    """A selectable schedule together with its most recent fire instant."""

    schedule: Schedule
    fired_at: datetime


class ScheduleSelector:
    """Picks the single active schedule of a configuration.

    Schedules without a parseable recurrence expression are never selected.
    Ties on the fire instant go to the schedule listed first.
    """

    def __init__(self, evaluator: RecurrenceEvaluator | None = None) -> None:
        self._evaluator = evaluator or RecurrenceEvaluator()
        self._guard = threading.Lock()

    @property
    def is_evaluating(self) -> bool:
        return self._guard.locked()

    def rank(self, configuration: Configuration | None, now: datetime) -> list[ScheduleFire]:
        """Fire instant of every selectable schedule, in configuration order."""
        if configuration is None:
            return []
        fires: list[ScheduleFire] = []
        for schedule in configuration.schedules:
            fired_at = self._evaluator.most_recent_fire_before(
                schedule.recurrence_expression, now
            )
            if fired_at is not None:
                fires.append(ScheduleFire(schedule=schedule, fired_at=fired_at))
        return fires

    def select_active(self, configuration: Configuration | None, now: datetime) -> Schedule | None:
        """Return the active schedule, or None.

        A call made while another pass is still running returns None
        without evaluating.
        """
        if not self._guard.acquire(blocking=False):
            _logger.debug("Schedule evaluation already in progress; skipping")
            return None
        try:
            best: ScheduleFire | None = None
            for fire in self.rank(configuration, now):
                if best is None or fire.fired_at > best.fired_at:
                    best = fire
            if best is None:
                return None
            _logger.debug(
                "Selected schedule %s (fired at %s)",
                best.schedule.id,
                best.fired_at.isoformat(),
            )
            return best.schedule
        finally:
            self._guard.release()
