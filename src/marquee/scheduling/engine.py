"""SchedulingEngine: decides which layout should be on screen.

Each evaluation pass reads the cached configuration, selects the active
schedule and converts it into an ActiveLayout. The presentation callback
fires only when the resulting layout differs from the one already applied.
Passes run on the event loop every ``evaluation_interval_s`` and whenever
the configuration changes.
"""

from __future__ import annotations

import logging
from typing import Callable

from marquee.domain.entities import Configuration
from marquee.infra.exceptions import ContractError
from marquee.runtime.clock import WallClock
from marquee.runtime.event_loop import EventLoop, TimerHandle

from .configuration_cache import ConfigurationCache
from .layout_transformer import ActiveLayout, to_layout
from .preloader import AssetCache, preload_layout_media
from .selector import ScheduleSelector

LayoutCallback = Callable[[ActiveLayout], None]

DEFAULT_EVALUATION_INTERVAL_S = 30.0


class SchedulingEngine:
    """Evaluation loop tying the cache, selector and transformer together."""

    def __init__(
        self,
        cache: ConfigurationCache,
        loop: EventLoop,
        clock: WallClock,
        selector: ScheduleSelector | None = None,
        on_layout_change: LayoutCallback | None = None,
        asset_cache: AssetCache | None = None,
        evaluation_interval_s: float = DEFAULT_EVALUATION_INTERVAL_S,
    ):
        if cache is None or loop is None or clock is None:
            raise ContractError("SchedulingEngine requires a cache, an event loop and a clock")
        if evaluation_interval_s <= 0:
            raise ContractError("evaluation_interval_s must be greater than zero")

        self._cache = cache
        self._loop = loop
        self._clock = clock
        self._selector = selector or ScheduleSelector()
        self._on_layout_change = on_layout_change
        self._asset_cache = asset_cache
        self._interval_s = evaluation_interval_s
        self._logger = logging.getLogger(__name__)

        self._current_layout: ActiveLayout | None = None
        self._evaluating = False
        self._started = False
        self._timer: TimerHandle | None = None
        self.evaluation_count = 0
        self.layout_change_count = 0

        cache.on_changed(self._on_configuration_changed)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def current_layout(self) -> ActiveLayout | None:
        return self._current_layout

    @property
    def is_evaluating(self) -> bool:
        return self._evaluating

    def start(self) -> None:
        """Start the cache and the evaluation cadence.

        With a warm-started cache the first pass selects a layout before the
        first fetch has landed.
        """
        if self._started:
            return
        self._started = True
        self._cache.start()
        self.evaluate_once()
        self._schedule_next()
        self._logger.info("SchedulingEngine: started (evaluate every %ss)", self._interval_s)

    def stop(self) -> None:
        self._started = False
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        # The presentation is torn down with us; a restart must re-announce.
        self._current_layout = None
        self._cache.stop()
        self._logger.info("SchedulingEngine: stopped")

    def evaluate_once(self) -> ActiveLayout | None:
        """Run one evaluation pass; returns the layout in effect afterwards.

        A pass started while another is running does nothing.
        """
        if self._evaluating:
            self._logger.debug("Evaluation already in progress; skipping")
            return self._current_layout
        self._evaluating = True
        try:
            self.evaluation_count += 1
            self._evaluate()
        except Exception:
            self._logger.exception("Schedule evaluation failed")
        finally:
            self._evaluating = False
        return self._current_layout

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _evaluate(self) -> None:
        configuration = self._cache.get_current()
        if configuration is None:
            self._logger.debug("No configuration loaded yet")
            return

        schedule = self._selector.select_active(configuration, self._clock.now_utc())
        if schedule is None:
            self._logger.debug("No active schedule; keeping current layout")
            return

        layout = to_layout(schedule)
        if layout == self._current_layout:
            return

        self._current_layout = layout
        self.layout_change_count += 1
        self._logger.info(
            "Layout change: %s (schedule %s, %d regions)",
            layout.id,
            layout.schedule_id,
            len(layout.regions),
        )
        preload_layout_media(layout, self._asset_cache)
        if self._on_layout_change is not None:
            try:
                self._on_layout_change(layout)
            except Exception:
                self._logger.exception("Layout change callback failed")

    def _schedule_next(self) -> None:
        self._timer = self._loop.call_later(self._interval_s, self._on_timer)

    def _on_timer(self) -> None:
        if not self._started:
            return
        self.evaluate_once()
        self._schedule_next()

    def _on_configuration_changed(self, configuration: Configuration) -> None:
        if self._started:
            self.evaluate_once()
