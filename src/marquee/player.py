"""
Player: wires the scheduling engine to the playback engine.

The scheduling side decides *which* layout is on screen; the playback side
plays it. Both run on the same event loop. ``Player.build`` assembles a
complete player from settings and adapters.
"""

from __future__ import annotations

import logging
from concurrent.futures import Executor
from concurrent.futures import TimeoutError as LoopTimeout

from marquee.infra.exceptions import ContractError
from marquee.infra.settings import Settings
from marquee.playback.engine import PlaybackEngine, PlaybackStatus
from marquee.runtime.clock import WallClock
from marquee.runtime.event_loop import EventLoop, ThreadedEventLoop
from marquee.scheduling.configuration_cache import ConfigurationCache
from marquee.scheduling.engine import SchedulingEngine
from marquee.scheduling.layout_transformer import ActiveLayout
from marquee.scheduling.preloader import AssetCache
from marquee.scheduling.recurrence import RecurrenceEvaluator
from marquee.scheduling.selector import ScheduleSelector
from marquee.storage.snapshot_store import FileSnapshotStore, SnapshotStore


class Player:
    """A scheduling engine and a playback engine sharing one event loop."""

    def __init__(self, scheduling: SchedulingEngine, playback: PlaybackEngine, loop: EventLoop):
        if scheduling is None or playback is None or loop is None:
            raise ContractError("Player requires a scheduling engine, a playback engine and a loop")
        self.scheduling = scheduling
        self.playback = playback
        self._loop = loop
        self._logger = logging.getLogger(__name__)

    @classmethod
    def build(
        cls,
        provider,
        loop: EventLoop,
        clock: WallClock,
        surface,
        settings: Settings,
        configuration_id: str | None = None,
        snapshot_store: SnapshotStore | None = None,
        asset_cache: AssetCache | None = None,
        executor: Executor | None = None,
    ) -> Player:
        """Assemble a player; cadences and timeouts come from ``settings``."""
        if snapshot_store is None and settings.snapshot_dir:
            snapshot_store = FileSnapshotStore(settings.snapshot_dir)

        cache = ConfigurationCache(
            provider,
            configuration_id if configuration_id is not None else settings.configuration_id,
            loop,
            poll_interval_s=settings.poll_interval_s,
            snapshot_store=snapshot_store,
            executor=executor,
        )
        playback = PlaybackEngine(
            surface,
            loop,
            clock,
            advance_delay_s=settings.advance_delay_s,
            image_load_timeout_s=settings.image_load_timeout_s,
            default_duration_s=settings.default_duration_s,
        )
        scheduling = SchedulingEngine(
            cache,
            loop,
            clock,
            selector=ScheduleSelector(RecurrenceEvaluator(tz=settings.timezone)),
            on_layout_change=playback.apply_layout,
            asset_cache=asset_cache,
            evaluation_interval_s=settings.evaluation_interval_s,
        )
        return cls(scheduling, playback, loop)

    @property
    def current_layout(self) -> ActiveLayout | None:
        return self.playback.current_layout

    def start(self) -> None:
        """Start the engines on the loop (starting a threaded loop if needed)."""
        if isinstance(self._loop, ThreadedEventLoop) and not self._loop.is_running:
            self._loop.start()
        self._loop.call_soon_threadsafe(self.scheduling.start)
        self._logger.info("Player: started")

    def stop(self, timeout: float = 5.0) -> None:
        """Stop both engines; a threaded loop is stopped afterwards."""
        if isinstance(self._loop, ThreadedEventLoop) and self._loop.is_running:
            try:
                self._loop.run_sync(self._stop_engines, timeout=timeout)
            except LoopTimeout:
                self._logger.warning("Player: engines did not stop within %ss", timeout)
            finally:
                self._loop.stop()
        else:
            self._stop_engines()
        self._logger.info("Player: stopped")

    def pause(self) -> None:
        self._loop.call_soon_threadsafe(self.playback.pause)

    def resume(self) -> None:
        self._loop.call_soon_threadsafe(self.playback.resume)

    def status(self, timeout: float = 5.0) -> PlaybackStatus:
        """Snapshot of playback state, read on the loop thread."""
        if isinstance(self._loop, ThreadedEventLoop):
            return self._loop.run_sync(self.playback.status, timeout=timeout)
        return self.playback.status()

    def _stop_engines(self) -> None:
        self.scheduling.stop()
        self.playback.stop()
