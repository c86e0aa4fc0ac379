"""
Playlist: sequential, optionally looping playback of one region.

State machine:

    STOPPED -> LOADING -> PLAYING <-> PAUSED
    PLAYING -> STOPPED   (explicit stop, end of a non-looping list, empty list)

Advance policy when the current item completes:

- ``index + 1 < length``: load and play item ``index + 1``
- wrap, loop enabled: back to index 0, ``loop_count += 1``
- wrap, loop disabled: STOPPED with ``ended`` set; later signals are ignored

A single-item looping playlist replays the existing unit in place
(``fast_loop_restart``) and only recreates it when that is refused.

Failure handling: a load that raises restarts the playlist from index 0;
if that fails as well the region halts until the next layout change. Items
that fail validation are skipped. When nothing in the list is currently
valid the playlist idles and rechecks later.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from marquee.infra.exceptions import ContractError
from marquee.runtime.event_loop import EventLoop, TimerHandle
from marquee.scheduling.layout_transformer import RegionLayout

from .media_factory import MediaUnitFactory
from .media_unit import CompletionEvent, MediaUnit


class PlaylistState(Enum):
    """Playlist lifecycle states"""

    STOPPED = "stopped"
    LOADING = "loading"
    PLAYING = "playing"
    PAUSED = "paused"


@dataclass(frozen=True)
class PlaylistStatus:
    """Point-in-time view of a playlist, for status reports."""

    region_id: str
    state: PlaylistState
    index: int
    length: int
    loop_count: int
    ended: bool
    halted: bool
    current_media_id: str | None
    remaining_s: float | None


class Playlist:
    """Plays one region's items in order."""

    def __init__(
        self,
        region: RegionLayout,
        factory: MediaUnitFactory,
        loop: EventLoop,
        advance_delay_s: float = 0.0,
        idle_recheck_s: float | None = None,
    ):
        if region is None:
            raise ContractError("Playlist requires a region")
        if factory is None or loop is None:
            raise ContractError("Playlist requires a media factory and an event loop")

        self.region = region
        self.items = region.playlist
        self.loop_enabled = region.loop
        self._factory = factory
        self._loop = loop
        self._advance_delay_s = advance_delay_s
        self._idle_recheck_s = (
            idle_recheck_s if idle_recheck_s is not None else factory.default_duration_s
        )
        self._logger = logging.getLogger(__name__)

        self.index = -1
        self.current_unit: MediaUnit | None = None
        self.state = PlaylistState.STOPPED
        self.loop_count = 0
        self.ended = False
        self.halted = False
        self.fast_restart_count = 0
        self.skipped_count = 0

        self._loading_index: int | None = None
        self._advance_handle: TimerHandle | None = None
        self._recheck_handle: TimerHandle | None = None
        self._advance_on_resume = False
        self._destroyed = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def region_id(self) -> str:
        return self.region.id

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    def start(self) -> None:
        """Play from the first item."""
        if self._destroyed:
            return
        self._cancel_timers()
        self.ended = False
        self.halted = False
        if not self.items:
            self.state = PlaylistState.STOPPED
            self._logger.info("Region %s has an empty playlist", self.region_id)
            return
        self._load_index(0)

    def next(self) -> None:
        """Advance to the next item according to the advance policy."""
        if self._destroyed or self.ended or self.halted or not self.items:
            return
        self._cancel_timers()

        next_index = self.index + 1
        if next_index >= len(self.items):
            if not self.loop_enabled:
                self._finish()
                return
            next_index = 0
            self.loop_count += 1
            if len(self.items) == 1 and self.current_unit is not None:
                if self.current_unit.fast_loop_restart():
                    self.fast_restart_count += 1
                    self.state = PlaylistState.PLAYING
                    return
                self._logger.debug("Fast restart refused in region %s; recreating", self.region_id)

        self._load_index(next_index)

    def pause(self) -> None:
        if self.state is not PlaylistState.PLAYING:
            return
        self.state = PlaylistState.PAUSED
        if self._advance_handle is not None:
            self._advance_handle.cancel()
            self._advance_handle = None
            self._advance_on_resume = True
        if self.current_unit is not None:
            self.current_unit.pause()

    def resume(self) -> None:
        if self.state is not PlaylistState.PAUSED:
            return
        self.state = PlaylistState.PLAYING
        if self.current_unit is not None:
            self.current_unit.resume()
        if self._advance_on_resume:
            self._advance_on_resume = False
            self._schedule_advance()

    def stop(self) -> None:
        """Stop playback; pending timers are cancelled."""
        self._cancel_timers()
        if self.current_unit is not None:
            self.current_unit.stop()
        self.state = PlaylistState.STOPPED

    def destroy(self) -> None:
        """Stop and release everything. Late completion signals are ignored."""
        if self._destroyed:
            return
        self.stop()
        self._release_current()
        self._destroyed = True

    def status(self) -> PlaylistStatus:
        unit = self.current_unit
        return PlaylistStatus(
            region_id=self.region_id,
            state=self.state,
            index=self.index,
            length=len(self.items),
            loop_count=self.loop_count,
            ended=self.ended,
            halted=self.halted,
            current_media_id=unit.descriptor.id if unit is not None else None,
            remaining_s=unit.remaining_time() if unit is not None else None,
        )

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _load_index(self, index: int, recovering: bool = False) -> None:
        if self._loading_index == index:
            self._logger.debug("Index %d already loading in region %s", index, self.region_id)
            return
        self._loading_index = index
        self.state = PlaylistState.LOADING
        try:
            unit = self._load_first_valid(index)
        except Exception as exc:
            self._loading_index = None
            self._release_current()
            if recovering:
                self._halt(exc)
                return
            self._logger.warning(
                "Loading item %d in region %s failed (%s); restarting from the first item",
                index,
                self.region_id,
                exc,
            )
            self._load_index(0, recovering=True)
            return

        self._loading_index = None
        if unit is None:
            return
        self.current_unit = unit
        self.state = PlaylistState.PLAYING
        unit.play()

    def _load_first_valid(self, start: int) -> MediaUnit | None:
        """Load the first valid item at or after ``start``.

        Returns None when the playlist ended or went idle instead.
        """
        self._release_current()
        length = len(self.items)
        candidate = start
        wrapped = False
        for _ in range(length):
            unit = self._factory.create(self.items[candidate], self.region_id, self._on_unit_complete)
            try:
                loaded = unit.load()
            except Exception:
                unit.destroy()
                raise
            if loaded:
                if wrapped:
                    self.loop_count += 1
                self.index = candidate
                return unit

            unit.destroy()
            self.skipped_count += 1
            candidate += 1
            if candidate >= length:
                if not self.loop_enabled:
                    self._finish()
                    return None
                candidate = 0
                wrapped = True

        self._go_idle()
        return None

    def _release_current(self) -> None:
        if self.current_unit is not None:
            self.current_unit.destroy()
            self.current_unit = None

    # ------------------------------------------------------------------
    # Completion and timers
    # ------------------------------------------------------------------

    def _on_unit_complete(self, event: CompletionEvent) -> None:
        if self._destroyed or event.unit is not self.current_unit:
            self._logger.debug("Ignoring stale completion from %r", event.unit)
            return
        if self.state is PlaylistState.PAUSED:
            # Completed while paused (late load confirm, decode error): advance on resume.
            self._advance_on_resume = True
            return
        if self.state is not PlaylistState.PLAYING:
            return
        self._schedule_advance()

    def _schedule_advance(self) -> None:
        if self._advance_handle is not None:
            self._advance_handle.cancel()
        self._advance_handle = self._loop.call_later(self._advance_delay_s, self._on_advance)

    def _on_advance(self) -> None:
        self._advance_handle = None
        self.next()

    def _on_recheck(self) -> None:
        self._recheck_handle = None
        if self._destroyed or self.halted:
            return
        self._load_index(0)

    def _cancel_timers(self) -> None:
        self._advance_on_resume = False
        if self._advance_handle is not None:
            self._advance_handle.cancel()
            self._advance_handle = None
        if self._recheck_handle is not None:
            self._recheck_handle.cancel()
            self._recheck_handle = None

    # ------------------------------------------------------------------
    # Terminal transitions
    # ------------------------------------------------------------------

    def _finish(self) -> None:
        self.ended = True
        self.state = PlaylistState.STOPPED
        if self.current_unit is not None:
            self.current_unit.stop()
        self._logger.info("Region %s reached the end of its playlist", self.region_id)

    def _go_idle(self) -> None:
        self.state = PlaylistState.STOPPED
        self._logger.info(
            "Region %s has no playable item; rechecking in %ss",
            self.region_id,
            self._idle_recheck_s,
        )
        self._recheck_handle = self._loop.call_later(self._idle_recheck_s, self._on_recheck)

    def _halt(self, exc: Exception) -> None:
        self.halted = True
        self.state = PlaylistState.STOPPED
        self._logger.error(
            "Region %s halted until the next layout change: %s",
            self.region_id,
            exc,
        )
