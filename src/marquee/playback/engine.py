"""PlaybackEngine: owns the playlists of the layout currently on screen.

Applying a layout is atomic: every playlist, timer and element of the
previous layout is torn down and the surface cleared before the new
regions are built.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from marquee.domain.entities import DEFAULT_MEDIA_DURATION_S
from marquee.infra.exceptions import ContractError
from marquee.runtime.clock import WallClock
from marquee.runtime.event_loop import EventLoop
from marquee.scheduling.layout_transformer import ActiveLayout

from .media_factory import MediaUnitFactory
from .media_unit import DEFAULT_IMAGE_LOAD_TIMEOUT_S
from .playlist import Playlist, PlaylistStatus


@dataclass(frozen=True)
class PlaybackStatus:
    """Snapshot of the engine and every region's playlist."""

    layout_id: str | None
    paused: bool
    regions: tuple[PlaylistStatus, ...]


class PlaybackEngine:
    """Drives one Playlist per region of the active layout."""

    def __init__(
        self,
        surface,  # presentation Surface
        loop: EventLoop,
        clock: WallClock,
        factory: MediaUnitFactory | None = None,
        advance_delay_s: float = 0.0,
        image_load_timeout_s: float = DEFAULT_IMAGE_LOAD_TIMEOUT_S,
        default_duration_s: float = DEFAULT_MEDIA_DURATION_S,
    ):
        if surface is None:
            raise ContractError("PlaybackEngine requires a presentation surface")
        if loop is None or clock is None:
            raise ContractError("PlaybackEngine requires an event loop and a clock")

        self._surface = surface
        self._loop = loop
        self._advance_delay_s = advance_delay_s
        self._factory = factory or MediaUnitFactory(
            surface,
            loop,
            clock,
            image_load_timeout_s=image_load_timeout_s,
            default_duration_s=default_duration_s,
        )
        self._logger = logging.getLogger(__name__)

        self._layout: ActiveLayout | None = None
        self._playlists: list[Playlist] = []
        self._paused = False

    @property
    def current_layout(self) -> ActiveLayout | None:
        return self._layout

    @property
    def playlists(self) -> tuple[Playlist, ...]:
        return tuple(self._playlists)

    def playlist(self, region_id: str) -> Playlist | None:
        for playlist in self._playlists:
            if playlist.region_id == region_id:
                return playlist
        return None

    def apply_layout(self, layout: ActiveLayout) -> None:
        """Replace whatever is playing with ``layout``."""
        self._teardown()
        self._layout = layout
        self._paused = False
        self._surface.create_regions(layout)
        self._playlists = [
            Playlist(region, self._factory, self._loop, advance_delay_s=self._advance_delay_s)
            for region in layout.regions
        ]
        self._logger.info(
            "Applying layout %s with %d regions",
            layout.id,
            len(self._playlists),
        )
        for playlist in self._playlists:
            try:
                playlist.start()
            except Exception:
                self._logger.exception("Region %s failed to start", playlist.region_id)

    def stop(self) -> None:
        """Tear down every playlist and clear the surface."""
        self._teardown()
        self._layout = None
        self._paused = False
        self._logger.info("Playback stopped")

    def pause(self) -> None:
        self._paused = True
        for playlist in self._playlists:
            playlist.pause()

    def resume(self) -> None:
        self._paused = False
        for playlist in self._playlists:
            playlist.resume()

    def status(self) -> PlaybackStatus:
        return PlaybackStatus(
            layout_id=self._layout.id if self._layout is not None else None,
            paused=self._paused,
            regions=tuple(playlist.status() for playlist in self._playlists),
        )

    def _teardown(self) -> None:
        for playlist in self._playlists:
            playlist.destroy()
        self._playlists = []
        self._surface.clear()
