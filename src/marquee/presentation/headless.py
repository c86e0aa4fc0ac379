"""
HeadlessSurface: a presentation layer with no screen.

Regions and elements exist only as records. Image loads are confirmed on
the event loop after ``image_load_delay_s``; videos "end" after their
descriptor duration (or ``video_duration_s``). Every interaction is appended
to ``events`` so a run can be inspected afterwards.

Failure knobs let callers simulate an unreachable image, an element that
cannot be created, a decode error, or an autoplay policy:

- ``"allow"``: every play() succeeds.
- ``"muted_only"``: play() succeeds only while muted.
- ``"deny"``: play() fails until the manual trigger is pressed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from marquee.domain.entities import MediaDescriptor
from marquee.infra.exceptions import AutoplayRejectedError, MediaLoadError
from marquee.runtime.event_loop import EventLoop, TimerHandle
from marquee.scheduling.layout_transformer import ActiveLayout

_logger = logging.getLogger(__name__)

AUTOPLAY_POLICIES = ("allow", "muted_only", "deny")


@dataclass
class HeadlessRegion:
    """A region as the surface last created it."""

    id: str
    name: str
    left: float
    top: float
    width: float
    height: float
    z_index: int
    unit: str
    elements: list = field(default_factory=list)


class HeadlessImage:
    """Image element whose load is confirmed on the loop."""

    def __init__(self, surface: HeadlessSurface, region_id: str, descriptor: MediaDescriptor):
        self._surface = surface
        self.region_id = region_id
        self.descriptor = descriptor
        self.visible = False
        self.released = False
        self._pending: TimerHandle | None = None

    def load(self, url: str, on_loaded: Callable[[], None], on_error: Callable[[str], None]) -> None:
        self._surface.record("image.load", self.region_id, url)
        if url in self._surface.unreachable_urls:
            self._pending = self._surface.loop.call_later(
                self._surface.image_load_delay_s, on_error, f"unreachable: {url}"
            )
        elif url in self._surface.stalled_urls:
            # Never confirms; the unit's load timeout takes over.
            return
        else:
            self._pending = self._surface.loop.call_later(
                self._surface.image_load_delay_s, on_loaded
            )

    def show(self) -> None:
        self.visible = True
        self._surface.record("image.show", self.region_id, self.descriptor.source_url)

    def release(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        self.visible = False
        self.released = True
        self._surface.record("image.release", self.region_id, self.descriptor.source_url)


class HeadlessVideo:
    """Video element that plays for a fixed stretch of loop time."""

    def __init__(self, surface: HeadlessSurface, region_id: str, descriptor: MediaDescriptor):
        self._surface = surface
        self.region_id = region_id
        self.descriptor = descriptor
        self.muted = True
        self.playing = False
        self.released = False
        self.play_attempts = 0
        self.position_s = 0.0
        self.manual_trigger: Callable[[], None] | None = None
        self._gesture = False
        self._started_at: float | None = None
        self._end_timer: TimerHandle | None = None
        self._on_ended: Callable[[], None] | None = None
        self._on_error: Callable[[str], None] | None = None

    @property
    def duration_s(self) -> float:
        if self._surface.video_duration_s is not None:
            return self._surface.video_duration_s
        return self.descriptor.duration

    def load(self, url: str) -> None:
        self._surface.record("video.load", self.region_id, url)
        if url in self._surface.decode_error_urls:
            self._surface.loop.call_soon(self._emit_error, f"decode error: {url}")

    def play(self) -> None:
        self.play_attempts += 1
        policy = self._surface.autoplay_policy
        blocked = policy == "deny" or (policy == "muted_only" and not self.muted)
        if blocked and not self._gesture:
            self._surface.record("video.rejected", self.region_id, self.descriptor.source_url)
            raise AutoplayRejectedError(f"Autoplay blocked for {self.descriptor.source_url}")
        if self.playing:
            return
        self.playing = True
        self._started_at = self._surface.loop.time()
        remaining = max(0.0, self.duration_s - self.position_s)
        self._end_timer = self._surface.loop.call_later(remaining, self._finish)
        self._surface.record("video.play", self.region_id, self.descriptor.source_url)

    def pause(self) -> None:
        if not self.playing:
            return
        self._cancel_end()
        if self._started_at is not None:
            self.position_s += self._surface.loop.time() - self._started_at
        self.playing = False
        self._surface.record("video.pause", self.region_id, self.descriptor.source_url)

    def rewind(self) -> None:
        was_playing = self.playing
        self._cancel_end()
        self.playing = False
        self.position_s = 0.0
        self._surface.record("video.rewind", self.region_id, self.descriptor.source_url)
        if was_playing:
            self.play()

    def set_ended_callback(self, callback: Callable[[], None]) -> None:
        self._on_ended = callback

    def set_error_callback(self, callback: Callable[[str], None]) -> None:
        self._on_error = callback

    def show_manual_trigger(self, callback: Callable[[], None]) -> None:
        self.manual_trigger = callback
        self._surface.record("video.trigger.show", self.region_id, self.descriptor.source_url)

    def hide_manual_trigger(self) -> None:
        self.manual_trigger = None
        self._surface.record("video.trigger.hide", self.region_id, self.descriptor.source_url)

    def press_manual_trigger(self) -> None:
        """Simulate an operator pressing the play affordance."""
        if self.manual_trigger is None:
            return
        self._gesture = True
        self.manual_trigger()

    def release(self) -> None:
        self._cancel_end()
        self.playing = False
        self.released = True
        self._on_ended = None
        self._on_error = None
        self._surface.record("video.release", self.region_id, self.descriptor.source_url)

    def _cancel_end(self) -> None:
        if self._end_timer is not None:
            self._end_timer.cancel()
            self._end_timer = None

    def _finish(self) -> None:
        self._end_timer = None
        self.playing = False
        self.position_s = self.duration_s
        self._surface.record("video.ended", self.region_id, self.descriptor.source_url)
        if self._on_ended is not None:
            self._on_ended()

    def _emit_error(self, message: str) -> None:
        if self._on_error is not None and not self.released:
            self._on_error(message)


class HeadlessSurface:
    """Surface implementation that records instead of rendering."""

    def __init__(
        self,
        loop: EventLoop,
        image_load_delay_s: float = 0.0,
        autoplay_policy: str = "allow",
        video_duration_s: float | None = None,
    ):
        if autoplay_policy not in AUTOPLAY_POLICIES:
            raise ValueError(f"autoplay_policy must be one of {AUTOPLAY_POLICIES}")
        self.loop = loop
        self.image_load_delay_s = image_load_delay_s
        self.autoplay_policy = autoplay_policy
        self.video_duration_s = video_duration_s

        self.unreachable_urls: set[str] = set()
        self.stalled_urls: set[str] = set()
        self.decode_error_urls: set[str] = set()
        self.uncreatable_urls: set[str] = set()

        self.layout_id: str | None = None
        self.regions: dict[str, HeadlessRegion] = {}
        self.events: list[tuple[str, str, str]] = []
        self.elements: list[HeadlessImage | HeadlessVideo] = []

    def record(self, kind: str, region_id: str, detail: str) -> None:
        self.events.append((kind, region_id, detail))
        _logger.debug("surface %s region=%s %s", kind, region_id, detail)

    def events_of(self, kind: str) -> list[tuple[str, str, str]]:
        return [event for event in self.events if event[0] == kind]

    def create_regions(self, layout: ActiveLayout) -> None:
        self.layout_id = layout.id
        self.regions = {
            region.id: HeadlessRegion(
                id=region.id,
                name=region.name,
                left=region.left,
                top=region.top,
                width=region.width,
                height=region.height,
                z_index=region.z_index,
                unit=region.unit,
            )
            for region in layout.regions
        }
        self.record("regions.create", layout.id, str(len(layout.regions)))

    def clear(self) -> None:
        for element in self.elements:
            if not element.released:
                element.release()
        self.elements = []
        self.regions = {}
        if self.layout_id is not None:
            self.record("regions.clear", self.layout_id, "")
        self.layout_id = None

    def create_image(self, region_id: str, descriptor: MediaDescriptor) -> HeadlessImage:
        self._check_creatable(region_id, descriptor)
        element = HeadlessImage(self, region_id, descriptor)
        self._mount(region_id, element)
        return element

    def create_video(self, region_id: str, descriptor: MediaDescriptor) -> HeadlessVideo:
        self._check_creatable(region_id, descriptor)
        element = HeadlessVideo(self, region_id, descriptor)
        self._mount(region_id, element)
        return element

    def live_elements(self, region_id: str | None = None) -> list[HeadlessImage | HeadlessVideo]:
        return [
            element
            for element in self.elements
            if not element.released and (region_id is None or element.region_id == region_id)
        ]

    def _check_creatable(self, region_id: str, descriptor: MediaDescriptor) -> None:
        if region_id not in self.regions:
            raise MediaLoadError(f"Unknown region {region_id!r}")
        if descriptor.source_url in self.uncreatable_urls:
            raise MediaLoadError(f"Cannot create element for {descriptor.source_url}")

    def _mount(self, region_id: str, element: HeadlessImage | HeadlessVideo) -> None:
        self.elements.append(element)
        self.regions[region_id].elements.append(element)
        self.record("element.create", region_id, element.descriptor.source_url)
