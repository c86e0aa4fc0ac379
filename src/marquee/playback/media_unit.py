"""
MediaUnit: load/play/completion lifecycle of one playlist item.

Pattern: State Machine

    IDLE -> VALIDATING -> INVALID (terminal)
                       -> READY -> PLAYING -> COMPLETED

``stop()`` moves a PLAYING unit straight to COMPLETED.

Key Responsibilities:
- Validate the descriptor (required fields, validity window)
- Create and load the visual element through the surface
- Decide when the item is finished (duration timer or end of media)
- Report completion to the owning playlist as a CompletionEvent
- Replay in place (fast loop restart) when the variant supports it

Boundaries:
- A unit IS allowed to: Own its element and its timers, retry playback muted
- A unit IS NOT allowed to: Choose the next item, touch other regions, emit after destroy()
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable

from marquee.domain.entities import DEFAULT_MEDIA_DURATION_S, MediaDescriptor
from marquee.infra.exceptions import (
    AutoplayRejectedError,
    ContractError,
    MediaLoadError,
    MediaValidationError,
)
from marquee.runtime.clock import WallClock
from marquee.runtime.event_loop import EventLoop, TimerHandle

DEFAULT_IMAGE_LOAD_TIMEOUT_S = 30.0


class UnitState(Enum):
    """MediaUnit lifecycle states"""

    IDLE = "idle"
    VALIDATING = "validating"
    INVALID = "invalid"
    READY = "ready"
    PLAYING = "playing"
    COMPLETED = "completed"


class CompletionReason(str, Enum):
    """Why a unit completed"""

    DURATION = "duration"
    ENDED = "ended"
    ERROR = "error"


@dataclass(frozen=True)
class CompletionEvent:
    """Emitted once by a unit when it finishes; carries the emitting unit."""

    unit: MediaUnit
    reason: CompletionReason


CompletionListener = Callable[[CompletionEvent], None]


class MediaUnit(ABC):
    """
    Base class for playlist items.

    Subclasses create their element in ``_create_element`` and start
    confirmation in ``_begin_load``. Timing helpers live here so every
    variant shares pause/resume and ``remaining_time`` semantics.
    """

    def __init__(
        self,
        descriptor: MediaDescriptor,
        region_id: str,
        surface,  # needs create_image()/create_video()
        loop: EventLoop,
        clock: WallClock,
        listener: CompletionListener | None,
        default_duration_s: float = DEFAULT_MEDIA_DURATION_S,
    ):
        if descriptor is None:
            raise ContractError("MediaUnit requires a descriptor")
        if surface is None or loop is None or clock is None:
            raise ContractError("MediaUnit requires a surface, an event loop and a clock")

        self.descriptor = descriptor
        self.region_id = region_id
        self._surface = surface
        self._loop = loop
        self._clock = clock
        self._listener = listener
        self._default_duration_s = default_duration_s
        self._logger = logging.getLogger(__name__)

        self.state = UnitState.IDLE
        self.playing = False
        self.completed = False
        self.started_at: float | None = None
        self.invalid_reason: str | None = None

        self._element: Any = None
        self._destroyed = False
        self._timer: TimerHandle | None = None
        self._timer_started = 0.0
        self._timer_duration: float | None = None
        self._paused_remaining: float | None = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    @property
    def element(self) -> Any:
        return self._element

    @property
    def duration(self) -> float:
        if self.descriptor.duration and self.descriptor.duration > 0:
            return self.descriptor.duration
        return self._default_duration_s

    def validate(self, now: datetime | None = None) -> bool:
        """Check required fields and the validity window. INVALID is terminal."""
        if self.state is UnitState.INVALID:
            return False
        self.state = UnitState.VALIDATING
        try:
            self._check(now if now is not None else self._clock.now_utc())
        except MediaValidationError as exc:
            self.state = UnitState.INVALID
            self.invalid_reason = str(exc)
            self._logger.info("Skipping media %s: %s", self.descriptor.id, exc)
            return False
        return True

    def load(self) -> bool:
        """
        Validate, create the element and start load confirmation.

        Returns:
            True when the unit is READY, False when it is INVALID.

        Raises:
            MediaLoadError: If the element cannot be created or loaded.
        """
        if self._destroyed:
            raise MediaLoadError(f"Media {self.descriptor.id} was destroyed")
        if not self.validate():
            return False
        try:
            self._element = self._create_element()
            self._begin_load()
        except MediaLoadError:
            raise
        except Exception as exc:
            raise MediaLoadError(f"Cannot load {self.descriptor.source_url}: {exc}") from exc
        self.state = UnitState.READY
        return True

    @abstractmethod
    def play(self) -> None:
        """Start playback of a READY unit."""
        ...

    def stop(self) -> None:
        """Stop without emitting a completion event."""
        self._cancel_timer()
        self._paused_remaining = None
        if self.state is UnitState.PLAYING:
            self.state = UnitState.COMPLETED
            self.completed = True
        self.playing = False

    def pause(self) -> None:
        if self.state is not UnitState.PLAYING or self._paused_remaining is not None:
            return
        remaining = self.remaining_time()
        self._cancel_timer()
        self._paused_remaining = remaining if remaining is not None else -1.0
        self.playing = False

    def resume(self) -> None:
        if self._paused_remaining is None:
            return
        remaining, self._paused_remaining = self._paused_remaining, None
        self.playing = True
        if remaining >= 0:
            self._arm_timer(remaining)

    def destroy(self) -> None:
        """Stop, release the element and detach the listener. Idempotent."""
        if self._destroyed:
            return
        self.stop()
        self._destroyed = True
        self._listener = None
        if self._element is not None:
            try:
                self._element.release()
            except Exception as exc:
                self._logger.warning("Releasing element for %s failed: %s", self.descriptor.id, exc)
            self._element = None

    def fast_loop_restart(self) -> bool:
        """Replay in place. Variants that cannot do so return False."""
        return False

    def remaining_time(self) -> float | None:
        """Seconds left on the completion timer, or None when there is none."""
        if self._paused_remaining is not None:
            return self._paused_remaining if self._paused_remaining >= 0 else None
        if self._timer is None or self._timer_duration is None:
            return None
        elapsed = self._loop.time() - self._timer_started
        return max(0.0, self._timer_duration - elapsed)

    # ------------------------------------------------------------------
    # Subclass hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def _create_element(self) -> Any:
        ...

    @abstractmethod
    def _begin_load(self) -> None:
        ...

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    def _check(self, now: datetime) -> None:
        if not self.descriptor.name:
            raise MediaValidationError("missing name")
        if not self.descriptor.source_url:
            raise MediaValidationError("missing source URL")
        if self.descriptor.has_validity_window and not self.descriptor.is_valid_at(now):
            raise MediaValidationError(f"outside validity window at {now.isoformat()}")

    def _still_valid(self) -> bool:
        try:
            self._check(self._clock.now_utc())
        except MediaValidationError:
            return False
        return True

    def _enter_playing(self) -> None:
        self.state = UnitState.PLAYING
        self.playing = True
        self.completed = False
        self.started_at = self._loop.time()

    def _arm_timer(self, duration: float) -> None:
        self._cancel_timer()
        self._timer_started = self._loop.time()
        self._timer_duration = duration
        self._timer = self._loop.call_later(duration, self._on_timer)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timer(self) -> None:
        self._timer = None
        self._complete(CompletionReason.DURATION)

    def _complete(self, reason: CompletionReason) -> None:
        if self._destroyed or self.completed:
            return
        self._cancel_timer()
        self.state = UnitState.COMPLETED
        self.completed = True
        self.playing = False
        listener = self._listener
        if listener is not None:
            listener(CompletionEvent(unit=self, reason=reason))

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.descriptor.id} {self.state.value}>"


class ImageUnit(MediaUnit):
    """
    Still image shown for ``duration`` seconds.

    The duration timer starts once the image is confirmed loaded. When
    confirmation fails or does not arrive within ``load_timeout_s`` the timer
    starts anyway, so one unreachable asset never stalls the playlist.
    """

    def __init__(self, *args, load_timeout_s: float = DEFAULT_IMAGE_LOAD_TIMEOUT_S, **kwargs):
        super().__init__(*args, **kwargs)
        self._load_timeout_s = load_timeout_s
        self._load_settled = False
        self._play_requested = False
        self._load_timer: TimerHandle | None = None
        self.load_failed = False

    def _create_element(self) -> Any:
        return self._surface.create_image(self.region_id, self.descriptor)

    def _begin_load(self) -> None:
        self._load_timer = self._loop.call_later(self._load_timeout_s, self._on_load_timeout)
        self._element.load(self.descriptor.source_url, self._on_loaded, self._on_load_error)

    def play(self) -> None:
        if self._destroyed or self.state is not UnitState.READY:
            return
        self._play_requested = True
        if self._load_settled:
            self._start_display()

    def fast_loop_restart(self) -> bool:
        if self._destroyed or self._element is None or not self._still_valid():
            return False
        self._cancel_timer()
        self._paused_remaining = None
        self.completed = False
        self.playing = False
        self._element.show()
        self._start_display()
        return True

    def stop(self) -> None:
        self._play_requested = False
        self._cancel_load_timer()
        super().stop()

    def _start_display(self) -> None:
        self._play_requested = True
        self._enter_playing()
        self._arm_timer(self.duration)

    def _settle(self) -> bool:
        if self._destroyed or self._load_settled:
            return False
        self._load_settled = True
        self._cancel_load_timer()
        return True

    def _on_loaded(self) -> None:
        if not self._settle():
            return
        self._element.show()
        if self._play_requested and self.state is UnitState.READY:
            self._start_display()

    def _on_load_error(self, message: str) -> None:
        if not self._settle():
            return
        self.load_failed = True
        self._logger.warning("Image %s failed to load: %s", self.descriptor.source_url, message)
        if self._play_requested and self.state is UnitState.READY:
            self._start_display()

    def _on_load_timeout(self) -> None:
        self._load_timer = None
        self._on_load_error(f"no load confirmation after {self._load_timeout_s}s")

    def _cancel_load_timer(self) -> None:
        if self._load_timer is not None:
            self._load_timer.cancel()
            self._load_timer = None


class VideoUnit(MediaUnit):
    """
    Video that completes on its natural end.

    A fixed duration applies only with ``force_duration``. A rejected
    autoplay is retried once muted; if that fails too the unit shows a
    manual trigger and stays READY until a trigger starts playback.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.awaiting_trigger = False
        self.retried_muted = False

    def _create_element(self) -> Any:
        element = self._surface.create_video(self.region_id, self.descriptor)
        element.muted = self.descriptor.mute
        element.set_ended_callback(self._on_ended)
        element.set_error_callback(self._on_error)
        return element

    def _begin_load(self) -> None:
        self._element.load(self.descriptor.source_url)

    def play(self) -> None:
        if self._destroyed or self.state is not UnitState.READY or self.awaiting_trigger:
            return
        try:
            self._element.play()
        except AutoplayRejectedError as exc:
            if self._element.muted:
                self._await_trigger(exc)
                return
            self._logger.info("Autoplay rejected for %s; retrying muted", self.descriptor.id)
            self.retried_muted = True
            self._element.muted = True
            try:
                self._element.play()
            except AutoplayRejectedError as retry_exc:
                self._await_trigger(retry_exc)
                return
        self._start_playback()

    def stop(self) -> None:
        super().stop()
        if self._element is not None:
            self._element.pause()

    def pause(self) -> None:
        if self.state is not UnitState.PLAYING:
            return
        super().pause()
        self._element.pause()

    def resume(self) -> None:
        if self._paused_remaining is None:
            return
        try:
            self._element.play()
        except AutoplayRejectedError as exc:
            self._logger.warning("Cannot resume %s: %s", self.descriptor.id, exc)
            return
        super().resume()

    def fast_loop_restart(self) -> bool:
        if self._destroyed or self._element is None or not self._still_valid():
            return False
        self._cancel_timer()
        self._paused_remaining = None
        self.completed = False
        self.playing = False
        self._element.rewind()
        try:
            self._element.play()
        except AutoplayRejectedError as exc:
            self._logger.info("Fast restart of %s rejected: %s", self.descriptor.id, exc)
            return False
        self._start_playback()
        return True

    def _start_playback(self) -> None:
        self._enter_playing()
        if self.descriptor.force_duration:
            self._arm_timer(self.duration)

    def _await_trigger(self, exc: Exception) -> None:
        self._logger.warning(
            "Autoplay blocked for %s (%s); waiting for manual trigger",
            self.descriptor.id,
            exc,
        )
        self.awaiting_trigger = True
        self._element.show_manual_trigger(self._on_manual_trigger)

    def _on_manual_trigger(self) -> None:
        if self._destroyed or self.state is not UnitState.READY:
            return
        try:
            self._element.play()
        except AutoplayRejectedError as exc:
            self._logger.info("Manual trigger for %s rejected: %s", self.descriptor.id, exc)
            return
        self.awaiting_trigger = False
        self._element.hide_manual_trigger()
        self._start_playback()

    def _on_ended(self) -> None:
        if self._destroyed or self.state is not UnitState.PLAYING:
            return
        self._complete(CompletionReason.ENDED)

    def _on_error(self, message: str) -> None:
        if self._destroyed:
            return
        self._logger.warning("Video %s failed: %s", self.descriptor.source_url, message)
        self._complete(CompletionReason.ERROR)
