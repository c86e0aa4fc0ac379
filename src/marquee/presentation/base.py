"""
What the playback engine needs from a presentation layer.

A Surface turns an ActiveLayout into positioned regions and hands out
visual elements that media units mount. Element callbacks must be invoked
on the engine's event loop.
"""

from __future__ import annotations

from typing import Callable, Protocol, runtime_checkable

from marquee.domain.entities import MediaDescriptor
from marquee.scheduling.layout_transformer import ActiveLayout


@runtime_checkable
class ImageElement(Protocol):
    """A still image mounted in a region."""

    def load(
        self,
        url: str,
        on_loaded: Callable[[], None],
        on_error: Callable[[str], None],
    ) -> None:
        """Begin loading; exactly one of the callbacks fires later."""
        ...

    def show(self) -> None:
        ...

    def release(self) -> None:
        """Detach from the region and drop any decoded data."""
        ...


@runtime_checkable
class VideoElement(Protocol):
    """A video mounted in a region."""

    muted: bool

    def load(self, url: str) -> None:
        ...

    def play(self) -> None:
        """Start or resume playback.

        Raises:
            AutoplayRejectedError: If the platform refuses to start playback
                without a user gesture.
        """
        ...

    def pause(self) -> None:
        ...

    def rewind(self) -> None:
        """Seek back to the first frame."""
        ...

    def set_ended_callback(self, callback: Callable[[], None]) -> None:
        ...

    def set_error_callback(self, callback: Callable[[str], None]) -> None:
        ...

    def show_manual_trigger(self, callback: Callable[[], None]) -> None:
        """Render a play affordance; ``callback`` runs when it is activated."""
        ...

    def hide_manual_trigger(self) -> None:
        ...

    def release(self) -> None:
        ...


@runtime_checkable
class Surface(Protocol):
    """The screen (or a stand-in for it)."""

    def create_regions(self, layout: ActiveLayout) -> None:
        ...

    def clear(self) -> None:
        """Remove every region and release every element."""
        ...

    def create_image(self, region_id: str, descriptor: MediaDescriptor) -> ImageElement:
        """
        Raises:
            MediaLoadError: If the element cannot be created.
        """
        ...

    def create_video(self, region_id: str, descriptor: MediaDescriptor) -> VideoElement:
        """
        Raises:
            MediaLoadError: If the element cannot be created.
        """
        ...
