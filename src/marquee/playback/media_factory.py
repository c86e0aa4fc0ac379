"""Media classification and MediaUnit construction."""

from __future__ import annotations

import logging
from pathlib import PurePosixPath
from urllib.parse import urlparse

from marquee.domain.entities import DEFAULT_MEDIA_DURATION_S, MediaDescriptor, MediaType
from marquee.infra.exceptions import ContractError
from marquee.runtime.clock import WallClock
from marquee.runtime.event_loop import EventLoop

from .media_unit import (
    DEFAULT_IMAGE_LOAD_TIMEOUT_S,
    CompletionListener,
    ImageUnit,
    MediaUnit,
    VideoUnit,
)

_logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = frozenset(
    {".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp", ".svg", ".avif"}
)
VIDEO_EXTENSIONS = frozenset(
    {".mp4", ".webm", ".ogg", ".ogv", ".mov", ".m4v", ".mkv", ".avi"}
)


def _from_content_type(content_type: str | None) -> MediaType:
    if not content_type:
        return MediaType.UNKNOWN
    major = content_type.split(";", 1)[0].strip().lower()
    if major.startswith("image/"):
        return MediaType.IMAGE
    if major.startswith("video/"):
        return MediaType.VIDEO
    return MediaType.UNKNOWN


def _from_extension(url: str) -> MediaType:
    if not url:
        return MediaType.UNKNOWN
    suffix = PurePosixPath(urlparse(url).path).suffix.lower()
    if suffix in IMAGE_EXTENSIONS:
        return MediaType.IMAGE
    if suffix in VIDEO_EXTENSIONS:
        return MediaType.VIDEO
    return MediaType.UNKNOWN


def classify_media(descriptor: MediaDescriptor) -> MediaType:
    """
    Decide how a descriptor is played.

    Tiers, first match wins: explicit type, content type, URL extension,
    then IMAGE.
    """
    if descriptor.type is not MediaType.UNKNOWN:
        return descriptor.type
    for tier in (
        _from_content_type(descriptor.content_type),
        _from_extension(descriptor.source_url),
    ):
        if tier is not MediaType.UNKNOWN:
            return tier
    return MediaType.IMAGE


class MediaUnitFactory:
    """Builds the MediaUnit variant matching a descriptor."""

    def __init__(
        self,
        surface,
        loop: EventLoop,
        clock: WallClock,
        image_load_timeout_s: float = DEFAULT_IMAGE_LOAD_TIMEOUT_S,
        default_duration_s: float = DEFAULT_MEDIA_DURATION_S,
    ):
        if surface is None or loop is None or clock is None:
            raise ContractError("MediaUnitFactory requires a surface, an event loop and a clock")
        self.surface = surface
        self.loop = loop
        self.clock = clock
        self.image_load_timeout_s = image_load_timeout_s
        self.default_duration_s = default_duration_s

    def create(
        self,
        descriptor: MediaDescriptor,
        region_id: str,
        listener: CompletionListener | None,
    ) -> MediaUnit:
        media_type = classify_media(descriptor)
        _logger.debug("Creating %s unit for %s", media_type.value, descriptor.id)
        if media_type is MediaType.VIDEO:
            return VideoUnit(
                descriptor,
                region_id,
                self.surface,
                self.loop,
                self.clock,
                listener,
                default_duration_s=self.default_duration_s,
            )
        return ImageUnit(
            descriptor,
            region_id,
            self.surface,
            self.loop,
            self.clock,
            listener,
            default_duration_s=self.default_duration_s,
            load_timeout_s=self.image_load_timeout_s,
        )
