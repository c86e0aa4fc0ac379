"""Playback: item-by-item playback of the active layout's regions."""

from .engine import PlaybackEngine, PlaybackStatus
from .media_factory import MediaUnitFactory, classify_media
from .media_unit import (
    CompletionEvent,
    CompletionReason,
    ImageUnit,
    MediaUnit,
    UnitState,
    VideoUnit,
)
from .playlist import Playlist, PlaylistState, PlaylistStatus

__all__ = [
    "CompletionEvent",
    "CompletionReason",
    "ImageUnit",
    "MediaUnit",
    "MediaUnitFactory",
    "PlaybackEngine",
    "PlaybackStatus",
    "Playlist",
    "PlaylistState",
    "PlaylistStatus",
    "UnitState",
    "VideoUnit",
    "classify_media",
]
