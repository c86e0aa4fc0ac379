"""
Schedule -> ActiveLayout conversion.

Resolves every position/size default so the presentation layer receives a
complete description. The transformation is pure; an ActiveLayout is
replaced wholesale on every schedule change and never mutated.
"""

from __future__ import annotations

from dataclasses import dataclass

from marquee.domain.entities import MediaDescriptor, Schedule

DEFAULT_LAYOUT_WIDTH = 1920
DEFAULT_LAYOUT_HEIGHT = 1080
UNKNOWN_LAYOUT_ID = "unknown-layout"


@dataclass(frozen=True)
class RegionLayout:
    """A positioned region with its ordered playlist."""

    id: str
    name: str
    left: float
    top: float
    width: float
    height: float
    z_index: int
    is_percentage: bool
    loop: bool
    playlist: tuple[MediaDescriptor, ...]

    @property
    def unit(self) -> str:
        return "%" if self.is_percentage else "px"


@dataclass(frozen=True)
class ActiveLayout:
    """The renderable form of the selected schedule."""

    id: str
    name: str
    schedule_id: str
    width: int
    height: int
    regions: tuple[RegionLayout, ...]

    def media_urls(self) -> list[str]:
        """Every source URL once, in playlist order."""
        seen: dict[str, None] = {}
        for region in self.regions:
            for media in region.playlist:
                if media.source_url:
                    seen.setdefault(media.source_url, None)
        return list(seen)

    def region(self, region_id: str) -> RegionLayout | None:
        for region in self.regions:
            if region.id == region_id:
                return region
        return None


def _or(value, default):
    return default if value is None else value


def to_layout(schedule: Schedule) -> ActiveLayout:
    """Convert a schedule into an ActiveLayout."""
    layout_id = schedule.layout_id or schedule.id or UNKNOWN_LAYOUT_ID

    regions = []
    for index, region in enumerate(schedule.regions):
        # sorted() is stable, so equal ordinals keep document order.
        playlist = tuple(sorted(region.media, key=lambda media: media.ordinal))
        regions.append(
            RegionLayout(
                id=region.id or f"region_{index}",
                name=region.name or f"Region {index + 1}",
                left=_or(region.left, 0.0),
                top=_or(region.top, 0.0),
                width=_or(region.width, 100.0),
                height=_or(region.height, 100.0),
                z_index=_or(region.z_index, 1),
                is_percentage=not region.in_pixels,
                loop=region.loop,
                playlist=playlist,
            )
        )

    return ActiveLayout(
        id=layout_id,
        name=schedule.name or f"Layout {layout_id}",
        schedule_id=schedule.id,
        width=schedule.width or DEFAULT_LAYOUT_WIDTH,
        height=schedule.height or DEFAULT_LAYOUT_HEIGHT,
        regions=tuple(regions),
    )
