"""
Global test configuration for Marquee.

Provides a deterministic runtime: a SteppedClock fixed at Monday
2026-03-02 10:45:00 UTC and a ManualEventLoop advancing it in lockstep.
Nothing in the suite sleeps.
"""

from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Ensure the project src directory is importable without relying on external environment.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from marquee.playback.media_factory import MediaUnitFactory
from marquee.presentation.headless import HeadlessSurface
from marquee.runtime.clock import SteppedClock
from marquee.runtime.event_loop import ManualEventLoop
from marquee.scheduling.layout_transformer import ActiveLayout, RegionLayout

T0 = datetime(2026, 3, 2, 10, 45, 0, tzinfo=timezone.utc)


def image_media(media_id: str, duration: float = 5, **extra) -> dict:
    """A media entry in document form."""
    entry = {
        "id": media_id,
        "name": f"Media {media_id}",
        "type": "Image",
        "sourceUrl": f"https://cdn.example.com/{media_id}.jpg",
        "duration": duration,
        "ordinal": 1,
        "mute": True,
    }
    entry.update(extra)
    return entry


def schedule_entry(schedule_id: str, expression: str | None, media_ids=("a", "b")) -> dict:
    """A schedule with one full-screen region."""
    return {
        "id": schedule_id,
        "name": schedule_id,
        "recurrenceExpression": expression,
        "layoutId": f"layout-{schedule_id}",
        "regions": [
            {
                "id": f"{schedule_id}-main",
                "name": "Main",
                "left": 0,
                "top": 0,
                "width": 100,
                "height": 100,
                "zIndex": 1,
                "loop": True,
                "media": [
                    image_media(f"{schedule_id}-{media_id}", ordinal=index + 1)
                    for index, media_id in enumerate(media_ids)
                ],
            }
        ],
    }


def sample_document() -> dict:
    """Two schedules: top of every hour, and half past every hour."""
    return {
        "configurationId": "5f1e2d3c4b5a697887766554",
        "publishedAt": "2026-03-01T08:00:00Z",
        "schedules": [
            schedule_entry("top-of-hour", "0 0 * * * *"),
            schedule_entry("half-past", "0 30 * * * *"),
        ],
    }


@pytest.fixture
def document() -> dict:
    return sample_document()


@pytest.fixture
def clock() -> SteppedClock:
    return SteppedClock(T0)


@pytest.fixture
def loop(clock) -> ManualEventLoop:
    return ManualEventLoop(clock=clock)


@pytest.fixture
def surface(loop) -> HeadlessSurface:
    """Headless surface with regions r1 and r2 already created."""
    headless = HeadlessSurface(loop)
    headless.create_regions(
        ActiveLayout(
            id="fixture-layout",
            name="Fixture",
            schedule_id="fixture",
            width=1920,
            height=1080,
            regions=tuple(
                RegionLayout(
                    id=region_id,
                    name=region_id,
                    left=0.0,
                    top=0.0,
                    width=100.0,
                    height=100.0,
                    z_index=1,
                    is_percentage=True,
                    loop=True,
                    playlist=(),
                )
                for region_id in ("r1", "r2")
            ),
        )
    )
    return headless


@pytest.fixture
def factory(surface, loop, clock) -> MediaUnitFactory:
    return MediaUnitFactory(surface, loop, clock)


def region_layout(media, loop: bool = True, region_id: str = "r1") -> RegionLayout:
    """A RegionLayout playing ``media`` (MediaDescriptor instances)."""
    return RegionLayout(
        id=region_id,
        name=region_id,
        left=0.0,
        top=0.0,
        width=100.0,
        height=100.0,
        z_index=1,
        is_percentage=True,
        loop=loop,
        playlist=tuple(media),
    )


@pytest.fixture
def make_media():
    return image_media


@pytest.fixture
def make_schedule():
    return schedule_entry


@pytest.fixture
def make_region():
    return region_layout
