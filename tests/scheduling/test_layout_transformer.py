"""Tests for Schedule -> ActiveLayout conversion."""

from __future__ import annotations

from marquee.domain.entities import Schedule
from marquee.scheduling.layout_transformer import (
    DEFAULT_LAYOUT_HEIGHT,
    DEFAULT_LAYOUT_WIDTH,
    UNKNOWN_LAYOUT_ID,
    to_layout,
)

from conftest import image_media, schedule_entry


def test_document_schedule(document):
    layout = to_layout(Schedule.from_dict(document["schedules"][1]))

    assert layout.id == "layout-half-past"
    assert layout.name == "half-past"
    assert layout.schedule_id == "half-past"
    assert (layout.width, layout.height) == (DEFAULT_LAYOUT_WIDTH, DEFAULT_LAYOUT_HEIGHT)
    assert [region.id for region in layout.regions] == ["half-past-main"]
    assert [media.id for media in layout.regions[0].playlist] == ["half-past-a", "half-past-b"]


def test_region_defaults():
    schedule = Schedule.from_dict(
        {
            "id": "s1",
            "recurrenceExpression": "0 0 * * * *",
            "regions": [{"media": [image_media("x")]}, {"media": []}],
        }
    )

    layout = to_layout(schedule)

    assert layout.id == "s1"
    first, second = layout.regions
    assert (first.id, first.name) == ("region_0", "Region 1")
    assert (second.id, second.name) == ("region_1", "Region 2")
    assert (first.left, first.top, first.width, first.height) == (0.0, 0.0, 100.0, 100.0)
    assert first.z_index == 1
    assert first.is_percentage
    assert first.unit == "%"
    assert first.loop


def test_pixel_region_and_layout_size():
    entry = schedule_entry("px", "0 0 * * * *")
    entry["width"] = 1280
    entry["height"] = 720
    entry["regions"][0].update({"inPixels": True, "left": 10, "width": 640})

    layout = to_layout(Schedule.from_dict(entry))

    region = layout.regions[0]
    assert (layout.width, layout.height) == (1280, 720)
    assert region.unit == "px"
    assert (region.left, region.width) == (10.0, 640.0)


def test_layout_id_fallbacks():
    nameless = Schedule(id="", name="", recurrence_expression=None, layout_id=None)

    layout = to_layout(nameless)

    assert layout.id == UNKNOWN_LAYOUT_ID
    assert layout.name == f"Layout {UNKNOWN_LAYOUT_ID}"


def test_playlist_sorted_by_ordinal_stably():
    entry = schedule_entry("sorted", "0 0 * * * *", media_ids=())
    entry["regions"][0]["media"] = [
        image_media("c", ordinal=3),
        image_media("b1", ordinal=2),
        image_media("a", ordinal=1),
        image_media("b2", ordinal=2),
    ]

    playlist = to_layout(Schedule.from_dict(entry)).regions[0].playlist

    assert [media.id for media in playlist] == ["a", "b1", "b2", "c"]


def test_media_urls_deduplicated_in_order():
    entry = schedule_entry("urls", "0 0 * * * *", media_ids=("x", "y"))
    second_region = dict(entry["regions"][0], id="side")
    second_region["media"] = [image_media("again", sourceUrl=entry["regions"][0]["media"][0]["sourceUrl"])]
    entry["regions"].append(second_region)

    layout = to_layout(Schedule.from_dict(entry))

    assert layout.media_urls() == [
        "https://cdn.example.com/urls-x.jpg",
        "https://cdn.example.com/urls-y.jpg",
    ]
    assert layout.region("side") is not None
    assert layout.region("missing") is None


def test_equal_schedules_give_equal_layouts(document):
    first = to_layout(Schedule.from_dict(document["schedules"][0]))
    second = to_layout(Schedule.from_dict(document["schedules"][0]))

    assert first == second
