"""Tests for configuration document parsing.

Verifies:
- Documented keys and legacy publisher aliases both parse
- Media defaults (duration, ordinal, mute)
- Wrapped crontab values are unwrapped
- Malformed entries are skipped; malformed documents raise
- is_usable requires at least one schedule with a region
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from marquee.domain.entities import (
    Configuration,
    MediaDescriptor,
    MediaType,
    Region,
    Schedule,
    parse_instant,
)
from marquee.infra.exceptions import ConfigurationFormatError


class TestMediaDescriptor:
    def test_defaults(self):
        media = MediaDescriptor.from_dict({"name": "Logo", "sourceUrl": "https://x/logo.png"})

        assert media.duration == 10.0
        assert media.ordinal == 1
        assert media.mute is True
        assert media.type is MediaType.UNKNOWN
        assert media.id == "media_0"

    def test_non_positive_duration_falls_back_to_default(self):
        media = MediaDescriptor.from_dict({"name": "x", "sourceUrl": "u", "duration": 0})
        assert media.duration == 10.0

    def test_legacy_aliases(self):
        media = MediaDescriptor.from_dict(
            {
                "mediaEid": "m1",
                "name": "Promo",
                "type": "VIDEO",
                "file": "https://cdn/promo.mp4",
                "mute": False,
                "validFrom": "2026-03-01T00:00:00Z",
                "validTo": "2026-03-31T23:59:59",
            }
        )

        assert media.id == "m1"
        assert media.type is MediaType.VIDEO
        assert media.source_url == "https://cdn/promo.mp4"
        assert media.mute is False
        assert media.valid_from == datetime(2026, 3, 1, tzinfo=timezone.utc)
        # Naive timestamps are UTC
        assert media.valid_to == datetime(2026, 3, 31, 23, 59, 59, tzinfo=timezone.utc)

    def test_validity_window(self):
        media = MediaDescriptor.from_dict(
            {
                "name": "x",
                "sourceUrl": "u",
                "validFrom": "2026-03-01T00:00:00Z",
                "validTo": "2026-03-02T00:00:00Z",
            }
        )

        assert media.has_validity_window
        assert media.is_valid_at(datetime(2026, 3, 1, 12, tzinfo=timezone.utc))
        assert not media.is_valid_at(datetime(2026, 2, 28, tzinfo=timezone.utc))
        assert not media.is_valid_at(datetime(2026, 3, 2, 0, 0, 1, tzinfo=timezone.utc))

    def test_invalid_timestamp_raises(self):
        with pytest.raises(ConfigurationFormatError):
            MediaDescriptor.from_dict({"name": "x", "sourceUrl": "u", "validFrom": "soon"})


class TestScheduleAndRegion:
    def test_wrapped_crontab_is_unwrapped(self):
        schedule = Schedule.from_dict(
            {"eid": "s1", "crontab": [{"string": "0 */5 * * * *"}], "layoutPlaylists": []}
        )

        assert schedule.id == "s1"
        assert schedule.recurrence_expression == "0 */5 * * * *"
        assert not schedule.has_layout

    def test_region_positions_stay_unset_when_missing(self):
        region = Region.from_dict({"media": []})

        assert region.left is None
        assert region.width is None
        assert region.z_index is None
        assert region.in_pixels is False

    def test_malformed_media_entry_is_skipped(self):
        region = Region.from_dict(
            {
                "id": "r",
                "zindex": 3,
                "playlistMedias": [
                    {"name": "ok", "sourceUrl": "u"},
                    {"name": "bad", "sourceUrl": "u", "validTo": "never"},
                ],
            }
        )

        assert region.z_index == 3
        assert [media.name for media in region.media] == ["ok"]

    def test_region_media_must_be_a_list(self):
        with pytest.raises(ConfigurationFormatError):
            Region.from_dict({"media": "nope"})


class TestConfiguration:
    def test_parses_sample_document(self, document):
        configuration = Configuration.from_dict(document)

        assert configuration.configuration_id == "5f1e2d3c4b5a697887766554"
        assert configuration.published_at == datetime(2026, 3, 1, 8, tzinfo=timezone.utc)
        assert [s.id for s in configuration.schedules] == ["top-of-hour", "half-past"]
        assert configuration.is_usable

    def test_equal_documents_produce_equal_configurations(self, document):
        assert Configuration.from_dict(document) == Configuration.from_dict(document)

    def test_missing_schedules_raises(self):
        with pytest.raises(ConfigurationFormatError):
            Configuration.from_dict({"configurationId": "x"})

    def test_non_object_document_raises(self):
        with pytest.raises(ConfigurationFormatError):
            Configuration.from_dict(["not", "a", "document"])

    def test_malformed_schedule_is_skipped(self, document):
        document["schedules"].append("garbage")

        configuration = Configuration.from_dict(document)

        assert len(configuration.schedules) == 2

    def test_not_usable_without_regions(self):
        configuration = Configuration.from_dict(
            {"configurationEid": "c", "schedules": [{"id": "s", "crontab": "* * * * *"}]}
        )

        assert configuration.configuration_id == "c"
        assert not configuration.is_usable


class TestParseInstant:
    def test_empty_values(self):
        assert parse_instant(None) is None
        assert parse_instant("") is None

    def test_offset_is_preserved(self):
        parsed = parse_instant("2026-03-02T12:00:00+02:00")
        assert parsed == datetime(2026, 3, 2, 10, tzinfo=timezone.utc)
