"""
Tests for VideoUnit.

Verifies:
- A video completes on its natural end unless force_duration is set
- Rejected autoplay is retried muted, then falls back to a manual trigger
- Decode errors complete the unit with ERROR
- pause()/resume() and fast_loop_restart() act on the element
"""

from __future__ import annotations

import pytest

from marquee.domain.entities import MediaDescriptor
from marquee.playback.media_unit import CompletionReason, UnitState, VideoUnit


def _video(media_id="clip", **extra) -> MediaDescriptor:
    data = {
        "id": media_id,
        "name": f"Video {media_id}",
        "type": "Video",
        "sourceUrl": f"https://cdn.example.com/{media_id}.mp4",
        "duration": 12,
        "mute": False,
    }
    data.update(extra)
    return MediaDescriptor.from_dict(data)


@pytest.fixture
def completions():
    return []


@pytest.fixture
def make_unit(surface, loop, clock, completions):
    def _make(descriptor):
        unit = VideoUnit(descriptor, "r1", surface, loop, clock, completions.append)
        assert unit.load() is True
        return unit

    return _make


def _reasons(completions):
    return [event.reason for event in completions]


class TestPlayback:
    def test_completes_on_natural_end(self, make_unit, loop, completions):
        unit = make_unit(_video())
        unit.play()

        assert unit.state is UnitState.PLAYING
        assert unit.element.muted is False
        assert unit.remaining_time() is None

        loop.advance(11)
        assert completions == []
        loop.advance(1)
        assert _reasons(completions) == [CompletionReason.ENDED]

    def test_force_duration_cuts_the_video_short(self, make_unit, surface, loop, completions):
        surface.video_duration_s = 60
        unit = make_unit(_video(duration=3, forceDuration=True))
        unit.play()

        loop.advance(3)

        assert _reasons(completions) == [CompletionReason.DURATION]
        # Later end-of-media signal is ignored
        loop.advance(60)
        assert len(completions) == 1

    def test_decode_error(self, make_unit, surface, loop, completions):
        descriptor = _video("corrupt")
        surface.decode_error_urls.add(descriptor.source_url)
        unit = make_unit(descriptor)
        unit.play()

        loop.run_pending()

        assert _reasons(completions) == [CompletionReason.ERROR]
        assert unit.state is UnitState.COMPLETED


class TestAutoplayPolicy:
    def test_muted_retry(self, make_unit, surface, loop):
        surface.autoplay_policy = "muted_only"
        unit = make_unit(_video())

        unit.play()

        assert unit.retried_muted
        assert unit.element.muted is True
        assert unit.state is UnitState.PLAYING
        assert unit.element.play_attempts == 2

    def test_manual_trigger_after_muted_retry_fails(self, make_unit, surface, loop, completions):
        surface.autoplay_policy = "deny"
        unit = make_unit(_video())

        unit.play()

        assert unit.retried_muted
        assert unit.awaiting_trigger
        assert unit.state is UnitState.READY
        assert unit.element.manual_trigger is not None
        loop.advance(30)
        assert completions == []

        unit.element.press_manual_trigger()

        assert unit.state is UnitState.PLAYING
        assert not unit.awaiting_trigger
        assert unit.element.manual_trigger is None
        loop.advance(12)
        assert _reasons(completions) == [CompletionReason.ENDED]

    def test_already_muted_goes_straight_to_trigger(self, make_unit, surface):
        surface.autoplay_policy = "deny"
        unit = make_unit(_video(mute=True))

        unit.play()

        assert not unit.retried_muted
        assert unit.awaiting_trigger
        assert unit.element.play_attempts == 1
        assert len(surface.events_of("video.trigger.show")) == 1


class TestControl:
    def test_pause_and_resume(self, make_unit, loop, completions):
        unit = make_unit(_video())
        unit.play()

        loop.advance(4)
        unit.pause()
        assert unit.element.playing is False

        loop.advance(30)
        assert completions == []

        unit.resume()
        assert unit.element.playing is True
        loop.advance(7)
        assert completions == []
        loop.advance(1)
        assert _reasons(completions) == [CompletionReason.ENDED]

    def test_fast_loop_restart_rewinds(self, make_unit, surface, loop, completions):
        unit = make_unit(_video())
        unit.play()
        loop.advance(12)

        assert unit.fast_loop_restart() is True
        assert unit.state is UnitState.PLAYING
        assert len(surface.events_of("video.rewind")) == 1

        loop.advance(12)
        assert len(completions) == 2

    def test_fast_loop_restart_refused_by_policy(self, make_unit, surface, loop):
        unit = make_unit(_video())
        unit.play()
        loop.advance(12)

        surface.autoplay_policy = "deny"
        assert unit.fast_loop_restart() is False

    def test_destroy_ignores_late_end(self, make_unit, surface, loop, completions):
        unit = make_unit(_video())
        unit.play()

        unit.destroy()
        loop.advance(20)

        assert completions == []
        assert unit.element is None
        assert surface.live_elements() == []
