"""Tests for face-count bucketing."""

from domain.models import PresenceBucket
from domain.presence import NO_FRAME_YET, PresenceAggregator


def _run(counts):
    agg = PresenceAggregator()
    events = [agg.update(c, float(i * 100)) for i, c in enumerate(counts)]
    return agg, [e for e in events if e is not None]


def test_only_bucket_crossings_emit():
    agg, events = _run([1, 1, 1, 2, 2, 0])
    assert [e.bucket for e in events] == [
        PresenceBucket.SINGLE,
        PresenceBucket.MULTIPLE,
        PresenceBucket.NONE,
    ]
    assert agg.total_changes == 3


def test_first_frame_always_emits():
    _, events = _run([0])
    assert len(events) == 1
    assert events[0].bucket == PresenceBucket.NONE
    assert events[0].previous_count == NO_FRAME_YET


def test_count_change_inside_multiple_bucket_is_silent():
    agg, events = _run([2, 3, 4, 2])
    assert len(events) == 1
    assert agg.last_face_count == 2


def test_event_messages():
    _, events = _run([1, 3, 0])
    assert events[0].message == "Person detected and present"
    assert events[1].message == "3 people detected. Only 1 person should be on screen"
    assert events[2].message == "No person detected on screen"
    assert events[1].previous_count == 1
    assert events[1].timestamp_ms == 100.0


def test_negative_count_treated_as_zero():
    agg = PresenceAggregator()
    event = agg.update(-2, 0.0)
    assert event is not None
    assert event.bucket == PresenceBucket.NONE
    assert agg.face_count == 0


def test_reset():
    agg, _ = _run([1, 2])
    agg.reset()
    assert agg.bucket is None
    assert agg.total_changes == 0
    assert agg.update(2, 0.0) is not None
