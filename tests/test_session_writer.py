"""Tests for the CSV/JSON session writer."""

import csv
import json

from domain.models import (
    GazeDirection,
    GazeEvent,
    IdleEvent,
    PresenceBucket,
    PresenceEvent,
    RollupRecord,
    StatsSnapshot,
)
from storage.session_writer import SessionWriter


def _read_csv(path):
    with open(path, newline="", encoding="utf-8") as fh:
        return list(csv.DictReader(fh))


def test_writes_rollups_and_events(tmp_path):
    writer = SessionWriter(tmp_path / "session")
    record = RollupRecord(
        session_id="abc",
        period_index=0,
        period_start_ms=0.0,
        period_end_ms=1000.0,
        snapshot=StatsSnapshot(timestamp_ms=1000.0, face_count=1, away_ms=250.0, gaze_state=GazeDirection.SCREEN),
        face_count_changes=1,
        gaze_changes=2,
        frames_received=15,
    )
    writer.write_rollup(record)
    writer.write_event(PresenceEvent(PresenceBucket.MULTIPLE, 2, 1, 100.0))
    writer.write_event(GazeEvent(GazeDirection.AWAY, GazeDirection.SCREEN, 200.0))
    writer.write_event(IdleEvent(True, 300.0))
    writer.close()

    rows = _read_csv(tmp_path / "session" / "rollups.csv")
    assert len(rows) == 1
    assert rows[0]["session_id"] == "abc"
    assert rows[0]["duration_ms"] == "1000.0"
    assert rows[0]["away_ms"] == "250.0"
    assert rows[0]["gaze_state"] == "screen"
    assert writer.rollups == [record]

    events = _read_csv(tmp_path / "session" / "events.csv")
    assert [e["kind"] for e in events] == ["presence", "gaze", "idle"]
    assert events[0]["detail"] == "2 people detected. Only 1 person should be on screen"
    assert events[1]["value"] == "away"
    assert events[2]["value"] == "1"


def test_json_files(tmp_path):
    writer = SessionWriter(tmp_path)
    writer.write_meta({"session_id": "abc", "config": {"target_fps": 15}})
    writer.write_summary({"periods": 0})
    writer.close()

    meta = json.loads((tmp_path / "session_meta.json").read_text(encoding="utf-8"))
    assert meta["config"]["target_fps"] == 15
    assert json.loads((tmp_path / "summary.json").read_text(encoding="utf-8")) == {"periods": 0}


def test_writes_after_close_are_ignored(tmp_path):
    writer = SessionWriter(tmp_path)
    writer.close()
    writer.close()
    writer.write_event(IdleEvent(False, 0.0))
    assert _read_csv(tmp_path / "events.csv") == []
