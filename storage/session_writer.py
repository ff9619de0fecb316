"""Safe, buffered writer for session rollups and change events."""

from __future__ import annotations

import csv
import json
import logging
from pathlib import Path
from typing import Any, Union

from domain.models import GazeEvent, IdleEvent, PresenceEvent, RollupRecord

logger = logging.getLogger(__name__)

_ROLLUP_FIELDS = [
    "session_id", "period_index",
    "period_start_ms", "period_end_ms", "duration_ms",
    "face_count_changes", "gaze_changes", "frames_received",
    "face_count", "away_ms", "distracted_ms",
    "confidence", "processing_fps", "frames_skipped", "overlay_updates",
    "gaze_state", "is_idle",
]
_EVENT_FIELDS = ["timestamp_ms", "kind", "value", "detail"]

ChangeEvent = Union[PresenceEvent, GazeEvent, IdleEvent]


class SessionWriter:
    """Creates a session directory and writes CSV/JSON files with line-buffering
    so data is not lost if the process crashes."""

    def __init__(self, session_dir: Path) -> None:
        self.session_dir = session_dir
        session_dir.mkdir(parents=True, exist_ok=True)

        # buffering=1 is line-buffered in text mode
        self._rf = open(session_dir / "rollups.csv", "w", newline="", buffering=1, encoding="utf-8")
        self._ef = open(session_dir / "events.csv", "w", newline="", buffering=1, encoding="utf-8")

        self._rw = csv.DictWriter(self._rf, fieldnames=_ROLLUP_FIELDS)
        self._ew = csv.DictWriter(self._ef, fieldnames=_EVENT_FIELDS)
        self._rw.writeheader()
        self._ew.writeheader()

        self._closed = False
        self.rollups: list[RollupRecord] = []
        logger.info("SessionWriter opened at %s", session_dir)

    # ------------------------------------------------------------------
    # Write methods
    # ------------------------------------------------------------------

    def write_rollup(self, r: RollupRecord) -> None:
        if self._closed:
            return
        s = r.snapshot
        self._rw.writerow(
            {
                "session_id": r.session_id,
                "period_index": r.period_index,
                "period_start_ms": f"{r.period_start_ms:.1f}",
                "period_end_ms": f"{r.period_end_ms:.1f}",
                "duration_ms": f"{r.duration_ms:.1f}",
                "face_count_changes": r.face_count_changes,
                "gaze_changes": r.gaze_changes,
                "frames_received": r.frames_received,
                "face_count": s.face_count,
                "away_ms": f"{s.away_ms:.1f}",
                "distracted_ms": f"{s.distracted_ms:.1f}",
                "confidence": s.confidence,
                "processing_fps": s.processing_fps,
                "frames_skipped": s.frames_skipped,
                "overlay_updates": s.overlay_updates,
                "gaze_state": s.gaze_state.value if s.gaze_state else "",
                "is_idle": int(s.is_idle),
            }
        )
        self.rollups.append(r)

    def write_event(self, ev: ChangeEvent) -> None:
        if self._closed:
            return
        if isinstance(ev, PresenceEvent):
            row = {"kind": "presence", "value": ev.bucket.value, "detail": ev.message}
        elif isinstance(ev, GazeEvent):
            detail = f"{ev.sample.confidence:.2f}" if ev.sample else ""
            row = {"kind": "gaze", "value": ev.state.value, "detail": detail}
        else:
            row = {"kind": "idle", "value": int(ev.is_idle), "detail": ""}
        row["timestamp_ms"] = f"{ev.timestamp_ms:.1f}"
        self._ew.writerow(row)

    def write_meta(self, meta: dict[str, Any]) -> None:
        _write_json(self.session_dir / "session_meta.json", meta)

    def write_summary(self, summary: dict[str, Any]) -> None:
        _write_json(self.session_dir / "summary.json", summary)

    # ------------------------------------------------------------------
    # Close
    # ------------------------------------------------------------------

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._rf.close()
        self._ef.close()
        logger.info("SessionWriter closed.")


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _write_json(path: Path, data: Any) -> None:
    try:
        with open(path, "w", encoding="utf-8") as fh:
            json.dump(data, fh, indent=2, default=str)
    except OSError as exc:
        logger.error("Failed to write %s: %s", path, exc)
