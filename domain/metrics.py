"""Build statistics snapshots and rollup summaries from session state."""

from __future__ import annotations

import statistics
from typing import TYPE_CHECKING, Any, Optional, Sequence

from domain.models import RollupRecord, StatsSnapshot

if TYPE_CHECKING:
    from domain.session import TrackingSession


def build_snapshot(session: Optional["TrackingSession"], now_ms: float) -> StatsSnapshot:
    """Read-only projection of *session* at *now_ms*.

    ``None`` (no running session) yields an all-zero snapshot.
    """
    if session is None:
        return StatsSnapshot(timestamp_ms=now_ms)
    return StatsSnapshot(
        timestamp_ms=now_ms,
        face_count=session.presence.face_count,
        away_ms=session.accumulator.away_ms(now_ms),
        distracted_ms=session.accumulator.distracted_ms(now_ms),
        confidence=round(session.last_confidence * 100),
        processing_fps=session.cadence.processing_fps(now_ms),
        frames_skipped=session.frames_skipped,
        overlay_updates=session.overlay_updates,
        face_count_changes=session.face_count_changes,
        gaze_state=session.smoother.current_state,
        is_running=True,
        is_idle=session.cadence.is_idle,
    )


def build_rollup(session: "TrackingSession", now_ms: float) -> RollupRecord:
    """Aggregate for the reporting period ending at *now_ms*.  Pure; the
    caller resets the period counters afterwards."""
    return RollupRecord(
        session_id=session.session_id,
        period_index=session.period_index,
        period_start_ms=session.period_start_ms,
        period_end_ms=now_ms,
        snapshot=build_snapshot(session, now_ms),
        face_count_changes=session.face_count_changes,
        gaze_changes=session.gaze_changes,
        frames_received=session.frames_received,
    )


def summarize_rollups(rollups: Sequence[RollupRecord]) -> dict[str, Any]:
    """Flat, JSON-friendly summary of a whole session's rollups."""
    if not rollups:
        return {
            "periods": 0,
            "total_duration_s": 0.0,
            "away_s": 0.0,
            "distracted_s": 0.0,
            "away_pct": 0.0,
            "distracted_pct": 0.0,
            "face_count_changes": 0,
            "gaze_changes": 0,
            "avg_processing_fps": 0.0,
            "max_frames_skipped": 0,
        }

    last = rollups[-1].snapshot
    duration_ms = rollups[-1].period_end_ms - rollups[0].period_start_ms
    total = duration_ms if duration_ms > 0 else 1.0
    fps_values = [r.snapshot.processing_fps for r in rollups]

    # Away/distracted totals are cumulative, so the last snapshot holds the session value
    return {
        "periods": len(rollups),
        "total_duration_s": round(duration_ms / 1000.0, 3),
        "away_s": round(last.away_ms / 1000.0, 3),
        "distracted_s": round(last.distracted_ms / 1000.0, 3),
        "away_pct": round(last.away_ms / total * 100, 1),
        "distracted_pct": round(last.distracted_ms / total * 100, 1),
        "face_count_changes": sum(r.face_count_changes for r in rollups),
        "gaze_changes": sum(r.gaze_changes for r in rollups),
        "avg_processing_fps": round(statistics.mean(fps_values), 1),
        "max_frames_skipped": max(r.snapshot.frames_skipped for r in rollups),
    }
