"""Per-session frame processing: cadence, presence, gaze, accumulation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional, Union

from domain.accumulator import AttentionAccumulator
from domain.cadence import CadenceController
from domain.classifier import classify_gaze
from domain.metrics import build_rollup, build_snapshot
from domain.models import (
    FrameResult,
    GazeDirection,
    GazeEvent,
    GazeSample,
    IdleEvent,
    OverlayFrame,
    PresenceBucket,
    PresenceEvent,
    RollupRecord,
    StatsSnapshot,
)
from domain.presence import PresenceAggregator
from domain.smoother import GazeSmoother

if TYPE_CHECKING:
    from app.config import Config

logger = logging.getLogger(__name__)

SessionEvent = Union[PresenceEvent, GazeEvent, IdleEvent]

# With reduced overlay work, refresh at least this often
_OVERLAY_REFRESH_MS = 500.0


@dataclass
class FrameOutcome:
    """What one call to :meth:`TrackingSession.process` produced."""

    timestamp_ms: float
    processed: bool = False
    events: list[SessionEvent] = field(default_factory=list)
    sample: Optional[GazeSample] = None
    overlay: Optional[OverlayFrame] = None


class TrackingSession:
    """All mutable state of one start()/stop() cycle.

    Strictly synchronous: the caller serialises calls to :meth:`process`,
    :meth:`snapshot` and :meth:`rollup`.
    """

    def __init__(self, config: "Config", session_id: str, start_ms: float) -> None:
        self.session_id = session_id
        self.started_ms = start_ms

        self.cadence = CadenceController()
        self.presence = PresenceAggregator()
        self.smoother = GazeSmoother(config.gaze_history_size)
        self.accumulator = AttentionAccumulator()

        self.horizontal_threshold = config.horizontal_threshold
        self.vertical_threshold = config.vertical_threshold
        self.reduced_canvas = config.reduced_canvas

        # Cumulative counters
        self.frames_skipped = 0
        self.overlay_updates = 0
        self.classifier_calls = 0
        self.last_confidence = 0.0

        # Interval-scoped counters, cleared by rollup()
        self.period_index = 0
        self.period_start_ms = start_ms
        self.face_count_changes = 0
        self.gaze_changes = 0
        self.frames_received = 0

        self._last_overlay_ms: Optional[float] = None
        self._overlay_face_count: Optional[int] = None
        self._pending: list[SessionEvent] = []

        self.smoother.set_on_transition(self._on_gaze_transition)
        self.configure(config)
        self.cadence.reset(start_ms)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def configure(self, config: "Config", reset_history: bool = False) -> None:
        """Apply *config* to the live session.

        The smoothing window is cleared when its length changes or when
        *reset_history* is set.
        """
        self.cadence.configure(
            target_fps=config.target_fps,
            frame_skip=config.frame_skip,
            pause_on_idle=config.pause_on_idle,
            idle_timeout_ms=config.idle_timeout_ms,
        )
        self.horizontal_threshold = config.horizontal_threshold
        self.vertical_threshold = config.vertical_threshold
        self.reduced_canvas = config.reduced_canvas
        if reset_history or config.gaze_history_size != self.smoother.history_size:
            self.smoother.resize(config.gaze_history_size)

    # ------------------------------------------------------------------
    # Frame processing
    # ------------------------------------------------------------------

    def process(self, frame: FrameResult) -> FrameOutcome:
        now = frame.timestamp_ms
        outcome = FrameOutcome(timestamp_ms=now)
        self.frames_received += 1

        if not self.cadence.admit(now):
            self.frames_skipped += 1
            return outcome

        face_count = frame.face_count
        idle_change = self.cadence.observe_faces(face_count, now)
        if idle_change is not None:
            outcome.events.append(IdleEvent(is_idle=idle_change, timestamp_ms=now))
        if self.cadence.is_idle:
            # Away interval (if open) keeps running; nothing else is touched
            return outcome

        outcome.processed = True
        self.last_confidence = frame.mean_confidence

        presence_event = self.presence.update(face_count, now)
        if presence_event is not None:
            self.face_count_changes += 1
            outcome.events.append(presence_event)
            if presence_event.bucket is PresenceBucket.NONE:
                self.smoother.clear()
                self.smoother.update(GazeDirection.UNKNOWN, now)
        self.accumulator.update_presence(face_count, now)

        if self.cadence.take_landmark_turn():
            outcome.sample = self._run_landmark_path(frame, now)
        else:
            self.frames_skipped += 1

        self.accumulator.update_gaze(self.smoother.current_state, face_count, now)

        outcome.events.extend(self._pending)
        self._pending.clear()
        outcome.overlay = self._build_overlay(frame, outcome.sample, now)
        return outcome

    def _run_landmark_path(self, frame: FrameResult, now: float) -> Optional[GazeSample]:
        if frame.landmarks is None:
            self.smoother.update(GazeDirection.UNKNOWN, now)
            return None

        self.classifier_calls += 1
        sample = classify_gaze(frame.landmarks, self.horizontal_threshold, self.vertical_threshold)
        if sample is None:
            self.smoother.update(GazeDirection.UNKNOWN, now)
        else:
            self.smoother.update(sample.direction, now, sample)
        return sample

    def _build_overlay(
        self,
        frame: FrameResult,
        sample: Optional[GazeSample],
        now: float,
    ) -> Optional[OverlayFrame]:
        due = (
            not self.reduced_canvas
            or frame.face_count != self._overlay_face_count
            or self._last_overlay_ms is None
            or now - self._last_overlay_ms > _OVERLAY_REFRESH_MS
        )
        if not due:
            return None

        self.overlay_updates += 1
        self._last_overlay_ms = now
        self._overlay_face_count = frame.face_count
        if sample is None:
            return OverlayFrame(
                timestamp_ms=now,
                detections=tuple(frame.detections),
                direction=self.smoother.current_state or GazeDirection.UNKNOWN,
            )
        return OverlayFrame(
            timestamp_ms=now,
            detections=tuple(frame.detections),
            direction=sample.direction,
            left_eye_center=sample.left_eye_center,
            right_eye_center=sample.right_eye_center,
            face_center=sample.face_center,
            gaze_vector=(sample.horizontal_offset, sample.vertical_offset),
        )

    def _on_gaze_transition(self, event: GazeEvent) -> None:
        self.gaze_changes += 1
        self._pending.append(event)

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def snapshot(self, now_ms: float) -> StatsSnapshot:
        return build_snapshot(self, now_ms)

    def rollup(self, now_ms: float) -> RollupRecord:
        """Return the record for the current period and start a new one."""
        record = build_rollup(self, now_ms)
        self.period_index += 1
        self.period_start_ms = now_ms
        self.face_count_changes = 0
        self.gaze_changes = 0
        self.frames_received = 0
        return record

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    def close(self, now_ms: float) -> None:
        """Force both accumulation axes closed and drop all history."""
        logger.debug(
            "Session %s closing: away=%.0f ms distracted=%.0f ms",
            self.session_id,
            self.accumulator.away_ms(now_ms),
            self.accumulator.distracted_ms(now_ms),
        )
        self.accumulator.reset()
        self.smoother.reset()
        self.presence.reset()
        self.cadence.reset(now_ms)
        self._pending.clear()
