"""Session engine – public start/stop/submit/configure contract."""

from __future__ import annotations

import dataclasses
import logging
import threading
import time
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Iterator, Mapping, Optional

from app.config import Config, canonical_name, resolve_config
from app.scheduler import RepeatingTimer
from domain.errors import ModelsNotReadyError
from domain.models import (
    FrameResult,
    GazeEvent,
    IdleEvent,
    OverlayFrame,
    PresenceEvent,
    RollupRecord,
    StatsSnapshot,
)
from domain.session import FrameOutcome, TrackingSession
from vision.frame_adapter import frame_from_results

logger = logging.getLogger(__name__)


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class SessionEngine:
    """Owns at most one :class:`TrackingSession` and routes frames into it.

    Frame submission, settings changes and the rollup timer all go through
    one re-entrant lock, so they never interleave.  Frame timestamps must be
    in the same time base as *clock* (monotonic milliseconds by default);
    frames without a timestamp are stamped with ``clock()``.

    Callbacks are plain attributes, ``None`` by default.  They run while the
    lock is held; an exception raised by a callback is logged and dropped.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        clock: Callable[[], float] = monotonic_ms,
    ) -> None:
        self.config = config or Config()
        self._clock = clock
        self._lock = threading.RLock()
        # re-entry depth of _lock on the owning thread
        self._lock_depth = 0

        self._ready = False
        self._session: Optional[TrackingSession] = None
        self._timer: Optional[RepeatingTimer] = None
        self._sessions_started = 0
        self._frames_skipped_stopped = 0

        # Callbacks (set by the caller)
        self.on_ready: Optional[Callable[[], None]] = None
        self.on_error: Optional[Callable[[Exception], None]] = None
        self.on_face_count_change: Optional[Callable[[PresenceEvent], None]] = None
        self.on_gaze_change: Optional[Callable[[GazeEvent], None]] = None
        self.on_idle_change: Optional[Callable[[IdleEvent], None]] = None
        self.on_overlay: Optional[Callable[[OverlayFrame], None]] = None
        self.on_stats: Optional[Callable[[StatsSnapshot], None]] = None
        self.on_rollup: Optional[Callable[[RollupRecord], None]] = None

    # ------------------------------------------------------------------
    # Collaborator signals
    # ------------------------------------------------------------------

    def mark_ready(self) -> None:
        """Called once by the vision collaborator when its models are loaded."""
        with self._locked():
            if self._ready:
                return
            self._ready = True
            logger.info("Vision models loaded; engine ready.")
            self._emit(self.on_ready)

    def report_error(self, error: Exception) -> None:
        """Surface a collaborator failure without touching session statistics."""
        logger.error("Vision collaborator error: %s", error)
        with self._locked():
            self._emit(self.on_error, error)

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def start(self) -> str:
        """Begin a fresh session and return its id.

        Raises ``ModelsNotReadyError`` until :meth:`mark_ready` was called.
        """
        with self._locked():
            if not self._ready:
                raise ModelsNotReadyError()
            if self._session is not None:
                logger.warning("start() ignored: session %s already running", self._session.session_id)
                return self._session.session_id

            self._sessions_started += 1
            session_id = datetime.now().strftime("%Y-%m-%d_%H-%M-%S") + f"_{self._sessions_started}"
            self._session = TrackingSession(self.config, session_id, self._clock())
            self._frames_skipped_stopped = 0
            self._timer = self._make_timer(self._session)
            logger.info("Session started: %s", session_id)
            return session_id

    def stop(self) -> None:
        """End the running session; safe to call when already stopped."""
        with self._locked():
            session, timer = self._session, self._timer
            self._session = None
            self._timer = None
            if session is not None:
                session.close(self._clock())
            # called from a callback: the lock stays held after this block
            nested = self._lock_depth > 1

        # Join outside the lock: the timer thread may be waiting on it
        if timer is not None:
            timer.cancel(wait=not nested)
        if session is not None:
            logger.info("Session stopped: %s", session.session_id)

    # ------------------------------------------------------------------
    # Frames
    # ------------------------------------------------------------------

    def submit_frame(
        self,
        detections: Any,
        landmarks: Any = None,
        timestamp_ms: Optional[float] = None,
    ) -> None:
        """Process one detection cycle.

        *detections* is either a ready :class:`FrameResult` or a raw detector
        result (MediaPipe object, list of detections or dict payload), with
        *landmarks* the matching landmarker result.  Never raises.
        """
        with self._locked():
            session = self._session
            if session is None:
                self._frames_skipped_stopped += 1
                return
            try:
                if timestamp_ms is None and isinstance(detections, FrameResult):
                    timestamp_ms = detections.timestamp_ms
                if timestamp_ms is None:
                    timestamp_ms = self._clock()
                if isinstance(detections, FrameResult):
                    frame = dataclasses.replace(detections, timestamp_ms=timestamp_ms)
                else:
                    frame = frame_from_results(detections, landmarks, timestamp_ms)
                outcome = session.process(frame)
            except Exception as exc:
                logger.exception("Frame processing failed; frame dropped")
                self._emit(self.on_error, exc)
                return
            self._dispatch(session, outcome)

    def _dispatch(self, session: TrackingSession, outcome: FrameOutcome) -> None:
        for event in outcome.events:
            if isinstance(event, PresenceEvent):
                self._emit(self.on_face_count_change, event)
            elif isinstance(event, GazeEvent):
                self._emit(self.on_gaze_change, event)
            elif isinstance(event, IdleEvent):
                self._emit(self.on_idle_change, event)
        if outcome.overlay is not None:
            self._emit(self.on_overlay, outcome.overlay)
        if outcome.processed and self.on_stats is not None:
            self._emit(self.on_stats, session.snapshot(outcome.timestamp_ms))

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def get_stats(self, now_ms: Optional[float] = None) -> StatsSnapshot:
        """Read-only snapshot; all zero (bar skipped frames) while stopped."""
        with self._locked():
            now = self._clock() if now_ms is None else now_ms
            if self._session is None:
                return StatsSnapshot(timestamp_ms=now, frames_skipped=self._frames_skipped_stopped)
            return self._session.snapshot(now)

    def report_now(self, now_ms: Optional[float] = None) -> Optional[RollupRecord]:
        """Emit a rollup for the current period and start the next one."""
        with self._locked():
            session = self._session
            if session is None:
                return None
            record = session.rollup(self._clock() if now_ms is None else now_ms)
            logger.debug(
                "Rollup #%d: %d face-count changes, %d gaze changes",
                record.period_index,
                record.face_count_changes,
                record.gaze_changes,
            )
            self._emit(self.on_rollup, record)
            return record

    def _on_timer(self, session: TrackingSession) -> None:
        with self._locked():
            # A late tick from a previous session or a removed consumer is a no-op
            if self._session is not session or self.on_rollup is None:
                return
            self.report_now()

    def _make_timer(self, session: TrackingSession) -> Optional[RepeatingTimer]:
        if self.config.post_interval_s <= 0:
            return None
        timer = RepeatingTimer(
            self.config.post_interval_s,
            lambda: self._on_timer(session),
            name="RollupTimer",
        )
        timer.start()
        return timer

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def update_settings(self, settings: Mapping[str, Any]) -> list[str]:
        """Validate, clamp and apply *settings* immediately.

        Unknown keys are ignored.  Returns the notices produced (clamped
        values, preset conflicts); none of them is an error.
        """
        old_timer: Optional[RepeatingTimer] = None
        with self._locked():
            new_config, notices = resolve_config(self.config, settings)
            interval_changed = new_config.post_interval_s != self.config.post_interval_s
            self.config = new_config
            if self._session is not None:
                names = {canonical_name(key) for key in settings}
                self._session.configure(
                    new_config,
                    reset_history=bool(names & {"gaze_history_size", "sensitivity_mode"}),
                )
                if interval_changed:
                    old_timer = self._timer
                    self._timer = self._make_timer(self._session)
            logger.debug("Configuration updated: %s", dict(settings))
            nested = self._lock_depth > 1

        if old_timer is not None:
            old_timer.cancel(wait=not nested)
        return notices

    def get_config(self) -> Config:
        with self._locked():
            return dataclasses.replace(self.config)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def is_ready(self) -> bool:
        return self._ready

    @property
    def is_running(self) -> bool:
        return self._session is not None

    @property
    def is_idle(self) -> bool:
        session = self._session
        return session is not None and session.cadence.is_idle

    @property
    def session(self) -> Optional[TrackingSession]:
        return self._session

    def now_ms(self) -> float:
        return self._clock()

    # ------------------------------------------------------------------
    # Private
    # ------------------------------------------------------------------

    @contextmanager
    def _locked(self) -> Iterator[None]:
        with self._lock:
            self._lock_depth += 1
            try:
                yield
            finally:
                self._lock_depth -= 1

    def _emit(self, callback: Optional[Callable[..., None]], *args: Any) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            logger.exception("Callback %r raised", callback)
