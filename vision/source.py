"""Webcam capture loop that feeds the session engine."""

from __future__ import annotations

import logging
import threading
import time
from typing import TYPE_CHECKING, Optional

import cv2

from vision.face_tracker import FaceTracker

if TYPE_CHECKING:
    from app.config import Config
    from app.engine import SessionEngine

logger = logging.getLogger(__name__)


class CameraSource:
    """Grabs webcam frames on a worker thread, runs the face tracker and
    pushes each result into the engine.

    The source drives cadence at the camera's native rate; the engine's
    cadence controller subsamples it.  The models are loaded on the worker
    thread (MediaPipe tasks must stay on one thread) and readiness is
    signalled with :meth:`SessionEngine.mark_ready`.  Failures go to
    :meth:`SessionEngine.report_error`.
    """

    def __init__(self, engine: "SessionEngine", config: "Config") -> None:
        self.engine = engine
        self.config = config
        self._cap: Optional[cv2.VideoCapture] = None
        self._running = False
        self._thread: Optional[threading.Thread] = None
        self._ready = threading.Event()
        self._width = 0
        self._height = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        self._cap = cv2.VideoCapture(self.config.camera_index)
        if not self._cap.isOpened():
            raise RuntimeError(f"Cannot open camera at index {self.config.camera_index}.")

        self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.config.camera_width)
        self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.config.camera_height)
        self._width = int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        self._height = int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT))

        self._running = True
        self._thread = threading.Thread(target=self._capture_loop, daemon=True, name="CameraSource")
        self._thread.start()
        logger.info("Camera started: index=%d  res=%dx%d", self.config.camera_index, self._width, self._height)

    def stop(self) -> None:
        self._running = False
        if self._thread:
            self._thread.join(timeout=2.0)
            self._thread = None
        if self._cap:
            self._cap.release()
            self._cap = None
        logger.info("Camera stopped.")

    def wait_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the models are loaded (or loading failed)."""
        return self._ready.wait(timeout)

    @property
    def resolution(self) -> tuple[int, int]:
        return self._width, self._height

    # ------------------------------------------------------------------
    # Private
    # ------------------------------------------------------------------

    def _load_tracker(self) -> Optional[FaceTracker]:
        try:
            return FaceTracker(
                detection_confidence=self.config.face_detection_confidence,
                mesh_confidence=self.config.face_mesh_confidence,
            )
        except Exception as exc:
            self.engine.report_error(exc)
            return None

    def _capture_loop(self) -> None:
        assert self._cap is not None
        tracker = self._load_tracker()
        if tracker is None:
            self._running = False
            self._ready.set()
            return
        self.engine.mark_ready()
        self._ready.set()

        failures = 0
        try:
            while self._running:
                ret, frame_bgr = self._cap.read()
                if not ret:
                    failures += 1
                    if failures == 50:
                        self.engine.report_error(RuntimeError("Camera returned no frames"))
                    time.sleep(0.005)
                    continue
                failures = 0

                timestamp_ms = self.engine.now_ms()
                frame_rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)
                try:
                    frame = tracker.process(frame_rgb, timestamp_ms)
                except Exception as exc:
                    self.engine.report_error(exc)
                    continue
                self.engine.submit_frame(frame)
        finally:
            tracker.close()
