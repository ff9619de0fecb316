"""Frame-rate throttling, frame skipping and idle detection."""

from __future__ import annotations

import logging
from collections import deque
from typing import Optional

logger = logging.getLogger(__name__)

_FPS_WINDOW_MS = 1000.0


class CadenceController:
    """Decides which incoming frames get processed.

    * ``admit`` drops frames arriving faster than *target_fps*.
    * ``take_landmark_turn`` runs the landmark path on 1 of every
      *frame_skip* admitted frames.
    * ``observe_faces`` enters idle once no face has been seen for more
      than *idle_timeout_ms*, and leaves it as soon as a face is back.
    """

    def __init__(
        self,
        target_fps: int = 15,
        frame_skip: int = 1,
        pause_on_idle: bool = True,
        idle_timeout_ms: float = 3000.0,
    ) -> None:
        self.target_fps = target_fps
        self.frame_skip = frame_skip
        self.pause_on_idle = pause_on_idle
        self.idle_timeout_ms = idle_timeout_ms

        self.is_idle = False
        self._last_processed_ms: Optional[float] = None
        self._last_face_ms: Optional[float] = None
        self._admitted = 0
        self._recent: deque[float] = deque()

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def configure(
        self,
        target_fps: int,
        frame_skip: int,
        pause_on_idle: bool,
        idle_timeout_ms: float,
    ) -> None:
        self.target_fps = target_fps
        self.frame_skip = frame_skip
        self.idle_timeout_ms = idle_timeout_ms
        self.pause_on_idle = pause_on_idle
        if not pause_on_idle and self.is_idle:
            self.is_idle = False
            logger.info("Idle mode cleared (pause on idle disabled)")

    @property
    def min_interval_ms(self) -> float:
        return 1000.0 / self.target_fps

    # ------------------------------------------------------------------
    # Per-frame decisions
    # ------------------------------------------------------------------

    def reset(self, now_ms: float) -> None:
        self.is_idle = False
        self._last_processed_ms = None
        self._last_face_ms = now_ms
        self._admitted = 0
        self._recent.clear()

    def admit(self, now_ms: float) -> bool:
        """Return True if a frame captured at *now_ms* should be processed."""
        if (
            self._last_processed_ms is not None
            and now_ms - self._last_processed_ms < self.min_interval_ms
        ):
            return False
        self._last_processed_ms = now_ms
        self._admitted += 1
        self._recent.append(now_ms)
        self._trim(now_ms)
        return True

    def take_landmark_turn(self) -> bool:
        """True when the most recently admitted frame should run the landmark path."""
        if self._admitted == 0:
            return False
        return (self._admitted - 1) % self.frame_skip == 0

    def observe_faces(self, face_count: int, now_ms: float) -> Optional[bool]:
        """Update idle state; return True/False on entering/leaving idle."""
        if face_count > 0:
            self._last_face_ms = now_ms
            if self.is_idle:
                self.is_idle = False
                logger.info("Exiting idle mode (faces detected)")
                return False
            return None

        if not self.pause_on_idle or self.is_idle:
            return None
        if self._last_face_ms is None:
            self._last_face_ms = now_ms
        if now_ms - self._last_face_ms > self.idle_timeout_ms:
            self.is_idle = True
            logger.info("Entering idle mode (no faces for %.0f ms)", now_ms - self._last_face_ms)
            return True
        return None

    def processing_fps(self, now_ms: float) -> int:
        """Admitted frames within the trailing one-second window."""
        self._trim(now_ms)
        return len(self._recent)

    @property
    def admitted(self) -> int:
        return self._admitted

    # ------------------------------------------------------------------
    # Private
    # ------------------------------------------------------------------

    def _trim(self, now_ms: float) -> None:
        while self._recent and now_ms - self._recent[0] >= _FPS_WINDOW_MS:
            self._recent.popleft()
