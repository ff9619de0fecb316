"""Away-time and distracted-time accumulation across state transitions."""

from __future__ import annotations

import logging
from typing import Optional

from domain.models import GazeDirection

logger = logging.getLogger(__name__)


class IntervalClock:
    """One accumulation axis with two states.

    OPEN:   the condition holds; ``start_ms`` is set.
    CLOSED: the condition does not hold; ``total_ms`` is frozen.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self.total_ms: float = 0.0
        self.start_ms: Optional[float] = None
        self._high_water: float = 0.0

    @property
    def is_open(self) -> bool:
        return self.start_ms is not None

    def update(self, condition: bool, now_ms: float) -> bool:
        """Apply the current condition; return True if the axis changed state."""
        if condition and self.start_ms is None:
            self.start_ms = now_ms
            logger.debug("%s interval opened at %.0f ms", self.name, now_ms)
            return True
        if not condition and self.start_ms is not None:
            self.total_ms += max(0.0, now_ms - self.start_ms)
            self.start_ms = None
            # a closed axis reads exactly its total, whatever was read while open
            self._high_water = self.total_ms
            logger.debug("%s interval closed, total %.0f ms", self.name, self.total_ms)
            return True
        return False

    def elapsed_ms(self, now_ms: float) -> float:
        """Accumulated total plus the open interval, if any.

        Does not mutate the accumulation itself.  While the axis is open,
        successive reads never go backwards; once closed it reads the frozen
        total.
        """
        if self.start_ms is None:
            return self.total_ms
        elapsed = self.total_ms + max(0.0, now_ms - self.start_ms)
        self._high_water = max(self._high_water, elapsed)
        return self._high_water

    def reset(self) -> None:
        self.total_ms = 0.0
        self.start_ms = None
        self._high_water = 0.0


class AttentionAccumulator:
    """Tracks cumulative away-time (no face) and distracted-time (one face,
    smoothed gaze away)."""

    def __init__(self) -> None:
        self.away = IntervalClock("away")
        self.distracted = IntervalClock("distracted")

    def update_presence(self, face_count: int, now_ms: float) -> bool:
        return self.away.update(face_count == 0, now_ms)

    def update_gaze(
        self,
        smoothed: Optional[GazeDirection],
        face_count: int,
        now_ms: float,
    ) -> bool:
        condition = smoothed is GazeDirection.AWAY and face_count == 1
        return self.distracted.update(condition, now_ms)

    def away_ms(self, now_ms: float) -> float:
        return self.away.elapsed_ms(now_ms)

    def distracted_ms(self, now_ms: float) -> float:
        return self.distracted.elapsed_ms(now_ms)

    def reset(self) -> None:
        """Force both axes closed and zero their totals."""
        self.away.reset()
        self.distracted.reset()
