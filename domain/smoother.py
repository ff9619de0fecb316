"""Majority-vote smoothing of raw gaze classifications."""

from __future__ import annotations

import logging
from collections import Counter, deque
from typing import Callable, Optional

from domain.models import GazeDirection, GazeEvent, GazeSample

logger = logging.getLogger(__name__)


class GazeSmoother:
    """Keeps the last *history_size* raw directions and reports their majority.

    Ties go to the direction encountered first in the window (oldest entry
    first).  ``UNKNOWN`` samples are reported as-is and never enter the
    window, so a short tracking dropout does not wipe the history.

    The transition callback only fires when the *reported* state changes,
    which is what suppresses per-frame flicker.
    """

    def __init__(self, history_size: int = 5) -> None:
        self._history: deque[GazeDirection] = deque(maxlen=history_size)
        self._reported: Optional[GazeDirection] = None
        self._on_transition: Optional[Callable[[GazeEvent], None]] = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def update(
        self,
        direction: GazeDirection,
        timestamp_ms: float,
        sample: Optional[GazeSample] = None,
    ) -> GazeDirection:
        """Feed one raw classification; return the *reported* state."""
        if direction is GazeDirection.UNKNOWN:
            resolved = GazeDirection.UNKNOWN
        else:
            self._history.append(direction)
            resolved = self.resolve()

        if resolved != self._reported:
            self._commit(resolved, timestamp_ms, sample)
        return resolved

    def resolve(self) -> GazeDirection:
        """Majority of the buffered window, first-seen wins a tie."""
        if not self._history:
            return GazeDirection.UNKNOWN
        # Counter keeps insertion order and most_common() is stable for ties
        return Counter(self._history).most_common(1)[0][0]

    def clear(self) -> None:
        """Drop the window but remember the last reported state."""
        self._history.clear()

    def reset(self) -> None:
        self._history.clear()
        self._reported = None

    def resize(self, history_size: int) -> None:
        """Set the window length.  The buffered history is always discarded,
        even when the length is unchanged."""
        self._history = deque(maxlen=history_size)
        logger.debug("Gaze smoothing window set to %d frames", history_size)

    def set_on_transition(self, callback: Optional[Callable[[GazeEvent], None]]) -> None:
        self._on_transition = callback

    @property
    def current_state(self) -> Optional[GazeDirection]:
        return self._reported

    @property
    def history(self) -> list[GazeDirection]:
        return list(self._history)

    @property
    def history_size(self) -> int:
        return self._history.maxlen or 0

    # ------------------------------------------------------------------
    # Private
    # ------------------------------------------------------------------

    def _commit(
        self,
        new_state: GazeDirection,
        timestamp_ms: float,
        sample: Optional[GazeSample],
    ) -> None:
        event = GazeEvent(
            state=new_state,
            previous_state=self._reported,
            timestamp_ms=timestamp_ms,
            sample=sample,
        )
        logger.debug(
            "Gaze: %s → %s",
            self._reported.value if self._reported else "-",
            new_state.value,
        )
        self._reported = new_state
        if self._on_transition:
            self._on_transition(event)
