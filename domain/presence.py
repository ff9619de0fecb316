"""Face-count bucketing and transition detection."""

from __future__ import annotations

import logging
from typing import Optional

from domain.models import PresenceBucket, PresenceEvent

logger = logging.getLogger(__name__)

NO_FRAME_YET = -1


class PresenceAggregator:
    """Turns per-frame face counts into none/single/multiple transitions.

    ``last_face_count`` starts at an out-of-band sentinel, so the first
    frame of a session always produces an event.
    """

    def __init__(self) -> None:
        self.face_count: int = 0
        self.last_face_count: int = NO_FRAME_YET
        self.total_changes: int = 0

    def update(self, face_count: int, timestamp_ms: float) -> Optional[PresenceEvent]:
        if face_count < 0:
            logger.warning("Negative face count %d treated as 0", face_count)
            face_count = 0

        previous = self.last_face_count
        self.face_count = face_count
        self.last_face_count = face_count

        bucket = PresenceBucket.for_count(face_count)
        if previous != NO_FRAME_YET and PresenceBucket.for_count(previous) is bucket:
            return None

        self.total_changes += 1
        event = PresenceEvent(
            bucket=bucket,
            face_count=face_count,
            previous_count=previous,
            timestamp_ms=timestamp_ms,
        )
        if bucket is PresenceBucket.NONE:
            logger.warning("No person detected (looking away or left)")
        elif bucket is PresenceBucket.MULTIPLE:
            logger.info("Multiple people detected (%d faces)", face_count)
        else:
            logger.info("Person detected and present")
        return event

    @property
    def bucket(self) -> Optional[PresenceBucket]:
        if self.last_face_count == NO_FRAME_YET:
            return None
        return PresenceBucket.for_count(self.face_count)

    def reset(self) -> None:
        self.face_count = 0
        self.last_face_count = NO_FRAME_YET
        self.total_changes = 0
