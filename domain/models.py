"""Core data models for the screen-attention engine."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

import numpy as np

Point = tuple[float, float]


class GazeDirection(str, Enum):
    SCREEN = "screen"
    AWAY = "away"
    UNKNOWN = "unknown"


class PresenceBucket(str, Enum):
    NONE = "none"
    SINGLE = "single"
    MULTIPLE = "multiple"

    @classmethod
    def for_count(cls, face_count: int) -> "PresenceBucket":
        if face_count <= 0:
            return cls.NONE
        if face_count == 1:
            return cls.SINGLE
        return cls.MULTIPLE


@dataclass(frozen=True)
class BoundingBox:
    """Normalised (0-1) box, centre-anchored like the MediaPipe detector output."""

    x_center: float
    y_center: float
    width: float
    height: float


@dataclass(frozen=True)
class Detection:
    bounding_box: BoundingBox
    confidence: float  # 0-1


@dataclass
class FrameResult:
    """Everything the vision collaborator hands over for one detection cycle."""

    detections: list[Detection] = field(default_factory=list)
    # shape (N, 2) normalised x/y; NaN rows mark missing points
    landmarks: Optional[np.ndarray] = None
    # None: the engine stamps the frame with its own clock on submission
    timestamp_ms: Optional[float] = None

    @property
    def face_count(self) -> int:
        return len(self.detections)

    @property
    def mean_confidence(self) -> float:
        if not self.detections:
            return 0.0
        return sum(d.confidence for d in self.detections) / len(self.detections)


@dataclass(frozen=True)
class GazeSample:
    direction: GazeDirection
    horizontal_offset: float  # signed, in units of inter-eye distance
    vertical_offset: float    # signed, normalised frame height
    confidence: float         # 0.5-1 for usable samples
    left_eye_center: Point
    right_eye_center: Point
    face_center: Point


@dataclass(frozen=True)
class PresenceEvent:
    bucket: PresenceBucket
    face_count: int
    previous_count: int  # -1 on the first frame of a session
    timestamp_ms: float

    @property
    def message(self) -> str:
        if self.bucket is PresenceBucket.NONE:
            return "No person detected on screen"
        if self.bucket is PresenceBucket.MULTIPLE:
            return f"{self.face_count} people detected. Only 1 person should be on screen"
        return "Person detected and present"


@dataclass(frozen=True)
class GazeEvent:
    state: GazeDirection
    previous_state: Optional[GazeDirection]
    timestamp_ms: float
    sample: Optional[GazeSample] = None


@dataclass(frozen=True)
class IdleEvent:
    is_idle: bool
    timestamp_ms: float


@dataclass(frozen=True)
class OverlayFrame:
    """Data a renderer needs to draw one frame's overlays.  Never drawn here."""

    timestamp_ms: float
    detections: tuple[Detection, ...]
    direction: GazeDirection
    left_eye_center: Optional[Point] = None
    right_eye_center: Optional[Point] = None
    face_center: Optional[Point] = None
    # (horizontal_offset, vertical_offset); renderers scale it to pixels
    gaze_vector: Optional[Point] = None


@dataclass(frozen=True)
class StatsSnapshot:
    timestamp_ms: float
    face_count: int = 0
    away_ms: float = 0.0
    distracted_ms: float = 0.0
    confidence: int = 0  # mean detection confidence, percent
    processing_fps: int = 0
    frames_skipped: int = 0
    overlay_updates: int = 0
    face_count_changes: int = 0
    gaze_state: Optional[GazeDirection] = None
    is_running: bool = False
    is_idle: bool = False

    @property
    def away_s(self) -> int:
        return int(self.away_ms // 1000)

    @property
    def distracted_s(self) -> int:
        return int(self.distracted_ms // 1000)

    def to_dict(self) -> dict[str, Any]:
        data = dataclasses.asdict(self)
        data["gaze_state"] = self.gaze_state.value if self.gaze_state else None
        data["away_s"] = self.away_s
        data["distracted_s"] = self.distracted_s
        return data


@dataclass(frozen=True)
class RollupRecord:
    """Aggregate emitted once per reporting interval."""

    session_id: str
    period_index: int
    period_start_ms: float
    period_end_ms: float
    snapshot: StatsSnapshot
    face_count_changes: int
    gaze_changes: int
    frames_received: int

    @property
    def duration_ms(self) -> float:
        return self.period_end_ms - self.period_start_ms

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "period_index": self.period_index,
            "period_start_ms": self.period_start_ms,
            "period_end_ms": self.period_end_ms,
            "duration_ms": self.duration_ms,
            "face_count_changes": self.face_count_changes,
            "gaze_changes": self.gaze_changes,
            "frames_received": self.frames_received,
            "snapshot": self.snapshot.to_dict(),
        }
