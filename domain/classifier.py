"""Geometric gaze classification from a 468-point face mesh."""

from __future__ import annotations

import logging
from typing import Any, Optional

import numpy as np

from domain.errors import InvalidLandmarkSetError
from domain.models import GazeDirection, GazeSample, Point

logger = logging.getLogger(__name__)

# ── MediaPipe face-mesh indices ──────────────────────────────────────────────
MESH_POINTS = 468
LEFT_EYE_OUTER = 33
LEFT_EYE_INNER = 133
LEFT_EYE_TOP = 159
LEFT_EYE_BOTTOM = 145
RIGHT_EYE_OUTER = 362
RIGHT_EYE_INNER = 263
RIGHT_EYE_TOP = 386
RIGHT_EYE_BOTTOM = 374
NOSE_TIP = 1

_ANCHORS = (
    LEFT_EYE_OUTER, LEFT_EYE_INNER, LEFT_EYE_TOP, LEFT_EYE_BOTTOM,
    RIGHT_EYE_OUTER, RIGHT_EYE_INNER, RIGHT_EYE_TOP, RIGHT_EYE_BOTTOM,
    NOSE_TIP,
)

# Reference point of a forward-facing face in normalised frame coordinates
FRAME_CENTER_X = 0.5
FACE_CENTER_Y = 0.4

MIN_CONFIDENCE = 0.5


def as_landmark_array(landmarks: Any) -> np.ndarray:
    """Coerce *landmarks* to a float64 ``(N, 2)`` array.

    Raises ``InvalidLandmarkSetError`` when the input cannot be read as a
    list of x/y points or has fewer than ``MESH_POINTS`` rows.
    """
    if landmarks is None:
        raise InvalidLandmarkSetError("no landmarks")
    try:
        arr = np.asarray(landmarks, dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise InvalidLandmarkSetError(f"unreadable landmarks: {exc}") from exc
    if arr.ndim != 2 or arr.shape[1] < 2:
        raise InvalidLandmarkSetError(f"expected (N, 2) landmarks, got {arr.shape}")
    if arr.shape[0] < MESH_POINTS:
        raise InvalidLandmarkSetError(f"only {arr.shape[0]} of {MESH_POINTS} points")
    arr = arr[:, :2]
    if np.isnan(arr[list(_ANCHORS)]).any():
        raise InvalidLandmarkSetError("missing anchor landmark")
    return arr


def _eye_center(lms: np.ndarray, outer: int, inner: int, top: int, bottom: int) -> Point:
    return (
        float((lms[outer, 0] + lms[inner, 0]) / 2.0),
        float((lms[top, 1] + lms[bottom, 1]) / 2.0),
    )


def measure_gaze(
    landmarks: Any,
    horizontal_threshold: float,
    vertical_threshold: float,
) -> GazeSample:
    """Strict variant of :func:`classify_gaze`; raises on unusable input."""
    lms = as_landmark_array(landmarks)

    left = _eye_center(lms, LEFT_EYE_OUTER, LEFT_EYE_INNER, LEFT_EYE_TOP, LEFT_EYE_BOTTOM)
    right = _eye_center(lms, RIGHT_EYE_OUTER, RIGHT_EYE_INNER, RIGHT_EYE_TOP, RIGHT_EYE_BOTTOM)
    face_center = ((left[0] + right[0]) / 2.0, (left[1] + right[1]) / 2.0)

    eye_distance = abs(right[0] - left[0])
    if eye_distance == 0.0:
        raise InvalidLandmarkSetError("eye centres coincide horizontally")

    horizontal = (face_center[0] - FRAME_CENTER_X) / eye_distance
    vertical = face_center[1] - FACE_CENTER_Y

    if abs(horizontal) > horizontal_threshold or abs(vertical) > vertical_threshold:
        direction = GazeDirection.AWAY
    else:
        direction = GazeDirection.SCREEN

    confidence = float(np.clip(1.0 - abs(horizontal) - abs(vertical), MIN_CONFIDENCE, 1.0))

    return GazeSample(
        direction=direction,
        horizontal_offset=float(horizontal),
        vertical_offset=float(vertical),
        confidence=confidence,
        left_eye_center=left,
        right_eye_center=right,
        face_center=face_center,
    )


def classify_gaze(
    landmarks: Any,
    horizontal_threshold: float,
    vertical_threshold: float,
) -> Optional[GazeSample]:
    """Return a gaze sample, or ``None`` when the landmark set is unusable.

    ``None`` is a normal outcome (no face, short mesh, missing anchors) and
    is reported downstream as ``GazeDirection.UNKNOWN``.
    """
    try:
        return measure_gaze(landmarks, horizontal_threshold, vertical_threshold)
    except InvalidLandmarkSetError as exc:
        logger.debug("Landmarks unusable: %s", exc)
        return None
