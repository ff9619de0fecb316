"""Convert detector/landmarker output into :class:`FrameResult`.

Accepts MediaPipe Tasks results, legacy ``mp.solutions`` results and plain
dict/list payloads (e.g. JSON relayed from a browser).  Anything that cannot
be read is dropped rather than raised: a bad detection entry is skipped, an
unreadable landmark list becomes ``None``.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Optional

import numpy as np

from domain.models import BoundingBox, Detection, FrameResult

logger = logging.getLogger(__name__)

# Confidence assumed when a detector reports none
DEFAULT_CONFIDENCE = 0.85


def _get(obj: Any, *names: str) -> Any:
    """First present attribute or mapping key among *names*."""
    for name in names:
        if isinstance(obj, Mapping):
            if name in obj:
                return obj[name]
        elif hasattr(obj, name):
            return getattr(obj, name)
    return None


# ── Detections ───────────────────────────────────────────────────────────────

def _score(raw: Any) -> float:
    score = _get(raw, "score", "confidence")
    if score is None:
        categories = _get(raw, "categories")
        if categories:
            score = _get(categories[0], "score")
    if isinstance(score, (list, tuple)):
        score = score[0] if score else None
    if score is None:
        return DEFAULT_CONFIDENCE
    return float(min(1.0, max(0.0, float(score))))


def _bounding_box(raw: Any, image_size: Optional[tuple[int, int]]) -> BoundingBox:
    box = _get(raw, "bounding_box", "boundingBox", "bbox")
    if box is None:
        location = _get(raw, "location_data")
        box = _get(location, "relative_bounding_box") if location is not None else None
    if box is None:
        raise ValueError("detection has no bounding box")

    width = float(_get(box, "width"))
    height = float(_get(box, "height"))
    x_center = _get(box, "x_center", "xCenter")
    y_center = _get(box, "y_center", "yCenter")
    if x_center is None or y_center is None:
        left = float(_get(box, "origin_x", "originX", "xmin"))
        top = float(_get(box, "origin_y", "originY", "ymin"))
        x_center = left + width / 2.0
        y_center = top + height / 2.0

    x_center, y_center = float(x_center), float(y_center)
    # Tasks FaceDetector reports pixels
    if image_size is not None and max(width, height, x_center, y_center) > 1.0:
        img_w, img_h = image_size
        x_center, width = x_center / img_w, width / img_w
        y_center, height = y_center / img_h, height / img_h
    return BoundingBox(x_center=x_center, y_center=y_center, width=width, height=height)


def detections_from_result(
    result: Any,
    image_size: Optional[tuple[int, int]] = None,
) -> list[Detection]:
    """Read the detection list out of *result*; malformed entries are skipped."""
    if result is None:
        return []
    if isinstance(result, (list, tuple)):
        entries = result
    else:
        entries = _get(result, "detections", "faces")
        if entries is None:
            logger.warning("Detection result of type %s has no detections", type(result).__name__)
            return []

    detections: list[Detection] = []
    for raw in entries:
        if isinstance(raw, Detection):
            detections.append(raw)
            continue
        try:
            detections.append(Detection(_bounding_box(raw, image_size), _score(raw)))
        except (TypeError, ValueError, IndexError, ZeroDivisionError) as exc:
            logger.debug("Dropping malformed detection: %s", exc)
    return detections


# ── Landmarks ────────────────────────────────────────────────────────────────

def _point(raw: Any) -> tuple[float, float]:
    if raw is None:
        return (np.nan, np.nan)
    if isinstance(raw, (list, tuple)):
        return (float(raw[0]), float(raw[1]))
    x, y = _get(raw, "x"), _get(raw, "y")
    if x is None or y is None:
        return (np.nan, np.nan)
    return (float(x), float(y))


def landmarks_from_result(result: Any) -> Optional[np.ndarray]:
    """Landmarks of the first tracked face as an ``(N, 2)`` array, or ``None``."""
    if result is None:
        return None
    if isinstance(result, np.ndarray):
        face = result
    elif isinstance(result, (list, tuple)):
        face = result
    else:
        faces = _get(result, "face_landmarks", "multi_face_landmarks", "multiFaceLandmarks")
        if faces is None or len(faces) == 0:
            return None
        face = faces[0]
        # legacy NormalizedLandmarkList wraps the points in .landmark
        face = _get(face, "landmark") or face

    if isinstance(face, np.ndarray):
        if face.ndim != 2 or face.shape[1] < 2:
            return None
        return face[:, :2].astype(np.float64)

    try:
        points = [_point(p) for p in face]
    except (TypeError, ValueError, IndexError) as exc:
        logger.debug("Dropping malformed landmark set: %s", exc)
        return None
    if not points:
        return None
    return np.array(points, dtype=np.float64)


def frame_from_results(
    detections: Any,
    landmarks: Any,
    timestamp_ms: float,
    image_size: Optional[tuple[int, int]] = None,
) -> FrameResult:
    return FrameResult(
        detections=detections_from_result(detections, image_size),
        landmarks=landmarks_from_result(landmarks),
        timestamp_ms=float(timestamp_ms),
    )


def frame_from_payload(payload: Mapping[str, Any], timestamp_ms: float) -> FrameResult:
    """Build a frame from a JSON-style dict with ``detections``, ``landmarks``
    and optionally ``timestampMs``/``timestamp_ms``."""
    ts = _get(payload, "timestamp_ms", "timestampMs")
    try:
        ts = float(ts) if ts is not None else float(timestamp_ms)
    except (TypeError, ValueError):
        ts = float(timestamp_ms)
    return frame_from_results(payload.get("detections"), payload.get("landmarks"), ts)
