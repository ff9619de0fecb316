"""MediaPipe Tasks FaceDetector + FaceLandmarker wrapper.

Produces one :class:`FrameResult` per RGB frame: every detected face box
from the detector, plus the 468-point mesh of the first face from the
landmarker.  Model files are downloaded into ``assets/`` on first use.
"""

from __future__ import annotations

import logging
import urllib.request
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import mediapipe as mp
import numpy as np
from mediapipe.tasks.python import vision
from mediapipe.tasks.python.core.base_options import BaseOptions

from domain.models import FrameResult
from vision.frame_adapter import frame_from_results

logger = logging.getLogger(__name__)

_ASSETS_DIR = Path("assets")
_MODEL_ROOT = "https://storage.googleapis.com/mediapipe-models/"


@dataclass(frozen=True)
class ModelFile:
    filename: str
    url: str

    @property
    def path(self) -> Path:
        return _ASSETS_DIR / self.filename


DETECTOR_MODEL = ModelFile(
    "blaze_face_short_range.tflite",
    _MODEL_ROOT + "face_detector/blaze_face_short_range/float16/1/blaze_face_short_range.tflite",
)
LANDMARKER_MODEL = ModelFile(
    "face_landmarker.task",
    _MODEL_ROOT + "face_landmarker/face_landmarker/float16/1/face_landmarker.task",
)


def ensure_model(model: ModelFile, model_path: Optional[Path] = None) -> Path:
    """Return the model path, downloading it first if necessary.

    Raises ``RuntimeError`` on network failure so the caller can report it
    on the engine's error channel.
    """
    path = model_path or model.path
    if path.exists():
        return path

    path.parent.mkdir(parents=True, exist_ok=True)
    logger.info("Downloading %s → %s", model.filename, path)
    try:
        urllib.request.urlretrieve(model.url, str(path))
    except Exception as exc:
        path.unlink(missing_ok=True)  # remove partial file
        raise RuntimeError(
            f"Failed to download {model.filename} from {model.url}: {exc}. "
            f"Download it manually and place it at {path.resolve()}"
        ) from exc
    logger.info("Model saved: %s", path)
    return path


class FaceTracker:
    """Runs both MediaPipe tasks on a frame in VIDEO mode.

    Must be used from a **single thread** – MediaPipe tasks are not
    thread-safe.  :class:`vision.source.CameraSource` owns this instance.
    """

    def __init__(
        self,
        detection_confidence: float = 0.5,
        mesh_confidence: float = 0.5,
        detector_path: Optional[Path] = None,
        landmarker_path: Optional[Path] = None,
    ) -> None:
        det_path = ensure_model(DETECTOR_MODEL, detector_path)
        lm_path = ensure_model(LANDMARKER_MODEL, landmarker_path)

        self._detector = vision.FaceDetector.create_from_options(
            vision.FaceDetectorOptions(
                base_options=BaseOptions(model_asset_path=str(det_path.resolve())),
                running_mode=vision.RunningMode.VIDEO,
                min_detection_confidence=detection_confidence,
            )
        )
        self._landmarker = vision.FaceLandmarker.create_from_options(
            vision.FaceLandmarkerOptions(
                base_options=BaseOptions(model_asset_path=str(lm_path.resolve())),
                running_mode=vision.RunningMode.VIDEO,
                # only the first face is classified
                num_faces=1,
                min_face_detection_confidence=mesh_confidence,
                min_face_presence_confidence=mesh_confidence,
                min_tracking_confidence=mesh_confidence,
                output_face_blendshapes=False,
                output_facial_transformation_matrixes=False,
            )
        )
        self._last_ts_ms: int = -1
        logger.info("FaceTracker initialised (detector=%s, landmarker=%s)", det_path.name, lm_path.name)

    def process(self, frame_rgb: np.ndarray, timestamp_ms: float) -> FrameResult:
        """Detect faces and landmarks in one RGB frame captured at *timestamp_ms*."""
        # VIDEO mode requires strictly increasing integer timestamps
        ts_ms = max(int(timestamp_ms), self._last_ts_ms + 1)
        self._last_ts_ms = ts_ms

        mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=frame_rgb)
        detections = self._detector.detect_for_video(mp_image, ts_ms)
        landmarks = self._landmarker.detect_for_video(mp_image, ts_ms)

        height, width = frame_rgb.shape[:2]
        return frame_from_results(detections, landmarks, timestamp_ms, image_size=(width, height))

    def close(self) -> None:
        self._detector.close()
        self._landmarker.close()
        logger.debug("FaceTracker closed.")
