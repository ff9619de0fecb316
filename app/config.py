"""Engine configuration with typed fields, ranges, presets and persistence."""

from __future__ import annotations

import dataclasses
import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

logger = logging.getLogger(__name__)

_CONFIG_PATH = Path("config.json")


@dataclass
class Config:
    # Cadence
    target_fps: int = 15
    frame_skip: int = 1            # run the landmark path on 1 of every N frames
    pause_on_idle: bool = True
    idle_timeout_ms: int = 3000
    reduced_canvas: bool = False   # emit overlay data only when something changed

    # Gaze classification
    horizontal_threshold: float = 0.3
    vertical_threshold: float = 0.15
    gaze_history_size: int = 5

    # Named presets (None = manual)
    performance_mode: Optional[str] = None
    sensitivity_mode: Optional[str] = None

    # Reporting
    post_interval_s: float = 0.0   # 0 disables periodic rollups
    log_dir: str = "runs"

    # Vision collaborator
    camera_index: int = 0
    camera_width: int = 640
    camera_height: int = 480
    face_detection_confidence: float = 0.5
    face_mesh_confidence: float = 0.5

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, path: Path = _CONFIG_PATH) -> None:
        with open(path, "w", encoding="utf-8") as fh:
            json.dump(asdict(self), fh, indent=2)
        logger.debug("Config saved.")

    @classmethod
    def load(cls, path: Path = _CONFIG_PATH) -> "Config":
        if not path.exists():
            return cls()
        try:
            with open(path, encoding="utf-8") as fh:
                data = json.load(fh)
            if not isinstance(data, dict):
                raise ValueError("top-level JSON value is not an object")
            # Stored fields were resolved when saved; re-clamp but do not re-apply presets
            cfg, _ = resolve_config(cls(), data, apply_presets=False)
            logger.debug("Config loaded from %s", path)
            return cfg
        except (OSError, ValueError) as exc:
            logger.warning("Could not load config (%s); using defaults.", exc)
            return cls()


# ── Option table ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class _Option:
    kind: type
    low: Optional[float] = None
    high: Optional[float] = None


_OPTIONS: dict[str, _Option] = {
    "target_fps": _Option(int, 5, 30),
    "frame_skip": _Option(int, 1, 5),
    "pause_on_idle": _Option(bool),
    "idle_timeout_ms": _Option(int, 500, 60_000),
    "reduced_canvas": _Option(bool),
    "horizontal_threshold": _Option(float, 0.1, 1.0),
    "vertical_threshold": _Option(float, 0.05, 0.5),
    "gaze_history_size": _Option(int, 2, 10),
    "post_interval_s": _Option(float, 0.0, 3600.0),
    "log_dir": _Option(str),
    "camera_index": _Option(int, 0, 64),
    "camera_width": _Option(int, 160, 3840),
    "camera_height": _Option(int, 120, 2160),
    "face_detection_confidence": _Option(float, 0.0, 1.0),
    "face_mesh_confidence": _Option(float, 0.0, 1.0),
}

# camelCase option names accepted from browser clients
_ALIASES: dict[str, str] = {
    "targetFps": "target_fps",
    "frameSkip": "frame_skip",
    "pauseOnIdle": "pause_on_idle",
    "idleTimeout": "idle_timeout_ms",
    "reducedCanvas": "reduced_canvas",
    "horizontalThreshold": "horizontal_threshold",
    "verticalThreshold": "vertical_threshold",
    "gazeHistorySize": "gaze_history_size",
    "performanceMode": "performance_mode",
    "sensitivityMode": "sensitivity_mode",
    "postTrackingDataInterval": "post_interval_s",
    "cameraWidth": "camera_width",
    "cameraHeight": "camera_height",
    "faceDetectionConfidence": "face_detection_confidence",
    "faceMeshConfidence": "face_mesh_confidence",
}

PERFORMANCE_PRESETS: dict[str, dict[str, Any]] = {
    "low": {
        "target_fps": 10,
        "frame_skip": 2,
        "pause_on_idle": True,
        "idle_timeout_ms": 2000,
        "reduced_canvas": True,
    },
    "balanced": {
        "target_fps": 15,
        "frame_skip": 1,
        "pause_on_idle": True,
        "idle_timeout_ms": 3000,
        "reduced_canvas": False,
    },
    "high": {
        "target_fps": 30,
        "frame_skip": 1,
        "pause_on_idle": False,
        "idle_timeout_ms": 3000,
        "reduced_canvas": False,
    },
}

SENSITIVITY_PRESETS: dict[str, dict[str, Any]] = {
    "low": {"horizontal_threshold": 0.45, "vertical_threshold": 0.25, "gaze_history_size": 7},
    "medium": {"horizontal_threshold": 0.3, "vertical_threshold": 0.15, "gaze_history_size": 5},
    "high": {"horizontal_threshold": 0.2, "vertical_threshold": 0.1, "gaze_history_size": 3},
}

_PRESET_TABLES: dict[str, dict[str, dict[str, Any]]] = {
    "performance_mode": PERFORMANCE_PRESETS,
    "sensitivity_mode": SENSITIVITY_PRESETS,
}


def canonical_name(key: str) -> Optional[str]:
    """Map a camelCase or snake_case option name to the field name."""
    name = _ALIASES.get(key, key)
    if name in _OPTIONS or name in _PRESET_TABLES:
        return name
    return None


def _coerce(option: _Option, value: Any) -> Any:
    if option.kind is bool:
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in ("true", "1", "yes", "on"):
                return True
            if lowered in ("false", "0", "no", "off", ""):
                return False
            raise ValueError(f"not a boolean: {value!r}")
        return bool(value)
    if option.kind is int:
        # parseInt-style: accept "12", 12.7 and "12.7"
        return int(float(value))
    if option.kind is float:
        result = float(value)
        if result != result:
            raise ValueError("NaN")
        return result
    return str(value)


def _clamp(name: str, option: _Option, value: Any, notices: list[str]) -> Any:
    if option.low is None or option.high is None:
        return value
    clamped = max(option.low, min(option.high, value))
    clamped = option.kind(clamped)
    if clamped != value:
        notice = f"{name}={value!r} out of range [{option.low}, {option.high}]; clamped to {clamped!r}"
        logger.info("%s", notice)
        notices.append(notice)
    return clamped


def resolve_config(
    base: Config,
    overrides: Mapping[str, Any],
    apply_presets: bool = True,
) -> tuple[Config, list[str]]:
    """Return a new config built in three stages, plus any notices.

    1. copy *base*;
    2. apply the named presets found in *overrides*;
    3. apply the explicit fields in *overrides*, clamped to their ranges.

    An explicit field that a preset of the same call also sets wins, with a
    warning.  Unknown keys are ignored.  *base* is never mutated.
    """
    cfg = dataclasses.replace(base)
    notices: list[str] = []

    explicit: dict[str, Any] = {}
    for key, value in overrides.items():
        name = canonical_name(key)
        if name is None:
            logger.debug("Ignoring unknown setting %r", key)
            continue
        explicit[name] = value

    # ── Stage 2: presets ──────────────────────────────────────────────────
    preset_owner: dict[str, str] = {}
    for mode_field, table in _PRESET_TABLES.items():
        if mode_field not in explicit:
            continue
        mode = explicit.pop(mode_field)
        if mode is None or mode == "":
            setattr(cfg, mode_field, None)
            continue
        mode = str(mode).strip().lower()
        preset = table.get(mode)
        if preset is None:
            notice = f"unknown {mode_field} {mode!r}; expected one of {sorted(table)}"
            logger.warning("%s", notice)
            notices.append(notice)
            continue
        setattr(cfg, mode_field, mode)
        if not apply_presets:
            continue
        for name, value in preset.items():
            setattr(cfg, name, value)
            preset_owner[name] = f"{mode_field}={mode}"
        logger.debug("Applied %s preset %r", mode_field, mode)

    # ── Stage 3: explicit overrides ───────────────────────────────────────
    for name, raw in explicit.items():
        option = _OPTIONS[name]
        try:
            value = _coerce(option, raw)
        except (TypeError, ValueError, OverflowError):
            notice = f"{name}={raw!r} is not a valid {option.kind.__name__}; ignored"
            logger.warning("%s", notice)
            notices.append(notice)
            continue
        value = _clamp(name, option, value, notices)
        if name in preset_owner:
            notice = f"{name}={value!r} overrides the value from {preset_owner[name]}"
            logger.warning("%s", notice)
            notices.append(notice)
        setattr(cfg, name, value)

    return cfg, notices
