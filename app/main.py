"""Command-line entry point: webcam → attention engine → session files."""

from __future__ import annotations

import argparse
import logging
import sys
import time
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Sequence

# Ensure project root is on the path when running as `python app/main.py`
_ROOT = Path(__file__).parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from app.config import Config, resolve_config
from app.engine import SessionEngine
from domain.metrics import summarize_rollups
from domain.models import GazeEvent, IdleEvent, PresenceEvent, StatsSnapshot
from storage.session_writer import SessionWriter
from vision.source import CameraSource

logger = logging.getLogger(__name__)

_STATUS_EVERY_S = 5.0
_MODEL_LOAD_TIMEOUT_S = 120.0


def _configure_logging(debug: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
        datefmt="%H:%M:%S",
    )


def _parse_args(argv: Optional[Sequence[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Track screen attention from a webcam.")
    parser.add_argument("--config", default="config.json", help="JSON config file")
    parser.add_argument("--camera", type=int, dest="camera_index", help="camera index")
    parser.add_argument("--fps", type=int, dest="target_fps", help="max processing rate (5-30)")
    parser.add_argument("--frame-skip", type=int, dest="frame_skip", help="landmark-path divisor (1-5)")
    parser.add_argument("--performance", dest="performance_mode", choices=["low", "balanced", "high"])
    parser.add_argument("--sensitivity", dest="sensitivity_mode", choices=["low", "medium", "high"])
    parser.add_argument(
        "--post-interval", type=float, dest="post_interval_s",
        help="seconds between rollup records (0 disables)",
    )
    parser.add_argument("--log-dir", dest="log_dir", help="directory for session output")
    parser.add_argument("--no-idle", action="store_true", help="never pause on idle")
    parser.add_argument("--debug", action="store_true", help="verbose logging")
    return parser.parse_args(argv)


def _overrides(args: argparse.Namespace) -> dict[str, Any]:
    keys = (
        "camera_index", "target_fps", "frame_skip", "performance_mode",
        "sensitivity_mode", "post_interval_s", "log_dir",
    )
    overrides = {k: getattr(args, k) for k in keys if getattr(args, k) is not None}
    if args.no_idle:
        overrides["pause_on_idle"] = False
    return overrides


def _log_status(stats: StatsSnapshot) -> None:
    logger.info(
        "faces=%d  gaze=%s  away=%ds  distracted=%ds  fps=%d  skipped=%d%s",
        stats.face_count,
        stats.gaze_state.value if stats.gaze_state else "-",
        stats.away_s,
        stats.distracted_s,
        stats.processing_fps,
        stats.frames_skipped,
        "  (idle)" if stats.is_idle else "",
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _parse_args(argv)
    _configure_logging(args.debug)
    logger.info("Screen attention engine – starting up.")

    config, _ = resolve_config(Config.load(Path(args.config)), _overrides(args))
    engine = SessionEngine(config)

    session_dir = Path(config.log_dir) / datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
    writer = SessionWriter(session_dir)

    def on_event(event: PresenceEvent | GazeEvent | IdleEvent) -> None:
        writer.write_event(event)

    engine.on_face_count_change = on_event
    engine.on_gaze_change = on_event
    engine.on_idle_change = on_event
    engine.on_rollup = writer.write_rollup
    engine.on_error = lambda exc: logger.error("Error: %s", exc)

    source = CameraSource(engine, config)
    try:
        source.start()
    except RuntimeError as exc:
        logger.error("%s Check that the webcam is connected and not in use.", exc)
        writer.close()
        return 1

    if not source.wait_ready(_MODEL_LOAD_TIMEOUT_S) or not engine.is_ready:
        logger.error("Vision models did not load; giving up.")
        source.stop()
        writer.close()
        return 1

    session_id = engine.start()
    width, height = source.resolution
    writer.write_meta(
        {
            "session_id": session_id,
            "started_at": datetime.now().isoformat(),
            "camera_index": config.camera_index,
            "camera_width": width,
            "camera_height": height,
            "config": asdict(engine.get_config()),
        }
    )

    try:
        while True:
            time.sleep(_STATUS_EVERY_S)
            _log_status(engine.get_stats())
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    finally:
        engine.report_now()
        engine.stop()
        source.stop()
        writer.write_summary(summarize_rollups(writer.rollups))
        writer.close()

    logger.info("Session output written to %s", session_dir)
    return 0


if __name__ == "__main__":
    sys.exit(main())
