"""Tests for config resolution, presets and persistence."""

import json

import pytest

from app.config import Config, canonical_name, resolve_config


def test_defaults():
    cfg = Config()
    assert (cfg.target_fps, cfg.frame_skip, cfg.idle_timeout_ms) == (15, 1, 3000)
    assert (cfg.horizontal_threshold, cfg.vertical_threshold) == (0.3, 0.15)
    assert cfg.gaze_history_size == 5
    assert cfg.post_interval_s == 0.0


@pytest.mark.parametrize(
    "key, value, expected",
    [
        ("target_fps", 100, 30),
        ("target_fps", 1, 5),
        ("frame_skip", 9, 5),
        ("idle_timeout_ms", 10, 500),
        ("horizontal_threshold", 0.01, 0.1),
        ("vertical_threshold", 2.0, 0.5),
        ("gaze_history_size", 50, 10),
    ],
)
def test_values_are_clamped(key, value, expected):
    cfg, notices = resolve_config(Config(), {key: value})
    assert getattr(cfg, key) == expected
    assert len(notices) == 1
    assert key in notices[0]


def test_in_range_values_pass_silently():
    cfg, notices = resolve_config(Config(), {"target_fps": 20, "vertical_threshold": 0.2})
    assert cfg.target_fps == 20
    assert cfg.vertical_threshold == 0.2
    assert notices == []


def test_camel_case_aliases():
    assert canonical_name("idleTimeout") == "idle_timeout_ms"
    assert canonical_name("postTrackingDataInterval") == "post_interval_s"
    assert canonical_name("frame_skip") == "frame_skip"
    assert canonical_name("nope") is None

    cfg, _ = resolve_config(Config(), {"pauseOnIdle": False, "reducedCanvas": "true"})
    assert cfg.pause_on_idle is False
    assert cfg.reduced_canvas is True


def test_numeric_strings_are_parsed():
    cfg, notices = resolve_config(Config(), {"targetFps": "12", "gazeHistorySize": 4.7})
    assert cfg.target_fps == 12
    assert cfg.gaze_history_size == 4
    assert notices == []


def test_invalid_values_are_ignored():
    cfg, notices = resolve_config(
        Config(),
        {"target_fps": "fast", "horizontal_threshold": float("nan"), "pause_on_idle": "maybe"},
    )
    assert cfg == Config()
    assert len(notices) == 3


def test_base_is_not_mutated():
    base = Config()
    resolve_config(base, {"target_fps": 25, "performance_mode": "low"})
    assert base == Config()


def test_performance_presets():
    low, _ = resolve_config(Config(), {"performance_mode": "low"})
    assert (low.target_fps, low.frame_skip, low.idle_timeout_ms) == (10, 2, 2000)
    assert low.pause_on_idle is True
    assert low.reduced_canvas is True

    high, _ = resolve_config(Config(), {"performanceMode": "HIGH"})
    assert high.target_fps == 30
    assert high.pause_on_idle is False
    assert high.performance_mode == "high"


def test_sensitivity_presets():
    cfg, _ = resolve_config(Config(), {"sensitivityMode": "low"})
    assert (cfg.horizontal_threshold, cfg.vertical_threshold, cfg.gaze_history_size) == (0.45, 0.25, 7)


def test_explicit_field_wins_over_preset_with_notice():
    cfg, notices = resolve_config(Config(), {"sensitivity_mode": "high", "gaze_history_size": 8})
    assert cfg.gaze_history_size == 8
    assert cfg.horizontal_threshold == 0.2
    assert notices == ["gaze_history_size=8 overrides the value from sensitivity_mode=high"]


def test_later_explicit_call_overrides_earlier_preset_silently():
    cfg, _ = resolve_config(Config(), {"performance_mode": "low"})
    cfg, notices = resolve_config(cfg, {"target_fps": 20})
    assert cfg.target_fps == 20
    assert cfg.frame_skip == 2
    assert notices == []


def test_unknown_preset_is_reported():
    cfg, notices = resolve_config(Config(), {"performance_mode": "turbo"})
    assert cfg.performance_mode is None
    assert cfg.target_fps == 15
    assert "turbo" in notices[0]


def test_clearing_a_preset_keeps_its_values():
    cfg, _ = resolve_config(Config(), {"performance_mode": "low"})
    cfg, _ = resolve_config(cfg, {"performance_mode": None})
    assert cfg.performance_mode is None
    assert cfg.target_fps == 10


def test_save_and_load(tmp_path):
    path = tmp_path / "config.json"
    cfg, _ = resolve_config(Config(), {"performance_mode": "low", "target_fps": 12})
    cfg.save(path)

    loaded = Config.load(path)
    assert loaded == cfg
    # the stored preset name must not overwrite the stored explicit value
    assert loaded.target_fps == 12


def test_load_clamps_stored_values(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"target_fps": 500, "unknown": 1}), encoding="utf-8")
    assert Config.load(path).target_fps == 30


def test_load_missing_or_corrupt_file(tmp_path):
    assert Config.load(tmp_path / "absent.json") == Config()

    bad = tmp_path / "bad.json"
    bad.write_text("{not json", encoding="utf-8")
    assert Config.load(bad) == Config()

    wrong = tmp_path / "list.json"
    wrong.write_text("[1, 2]", encoding="utf-8")
    assert Config.load(wrong) == Config()
