"""Tests for the repeating rollup timer."""

import threading

import pytest

from app.scheduler import RepeatingTimer


def test_rejects_non_positive_interval():
    with pytest.raises(ValueError):
        RepeatingTimer(0, lambda: None)


def test_fires_repeatedly_until_cancelled():
    ticks = []
    done = threading.Event()

    def tick():
        ticks.append(1)
        if len(ticks) >= 3:
            done.set()

    timer = RepeatingTimer(0.02, tick)
    timer.start()
    assert done.wait(timeout=5.0)
    timer.cancel()
    assert not timer.is_running

    count = len(ticks)
    threading.Event().wait(0.1)
    assert len(ticks) == count


def test_callback_errors_do_not_stop_the_timer():
    ticks = []
    done = threading.Event()

    def flaky():
        ticks.append(1)
        if len(ticks) >= 2:
            done.set()
        raise RuntimeError("boom")

    timer = RepeatingTimer(0.02, flaky)
    timer.start()
    try:
        assert done.wait(timeout=5.0)
    finally:
        timer.cancel()


def test_cancel_from_inside_callback():
    holder = {}
    done = threading.Event()

    def tick():
        holder["timer"].cancel()
        done.set()

    timer = RepeatingTimer(0.02, tick)
    holder["timer"] = timer
    timer.start()
    assert done.wait(timeout=5.0)
    timer.cancel()
    assert not timer.is_running


def test_cancel_without_waiting():
    started = threading.Event()
    release = threading.Event()

    def slow():
        started.set()
        release.wait(5.0)

    timer = RepeatingTimer(0.02, slow)
    timer.start()
    assert started.wait(timeout=5.0)

    # the callback is still running, so a waiting cancel would block
    timer.cancel(wait=False)
    assert not timer.is_running
    release.set()
