"""Shared fixtures: a controllable clock and a ready engine."""

from __future__ import annotations

from typing import Callable, Iterator

import pytest

from app.config import Config
from app.engine import SessionEngine
from factories import FakeClock


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def engine_factory(clock: FakeClock) -> Iterator[Callable[..., SessionEngine]]:
    """Build a ready (not started) engine on the fake clock."""
    engines: list[SessionEngine] = []

    def build(**config_fields) -> SessionEngine:
        engine = SessionEngine(Config(**config_fields), clock=clock)
        engine.mark_ready()
        engines.append(engine)
        return engine

    yield build
    for engine in engines:
        engine.stop()
