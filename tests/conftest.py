from __future__ import annotations

import random

import pytest

from speller.engine import SpellerEngine
from speller.event_log import FlashEventLog
from speller.grid import Grid
from speller.models import Axis, FlashEvent
from speller.sources import PushProbabilitySource
from utils.events import EventBus, EventType


@pytest.fixture()
def grid() -> Grid:
    return Grid()


@pytest.fixture()
def event_log() -> FlashEventLog:
    return FlashEventLog(maxlen=8)


@pytest.fixture()
def bus() -> EventBus:
    return EventBus()


@pytest.fixture()
def captured(bus: EventBus) -> dict[EventType, list]:
    seen: dict[EventType, list] = {t: [] for t in EventType}
    for event_type in EventType:
        bus.on(event_type, lambda ev, t=event_type: seen[t].append(ev))
    return seen


@pytest.fixture()
def source() -> PushProbabilitySource:
    return PushProbabilitySource()


@pytest.fixture()
def engine(grid: Grid, source: PushProbabilitySource, bus: EventBus) -> SpellerEngine:
    eng = SpellerEngine(
        grid=grid,
        source=source,
        interval_ms=1000,
        threshold=0.3,
        mode="level",
        refractory_ms=0,
        log_size=16,
        bus=bus,
        rng=random.Random(7),
    )
    yield eng
    eng.shutdown()


def flash(log: FlashEventLog, axis: Axis, index: int) -> FlashEvent:
    event = FlashEvent(axis=axis, index=index)
    log.append(event)
    return event
