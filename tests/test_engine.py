from __future__ import annotations

import threading
import time

from conftest import flash
from speller.engine import SpellerEngine
from speller.grid import Grid
from speller.models import Axis, SelectionState
from speller.sources import PushProbabilitySource
from utils.events import EventBus, EventType


def test_row_then_col_through_probability_stream(engine, source, captured):
    assert engine.connect()
    flash(engine.event_log, Axis.ROW, 2)
    source.push(0.31)
    engine.drain()
    assert engine.decoder.state is SelectionState.ROW_PENDING

    flash(engine.event_log, Axis.COL, 3)
    source.push(0.31)
    engine.drain()

    decoded = captured[EventType.SYMBOL_DECODED]
    assert [e.data["symbol"] for e in decoded] == ["P"]
    assert decoded[0].data["row"] == 2
    assert decoded[0].data["col"] == 3
    assert engine.decoder.state is SelectionState.EMPTY
    assert engine.transcript.text == "P"
    assert captured[EventType.TRANSCRIPT_UPDATED][-1].data == {"text": "P"}


def test_sample_below_threshold_is_ignored(engine, source, captured):
    engine.connect()
    flash(engine.event_log, Axis.ROW, 0)
    source.push(0.29)
    engine.drain()
    assert engine.decoder.state is SelectionState.EMPTY
    assert captured[EventType.PROBABILITY][-1].data == {"value": 0.29, "triggered": False}
    assert engine.monitor.last_value == 0.29


def test_trigger_before_any_flash_is_noop(engine, source, captured):
    engine.connect()
    source.push(0.9)
    engine.drain()
    assert engine.decoder.state is SelectionState.EMPTY
    assert captured[EventType.SELECTION_UPDATED] == []


def test_submit_sample_goes_through_the_queue(engine):
    flash(engine.event_log, Axis.COL, 5)
    engine.submit_sample(0.8)
    assert engine.decoder.state is SelectionState.EMPTY
    assert engine.drain() == 1
    assert engine.decoder.state is SelectionState.COL_PENDING


def test_ticks_and_samples_run_in_submission_order(engine):
    engine.scheduler.start(run_timer=False)
    engine.submit(engine.scheduler.tick)
    engine.submit_sample(0.9)
    engine.drain()

    first = engine.event_log.most_recent()
    if first.axis is Axis.ROW:
        assert engine.decoder.pending_row == first.index
    else:
        assert engine.decoder.pending_col == first.index


def test_stop_flashing_resets_selection(engine, captured):
    assert engine.start_flashing()
    assert not engine.start_flashing()
    flash(engine.event_log, Axis.ROW, 1)
    engine.decoder.on_decode_trigger()
    assert engine.decoder.state is SelectionState.ROW_PENDING

    assert engine.stop_flashing()
    assert not engine.stop_flashing()
    engine.drain()
    assert engine.decoder.state is SelectionState.EMPTY
    statuses = [e.data["flashing"] for e in captured[EventType.FLASHING_STATUS]]
    assert statuses == [True, False]


def test_subscription_lost_resets_and_stops_triggers(engine, source, captured):
    engine.connect()
    flash(engine.event_log, Axis.ROW, 1)
    source.push(0.9)
    engine.drain()
    assert engine.decoder.state is SelectionState.ROW_PENDING

    flash(engine.event_log, Axis.COL, 2)
    source.push(0.9)
    source.close("stream ended")
    engine.drain()

    assert engine.decoder.state is SelectionState.EMPTY
    assert captured[EventType.SYMBOL_DECODED] == []
    assert not engine.monitor.is_attached
    assert not engine.connected
    assert captured[EventType.SUBSCRIPTION_LOST][0].data == {"reason": "stream ended"}

    assert source.push(0.9) == 0
    engine.drain()
    assert engine.decoder.state is SelectionState.EMPTY


def test_flashing_continues_after_subscription_lost(engine, source):
    engine.connect()
    engine.scheduler.start(run_timer=False)
    source.close()
    assert engine.scheduler.tick() is not None
    assert engine.scheduler.is_running


def test_line_break_types_newline(source):
    engine = SpellerEngine(grid=Grid(), source=source, bus=EventBus())
    engine.connect()
    for axis, index in ((Axis.ROW, 4), (Axis.COL, 5), (Axis.COL, 0), (Axis.ROW, 0)):
        flash(engine.event_log, axis, index)
        source.push(1.0)
        engine.drain()
    assert engine.transcript.text == "\nA"
    assert engine.delete_last_symbol() == "A"
    engine.clear_transcript()
    assert engine.transcript.text == ""
    assert engine.delete_last_symbol() is None


def test_update_settings_applies_to_components(engine):
    engine.update_settings(interval_ms=250, threshold=0.6, mode="edge", refractory_ms=100)
    assert engine.settings == {
        "flash_interval_ms": 250,
        "threshold": 0.6,
        "trigger_mode": "edge",
        "refractory_ms": 100,
        "flash_log_size": 16,
    }


def test_status_reports_pending_and_highlight(engine):
    engine.scheduler.start(run_timer=False)
    event = engine.scheduler.tick()
    engine.decoder.on_decode_trigger()
    status = engine.status
    assert status["flashing"] is True
    assert status["highlighted_axis"] == event.axis.value
    assert status["highlighted_index"] == event.index
    assert status["state"] in ("row_pending", "col_pending")
    assert status["flash_count"] == 1
    assert status["last_symbol"] is None


def test_failing_store_does_not_break_decoding(source):
    class BrokenStore:
        def push_event(self, event_type, data):
            raise ConnectionError("redis down")

    engine = SpellerEngine(grid=Grid([["A", "B"]]), source=source, bus=EventBus(), store=BrokenStore())
    engine.connect()
    for axis, index in ((Axis.ROW, 0), (Axis.COL, 1)):
        flash(engine.event_log, axis, index)
        source.push(0.7)
        engine.drain()
    assert engine.decoder.last_decoded.symbol == "B"


def test_threaded_engine_decodes_end_to_end(grid):
    source = PushProbabilitySource()
    engine = SpellerEngine(grid=grid, source=source, bus=EventBus())
    engine.start()
    try:
        assert engine.connected
        flash(engine.event_log, Axis.COL, 0)
        source.push(0.5)
        flash_deadline = time.monotonic() + 2.0
        while engine.decoder.state is not SelectionState.COL_PENDING and time.monotonic() < flash_deadline:
            time.sleep(0.01)
        flash(engine.event_log, Axis.ROW, 1)
        source.push(0.5)
        deadline = time.monotonic() + 2.0
        while engine.decoder.last_decoded is None and time.monotonic() < deadline:
            time.sleep(0.01)
        assert engine.decoder.last_decoded.symbol == "G"
    finally:
        engine.shutdown()
    assert not engine.is_running


def test_loss_during_in_flight_sample_still_ends_empty(grid):
    source = PushProbabilitySource()
    bus = EventBus()
    engine = SpellerEngine(grid=grid, source=source, bus=bus)
    decoded = []
    bus.on(EventType.SYMBOL_DECODED, decoded.append)

    in_sample = threading.Event()
    release = threading.Event()

    def hold(event):
        in_sample.set()
        release.wait(2.0)

    bus.on(EventType.PROBABILITY, hold)
    engine.start()
    try:
        flash(engine.event_log, Axis.ROW, 1)
        source.push(0.9)
        assert in_sample.wait(2.0)

        closer = threading.Thread(target=source.close, args=("stream ended",))
        closer.start()
        closer.join(0.1)
        # The loss handler waits for the sample being processed.
        assert closer.is_alive()

        release.set()
        closer.join(2.0)
        assert not closer.is_alive()

        done = threading.Event()
        engine.submit(done.set)
        assert done.wait(2.0)
        assert engine.decoder.state is SelectionState.EMPTY
        assert not engine.monitor.is_attached
        assert decoded == []
        assert source.push(0.9) == 0
    finally:
        release.set()
        engine.shutdown()


def test_reset_runs_after_queued_trigger(engine):
    flash(engine.event_log, Axis.ROW, 3)
    engine.submit_sample(0.9)
    engine.reset_selection()
    engine.drain()
    assert engine.decoder.state is SelectionState.EMPTY


def test_shutdown_runs_queued_reset(grid):
    engine = SpellerEngine(grid=grid, bus=EventBus())
    flash(engine.event_log, Axis.ROW, 2)
    engine.decoder.on_decode_trigger()
    engine.scheduler.start(run_timer=False)
    assert engine.stop_flashing()
    assert engine.decoder.state is SelectionState.ROW_PENDING
    engine.shutdown()
    assert engine.decoder.state is SelectionState.EMPTY
    assert engine.drain() == 0


def test_status_reads_selection_in_one_snapshot(engine):
    flash(engine.event_log, Axis.COL, 4)
    engine.decoder.on_decode_trigger()
    status = engine.status
    assert status["state"] == "col_pending"
    assert status["pending_row"] is None
    assert status["pending_col"] == 4
    assert engine.decoder.snapshot() == {
        "state": "col_pending",
        "pending_row": None,
        "pending_col": 4,
        "last_decoded": None,
    }


def test_status_reports_redis_reachability(source):
    class PingStore:
        def __init__(self, up):
            self.up = up

        def ping(self):
            return self.up

        def push_event(self, event_type, data):
            pass

    assert SpellerEngine(grid=Grid(), source=source, bus=EventBus()).status["redis_connected"] is False
    up = SpellerEngine(grid=Grid(), source=source, bus=EventBus(), store=PingStore(True))
    down = SpellerEngine(grid=Grid(), source=source, bus=EventBus(), store=PingStore(False))
    assert up.status["redis_connected"] is True
    assert down.status["redis_connected"] is False
