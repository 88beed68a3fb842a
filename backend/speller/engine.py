"""Speller engine: wires scheduler, monitor and decoder onto one dispatch loop.

Timer ticks and probability samples arrive on their own threads. Both are
handed to a single queue drained by one worker, so flash log appends and
selection transitions happen one at a time in the order they were observed.
"""

from __future__ import annotations

import logging
import queue
import random
import threading
from typing import Any, Callable

import config
from speller.decoder import SelectionDecoder
from speller.errors import SubscriptionLost
from speller.event_log import FlashEventLog
from speller.grid import Grid
from speller.models import DecodedSymbol, FlashEvent, ProbabilitySample, SelectionState
from speller.monitor import ProbabilityMonitor
from speller.sources import ProbabilitySource
from speller.transcript import Transcript
from stimulus.flasher import FlashScheduler
from utils.events import Event, EventBus, EventType, event_bus

logger = logging.getLogger(__name__)

_STOP = object()


class SpellerEngine:

    def __init__(
        self,
        grid: Grid | None = None,
        source: ProbabilitySource | None = None,
        interval_ms: int = config.FLASH_INTERVAL_MS,
        threshold: float = config.PROBABILITY_THRESHOLD,
        mode: str = config.TRIGGER_MODE,
        refractory_ms: float = config.DECODE_REFRACTORY_MS,
        log_size: int = config.FLASH_LOG_SIZE,
        bus: EventBus | None = None,
        rng: random.Random | None = None,
        store: Any = None,
    ) -> None:
        self.grid = grid or Grid.from_string(config.SPELLER_GRID)
        self.source = source
        self._bus = bus or event_bus
        self._store = store

        self._queue: queue.Queue = queue.Queue()
        self._worker: threading.Thread | None = None
        self._running = False

        self.event_log = FlashEventLog(maxlen=log_size)
        self.transcript = Transcript()
        self.decoder = SelectionDecoder(
            self.grid,
            self.event_log,
            refractory_ms=refractory_ms,
            on_selection=self._on_selection,
            on_decoded=self._on_decoded,
        )
        self.monitor = ProbabilityMonitor(
            on_trigger=self._on_trigger,
            threshold=threshold,
            mode=mode,
            on_sample=self._on_probability,
        )
        self.scheduler = FlashScheduler(
            self.grid,
            self.event_log,
            interval_ms=interval_ms,
            rng=rng,
            on_flash=self._on_flash,
            on_status=self._on_flashing_status,
            dispatch=self.submit,
        )

    # ── Lifecycle ──────────────────────────────────────────────

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def connected(self) -> bool:
        return self.source is not None and self.monitor.is_attached and self.source.connected

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._worker = threading.Thread(
            target=self._dispatch_loop, name="speller-dispatch", daemon=True
        )
        self._worker.start()
        logger.info("Speller engine started (grid=%dx%d)", *self.grid.shape)
        if self.source is not None:
            self.connect()

    def connect(self) -> bool:
        if self.source is None:
            return False
        try:
            self.monitor.attach(self.source, dispatch=self.submit, on_lost=self._on_subscription_lost)
        except SubscriptionLost as exc:
            logger.error("Could not subscribe to %s source: %s", self.source.name, exc)
            self._emit(EventType.SUBSCRIPTION_LOST, {"reason": str(exc)})
            return False
        self._emit_status()
        return True

    def shutdown(self) -> None:
        self.scheduler.stop()
        self.monitor.detach()
        if self._running:
            self._running = False
            self._queue.put(_STOP)
            if self._worker is not None and self._worker is not threading.current_thread():
                self._worker.join(timeout=3)
            self._worker = None
            logger.info("Speller engine shut down")
        # Stale ticks and samples drop themselves; queued resets still apply.
        self.drain()

    # ── Dispatch loop ──────────────────────────────────────────

    def submit(self, task: Callable[[], None]) -> None:
        self._queue.put(task)

    def submit_sample(self, value: float, timestamp: float | None = None) -> None:
        if timestamp is None:
            sample = ProbabilitySample(value=float(value))
        else:
            sample = ProbabilitySample(value=float(value), timestamp=timestamp)
        self.submit(lambda: self.monitor.on_sample(sample))

    def drain(self) -> int:
        """Run every queued task on the calling thread. Returns how many ran."""
        ran = 0
        while True:
            try:
                task = self._queue.get_nowait()
            except queue.Empty:
                return ran
            if task is _STOP:
                continue
            self._run_task(task)
            ran += 1

    def _dispatch_loop(self) -> None:
        while self._running:
            try:
                task = self._queue.get(timeout=0.1)
            except queue.Empty:
                continue
            if task is _STOP:
                break
            self._run_task(task)

    def _run_task(self, task: Callable[[], None]) -> None:
        try:
            task()
        except Exception:
            logger.exception("Dispatch task failed")

    # ── Commands ───────────────────────────────────────────────

    def start_flashing(self) -> bool:
        if self.scheduler.is_running:
            return False
        self.scheduler.start()
        return True

    def stop_flashing(self) -> bool:
        was_running = self.scheduler.is_running
        self.scheduler.stop()
        self.submit(self.decoder.reset)
        return was_running

    def reset_selection(self) -> None:
        """Queue a reset behind any trigger already waiting on the dispatch loop."""
        self.submit(self.decoder.reset)

    def delete_last_symbol(self) -> str | None:
        removed = self.transcript.delete_last()
        if removed is not None:
            logger.info("Deleted last symbol %r", removed)
            self._emit(EventType.TRANSCRIPT_UPDATED, {"text": self.transcript.text})
        return removed

    def clear_transcript(self) -> None:
        self.transcript.clear()
        self._emit(EventType.TRANSCRIPT_UPDATED, {"text": ""})

    def update_settings(
        self,
        interval_ms: int | None = None,
        threshold: float | None = None,
        mode: str | None = None,
        refractory_ms: float | None = None,
    ) -> None:
        if interval_ms is not None:
            self.scheduler.interval_ms = interval_ms
        if threshold is not None:
            self.monitor.threshold = threshold
        if mode is not None:
            self.monitor.mode = mode
        if refractory_ms is not None:
            self.decoder.refractory_ms = refractory_ms
        logger.info(
            "Settings updated: interval=%dms threshold=%.2f mode=%s refractory=%sms",
            self.scheduler.interval_ms, self.monitor.threshold,
            self.monitor.mode, self.decoder.refractory_ms,
        )

    @property
    def settings(self) -> dict[str, Any]:
        return {
            "flash_interval_ms": self.scheduler.interval_ms,
            "threshold": self.monitor.threshold,
            "trigger_mode": self.monitor.mode,
            "refractory_ms": self.decoder.refractory_ms,
            "flash_log_size": self.event_log.maxlen,
        }

    @property
    def status(self) -> dict[str, Any]:
        highlighted = self.scheduler.highlighted
        selection = self.decoder.snapshot()
        last = selection["last_decoded"]
        return {
            "connected": self.connected,
            "source": self.source.name if self.source is not None else None,
            "flashing": self.scheduler.is_running,
            "highlighted_axis": highlighted[0].value if highlighted else None,
            "highlighted_index": highlighted[1] if highlighted else None,
            "state": selection["state"],
            "pending_row": selection["pending_row"],
            "pending_col": selection["pending_col"],
            "probability": self.monitor.last_value,
            "last_symbol": last["symbol"] if last else None,
            "transcript": self.transcript.text,
            "flash_count": self.event_log.total,
            "redis_connected": self._store.ping() if self._store is not None else False,
            **self.settings,
        }

    # ── Callbacks ──────────────────────────────────────────────

    def _on_trigger(self, timestamp: float) -> None:
        self.decoder.on_decode_trigger(timestamp)

    def _on_flash(self, event: FlashEvent) -> None:
        self._emit(EventType.FLASH, event.to_json())
        self._record("flash", event.to_json())

    def _on_flashing_status(self, running: bool) -> None:
        self._emit(EventType.FLASHING_STATUS, {"flashing": running})

    def _on_probability(self, sample: ProbabilitySample, triggered: bool) -> None:
        self._emit(EventType.PROBABILITY, {"value": sample.value, "triggered": triggered})

    def _on_selection(
        self, row: int | None, col: int | None, state: SelectionState
    ) -> None:
        self._emit(EventType.SELECTION_UPDATED, {
            "pending_row": row,
            "pending_col": col,
            "state": state.value,
        })

    def _on_decoded(self, decoded: DecodedSymbol) -> None:
        self.transcript.type(decoded.symbol)
        self._emit(EventType.SYMBOL_DECODED, decoded.to_json())
        self._emit(EventType.TRANSCRIPT_UPDATED, {"text": self.transcript.text})
        self._record("symbol_decoded", decoded.to_json())

    def _on_subscription_lost(self, exc: SubscriptionLost) -> None:
        self.monitor.detach()
        self.submit(self.decoder.reset)
        self._emit(EventType.SUBSCRIPTION_LOST, {"reason": str(exc)})
        self._emit_status()

    def _emit_status(self) -> None:
        self._emit(EventType.SYSTEM_STATUS, {
            "connected": self.connected,
            "flashing": self.scheduler.is_running,
        })

    def _emit(self, event_type: EventType, data: dict[str, Any]) -> None:
        self._bus.emit(Event(type=event_type, data=data))

    def _record(self, event_type: str, data: dict[str, Any]) -> None:
        if self._store is None:
            return
        try:
            self._store.push_event(event_type, data)
        except Exception:
            logger.debug("Redis push failed (non-critical)")
