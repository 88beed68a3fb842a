"""Randomized row/column flash scheduling.

A single timer thread fires every ``interval_ms``. Each tick picks ROW or
COL with equal probability and a uniform index on that axis, appends the
resulting :class:`FlashEvent` to the log and updates the highlight that the
frontend renders.
"""

from __future__ import annotations

import logging
import random
import threading
from typing import Callable

from speller.event_log import FlashEventLog
from speller.grid import Grid
from speller.models import Axis, FlashEvent

logger = logging.getLogger(__name__)

Dispatch = Callable[[Callable[[], None]], None]


class ScheduleHandle:
    """Owned handle for one run of the scheduler. Leaving ``with`` stops it."""

    def __init__(self, scheduler: FlashScheduler) -> None:
        self._scheduler = scheduler
        self._stop = threading.Event()
        self.thread: threading.Thread | None = None

    @property
    def cancelled(self) -> bool:
        return self._stop.is_set()

    def cancel(self) -> None:
        self._scheduler.stop(self)

    def __enter__(self) -> ScheduleHandle:
        return self

    def __exit__(self, *exc_info) -> None:
        self.cancel()


class FlashScheduler:

    def __init__(
        self,
        grid: Grid,
        event_log: FlashEventLog,
        interval_ms: int = 1000,
        rng: random.Random | None = None,
        on_flash: Callable[[FlashEvent], None] | None = None,
        on_status: Callable[[bool], None] | None = None,
        dispatch: Dispatch | None = None,
    ) -> None:
        self._grid = grid
        self._log = event_log
        self.interval_ms = interval_ms
        self._rng = rng or random.Random()
        self._on_flash = on_flash
        self._on_status = on_status
        self._dispatch = dispatch

        self._handle: ScheduleHandle | None = None
        self._highlighted: tuple[Axis, int] | None = None
        self._lock = threading.Lock()

    @property
    def interval_ms(self) -> int:
        return self._interval_ms

    @interval_ms.setter
    def interval_ms(self, value: int) -> None:
        if value <= 0:
            raise ValueError("interval_ms must be positive")
        self._interval_ms = int(value)

    @property
    def is_running(self) -> bool:
        return self._handle is not None

    @property
    def highlighted(self) -> tuple[Axis, int] | None:
        return self._highlighted

    def start(self, run_timer: bool = True) -> ScheduleHandle:
        """Begin flashing. Returns the live handle if already running.

        With ``run_timer=False`` no thread is started and ticks are driven
        by calling :meth:`tick`.
        """
        with self._lock:
            if self._handle is not None:
                return self._handle
            handle = ScheduleHandle(self)
            self._handle = handle
            if run_timer:
                handle.thread = threading.Thread(
                    target=self._timer_loop, args=(handle,),
                    name="flash-timer", daemon=True,
                )
                handle.thread.start()

        logger.info("Flashing started (interval=%dms)", self._interval_ms)
        if self._on_status is not None:
            self._on_status(True)
        return handle

    def stop(self, handle: ScheduleHandle | None = None) -> None:
        with self._lock:
            current = self._handle
            if handle is not None and handle is not current:
                handle._stop.set()
                return
            if current is None:
                self._highlighted = None
                return
            current._stop.set()
            self._handle = None
            self._highlighted = None

        thread = current.thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=3)
        logger.info("Flashing stopped")
        if self._on_status is not None:
            self._on_status(False)

    def tick(self) -> FlashEvent | None:
        """Emit one flash now, if running."""
        handle = self._handle
        if handle is None:
            return None
        return self._emit(handle)

    def _timer_loop(self, handle: ScheduleHandle) -> None:
        while not handle._stop.wait(self._interval_ms / 1000.0):
            if self._dispatch is None:
                self._emit(handle)
            else:
                self._dispatch(lambda: self._emit(handle))

    def _emit(self, handle: ScheduleHandle) -> FlashEvent | None:
        with self._lock:
            if handle is not self._handle or handle.cancelled:
                return None
            if self._rng.random() < 0.5:
                axis, count = Axis.ROW, self._grid.row_count
            else:
                axis, count = Axis.COL, self._grid.col_count
            event = FlashEvent(axis=axis, index=self._rng.randrange(count))
            self._log.append(event)
            self._highlighted = (axis, event.index)

        if self._on_flash is not None:
            self._on_flash(event)
        return event
