"""Row/column selection state machine.

Each decode trigger resolves the most recent flash into a pending row or a
pending column. The trigger that supplies the missing axis decodes the cell
at (pending_row, pending_col) and returns the machine to EMPTY. A repeated
trigger on an axis that is already pending overwrites it.

    EMPTY --row--> ROW_PENDING --col--> (decode) EMPTY
    EMPTY --col--> COL_PENDING --row--> (decode) EMPTY
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable

from speller.errors import EmptyLogError
from speller.event_log import FlashEventLog
from speller.grid import Grid
from speller.models import Axis, DecodedSymbol, SelectionState

logger = logging.getLogger(__name__)

SelectionCallback = Callable[[int | None, int | None, SelectionState], None]
DecodedCallback = Callable[[DecodedSymbol], None]


class SelectionDecoder:

    def __init__(
        self,
        grid: Grid,
        event_log: FlashEventLog,
        refractory_ms: float = 0,
        on_selection: SelectionCallback | None = None,
        on_decoded: DecodedCallback | None = None,
    ) -> None:
        self._grid = grid
        self._log = event_log
        self.refractory_ms = refractory_ms
        self._on_selection = on_selection
        self._on_decoded = on_decoded

        self._pending_row: int | None = None
        self._pending_col: int | None = None
        self._last_decoded: DecodedSymbol | None = None
        self._last_trigger_ts: float | None = None
        self._lock = threading.Lock()

    @property
    def pending_row(self) -> int | None:
        return self._pending_row

    @property
    def pending_col(self) -> int | None:
        return self._pending_col

    @property
    def last_decoded(self) -> DecodedSymbol | None:
        return self._last_decoded

    @property
    def state(self) -> SelectionState:
        with self._lock:
            return self._state_locked()

    def snapshot(self) -> dict[str, Any]:
        """State, pending axes and last decode read together under the lock."""
        with self._lock:
            last = self._last_decoded
            return {
                "state": self._state_locked().value,
                "pending_row": self._pending_row,
                "pending_col": self._pending_col,
                "last_decoded": last.to_json() if last else None,
            }

    def _state_locked(self) -> SelectionState:
        if self._pending_row is not None:
            return SelectionState.ROW_PENDING
        if self._pending_col is not None:
            return SelectionState.COL_PENDING
        return SelectionState.EMPTY

    def reset(self) -> None:
        with self._lock:
            changed = self._pending_row is not None or self._pending_col is not None
            self._pending_row = None
            self._pending_col = None
            self._last_trigger_ts = None
        if changed and self._on_selection is not None:
            self._on_selection(None, None, SelectionState.EMPTY)

    def on_decode_trigger(self, timestamp: float | None = None) -> DecodedSymbol | None:
        """Resolve the most recent flash. Returns the decoded symbol, if any."""
        ts = time.monotonic() if timestamp is None else timestamp

        with self._lock:
            try:
                event = self._log.latest()
            except EmptyLogError:
                logger.debug("Decode trigger before first flash, ignoring")
                return None

            if (
                self.refractory_ms
                and self._last_trigger_ts is not None
                and (ts - self._last_trigger_ts) * 1000.0 < self.refractory_ms
            ):
                return None
            self._last_trigger_ts = ts

            decoded: DecodedSymbol | None = None
            if event.axis is Axis.ROW:
                self._pending_row = event.index
                if self._pending_col is not None:
                    decoded = self._decode_locked(event.index, self._pending_col, ts)
            else:
                self._pending_col = event.index
                if self._pending_row is not None:
                    decoded = self._decode_locked(self._pending_row, event.index, ts)

            row, col = self._pending_row, self._pending_col
            state = self._state_locked()

        if decoded is not None:
            logger.info(
                "Decoded '%s' at row=%d col=%d", decoded.symbol, decoded.row, decoded.col
            )
            if self._on_decoded is not None:
                self._on_decoded(decoded)
        else:
            logger.debug("Selected %s %d", event.axis.value, event.index)
        if self._on_selection is not None:
            self._on_selection(row, col, state)
        return decoded

    def _decode_locked(self, row: int, col: int, ts: float) -> DecodedSymbol:
        decoded = DecodedSymbol(
            symbol=self._grid.symbol_at(row, col), row=row, col=col, timestamp=ts
        )
        self._pending_row = None
        self._pending_col = None
        self._last_decoded = decoded
        return decoded
