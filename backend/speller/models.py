"""Value types shared by the flash scheduler, monitor and decoder."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Axis(str, Enum):
    ROW = "row"
    COL = "col"


class SelectionState(str, Enum):
    EMPTY = "empty"
    ROW_PENDING = "row_pending"
    COL_PENDING = "col_pending"


@dataclass(frozen=True)
class FlashEvent:
    axis: Axis
    index: int
    timestamp: float = field(default_factory=time.monotonic)

    def to_json(self) -> dict[str, Any]:
        return {"axis": self.axis.value, "index": self.index, "ts": self.timestamp}


@dataclass(frozen=True)
class ProbabilitySample:
    value: float
    timestamp: float = field(default_factory=time.monotonic)


@dataclass(frozen=True)
class DecodedSymbol:
    symbol: str
    row: int
    col: int
    timestamp: float = field(default_factory=time.monotonic)

    def to_json(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "row": self.row,
            "col": self.col,
            "ts": self.timestamp,
        }
