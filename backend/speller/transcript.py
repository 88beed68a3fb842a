"""Text typed by decoded symbols."""

from __future__ import annotations

import threading

from speller.grid import LINE_BREAK


class Transcript:

    def __init__(self) -> None:
        self._symbols: list[str] = []
        self._lock = threading.Lock()

    def type(self, symbol: str) -> None:
        with self._lock:
            self._symbols.append("\n" if symbol == LINE_BREAK else symbol)

    def delete_last(self) -> str | None:
        with self._lock:
            return self._symbols.pop() if self._symbols else None

    def clear(self) -> None:
        with self._lock:
            self._symbols.clear()

    @property
    def symbols(self) -> list[str]:
        with self._lock:
            return list(self._symbols)

    @property
    def text(self) -> str:
        with self._lock:
            return "".join(self._symbols)

    def __len__(self) -> int:
        return len(self._symbols)
