"""Immutable row x column symbol grid."""

from __future__ import annotations

from typing import Sequence

from speller.errors import InvalidGridShape

LINE_BREAK = "↵"

DEFAULT_ROWS: tuple[tuple[str, ...], ...] = (
    ("A", "B", "C", "D", "E", "F"),
    ("G", "H", "I", "J", "K", "L"),
    ("M", "N", "O", "P", "Q", "R"),
    ("S", "T", "U", "V", "W", "X"),
    ("Y", "Z", "-", " ", ".", LINE_BREAK),
)


class Grid:

    __slots__ = ("_rows",)

    def __init__(self, rows: Sequence[Sequence[str]] = DEFAULT_ROWS) -> None:
        if isinstance(rows, str) or len(rows) == 0:
            raise InvalidGridShape("grid must have at least one row")
        frozen = tuple(tuple(row) for row in rows)
        width = len(frozen[0])
        if width == 0:
            raise InvalidGridShape("grid must have at least one column")
        for i, row in enumerate(frozen):
            if len(row) != width:
                raise InvalidGridShape(
                    f"row {i} has {len(row)} columns, expected {width}"
                )
        self._rows = frozen

    @classmethod
    def from_string(cls, spec: str, sep: str = "|") -> Grid:
        """Build a grid from ``"ABC|DEF"``: rows split on *sep*, one char per cell."""
        return cls([list(part) for part in spec.split(sep)])

    @property
    def rows(self) -> tuple[tuple[str, ...], ...]:
        return self._rows

    @property
    def row_count(self) -> int:
        return len(self._rows)

    @property
    def col_count(self) -> int:
        return len(self._rows[0])

    @property
    def shape(self) -> tuple[int, int]:
        return self.row_count, self.col_count

    def symbol_at(self, row: int, col: int) -> str:
        if not (0 <= row < self.row_count and 0 <= col < self.col_count):
            raise IndexError(f"cell ({row}, {col}) outside {self.row_count}x{self.col_count} grid")
        return self._rows[row][col]

    def __getitem__(self, row: int) -> tuple[str, ...]:
        return self._rows[row]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Grid):
            return NotImplemented
        return self._rows == other._rows

    def __hash__(self) -> int:
        return hash(self._rows)

    def __repr__(self) -> str:
        return f"Grid({self.row_count}x{self.col_count})"

    def to_json(self) -> dict:
        return {
            "rows": [list(row) for row in self._rows],
            "row_count": self.row_count,
            "col_count": self.col_count,
        }
