from __future__ import annotations

import pytest

from speller.errors import InvalidGridShape
from speller.grid import DEFAULT_ROWS, LINE_BREAK, Grid


def test_default_grid_is_five_by_six():
    grid = Grid()
    assert grid.shape == (5, 6)
    assert grid[2] == ("M", "N", "O", "P", "Q", "R")
    assert grid.symbol_at(4, 5) == LINE_BREAK
    assert grid.rows == DEFAULT_ROWS


def test_from_string_matches_default():
    assert Grid.from_string("ABCDEF|GHIJKL|MNOPQR|STUVWX|YZ- .↵") == Grid()


@pytest.mark.parametrize(
    "rows",
    [
        [],
        [[]],
        [["A", "B"], ["C"]],
        [["A"], ["B", "C"]],
    ],
)
def test_rejects_bad_shapes(rows):
    with pytest.raises(InvalidGridShape):
        Grid(rows)


def test_invalid_shape_is_a_value_error():
    with pytest.raises(ValueError):
        Grid.from_string("AB|C")


def test_grid_is_immutable_copy():
    rows = [["A", "B"], ["C", "D"]]
    grid = Grid(rows)
    rows[0][0] = "Z"
    assert grid.symbol_at(0, 0) == "A"
    with pytest.raises(TypeError):
        grid.rows[0][0] = "Z"


def test_symbol_at_out_of_range():
    grid = Grid([["A"]])
    with pytest.raises(IndexError):
        grid.symbol_at(1, 0)
    with pytest.raises(IndexError):
        grid.symbol_at(0, -1)


def test_to_json():
    assert Grid([["A", "B"]]).to_json() == {
        "rows": [["A", "B"]],
        "row_count": 1,
        "col_count": 2,
    }
