from taxation.cells import (
    DESCRIPTION,
    OPERATIONS,
    OVERFLOW,
    apply_overflow_heuristics,
    cells_raw,
    clamp_text,
    empty_cells,
    has_any_range,
    is_empty_range,
    split_line_into_cells,
)
from taxation.config import LayoutConfig
from taxation.fragments import Fragment, Line
from taxation.grid import ColumnGrid

GRID = ColumnGrid(anchors={col: col * 30.0 for col in range(1, 25)}, source="ruler")


def _line(*items):
    return Line(
        y=500.0,
        fragments=[Fragment(text=t, x=cx - len(t), y=500.0, width=2.0 * len(t)) for cx, t in items],
    )


def test_split_assigns_nearest_column_and_overflow():
    line = _line((30.0, "9"), (60.0, "4.5"), (85.0, "7Б1ОС2Е"), (95.0, "+ИВ"), (150.0, ":"), (1000.0, "хвост"))
    cells = split_line_into_cells(line, GRID, LayoutConfig())

    assert cells[1] == "9"
    assert cells[2] == "4.5"
    assert cells[3] == "7Б1ОС2Е +ИВ"
    assert cells[5] == ""
    assert cells[OVERFLOW] == "хвост"


def test_split_without_grid_routes_line_to_operations():
    line = _line((30.0, "Подрост"), (90.0, "2.0"))
    cells = split_line_into_cells(line, None, LayoutConfig())

    assert cells[OPERATIONS] == "Подрост 2.0"
    assert is_empty_range(cells, 0, 23)


def test_overflow_composition_goes_to_description():
    cells = empty_cells()
    cells[DESCRIPTION] = "7Б"
    cells[OVERFLOW] = "3ОС"
    out = apply_overflow_heuristics(cells)
    assert out[DESCRIPTION] == "7Б 3ОС"
    assert out[OVERFLOW] == ""


def test_overflow_note_goes_to_operations():
    cells = empty_cells()
    cells[OVERFLOW] = "подрост 2Е"
    out = apply_overflow_heuristics(cells)
    assert out[OPERATIONS] == "подрост 2Е"
    assert out[DESCRIPTION] == ""
    assert out[OVERFLOW] == ""


def test_ranges_are_inclusive():
    cells = empty_cells()
    cells[18] = "2"
    assert has_any_range(cells, 18, 18)
    assert is_empty_range(cells, 4, 17)
    assert not is_empty_range(cells, 4, 18)


def test_cells_raw_and_clamp():
    cells = empty_cells()
    cells[1] = "9"
    cells[2] = "4.5"
    cells[OVERFLOW] = "ignored"
    assert cells_raw(cells, 100) == "1:9 | 2:4.5"
    assert cells_raw(cells, 5) == "1:9 |"
    assert clamp_text("abcdef", 3) == "abc"
    assert clamp_text(None, 3) is None
