from __future__ import annotations

from typing import List, Optional, Sequence

from taxation.config import LayoutConfig
from taxation.fragments import Line, line_text
from taxation.grid import ColumnGrid
from taxation.textnorm import normalize_spaces, overflow_looks_like_composition, overflow_looks_like_note

CELL_COUNT = 25
OVERFLOW = 0
VYDEL = 1
AREA = 2
DESCRIPTION = 3
YARUS = 4
YARUS_HEIGHT = 5
ELEMENT = 6
AGE = 7
HEIGHT = 8
DIAMETER = 9
AGE_CLASS = 10
AGE_GROUP = 11
BONITET = 12
FOREST_TYPE = 13
POLNOTA = 14
STOCK_PER_HA = 15
STOCK_TOTAL = 16
STOCK_BY_SPECIES = 17
MERCH_CLASS = 18
DEAD_STANDING = 19
SPARSE = 20
SINGLE_TREES = 21
LITTER = 22
LITTER_LIQUID = 23
OPERATIONS = 24

Cells = List[str]


def empty_cells() -> Cells:
    return [""] * CELL_COUNT


def split_line_into_cells(line: Line, grid: Optional[ColumnGrid], config: LayoutConfig) -> Cells:
    """Assign each fragment of ``line`` to the column whose anchor is nearest.

    Without a grid the whole line text goes to the operations column. A
    fragment farther than ``config.max_anchor_distance`` from every anchor
    lands in the overflow slot and is resolved by
    :func:`apply_overflow_heuristics`.
    """
    cells = empty_cells()
    if grid is None or not grid.anchors:
        cells[OPERATIONS] = line_text(line, config.word_gap)
        return cells

    for fragment in line.fragments:
        piece = fragment.text.strip()
        if not piece or piece == ":":
            continue
        col, dist = grid.nearest(fragment.center_x)
        if dist > config.max_anchor_distance:
            col = OVERFLOW
        cells[col] = f"{cells[col]} {piece}" if cells[col] else piece

    return [normalize_spaces(cell) for cell in cells]


def apply_overflow_heuristics(cells: Sequence[str]) -> Cells:
    out = list(cells)
    overflow = out[OVERFLOW].strip()
    if not overflow:
        return out
    if overflow_looks_like_composition(overflow) and not overflow_looks_like_note(overflow):
        out[DESCRIPTION] = normalize_spaces(f"{out[DESCRIPTION]} {overflow}")
    else:
        out[OPERATIONS] = normalize_spaces(f"{out[OPERATIONS]} {overflow}")
    out[OVERFLOW] = ""
    return out


def is_empty_range(cells: Sequence[str], first: int, last: int) -> bool:
    return not any(cells[i] for i in range(first, last + 1))


def has_any_range(cells: Sequence[str], first: int, last: int) -> bool:
    return any(cells[i] for i in range(first, last + 1))


def clamp_text(value: Optional[str], limit: int) -> Optional[str]:
    if value is None:
        return None
    return value if len(value) <= limit else value[:limit]


def cells_raw(cells: Sequence[str], limit: int) -> str:
    """Diagnostic ``"1:val | 2:val"`` string over the populated logical columns."""
    parts = [f"{i}:{cells[i]}" for i in range(1, CELL_COUNT) if cells[i]]
    return clamp_text(" | ".join(parts), limit) or ""
