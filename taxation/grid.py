from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from taxation.config import LayoutConfig
from taxation.fragments import Line, line_text

logger = logging.getLogger(__name__)

COLUMN_COUNT = 24
RULER_LAST_COLUMN_PATTERN = re.compile(r"\b24\b")
RULER_NUMERAL_PATTERN = re.compile(r"\b(\d{1,2})\b")
MAIN_ROW_START_PATTERN = re.compile(r"^\d+\s+\d+(\.\d+)?\s+")
POLNOTA_TOKEN_PATTERN = re.compile(r"\b0\.\d\b")


@dataclass(frozen=True)
class ColumnGrid:
    anchors: Dict[int, float]
    source: str
    # Vertical position of the ruler line; None for the fallback strategy.
    ruler_y: Optional[float] = None

    def ordered(self) -> List[Tuple[int, float]]:
        return sorted(self.anchors.items())

    def nearest(self, x: float) -> Tuple[int, float]:
        """Return ``(column, distance)`` of the anchor closest to ``x``.

        Ties go to the lower column number.
        """
        best_col = 0
        best_dist = float("inf")
        for col, anchor_x in self.ordered():
            dist = abs(x - anchor_x)
            if dist < best_dist:
                best_col = col
                best_dist = dist
        return best_col, best_dist


def _monotonic(anchors: Dict[int, float]) -> Dict[int, float]:
    # A numeral misplaced by extraction is pulled up to its left neighbour,
    # leaving a tie instead of a crossed column order.
    out: Dict[int, float] = {}
    prev_x: Optional[float] = None
    for col in sorted(anchors):
        x = anchors[col]
        if prev_x is not None and x < prev_x:
            x = prev_x
        out[col] = x
        prev_x = x
    return out


def _ruler_anchors(line: Line) -> Dict[int, float]:
    anchors: Dict[int, float] = {}
    for fragment in line.fragments:
        text = fragment.text
        if not text:
            continue
        for m in RULER_NUMERAL_PATTERN.finditer(text):
            n = int(m.group(1))
            if n < 1 or n > COLUMN_COUNT or n in anchors:
                continue
            # Interpolate the numeral's centre inside a multi-numeral fragment.
            frac = (m.start(1) + len(m.group(1)) / 2.0) / len(text)
            anchors[n] = fragment.x + fragment.width * frac
    return anchors


def detect_ruler_grid(lines: Sequence[Line], config: LayoutConfig) -> Optional[ColumnGrid]:
    best: Optional[Dict[int, float]] = None
    best_y: Optional[float] = None
    for line in lines:
        if not RULER_LAST_COLUMN_PATTERN.search(line_text(line, config.word_gap)):
            continue
        anchors = _ruler_anchors(line)
        if len(anchors) < config.ruler_min_anchors:
            continue
        if best is None or len(anchors) > len(best):
            best = anchors
            best_y = line.y
    if best is None:
        return None
    return ColumnGrid(anchors=_monotonic(best), source="ruler", ruler_y=best_y)


def detect_fallback_grid(lines: Sequence[Line], config: LayoutConfig) -> Optional[ColumnGrid]:
    for line in lines:
        text = line_text(line, config.word_gap)
        if not MAIN_ROW_START_PATTERN.match(text) or not POLNOTA_TOKEN_PATTERN.search(text):
            continue
        xs = sorted(f.center_x for f in line.fragments if f.text.strip() and f.text.strip() != ":")
        unique: List[float] = []
        for x in xs:
            if not unique or abs(unique[-1] - x) > config.fallback_x_tolerance:
                unique.append(x)
        if len(unique) < config.fallback_min_anchors:
            continue
        anchors = {col: x for col, x in zip(range(1, COLUMN_COUNT + 1), unique)}
        return ColumnGrid(anchors=anchors, source="main-fallback")
    return None


def detect_column_grid(lines: Sequence[Line], config: LayoutConfig) -> Optional[ColumnGrid]:
    grid = detect_ruler_grid(lines, config) or detect_fallback_grid(lines, config)
    if grid is None:
        logger.debug("no column grid detected")
    else:
        logger.debug("column grid from %s with %d anchors", grid.source, len(grid.anchors))
    return grid
