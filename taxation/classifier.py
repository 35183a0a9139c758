"""Row kinds, the per-run parse context and the row classifier.

Rules 1-3 of the classification order (totals title, pending totals value,
species totals) consume whole lines and are driven by the assembler through
:func:`totals_title_kind` and :func:`parse_species_total_row`. The remaining
rules live in :func:`classify_row`, which is the only place that changes
``ParseContext.in_single_trees``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence, Set, Tuple

from taxation.cells import AREA, POLNOTA, VYDEL, has_any_range, is_empty_range
from taxation.dictionaries import canonical_species
from taxation.textnorm import compact_text, is_polnota_str, normalize_broken_words, to_num


class RowKind(str, Enum):
    MAIN = "MAIN"
    OBJECT = "OBJECT"
    VYDEL_HEADER = "VYDEL_HEADER"
    SPECIES = "SPECIES"
    SINGLE_TREES = "SINGLE_TREES"
    TOTAL_CATEGORY_HEADER = "TOTAL_CATEGORY_HEADER"
    TOTAL_CATEGORY = "TOTAL_CATEGORY"
    TOTAL_QUARTER_HEADER = "TOTAL_QUARTER_HEADER"
    TOTAL_QUARTER = "TOTAL_QUARTER"
    TOTAL_SPECIES_HEADER = "TOTAL_SPECIES_HEADER"
    TOTAL_SPECIES_ROW = "TOTAL_SPECIES_ROW"
    NOTE = "NOTE"
    TEXT = "TEXT"


# Title kind -> kind of the numeric line that follows it.
TOTALS_VALUE_KINDS = {
    RowKind.TOTAL_CATEGORY_HEADER: RowKind.TOTAL_CATEGORY,
    RowKind.TOTAL_QUARTER_HEADER: RowKind.TOTAL_QUARTER,
}

TOTALS_TITLE_PATTERNS: Tuple[Tuple[re.Pattern, RowKind], ...] = (
    (re.compile(r"^Итого\s+по\s+категори", re.IGNORECASE), RowKind.TOTAL_CATEGORY_HEADER),
    (re.compile(r"^Итого\s+по\s+кварталу", re.IGNORECASE), RowKind.TOTAL_QUARTER_HEADER),
    (re.compile(r"^(?:Итого\s+)?по\s+составляющим\s+породам", re.IGNORECASE), RowKind.TOTAL_SPECIES_HEADER),
)
# Compact forms catch titles whose words were broken in the middle.
TOTALS_TITLE_COMPACT = (
    ("итогопокатегории", RowKind.TOTAL_CATEGORY_HEADER),
    ("итогопокварталу", RowKind.TOTAL_QUARTER_HEADER),
    ("посоставляющимпородам", RowKind.TOTAL_SPECIES_HEADER),
)

NOTE_MARKER_PATTERN = re.compile(
    r"^(подрост|подлесок|Болота:|Земли\s+линейного\s+протяжения:|Расчистка\s+просек)",
    re.IGNORECASE,
)
SINGLE_TREES_MARKER_PATTERN = re.compile(r"^Единичные\s+деревья", re.IGNORECASE)
UNDERGROWTH_PATTERN = re.compile(r"подрост|подлесок", re.IGNORECASE)
SINGLE_TREES_COEFFICIENT_PATTERN = re.compile(r"\d{1,2}[А-ЯЁA-Z]{1,3}", re.IGNORECASE)
SPECIES_TOTAL_ROW_PATTERN = re.compile(r"^([А-ЯЁA-Z\s]{1,20})(?:\s+(\d+(?:[.,]\d+)?))?$", re.IGNORECASE)


@dataclass
class PendingStand:
    vydel: int
    area: Optional[float]
    description: str
    composition: Optional[str] = None


@dataclass
class ParseContext:
    """Everything the assembler carries from one line to the next.

    Owned by a single conversion run; nothing here is shared between runs.
    """

    quarter: Optional[int] = None
    category: Optional[str] = None
    vydel: Optional[int] = None
    in_single_trees: bool = False
    expect_species_totals: bool = False
    pending_total: Optional[RowKind] = None
    pending_stand: Optional[PendingStand] = None
    last_main_index: Optional[int] = None
    last_species_index: Optional[int] = None
    main_extra_elements: Set[str] = field(default_factory=set)
    emitted_lonely: Set[Tuple[int, str]] = field(default_factory=set)

    def enter_vydel(self, vydel: Optional[int]) -> None:
        if vydel != self.vydel:
            self.main_extra_elements = set()
            self.emitted_lonely = set()
        self.vydel = vydel


def totals_title_kind(text: str) -> Optional[RowKind]:
    t = normalize_broken_words(text)
    for pattern, kind in TOTALS_TITLE_PATTERNS:
        if pattern.search(t):
            return kind
    compact = compact_text(t)
    for prefix, kind in TOTALS_TITLE_COMPACT:
        if compact.startswith(prefix):
            return kind
    return None


def parse_species_total_row(text: str) -> Optional[Tuple[str, Optional[float]]]:
    """``"ОС 120"`` -> ``("ОС", 120.0)``; only known species codes are accepted."""
    m = SPECIES_TOTAL_ROW_PATTERN.match(normalize_broken_words(text))
    if not m:
        return None
    letters = re.sub(r"\s+", "", m.group(1))
    if not 1 <= len(letters) <= 6:
        return None
    element = canonical_species(letters)
    if element is None:
        return None
    return element, to_num(m.group(2)) if m.group(2) else None


def is_note_marker(text: str) -> bool:
    return bool(NOTE_MARKER_PATTERN.match(text))


def _left_text(cells: Sequence[str]) -> str:
    return normalize_broken_words(" ".join(c for c in cells[1:7] if c))


def classify_row(cells: Sequence[str], ctx: ParseContext, text: str = "") -> RowKind:
    """Label a repaired row; rules 4-9 of the classification order."""
    txt = normalize_broken_words(text)
    left = _left_text(cells)

    if is_note_marker(left) or is_note_marker(txt):
        ctx.in_single_trees = False
        return RowKind.NOTE

    if SINGLE_TREES_MARKER_PATTERN.match(left) or SINGLE_TREES_MARKER_PATTERN.match(txt):
        ctx.in_single_trees = True
        return RowKind.NOTE

    if ctx.in_single_trees:
        ctx.in_single_trees = False
        if UNDERGROWTH_PATTERN.search(" ".join(cells[1:])) or UNDERGROWTH_PATTERN.search(txt):
            return RowKind.NOTE
        coefficient = cells[AREA].strip()
        right = " ".join(cells[5:])
        if SINGLE_TREES_COEFFICIENT_PATTERN.fullmatch(coefficient) and re.search(r"\d", right):
            return RowKind.SINGLE_TREES

    c1, c2 = cells[VYDEL].strip(), cells[AREA].strip()
    if re.fullmatch(r"\d+", c1) and re.fullmatch(r"\d+(\.\d+)?", c2):
        if is_polnota_str(cells[POLNOTA]):
            return RowKind.MAIN
        if cells[3].strip():
            return RowKind.OBJECT

    # Species rows carry no vydel, area or layer; the operations column alone does not count.
    if is_empty_range(cells, 1, 5) and has_any_range(cells, 6, 23):
        return RowKind.SPECIES

    return RowKind.TEXT
