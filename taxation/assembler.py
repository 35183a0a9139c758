"""Record assembly: the stateful part of the conversion.

Per line the order is fixed:

1. totals title, pending totals value, species totals rows
2. age-only continuation of the previous SPECIES record
3. composition line captured for a pending stand header
4. split into cells, overflow heuristics, pre-classification repairs,
   stand-header restore
5. classification
6. element-only continuation of the last MAIN
7. stand header / pending MAIN / MAIN without an id
8. MAIN and OBJECT records
9. rows before any vydel are dropped
10. NOTE and TEXT (free-text continuation of the last MAIN)
11. SPECIES and SINGLE_TREES records
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional, Sequence

from taxation.cells import (
    AGE,
    AGE_CLASS,
    AREA,
    DESCRIPTION,
    DIAMETER,
    ELEMENT,
    HEIGHT,
    OPERATIONS,
    POLNOTA,
    STOCK_PER_HA,
    VYDEL,
    YARUS,
    YARUS_HEIGHT,
    Cells,
    apply_overflow_heuristics,
    cells_raw,
    clamp_text,
    empty_cells,
    has_any_range,
    is_empty_range,
    split_line_into_cells,
)
from taxation.classifier import (
    TOTALS_VALUE_KINDS,
    ParseContext,
    PendingStand,
    RowKind,
    classify_row,
    parse_species_total_row,
    totals_title_kind,
)
from taxation.config import LayoutConfig, load_layout_config
from taxation.dictionaries import (
    OBJECT_KINDS,
    VYDEL_HEADER_KINDS,
    Dictionary,
    canonical_operation,
    canonical_species,
    fold_latin_lookalikes,
)
from taxation.fragments import Line, line_text
from taxation.grid import ColumnGrid
from taxation.page_header import PageHeader, read_page_header
from taxation.records import Record, fields_from_cells, number_value
from taxation.repairs import (
    MAIN_STEPS,
    PRE_CLASSIFY_STEPS,
    SINGLE_TREES_STEPS,
    SPECIES_STEPS,
    TOTALS_STEPS,
    drop_operations_duplicating_description,
    run_repairs,
)
from taxation.textnorm import (
    VYDEL_START_PATTERN,
    extract_composition_token,
    extract_main_description,
    extract_numbers,
    extract_vydel_area_tail,
    format_number,
    is_noise_text,
    is_polnota_str,
    looks_like_land_feature,
    looks_like_stand_description,
    normalize_broken_words,
    normalize_spaces,
    pure_composition,
    to_int_strict,
)

logger = logging.getLogger(__name__)

AGE_ONLY_PATTERN = re.compile(r"^([А-ЯЁA-Z]{1,6})\s+((?:\d\s*){1,3})$", re.IGNORECASE)
LONELY_ELEMENT_PATTERN = re.compile(r"^([А-ЯЁA-Z]{1,6})$", re.IGNORECASE)
LONELY_EXCLUDED_PATTERN = re.compile(
    r"^(подрост|подлесок|единичные\s+деревья|итого|по\s+составляющим\s+породам)",
    re.IGNORECASE,
)
CONTINUATION_PATTERN = re.compile(r"^[+,]")
CONTINUATION_TOKEN_PATTERN = re.compile(r"([+,])\s*([^+,\s]+)")
SHORT_MAIN_PATTERN = re.compile(
    r"^(\d{1,2}[А-ЯЁA-Z]{1,6}(?:\d{1,2}[А-ЯЁA-Z]{1,6})*(?:[+,][А-ЯЁA-Z]{1,6})*)"
    r"\s+(\d{1,2})\s+([А-ЯЁA-Z]{1,6})\s+(\d{1,3})\s+(\d{1,2})\s+(\d{1,3})\s+(\d{1,2})"
    r"\s+(\d+(?:[.,]\d+)?)$",
    re.IGNORECASE,
)
TOTALS_LOOSE_PATTERN = re.compile(r"^\d+(?:[.,]\d+)?(?:\s+\d+(?:[.,]\d+)?)+$")
TOTALS_TITLE_TAIL_PATTERN = re.compile(r"^.*?(?:категори\w*|кварталу)\s*", re.IGNORECASE)
LETTER_PATTERN = re.compile(r"[A-Za-zА-ЯЁа-яё]")
SPECIES_CODE_PATTERN = re.compile(r"[А-ЯЁ]+")

TOTALS_VALUE_FIELDS = (
    "area",
    "stock_per_ha",
    "stock_total",
    "stock_by_species",
    "merch_class",
    "dead_standing",
    "sparse",
    "single_trees",
    "litter",
    "litter_liquid",
)


def _plain_number(value: float):
    return int(value) if float(value).is_integer() else value


def loose_totals_values(text: str) -> Optional[Dict[str, Any]]:
    """Totals payload from a bare number sequence: area first, then the stock figures."""
    t = normalize_spaces(text)
    if not TOTALS_LOOSE_PATTERN.match(t):
        return None
    numbers = extract_numbers(t)
    rest = numbers[1:]
    largest, smallest = max(rest), min(rest)
    values: Dict[str, Any] = {
        "area": _plain_number(numbers[0]),
        "stock_total": _plain_number(largest),
        "raw": f"nums:{t}",
    }
    if smallest != largest:
        values["single_trees"] = _plain_number(smallest)
    return values


def formula_has_element(description: Optional[str], element: str) -> bool:
    """True when ``element`` is already one of the species codes of a composition formula."""
    codes = SPECIES_CODE_PATTERN.findall(fold_latin_lookalikes(description or ""))
    return any(code == element or canonical_species(code) == element for code in codes)


def resolve_kind(dictionary: Dictionary, cells: Sequence[str], text: str) -> Optional[str]:
    desc, ops = normalize_spaces(cells[DESCRIPTION]), normalize_spaces(cells[OPERATIONS])
    combo = normalize_spaces(f"{desc} {ops}")
    for candidate in (desc, ops, combo, text):
        found = dictionary.exact(candidate)
        if found:
            return found
    for candidate in (combo, text):
        found = dictionary.find_in_text(candidate)
        if found:
            return found
    return None


class RecordAssembler:
    """Turns the lines of consecutive pages into records.

    One instance per conversion run; pages must be fed in document order.
    """

    def __init__(self, config: Optional[LayoutConfig] = None) -> None:
        self.config = config or load_layout_config()
        self.ctx = ParseContext()
        self.records: List[Record] = []

    # -- page level ---------------------------------------------------------

    def add_page(self, page_no: int, lines: Sequence[Line], grid: Optional[ColumnGrid]) -> int:
        """Process one page and return the number of records it produced."""
        texts = [line_text(line, self.config.word_gap) for line in lines]

        # Everything down to the ruler is the page and table header.
        body_start = 0
        if grid is not None and grid.ruler_y is not None:
            body_start = next((i for i, line in enumerate(lines) if line.y < grid.ruler_y), len(lines))

        header = read_page_header(texts, limit=body_start or None)
        self._apply_header(header)

        before = len(self.records)
        row_no = 0
        for i, (line, text) in enumerate(zip(lines, texts)):
            if i < body_start or i in header.line_indexes or is_noise_text(text):
                continue
            row_no += 1
            self._process_line(page_no, row_no, line, text, grid)
        added = len(self.records) - before
        logger.debug("page %d: %d rows, %d records", page_no, row_no, added)
        return added

    def _apply_header(self, header: PageHeader) -> None:
        ctx = self.ctx
        if header.quarter is not None and header.quarter != ctx.quarter:
            ctx.quarter = header.quarter
            ctx.enter_vydel(None)
            ctx.pending_stand = None
            ctx.last_main_index = None
            ctx.last_species_index = None
            ctx.in_single_trees = False
        if header.category:
            ctx.category = header.category

    # -- line level ---------------------------------------------------------

    def _process_line(self, page: int, row_no: int, line: Line, text: str, grid: Optional[ColumnGrid]) -> None:
        ctx = self.ctx
        txt = normalize_broken_words(text)
        has_grid = grid is not None and bool(grid.anchors)

        if self._handle_totals(page, row_no, line, txt, grid):
            return
        if self._fold_age_only(txt):
            return
        if self._capture_composition(txt):
            return

        cells = apply_overflow_heuristics(split_line_into_cells(line, grid, self.config))
        if has_grid:
            cells = run_repairs(PRE_CLASSIFY_STEPS, cells, txt)
            cells = self._restore_stand_header(cells, txt)

        kind = classify_row(cells, ctx, txt)
        if kind is RowKind.MAIN:
            description = extract_main_description(txt, cells)
            if description:
                cells[DESCRIPTION] = description

        if kind in (RowKind.SPECIES, RowKind.TEXT) and self._fold_lonely_element(page, row_no, cells, txt, has_grid):
            return

        pending = ctx.pending_stand
        vydel = to_int_strict(cells[VYDEL])
        if pending is not None and vydel is not None and vydel != pending.vydel:
            ctx.pending_stand = pending = None

        if kind is RowKind.OBJECT and not looks_like_land_feature(cells[DESCRIPTION]) and is_empty_range(cells, 4, 18):
            self._emit_stand_header(page, row_no, cells, txt)
            return

        if (
            pending is not None
            and kind in (RowKind.TEXT, RowKind.MAIN)
            and has_any_range(cells, 4, 18)
            and is_polnota_str(cells[POLNOTA])
        ):
            self._emit_pending_main(page, row_no, cells, txt, pending)
            return

        if pending is None and ctx.vydel is not None and kind is RowKind.TEXT:
            if self._looks_like_main_without_id(cells):
                cells = self._main_without_id(cells)
                kind = RowKind.MAIN
            else:
                short = self._short_main_cells(txt)
                if short is not None:
                    cells = short
                    kind = RowKind.MAIN

        if kind in (RowKind.MAIN, RowKind.OBJECT):
            self._emit_main_or_object(page, row_no, kind, cells, txt)
            return

        if ctx.vydel is None:
            logger.debug("page %d row %d dropped before any vydel: %s", page, row_no, txt)
            return

        if kind in (RowKind.NOTE, RowKind.TEXT):
            if kind is RowKind.TEXT and self._fold_text_continuation(cells, txt, has_grid):
                return
            self._emit(kind, page, row_no, note=txt, raw=cells_raw(cells, self.config.cell_text_limit) or txt)
            return

        if kind is RowKind.SPECIES:
            self._emit_species(page, row_no, cells, txt)
        else:
            self._emit_single_trees(page, row_no, cells, txt)

    # -- emission -----------------------------------------------------------

    def _emit(self, kind: RowKind, page: int, row_no: int, **values: Any) -> Record:
        ctx = self.ctx
        limit = self.config.cell_text_limit
        for name in ("description", "note", "raw"):
            if values.get(name) is not None:
                values[name] = clamp_text(values[name], limit)
        values.setdefault("vydel", ctx.vydel)
        record = Record(kind=kind, page=page, row_no=row_no, quarter=ctx.quarter, category=ctx.category, **values)
        self.records.append(record)
        ctx.last_species_index = len(self.records) - 1 if kind is RowKind.SPECIES else None
        return record

    def _last_main(self) -> Optional[Record]:
        ctx = self.ctx
        if ctx.last_main_index is None or ctx.vydel is None:
            return None
        main = self.records[ctx.last_main_index]
        return main if main.vydel == ctx.vydel else None

    def _emit_stand_header(self, page: int, row_no: int, cells: Cells, txt: str) -> None:
        ctx = self.ctx
        vydel = to_int_strict(cells[VYDEL])
        area = number_value(cells[AREA])
        description = resolve_kind(VYDEL_HEADER_KINDS, cells, txt)
        ctx.enter_vydel(vydel)
        ctx.in_single_trees = False
        self._emit(
            RowKind.VYDEL_HEADER,
            page,
            row_no,
            area=area,
            description=description,
            operations=canonical_operation(cells[OPERATIONS]),
            note=None if description else txt,
            raw=cells_raw(cells, self.config.cell_text_limit),
        )
        ctx.pending_stand = PendingStand(
            vydel=vydel,
            area=area,
            description=description or normalize_spaces(cells[DESCRIPTION]),
        )

    def _emit_pending_main(self, page: int, row_no: int, cells: Cells, txt: str, pending: PendingStand) -> None:
        out = list(cells)
        out[VYDEL] = str(pending.vydel)
        out[AREA] = ""
        row_description = normalize_spaces(cells[DESCRIPTION])
        if looks_like_stand_description(pending.description):
            description = (
                pending.composition
                or extract_composition_token(row_description)
                or row_description
                or pending.description
            )
        else:
            description = normalize_spaces(f"{pending.description} {row_description}")
        out[DESCRIPTION] = description
        self.ctx.pending_stand = None
        self._emit_main_or_object(page, row_no, RowKind.MAIN, out, txt)

    def _emit_main_or_object(self, page: int, row_no: int, kind: RowKind, cells: Cells, txt: str) -> None:
        ctx = self.ctx
        ctx.enter_vydel(to_int_strict(cells[VYDEL]))
        ctx.in_single_trees = False
        ctx.pending_stand = None
        limit = self.config.cell_text_limit

        if kind is RowKind.MAIN:
            out = run_repairs(MAIN_STEPS, cells, txt)
            self._emit(RowKind.MAIN, page, row_no, raw=cells_raw(out, limit), **fields_from_cells(out))
            ctx.last_main_index = len(self.records) - 1
            ctx.main_extra_elements = set()
            return

        values = fields_from_cells(cells)
        description = resolve_kind(OBJECT_KINDS, cells, txt)
        values["description"] = description
        self._emit(RowKind.OBJECT, page, row_no, note=None if description else txt, raw=cells_raw(cells, limit), **values)

    def _emit_species(self, page: int, row_no: int, cells: Cells, txt: str) -> None:
        out = run_repairs(SPECIES_STEPS, cells, txt)
        values = fields_from_cells(out)
        values["area"] = None
        main = self._last_main()
        if values["tlu"] and main is not None and main.tlu is None:
            main.tlu = values["tlu"]
            main.append_raw(f"tlu:{values['tlu']}")
            values["tlu"] = None
        self._emit(RowKind.SPECIES, page, row_no, raw=cells_raw(out, self.config.cell_text_limit), **values)

    def _emit_single_trees(self, page: int, row_no: int, cells: Cells, txt: str) -> None:
        out = run_repairs(SINGLE_TREES_STEPS, cells, txt)
        values = fields_from_cells(out)
        values["area"] = None
        values["description"] = normalize_spaces(out[AREA]).upper() or None
        self._emit(RowKind.SINGLE_TREES, page, row_no, raw=cells_raw(out, self.config.cell_text_limit), **values)

    # -- totals -------------------------------------------------------------

    def _handle_totals(self, page: int, row_no: int, line: Line, txt: str, grid: Optional[ColumnGrid]) -> bool:
        ctx = self.ctx
        title = totals_title_kind(txt)
        if title is not None:
            ctx.in_single_trees = False
            ctx.pending_total = None
            ctx.expect_species_totals = False
            self._emit(title, page, row_no, vydel=None, description=txt, raw=txt)
            if title is RowKind.TOTAL_SPECIES_HEADER:
                ctx.expect_species_totals = True
                return True
            value_kind = TOTALS_VALUE_KINDS[title]
            payload = loose_totals_values(TOTALS_TITLE_TAIL_PATTERN.sub("", txt, count=1))
            if payload is not None:
                self._emit(value_kind, page, row_no, vydel=None, **payload)
            else:
                ctx.pending_total = value_kind
            return True

        if ctx.pending_total is not None:
            value_kind = ctx.pending_total
            ctx.pending_total = None
            payload = self._totals_values(line, txt, grid)
            if payload is not None:
                self._emit(value_kind, page, row_no, vydel=None, **payload)
                return True
            logger.debug("page %d row %d: totals value expected, got %s", page, row_no, txt)

        if ctx.expect_species_totals:
            if VYDEL_START_PATTERN.match(txt):
                ctx.expect_species_totals = False
                return False
            parsed = parse_species_total_row(txt)
            if parsed is not None:
                element, stock = parsed
                self._emit(
                    RowKind.TOTAL_SPECIES_ROW,
                    page,
                    row_no,
                    vydel=None,
                    element=element,
                    stock_by_species=_plain_number(stock) if stock is not None else None,
                    raw=txt,
                )
                return True
        return False

    def _totals_values(self, line: Line, txt: str, grid: Optional[ColumnGrid]) -> Optional[Dict[str, Any]]:
        if LETTER_PATTERN.search(txt):
            return None
        if grid is not None and grid.anchors:
            cells = apply_overflow_heuristics(split_line_into_cells(line, grid, self.config))
            cells = run_repairs(TOTALS_STEPS, cells, txt)
            if has_any_range(cells, 15, 23):
                values = fields_from_cells(cells)
                payload = {name: values[name] for name in TOTALS_VALUE_FIELDS}
                payload["raw"] = cells_raw(cells, self.config.cell_text_limit)
                return payload
        return loose_totals_values(txt)

    # -- continuations ------------------------------------------------------

    def _fold_age_only(self, txt: str) -> bool:
        ctx = self.ctx
        m = AGE_ONLY_PATTERN.match(txt)
        if not m or ctx.last_species_index is None:
            return False
        previous = self.records[ctx.last_species_index]
        element = canonical_species(m.group(1))
        age = int(re.sub(r"\s+", "", m.group(2)))
        if element is None or previous.element != element or previous.vydel != ctx.vydel:
            return False
        if not 1 <= age <= 300:
            return False
        prev_age = previous.age
        dims_known = previous.height is not None or previous.diameter is not None
        if prev_age is None or (prev_age < age and prev_age <= 30 and dims_known):
            previous.age = age
            previous.append_raw(f"+age:{age}")
            logger.debug("age %d folded into %s of vydel %s", age, element, ctx.vydel)
            return True
        return False

    def _capture_composition(self, txt: str) -> bool:
        pending = self.ctx.pending_stand
        if pending is None or pending.composition is not None:
            return False
        if not looks_like_stand_description(pending.description):
            return False
        composition = pure_composition(txt)
        if composition is None:
            return False
        pending.composition = composition
        logger.debug("composition %s captured for vydel %s", composition, pending.vydel)
        return True

    def _fold_lonely_element(self, page: int, row_no: int, cells: Cells, txt: str, has_grid: bool) -> bool:
        ctx = self.ctx
        if has_grid:
            if not is_empty_range(cells, 1, 3):
                return False
            candidate = normalize_spaces(cells[ELEMENT])
        else:
            candidate = txt
        m = LONELY_ELEMENT_PATTERN.match(candidate)
        if not m:
            return False
        element = canonical_species(m.group(1))
        main = self._last_main()
        if element is None or main is None:
            return False
        if LONELY_EXCLUDED_PATTERN.match(txt) or VYDEL_START_PATTERN.match(txt):
            return False
        if has_any_range(cells, 7, 23) or (has_grid and cells[OPERATIONS]):
            return False

        if formula_has_element(main.description, element):
            main.append_raw(f"skip-el:{element}")
        else:
            current = main.description or ""
            separator = "," if ctx.main_extra_elements or "+" in current else "+"
            main.description = f"{current}{separator}{element}"
            ctx.main_extra_elements.add(element)
            main.append_raw(f"+el:{element}")

        key = (ctx.vydel, element)
        if re.search(r"\d", txt) and key not in ctx.emitted_lonely:
            ctx.emitted_lonely.add(key)
            self._emit(RowKind.SPECIES, page, row_no, element=element, note="element-only", raw=f"lonely:{txt}")
        return True

    def _fold_text_continuation(self, cells: Cells, txt: str, has_grid: bool) -> bool:
        ctx = self.ctx
        continuation = normalize_spaces(cells[DESCRIPTION]) if has_grid and cells[DESCRIPTION] else txt
        if not CONTINUATION_PATTERN.match(continuation):
            return False
        main = self._last_main()
        if main is None:
            return False

        description = main.description or ""
        for separator, token in CONTINUATION_TOKEN_PATTERN.findall(continuation):
            element = canonical_species(token)
            if element is not None:
                if formula_has_element(description, element):
                    continue
                ctx.main_extra_elements.add(element)
                token = element
            description = f"{description}{separator}{token}"
        main.description = clamp_text(description, self.config.cell_text_limit) or None
        main.append_raw(f"cont:{continuation}")
        return True

    # -- rows without an id ---------------------------------------------------

    def _restore_stand_header(self, cells: Cells, txt: str) -> Cells:
        """``"<vydel> <area> <tail>"`` with no metrics: refill c1/c2 and take the tail as description."""
        if not is_empty_range(cells, 4, 18):
            return cells
        parsed = extract_vydel_area_tail(txt)
        if parsed is None:
            return cells
        out = list(cells)
        if not out[VYDEL]:
            out[VYDEL] = str(parsed.vydel)
        if not out[AREA]:
            out[AREA] = format_number(parsed.area)
        tail = parsed.tail
        operations = normalize_spaces(out[OPERATIONS])
        if operations and tail.endswith(operations) and tail != operations:
            tail = tail[: -len(operations)].strip()
        out[DESCRIPTION] = tail
        return drop_operations_duplicating_description(out)

    def _looks_like_main_without_id(self, cells: Cells) -> bool:
        """An extra layer of the current vydel printed without vydel and area."""
        if cells[VYDEL] or not is_polnota_str(cells[POLNOTA]):
            return False
        yarus = to_int_strict(cells[YARUS])
        if cells[YARUS] and not (yarus is not None and 1 <= yarus <= 5):
            return False
        has_element = canonical_species(cells[ELEMENT]) is not None
        has_dims = to_int_strict(cells[AGE]) is not None or to_int_strict(cells[HEIGHT]) is not None
        has_composition = extract_composition_token(f"{cells[AREA]} {cells[DESCRIPTION]}") is not None
        return has_element or has_dims or has_composition

    def _main_without_id(self, cells: Cells) -> Cells:
        out = list(cells)
        out[VYDEL] = str(self.ctx.vydel)
        composition = extract_composition_token(f"{cells[AREA]} {cells[DESCRIPTION]}")
        out[DESCRIPTION] = composition or normalize_spaces(cells[DESCRIPTION])
        out[AREA] = ""
        return out

    def _short_main_cells(self, txt: str) -> Optional[Cells]:
        """``"10С 22 С 90 22 24 5 280"``: composition, layer height, species, age, h, d, age class, stock."""
        m = SHORT_MAIN_PATTERN.match(txt)
        if not m:
            return None
        cells = empty_cells()
        cells[VYDEL] = str(self.ctx.vydel)
        cells[DESCRIPTION] = m.group(1).upper()
        cells[YARUS_HEIGHT] = m.group(2)
        cells[ELEMENT] = m.group(3).upper()
        cells[AGE] = m.group(4)
        cells[HEIGHT] = m.group(5)
        cells[DIAMETER] = m.group(6)
        cells[AGE_CLASS] = m.group(7)
        cells[STOCK_PER_HA] = m.group(8).replace(",", ".")
        return cells
