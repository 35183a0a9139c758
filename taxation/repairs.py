"""Repair cascade for split rows.

Each step is a pure ``step(cells, text) -> cells`` function that returns a
new row and never mutates its input. ``text`` is the flattened line text the
row was split from. Steps must be idempotent: running a step on its own
output changes nothing. The pipelines at the bottom of the module fix the
order in which the steps run for each row kind.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from taxation.cells import (
    AGE,
    AGE_CLASS,
    AGE_GROUP,
    AREA,
    BONITET,
    Cells,
    DEAD_STANDING,
    DESCRIPTION,
    DIAMETER,
    ELEMENT,
    FOREST_TYPE,
    HEIGHT,
    LITTER_LIQUID,
    MERCH_CLASS,
    OPERATIONS,
    POLNOTA,
    STOCK_BY_SPECIES,
    STOCK_PER_HA,
    STOCK_TOTAL,
    VYDEL,
    YARUS,
    YARUS_HEIGHT,
)
from taxation.dictionaries import canonical_species, norm_key
from taxation.textnorm import (
    format_number,
    is_int_in_range,
    is_polnota_str,
    normalize_bonitet,
    normalize_broken_words,
    normalize_spaces,
    to_float_loose,
    to_int_strict,
    to_num,
)

RepairFunc = Callable[[Sequence[str], str], Cells]

DECIMAL_COLUMNS = (AREA, POLNOTA, STOCK_PER_HA, STOCK_TOTAL, STOCK_BY_SPECIES, 19, 20, 21, 22, 23)
INTEGER_COLUMNS = (YARUS, YARUS_HEIGHT, AGE, HEIGHT, DIAMETER, AGE_CLASS, AGE_GROUP, BONITET, 15, 16, 17, 18, 19, 20, 21, 22, 23)

# Inclusive ranges of integer-valued fields.
FIELD_RANGES = {
    YARUS: (1, 5),
    YARUS_HEIGHT: (1, 99),
    AGE: (1, 300),
    HEIGHT: (1, 99),
    DIAMETER: (1, 150),
    AGE_CLASS: (1, 12),
    AGE_GROUP: (1, 10),
    MERCH_CLASS: (1, 4),
}

_SPACED_DECIMAL = re.compile(r"(\d)\s*[.,]\s*(\d)")
_SPACED_INTEGER = re.compile(r"\d(?:\s+\d){1,2}")
_TWO_INTS = re.compile(r"(\d{1,3})\s+(\d{1,3})")
_SPECIES_CODE = re.compile(r"[А-ЯЁA-Z]{1,6}", re.IGNORECASE)
_BONITET_TOKEN = re.compile(r"5[аА]|[1-5]")


@dataclass(frozen=True)
class RepairStep:
    name: str
    func: RepairFunc
    # Shift steps move a value into a neighbouring column and only ever fill empty targets.
    shift: bool = False

    def __call__(self, cells: Sequence[str], text: str = "") -> Cells:
        return self.func(cells, text)


def run_repairs(steps: Sequence[RepairStep], cells: Sequence[str], text: str = "") -> Cells:
    out = list(cells)
    for step in steps:
        out = step(out, text)
    return out


def _is_merch_class(value: object) -> bool:
    return is_int_in_range(to_int_strict(value), 1, 4)


def _num_str(value: object) -> str:
    return str(value or "").strip().replace(",", ".")


# -- numeric re-joining -----------------------------------------------------


def join_spaced_decimals(cells: Sequence[str], text: str = "") -> Cells:
    out = list(cells)
    for i in DECIMAL_COLUMNS:
        if not out[i]:
            continue
        value = out[i]
        while True:
            joined = _SPACED_DECIMAL.sub(r"\1.\2", value)
            if joined == value:
                break
            value = joined
        out[i] = normalize_spaces(value)
    return out


def join_spaced_integers(cells: Sequence[str], text: str = "") -> Cells:
    """``"1 4 0"`` -> ``"140"``; only 2-3 single-digit groups are unambiguous."""
    out = list(cells)
    for i in INTEGER_COLUMNS:
        value = out[i].strip()
        if value and _SPACED_INTEGER.fullmatch(value):
            out[i] = re.sub(r"\s+", "", value)
    return out


# -- cross-column bleed ------------------------------------------------------


def _prepend_description(out: Cells, tail: str) -> None:
    tail = tail.strip()
    if not tail:
        return
    current = out[DESCRIPTION].strip()
    if norm_key(tail) == norm_key(current):
        out[DESCRIPTION] = current or tail
    else:
        out[DESCRIPTION] = normalize_spaces(f"{tail} {current}")


def merge_vydel_area_split(cells: Sequence[str], text: str = "") -> Cells:
    out = list(cells)
    c1, c2, c3 = out[VYDEL].strip(), out[AREA].strip(), out[DESCRIPTION].strip()

    # "52 0" + ".3 Ручьи"
    m1 = re.fullmatch(r"(\d{1,4})\s+(\d+)", c1)
    m2 = re.fullmatch(r"[.,](\d+)(?:\s+(.*))?", c2)
    if m1 and m2:
        out[VYDEL] = m1.group(1)
        out[AREA] = f"{m1.group(2)}.{m2.group(1)}"
        _prepend_description(out, m2.group(2) or "")
        return out

    if not re.fullmatch(r"\d{1,4}", c1):
        return out

    # "0" + ".3 Ручьи"
    m2 = re.fullmatch(r"(\d+)", c2)
    m3 = re.fullmatch(r"[.,](\d+)(?:\s+(.*))?", c3)
    if m2 and m3:
        out[AREA] = f"{m2.group(1)}.{m3.group(1)}"
        out[DESCRIPTION] = ""
        _prepend_description(out, m3.group(2) or "")
        return out

    # "0." + "3 Ручьи"
    m2 = re.fullmatch(r"(\d+)[.,]", c2)
    m3 = re.fullmatch(r"(\d+)(?:\s+(.*))?", c3)
    if m2 and m3:
        out[AREA] = f"{m2.group(1)}.{m3.group(1)}"
        out[DESCRIPTION] = ""
        _prepend_description(out, m3.group(2) or "")
        return out

    m2 = re.fullmatch(r"[.,](\d+)", c2)
    if m2:
        out[AREA] = f"0.{m2.group(1)}"
    return out


def merge_area_split_into_description(cells: Sequence[str], text: str = "") -> Cells:
    out = list(cells)
    if not re.fullmatch(r"\d+", out[VYDEL].strip()):
        return out
    area, desc = out[AREA].strip(), out[DESCRIPTION].strip()
    if not area or not desc:
        return out

    if re.fullmatch(r"\d+", area):
        m = re.fullmatch(r"([.,]\d+)(?:\s+(.*))?", desc)
        if m:
            out[AREA] = area + m.group(1).replace(",", ".")
            out[DESCRIPTION] = (m.group(2) or "").strip()
            return out

    if re.fullmatch(r"\d+[.,]", area):
        m = re.fullmatch(r"(\d+)(?:\s+(.*))?", desc)
        if m:
            out[AREA] = (area + m.group(1)).replace(",", ".")
            out[DESCRIPTION] = (m.group(2) or "").strip()
    return out


def split_area_tail(cells: Sequence[str], text: str = "") -> Cells:
    """``"22.8 Культуры"`` in the area column: keep the number, move the tail."""
    out = list(cells)
    if not re.fullmatch(r"\d+", out[VYDEL]):
        return out
    m = re.fullmatch(r"(\d+(?:[.,]\d+)?)(?:\s+(.+))?", out[AREA].strip())
    if not m or not m.group(2):
        return out
    out[AREA] = m.group(1).replace(",", ".")
    out[DESCRIPTION] = normalize_spaces(f"{m.group(2)} {out[DESCRIPTION]}")
    return out


def merge_description_overflow(cells: Sequence[str], text: str = "") -> Cells:
    out = list(cells)
    desc, c5 = out[DESCRIPTION].strip(), out[YARUS_HEIGHT].strip()
    if desc and c5 and not re.fullmatch(r"\d+(\.\d+)?", c5):
        out[DESCRIPTION] = normalize_spaces(f"{desc} {c5}")
        out[YARUS_HEIGHT] = ""
    return out


def _dup_key(value: object) -> str:
    lowered = str(value or "").lower()
    lowered = re.sub(r"[.,;:()]", " ", lowered)
    lowered = re.sub(r"(?<!\w)с(?!\w)", " ", lowered)
    return normalize_spaces(lowered)


def drop_operations_duplicating_description(cells: Sequence[str], text: str = "") -> Cells:
    out = list(cells)
    desc, ops = _dup_key(out[DESCRIPTION]), _dup_key(out[OPERATIONS])
    if desc and ops and (ops in desc or desc in ops):
        out[OPERATIONS] = ""
    return out


# -- shift repairs ----------------------------------------------------------


def shift_bonitet_from_forest_type(cells: Sequence[str], text: str = "") -> Cells:
    """``"2 Ечер"`` in the forest-type column while site class is empty."""
    out = list(cells)
    if out[BONITET].strip():
        return out
    m = re.fullmatch(r"(5[аА]|[1-5])\s+(.+)", normalize_spaces(out[FOREST_TYPE]))
    if not m:
        return out
    out[BONITET] = normalize_bonitet(m.group(1)) or ""
    out[FOREST_TYPE] = normalize_spaces(m.group(2))
    return out


def shift_merch_class_from_dead_standing(cells: Sequence[str], text: str = "") -> Cells:
    out = list(cells)
    k18 = to_int_strict(out[MERCH_CLASS])
    k19 = to_int_strict(out[DEAD_STANDING])
    if is_int_in_range(k19, 1, 4) and not out[MERCH_CLASS].strip():
        out[MERCH_CLASS] = str(k19)
        out[DEAD_STANDING] = ""
    elif is_int_in_range(k18, 1, 4) and k18 == k19:
        out[DEAD_STANDING] = ""
    return out


def split_polnota_stock_per_ha(cells: Sequence[str], text: str = "") -> Cells:
    out = list(cells)
    if out[POLNOTA].strip():
        return out
    m = re.fullmatch(r"(0\.\d|1(?:\.0)?)\s+(\d+(?:\.\d+)?)", _num_str(out[STOCK_PER_HA]))
    if m:
        out[POLNOTA] = m.group(1)
        out[STOCK_PER_HA] = m.group(2)
    return out


def split_age_height(cells: Sequence[str], text: str = "") -> Cells:
    out = list(cells)
    if not out[AGE].strip() or out[HEIGHT].strip():
        return out
    m = re.fullmatch(r"(\d{1,3})\s+(\d{1,2})", out[AGE].strip())
    if m:
        out[AGE] = m.group(1)
        out[HEIGHT] = m.group(2)
    return out


def _split_two_ints(out: Cells, a_idx: int, b_idx: int, a_range: Tuple[int, int], b_range: Tuple[int, int]) -> None:
    m = _TWO_INTS.fullmatch(out[a_idx].strip())
    if not m or out[b_idx].strip():
        return
    a, b = int(m.group(1)), int(m.group(2))
    if is_int_in_range(a, *a_range) and is_int_in_range(b, *b_range):
        out[a_idx] = str(a)
        out[b_idx] = str(b)


def split_main_pairs(cells: Sequence[str], text: str = "") -> Cells:
    """Split value pairs that landed in one column of a MAIN row."""
    out = list(cells)
    _split_two_ints(out, AGE, HEIGHT, (1, 300), (1, 99))
    _split_two_ints(out, HEIGHT, DIAMETER, (1, 99), (1, 150))

    m = re.fullmatch(r"(\d+(?:[.,]\d+)?)\s+(\d+)", out[DIAMETER].strip())
    if m and not out[AGE_CLASS].strip():
        out[DIAMETER] = m.group(1).replace(",", ".")
        out[AGE_CLASS] = m.group(2)

    _split_two_ints(out, AGE_CLASS, AGE_GROUP, (1, 12), (1, 10))

    m = re.fullmatch(r"(\d{1,2})\s+(\d{1,2})", out[AGE_GROUP].strip())
    if m and not out[BONITET].strip():
        group, bonitet = int(m.group(1)), int(m.group(2))
        if is_int_in_range(group, 1, 10) and is_int_in_range(bonitet, 1, 5):
            out[AGE_GROUP] = str(group)
            out[BONITET] = str(bonitet)

    nums = re.findall(r"\d+(?:[.,]\d+)?\.?", out[STOCK_BY_SPECIES])
    if len(nums) >= 2:
        nums = [n.rstrip(".").replace(",", ".") for n in nums]
        if not out[STOCK_TOTAL].strip():
            out[STOCK_TOTAL] = nums[0]
        out[STOCK_BY_SPECIES] = nums[1]
        if len(nums) > 2 and not out[MERCH_CLASS].strip():
            out[MERCH_CLASS] = nums[2]

    m = re.fullmatch(r"(\d+(?:[.,]\d+)?)\.?\s+(\d+(?:[.,]\d+)?)\.?", out[STOCK_TOTAL].strip())
    if m and not out[STOCK_BY_SPECIES].strip():
        out[STOCK_TOTAL] = m.group(1).replace(",", ".")
        out[STOCK_BY_SPECIES] = m.group(2).replace(",", ".")
    return out


def split_species_age_height(cells: Sequence[str], text: str = "") -> Cells:
    """``"100 24"`` or ``"100 24 28"`` in the height column while age is empty."""
    out = list(cells)
    if not out[ELEMENT].strip() or out[AGE].strip():
        return out
    value = out[HEIGHT].strip()
    m = re.fullmatch(r"(\d{1,3})\s+(\d{1,2})(?:\s+(\d{1,3}))?", value)
    if not m:
        return out
    age, height = int(m.group(1)), int(m.group(2))
    if not (is_int_in_range(age, 1, 300) and is_int_in_range(height, 1, 99)):
        return out
    if m.group(3) is not None:
        diameter = int(m.group(3))
        if not is_int_in_range(diameter, 1, 150):
            return out
        if not out[DIAMETER].strip():
            out[DIAMETER] = str(diameter)
    out[AGE] = str(age)
    out[HEIGHT] = str(height)
    return out


# -- stock and merchantability class ----------------------------------------


def repair_stock_and_merch_class(cells: Sequence[str], text: str = "") -> Cells:
    out = list(cells)

    # "167" + ".1 1" -> "167.1" + "1"
    z17 = _num_str(out[STOCK_BY_SPECIES])
    m = re.fullmatch(r"(\.\d+)\s+(\d+)", _num_str(out[MERCH_CLASS]))
    if re.fullmatch(r"\d+", z17) and m and _is_merch_class(m.group(2)):
        out[STOCK_BY_SPECIES] = z17 + m.group(1)
        out[MERCH_CLASS] = m.group(2)
        return out

    # "1041 2" in the class column
    m = re.fullmatch(r"(\d+(?:\.\d+)?)\s+(\d+)", _num_str(out[MERCH_CLASS]))
    if m and float(m.group(1)) > 4 and _is_merch_class(m.group(2)):
        if not out[STOCK_BY_SPECIES] or _is_merch_class(out[STOCK_BY_SPECIES]):
            out[STOCK_BY_SPECIES] = m.group(1)
        out[MERCH_CLASS] = m.group(2)
        return out

    # "1041 2" in the stock column
    m = re.fullmatch(r"(\d+(?:\.\d+)?)\s+(\d+)", _num_str(out[STOCK_BY_SPECIES]))
    if m and float(m.group(1)) > 4 and _is_merch_class(m.group(2)):
        out[STOCK_BY_SPECIES] = m.group(1)
        if not out[MERCH_CLASS]:
            out[MERCH_CLASS] = m.group(2)
        return out

    z18 = to_float_loose(out[MERCH_CLASS])
    if _is_merch_class(out[STOCK_BY_SPECIES]) and z18 is not None and z18 > 4:
        out[STOCK_BY_SPECIES], out[MERCH_CLASS] = format_number(z18), str(to_int_strict(out[STOCK_BY_SPECIES]))
        return out

    if not out[STOCK_BY_SPECIES] and z18 is not None and z18 > 4 and not _is_merch_class(out[MERCH_CLASS]):
        out[STOCK_BY_SPECIES] = format_number(z18)
        out[MERCH_CLASS] = ""
        return out

    if out[MERCH_CLASS] and not _is_merch_class(out[MERCH_CLASS]):
        out[MERCH_CLASS] = ""
    return out


def move_text_from_litter_liquid(cells: Sequence[str], text: str = "") -> Cells:
    """Operations text that bled into the last numeric column moves right."""
    out = list(cells)
    value = out[LITTER_LIQUID].strip()
    if not value:
        return out
    has_letters = re.search(r"[A-Za-zА-ЯЁа-яё]", value) is not None
    pure_numeric = to_float_loose(value) is not None and not has_letters and "%" not in value
    if not pure_numeric:
        out[OPERATIONS] = normalize_spaces(f"{out[OPERATIONS]} {value}")
        out[LITTER_LIQUID] = ""
    return out


# -- range validation -------------------------------------------------------


def _clear_ranges(out: Cells) -> None:
    for idx, (low, high) in FIELD_RANGES.items():
        if out[idx] and not is_int_in_range(to_int_strict(out[idx]), low, high):
            out[idx] = ""
    if out[BONITET]:
        out[BONITET] = normalize_bonitet(out[BONITET]) or ""
    if out[POLNOTA] and not is_polnota_str(out[POLNOTA]):
        out[POLNOTA] = ""


def clear_out_of_range(cells: Sequence[str], text: str = "") -> Cells:
    out = list(cells)
    _clear_ranges(out)
    return out


def validate_main_ranges(cells: Sequence[str], text: str = "") -> Cells:
    out = list(cells)

    diameter = out[DIAMETER]
    if diameter and not is_int_in_range(to_int_strict(diameter), 1, 150):
        candidates = [to_int_strict(out[i]) for i in (AGE_CLASS, AGE_GROUP)]
        valid = [c for c in candidates if is_int_in_range(c, 1, 150)]
        out[DIAMETER] = str(valid[0]) if valid else ""

    _clear_ranges(out)

    if not out[STOCK_TOTAL] and out[STOCK_BY_SPECIES]:
        nums = re.findall(r"\d+(?:\.\d+)?\.?", _num_str(out[STOCK_BY_SPECIES]))
        if len(nums) >= 2:
            nums = [n.rstrip(".") for n in nums]
            out[STOCK_TOTAL] = nums[0]
            out[STOCK_BY_SPECIES] = nums[1]
            if len(nums) > 2 and not out[MERCH_CLASS] and _is_merch_class(nums[2]):
                out[MERCH_CLASS] = nums[2]

    z16 = to_float_loose(out[STOCK_TOTAL])
    z17 = to_float_loose(out[STOCK_BY_SPECIES])
    z18 = to_float_loose(out[MERCH_CLASS])
    if z16 is not None and z17 is not None and abs(z16 - z17) < 1e-9 and z18 is not None and z18 > 9:
        out[STOCK_BY_SPECIES] = format_number(z18)
        if not _is_merch_class(out[MERCH_CLASS]):
            out[MERCH_CLASS] = ""
    return out


# -- text-based rescue ------------------------------------------------------


def rescue_main_metrics_from_text(cells: Sequence[str], text: str = "") -> Cells:
    """Re-read ``yarus yarusH SPECIES age h d ageClass ageGroup bonitet`` from the text.

    Anchored on the layer index/height pair; fills only empty fields, except a
    diameter that looks borrowed from the age group or site class.
    """
    out = list(cells)
    tokens = normalize_broken_words(text).split()
    for i in range(len(tokens) - 5):
        yarus = to_int_strict(tokens[i])
        yarus_height = to_int_strict(tokens[i + 1])
        if not is_int_in_range(yarus, 1, 5) or not is_int_in_range(yarus_height, 1, 99):
            continue
        if not _SPECIES_CODE.fullmatch(tokens[i + 2]) or canonical_species(tokens[i + 2]) is None:
            continue

        seq: List[str] = []
        for tok in tokens[i + 3:]:
            if _BONITET_TOKEN.fullmatch(tok) or re.fullmatch(r"\d{1,3}", tok):
                seq.append(tok)
                if len(seq) >= 6:
                    break
                continue
            break
        if len(seq) < 4:
            continue

        seq += [""] * (6 - len(seq))
        age, height, diameter, age_class, age_group = (to_int_strict(s) for s in seq[:5])
        bonitet = normalize_bonitet(seq[5])

        def fill(idx: int, value: Optional[object]) -> None:
            if value is not None and not out[idx].strip():
                out[idx] = str(value)

        if is_int_in_range(age, 1, 300):
            fill(AGE, age)
        if is_int_in_range(height, 1, 99):
            fill(HEIGHT, height)
        if is_int_in_range(diameter, 1, 150):
            current = to_int_strict(out[DIAMETER])
            current_bonitet = to_int_strict(normalize_bonitet(out[BONITET]))
            suspicious = (
                current is None
                or current == to_int_strict(out[AGE_GROUP])
                or (current_bonitet is not None and current == current_bonitet)
            )
            if suspicious:
                out[DIAMETER] = str(diameter)
        if is_int_in_range(age_class, 1, 12):
            fill(AGE_CLASS, age_class)
        if is_int_in_range(age_group, 1, 10):
            fill(AGE_GROUP, age_group)
        if bonitet:
            fill(BONITET, bonitet)
        return out
    return out


def reread_main_stock_from_text(cells: Sequence[str], text: str = "") -> Cells:
    """Fill empty stock columns from the numbers printed after the stocking degree.

    The line reads ``... polnota per_ha total by_species class ...``; the
    anchor is the whitespace token pair ``polnota per_ha`` matching the cells,
    so digits inside a formula or a layer index are never taken for stock.
    """
    out = list(cells)
    polnota, per_ha = to_num(out[POLNOTA]), to_num(out[STOCK_PER_HA])
    if not is_polnota_str(out[POLNOTA]) or per_ha is None:
        return out
    values = [to_num(tok) for tok in normalize_broken_words(text).split()]
    anchor = next(
        (i for i in range(len(values) - 1) if values[i] == polnota and values[i + 1] == per_ha),
        None,
    )
    if anchor is None:
        return out
    stocks: List[float] = []
    for value in values[anchor + 2 :]:
        if value is None:
            break
        stocks.append(value)
    if not stocks:
        return out

    total, by_species = to_float_loose(out[STOCK_TOTAL]), to_float_loose(out[STOCK_BY_SPECIES])
    if total is None and by_species is None:
        out[STOCK_TOTAL] = format_number(stocks[0])
        if len(stocks) >= 2:
            out[STOCK_BY_SPECIES] = format_number(stocks[1])
    elif total is None and len(stocks) >= 2 and stocks[1] == by_species:
        out[STOCK_TOTAL] = format_number(stocks[0])
    elif by_species is None and len(stocks) >= 2 and stocks[0] == total:
        out[STOCK_BY_SPECIES] = format_number(stocks[1])

    if not out[MERCH_CLASS] and len(stocks) >= 3:
        klass = stocks[2]
        if klass.is_integer() and 1 <= klass <= 4:
            out[MERCH_CLASS] = str(int(klass))
    return out


# -- species rows -----------------------------------------------------------


def normalize_species_cells(cells: Sequence[str], text: str = "") -> Cells:
    """Canonical species code; age glued to the code (``ОЛСА50``) moves to the age column."""
    out = list(cells)
    if out[ELEMENT]:
        out[ELEMENT] = re.sub(r"\s+", "", out[ELEMENT]).upper()
    out[AGE] = out[AGE].strip()
    element = out[ELEMENT]

    m = re.fullmatch(r"([А-ЯЁA-Z]{1,6})(\d{1,3})", element)
    if m:
        out[ELEMENT] = canonical_species(m.group(1)) or m.group(1)
        if not out[AGE]:
            out[AGE] = m.group(2)
        return out

    m = re.fullmatch(r"А\s*(\d{1,3})", out[AGE], re.IGNORECASE)
    if element == "ОЛС" and m:
        out[ELEMENT] = canonical_species("ОЛСА") or "ОЛСА"
        out[AGE] = m.group(1)
        return out

    if re.search(r"\d", element):
        m = re.match(r"[А-ЯЁA-Z]{1,6}", element)
        if m:
            element = m.group(0)
    if element:
        out[ELEMENT] = canonical_species(element) or element
    return out


def realign_species_height_diameter(cells: Sequence[str], text: str = "") -> Cells:
    """``"Е 14 16"`` with no diameter column: the pair is height and diameter, not age and height."""
    out = list(cells)
    if out[DIAMETER].strip():
        return out
    t = normalize_broken_words(text).replace(",", ".")
    m = re.match(r"([А-ЯЁA-Z]{1,6})\s+(\d{1,3})\s+(\d{1,3})\b", t, re.IGNORECASE)
    if not m:
        return out
    a, b = int(m.group(2)), int(m.group(3))
    if is_int_in_range(a, 1, 99) and is_int_in_range(b, 1, 150):
        out[HEIGHT] = str(a)
        out[DIAMETER] = str(b)
        if to_int_strict(out[AGE]) == a:
            out[AGE] = ""
    return out


def rescue_species_metrics_from_text(cells: Sequence[str], text: str = "") -> Cells:
    out = list(cells)
    if not canonical_species(out[ELEMENT].strip()):
        return out
    t = normalize_broken_words(text).replace(",", ".")

    m = re.match(r"([А-ЯЁA-Z]{1,6})\s+(\d{1,3})\s+(\d{1,2})\s+(\d{1,3})\b", t, re.IGNORECASE)
    if m:
        age, height, diameter = int(m.group(2)), int(m.group(3)), int(m.group(4))
        if is_int_in_range(age, 1, 300) and is_int_in_range(height, 1, 99) and is_int_in_range(diameter, 1, 150):
            for idx, value in ((AGE, age), (HEIGHT, height), (DIAMETER, diameter)):
                if not out[idx]:
                    out[idx] = str(value)
            return out

    m = re.match(r"([А-ЯЁA-Z]{1,6})\s+(\d{1,3})\s+(\d{1,3})\b", t, re.IGNORECASE)
    if m:
        a, b = int(m.group(2)), int(m.group(3))
        if is_int_in_range(a, 1, 99) and is_int_in_range(b, 1, 150):
            pair = ((HEIGHT, a), (DIAMETER, b))
        elif is_int_in_range(a, 1, 300) and is_int_in_range(b, 1, 99):
            pair = ((AGE, a), (HEIGHT, b))
        else:
            return out
        for idx, value in pair:
            if not out[idx]:
                out[idx] = str(value)
    return out


def enforce_species_completeness(cells: Sequence[str], text: str = "") -> Cells:
    """An age needs height and diameter; a height needs a diameter."""
    out = list(cells)
    if to_int_strict(out[AGE]) is not None and (
        to_int_strict(out[HEIGHT]) is None or to_int_strict(out[DIAMETER]) is None
    ):
        out[AGE] = ""
    if to_int_strict(out[HEIGHT]) is not None and to_int_strict(out[DIAMETER]) is None:
        out[HEIGHT] = ""
    return out


def split_single_trees_age_height(cells: Sequence[str], text: str = "") -> Cells:
    out = list(cells)
    m = re.fullmatch(r"(\d+)\s+(\d+)", out[HEIGHT].strip())
    if m and not out[AGE]:
        out[AGE] = m.group(1)
        out[HEIGHT] = m.group(2)
    return out


# -- pipelines --------------------------------------------------------------

JOIN_SPACED_DECIMALS = RepairStep("join_spaced_decimals", join_spaced_decimals)
JOIN_SPACED_INTEGERS = RepairStep("join_spaced_integers", join_spaced_integers)
MERGE_VYDEL_AREA_SPLIT = RepairStep("merge_vydel_area_split", merge_vydel_area_split)
MERGE_AREA_SPLIT_INTO_DESCRIPTION = RepairStep("merge_area_split_into_description", merge_area_split_into_description)
SPLIT_AREA_TAIL = RepairStep("split_area_tail", split_area_tail)
MERGE_DESCRIPTION_OVERFLOW = RepairStep("merge_description_overflow", merge_description_overflow)
SHIFT_BONITET_FROM_FOREST_TYPE = RepairStep("shift_bonitet_from_forest_type", shift_bonitet_from_forest_type, shift=True)
REPAIR_STOCK_AND_MERCH_CLASS = RepairStep("repair_stock_and_merch_class", repair_stock_and_merch_class)
SHIFT_MERCH_CLASS_FROM_DEAD_STANDING = RepairStep(
    "shift_merch_class_from_dead_standing", shift_merch_class_from_dead_standing, shift=True
)
MOVE_TEXT_FROM_LITTER_LIQUID = RepairStep("move_text_from_litter_liquid", move_text_from_litter_liquid)
SPLIT_POLNOTA_STOCK_PER_HA = RepairStep("split_polnota_stock_per_ha", split_polnota_stock_per_ha, shift=True)
SPLIT_AGE_HEIGHT = RepairStep("split_age_height", split_age_height, shift=True)
DROP_OPERATIONS_DUPLICATING_DESCRIPTION = RepairStep(
    "drop_operations_duplicating_description", drop_operations_duplicating_description
)
SPLIT_MAIN_PAIRS = RepairStep("split_main_pairs", split_main_pairs, shift=True)
VALIDATE_MAIN_RANGES = RepairStep("validate_main_ranges", validate_main_ranges)
RESCUE_MAIN_METRICS_FROM_TEXT = RepairStep("rescue_main_metrics_from_text", rescue_main_metrics_from_text)
REREAD_MAIN_STOCK_FROM_TEXT = RepairStep("reread_main_stock_from_text", reread_main_stock_from_text)
CLEAR_OUT_OF_RANGE = RepairStep("clear_out_of_range", clear_out_of_range)
NORMALIZE_SPECIES_CELLS = RepairStep("normalize_species_cells", normalize_species_cells)
REALIGN_SPECIES_HEIGHT_DIAMETER = RepairStep("realign_species_height_diameter", realign_species_height_diameter)
SPLIT_SPECIES_AGE_HEIGHT = RepairStep("split_species_age_height", split_species_age_height, shift=True)
RESCUE_SPECIES_METRICS_FROM_TEXT = RepairStep("rescue_species_metrics_from_text", rescue_species_metrics_from_text)
ENFORCE_SPECIES_COMPLETENESS = RepairStep("enforce_species_completeness", enforce_species_completeness)
SPLIT_SINGLE_TREES_AGE_HEIGHT = RepairStep("split_single_trees_age_height", split_single_trees_age_height, shift=True)

PRE_CLASSIFY_STEPS: Tuple[RepairStep, ...] = (
    JOIN_SPACED_DECIMALS,
    JOIN_SPACED_INTEGERS,
    MERGE_VYDEL_AREA_SPLIT,
    MERGE_AREA_SPLIT_INTO_DESCRIPTION,
    SPLIT_AREA_TAIL,
    MERGE_DESCRIPTION_OVERFLOW,
    SHIFT_BONITET_FROM_FOREST_TYPE,
    REPAIR_STOCK_AND_MERCH_CLASS,
    SHIFT_MERCH_CLASS_FROM_DEAD_STANDING,
    MOVE_TEXT_FROM_LITTER_LIQUID,
    SPLIT_POLNOTA_STOCK_PER_HA,
    SPLIT_AGE_HEIGHT,
    DROP_OPERATIONS_DUPLICATING_DESCRIPTION,
)

MAIN_STEPS: Tuple[RepairStep, ...] = (
    SPLIT_MAIN_PAIRS,
    REPAIR_STOCK_AND_MERCH_CLASS,
    VALIDATE_MAIN_RANGES,
    RESCUE_MAIN_METRICS_FROM_TEXT,
    VALIDATE_MAIN_RANGES,
    REREAD_MAIN_STOCK_FROM_TEXT,
    SHIFT_MERCH_CLASS_FROM_DEAD_STANDING,
    MOVE_TEXT_FROM_LITTER_LIQUID,
    SPLIT_POLNOTA_STOCK_PER_HA,
    SPLIT_AGE_HEIGHT,
    CLEAR_OUT_OF_RANGE,
)

SPECIES_STEPS: Tuple[RepairStep, ...] = (
    REPAIR_STOCK_AND_MERCH_CLASS,
    SHIFT_MERCH_CLASS_FROM_DEAD_STANDING,
    MOVE_TEXT_FROM_LITTER_LIQUID,
    NORMALIZE_SPECIES_CELLS,
    JOIN_SPACED_INTEGERS,
    REALIGN_SPECIES_HEIGHT_DIAMETER,
    SPLIT_SPECIES_AGE_HEIGHT,
    RESCUE_SPECIES_METRICS_FROM_TEXT,
    SPLIT_POLNOTA_STOCK_PER_HA,
    SPLIT_AGE_HEIGHT,
    CLEAR_OUT_OF_RANGE,
    ENFORCE_SPECIES_COMPLETENESS,
)

SINGLE_TREES_STEPS: Tuple[RepairStep, ...] = (
    JOIN_SPACED_INTEGERS,
    SPLIT_SINGLE_TREES_AGE_HEIGHT,
    CLEAR_OUT_OF_RANGE,
)

TOTALS_STEPS: Tuple[RepairStep, ...] = (
    JOIN_SPACED_DECIMALS,
    JOIN_SPACED_INTEGERS,
    REPAIR_STOCK_AND_MERCH_CLASS,
    SHIFT_MERCH_CLASS_FROM_DEAD_STANDING,
)

ALL_STEPS: Tuple[RepairStep, ...] = tuple(
    dict.fromkeys(PRE_CLASSIFY_STEPS + MAIN_STEPS + SPECIES_STEPS + SINGLE_TREES_STEPS + TOTALS_STEPS)
)
