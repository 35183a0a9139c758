from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Union

from taxation.cells import (
    AGE,
    AGE_CLASS,
    AGE_GROUP,
    AREA,
    BONITET,
    DEAD_STANDING,
    DESCRIPTION,
    DIAMETER,
    ELEMENT,
    FOREST_TYPE,
    HEIGHT,
    LITTER,
    LITTER_LIQUID,
    MERCH_CLASS,
    OPERATIONS,
    POLNOTA,
    SINGLE_TREES,
    SPARSE,
    STOCK_BY_SPECIES,
    STOCK_PER_HA,
    STOCK_TOTAL,
    YARUS,
    YARUS_HEIGHT,
)
from taxation.classifier import RowKind
from taxation.dictionaries import canonical_operation, canonical_species, split_forest_type_and_site_conditions
from taxation.repairs import FIELD_RANGES
from taxation.textnorm import is_polnota_str, normalize_bonitet, normalize_spaces, to_int_strict, to_num

Number = Union[int, float]

OUTPUT_COLUMNS = (
    "quarter",
    "row_no",
    "category",
    "vydel",
    "kind",
    "page",
    "area",
    "description",
    "yarus",
    "yarus_height",
    "element",
    "age",
    "height",
    "diameter",
    "age_class",
    "age_group",
    "bonitet",
    "forest_type",
    "tlu",
    "polnota",
    "stock_per_ha",
    "stock_total",
    "stock_by_species",
    "merch_class",
    "dead_standing",
    "sparse",
    "single_trees",
    "litter",
    "litter_liquid",
    "operations",
    "note",
    "raw",
)


@dataclass
class Record:
    kind: RowKind
    page: int
    row_no: int
    quarter: Optional[int] = None
    category: Optional[str] = None
    vydel: Optional[int] = None
    area: Optional[Number] = None
    description: Optional[str] = None
    yarus: Optional[int] = None
    yarus_height: Optional[int] = None
    element: Optional[str] = None
    age: Optional[int] = None
    height: Optional[int] = None
    diameter: Optional[int] = None
    age_class: Optional[int] = None
    age_group: Optional[int] = None
    bonitet: Optional[Union[int, str]] = None
    forest_type: Optional[str] = None
    tlu: Optional[str] = None
    polnota: Optional[float] = None
    stock_per_ha: Optional[Number] = None
    stock_total: Optional[Number] = None
    stock_by_species: Optional[Number] = None
    merch_class: Optional[int] = None
    dead_standing: Optional[Union[Number, str]] = None
    sparse: Optional[Union[Number, str]] = None
    single_trees: Optional[Union[Number, str]] = None
    litter: Optional[Union[Number, str]] = None
    litter_liquid: Optional[Union[Number, str]] = None
    operations: Optional[str] = None
    note: Optional[str] = None
    raw: str = ""

    def to_row(self) -> List[Any]:
        return [self.kind.value if name == "kind" else getattr(self, name) for name in OUTPUT_COLUMNS]

    def append_raw(self, suffix: str) -> None:
        self.raw = f"{self.raw} | {suffix}" if self.raw else suffix


def _text(value: object) -> Optional[str]:
    text = normalize_spaces(value)
    return text or None


def number_value(value: object) -> Optional[Number]:
    n = to_num(value)
    if n is None:
        return None
    return int(n) if n.is_integer() else n


def _ranged_int(cells: Sequence[str], idx: int) -> Optional[int]:
    value = to_int_strict(cells[idx])
    low, high = FIELD_RANGES[idx]
    if value is None or not low <= value <= high:
        return None
    return value


def _number_or_text(value: object) -> Optional[Union[Number, str]]:
    n = number_value(value)
    return n if n is not None else _text(value)


def canonical_element(value: object) -> Optional[str]:
    code = re.sub(r"\s+", "", str(value or "")).upper()
    if not code:
        return None
    return canonical_species(code) or code


def fields_from_cells(cells: Sequence[str]) -> Dict[str, Any]:
    """Typed record fields for a repaired row (everything except context and diagnostics)."""
    bonitet = normalize_bonitet(cells[BONITET])
    forest_type, tlu = split_forest_type_and_site_conditions(cells[FOREST_TYPE])
    polnota = cells[POLNOTA].strip().replace(",", ".")
    return {
        "area": number_value(cells[AREA]),
        "description": _text(cells[DESCRIPTION]),
        "yarus": _ranged_int(cells, YARUS),
        "yarus_height": _ranged_int(cells, YARUS_HEIGHT),
        "element": canonical_element(cells[ELEMENT]),
        "age": _ranged_int(cells, AGE),
        "height": _ranged_int(cells, HEIGHT),
        "diameter": _ranged_int(cells, DIAMETER),
        "age_class": _ranged_int(cells, AGE_CLASS),
        "age_group": _ranged_int(cells, AGE_GROUP),
        "bonitet": int(bonitet) if bonitet and bonitet.isdigit() else bonitet,
        "forest_type": forest_type,
        "tlu": tlu,
        "polnota": float(polnota) if is_polnota_str(polnota) else None,
        "stock_per_ha": number_value(cells[STOCK_PER_HA]),
        "stock_total": number_value(cells[STOCK_TOTAL]),
        "stock_by_species": number_value(cells[STOCK_BY_SPECIES]),
        "merch_class": _ranged_int(cells, MERCH_CLASS),
        "dead_standing": _number_or_text(cells[DEAD_STANDING]),
        "sparse": _number_or_text(cells[SPARSE]),
        "single_trees": _number_or_text(cells[SINGLE_TREES]),
        "litter": _number_or_text(cells[LITTER]),
        "litter_liquid": _number_or_text(cells[LITTER_LIQUID]),
        "operations": canonical_operation(cells[OPERATIONS]),
    }
