from __future__ import annotations

import re
from dataclasses import dataclass
from typing import FrozenSet, List, Optional, Sequence, Set, Tuple

from taxation.dictionaries import canonical_category
from taxation.textnorm import cleanup_dashes, compact_text, normalize_spaces

HEADER_SEARCH_LINES = 10

QUARTER_PATTERN = re.compile(r"квартал(\d{1,3})")
CATEGORY_LABEL_PATTERN = re.compile(r"категория\s+защитности", re.IGNORECASE)
CATEGORY_SPLIT_PATTERN = re.compile(r"Категория\s+защитности\s*:?\s*", re.IGNORECASE)
QUARTER_WORD_PATTERN = re.compile(r"Кв\s*а?\s*р?\s*т?\s*а?\s*л\.?(?!\w)", re.IGNORECASE)
QUARTER_ABBREVIATION_PATTERN = re.compile(r"\bКв", re.IGNORECASE)


@dataclass(frozen=True)
class PageHeader:
    quarter: Optional[int] = None
    category: Optional[str] = None
    # Indexes of the lines the header was read from; they are not table rows.
    line_indexes: FrozenSet[int] = frozenset()


def find_quarter(texts: Sequence[str]) -> Tuple[Optional[int], Set[int]]:
    """Look for ``квартал<N>`` in one, two or three consecutive lines."""
    for span in (1, 2, 3):
        for i in range(len(texts) - span + 1):
            m = QUARTER_PATTERN.search(compact_text(" ".join(texts[i : i + span])))
            if m:
                return int(m.group(1)), set(range(i, i + span))
    return None, set()


def _category_after_label(text: str) -> Optional[str]:
    parts = CATEGORY_SPLIT_PATTERN.split(text, maxsplit=1)
    if len(parts) < 2:
        return None
    value = parts[1]
    m = QUARTER_WORD_PATTERN.search(value)
    if m:
        value = value[: m.start()]
    m = QUARTER_ABBREVIATION_PATTERN.search(value)
    if m:
        value = value[: m.start()]
    value = normalize_spaces(value).strip(" .,:;")
    if len(value) < 3 or "квартал" in value.lower():
        return None
    if re.match(r"^Квартал\b", value, re.IGNORECASE):
        return None
    return value


def find_category(texts: Sequence[str]) -> Tuple[Optional[str], Set[int]]:
    for i, text in enumerate(texts):
        line = cleanup_dashes(text)
        if not CATEGORY_LABEL_PATTERN.search(line):
            continue
        value = _category_after_label(line)
        used = {i}
        # The category name can wrap onto the following line.
        if value is None and i + 1 < len(texts):
            value = _category_after_label(cleanup_dashes(f"{line} {texts[i + 1]}"))
            used.add(i + 1)
        if value is not None:
            return canonical_category(value), used
    return None, set()


def read_page_header(texts: Sequence[str], limit: Optional[int] = None) -> PageHeader:
    """Read quarter and protection category from the top lines of a page.

    ``limit`` is the number of lines to search; by default the first
    ``HEADER_SEARCH_LINES``.
    """
    head: List[str] = list(texts[: HEADER_SEARCH_LINES if limit is None else limit])
    quarter, quarter_lines = find_quarter(head)
    category, category_lines = find_category(head)
    return PageHeader(
        quarter=quarter,
        category=category,
        line_indexes=frozenset(quarter_lines | category_lines),
    )
