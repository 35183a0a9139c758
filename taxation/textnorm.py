from __future__ import annotations

import re
from typing import List, NamedTuple, Optional, Sequence

_SPACE_RUN = re.compile(r"\s+")
_DASH_RUN = re.compile(r"[-‐‑‒–—]{3,}")
_RULE_RUN = re.compile(r"[|_]{3,}")
_COMPACT_DROP = re.compile(r"[^a-zа-я0-9]+")
_NUMBER_SHAPE = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)$")
_LOOSE_NUMBER = re.compile(r"(\d+(?:\.\d+)?)")
_NUMBER_TOKEN = re.compile(r"\d+(?:\.\d+)?\.?")

# Fixed phrases that extraction breaks with a stray gap.
BROKEN_WORD_FIXES = (
    (re.compile(r"Итог\s+о", re.IGNORECASE), "Итого"),
    (re.compile(r"кварт\s+алу", re.IGNORECASE), "кварталу"),
    (re.compile(r"составляющим\s+пород\s+ам", re.IGNORECASE), "составляющим породам"),
)

_COMPOSITION_BODY = (
    r"\d{1,2}\s*[А-ЯЁA-Z]{1,6}(?:\s*\d{1,2}\s*[А-ЯЁA-Z]{1,6})*"
    r"(?:\s*\+\s*[А-ЯЁA-Z]{1,6}(?:\s*,\s*[А-ЯЁA-Z]{1,6})*)*"
)
COMPOSITION_PATTERN = re.compile(rf"\b{_COMPOSITION_BODY}\b")
OVERFLOW_COMPOSITION_PATTERN = re.compile(
    r"\b\d{1,2}[А-ЯЁA-Z]{1,3}(?:\s*\d{1,2}[А-ЯЁA-Z]{1,3})*(?:\s*\+\s*[А-ЯЁA-Z]{1,3})*\b",
    re.IGNORECASE,
)
OVERFLOW_NOTE_PATTERN = re.compile(
    r"(подрост|подлесок|болот|дорог|земли|линейного\s+протяжения|просек|реки|ручь|км|тыс\.шт/га)",
    re.IGNORECASE,
)

VYDEL_START_PATTERN = re.compile(r"^\d{1,4}\s+\d+(?:[.,]\d+)?\b")
_VYDEL_AREA_TAIL = re.compile(r"^(\d{1,4})\s+(\d+(?:[.,]\d+)?)\s+(.+)$")
_MAIN_DESC_AREA = re.compile(r"^\d{1,4}\s+\d+(?:[.,]\d+)?\s+(.+)$")
_MAIN_DESC_BROKEN_AREA = re.compile(r"^\d{1,4}\s+\d+\s+[.,]\d+\s+(.+)$")
_LAYER_START = re.compile(r"[1-5]\s+\d{1,2}\b")

_STAND_MARKERS = ("насажд", "культ", "полог")
_LAND_FEATURE_PREFIXES = (
    "болот",
    "дорог",
    "ручь",
    "ручей",
    "реки",
    "река",
    "озер",
    "просек",
    "вырубк",
    "гари",
    "гарь",
    "полян",
    "прогалин",
    "пустыр",
    "сенокос",
    "пастбищ",
    "пашн",
    "усадьб",
    "пески",
    "карьер",
    "канав",
    "лэп",
    "линии электропередачи",
    "трасс",
    "погибшие",
    "прочие земли",
    "земли",
)

_NUMERIC_RULER = re.compile(r"[\d\s:|]+")
_BARE_NUMBER = re.compile(r"^\d{1,4}$")
_DASH_LINE = re.compile(r"^-{5,}$")


def normalize_spaces(value: object) -> str:
    return _SPACE_RUN.sub(" ", str(value or "")).strip()


def cleanup_dashes(value: object) -> str:
    text = _DASH_RUN.sub(" ", str(value or ""))
    return normalize_spaces(_RULE_RUN.sub(" ", text))


def normalize_broken_words(value: object) -> str:
    text = str(value or "")
    for pattern, replacement in BROKEN_WORD_FIXES:
        text = pattern.sub(replacement, text)
    return normalize_spaces(text)


def compact_text(value: object) -> str:
    return _COMPACT_DROP.sub("", str(value or "").lower().replace("ё", "е"))


def to_num(value: object) -> Optional[float]:
    if value is None:
        return None
    text = str(value).strip().replace(",", ".", 1)
    if not text or not _NUMBER_SHAPE.match(text):
        return None
    return float(text)


def to_int_strict(value: object) -> Optional[int]:
    if value is None:
        return None
    text = str(value).strip()
    if not text.isdigit() or not text.isascii():
        return None
    return int(text)


def to_float_loose(value: object) -> Optional[float]:
    if value is None:
        return None
    m = _LOOSE_NUMBER.search(str(value).replace(",", ".", 1))
    if not m:
        return None
    return float(m.group(1))


def is_int_in_range(value: Optional[int], low: int, high: int) -> bool:
    return value is not None and low <= value <= high


def is_polnota_str(value: object) -> bool:
    text = str(value or "").strip().replace(",", ".", 1)
    return bool(re.fullmatch(r"0\.\d|1\.0|1", text)) and 0.0 < float(text) <= 1.0


def normalize_bonitet(value: object) -> Optional[str]:
    text = str(value or "").strip()
    if not text:
        return None
    if re.fullmatch(r"5[аА]", text):
        return "5А"
    if re.fullmatch(r"[1-5]", text):
        return text
    return None


def format_number(value: float) -> str:
    """Render a number the way it is printed in the report (``12`` not ``12.0``)."""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.6f}".rstrip("0").rstrip(".")


def extract_numbers(text: object) -> List[float]:
    cleaned = str(text or "").replace(",", ".")
    return [float(token.rstrip(".")) for token in _NUMBER_TOKEN.findall(cleaned)]


def extract_composition_token(value: object) -> Optional[str]:
    m = COMPOSITION_PATTERN.search(normalize_spaces(value).upper())
    return _SPACE_RUN.sub("", m.group(0)) if m else None


def pure_composition(text: object) -> Optional[str]:
    """Return the compacted formula when the line holds nothing else."""
    upper = normalize_spaces(text).upper()
    m = COMPOSITION_PATTERN.search(upper)
    if not m:
        return None
    rest = upper[: m.start()] + " " + upper[m.end():]
    if normalize_spaces(re.sub(r"[.,;:()]", " ", rest)):
        return None
    return _SPACE_RUN.sub("", m.group(0))


def overflow_looks_like_composition(text: str) -> bool:
    return bool(OVERFLOW_COMPOSITION_PATTERN.search(normalize_spaces(text).upper()))


def overflow_looks_like_note(text: str) -> bool:
    return bool(OVERFLOW_NOTE_PATTERN.search(normalize_spaces(text).lower()))


def looks_like_stand_description(description: object) -> bool:
    lowered = str(description or "").lower()
    return any(marker in lowered for marker in _STAND_MARKERS)


def looks_like_land_feature(description: object) -> bool:
    lowered = str(description or "").strip().lower()
    return bool(lowered) and lowered.startswith(_LAND_FEATURE_PREFIXES)


def is_noise_text(text: object) -> bool:
    if not text:
        return True
    t = str(text).strip()
    if not t:
        return True
    if _BARE_NUMBER.match(t):
        return True
    if "-" * 64 in t or _DASH_LINE.match(t):
        return True
    if t.startswith(":"):
        return True
    compact = _SPACE_RUN.sub("", t).lower()
    if "категориязащитности" in compact and "квартал" in compact:
        return True
    if t.count(":") >= 10:
        return True
    # Column ruler "1 2 3 ... 24" printed under the table header.
    if _NUMERIC_RULER.fullmatch(t) and re.search(r"\b24\b", t):
        return True
    return False


class VydelAreaTail(NamedTuple):
    vydel: int
    area: float
    tail: str


def extract_vydel_area_tail(text: object) -> Optional[VydelAreaTail]:
    m = _VYDEL_AREA_TAIL.match(normalize_broken_words(text))
    if not m:
        return None
    tail = m.group(3).strip()
    if not tail:
        return None
    return VydelAreaTail(int(m.group(1)), float(m.group(2).replace(",", ".")), tail)


def extract_main_description(text: object, cells: Sequence[str]) -> Optional[str]:
    """Cut the stand description out of a MAIN line: after area, before the layer pair."""
    t = normalize_broken_words(text)
    m = _MAIN_DESC_AREA.match(t) or _MAIN_DESC_BROKEN_AREA.match(t)
    if not m:
        return None
    rest = re.sub(r"^[.,]\d+\s+", "", m.group(1))

    yarus = to_int_strict(cells[4]) if len(cells) > 5 else None
    yarus_height = to_int_strict(cells[5]) if len(cells) > 5 else None
    if yarus is not None and yarus_height is not None:
        layer = re.search(rf"\b{yarus}\s+{yarus_height}\b", rest)
        if layer:
            return normalize_spaces(rest[: layer.start()]) or None

    layer = _LAYER_START.search(rest)
    if not layer:
        return normalize_spaces(rest) or None
    return normalize_spaces(rest[: layer.start()]) or None
