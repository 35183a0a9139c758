"""Canonicalization tables for coded fields of the inventory report.

Every table maps a normalized key (case-folded, ``ё`` folded to ``е``,
whitespace and punctuation removed) to one canonical spelling. Lookups are
pure: exact key match first and, where a table allows it, the longest key
contained in the text.
"""

from __future__ import annotations

import re
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple

_NON_KEY_CHARS = re.compile(r"[^0-9a-zа-я]+")
_SPACE_RUN = re.compile(r"\s+")

# Latin letters that PDF fonts commonly emit in place of Cyrillic capitals.
_LATIN_TO_CYRILLIC = str.maketrans(
    {
        "A": "А",
        "B": "В",
        "C": "С",
        "E": "Е",
        "H": "Н",
        "K": "К",
        "M": "М",
        "O": "О",
        "P": "Р",
        "T": "Т",
        "X": "Х",
        "Y": "У",
        "D": "Д",
    }
)


def norm_key(value: object) -> str:
    text = str(value or "").lower().replace("ё", "е")
    return _NON_KEY_CHARS.sub("", text)


def fold_latin_lookalikes(value: str) -> str:
    return (value or "").upper().translate(_LATIN_TO_CYRILLIC)


class Dictionary:
    def __init__(self, name: str, entries: Mapping[str, Sequence[str]]) -> None:
        self.name = name
        self._by_key: Dict[str, str] = {}
        for canonical, aliases in entries.items():
            for alias in (canonical, *aliases):
                key = norm_key(alias)
                if key:
                    self._by_key.setdefault(key, canonical)

    def __contains__(self, value: object) -> bool:
        return norm_key(value) in self._by_key

    def __len__(self) -> int:
        return len(self._by_key)

    def exact(self, value: object) -> Optional[str]:
        key = norm_key(value)
        if not key:
            return None
        return self._by_key.get(key)

    def find_in_text(self, text: object) -> Optional[str]:
        """Return the canonical value of the longest key contained in ``text``."""
        haystack = norm_key(text)
        if not haystack:
            return None
        best_key = ""
        best_value: Optional[str] = None
        for key, canonical in self._by_key.items():
            if key in haystack and len(key) > len(best_key):
                best_key = key
                best_value = canonical
        return best_value

    def lookup(self, value: object) -> Optional[str]:
        return self.exact(value) or self.find_in_text(value)


def _entries(pairs: Iterable[Tuple[str, Sequence[str]]]) -> Dict[str, Sequence[str]]:
    return {canonical: tuple(aliases) for canonical, aliases in pairs}


SPECIES = Dictionary(
    "species",
    _entries(
        [
            ("С", ["СОСНА"]),
            ("Е", ["ЕЛЬ"]),
            ("П", ["ПИХТА"]),
            ("Л", ["ЛИСТВЕННИЦА"]),
            ("К", ["КЕДР"]),
            ("Б", ["БЕРЕЗА"]),
            ("БК", ["БЕРЕЗА КАРЕЛЬСКАЯ"]),
            ("ОС", ["ОСИНА"]),
            ("ОЛС", ["ОЛСА", "ОЛЬХА СЕРАЯ"]),
            ("ОЛЧ", ["ОЛЬХА ЧЕРНАЯ"]),
            ("ИВ", ["ИВА"]),
            ("ИВД", ["ИВА ДРЕВОВИДНАЯ"]),
            ("ИВК", ["ИВА КУСТАРНИКОВАЯ"]),
            ("Д", ["ДУБ"]),
            ("ЛП", ["ЛИПА"]),
            ("КЛ", ["КЛЕН"]),
            ("Я", ["ЯСЕНЬ"]),
            ("В", ["ВЯЗ"]),
            ("ИЛ", ["ИЛЬМ"]),
            ("Т", ["ТОПОЛЬ"]),
            ("ЧЕР", ["ЧЕРЕМУХА"]),
            ("РЯБ", ["РЯБИНА"]),
        ]
    ),
)

PROTECTION_CATEGORIES = Dictionary(
    "protection_category",
    _entries(
        [
            ("Эксплуатационные леса", ["Эксплуатационные"]),
            ("Резервные леса", ["Резервные"]),
            ("Защитные леса", []),
            ("Ценные леса", []),
            ("Леса, расположенные в водоохранных зонах", ["Водоохранные зоны"]),
            (
                "Запретные полосы лесов, расположенные вдоль водных объектов",
                ["Запретные полосы лесов вдоль водных объектов"],
            ),
            ("Нерестоохранные полосы лесов", []),
            (
                "Защитные полосы лесов, расположенные вдоль железнодорожных путей общего пользования, "
                "федеральных автомобильных дорог общего пользования",
                ["Защитные полосы лесов вдоль дорог"],
            ),
            ("Противоэрозионные леса", []),
            ("Зеленые зоны", []),
            ("Лесопарковые зоны", []),
            ("Особо защитные участки лесов", ["ОЗУ"]),
        ]
    ),
)

OPERATIONS = Dictionary(
    "operation",
    _entries(
        [
            ("Осветление", ["ОСВ"]),
            ("Прочистка", ["ПРЧ"]),
            ("Прореживание", ["ПРЖ"]),
            ("Проходная рубка", ["ПРХ", "Проходные рубки"]),
            ("Рубка ухода", ["РУ", "Рубки ухода"]),
            ("Сплошная санитарная рубка", ["ССР", "СПС"]),
            ("Выборочная санитарная рубка", ["ВСР"]),
            ("Уборка захламленности", ["УЗ"]),
            ("Расчистка просек", ["РП"]),
            ("Дополнение лесных культур", ["ДЛК"]),
            ("Агротехнический уход", ["АУ"]),
            ("Сплошная рубка спелых и перестойных насаждений", ["СРС"]),
            ("Выборочная рубка спелых и перестойных насаждений", ["ВРС"]),
        ]
    ),
)

_FOREST_TYPE_SPECIES = ("С", "Е", "П", "Л", "К", "Б", "ОС", "ОЛС", "Д")
_FOREST_TYPE_SUFFIXES = ("кис", "чер", "бр", "дм", "сф", "тр", "лш", "прм", "кпр", "бол")

FOREST_TYPES = Dictionary(
    "forest_type",
    {f"{sp}{suffix}": (f"{sp} {suffix}",) for sp in _FOREST_TYPE_SPECIES for suffix in _FOREST_TYPE_SUFFIXES},
)

SITE_CONDITIONS = Dictionary(
    "tlu",
    {
        f"{letter}{digit}": (f"{latin}{digit}",)
        for letter, latin in (("А", "A"), ("В", "B"), ("С", "C"), ("Д", "D"))
        for digit in range(6)
    },
)

OBJECT_KINDS = Dictionary(
    "object_kind",
    _entries(
        [
            ("Болота", ["Болото"]),
            ("Дороги", ["Дорога"]),
            ("Ручьи", ["Ручей"]),
            ("Реки", ["Река"]),
            ("Озера", ["Озеро"]),
            ("Просеки", ["Просека"]),
            ("Вырубки", ["Вырубка"]),
            ("Гари", ["Гарь"]),
            ("Поляны", ["Поляна"]),
            ("Прогалины", ["Прогалина"]),
            ("Пустыри", ["Пустырь"]),
            ("Сенокосы", ["Сенокос"]),
            ("Пастбища", ["Пастбище"]),
            ("Пашни", ["Пашня"]),
            ("Усадьбы", ["Усадьба"]),
            ("Пески", ["Песок"]),
            ("Карьеры", ["Карьер"]),
            ("Линии электропередачи", ["ЛЭП"]),
            ("Трассы трубопроводов", ["Трассы"]),
            ("Канавы", ["Канава"]),
            ("Погибшие насаждения", []),
            ("Прочие земли", []),
        ]
    ),
)

VYDEL_HEADER_KINDS = Dictionary(
    "vydel_header_kind",
    _entries(
        [
            ("Культуры лесные", ["Лесные культуры"]),
            ("Несомкнувшиеся лесные культуры", ["Несомкнувшиеся культуры"]),
            ("Культуры под пологом", ["Культуры под пологом леса"]),
            ("Насаждения естественного происхождения", ["Насаждения"]),
            ("Редины", ["Редина"]),
            ("Лесные питомники", ["Питомник"]),
            ("Плантации", ["Плантация"]),
        ]
    ),
)


def canonical_species(value: object) -> Optional[str]:
    text = _SPACE_RUN.sub("", str(value or ""))
    if not text:
        return None
    return SPECIES.exact(fold_latin_lookalikes(text))


def canonical_category(value: object) -> Optional[str]:
    text = _SPACE_RUN.sub(" ", str(value or "")).strip()
    if not text:
        return None
    return PROTECTION_CATEGORIES.lookup(text) or text


def canonical_operation(value: object) -> Optional[str]:
    text = _SPACE_RUN.sub(" ", str(value or "")).strip()
    if not text:
        return None
    return OPERATIONS.exact(text) or text


def canonical_site_conditions(value: object) -> Optional[str]:
    return SITE_CONDITIONS.exact(fold_latin_lookalikes(str(value or "")))


def split_forest_type_and_site_conditions(raw: object) -> Tuple[Optional[str], Optional[str]]:
    text = _SPACE_RUN.sub(" ", str(raw or "")).strip()
    if not text:
        return None, None

    whole_type = FOREST_TYPES.exact(text)
    if whole_type:
        return whole_type, None
    whole_tlu = canonical_site_conditions(text)
    if whole_tlu:
        return None, whole_tlu

    parts = text.split(" ")
    if len(parts) >= 2:
        group = FOREST_TYPES.exact(" ".join(parts[:2]))
        if group:
            rest = " ".join(parts[2:])
            return group, canonical_site_conditions(rest) if rest else None
        head = FOREST_TYPES.exact(parts[0])
        if head:
            rest = " ".join(parts[1:])
            return head, canonical_site_conditions(rest)

    found = FOREST_TYPES.find_in_text(text)
    if found:
        tlu = None
        for part in parts:
            tlu = canonical_site_conditions(part)
            if tlu:
                break
        return found, tlu

    if text[:1].isdigit():
        return None, None
    return text, None
