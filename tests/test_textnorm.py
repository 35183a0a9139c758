import pytest

from taxation.textnorm import (
    cleanup_dashes,
    compact_text,
    extract_composition_token,
    extract_main_description,
    extract_numbers,
    extract_vydel_area_tail,
    format_number,
    is_noise_text,
    is_polnota_str,
    looks_like_land_feature,
    looks_like_stand_description,
    normalize_bonitet,
    normalize_broken_words,
    pure_composition,
    to_float_loose,
    to_int_strict,
    to_num,
)


def test_number_parsing():
    assert to_num("12,5") == 12.5
    assert to_num(" 7 ") == 7.0
    assert to_num("1 2") is None
    assert to_num("") is None
    assert to_int_strict("12") == 12
    assert to_int_strict("1.0") is None
    assert to_int_strict("١٢") is None
    assert to_float_loose("ок. 12,5 м3") == 12.5
    assert to_float_loose("нет") is None


@pytest.mark.parametrize(
    "value,expected",
    [("0.7", True), ("0,8", True), ("1", True), ("1.0", True), ("1.2", False), ("0.0", False), ("07", False), ("", False)],
)
def test_is_polnota_str(value, expected):
    assert is_polnota_str(value) is expected


def test_normalize_bonitet():
    assert normalize_bonitet("5а") == "5А"
    assert normalize_bonitet("3") == "3"
    assert normalize_bonitet("6") is None
    assert normalize_bonitet("") is None


def test_format_and_extract_numbers():
    assert format_number(12.0) == "12"
    assert format_number(0.25) == "0.25"
    assert extract_numbers("0,7 220. 12") == [0.7, 220.0, 12.0]


def test_text_cleanup():
    assert normalize_broken_words("Итог о по кварт алу") == "Итого по кварталу"
    assert cleanup_dashes("Категория ----- защитности") == "Категория защитности"
    assert compact_text("Квартал № 12") == "квартал12"


def test_composition_helpers():
    assert extract_composition_token("7 Б 1 ОС 2 Е + ИВ") == "7Б1ОС2Е+ИВ"
    assert extract_composition_token("проходная рубка") is None
    assert pure_composition("5Е 5Б") == "5Е5Б"
    assert pure_composition("5Е 5Б.") == "5Е5Б"
    assert pure_composition("5Е 5Б Культуры") is None


def test_description_predicates():
    assert looks_like_stand_description("Несомкнувшиеся лесные культуры")
    assert not looks_like_stand_description("Болото")
    assert looks_like_land_feature("Болото верховое")
    assert looks_like_land_feature("ЛЭП")
    assert not looks_like_land_feature("Культуры лесные")


@pytest.mark.parametrize(
    "text",
    ["", "12", "1 2 3 4 5 6 7 8 9 10 11 12 13 14 15 16 17 18 19 20 21 22 23 24", ": слева", "-----"],
)
def test_noise_lines(text):
    assert is_noise_text(text)


def test_regular_lines_are_not_noise():
    assert not is_noise_text("проходная рубка")
    assert not is_noise_text("12 3.4 Болото")


def test_extract_vydel_area_tail():
    parsed = extract_vydel_area_tail("6 22,8 Культуры лесные")
    assert parsed is not None
    assert (parsed.vydel, parsed.area, parsed.tail) == (6, 22.8, "Культуры лесные")
    assert extract_vydel_area_tail("Культуры лесные") is None


def test_extract_main_description():
    cells = [""] * 25
    cells[4], cells[5] = "1", "20"
    assert extract_main_description("9 4.5 7Б1ОС2Е 1 20 Б 60", cells) == "7Б1ОС2Е"
    assert extract_main_description("9 4.5 7Б1ОС2Е 1 20 Б 60", [""] * 25) == "7Б1ОС2Е"
    assert extract_main_description("проходная рубка", cells) is None
