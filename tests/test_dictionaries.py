from taxation.dictionaries import (
    FOREST_TYPES,
    OBJECT_KINDS,
    SPECIES,
    Dictionary,
    canonical_category,
    canonical_operation,
    canonical_species,
    norm_key,
    split_forest_type_and_site_conditions,
)


def test_norm_key_folds_case_yo_and_punctuation():
    assert norm_key("Ёлка - 1") == "елка1"
    assert norm_key(None) == ""


def test_canonical_species():
    assert canonical_species("олса") == "ОЛС"
    assert canonical_species("E") == "Е"  # Latin E
    assert canonical_species("O C") == "ОС"  # Latin O, C
    assert canonical_species("Береза") == "Б"
    assert canonical_species("ЖЖ") is None
    assert canonical_species("") is None


def test_canonical_category_and_operation():
    assert canonical_category("Эксплуатационные") == "Эксплуатационные леса"
    assert canonical_category("Леса  особого  режима") == "Леса особого режима"
    assert canonical_category("") is None
    assert canonical_operation("ПРЖ") == "Прореживание"
    assert canonical_operation("рубки   ухода") == "Рубка ухода"
    assert canonical_operation("уход за подростом") == "уход за подростом"


def test_split_forest_type_and_site_conditions():
    assert split_forest_type_and_site_conditions("Ечер") == ("Ечер", None)
    assert split_forest_type_and_site_conditions("Е чер В3") == ("Ечер", "В3")
    assert split_forest_type_and_site_conditions("Ечер С2") == ("Ечер", "С2")
    assert split_forest_type_and_site_conditions("B3") == (None, "В3")  # Latin B
    assert split_forest_type_and_site_conditions("12") == (None, None)
    assert split_forest_type_and_site_conditions("ХХ") == ("ХХ", None)
    assert split_forest_type_and_site_conditions("") == (None, None)


def test_dictionary_find_in_text_prefers_longest_key():
    table = Dictionary("test", {"Ива": ["ИВ"], "Ива древовидная": ["ИВД"]})
    assert table.find_in_text("ива древовидная у ручья") == "Ива древовидная"
    assert table.lookup("ИВ") == "Ива"
    assert table.exact("ива у ручья") is None
    assert "ивд" in table
    assert len(table) == 4


def test_builtin_tables_are_populated():
    assert SPECIES.exact("ель") == "Е"
    assert FOREST_TYPES.exact("С брусничный") is None
    assert FOREST_TYPES.exact("С бр") == "Сбр"
    assert OBJECT_KINDS.lookup("Ручей безымянный") == "Ручьи"
