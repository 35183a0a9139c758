from taxation.page_header import find_category, find_quarter, read_page_header


def test_find_quarter_across_broken_lines():
    assert find_quarter(["Лесничество", "Квар", "тал 12"]) == (12, {1, 2})
    assert find_quarter(["Квартал № 7"]) == (7, {0})
    assert find_quarter(["Выдел 3"]) == (None, set())


def test_find_category_wrapped_onto_next_line():
    category, used = find_category(["Категория защитности:", "Эксплуатационные леса Квартал 5"])
    assert category == "Эксплуатационные леса"
    assert used == {0, 1}


def test_find_category_cuts_quarter_abbreviation():
    category, used = find_category(["Категория защитности: Защитные леса Кв. 5"])
    assert category == "Защитные леса"
    assert used == {0}


def test_read_page_header_collects_line_indexes():
    header = read_page_header(
        [
            "Категория защитности: Эксплуатационные леса",
            "Квартал 12",
            "9 4.5 7Б1ОС2Е 1 20 Б 60",
        ]
    )
    assert header.quarter == 12
    assert header.category == "Эксплуатационные леса"
    assert header.line_indexes == frozenset({0, 1})


def test_read_page_header_respects_limit():
    header = read_page_header(["Выдел", "Квартал 12"], limit=1)
    assert header.quarter is None
    assert header.line_indexes == frozenset()
