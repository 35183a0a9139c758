import pytest

from taxation import repairs as rp
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
    empty_cells,
)
from taxation.textnorm import is_polnota_str, normalize_bonitet, to_int_strict


def _row(values):
    cells = empty_cells()
    for idx, value in values.items():
        cells[idx] = value
    return cells


SAMPLE_ROWS = [
    (
        _row({VYDEL: "52 0", AREA: ".3 Ручьи"}),
        "52 0 .3 Ручьи",
    ),
    (
        _row({VYDEL: "6", AREA: "22.8 Культуры", DESCRIPTION: "лесные", OPERATIONS: "лесные"}),
        "6 22.8 Культуры лесные",
    ),
    (
        _row(
            {
                VYDEL: "9",
                AREA: "4 , 5",
                DESCRIPTION: "7Б1ОС2Е",
                YARUS: "1",
                YARUS_HEIGHT: "20",
                ELEMENT: "Б",
                AGE: "60 20",
                DIAMETER: "22 6",
                AGE_GROUP: "4 2",
                FOREST_TYPE: "Бчер",
                STOCK_PER_HA: "0.7 180",
                STOCK_BY_SPECIES: "810 560 2",
                DEAD_STANDING: "2",
                LITTER_LIQUID: "ПРЖ 30%",
            }
        ),
        "9 4.5 7Б1ОС2Е 1 20 Б 60 20 22 6 4 2 Бчер 0.7 180 810 560 2 ПРЖ 30%",
    ),
    (
        _row(
            {
                VYDEL: "3",
                AREA: "12.0",
                YARUS: "1",
                YARUS_HEIGHT: "24",
                ELEMENT: "С",
                AGE: "450",
                HEIGHT: "24",
                DIAMETER: "300",
                AGE_CLASS: "9",
                AGE_GROUP: "5",
                FOREST_TYPE: "2 Сбр",
                POLNOTA: "0.6",
                STOCK_PER_HA: "220",
                STOCK_BY_SPECIES: "167",
                MERCH_CLASS: ".1 1",
            }
        ),
        "3 12.0 1 24 С 90 24 28 9 5 2 Сбр 0.6 220 2640 167.1 1",
    ),
    (
        _row({ELEMENT: "ОЛСА50", HEIGHT: "16", DIAMETER: "18", STOCK_BY_SPECIES: "2", MERCH_CLASS: "350"}),
        "ОЛСА50 16 18 350 2",
    ),
    (
        _row({ELEMENT: "Е", HEIGHT: "100 24 28"}),
        "Е 100 24 28",
    ),
    (
        _row({ELEMENT: "Е", AGE: "14", HEIGHT: "16"}),
        "Е 14 16",
    ),
    (
        _row({AREA: "3С", AGE: "1 2 0", HEIGHT: "26", MERCH_CLASS: "1041 2"}),
        "3С 120 26 1041 2",
    ),
]


@pytest.mark.parametrize("step", rp.ALL_STEPS, ids=lambda step: step.name)
def test_each_step_is_idempotent(step):
    for cells, text in SAMPLE_ROWS:
        once = step(cells, text)
        assert step(once, text) == once, step.name


@pytest.mark.parametrize("step", rp.ALL_STEPS, ids=lambda step: step.name)
def test_steps_do_not_mutate_their_input(step):
    for cells, text in SAMPLE_ROWS:
        before = list(cells)
        step(cells, text)
        assert cells == before


SHIFT_CASES = [
    (rp.SHIFT_BONITET_FROM_FOREST_TYPE, {BONITET: "3", FOREST_TYPE: "2 Ечер"}, BONITET),
    (rp.SHIFT_MERCH_CLASS_FROM_DEAD_STANDING, {MERCH_CLASS: "2", DEAD_STANDING: "3"}, MERCH_CLASS),
    (rp.SPLIT_POLNOTA_STOCK_PER_HA, {POLNOTA: "0.6", STOCK_PER_HA: "0.7 180"}, POLNOTA),
    (rp.SPLIT_AGE_HEIGHT, {AGE: "60 20", HEIGHT: "18"}, HEIGHT),
    (rp.SPLIT_MAIN_PAIRS, {AGE: "60 20", HEIGHT: "18"}, HEIGHT),
    (rp.SPLIT_MAIN_PAIRS, {AGE_CLASS: "6 4", AGE_GROUP: "3"}, AGE_GROUP),
    (rp.SPLIT_SPECIES_AGE_HEIGHT, {ELEMENT: "Е", AGE: "90", HEIGHT: "100 24"}, AGE),
    (rp.SPLIT_SINGLE_TREES_AGE_HEIGHT, {AGE: "90", HEIGHT: "100 24"}, AGE),
]


@pytest.mark.parametrize("step,values,target", SHIFT_CASES, ids=lambda v: getattr(v, "name", None))
def test_shift_steps_never_overwrite_filled_target(step, values, target):
    assert step.shift
    cells = _row(values)
    out = step(cells, "")
    assert out[target] == cells[target]


@pytest.mark.parametrize("step", [s for s in rp.ALL_STEPS if s.shift], ids=lambda step: step.name)
def test_shift_steps_only_split_their_source(step):
    for cells, text in SAMPLE_ROWS:
        out = step(cells, text)
        for before, after in zip(cells, out):
            if before and after and before != after:
                assert after in before.replace(",", "."), (step.name, before, after)


WILD_ROW = _row(
    {
        VYDEL: "7",
        AREA: "3.0",
        YARUS: "7",
        YARUS_HEIGHT: "120",
        ELEMENT: "Е",
        AGE: "450",
        HEIGHT: "120",
        DIAMETER: "300",
        AGE_CLASS: "15",
        AGE_GROUP: "11",
        BONITET: "7",
        POLNOTA: "1.4",
        STOCK_PER_HA: "200",
        MERCH_CLASS: "9",
    }
)


ZERO_POLNOTA_ROW = _row(
    {
        VYDEL: "9",
        AREA: "4.5",
        DESCRIPTION: "7Б1ОС2Е",
        YARUS: "1",
        YARUS_HEIGHT: "20",
        ELEMENT: "Б",
        AGE: "60",
        POLNOTA: "0.0",
        STOCK_PER_HA: "180",
    }
)

RANGE_CASES = [
    (WILD_ROW, "7 3.0 7 120 Е 450 120 300 15 11 7 1.4 200 9"),
    (ZERO_POLNOTA_ROW, "9 4.5 7Б1ОС2Е 1 20 Б 60 0.0 180"),
]


@pytest.mark.parametrize(
    "pipeline",
    [rp.MAIN_STEPS, rp.SPECIES_STEPS, rp.SINGLE_TREES_STEPS],
    ids=["main", "species", "single_trees"],
)
@pytest.mark.parametrize("cells,text", RANGE_CASES, ids=["wild", "zero_polnota"])
def test_pipelines_leave_only_in_range_values(pipeline, cells, text):
    out = rp.run_repairs(pipeline, cells, text)
    for idx, (low, high) in rp.FIELD_RANGES.items():
        if out[idx]:
            value = to_int_strict(out[idx])
            assert value is not None and low <= value <= high, (idx, out[idx])
    assert out[BONITET] == "" or normalize_bonitet(out[BONITET]) == out[BONITET]
    assert out[POLNOTA] == "" or is_polnota_str(out[POLNOTA])


def test_zero_stocking_degree_is_cleared():
    out = rp.run_repairs(rp.MAIN_STEPS, ZERO_POLNOTA_ROW, "9 4.5 7Б1ОС2Е 1 20 Б 60 0.0 180")
    assert out[POLNOTA] == ""


def test_merge_vydel_area_split_cases():
    out = rp.merge_vydel_area_split(_row({VYDEL: "52 0", AREA: ".3 Ручьи"}))
    assert (out[VYDEL], out[AREA], out[DESCRIPTION]) == ("52", "0.3", "Ручьи")

    out = rp.merge_vydel_area_split(_row({VYDEL: "52", AREA: "0", DESCRIPTION: ".3 Ручьи"}))
    assert (out[AREA], out[DESCRIPTION]) == ("0.3", "Ручьи")

    out = rp.merge_vydel_area_split(_row({VYDEL: "52", AREA: "0.", DESCRIPTION: "3 Ручьи"}))
    assert (out[AREA], out[DESCRIPTION]) == ("0.3", "Ручьи")

    out = rp.merge_vydel_area_split(_row({VYDEL: "52", AREA: ".5"}))
    assert out[AREA] == "0.5"


def test_split_area_tail_moves_text_into_description():
    out = rp.split_area_tail(_row({VYDEL: "6", AREA: "22.8 Культуры", DESCRIPTION: "лесные"}))
    assert out[AREA] == "22.8"
    assert out[DESCRIPTION] == "Культуры лесные"


def test_operations_duplicating_description_are_dropped():
    out = rp.drop_operations_duplicating_description(
        _row({DESCRIPTION: "Культуры лесные", OPERATIONS: "культуры лесные."})
    )
    assert out[OPERATIONS] == ""


def test_join_spaced_numbers():
    out = rp.join_spaced_decimals(_row({AREA: "4 , 5", POLNOTA: "0 .7"}))
    assert (out[AREA], out[POLNOTA]) == ("4.5", "0.7")
    out = rp.join_spaced_integers(_row({AGE: "1 4 0", HEIGHT: "12 14"}))
    assert (out[AGE], out[HEIGHT]) == ("140", "12 14")


def test_stock_and_merch_class_repairs():
    out = rp.repair_stock_and_merch_class(_row({STOCK_BY_SPECIES: "167", MERCH_CLASS: ".1 1"}))
    assert (out[STOCK_BY_SPECIES], out[MERCH_CLASS]) == ("167.1", "1")

    out = rp.repair_stock_and_merch_class(_row({MERCH_CLASS: "1041 2"}))
    assert (out[STOCK_BY_SPECIES], out[MERCH_CLASS]) == ("1041", "2")

    out = rp.repair_stock_and_merch_class(_row({STOCK_BY_SPECIES: "1041 2"}))
    assert (out[STOCK_BY_SPECIES], out[MERCH_CLASS]) == ("1041", "2")

    out = rp.repair_stock_and_merch_class(_row({STOCK_BY_SPECIES: "2", MERCH_CLASS: "350"}))
    assert (out[STOCK_BY_SPECIES], out[MERCH_CLASS]) == ("350", "2")

    out = rp.repair_stock_and_merch_class(_row({MERCH_CLASS: "350"}))
    assert (out[STOCK_BY_SPECIES], out[MERCH_CLASS]) == ("350", "")

    out = rp.repair_stock_and_merch_class(_row({STOCK_BY_SPECIES: "120", MERCH_CLASS: "ж"}))
    assert out[MERCH_CLASS] == ""


def test_shift_repairs_fill_empty_targets():
    out = rp.shift_bonitet_from_forest_type(_row({FOREST_TYPE: "5а Ечер"}))
    assert (out[BONITET], out[FOREST_TYPE]) == ("5А", "Ечер")

    out = rp.shift_merch_class_from_dead_standing(_row({DEAD_STANDING: "3"}))
    assert (out[MERCH_CLASS], out[DEAD_STANDING]) == ("3", "")

    out = rp.shift_merch_class_from_dead_standing(_row({MERCH_CLASS: "3", DEAD_STANDING: "3"}))
    assert (out[MERCH_CLASS], out[DEAD_STANDING]) == ("3", "")

    out = rp.split_polnota_stock_per_ha(_row({STOCK_PER_HA: "0,7 180"}))
    assert (out[POLNOTA], out[STOCK_PER_HA]) == ("0.7", "180")

    out = rp.split_age_height(_row({AGE: "60 20"}))
    assert (out[AGE], out[HEIGHT]) == ("60", "20")


def test_split_main_pairs():
    out = rp.split_main_pairs(
        _row({AGE: "60 20", DIAMETER: "22 6", AGE_GROUP: "4 2", STOCK_BY_SPECIES: "810 560 2"})
    )
    assert (out[AGE], out[HEIGHT]) == ("60", "20")
    assert (out[DIAMETER], out[AGE_CLASS]) == ("22", "6")
    assert (out[AGE_GROUP], out[BONITET]) == ("4", "2")
    assert (out[STOCK_TOTAL], out[STOCK_BY_SPECIES], out[MERCH_CLASS]) == ("810", "560", "2")


def test_move_text_from_litter_liquid():
    out = rp.move_text_from_litter_liquid(_row({LITTER_LIQUID: "ПРЖ 30%", OPERATIONS: "ДЛК"}))
    assert (out[LITTER_LIQUID], out[OPERATIONS]) == ("", "ДЛК ПРЖ 30%")
    out = rp.move_text_from_litter_liquid(_row({LITTER_LIQUID: "12.5"}))
    assert out[LITTER_LIQUID] == "12.5"


def test_validate_main_ranges_takes_diameter_from_neighbour():
    out = rp.validate_main_ranges(_row({DIAMETER: "300", AGE_CLASS: "15", AGE_GROUP: "4"}))
    # 15 is a plausible diameter but an impossible age class.
    assert out[DIAMETER] == "15"
    assert out[AGE_CLASS] == ""
    assert out[AGE_GROUP] == "4"


def test_rescue_main_metrics_fills_only_empty_fields():
    cells = _row({YARUS: "1", YARUS_HEIGHT: "24", ELEMENT: "С", AGE: "90", AGE_GROUP: "5", DIAMETER: "5"})
    out = rp.rescue_main_metrics_from_text(cells, "3 12.0 1 24 С 95 24 28 9 5 2 Сбр 0.6 220")
    assert out[AGE] == "90"
    assert out[HEIGHT] == "24"
    # The diameter equal to the age group is taken as borrowed and replaced.
    assert out[DIAMETER] == "28"
    assert out[AGE_CLASS] == "9"
    assert out[BONITET] == "2"


def test_reread_main_stock_anchors_on_polnota():
    cells = _row({AGE: "90", HEIGHT: "24", POLNOTA: "0.6", STOCK_PER_HA: "220"})
    out = rp.reread_main_stock_from_text(cells, "3 12.0 1 24 С 90 24 28 9 5 2 Сбр 0.6 220 2640 1320 2")
    assert (out[STOCK_TOTAL], out[STOCK_BY_SPECIES], out[MERCH_CLASS]) == ("2640", "1320", "2")

    kept = _row({POLNOTA: "0.6", STOCK_PER_HA: "220", STOCK_TOTAL: "2000", STOCK_BY_SPECIES: "1000"})
    out = rp.reread_main_stock_from_text(kept, "1 24 С 90 24 28 0.6 220 2640 1320")
    assert (out[STOCK_TOTAL], out[STOCK_BY_SPECIES]) == ("2000", "1000")

    no_polnota = _row({STOCK_PER_HA: "220"})
    assert rp.reread_main_stock_from_text(no_polnota, "90 24 28 220 2640") == no_polnota


def test_reread_main_stock_ignores_digits_before_full_stocking():
    cells = _row({POLNOTA: "1", STOCK_PER_HA: "250"})
    out = rp.reread_main_stock_from_text(cells, "9 4.5 7Б1ОС2Е 1 20 Б 60 20 22 6 4 2 Бчер 1 250 1125 790 2")
    assert (out[STOCK_TOTAL], out[STOCK_BY_SPECIES], out[MERCH_CLASS]) == ("1125", "790", "2")


def test_rescue_main_metrics_skips_word_that_is_not_a_species():
    out = rp.rescue_main_metrics_from_text(empty_cells(), "2 5 Редина 1 20 Б 60 20 22 6 4 2")
    assert (out[AGE], out[HEIGHT], out[DIAMETER]) == ("60", "20", "22")
    assert (out[AGE_CLASS], out[AGE_GROUP], out[BONITET]) == ("6", "4", "2")


def test_rescue_main_metrics_moves_past_short_anchor():
    out = rp.rescue_main_metrics_from_text(empty_cells(), "3 12 Е 40 1 24 С 95 24 28 9 5 2")
    assert (out[AGE], out[HEIGHT], out[DIAMETER]) == ("95", "24", "28")


def test_species_repairs():
    out = rp.normalize_species_cells(_row({ELEMENT: "олса50"}))
    assert (out[ELEMENT], out[AGE]) == ("ОЛС", "50")

    out = rp.normalize_species_cells(_row({ELEMENT: "ОЛС", AGE: "А 45"}))
    assert (out[ELEMENT], out[AGE]) == ("ОЛС", "45")

    out = rp.realign_species_height_diameter(_row({ELEMENT: "Е", AGE: "14", HEIGHT: "16"}), "Е 14 16")
    assert (out[AGE], out[HEIGHT], out[DIAMETER]) == ("", "14", "16")

    out = rp.split_species_age_height(_row({ELEMENT: "Е", HEIGHT: "100 24 28"}))
    assert (out[AGE], out[HEIGHT], out[DIAMETER]) == ("100", "24", "28")

    out = rp.rescue_species_metrics_from_text(_row({ELEMENT: "Е"}), "Е 100 24 28")
    assert (out[AGE], out[HEIGHT], out[DIAMETER]) == ("100", "24", "28")

    out = rp.enforce_species_completeness(_row({ELEMENT: "Е", AGE: "100", HEIGHT: "24"}))
    assert (out[AGE], out[HEIGHT]) == ("", "")


def test_clear_out_of_range():
    out = rp.clear_out_of_range(_row({YARUS: "6", AGE: "301", BONITET: "5а", POLNOTA: "1.2", MERCH_CLASS: "4"}))
    assert (out[YARUS], out[AGE], out[BONITET], out[POLNOTA], out[MERCH_CLASS]) == ("", "", "5А", "", "4")
