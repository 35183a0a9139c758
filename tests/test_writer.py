import zipfile

from taxation.classifier import RowKind
from taxation.records import OUTPUT_COLUMNS, Record
from taxation.writer import build_sheet_xml, excel_col_name, read_xlsx_rows, write_csv, write_xlsx, xml_escape


def _records():
    return [
        Record(
            kind=RowKind.MAIN,
            page=1,
            row_no=3,
            quarter=12,
            vydel=9,
            area=4.5,
            description="7Б1ОС2Е",
            polnota=0.7,
            stock_total=810,
            raw="+el:ИВ",
        ),
        Record(kind=RowKind.NOTE, page=1, row_no=4, quarter=12, vydel=9, note="Подрост <2.0> & ель"),
    ]


def test_excel_col_name():
    assert excel_col_name(0) == "A"
    assert excel_col_name(25) == "Z"
    assert excel_col_name(26) == "AA"
    assert excel_col_name(len(OUTPUT_COLUMNS) - 1) == "AF"


def test_xml_escape_drops_control_characters():
    assert xml_escape('a<b>&"c"\x01') == "a&lt;b&gt;&amp;&quot;c&quot;"


def test_write_xlsx_and_read_back(tmp_path):
    path = tmp_path / "out" / "records.xlsx"
    write_xlsx(path, _records())

    assert path.exists()
    assert not (path.parent / ".records.xlsx.tmp").exists()

    rows = read_xlsx_rows(path)
    assert rows[0] == list(OUTPUT_COLUMNS)

    main = dict(zip(OUTPUT_COLUMNS, rows[1]))
    assert main["quarter"] == "12"
    assert main["row_no"] == "3"
    assert main["category"] == ""
    assert main["vydel"] == "9"
    assert main["kind"] == "MAIN"
    assert main["area"] == "4.5"
    assert main["description"] == "7Б1ОС2Е"
    assert rows[1][19] == "0.7"
    assert main["stock_total"] == "810"
    assert rows[1][31] == "+el:ИВ"

    note = dict(zip(OUTPUT_COLUMNS, rows[2]))
    assert note["kind"] == "NOTE"
    assert note["note"] == "Подрост <2.0> & ель"


def test_sheet_has_frozen_header_and_autofilter(tmp_path):
    path = tmp_path / "records.xlsx"
    write_xlsx(path, _records())

    with zipfile.ZipFile(path) as zf:
        names = set(zf.namelist())
        sheet = zf.read("xl/worksheets/sheet1.xml").decode("utf-8")

    assert {"[Content_Types].xml", "xl/workbook.xml", "xl/styles.xml", "xl/worksheets/sheet1.xml"} <= names
    assert 'state="frozen"' in sheet
    assert '<autoFilter ref="A1:AF3"/>' in sheet


def test_empty_sheet_keeps_dimension():
    sheet = build_sheet_xml([list(OUTPUT_COLUMNS)])
    assert '<dimension ref="A1:AF1"/>' in sheet


def test_write_csv(tmp_path):
    path = tmp_path / "records.csv"
    write_csv(path, _records())

    raw = path.read_bytes()
    assert raw.startswith(b"\xef\xbb\xbf")

    lines = raw.decode("utf-8-sig").splitlines()
    assert lines[0].split(",") == list(OUTPUT_COLUMNS)
    main = lines[1].split(",")
    assert main[:8] == ["12", "3", "", "9", "MAIN", "1", "4.5", "7Б1ОС2Е"]
    assert main[19] == "0.7"
    assert main[31] == "+el:ИВ"
    assert len(lines) == 3
