"""Record sinks: a single-sheet XLSX built by hand and a UTF-8 CSV."""

from __future__ import annotations

import csv
import re
import zipfile
from pathlib import Path
from typing import Dict, List, Sequence
from xml.etree import ElementTree as ET

from taxation.records import OUTPUT_COLUMNS, Record
from taxation.textnorm import format_number

SHEET_NAME = "Data"
DEFAULT_COLUMN_WIDTH = 10
COLUMN_WIDTHS: Dict[str, int] = {
    "quarter": 8,
    "row_no": 6,
    "category": 30,
    "vydel": 8,
    "kind": 22,
    "page": 6,
    "description": 30,
    "yarus": 8,
    "yarus_height": 12,
    "age": 8,
    "height": 8,
    "diameter": 8,
    "forest_type": 12,
    "tlu": 8,
    "stock_per_ha": 11,
    "stock_total": 12,
    "stock_by_species": 14,
    "merch_class": 14,
    "single_trees": 12,
    "litter_liquid": 12,
    "operations": 20,
    "note": 30,
    "raw": 80,
}

# Characters XML 1.0 does not allow, even escaped.
_XML_ILLEGAL = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")

_CONTENT_TYPES = """<?xml version="1.0" encoding="UTF-8" standalone="yes"?>
<Types xmlns="http://schemas.openxmlformats.org/package/2006/content-types">
  <Default Extension="rels" ContentType="application/vnd.openxmlformats-package.relationships+xml"/>
  <Default Extension="xml" ContentType="application/xml"/>
  <Override PartName="/xl/workbook.xml" ContentType="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet.main+xml"/>
  <Override PartName="/xl/worksheets/sheet1.xml" ContentType="application/vnd.openxmlformats-officedocument.spreadsheetml.worksheet+xml"/>
  <Override PartName="/xl/styles.xml" ContentType="application/vnd.openxmlformats-officedocument.spreadsheetml.styles+xml"/>
</Types>
"""
_RELS = """<?xml version="1.0" encoding="UTF-8" standalone="yes"?>
<Relationships xmlns="http://schemas.openxmlformats.org/package/2006/relationships">
  <Relationship Id="rId1" Type="http://schemas.openxmlformats.org/officeDocument/2006/relationships/officeDocument" Target="xl/workbook.xml"/>
</Relationships>
"""
_WORKBOOK_RELS = """<?xml version="1.0" encoding="UTF-8" standalone="yes"?>
<Relationships xmlns="http://schemas.openxmlformats.org/package/2006/relationships">
  <Relationship Id="rId1" Type="http://schemas.openxmlformats.org/officeDocument/2006/relationships/worksheet" Target="worksheets/sheet1.xml"/>
  <Relationship Id="rId2" Type="http://schemas.openxmlformats.org/officeDocument/2006/relationships/styles" Target="styles.xml"/>
</Relationships>
"""
_STYLES = """<?xml version="1.0" encoding="UTF-8" standalone="yes"?>
<styleSheet xmlns="http://schemas.openxmlformats.org/spreadsheetml/2006/main">
  <fonts count="2"><font><sz val="11"/><name val="Calibri"/><family val="2"/></font><font><b/><sz val="11"/><name val="Calibri"/><family val="2"/></font></fonts>
  <fills count="2"><fill><patternFill patternType="none"/></fill><fill><patternFill patternType="gray125"/></fill></fills>
  <borders count="1"><border><left/><right/><top/><bottom/><diagonal/></border></borders>
  <cellStyleXfs count="1"><xf numFmtId="0" fontId="0" fillId="0" borderId="0"/></cellStyleXfs>
  <cellXfs count="2"><xf numFmtId="0" fontId="0" fillId="0" borderId="0" xfId="0"/><xf numFmtId="0" fontId="1" fillId="0" borderId="0" xfId="0" applyFont="1"/></cellXfs>
  <cellStyles count="1"><cellStyle name="Normal" xfId="0" builtinId="0"/></cellStyles>
</styleSheet>
"""

_NS = {"a": "http://schemas.openxmlformats.org/spreadsheetml/2006/main"}


def excel_col_name(index: int) -> str:
    # 0-based to Excel column name.
    n = index + 1
    chars = []
    while n:
        n, r = divmod(n - 1, 26)
        chars.append(chr(ord("A") + r))
    return "".join(reversed(chars))


def xml_escape(text: str) -> str:
    return (
        _XML_ILLEGAL.sub("", text)
        .replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


def _cell_xml(ref: str, value: object, style: int = 0) -> str:
    style_attr = f' s="{style}"' if style else ""
    if isinstance(value, bool):
        value = str(value)
    if isinstance(value, (int, float)):
        return f'<c r="{ref}"{style_attr}><v>{format_number(value)}</v></c>'
    safe = xml_escape(str(value))
    return f'<c r="{ref}"{style_attr} t="inlineStr"><is><t xml:space="preserve">{safe}</t></is></c>'


def build_sheet_xml(rows: Sequence[Sequence[object]]) -> str:
    """Worksheet XML: bold frozen header row, autofilter over the used range."""
    col_count = len(OUTPUT_COLUMNS)
    last_col = excel_col_name(col_count - 1)
    dim = f"A1:{last_col}{max(len(rows), 1)}"
    row_xml: List[str] = []
    for r_idx, row in enumerate(rows, start=1):
        style = 1 if r_idx == 1 else 0
        cells: List[str] = []
        for c_idx, value in enumerate(row):
            if value is None or value == "":
                continue
            cells.append(_cell_xml(f"{excel_col_name(c_idx)}{r_idx}", value, style))
        row_xml.append(f'<row r="{r_idx}">{"".join(cells)}</row>')

    cols_xml = "".join(
        f'<col min="{i}" max="{i}" width="{COLUMN_WIDTHS.get(name, DEFAULT_COLUMN_WIDTH)}" customWidth="1"/>'
        for i, name in enumerate(OUTPUT_COLUMNS, start=1)
    )

    return (
        '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
        '<worksheet xmlns="http://schemas.openxmlformats.org/spreadsheetml/2006/main">'
        f'<dimension ref="{dim}"/>'
        '<sheetViews><sheetView workbookViewId="0">'
        '<pane ySplit="1" topLeftCell="A2" activePane="bottomLeft" state="frozen"/>'
        '<selection pane="bottomLeft" activeCell="A2" sqref="A2"/>'
        "</sheetView></sheetViews>"
        '<sheetFormatPr defaultRowHeight="15"/>'
        f"<cols>{cols_xml}</cols>"
        f'<sheetData>{"".join(row_xml)}</sheetData>'
        f'<autoFilter ref="{dim}"/>'
        '<pageMargins left="0.7" right="0.7" top="0.75" bottom="0.75" '
        'header="0.3" footer="0.3"/>'
        "</worksheet>"
    )


def _workbook_xml() -> str:
    last_col = excel_col_name(len(OUTPUT_COLUMNS) - 1)
    return f"""<?xml version="1.0" encoding="UTF-8" standalone="yes"?>
<workbook xmlns="http://schemas.openxmlformats.org/spreadsheetml/2006/main" xmlns:r="http://schemas.openxmlformats.org/officeDocument/2006/relationships">
  <sheets>
    <sheet name="{SHEET_NAME}" sheetId="1" r:id="rId1"/>
  </sheets>
  <definedNames>
    <definedName name="_xlnm._FilterDatabase" localSheetId="0" hidden="1">{SHEET_NAME}!$A$1:${last_col}$1</definedName>
  </definedNames>
</workbook>
"""


def records_to_rows(records: Sequence[Record]) -> List[List[object]]:
    rows: List[List[object]] = [list(OUTPUT_COLUMNS)]
    rows.extend(record.to_row() for record in records)
    return rows


def write_xlsx(path: Path, records: Sequence[Record]) -> None:
    """Write ``records`` to ``path``; the file appears only once it is complete."""
    path.parent.mkdir(parents=True, exist_ok=True)
    sheet_xml = build_sheet_xml(records_to_rows(records))
    tmp_path = path.with_name(f".{path.name}.tmp")
    try:
        with zipfile.ZipFile(tmp_path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            zf.writestr("[Content_Types].xml", _CONTENT_TYPES)
            zf.writestr("_rels/.rels", _RELS)
            zf.writestr("xl/workbook.xml", _workbook_xml())
            zf.writestr("xl/_rels/workbook.xml.rels", _WORKBOOK_RELS)
            zf.writestr("xl/styles.xml", _STYLES)
            zf.writestr("xl/worksheets/sheet1.xml", sheet_xml)
        tmp_path.replace(path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()


def _csv_value(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, float):
        return format_number(value)
    return str(value)


def write_csv(path: Path, records: Sequence[Record]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8-sig", newline="") as f:
        writer = csv.writer(f)
        for row in records_to_rows(records):
            writer.writerow([_csv_value(value) for value in row])


def read_xlsx_rows(path: Path) -> List[List[str]]:
    """Read the first worksheet back as text rows (inline strings and plain values)."""
    with zipfile.ZipFile(path) as z:
        ws = ET.fromstring(z.read("xl/worksheets/sheet1.xml"))
    rows: List[List[str]] = []
    for row in ws.findall(".//a:sheetData/a:row", _NS):
        values: Dict[int, str] = {}
        for cell in row.findall("a:c", _NS):
            m = re.match(r"([A-Z]+)(\d+)", cell.get("r", ""))
            if not m:
                continue
            c_idx = 0
            for ch in m.group(1):
                c_idx = c_idx * 26 + ord(ch) - 64
            if cell.get("t") == "inlineStr":
                t = cell.find("a:is/a:t", _NS)
                values[c_idx - 1] = t.text if t is not None and t.text is not None else ""
            else:
                v = cell.find("a:v", _NS)
                values[c_idx - 1] = v.text if v is not None and v.text is not None else ""
        width = max(values) + 1 if values else 0
        rows.append([values.get(i, "") for i in range(width)])
    return rows
