#!/usr/bin/env python3
"""Convert a forest inventory (taxation) PDF report into one flat XLSX/CSV table.

Pages are read with pdfplumber, grouped into lines, split into the 24
report columns and assembled into typed records in document order.
"""

from __future__ import annotations

import argparse
import logging
from collections import Counter
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import pdfplumber

from taxation.assembler import RecordAssembler
from taxation.config import LayoutConfig, load_layout_config
from taxation.fragments import Fragment, fragments_from_page, group_lines
from taxation.grid import detect_column_grid
from taxation.records import OUTPUT_COLUMNS, Record
from taxation.writer import write_csv, write_xlsx

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressEvent:
    stage: str
    current: int
    total: int
    message: str = ""


ProgressSink = Callable[[ProgressEvent], None]


def _report(on_progress: Optional[ProgressSink], event: ProgressEvent) -> None:
    logger.debug("progress %s %d/%d %s", event.stage, event.current, event.total, event.message)
    if on_progress is not None:
        on_progress(event)


def _parse_page(assembler: RecordAssembler, page_no: int, fragments: Sequence[Fragment]) -> None:
    config = assembler.config
    lines = group_lines(fragments, config.line_y_tolerance)
    grid = detect_column_grid(lines, config)
    if grid is None:
        logger.debug("page %d: no column grid, lines go to the operations column", page_no)
    assembler.add_page(page_no, lines, grid)


def parse_fragment_pages(
    pages: Iterable[Sequence[Fragment]],
    config: Optional[LayoutConfig] = None,
    on_progress: Optional[ProgressSink] = None,
) -> List[Record]:
    """Assemble records from pages that are already lists of fragments."""
    page_list = list(pages)
    assembler = RecordAssembler(config)
    total = len(page_list)
    for page_no, fragments in enumerate(page_list, start=1):
        _parse_page(assembler, page_no, fragments)
        _report(on_progress, ProgressEvent("pages", page_no, total, f"page {page_no}/{total}"))
    return assembler.records


def parse_pdf(
    pdf_path: Path,
    config: Optional[LayoutConfig] = None,
    on_progress: Optional[ProgressSink] = None,
) -> List[Record]:
    if not pdf_path.exists():
        raise FileNotFoundError(f"Input PDF not found: {pdf_path}")
    assembler = RecordAssembler(config or load_layout_config())
    with pdfplumber.open(str(pdf_path)) as pdf:
        if not pdf.pages:
            raise ValueError("PDF has no pages.")
        total = len(pdf.pages)
        for page_no, page in enumerate(pdf.pages, start=1):
            _parse_page(assembler, page_no, fragments_from_page(page, assembler.config))
            _report(on_progress, ProgressEvent("pages", page_no, total, f"page {page_no}/{total}"))
    return assembler.records


def kind_counts(records: Sequence[Record]) -> Dict[str, int]:
    counts = Counter(record.kind.value for record in records)
    return dict(sorted(counts.items()))


def write_outputs(
    records: Sequence[Record],
    output_xlsx: Optional[Path] = None,
    output_csv: Optional[Path] = None,
) -> None:
    """Write every requested output or none of them.

    Each file is first written to a hidden sibling; the targets are replaced
    only after all writes succeeded.
    """
    writers = [(path, write) for path, write in ((output_xlsx, write_xlsx), (output_csv, write_csv)) if path is not None]
    staged: List[Tuple[Path, Path]] = []
    try:
        for path, write in writers:
            part = path.with_name(f".{path.name}.part")
            staged.append((part, path))
            write(part, records)
        for part, path in staged:
            part.replace(path)
    finally:
        for part, _ in staged:
            if part.exists():
                part.unlink()


def convert_pdf(
    pdf_path: Path,
    output_xlsx: Optional[Path] = None,
    output_csv: Optional[Path] = None,
    config: Optional[LayoutConfig] = None,
    on_progress: Optional[ProgressSink] = None,
) -> Dict[str, object]:
    """Parse ``pdf_path`` and write the record table.

    Nothing is written until every page has been parsed. Returns a summary
    with the record count, per-kind counts, columns and output paths.
    """
    _report(on_progress, ProgressEvent("init", 0, 1, "reading PDF"))
    records = parse_pdf(pdf_path, config=config, on_progress=on_progress)

    _report(on_progress, ProgressEvent("write", 0, 1, "writing output"))
    write_outputs(records, output_xlsx=output_xlsx, output_csv=output_csv)
    _report(on_progress, ProgressEvent("done", 1, 1, f"{len(records)} records"))

    return {
        "rows": len(records),
        "kinds": kind_counts(records),
        "columns": list(OUTPUT_COLUMNS),
        "output_xlsx": str(output_xlsx) if output_xlsx is not None else None,
        "output_csv": str(output_csv) if output_csv is not None else None,
    }


def _print_progress(event: ProgressEvent) -> None:
    print(f"[{event.stage}] {event.current}/{event.total} {event.message}".rstrip())


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Convert a forest taxation PDF report into an XLSX/CSV record table."
    )
    parser.add_argument("pdf", type=Path, help="Input PDF path")
    parser.add_argument(
        "--output-xlsx",
        type=Path,
        default=None,
        help="Output XLSX path (default: <input>.xlsx next to the input)",
    )
    parser.add_argument(
        "--output-csv",
        type=Path,
        default=None,
        help="Optional output CSV path (UTF-8 with BOM)",
    )
    parser.add_argument("--verbose", action="store_true", help="Log grid detection and row folding")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    if not args.pdf.exists():
        raise FileNotFoundError(f"Input PDF not found: {args.pdf}")
    output_xlsx = args.output_xlsx or args.pdf.with_suffix(".xlsx")

    result = convert_pdf(
        args.pdf,
        output_xlsx=output_xlsx,
        output_csv=args.output_csv,
        on_progress=_print_progress,
    )
    print(f"Output: {output_xlsx.resolve()}")
    if args.output_csv:
        print(f"Output CSV: {args.output_csv.resolve()}")
    print(f"Records written: {result['rows']}")
    for kind, count in result["kinds"].items():
        print(f"  {kind}: {count}")


if __name__ == "__main__":
    main()
