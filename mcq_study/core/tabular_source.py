"""
Tabular sources -> rows.

CSV/TXT text goes through the stdlib `csv` module; workbooks through openpyxl
(first worksheet only). Either way the first non-empty row is the header row,
headers are trimmed and fully blank lines are dropped.
"""

from __future__ import annotations

import csv
import io
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence, Union

from openpyxl import load_workbook

from mcq_study.utils.errors import SourceParseError

logger = logging.getLogger(__name__)

EXCEL_EXTENSIONS = (".xlsx", ".xls")


@dataclass
class TabularSource:
    headers: List[str] = field(default_factory=list)
    rows: List[Dict[str, str]] = field(default_factory=list)


def _cell_to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _rows_from_matrix(matrix: Sequence[Sequence[Any]]) -> TabularSource:
    records = [[_cell_to_text(v) for v in r] for r in matrix]
    records = [r for r in records if any(c.strip() for c in r)]
    if not records:
        return TabularSource()

    headers = [h.strip() for h in records[0]]
    rows: List[Dict[str, str]] = []
    for r in records[1:]:
        row: Dict[str, str] = {}
        for i, h in enumerate(headers):
            if not h:
                continue
            # Later duplicate headers do not overwrite the first.
            if h in row:
                continue
            row[h] = r[i] if i < len(r) else ""
        rows.append(row)
    return TabularSource(headers=[h for h in headers if h], rows=rows)


def parse_csv_text(text: str) -> TabularSource:
    if text.startswith("\ufeff"):
        text = text[1:]
    try:
        matrix = list(csv.reader(io.StringIO(text, newline="")))
    except csv.Error as e:
        raise SourceParseError(f"CSV parse error: {e}") from e
    return _rows_from_matrix(matrix)


def parse_workbook(data: bytes) -> TabularSource:
    try:
        wb = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except Exception as e:
        raise SourceParseError(
            "Could not read the Excel file. Please ensure it's a valid .xlsx file.",
            details={"error": str(e)},
        ) from e
    try:
        if not wb.sheetnames:
            return TabularSource()
        sheet = wb[wb.sheetnames[0]]
        matrix = [list(r) for r in sheet.iter_rows(values_only=True)]
    finally:
        wb.close()
    return _rows_from_matrix(matrix)


def parse_tabular(data: Union[bytes, str], filename: str) -> TabularSource:
    """Dispatch on the file extension; anything not a workbook is read as CSV text."""
    ext = os.path.splitext(str(filename or "").lower())[1]
    if ext in EXCEL_EXTENSIONS:
        if isinstance(data, str):
            raise SourceParseError(f"Workbook {filename!r} must be given as bytes")
        source = parse_workbook(data)
    else:
        if isinstance(data, bytes):
            try:
                data = data.decode("utf-8-sig")
            except UnicodeDecodeError as e:
                raise SourceParseError(f"{filename!r} is not UTF-8 text") from e
        source = parse_csv_text(data)
    logger.debug("Parsed %s: %d headers, %d rows", filename, len(source.headers), len(source.rows))
    return source
