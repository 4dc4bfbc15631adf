"""Workbook access for the spreadsheet reader.

``.xls`` workbooks go through xlrd; everything else is opened with openpyxl in
read-only mode. Both are exposed as an iterator of ``(sheet_name, rows)`` pairs
in workbook order, where ``rows`` yields one tuple of cell values per row.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import openpyxl
import xlrd

SheetRows = Iterator[tuple[Any, ...]]

LEGACY_EXTENSION = ".xls"


def cell_text(value: Any) -> str:
    """Default string form of a cell value; empty cells become empty fields."""
    if value is None:
        return ""
    return str(value)


def _xlrd_value(cell: xlrd.sheet.Cell, datemode: int) -> Any:
    if cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK):
        return None
    if cell.ctype == xlrd.XL_CELL_DATE:
        return xlrd.xldate_as_datetime(cell.value, datemode)
    if cell.ctype == xlrd.XL_CELL_BOOLEAN:
        return bool(cell.value)
    if cell.ctype == xlrd.XL_CELL_NUMBER and float(cell.value).is_integer():
        return int(cell.value)
    return cell.value


def _iter_xlrd_rows(sheet: xlrd.sheet.Sheet, datemode: int) -> SheetRows:
    for index in range(sheet.nrows):
        yield tuple(_xlrd_value(cell, datemode) for cell in sheet.row(index))


@contextmanager
def _open_xls(path: Path) -> Iterator[Iterator[tuple[str, SheetRows]]]:
    book = xlrd.open_workbook(str(path), on_demand=True)
    try:
        yield ((sheet.name, _iter_xlrd_rows(sheet, book.datemode)) for sheet in book.sheets())
    finally:
        book.release_resources()


@contextmanager
def _open_xlsx(path: Path) -> Iterator[Iterator[tuple[str, SheetRows]]]:
    workbook = openpyxl.load_workbook(str(path), read_only=True, data_only=True)
    try:
        yield (
            (worksheet.title, worksheet.iter_rows(values_only=True))
            for worksheet in workbook.worksheets
        )
    finally:
        workbook.close()


def open_workbook(path: Path):
    """Context manager yielding the sheets of the workbook at ``path``."""
    if path.suffix.lower() == LEGACY_EXTENSION:
        return _open_xls(path)
    return _open_xlsx(path)

