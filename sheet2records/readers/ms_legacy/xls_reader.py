"""
XLS Workbook Backend

Streams cells out of legacy Microsoft Excel .xls files (Excel 97-2003 binary
format, BIFF8) for ``WorkbookEventReader``.

Uses xlrd for cell/sheet parsing. Sheets are loaded on demand and unloaded as
soon as they have been traversed.
"""

import io
import logging
from typing import Any, Iterator

import xlrd

from sheet2records.readers.abstract_reader import BackendKind, RowCells, SheetData
from sheet2records.readers.cell_value import NULL_CELL_VALUE, CellValue
from sheet2records.readers.dates import is_valid_serial, narrow_serial

logger = logging.getLogger(__name__)

# =============================================================================
# Cell value handling
# =============================================================================

# Cell type constants for quick comparison
_CELL_EMPTY = xlrd.XL_CELL_EMPTY
_CELL_BLANK = xlrd.XL_CELL_BLANK
_CELL_TEXT = xlrd.XL_CELL_TEXT
_CELL_NUMBER = xlrd.XL_CELL_NUMBER
_CELL_DATE = xlrd.XL_CELL_DATE
_CELL_BOOLEAN = xlrd.XL_CELL_BOOLEAN
_CELL_ERROR = xlrd.XL_CELL_ERROR

# built-in number format "@"
_TEXT_FORMAT_KEY = 0x31


def _number_to_python(value: float) -> int | float:
    if value == int(value):
        return int(value)
    return value


def _is_text_format(book: Any, xf_index: int | None) -> bool:
    """Whether the cell's number format marks it as text."""
    if xf_index is None:
        return False
    try:
        format_key = book.xf_list[xf_index].format_key
    except (AttributeError, IndexError):
        return False
    if format_key == _TEXT_FORMAT_KEY:
        return True
    number_format = book.format_map.get(format_key)
    return number_format is not None and number_format.format_str == "@"


def _to_cell_value(cell: Any, book: Any, use_1904_windowing: bool) -> CellValue:
    """
    Convert an xlrd cell into a ``CellValue``.

    Args:
        cell: xlrd Cell object.
        book: xlrd Book object (for number formats).
        use_1904_windowing: Date system captured when reading started.
    """
    ctype = cell.ctype
    value = cell.value

    if ctype in (_CELL_EMPTY, _CELL_BLANK, _CELL_ERROR):
        return NULL_CELL_VALUE

    if ctype == _CELL_TEXT:
        return CellValue.of(value, use_1904_windowing)

    if ctype == _CELL_BOOLEAN:
        return CellValue(bool(value), use_1904_windowing)

    if ctype == _CELL_DATE:
        if is_valid_serial(value):
            converted = xlrd.xldate_as_datetime(value, 1 if use_1904_windowing else 0)
            return CellValue(narrow_serial(converted, value), use_1904_windowing)
        logger.warning(f"Date cell holds an invalid day count: {value}")
        return CellValue(str(_number_to_python(value)), use_1904_windowing)

    if ctype == _CELL_NUMBER:
        number = _number_to_python(value)
        if _is_text_format(book, getattr(cell, "xf_index", None)):
            return CellValue(str(number), use_1904_windowing)
        return CellValue(number, use_1904_windowing)

    return CellValue.of(value, use_1904_windowing)


# =============================================================================
# Backend
# =============================================================================


class XlsWorkbookBackend:
    """xlrd based backend for the legacy compound-binary container."""

    kind = BackendKind.LEGACY_BINARY

    def __init__(self, book: Any):
        self._book = book

    @classmethod
    def open(cls, file_like: io.BytesIO) -> "XlsWorkbookBackend":
        file_like.seek(0)
        book = xlrd.open_workbook(
            file_contents=file_like.read(), on_demand=True, formatting_info=True
        )
        logger.debug(
            f"Opened XLS workbook with {book.nsheets} sheets, datemode={book.datemode}"
        )
        return cls(book)

    @property
    def document_uses_1904_windowing(self) -> bool:
        return self._book.datemode == 1

    def iter_sheets(self, use_1904_windowing: bool) -> Iterator[SheetData]:
        for sheet_index in range(self._book.nsheets):
            sheet = self._book.sheet_by_index(sheet_index)
            yield SheetData(
                name=sheet.name,
                rows=self._iter_rows(sheet_index, sheet, use_1904_windowing),
            )

    def _iter_rows(
        self, sheet_index: int, sheet: Any, use_1904_windowing: bool
    ) -> Iterator[RowCells]:
        try:
            for row_num in range(sheet.nrows):
                yield row_num, [
                    (column_num, _to_cell_value(cell, self._book, use_1904_windowing))
                    for column_num, cell in enumerate(sheet.row(row_num))
                ]
        finally:
            self._book.unload_sheet(sheet_index)

    def close(self) -> None:
        self._book.release_resources()
