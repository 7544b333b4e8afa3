"""
XLSX Workbook Backend
=====================

Streams cells out of Microsoft Excel .xlsx files (Office Open XML format,
Excel 2007 and later) for ``WorkbookEventReader``.

File Format Background
----------------------
The .xlsx format is a ZIP archive containing XML files following the Office
Open XML (OOXML) standard. Key components:

    xl/workbook.xml: Workbook properties (including the date1904 flag) and sheet list
    xl/worksheets/sheet1.xml, sheet2.xml, ...: Individual sheet data
    xl/sharedStrings.xml: Shared string table (for cell text)
    xl/styles.xml: Number formats deciding whether a number is a date

Dependencies
------------
openpyxl: https://foss.heptapod.net/openpyxl/openpyxl
    pip install openpyxl

    Provides:
    - Streaming row iteration (read_only=True)
    - Cached formula results (data_only=True)
    - Number format based date detection and epoch conversion

Data Type Handling
------------------
openpyxl values are normalized before they are wrapped in a ``CellValue``:
    - None, "" and error cells (#N/A, #DIV/0!, ...): null
    - Whole floats: int
    - Numbers formatted as text ("@"): str
    - datetime at midnight: date
    - time: time (fractions of a day)
    - timedelta ([h]:mm formats): time below one day, float days otherwise

Epoch Windowing
---------------
openpyxl converts date serials with ``Workbook.epoch``. The backend sets the
epoch requested by the reader right before rows are parsed, which allows the
reader to override the document's own date1904 flag.

Maintenance Notes
-----------------
- read_only=True keeps the archive open until close() is called
- Sheet dimensions are reset because many producers write wrong ones
- Chart sheets are not worksheets and are not reported
"""

import datetime
import io
import logging
from typing import Any, Iterator

from openpyxl import load_workbook
from openpyxl.utils.datetime import CALENDAR_MAC_1904

from sheet2records.readers.abstract_reader import BackendKind, RowCells, SheetData
from sheet2records.readers.cell_value import NULL_CELL_VALUE, CellValue
from sheet2records.readers.dates import epoch_for, narrow_datetime

logger = logging.getLogger(__name__)

_TEXT_FORMAT = "@"
_DATA_TYPE_ERROR = "e"


def _to_cell_value(cell: Any, use_1904_windowing: bool) -> CellValue:
    """
    Convert an openpyxl read-only cell into a ``CellValue``.

    Args:
        cell: ``ReadOnlyCell`` or ``EmptyCell`` from worksheet iteration.
        use_1904_windowing: Date system captured when reading started.
    """
    value = cell.value
    if value is None or cell.data_type == _DATA_TYPE_ERROR:
        return NULL_CELL_VALUE

    if isinstance(value, datetime.datetime):
        value = narrow_datetime(value)
    elif isinstance(value, datetime.timedelta):
        days = value.total_seconds() / 86400
        if 0 <= days < 1:
            value = (datetime.datetime.min + value).time()
        else:
            value = days
    elif isinstance(value, float) and value.is_integer():
        value = int(value)

    if (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and getattr(cell, "number_format", None) == _TEXT_FORMAT
    ):
        value = str(value)

    return CellValue.of(value, use_1904_windowing)


class XlsxWorkbookBackend:
    """openpyxl based backend for the modern XML container."""

    kind = BackendKind.MODERN_XML

    def __init__(self, workbook: Any):
        self._workbook = workbook
        self._document_uses_1904 = workbook.epoch == CALENDAR_MAC_1904

    @classmethod
    def open(cls, file_like: io.BytesIO) -> "XlsxWorkbookBackend":
        file_like.seek(0)
        workbook = load_workbook(file_like, read_only=True, data_only=True)
        logger.debug(
            f"Opened XLSX workbook with sheets {workbook.sheetnames}, "
            f"epoch={workbook.epoch.year}"
        )
        return cls(workbook)

    @property
    def document_uses_1904_windowing(self) -> bool:
        return self._document_uses_1904

    def iter_sheets(self, use_1904_windowing: bool) -> Iterator[SheetData]:
        self._workbook.epoch = epoch_for(use_1904_windowing)
        for worksheet in self._workbook.worksheets:
            worksheet.reset_dimensions()
            yield SheetData(
                name=str(worksheet.title),
                rows=self._iter_rows(worksheet, use_1904_windowing),
            )

    @staticmethod
    def _iter_rows(worksheet: Any, use_1904_windowing: bool) -> Iterator[RowCells]:
        for row_num, row in enumerate(worksheet.iter_rows(min_row=1)):
            yield row_num, [
                (column_num, _to_cell_value(cell, use_1904_windowing))
                for column_num, cell in enumerate(row)
            ]

    def close(self) -> None:
        self._workbook.close()
