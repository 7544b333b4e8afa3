"""
Workbook Reader Package
=======================

Event-driven readers for the two spreadsheet containers Excel has used.

Supported Formats
-----------------

.xls (Excel 97-2003):
    Compound-binary (OLE2) container holding a BIFF ``Workbook`` stream.
    Parsed with ``xlrd``, see ``ms_legacy.xls_reader``.

.xlsx (Excel 2007+):
    Office Open XML zip archive. Parsed with ``openpyxl`` in read-only mode,
    see ``ms_modern.xlsx_reader``. Password protected .xlsx files are OLE2
    containers wrapping an encrypted package, see ``util.encryption``.

Both backends produce the same ``CellValue`` objects and feed the same
``WorkbookEventReader``, so handlers never see which container was read
(except through ``WorkbookEventReader.backend_kind``).
"""

from sheet2records.readers.abstract_reader import (
    BackendKind,
    EventHandler,
    ReaderState,
    WorkbookEventReader,
)
from sheet2records.readers.cell_value import CellType, CellValue, LenientCellValue

__all__ = [
    "BackendKind",
    "CellType",
    "CellValue",
    "EventHandler",
    "LenientCellValue",
    "ReaderState",
    "WorkbookEventReader",
]
