import datetime
import io
import unittest
from types import SimpleNamespace

from conftest import build_xlsx

from sheet2records import open_workbook
from sheet2records.readers.abstract_reader import EventHandler
from sheet2records.readers.cell_value import CellType, CellValue
from sheet2records.readers.ms_modern.xlsx_reader import (
    XlsxWorkbookBackend,
    _to_cell_value,
)

tc = unittest.TestCase()


class _CellCollector(EventHandler):
    def __init__(self):
        self.cells: dict[tuple[int, int, int], CellValue] = {}

    def on_handle_cell(self, sheet_index, row_num, column_num, cell_value):
        self.cells[(sheet_index, row_num, column_num)] = cell_value


def _read_cells(data: bytes, use_1904: bool | None = None) -> dict:
    collector = _CellCollector()
    with open_workbook(data) as reader:
        if use_1904 is not None:
            reader.use_1904_windowing = use_1904
        reader.read(collector)
    return collector.cells


def test_value_types(typed_xlsx: bytes) -> None:
    cells = _read_cells(typed_xlsx)
    row = [cells[(0, 0, col)] for col in range(9)]

    tc.assertListEqual(
        [
            CellType.TEXT,
            CellType.INTEGER,
            CellType.FLOAT,
            CellType.BOOLEAN,
            CellType.DATE,
            CellType.DATETIME,
            CellType.TIME,
            CellType.TEXT,
            CellType.INTEGER,
        ],
        [cell.original_type for cell in row],
    )
    tc.assertEqual(datetime.date(2020, 1, 1), row[4].date_value())
    tc.assertEqual(datetime.datetime(2020, 1, 1, 12, 30), row[5].datetime_value())
    tc.assertEqual(datetime.time(6, 0), row[6].time_value())
    # number stored in a text formatted cell
    tc.assertEqual("12345", row[7].text_value())
    # whole float
    tc.assertEqual(3, row[8].int_value())


def test_document_1904_setting_is_followed() -> None:
    data = build_xlsx({"Dates": [[datetime.date(2020, 1, 1)]]}, use_1904=True)

    backend = XlsxWorkbookBackend.open(io.BytesIO(data))
    try:
        tc.assertTrue(backend.document_uses_1904_windowing)
    finally:
        backend.close()

    cells = _read_cells(data)
    tc.assertEqual(datetime.date(2020, 1, 1), cells[(0, 0, 0)].date_value())
    tc.assertTrue(cells[(0, 0, 0)].use_1904_windowing)


def test_windowing_override_shifts_dates() -> None:
    data = build_xlsx({"Dates": [[datetime.date(2020, 1, 1)]]})

    cells = _read_cells(data, use_1904=True)
    # serial 43831 counted from 1904-01-01
    tc.assertEqual(datetime.date(2024, 1, 2), cells[(0, 0, 0)].date_value())


def test_to_cell_value_normalization() -> None:
    def cell(value, data_type="n", number_format="General"):
        return SimpleNamespace(
            value=value, data_type=data_type, number_format=number_format
        )

    tc.assertTrue(_to_cell_value(cell(None), False).is_null)
    tc.assertTrue(_to_cell_value(cell("#DIV/0!", data_type="e"), False).is_null)
    tc.assertTrue(_to_cell_value(cell("", data_type="s"), False).is_null)
    tc.assertEqual(4, _to_cell_value(cell(4.0), False).original_value)
    tc.assertEqual(
        "4", _to_cell_value(cell(4.0, number_format="@"), False).original_value
    )
    tc.assertEqual(
        datetime.time(1, 30),
        _to_cell_value(
            cell(datetime.timedelta(hours=1, minutes=30)), False
        ).original_value,
    )
    tc.assertEqual(
        1.5, _to_cell_value(cell(datetime.timedelta(hours=36)), False).original_value
    )
    tc.assertTrue(_to_cell_value(cell(True, data_type="b"), True).use_1904_windowing)
