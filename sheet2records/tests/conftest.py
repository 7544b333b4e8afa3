import datetime
import io
from typing import Any

import pytest
from openpyxl import Workbook
from openpyxl.utils.datetime import CALENDAR_MAC_1904

ORDERS_HEADER = ["Order ID", "Customer", "Ordered On", "Amount", "Paid"]
ORDERS = [
    [1001, "  Alice ", datetime.date(2021, 3, 4), 19.5, True],
    [1002, "Bob", datetime.date(2021, 3, 5), 7, False],
    [None, None, None, None, None],
    [1003, "Carol", datetime.date(2021, 4, 1), 120.25, True],
]


def build_xlsx(
    sheets: dict[str, list[list[Any]]],
    *,
    use_1904: bool = False,
    number_formats: dict[tuple[str, str], str] | None = None,
) -> bytes:
    """
    Write a workbook with openpyxl and return its bytes.

    Args:
        sheets: Sheet name -> rows, ``None`` leaves a cell empty.
        use_1904: Store the workbook with the 1904 date system.
        number_formats: (sheet name, cell coordinate) -> number format.
    """
    wb = Workbook()
    if use_1904:
        wb.epoch = CALENDAR_MAC_1904
    wb.remove(wb.active)
    for name, rows in sheets.items():
        ws = wb.create_sheet(name)
        for row in rows:
            ws.append(row)
    for (sheet_name, coordinate), number_format in (number_formats or {}).items():
        wb[sheet_name][coordinate].number_format = number_format

    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def build_xls(sheets: dict[str, list[list[Any]]]) -> bytes:
    """
    Write a legacy BIFF8 workbook with xlwt and return its bytes.

    Dates get a date number format, numbers given as ``("@", value)`` get the
    text number format. ``None`` leaves a cell empty.
    """
    xlwt = pytest.importorskip("xlwt")

    date_style = xlwt.easyxf(num_format_str="YYYY-MM-DD")
    datetime_style = xlwt.easyxf(num_format_str="YYYY-MM-DD HH:MM:SS")
    text_style = xlwt.easyxf(num_format_str="@")

    wb = xlwt.Workbook()
    for name, rows in sheets.items():
        sheet = wb.add_sheet(name)
        for row_num, row in enumerate(rows):
            for column_num, value in enumerate(row):
                if value is None:
                    continue
                if isinstance(value, tuple):
                    sheet.write(row_num, column_num, value[1], text_style)
                elif isinstance(value, datetime.datetime):
                    sheet.write(row_num, column_num, value, datetime_style)
                elif isinstance(value, datetime.date):
                    sheet.write(row_num, column_num, value, date_style)
                else:
                    sheet.write(row_num, column_num, value)

    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def orders_xlsx() -> bytes:
    """Two order sheets with a title row, and a third unrelated sheet."""
    return build_xlsx(
        {
            "Orders 2021": [ORDERS_HEADER, *ORDERS],
            "Orders 2022": [
                ORDERS_HEADER,
                [2001, "Dave", datetime.date(2022, 1, 2), 3.75, False],
            ],
            "Notes": [["free text"], ["more text"]],
        }
    )


@pytest.fixture
def typed_xlsx() -> bytes:
    """One sheet holding one cell of every value type."""
    return build_xlsx(
        {
            "Types": [
                [
                    "text",
                    42,
                    2.5,
                    True,
                    datetime.date(2020, 1, 1),
                    datetime.datetime(2020, 1, 1, 12, 30),
                    datetime.time(6, 0),
                    12345,
                    3.0,
                ],
            ]
        },
        number_formats={("Types", "H1"): "@"},
    )


@pytest.fixture
def orders_xls() -> bytes:
    """The first order sheet as a legacy workbook, plus a text formatted number."""
    return build_xls(
        {
            "Orders 2021": [ORDERS_HEADER, *ORDERS],
            "Misc": [[("@", 12345), datetime.datetime(2020, 1, 1, 12, 30)]],
        }
    )
