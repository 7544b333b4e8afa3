"""
Epoch windowing and date text helpers.

Spreadsheets store calendar values as a day count ("serial") relative to one of
two epochs, the 1900 date system (with the historical phantom 1900-02-29) or
the 1904 date system. The conversion itself is openpyxl's; this module adds the
validity bound and the narrowing to ``date``/``time``/``datetime``.

Text is turned into dates by ``parse_temporal``, which accepts ISO 8601 plus a
set of slash, CJK and 12-hour clock patterns.
"""

import datetime
from typing import Iterable

from openpyxl.utils.datetime import (
    CALENDAR_MAC_1904,
    CALENDAR_WINDOWS_1900,
    from_excel,
)

# 9999-12-31 is the last day any spreadsheet application accepts
MAX_SERIAL_EXCLUSIVE = 2958466


def epoch_for(use_1904_windowing: bool) -> datetime.datetime:
    return CALENDAR_MAC_1904 if use_1904_windowing else CALENDAR_WINDOWS_1900


def is_valid_serial(serial: float) -> bool:
    return 0 <= serial < MAX_SERIAL_EXCLUSIVE


def serial_to_datetime(serial: float, use_1904_windowing: bool) -> datetime.datetime:
    """
    Convert a day count into a naive datetime.

    Raises:
        ValueError: If the serial lies outside the representable range.
    """
    if not is_valid_serial(serial):
        raise ValueError(f"Not a valid date serial: {serial}")
    return from_excel(serial, epoch_for(use_1904_windowing))


def narrow_serial(
    value: datetime.datetime, serial: float
) -> datetime.date | datetime.time | datetime.datetime:
    """
    Narrow the datetime converted from ``serial``.

    Fractions of a single day become a ``time``, whole day counts become a
    ``date``, everything else stays a ``datetime``.
    """
    if serial < 1:
        return value.time()
    if serial % 1 == 0:
        return value.date()
    return value


def serial_to_temporal(
    serial: float, use_1904_windowing: bool
) -> datetime.date | datetime.time | datetime.datetime:
    return narrow_serial(serial_to_datetime(serial, use_1904_windowing), serial)


def narrow_datetime(
    value: datetime.datetime,
) -> datetime.date | datetime.datetime:
    """Drop a midnight time part the way whole serials are treated."""
    if value.time() == datetime.time(0, 0):
        return value.date()
    return value


# strptime patterns tried after ISO 8601 when text is read as a date or time
DEFAULT_DATE_FORMATS: tuple[str, ...] = (
    "%Y年%m月%d日",
    "%Y/%m/%d %I:%M %p",
    "%Y/%m/%d %H:%M",
    "%Y/%m/%d",
    "%m/%d/%Y %I:%M %p",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y",
    "%m/%d/%y %H:%M",
    "%I:%M:%S %p",
    "%I:%M %p",
)

_DATE_DIRECTIVES = ("%Y", "%y", "%m", "%d", "%b", "%B", "%j")
_TIME_DIRECTIVES = ("%H", "%I", "%M", "%S")

_ISO_PARSERS = (
    datetime.date.fromisoformat,
    datetime.datetime.fromisoformat,
    datetime.time.fromisoformat,
)


def parse_temporal(
    text: str, formats: Iterable[str] | None = None
) -> datetime.date | datetime.time | datetime.datetime:
    """
    Parse text holding a date, a time or both.

    ISO 8601 is always accepted. ``formats`` are strptime patterns tried in
    order afterwards, ``DEFAULT_DATE_FORMATS`` when omitted. A pattern without
    time directives yields a ``date``, one without date directives a ``time``.

    Raises:
        ValueError: If no parser accepts the text.
    """
    text = text.strip()
    for parser in _ISO_PARSERS:
        try:
            return parser(text)
        except ValueError:
            pass

    for pattern in DEFAULT_DATE_FORMATS if formats is None else formats:
        try:
            parsed = datetime.datetime.strptime(text, pattern)
        except ValueError:
            continue
        if not any(directive in pattern for directive in _TIME_DIRECTIVES):
            return parsed.date()
        if not any(directive in pattern for directive in _DATE_DIRECTIVES):
            return parsed.time()
        return parsed

    raise ValueError(f"No date or time format matches {text!r}")
