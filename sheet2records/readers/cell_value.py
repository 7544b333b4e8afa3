"""
Uniform cell values.

Every backend translates its native cell representation into a ``CellValue``
before the value reaches an ``EventHandler``. The original value is kept as is
and tagged with a ``CellType`` so consumers can introspect it; the typed
accessors never convert across types except for the documented numeric to
date conversion, which uses the epoch windowing captured when reading started.

Allowed original values:

    None                    blank, empty or error cell
    bool                    BOOLEAN
    int                     INTEGER (whole numbers, including whole floats)
    float                   FLOAT
    str                     TEXT (never empty)
    datetime.date           DATE
    datetime.time           TIME
    datetime.datetime       DATETIME

``LenientCellValue`` (see ``CellValue.lenient()``) relaxes the accessors: text
is parsed, numbers are widened or narrowed, and every value can be read as
text.
"""

import datetime
import decimal
import enum
from dataclasses import dataclass, field
from typing import Any, Iterable

from sheet2records.exceptions import CellValueCastError
from sheet2records.readers.dates import (
    parse_temporal,
    serial_to_datetime,
    serial_to_temporal,
)


class CellType(enum.Enum):
    BOOLEAN = "boolean"
    INTEGER = "integer"
    FLOAT = "float"
    TEXT = "text"
    DATE = "date"
    TIME = "time"
    DATETIME = "datetime"


_NUMERIC_TYPES = (CellType.INTEGER, CellType.FLOAT)


def _detect_type(value: Any) -> CellType | None:
    # order matters: bool is an int, datetime is a date
    if value is None:
        return None
    if isinstance(value, bool):
        return CellType.BOOLEAN
    if isinstance(value, int):
        return CellType.INTEGER
    if isinstance(value, float):
        return CellType.FLOAT
    if isinstance(value, str):
        return CellType.TEXT
    if isinstance(value, datetime.datetime):
        return CellType.DATETIME
    if isinstance(value, datetime.date):
        return CellType.DATE
    if isinstance(value, datetime.time):
        return CellType.TIME
    raise ValueError(f"Unsupported cell value type: {type(value).__name__}")


@dataclass(frozen=True)
class CellValue:
    original_value: Any = None
    use_1904_windowing: bool = field(default=False, compare=False)
    original_type: CellType | None = field(init=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "original_type", _detect_type(self.original_value))

    @classmethod
    def of(cls, value: Any, use_1904_windowing: bool = False) -> "CellValue":
        """Create a cell value, turning empty strings into the null value."""
        if isinstance(value, str) and value == "":
            value = None
        return cls(value, use_1904_windowing)

    @property
    def is_null(self) -> bool:
        return self.original_value is None

    def _cast_error(self, target: str, cause: Exception = None) -> CellValueCastError:
        if self.is_null:
            return CellValueCastError(f"Cannot read null cell value as {target}")
        return CellValueCastError(
            f"Cannot read {self.original_type.value} cell value "
            f"{self.original_value!r} as {target}",
            cause=cause,
        )

    def _require(self, target: str, *cell_types: CellType) -> None:
        if self.original_type not in cell_types:
            raise self._cast_error(target)

    def _serial_to_datetime(self, target: str) -> datetime.datetime:
        try:
            return serial_to_datetime(self.original_value, self.use_1904_windowing)
        except (ValueError, OverflowError) as exc:
            raise self._cast_error(target, exc) from exc

    def text_value(self) -> str:
        self._require("text", CellType.TEXT)
        return self.original_value

    def int_value(self) -> int:
        self._require("integer", CellType.INTEGER)
        return self.original_value

    def float_value(self) -> float:
        self._require("float", *_NUMERIC_TYPES)
        return float(self.original_value)

    def decimal_value(self) -> decimal.Decimal:
        self._require("decimal", *_NUMERIC_TYPES)
        # str() keeps the shortest repr instead of the binary expansion
        return decimal.Decimal(str(self.original_value))

    def bool_value(self) -> bool:
        self._require("boolean", CellType.BOOLEAN)
        return self.original_value

    def date_value(self) -> datetime.date:
        if self.original_type is CellType.DATE:
            return self.original_value
        self._require("date", CellType.DATE, *_NUMERIC_TYPES)
        return self._serial_to_datetime("date").date()

    def datetime_value(self) -> datetime.datetime:
        if self.original_type is CellType.DATETIME:
            return self.original_value
        self._require("datetime", CellType.DATETIME, *_NUMERIC_TYPES)
        return self._serial_to_datetime("datetime")

    def time_value(self) -> datetime.time:
        self._require("time", CellType.TIME)
        return self.original_value

    def trim(self) -> "CellValue":
        """Return a copy whose text has surrounding whitespace removed."""
        if self.original_type is not CellType.TEXT:
            return self
        trimmed = self.original_value.strip()
        if trimmed == self.original_value:
            return self
        return type(self).of(trimmed, self.use_1904_windowing)

    def lenient(self) -> "LenientCellValue":
        return LenientCellValue(self.original_value, self.use_1904_windowing)

    def strict(self) -> "CellValue":
        return self


_TRUE_TEXTS = {"true", "yes", "1"}
_FALSE_TEXTS = {"false", "no", "0"}


@dataclass(frozen=True)
class LenientCellValue(CellValue):
    """A ``CellValue`` whose accessors convert between compatible types."""

    def lenient(self) -> "LenientCellValue":
        return self

    def strict(self) -> CellValue:
        return CellValue(self.original_value, self.use_1904_windowing)

    def text_value(self) -> str:
        if self.is_null:
            raise self._cast_error("text")
        if self.original_type is CellType.BOOLEAN:
            return "true" if self.original_value else "false"
        if self.original_type in (CellType.DATE, CellType.TIME, CellType.DATETIME):
            return self.original_value.isoformat()
        return str(self.original_value)

    def int_value(self) -> int:
        value = self.original_value
        try:
            if self.original_type in (*_NUMERIC_TYPES, CellType.BOOLEAN):
                return int(value)
            if self.original_type is CellType.TEXT:
                text = value.strip()
                try:
                    return int(text)
                except ValueError:
                    return int(float(text))
        except (ValueError, OverflowError) as exc:
            raise self._cast_error("integer", exc) from exc
        raise self._cast_error("integer")

    def float_value(self) -> float:
        if self.original_type in (*_NUMERIC_TYPES, CellType.BOOLEAN, CellType.TEXT):
            try:
                return float(self.original_value)
            except ValueError as exc:
                raise self._cast_error("float", exc) from exc
        raise self._cast_error("float")

    def decimal_value(self) -> decimal.Decimal:
        if self.original_type is CellType.BOOLEAN:
            return decimal.Decimal(int(self.original_value))
        if self.original_type in (*_NUMERIC_TYPES, CellType.TEXT):
            try:
                return decimal.Decimal(str(self.original_value).strip())
            except decimal.InvalidOperation as exc:
                raise self._cast_error("decimal", exc) from exc
        raise self._cast_error("decimal")

    def bool_value(self) -> bool:
        if self.original_type is CellType.BOOLEAN:
            return self.original_value
        if self.original_type in _NUMERIC_TYPES:
            return self.original_value != 0
        if self.original_type is CellType.TEXT:
            text = self.original_value.strip().lower()
            if text in _TRUE_TEXTS:
                return True
            if text in _FALSE_TEXTS:
                return False
        raise self._cast_error("boolean")

    def date_value(self, formats: Iterable[str] | None = None) -> datetime.date:
        """
        Read the value as a date. Text is parsed as ISO 8601, then with the
        strptime patterns in ``formats`` (``DEFAULT_DATE_FORMATS`` if omitted).
        """
        if self.original_type is CellType.DATETIME:
            return self.original_value.date()
        if self.original_type is CellType.TEXT:
            parsed = self._parse_text("date", formats)
            if isinstance(parsed, datetime.datetime):
                return parsed.date()
            if isinstance(parsed, datetime.date):
                return parsed
            raise self._cast_error("date")
        return super().date_value()

    def datetime_value(
        self, formats: Iterable[str] | None = None
    ) -> datetime.datetime:
        if self.original_type is CellType.DATE:
            return datetime.datetime.combine(self.original_value, datetime.time())
        if self.original_type is CellType.TEXT:
            parsed = self._parse_text("datetime", formats)
            if isinstance(parsed, datetime.datetime):
                return parsed
            if isinstance(parsed, datetime.date):
                return datetime.datetime.combine(parsed, datetime.time())
            raise self._cast_error("datetime")
        return super().datetime_value()

    def time_value(self, formats: Iterable[str] | None = None) -> datetime.time:
        if self.original_type is CellType.DATETIME:
            return self.original_value.time()
        if self.original_type is CellType.TEXT:
            parsed = self._parse_text("time", formats)
            if isinstance(parsed, datetime.datetime):
                return parsed.time()
            if isinstance(parsed, datetime.time):
                return parsed
            raise self._cast_error("time")
        if self.original_type in _NUMERIC_TYPES and 0 <= self.original_value < 1:
            return serial_to_temporal(self.original_value, self.use_1904_windowing)
        return super().time_value()

    def _parse_text(self, target: str, formats: Iterable[str] | None):
        try:
            return parse_temporal(self.original_value, formats)
        except ValueError as exc:
            raise self._cast_error(target, exc) from exc


NULL_CELL_VALUE = CellValue()
