"""
Declarative bindings between record fields and worksheet columns.

Record types are dataclasses decorated with ``workbook_record``. Each field is
either bound to a column through ``record_column`` or to reading context
(sheet name, sheet index, row number) through ``record_context``; fields
without either declaration are left at their defaults.

    >>> @workbook_record(start_row=1, title_row=0, end_sheet=1)
    ... @dataclass
    ... class Order:
    ...     order_id: int = record_column(0)
    ...     customer: str = record_column(1)
    ...     ordered_on: date = record_column(2, ValueKind.DATE)
    ...     row: int = record_context(ContextKind.ROW_NUMBER)

``compile_record`` validates the declarations once per type and returns a
``RecordBinding`` whose lookup tables are replayed for every row.
"""

import dataclasses
import datetime
import decimal
import enum
import functools
import logging
import types
import typing
from dataclasses import dataclass
from typing import Any, Iterable

from sheet2records.exceptions import BindingCompileError
from sheet2records.readers.cell_value import CellValue

logger = logging.getLogger(__name__)

_COLUMN_KEY = "sheet2records.column"
_CONTEXT_KEY = "sheet2records.context"
_RANGE_ATTR = "__workbook_record__"


class ValueKind(enum.Enum):
    AUTO = "auto"
    TEXT = "text"
    WHOLE_NUMBER = "whole_number"
    DECIMAL = "decimal"
    FLOAT = "float"
    BOOLEAN = "boolean"
    DATE = "date"
    TIME = "time"
    DATETIME = "datetime"


class ContextKind(enum.Enum):
    SHEET_INDEX = "sheet_index"
    SHEET_NAME = "sheet_name"
    ROW_NUMBER = "row_number"


# CellValue accessor per value kind, looked up on the (possibly lenient) instance
_ACCESSORS: dict[ValueKind, str] = {
    ValueKind.TEXT: "text_value",
    ValueKind.WHOLE_NUMBER: "int_value",
    ValueKind.DECIMAL: "decimal_value",
    ValueKind.FLOAT: "float_value",
    ValueKind.BOOLEAN: "bool_value",
    ValueKind.DATE: "date_value",
    ValueKind.TIME: "time_value",
    ValueKind.DATETIME: "datetime_value",
}

_TEMPORAL_KINDS = frozenset({ValueKind.DATE, ValueKind.TIME, ValueKind.DATETIME})

# bool before int, datetime before date: both are subclasses
_AUTO_KINDS: tuple[tuple[type, ValueKind], ...] = (
    (bool, ValueKind.BOOLEAN),
    (int, ValueKind.WHOLE_NUMBER),
    (float, ValueKind.FLOAT),
    (decimal.Decimal, ValueKind.DECIMAL),
    (str, ValueKind.TEXT),
    (datetime.datetime, ValueKind.DATETIME),
    (datetime.date, ValueKind.DATE),
    (datetime.time, ValueKind.TIME),
)


# =============================================================================
# Declarations
# =============================================================================


@dataclass(frozen=True)
class RecordRange:
    """Sheets, rows and columns a record type is read from. Ends are exclusive."""

    start_sheet: int = 0
    end_sheet: int | None = None
    start_row: int = 0
    end_row: int | None = None
    start_column: int = 0
    end_column: int | None = None
    title_row: int | None = None

    def contains_sheet(self, sheet_index: int) -> bool:
        return sheet_index >= self.start_sheet and (
            self.end_sheet is None or sheet_index < self.end_sheet
        )

    def contains_row(self, row_num: int) -> bool:
        return row_num >= self.start_row and (
            self.end_row is None or row_num < self.end_row
        )

    def contains_column(self, column_num: int) -> bool:
        return column_num >= self.start_column and (
            self.end_column is None or column_num < self.end_column
        )

    def is_past_sheets(self, sheet_index: int) -> bool:
        return self.end_sheet is not None and sheet_index >= self.end_sheet

    def is_title_row(self, row_num: int) -> bool:
        return self.title_row is not None and row_num == self.title_row


@dataclass(frozen=True)
class _ColumnDeclaration:
    column: Any
    kind: ValueKind
    shared: bool
    trim: bool
    lenient: bool
    title: str | None
    date_formats: tuple[str, ...] | None

@dataclass(frozen=True)
class _ContextDeclaration:
    kind: ContextKind


def workbook_record(
    *,
    start_sheet: int = 0,
    end_sheet: int | None = None,
    start_row: int = 0,
    end_row: int | None = None,
    start_column: int = 0,
    end_column: int | None = None,
    title_row: int | None = None,
):
    """
    Mark a dataclass as a workbook record and declare the range it is read from.

    Apply it on top of ``@dataclass``. The declarations are validated by
    ``compile_record``, not here.
    """
    record_range = RecordRange(
        start_sheet=start_sheet,
        end_sheet=end_sheet,
        start_row=start_row,
        end_row=end_row,
        start_column=start_column,
        end_column=end_column,
        title_row=title_row,
    )

    def decorator(cls):
        setattr(cls, _RANGE_ATTR, record_range)
        return cls

    return decorator


def record_column(
    column: int,
    kind: ValueKind = ValueKind.AUTO,
    *,
    shared: bool = False,
    trim: bool = True,
    lenient: bool = False,
    title: str | None = None,
    date_formats: Iterable[str] | None = None,
    default: Any = None,
) -> Any:
    """
    Bind a dataclass field to a column (0-based).

    Args:
        column: Column index the field reads from.
        kind: How the cell is read. ``AUTO`` follows the field annotation.
        shared: Allow other fields declaring ``shared=True`` on the same column.
        trim: Strip surrounding whitespace from text before reading it.
        lenient: Read through ``CellValue.lenient()``, parsing text values.
        title: Column title used in messages when the sheet has no title row.
        date_formats: strptime patterns for text read as a date, time or
            datetime. Requires ``lenient=True``.
        default: Field value when the cell is empty.
    """
    return dataclasses.field(
        default=default,
        metadata={
            _COLUMN_KEY: _ColumnDeclaration(
                column=column,
                kind=kind,
                shared=shared,
                trim=trim,
                lenient=lenient,
                title=title,
                date_formats=None if date_formats is None else tuple(date_formats),
            )
        },
    )


def record_context(kind: ContextKind, *, default: Any = None) -> Any:
    """Bind a dataclass field to the sheet name, sheet index or row number."""
    return dataclasses.field(
        default=default, metadata={_CONTEXT_KEY: _ContextDeclaration(kind)}
    )


# =============================================================================
# Compiled bindings
# =============================================================================


@dataclass(frozen=True)
class ColumnBinding:
    field_name: str
    column: int
    kind: ValueKind
    trim: bool = True
    lenient: bool = False
    title: str | None = None
    date_formats: tuple[str, ...] | None = None

    def prepare(self, cell_value: CellValue) -> CellValue:
        """The view of ``cell_value`` this binding reads; may become null."""
        if self.trim:
            cell_value = cell_value.trim()
        if self.lenient:
            cell_value = cell_value.lenient()
        return cell_value

    def convert(self, cell_value: CellValue) -> Any:
        """
        Read a prepared, non-null cell value.

        :raises CellValueCastError: The cell does not hold a value of ``kind``
        """
        accessor = getattr(cell_value, _ACCESSORS[self.kind])
        if self.date_formats is not None and self.kind in _TEMPORAL_KINDS:
            return accessor(formats=self.date_formats)
        return accessor()


@dataclass(frozen=True)
class ContextBinding:
    field_name: str
    kind: ContextKind


@dataclass(frozen=True)
class RecordBinding:
    record_type: type
    record_range: RecordRange
    # column -> bindings reading that column, in field order
    columns: dict[int, tuple[ColumnBinding, ...]]
    contexts: dict[ContextKind, ContextBinding]

    def bindings_for(self, column_num: int) -> tuple[ColumnBinding, ...]:
        return self.columns.get(column_num, ())

    def preset_titles(self) -> dict[int, str]:
        titles = {}
        for column_num, bindings in self.columns.items():
            for binding in bindings:
                if binding.title is not None:
                    titles.setdefault(column_num, binding.title)
        return titles


def _unwrap_optional(tp: Any) -> Any:
    """Unwrap Optional[X] / X | None to X, other types are returned as is."""
    origin = typing.get_origin(tp)
    if origin is typing.Union or origin is types.UnionType:
        args = [arg for arg in typing.get_args(tp) if arg is not type(None)]
        if len(args) == 1:
            return args[0]
    return tp


def _resolve_auto_kind(annotation: Any) -> ValueKind | None:
    annotation = _unwrap_optional(annotation)
    if not isinstance(annotation, type):
        return None
    for python_type, kind in _AUTO_KINDS:
        if issubclass(annotation, python_type):
            return kind
    return None


def _is_index(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def _check_range(cls: type, record_range: RecordRange) -> None:
    name = cls.__qualname__
    for start_attr, end_attr in (
        ("start_sheet", "end_sheet"),
        ("start_row", "end_row"),
        ("start_column", "end_column"),
    ):
        start = getattr(record_range, start_attr)
        end = getattr(record_range, end_attr)
        if not _is_index(start):
            raise BindingCompileError(
                f"{name}: {start_attr} must be a non-negative integer, got {start!r}"
            )
        if end is not None and (not _is_index(end) or end < start):
            raise BindingCompileError(
                f"{name}: {end_attr} must be an integer not below {start_attr} "
                f"({start}), got {end!r}"
            )
    if record_range.title_row is not None and not _is_index(record_range.title_row):
        raise BindingCompileError(
            f"{name}: title_row must be a non-negative integer, "
            f"got {record_range.title_row!r}"
        )


def compile_record(cls: type) -> RecordBinding:
    """
    Validate the binding declarations of a record type.

    The result is cached per type, and so is a failure: an invalid type raises
    the error of its first compilation again without being re-validated.

    :raises BindingCompileError: The declarations are inconsistent
    """
    compiled = _compile_cached(cls)
    if isinstance(compiled, BindingCompileError):
        raise compiled.with_traceback(None)
    return compiled


@functools.lru_cache(maxsize=None)
def _compile_cached(cls: type) -> RecordBinding | BindingCompileError:
    try:
        return _compile(cls)
    except BindingCompileError as exc:
        return exc


def _compile(cls: type) -> RecordBinding:
    if not (isinstance(cls, type) and dataclasses.is_dataclass(cls)):
        raise BindingCompileError(f"Record type must be a dataclass, got {cls!r}")
    record_range = getattr(cls, _RANGE_ATTR, None)
    if not isinstance(record_range, RecordRange):
        raise BindingCompileError(
            f"{cls.__qualname__} is not decorated with @workbook_record"
        )
    _check_range(cls, record_range)

    try:
        hints = typing.get_type_hints(cls)
    except Exception as exc:
        raise BindingCompileError(
            f"Cannot resolve the annotations of {cls.__qualname__}", cause=exc
        ) from exc

    columns: dict[int, list[tuple[ColumnBinding, bool]]] = {}
    contexts: dict[ContextKind, ContextBinding] = {}

    for record_field in dataclasses.fields(cls):
        where = f"{cls.__qualname__}.{record_field.name}"
        column_decl = record_field.metadata.get(_COLUMN_KEY)
        context_decl = record_field.metadata.get(_CONTEXT_KEY)

        if column_decl is not None and context_decl is not None:
            raise BindingCompileError(
                f"{where} is bound to both a column and a context value"
            )

        if context_decl is not None:
            if context_decl.kind in contexts:
                raise BindingCompileError(
                    f"{where}: context {context_decl.kind.name} is already bound "
                    f"to {contexts[context_decl.kind].field_name}"
                )
            contexts[context_decl.kind] = ContextBinding(
                record_field.name, context_decl.kind
            )
            continue

        if column_decl is None:
            continue

        column = column_decl.column
        if not _is_index(column):
            raise BindingCompileError(
                f"{where}: column must be a non-negative integer, got {column!r}"
            )
        if not record_range.contains_column(column):
            raise BindingCompileError(
                f"{where}: column {column} lies outside the record columns "
                f"[{record_range.start_column}, {record_range.end_column})"
            )

        kind = column_decl.kind
        if kind is ValueKind.AUTO:
            kind = _resolve_auto_kind(hints.get(record_field.name))
            if kind is None:
                raise BindingCompileError(
                    f"{where}: cannot infer how to read annotation "
                    f"{hints.get(record_field.name)!r}, declare the value kind"
                )

        if column_decl.date_formats is not None and not column_decl.lenient:
            raise BindingCompileError(
                f"{where}: date_formats only apply to lenient=True columns"
            )

        binding = ColumnBinding(
            field_name=record_field.name,
            column=column,
            kind=kind,
            trim=column_decl.trim,
            lenient=column_decl.lenient,
            title=column_decl.title,
            date_formats=column_decl.date_formats,
        )
        claimed = columns.setdefault(column, [])
        if claimed and not (
            column_decl.shared and all(shared for _, shared in claimed)
        ):
            raise BindingCompileError(
                f"{where}: column {column} is already bound to "
                f"{claimed[0][0].field_name}, declare shared=True on both fields"
            )
        claimed.append((binding, column_decl.shared))

    logger.debug(
        f"Compiled record binding for {cls.__qualname__}: "
        f"{sum(len(b) for b in columns.values())} column fields, "
        f"{len(contexts)} context fields"
    )
    return RecordBinding(
        record_type=cls,
        record_range=record_range,
        columns={
            column: tuple(binding for binding, _ in claimed)
            for column, claimed in sorted(columns.items())
        },
        contexts=contexts,
    )
