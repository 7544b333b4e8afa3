"""
sheet2records: Event-driven spreadsheet reading and record mapping.

A Python library that reads legacy binary (.xls) and modern XML (.xlsx)
workbooks through one event-driven interface, and maps the event stream onto
typed record dataclasses declared with column bindings.
"""

from typing import TypeVar

from sheet2records.exceptions import (
    BindingCompileError,
    CellValueCastError,
    IllegalReaderStateError,
    ObjectCreationError,
    RecordMappingError,
    WorkbookError,
    WorkbookFormatNotSupportedError,
    WorkbookOpenError,
    WorkbookPasswordError,
    WorkbookProcessError,
    WorkbookRecordError,
    WorkbookZipBombError,
)
from sheet2records.readers.abstract_reader import (
    BackendKind,
    EventHandler,
    ReaderState,
    WorkbookEventReader,
)
from sheet2records.readers.cell_value import CellType, CellValue, LenientCellValue
from sheet2records.records.binding import (
    ContextKind,
    ValueKind,
    compile_record,
    record_column,
    record_context,
    workbook_record,
)
from sheet2records.records.extractor import WorkbookRecordExtractor
from sheet2records.records.object_factory import FactoryStrategy, ObjectFactory
from sheet2records.router import WorkbookSource, detect_backend, open_workbook

__version__ = "0.1.0"

T = TypeVar("T")


def extract_records(
    source: WorkbookSource,
    record_cls: type[T],
    password: str | None = None,
    *,
    strategy: FactoryStrategy = FactoryStrategy.PRECOMPILED,
) -> list[T]:
    """
    Open a workbook and extract all records of ``record_cls`` from it.

    Args:
        source: Path, bytes or binary stream of the workbook.
        record_cls: A dataclass decorated with ``workbook_record``.
        password: Password of an encrypted workbook.
        strategy: How record instances are created.

    Returns:
        The records of all sheets in the record range, in sheet and row order.

    Raises:
        WorkbookOpenError: The workbook cannot be opened.
        BindingCompileError: ``record_cls`` declares invalid bindings.
        RecordMappingError: A cell cannot be read as its record field.

    Example:
        >>> import sheet2records
        >>> for order in sheet2records.extract_records("orders.xlsx", Order):
        ...     print(order.customer)
    """
    extractor = WorkbookRecordExtractor(record_cls, strategy)
    with open_workbook(source, password) as reader:
        return extractor.extract(reader)


__all__ = [
    # Version
    "__version__",
    # Main functions
    "open_workbook",
    "detect_backend",
    "extract_records",
    # Reading
    "BackendKind",
    "CellType",
    "CellValue",
    "EventHandler",
    "LenientCellValue",
    "ReaderState",
    "WorkbookEventReader",
    # Records
    "ContextKind",
    "FactoryStrategy",
    "ObjectFactory",
    "ValueKind",
    "WorkbookRecordExtractor",
    "compile_record",
    "record_column",
    "record_context",
    "workbook_record",
    # Errors
    "BindingCompileError",
    "CellValueCastError",
    "IllegalReaderStateError",
    "ObjectCreationError",
    "RecordMappingError",
    "WorkbookError",
    "WorkbookFormatNotSupportedError",
    "WorkbookOpenError",
    "WorkbookPasswordError",
    "WorkbookProcessError",
    "WorkbookRecordError",
    "WorkbookZipBombError",
]
