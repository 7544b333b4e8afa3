"""
Mapping of workbook events onto record instances.

``WorkbookRecordExtractor`` is an ``EventHandler``: for every populated row in
the record range it creates a record through an ``ObjectFactory``, fills the
context fields and reads each bound cell with the compiled ``ColumnBinding``.
Rows in which no bound cell held a value are dropped.

Reading stops early: as soon as the reader moves past ``end_sheet`` the
extractor cancels the reader it was given in ``extract``.
"""

import logging
from typing import Any, Generic, TypeVar

from sheet2records.exceptions import (
    CellValueCastError,
    ObjectCreationError,
    RecordMappingError,
)
from sheet2records.readers.abstract_reader import (
    EventHandler,
    ReaderState,
    WorkbookEventReader,
)
from sheet2records.readers.cell_value import CellValue
from sheet2records.records.binding import ContextKind, RecordBinding, compile_record
from sheet2records.records.object_factory import FactoryStrategy, ObjectFactory

logger = logging.getLogger(__name__)

T = TypeVar("T")


class WorkbookRecordExtractor(EventHandler, Generic[T]):
    """
    Extracts ``record_cls`` instances from a workbook.

        >>> extractor = WorkbookRecordExtractor(Order)
        >>> with open_workbook("orders.xlsx") as reader:
        ...     orders = extractor.extract(reader)

    :raises BindingCompileError: ``record_cls`` declares invalid bindings
    :raises ObjectCreationError: ``record_cls`` cannot be instantiated without arguments
    """

    def __init__(
        self,
        record_cls: type[T],
        strategy: FactoryStrategy = FactoryStrategy.PRECOMPILED,
    ):
        self._binding: RecordBinding = compile_record(record_cls)
        self._range = self._binding.record_range
        self._factory: ObjectFactory[T] = ObjectFactory.for_type(record_cls, strategy)
        self._reader: WorkbookEventReader | None = None
        self._reset()

    def _reset(self) -> None:
        self._records: dict[int, list[T]] = {}
        self._titles: dict[int, dict[int, str]] = {}
        self._sheet_name: str | None = None
        self._current: T | None = None
        self._current_has_value = False

    @property
    def binding(self) -> RecordBinding:
        return self._binding

    def extract(self, reader: WorkbookEventReader) -> list[T]:
        """
        Read ``reader`` and return the records of all sheets in sheet order.

        :raises RecordMappingError: A record cannot be created or a bound cell
            cannot be read as its field
        :raises IllegalReaderStateError: The reader was already read or closed
        """
        self._reader = reader
        try:
            reader.read(self)
        finally:
            self._reader = None
        records = self.get_all_records()
        logger.info(
            "Extracted %d %s records from %d sheets",
            len(records),
            self._binding.record_type.__name__,
            len(self._records),
        )
        return records

    def get_records(self, sheet_index: int) -> list[T]:
        return list(self._records.get(sheet_index, ()))

    def get_all_records(self) -> list[T]:
        return [
            record
            for sheet_index in sorted(self._records)
            for record in self._records[sheet_index]
        ]

    def get_column_title(self, sheet_index: int, column_num: int) -> str | None:
        return self._titles.get(sheet_index, {}).get(column_num)

    def get_all_column_titles(self, sheet_index: int) -> list[str | None]:
        """Titles from column 0 up to the last titled column, None for gaps."""
        titles = self._titles.get(sheet_index)
        if not titles:
            return []
        return [titles.get(column_num) for column_num in range(max(titles) + 1)]

    # =========================================================================
    # Events
    # =========================================================================

    def on_start_document(self) -> None:
        self._reset()

    def on_start_sheet(self, sheet_index: int, sheet_name: str) -> None:
        self._sheet_name = sheet_name
        if self._range.is_past_sheets(sheet_index):
            self._cancel_reading()
            return
        if self._range.contains_sheet(sheet_index):
            self._records.setdefault(sheet_index, [])
            self._titles.setdefault(sheet_index, self._binding.preset_titles())

    def on_end_sheet(self, sheet_index: int) -> None:
        self._sheet_name = None
        if self._range.is_past_sheets(sheet_index + 1):
            self._cancel_reading()

    def on_start_row(self, sheet_index: int, row_num: int) -> None:
        self._current = None
        self._current_has_value = False
        if not (
            self._range.contains_sheet(sheet_index)
            and self._range.contains_row(row_num)
        ):
            return

        try:
            record = self._factory.new_instance()
        except ObjectCreationError as exc:
            raise RecordMappingError(
                f"Cannot create {self._binding.record_type.__name__} record",
                sheet_index=sheet_index,
                row_num=row_num,
                cause=exc,
            ) from exc
        context_values = {
            ContextKind.SHEET_INDEX: sheet_index,
            ContextKind.SHEET_NAME: self._sheet_name,
            ContextKind.ROW_NUMBER: row_num,
        }
        for kind, context in self._binding.contexts.items():
            self._assign(
                record, context.field_name, context_values[kind], sheet_index, row_num
            )
        self._current = record

    def on_handle_cell(
        self, sheet_index: int, row_num: int, column_num: int, cell_value: CellValue
    ) -> None:
        if self._range.contains_sheet(sheet_index) and self._range.is_title_row(
            row_num
        ):
            self._capture_title(sheet_index, column_num, cell_value)

        if self._current is None or not self._range.contains_column(column_num):
            return

        for binding in self._binding.bindings_for(column_num):
            prepared = binding.prepare(cell_value)
            if prepared.is_null:
                continue
            try:
                value = binding.convert(prepared)
            except CellValueCastError as exc:
                raise RecordMappingError(
                    f"Cannot read {self._describe_column(sheet_index, column_num)} "
                    f"as {binding.kind.value} for field '{binding.field_name}'",
                    sheet_index=sheet_index,
                    row_num=row_num,
                    column_num=column_num,
                    cause=exc,
                ) from exc
            self._assign(
                self._current,
                binding.field_name,
                value,
                sheet_index,
                row_num,
                column_num,
            )
            self._current_has_value = True

    def on_end_row(self, sheet_index: int, row_num: int) -> None:
        if self._current is not None and self._current_has_value:
            self._records[sheet_index].append(self._current)
        self._current = None
        self._current_has_value = False

    def on_read_cancelled(self) -> None:
        logger.debug("Record extraction stopped after the last record sheet")

    # =========================================================================
    # Helpers
    # =========================================================================

    def _cancel_reading(self) -> None:
        reader = self._reader
        if reader is not None and reader.state is ReaderState.READING:
            reader.cancel()

    def _capture_title(
        self, sheet_index: int, column_num: int, cell_value: CellValue
    ) -> None:
        trimmed = cell_value.trim()
        if trimmed.is_null:
            return
        title = trimmed.lenient().text_value()
        self._titles[sheet_index].setdefault(column_num, title)

    def _describe_column(self, sheet_index: int, column_num: int) -> str:
        title = self.get_column_title(sheet_index, column_num)
        if title is None:
            return f"column {column_num}"
        return f"column {column_num} ('{title}')"

    @staticmethod
    def _assign(
        record: Any,
        field_name: str,
        value: Any,
        sheet_index: int,
        row_num: int,
        column_num: int | None = None,
    ) -> None:
        try:
            setattr(record, field_name, value)
        except (AttributeError, TypeError) as exc:
            raise RecordMappingError(
                f"Cannot set field '{field_name}' of {type(record).__name__}",
                sheet_index=sheet_index,
                row_num=row_num,
                column_num=column_num,
                cause=exc,
            ) from exc
