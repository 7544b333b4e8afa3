"""
Event-driven workbook reading.

A ``WorkbookEventReader`` owns exactly one backend (the legacy binary or the
modern XML parser, selected once when the workbook is opened) and drives its
traversal, emitting events on an ``EventHandler`` in document order:

    on_start_document
      on_start_sheet(sheet_index, sheet_name)
        on_start_row(sheet_index, row_num)
          on_handle_cell(sheet_index, row_num, column_num, cell_value)
        on_end_row(sheet_index, row_num)
      on_end_sheet(sheet_index)
    on_end_document

Only rows holding at least one populated cell are reported, and only their
populated cells. Indices are 0-based.

Lifecycle
---------
    OPEN --read()--> READING --cancel() observed--> CANCELLED
      any state --close()--> CLOSED

``read()`` is single-use. ``cancel()`` is cooperative: it only raises a flag
which is checked before each sheet, row and cell and before the end of the
document. Once the flag is observed no further events are emitted (including
the pending ``on_end_*`` events), ``on_read_cancelled`` fires exactly once and
``read()`` returns normally.
"""

import enum
import logging
import weakref
from dataclasses import dataclass
from typing import Iterable, Iterator, Protocol

from sheet2records.exceptions import (
    IllegalReaderStateError,
    WorkbookError,
    WorkbookProcessError,
)
from sheet2records.readers.cell_value import CellValue

logger = logging.getLogger(__name__)


class ReaderState(enum.Enum):
    OPEN = "open"
    READING = "reading"
    CANCELLED = "cancelled"
    CLOSED = "closed"


class BackendKind(enum.Enum):
    LEGACY_BINARY = "xls"
    MODERN_XML = "xlsx"


class EventHandler:
    """
    Receives the events of a reading process. Every callback is optional.

    ``CellValue`` objects handed to ``on_handle_cell`` are immutable and may be
    kept, but the reader does not retain them after the callback returns.
    """

    def on_start_document(self) -> None:
        pass

    def on_end_document(self) -> None:
        pass

    def on_start_sheet(self, sheet_index: int, sheet_name: str) -> None:
        pass

    def on_end_sheet(self, sheet_index: int) -> None:
        pass

    def on_start_row(self, sheet_index: int, row_num: int) -> None:
        pass

    def on_end_row(self, sheet_index: int, row_num: int) -> None:
        pass

    def on_handle_cell(
        self, sheet_index: int, row_num: int, column_num: int, cell_value: CellValue
    ) -> None:
        pass

    def on_read_cancelled(self) -> None:
        pass


RowCells = tuple[int, list[tuple[int, CellValue]]]


@dataclass
class SheetData:
    name: str
    # (row_num, [(column_num, cell_value), ...]) in document order
    rows: Iterable[RowCells]


class WorkbookBackend(Protocol):
    kind: BackendKind

    @property
    def document_uses_1904_windowing(self) -> bool:
        """Whether the document itself declares the 1904 date system"""
        ...

    def iter_sheets(self, use_1904_windowing: bool) -> Iterator[SheetData]:
        """Yields the sheets in workbook order, rows and cells lazily"""
        ...

    def close(self) -> None:
        """Releases the underlying parser resources"""
        ...


def _release_backend(backend: WorkbookBackend) -> None:
    logger.debug(f"Releasing {backend.kind.value} backend")
    backend.close()


class WorkbookEventReader:
    """
    Reads a workbook through events. Use ``sheet2records.open_workbook`` to
    obtain one, preferably as a context manager:

        >>> with open_workbook("data.xlsx") as reader:
        ...     reader.read(handler)
    """

    def __init__(self, backend: WorkbookBackend, source: str | None = None):
        self._backend = backend
        self._source = source
        self._state = ReaderState.OPEN
        self._use_1904_windowing: bool | None = None
        self._dispatching = False
        self._cancel_requested = False
        # releases the backend even if the reader is never closed explicitly
        self._clean_action = weakref.finalize(self, _release_backend, backend)

    @property
    def state(self) -> ReaderState:
        return self._state

    @property
    def backend_kind(self) -> BackendKind:
        return self._backend.kind

    @property
    def source(self) -> str | None:
        return self._source

    @property
    def use_1904_windowing(self) -> bool | None:
        """
        Date system used to turn day counts into dates. ``None`` (the default)
        follows the document's own setting.
        """
        return self._use_1904_windowing

    @use_1904_windowing.setter
    def use_1904_windowing(self, value: bool | None) -> None:
        self._assert_open("change the date windowing of")
        self._use_1904_windowing = None if value is None else bool(value)

    @property
    def document_uses_1904_windowing(self) -> bool:
        self._assert_not_closed()
        return self._backend.document_uses_1904_windowing

    def read(self, handler: EventHandler) -> None:
        """
        Traverse the whole workbook once, emitting events on ``handler``.

        Raises:
            IllegalReaderStateError: The reader was already read or is closed.
            WorkbookProcessError: The backend or the handler failed.
        """
        if handler is None:
            raise TypeError("handler must not be None")
        self._assert_open("read")

        use_1904_windowing = self._use_1904_windowing
        if use_1904_windowing is None:
            use_1904_windowing = self._backend.document_uses_1904_windowing

        self._state = ReaderState.READING
        self._dispatching = True
        try:
            completed = self._dispatch(handler, use_1904_windowing)
        except WorkbookError:
            raise
        except Exception as exc:
            raise WorkbookProcessError(
                f"Failed to read workbook [{self._source}]", cause=exc
            ) from exc
        finally:
            self._dispatching = False

        if completed:
            logger.info("Read %s workbook [%s]", self.backend_kind.value, self._source)

    def cancel(self) -> None:
        """
        Request the running ``read()`` to stop at its next checkpoint. Only
        valid while reading, typically from within an event callback.
        """
        self._assert_not_closed()
        if not self._dispatching:
            raise IllegalReaderStateError(
                f"This '{type(self).__name__}' is not being read"
            )
        self._cancel_requested = True

    def close(self) -> None:
        """Release the underlying resources. Safe to call more than once."""
        if self._state is ReaderState.CLOSED:
            return
        self._state = ReaderState.CLOSED
        try:
            self._clean_action()
        except Exception as exc:
            raise WorkbookError(
                "Exception encountered when closing the workbook", cause=exc
            ) from exc

    def __enter__(self) -> "WorkbookEventReader":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(backend={self.backend_kind.value}, "
            f"state={self._state.value}, source={self._source!r})"
        )

    def _dispatch(self, handler: EventHandler, use_1904_windowing: bool) -> bool:
        handler.on_start_document()

        sheets = self._backend.iter_sheets(use_1904_windowing)
        for sheet_index, sheet in enumerate(sheets):
            if self._checkpoint(handler):
                return False
            logger.debug(f"Reading sheet: [{sheet.name}]")
            handler.on_start_sheet(sheet_index, sheet.name)

            for row_num, cells in sheet.rows:
                populated = [(col, value) for col, value in cells if not value.is_null]
                if not populated:
                    continue

                if self._checkpoint(handler):
                    return False
                handler.on_start_row(sheet_index, row_num)
                for column_num, cell_value in populated:
                    if self._checkpoint(handler):
                        return False
                    handler.on_handle_cell(sheet_index, row_num, column_num, cell_value)
                handler.on_end_row(sheet_index, row_num)

            handler.on_end_sheet(sheet_index)

        if self._checkpoint(handler):
            return False
        handler.on_end_document()
        return True

    def _checkpoint(self, handler: EventHandler) -> bool:
        """Returns True when dispatching has to stop."""
        if self._state is ReaderState.CLOSED:
            logger.debug("Reader closed during reading, stopping")
            return True
        if self._cancel_requested:
            logger.debug("Cancellation observed, stopping")
            self._state = ReaderState.CANCELLED
            handler.on_read_cancelled()
            return True
        return False

    def _assert_not_closed(self) -> None:
        if self._state is ReaderState.CLOSED:
            raise IllegalReaderStateError(
                f"This '{type(self).__name__}' has been closed"
            )

    def _assert_open(self, action: str) -> None:
        self._assert_not_closed()
        if self._state is not ReaderState.OPEN:
            raise IllegalReaderStateError(
                f"Cannot {action} this '{type(self).__name__}' "
                f"in state '{self._state.value}'"
            )

