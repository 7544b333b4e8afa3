class WorkbookError(Exception):
    """Base class of every error raised by sheet2records."""

    def __init__(self, message: str = None, *, cause: Exception = None):
        super().__init__(message)
        if cause is not None:
            # Use exception chaining if cause is provided
            self.__cause__ = cause


class WorkbookOpenError(WorkbookError):
    """Raised when a workbook cannot be opened; no reader is returned."""


class WorkbookFormatNotSupportedError(WorkbookOpenError):
    """Raised when the content signature matches no supported container."""


class WorkbookPasswordError(WorkbookOpenError):
    """Raised when an encrypted workbook has no password or a wrong one."""


class WorkbookZipBombError(WorkbookOpenError):
    """Raised when a zip container looks like a decompression bomb."""


class IllegalReaderStateError(WorkbookError):
    """Raised when a reader operation is invalid in the reader's current state."""


class WorkbookProcessError(WorkbookError):
    """Raised when the traversal of an opened workbook fails."""


class CellValueCastError(WorkbookError):
    """Raised when a typed accessor does not match the cell's original type."""


class ObjectCreationError(WorkbookError):
    """Raised when a record type cannot be instantiated."""


class WorkbookRecordError(WorkbookError):
    """Base class of errors raised by the record mapping layer."""


class BindingCompileError(WorkbookRecordError):
    """Raised when the binding declarations of a record type are invalid."""


class RecordMappingError(WorkbookRecordError):
    """Raised when a cell cannot be mapped onto its record field."""

    def __init__(
        self,
        message: str = None,
        *,
        sheet_index: int,
        row_num: int,
        column_num: int | None = None,
        cause: Exception = None,
    ):
        self.sheet_index = sheet_index
        self.row_num = row_num
        self.column_num = column_num
        location = f"sheet {sheet_index}, row {row_num}"
        if column_num is not None:
            location += f", column {column_num}"
        if message is None:
            message = "Cannot map record"
        super().__init__(f"{message} [{location}]", cause=cause)
