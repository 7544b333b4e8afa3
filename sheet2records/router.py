import io
import logging
import os
from pathlib import Path
from typing import Any, BinaryIO

from sheet2records.exceptions import (
    WorkbookFormatNotSupportedError,
    WorkbookOpenError,
    WorkbookPasswordError,
)
from sheet2records.readers.abstract_reader import (
    BackendKind,
    WorkbookBackend,
    WorkbookEventReader,
)
from sheet2records.readers.util.zip_bomb import (
    DEFAULT_ZIP_BOMB_LIMITS,
    ZipBombLimits,
    validate_workbook_archive,
)

logger = logging.getLogger(__name__)

# compound-binary (OLE2) container, used by .xls and by encrypted .xlsx
OLE_SIGNATURE = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"
# local file header of a zip archive, used by .xlsx
ZIP_SIGNATURE = b"PK\x03\x04"

WorkbookSource = str | os.PathLike | bytes | bytearray | BinaryIO


def _get_backend_class(kind: BackendKind) -> Any:
    """Return the backend class for a backend kind (lazy import)."""
    if kind is BackendKind.MODERN_XML:
        from sheet2records.readers.ms_modern.xlsx_reader import XlsxWorkbookBackend

        return XlsxWorkbookBackend
    elif kind is BackendKind.LEGACY_BINARY:
        from sheet2records.readers.ms_legacy.xls_reader import XlsWorkbookBackend

        return XlsWorkbookBackend
    else:
        raise RuntimeError(f"No backend for kind: {kind}")


def _load_source(source: WorkbookSource) -> tuple[io.BytesIO, str | None]:
    """Read the whole source into memory. Returns the buffer and a display name."""
    if isinstance(source, (str, os.PathLike)):
        path = Path(source)
        return io.BytesIO(path.read_bytes()), str(path)
    if isinstance(source, (bytes, bytearray)):
        return io.BytesIO(bytes(source)), None
    if hasattr(source, "read"):
        data = source.read()
        if not isinstance(data, (bytes, bytearray)):
            raise TypeError("Workbook streams must be opened in binary mode")
        return io.BytesIO(bytes(data)), getattr(source, "name", None)
    raise TypeError(f"Unsupported workbook source: {type(source).__name__}")


def _read_signature(file_like: io.BytesIO) -> bytes:
    file_like.seek(0)
    signature = file_like.read(len(OLE_SIGNATURE))
    file_like.seek(0)
    return signature


def _inspect(file_like: io.BytesIO, source: str | None) -> tuple[BackendKind, bool]:
    """
    Identify the container by its content signature.

    :returns the backend kind and whether the container is encrypted
    :raises WorkbookFormatNotSupportedError: No supported container matched
    """
    signature = _read_signature(file_like)

    if signature.startswith(ZIP_SIGNATURE):
        return BackendKind.MODERN_XML, False

    if signature == OLE_SIGNATURE:
        from sheet2records.readers.util.encryption import (
            is_legacy_workbook,
            is_ooxml_encrypted,
            is_xls_encrypted,
        )

        if is_ooxml_encrypted(file_like):
            return BackendKind.MODERN_XML, True
        if is_legacy_workbook(file_like):
            return BackendKind.LEGACY_BINARY, is_xls_encrypted(file_like)
        raise WorkbookFormatNotSupportedError(
            f"Compound-binary container holds no workbook [{source}]"
        )

    raise WorkbookFormatNotSupportedError(
        f"Unrecognized workbook signature {signature[:8].hex(' ')} [{source}]"
    )


def detect_backend(source: WorkbookSource) -> BackendKind:
    """
    Detect which backend reads the given workbook. The content signature is
    inspected, the file name is never considered.

    :raises WorkbookOpenError: The source cannot be read or is not a workbook
    """
    try:
        file_like, name = _load_source(source)
        kind, _ = _inspect(file_like, name)
    except WorkbookOpenError:
        raise
    except Exception as exc:
        raise WorkbookOpenError(
            f"Failed to detect workbook format [{source!r}]", cause=exc
        ) from exc
    return kind


def _unwrap(
    file_like: io.BytesIO,
    password: str | None,
    zip_limits: ZipBombLimits,
    source: str | None,
) -> tuple[BackendKind, io.BytesIO, bool]:
    kind, encrypted = _inspect(file_like, source)
    logger.debug(
        f"Detected backend: {kind.value} (encrypted: {encrypted}) for: {source}"
    )

    if encrypted:
        from sheet2records.readers.util.encryption import decrypt

        file_like = decrypt(file_like, password, source=source)
        if kind is BackendKind.MODERN_XML and not _read_signature(
            file_like
        ).startswith(ZIP_SIGNATURE):
            raise WorkbookFormatNotSupportedError(
                f"Decrypted package is not a workbook archive [{source}]"
            )
    elif password is not None:
        logger.debug(f"Workbook is not encrypted, ignoring password for: {source}")

    if kind is BackendKind.MODERN_XML:
        validate_workbook_archive(file_like, limits=zip_limits, source=source)
    return kind, file_like, encrypted


def _open_backend(
    kind: BackendKind, file_like: io.BytesIO, decrypted: bool, source: str | None
) -> WorkbookBackend:
    try:
        return _get_backend_class(kind).open(file_like)
    except Exception as exc:
        # a wrong RC4 key for a legacy workbook may only surface here
        if decrypted and kind is BackendKind.LEGACY_BINARY:
            raise WorkbookPasswordError(
                f"Decrypted workbook is unreadable, wrong password? [{source}]",
                cause=exc,
            ) from exc
        raise


def open_workbook(
    source: WorkbookSource,
    password: str | None = None,
    *,
    zip_limits: ZipBombLimits = DEFAULT_ZIP_BOMB_LIMITS,
) -> WorkbookEventReader:
    """
    Open a workbook for event based reading.

    The format is always detected from the content signature, never from the
    file extension. Encrypted containers are decrypted in memory with
    ``password``; a password given for an unencrypted workbook is ignored.

    Args:
        source: A file path, the raw bytes, or a binary stream.
        password: Password of an encrypted workbook.
        zip_limits: Limits applied to modern workbook archives.

    Returns:
        A ``WorkbookEventReader`` in state ``OPEN``. The caller owns it and has
        to close it, preferably through ``with``.

    Raises:
        WorkbookOpenError: The workbook cannot be opened. Subclasses tell
            unsupported formats, password and zip bomb failures apart.

    Example:
        >>> import sheet2records
        >>> with sheet2records.open_workbook("report.xlsx") as reader:
        ...     reader.read(handler)
    """
    name = str(source) if isinstance(source, (str, os.PathLike)) else None
    backend: WorkbookBackend | None = None
    try:
        file_like, name = _load_source(source)
        kind, file_like, decrypted = _unwrap(file_like, password, zip_limits, name)
        backend = _open_backend(kind, file_like, decrypted, name)
        return WorkbookEventReader(backend, source=name)
    except Exception as exc:
        if backend is not None:
            backend.close()
        if isinstance(exc, WorkbookOpenError):
            raise
        raise WorkbookOpenError(
            f"Failed to open workbook [{name}]", cause=exc
        ) from exc
