"""
Encryption detection and decryption for workbook containers.

Encrypted modern workbooks are not zip archives: Office wraps the encrypted
package into a compound-binary (OLE) container holding ``EncryptionInfo`` and
``EncryptedPackage`` streams. Encrypted legacy workbooks keep their OLE layout
but start the BIFF ``Workbook`` stream with a ``FILEPASS`` record.

Detection only needs olefile. Decryption is delegated to msoffcrypto-tool,
which is imported when a password protected workbook is actually opened.
"""

import io
import logging

import olefile

from sheet2records.exceptions import WorkbookOpenError, WorkbookPasswordError

logger = logging.getLogger(__name__)

_FILEPASS_RECORD_ID = 0x002F
_BOF_RECORD_ID = 0x0809


def _has_ole_encryption_stream(ole: olefile.OleFileIO) -> bool:
    for stream in ("EncryptionInfo", "EncryptedPackage"):
        if ole.exists(stream):
            return True
    return False


def _workbook_stream_name(ole: olefile.OleFileIO) -> str | None:
    # "Book" is used by BIFF5 writers
    for stream_name in ("Workbook", "Book"):
        if ole.exists(stream_name):
            return stream_name
    return None


def _has_filepass_record(data: bytes) -> bool:
    """Scan the BIFF records of the workbook globals substream for FILEPASS."""
    offset = 0
    data_len = len(data)
    while offset + 4 <= data_len:
        record_id = int.from_bytes(data[offset : offset + 2], "little")
        record_len = int.from_bytes(data[offset + 2 : offset + 4], "little")
        if record_id == _FILEPASS_RECORD_ID:
            return True
        # FILEPASS can only appear before the first sheet substream starts
        if offset > 0 and record_id == _BOF_RECORD_ID:
            return False
        offset += 4 + record_len
    return False


def is_ooxml_encrypted(file_like: io.BytesIO) -> bool:
    """Whether the stream is an OLE wrapped, encrypted modern workbook."""
    file_like.seek(0)
    if not olefile.isOleFile(file_like):
        file_like.seek(0)
        return False

    file_like.seek(0)
    with olefile.OleFileIO(file_like) as ole:
        encrypted = _has_ole_encryption_stream(ole)
    file_like.seek(0)
    return encrypted


def is_legacy_workbook(file_like: io.BytesIO) -> bool:
    """Whether the OLE container holds a BIFF workbook stream."""
    file_like.seek(0)
    if not olefile.isOleFile(file_like):
        file_like.seek(0)
        return False

    file_like.seek(0)
    with olefile.OleFileIO(file_like) as ole:
        found = _workbook_stream_name(ole) is not None
    file_like.seek(0)
    return found


def is_xls_encrypted(file_like: io.BytesIO) -> bool:
    """Whether the legacy workbook stream is protected by a FILEPASS record."""
    file_like.seek(0)
    if not olefile.isOleFile(file_like):
        file_like.seek(0)
        return False

    file_like.seek(0)
    with olefile.OleFileIO(file_like) as ole:
        stream_name = _workbook_stream_name(ole)
        if not stream_name:
            file_like.seek(0)
            return False
        data = ole.openstream(stream_name).read()

    file_like.seek(0)
    return _has_filepass_record(data)


def decrypt(
    file_like: io.BytesIO, password: str | None, *, source: str | None = None
) -> io.BytesIO:
    """
    Decrypt a password protected workbook into a new in-memory stream.

    Args:
        file_like: The encrypted OLE container.
        password: The password to open the workbook with.
        source: Used in error messages only.

    Raises:
        WorkbookPasswordError: The password is missing or wrong.
        WorkbookOpenError: The container cannot be decrypted.
    """
    location = f" [{source}]" if source else ""
    if password is None:
        raise WorkbookPasswordError(
            f"Workbook is encrypted, a password is required{location}"
        )

    import msoffcrypto
    from msoffcrypto.exceptions import InvalidKeyError
    from msoffcrypto.format.ooxml import OOXMLFile

    file_like.seek(0)
    decrypted = io.BytesIO()
    try:
        office_file = msoffcrypto.OfficeFile(file_like)
        if isinstance(office_file, OOXMLFile):
            office_file.load_key(password=password, verify_password=True)
        else:
            office_file.load_key(password=password)
        office_file.decrypt(decrypted)
    except InvalidKeyError as exc:
        raise WorkbookPasswordError(
            f"Wrong password for encrypted workbook{location}", cause=exc
        ) from exc
    except Exception as exc:
        raise WorkbookOpenError(
            f"Failed to decrypt workbook{location}", cause=exc
        ) from exc

    logger.debug(f"Decrypted {type(office_file).__name__} container{location}")
    decrypted.seek(0)
    return decrypted
