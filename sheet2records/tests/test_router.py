import io
import logging
import unittest
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
import xlrd

from sheet2records import detect_backend, open_workbook
from sheet2records.exceptions import (
    WorkbookFormatNotSupportedError,
    WorkbookOpenError,
    WorkbookPasswordError,
    WorkbookZipBombError,
)
from sheet2records.readers.abstract_reader import BackendKind, ReaderState
from sheet2records.readers.ms_legacy.xls_reader import XlsWorkbookBackend
from sheet2records.readers.util import encryption
from sheet2records.readers.util.zip_bomb import ZipBombLimits
from sheet2records.router import OLE_SIGNATURE

logger = logging.getLogger(__name__)

tc = unittest.TestCase()


def _empty_book():
    return SimpleNamespace(
        nsheets=0,
        datemode=0,
        release_resources=MagicMock(),
        unload_sheet=MagicMock(),
    )


@pytest.fixture
def legacy_container(monkeypatch) -> bytes:
    """Bytes with an OLE signature that the encryption helpers report as .xls"""
    monkeypatch.setattr(encryption, "is_ooxml_encrypted", lambda f: False)
    monkeypatch.setattr(encryption, "is_legacy_workbook", lambda f: True)
    monkeypatch.setattr(encryption, "is_xls_encrypted", lambda f: False)
    return OLE_SIGNATURE + b"\x00" * 504


def test_open_xlsx_from_bytes_path_and_stream(orders_xlsx: bytes, tmp_path) -> None:
    # the extension is irrelevant, only the content signature counts
    path = tmp_path / "orders.xls"
    path.write_bytes(orders_xlsx)

    for source in (orders_xlsx, path, str(path), io.BytesIO(orders_xlsx)):
        with open_workbook(source) as reader:
            tc.assertEqual(BackendKind.MODERN_XML, reader.backend_kind)
            tc.assertEqual(ReaderState.OPEN, reader.state)

    with open_workbook(path) as reader:
        tc.assertEqual(str(path), reader.source)


def test_detect_backend(orders_xlsx: bytes) -> None:
    tc.assertEqual(BackendKind.MODERN_XML, detect_backend(orders_xlsx))
    with pytest.raises(WorkbookFormatNotSupportedError):
        detect_backend(b"%PDF-1.7 not a workbook")


def test_password_for_unencrypted_workbook_is_ignored(orders_xlsx: bytes) -> None:
    with open_workbook(orders_xlsx, password="secret") as reader:
        tc.assertEqual(BackendKind.MODERN_XML, reader.backend_kind)


def test_unsupported_signature() -> None:
    for data in (b"", b"col1,col2\n1,2\n", b"PK\x05\x06" + b"\x00" * 18):
        with pytest.raises(WorkbookFormatNotSupportedError):
            open_workbook(data)


def test_unreadable_sources_fail_as_open_errors(tmp_path) -> None:
    with pytest.raises(WorkbookOpenError) as exc_info:
        open_workbook(tmp_path / "missing.xlsx")
    tc.assertIsInstance(exc_info.value.__cause__, FileNotFoundError)

    with pytest.raises(WorkbookOpenError):
        open_workbook(12345)

    with pytest.raises(WorkbookOpenError):
        open_workbook(io.StringIO("text stream"))


def test_broken_archive_fails_as_open_error() -> None:
    with pytest.raises(WorkbookOpenError):
        open_workbook(b"PK\x03\x04" + b"\x00" * 100)


def test_zip_limits_are_applied(orders_xlsx: bytes) -> None:
    with pytest.raises(WorkbookZipBombError):
        open_workbook(orders_xlsx, zip_limits=ZipBombLimits(max_entries=2))


def test_legacy_container_selects_legacy_backend(
    legacy_container: bytes, monkeypatch
) -> None:
    book = _empty_book()
    monkeypatch.setattr(
        XlsWorkbookBackend, "open", classmethod(lambda cls, f: cls(book))
    )

    tc.assertEqual(BackendKind.LEGACY_BINARY, detect_backend(legacy_container))
    with open_workbook(legacy_container, password="ignored") as reader:
        tc.assertEqual(BackendKind.LEGACY_BINARY, reader.backend_kind)
    book.release_resources.assert_called_once()


def test_legacy_backend_failure_is_wrapped(
    legacy_container: bytes, monkeypatch
) -> None:
    def failing_open(cls, f):
        raise ValueError("corrupt BIFF stream")

    monkeypatch.setattr(XlsWorkbookBackend, "open", classmethod(failing_open))

    with pytest.raises(WorkbookOpenError) as exc_info:
        open_workbook(legacy_container)
    tc.assertIsInstance(exc_info.value.__cause__, ValueError)


def test_ole_container_without_workbook(monkeypatch) -> None:
    monkeypatch.setattr(encryption, "is_ooxml_encrypted", lambda f: False)
    monkeypatch.setattr(encryption, "is_legacy_workbook", lambda f: False)

    with pytest.raises(WorkbookFormatNotSupportedError):
        open_workbook(OLE_SIGNATURE + b"\x00" * 504)


def test_encrypted_legacy_workbook_is_decrypted(
    legacy_container: bytes, monkeypatch
) -> None:
    book = _empty_book()
    seen = {}

    def fake_decrypt(file_like, password, *, source=None):
        seen["password"] = password
        return io.BytesIO(b"decrypted")

    def fake_open(cls, file_like):
        seen["data"] = file_like.getvalue()
        return cls(book)

    monkeypatch.setattr(encryption, "is_xls_encrypted", lambda f: True)
    monkeypatch.setattr(encryption, "decrypt", fake_decrypt)
    monkeypatch.setattr(XlsWorkbookBackend, "open", classmethod(fake_open))

    with open_workbook(legacy_container, "pw") as reader:
        tc.assertEqual(BackendKind.LEGACY_BINARY, reader.backend_kind)
    tc.assertDictEqual({"password": "pw", "data": b"decrypted"}, seen)


def test_unreadable_decrypted_legacy_workbook_is_a_password_error(
    legacy_container: bytes, monkeypatch
) -> None:
    def failing_open(cls, f):
        raise xlrd.XLRDError("Unsupported format, or corrupt file")

    monkeypatch.setattr(encryption, "is_xls_encrypted", lambda f: True)
    monkeypatch.setattr(
        encryption, "decrypt", lambda f, p, *, source=None: io.BytesIO(b"garbage")
    )
    monkeypatch.setattr(XlsWorkbookBackend, "open", classmethod(failing_open))

    with pytest.raises(WorkbookPasswordError) as exc_info:
        open_workbook(legacy_container, "wrong")
    tc.assertIsInstance(exc_info.value.__cause__, xlrd.XLRDError)


def test_written_legacy_workbook_is_detected_by_signature(
    orders_xls: bytes, tmp_path
) -> None:
    # the extension is irrelevant here as well
    path = tmp_path / "orders.xlsx"
    path.write_bytes(orders_xls)

    tc.assertEqual(BackendKind.LEGACY_BINARY, detect_backend(orders_xls))
    with open_workbook(path) as reader:
        tc.assertEqual(BackendKind.LEGACY_BINARY, reader.backend_kind)
        tc.assertFalse(reader.document_uses_1904_windowing)
