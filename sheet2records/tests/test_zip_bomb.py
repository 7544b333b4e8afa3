import io
import zipfile

import pytest

from sheet2records.exceptions import WorkbookOpenError, WorkbookZipBombError
from sheet2records.readers.util.zip_bomb import (
    ZipBombLimits,
    validate_workbook_archive,
    validate_zipfile,
)


def _make_zip_bytesio(files: dict[str, bytes]) -> io.BytesIO:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name, data in files.items():
            zf.writestr(name, data)
    buffer.seek(0)
    return buffer


def test_zip_bomb_detection_can_use_low_thresholds__compression_ratio() -> None:
    buffer = _make_zip_bytesio({"xl/worksheets/sheet1.xml": b"A" * 10_000})

    with pytest.raises(WorkbookZipBombError):
        validate_workbook_archive(
            buffer,
            limits=ZipBombLimits(
                max_entry_compression_ratio=10.0,
                max_total_compression_ratio=10.0,
            ),
            source="test",
        )

    validate_workbook_archive(
        buffer,
        limits=ZipBombLimits(
            max_entry_compression_ratio=10_000.0,
            max_total_compression_ratio=10_000.0,
        ),
        source="test",
    )


def test_zip_bomb_detection_can_use_low_thresholds__entry_count() -> None:
    buffer = _make_zip_bytesio(
        {
            "[Content_Types].xml": b"a",
            "xl/workbook.xml": b"b",
            "xl/styles.xml": b"c",
        }
    )

    with pytest.raises(WorkbookZipBombError):
        validate_workbook_archive(
            buffer,
            limits=ZipBombLimits(max_entries=2),
            source="test",
        )


def test_zip_bomb_detection__single_entry_size() -> None:
    buffer = _make_zip_bytesio({"xl/sharedStrings.xml": b"x" * 2_048})

    with zipfile.ZipFile(buffer) as zf:
        with pytest.raises(WorkbookZipBombError) as exc_info:
            validate_zipfile(
                zf,
                limits=ZipBombLimits(
                    max_single_uncompressed_bytes=1_024,
                    max_entry_compression_ratio=10_000.0,
                    max_total_compression_ratio=10_000.0,
                ),
                source="book.xlsx",
            )
    assert "xl/sharedStrings.xml" in str(exc_info.value)
    assert "[book.xlsx]" in str(exc_info.value)


def test_validation_restores_stream_position() -> None:
    buffer = _make_zip_bytesio({"xl/workbook.xml": b"<workbook/>"})
    buffer.seek(5)
    validate_workbook_archive(buffer)
    assert buffer.tell() == 5


def test_unreadable_archive() -> None:
    with pytest.raises(WorkbookOpenError):
        validate_workbook_archive(io.BytesIO(b"PK\x03\x04 broken"))
