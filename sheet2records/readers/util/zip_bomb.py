import io
import zipfile
from dataclasses import dataclass

from sheet2records.exceptions import WorkbookOpenError, WorkbookZipBombError


@dataclass(frozen=True)
class ZipBombLimits:
    """
    Heuristics for rejecting probable ZIP bombs before openpyxl inflates
    worksheet parts.

    Worksheet XML compresses extremely well, so the ratios are generous; the
    absolute sizes catch the archives that would exhaust memory.
    """

    max_entries: int = 10_000
    max_total_uncompressed_bytes: int = 4 * 1024 * 1024 * 1024  # 4 GiB
    max_single_uncompressed_bytes: int = 1 * 1024 * 1024 * 1024  # 1 GiB
    max_total_compression_ratio: float = 200.0
    max_entry_compression_ratio: float = 500.0


DEFAULT_ZIP_BOMB_LIMITS = ZipBombLimits()


def _reject(message: str, source: str | None) -> WorkbookZipBombError:
    if source:
        message = f"{message} [{source}]"
    return WorkbookZipBombError(message)


def validate_zipfile(
    zf: zipfile.ZipFile,
    *,
    limits: ZipBombLimits = DEFAULT_ZIP_BOMB_LIMITS,
    source: str | None = None,
) -> None:
    """
    Validate the central directory of a workbook archive.

    Only the declared sizes are inspected, nothing is decompressed.

    Raises:
        WorkbookZipBombError: The archive exceeds one of the limits.
    """
    try:
        infos = zf.infolist()
    except Exception as exc:
        raise WorkbookZipBombError(
            "Failed to inspect workbook archive", cause=exc
        ) from exc

    if len(infos) > limits.max_entries:
        raise _reject(
            f"Workbook archive has too many entries "
            f"({len(infos)} > {limits.max_entries})",
            source,
        )

    total_uncompressed = 0
    total_compressed = 0

    for info in infos:
        if info.is_dir():
            continue

        file_size = info.file_size
        compressed_size = info.compress_size

        if file_size > limits.max_single_uncompressed_bytes:
            raise _reject(
                f"Workbook part {info.filename} too large "
                f"({file_size} bytes > {limits.max_single_uncompressed_bytes})",
                source,
            )

        if file_size > 0:
            if compressed_size <= 0:
                raise _reject(
                    f"Workbook part {info.filename} has zero compressed size "
                    f"but {file_size} uncompressed bytes",
                    source,
                )
            ratio = file_size / compressed_size
            if ratio > limits.max_entry_compression_ratio:
                raise _reject(
                    f"Workbook part {info.filename} compression ratio too high "
                    f"({ratio:.1f} > {limits.max_entry_compression_ratio})",
                    source,
                )

        total_uncompressed += file_size
        total_compressed += compressed_size

        if total_uncompressed > limits.max_total_uncompressed_bytes:
            raise _reject(
                f"Workbook archive uncompressed size too large "
                f"({total_uncompressed} bytes > "
                f"{limits.max_total_uncompressed_bytes})",
                source,
            )

    if total_uncompressed > 0 and total_compressed > 0:
        total_ratio = total_uncompressed / total_compressed
        if total_ratio > limits.max_total_compression_ratio:
            raise _reject(
                f"Workbook archive compression ratio too high "
                f"({total_ratio:.1f} > {limits.max_total_compression_ratio})",
                source,
            )


def validate_workbook_archive(
    file_like: io.BytesIO,
    *,
    limits: ZipBombLimits = DEFAULT_ZIP_BOMB_LIMITS,
    source: str | None = None,
) -> None:
    """
    Validate an in-memory workbook archive without keeping it open.

    Restores the original stream position.
    """
    original_pos = file_like.tell()
    try:
        file_like.seek(0)
        try:
            zf = zipfile.ZipFile(file_like, "r")
        except zipfile.BadZipFile as exc:
            raise WorkbookOpenError(
                f"Not a readable workbook archive [{source}]", cause=exc
            ) from exc
        with zf:
            validate_zipfile(zf, limits=limits, source=source)
    finally:
        file_like.seek(original_pos)
