from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Sequence, TextIO

import sheet2records
from sheet2records.readers.abstract_reader import EventHandler
from sheet2records.readers.cell_value import CellValue
from sheet2records.serialization import serialize_cell


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sheet2records",
        description=(
            "Stream the cells of an .xls or .xlsx workbook to stdout as "
            "tab-separated rows (or JSON lines with --json)."
        ),
    )
    parser.add_argument(
        "path",
        type=Path,
        help="Path to the workbook to read.",
    )
    parser.add_argument(
        "--password",
        default=None,
        help="Password of an encrypted workbook.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Emit one JSON object per cell instead of tab-separated rows.",
    )
    parser.add_argument(
        "--1904",
        dest="use_1904",
        action="store_true",
        help="Use the 1904 date system regardless of the workbook setting.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log reading progress to stderr.",
    )
    return parser


def _format_text(cell_value: CellValue) -> str:
    text = cell_value.lenient().text_value()
    return text.replace("\t", " ").replace("\r", " ").replace("\n", " ")


class _TextPrinter(EventHandler):
    """Prints a '# sheet' header per sheet and one tab-separated line per row."""

    def __init__(self, out: TextIO):
        self._out = out
        self._row: dict[int, str] = {}

    def on_start_sheet(self, sheet_index: int, sheet_name: str) -> None:
        self._out.write(f"# {sheet_name}\n")

    def on_start_row(self, sheet_index: int, row_num: int) -> None:
        self._row = {}

    def on_handle_cell(
        self, sheet_index: int, row_num: int, column_num: int, cell_value: CellValue
    ) -> None:
        self._row[column_num] = _format_text(cell_value)

    def on_end_row(self, sheet_index: int, row_num: int) -> None:
        last_column = max(self._row)
        line = "\t".join(self._row.get(col, "") for col in range(last_column + 1))
        self._out.write(f"{row_num + 1}\t{line}\n")


class _JsonPrinter(EventHandler):
    """Prints one JSON object per populated cell."""

    def __init__(self, out: TextIO):
        self._out = out
        self._sheet_name: str | None = None

    def on_start_sheet(self, sheet_index: int, sheet_name: str) -> None:
        self._sheet_name = sheet_name

    def on_handle_cell(
        self, sheet_index: int, row_num: int, column_num: int, cell_value: CellValue
    ) -> None:
        payload = {
            "sheet": sheet_index,
            "sheet_name": self._sheet_name,
            "row": row_num,
            "column": column_num,
            **serialize_cell(cell_value),
        }
        json.dump(payload, self._out)
        self._out.write("\n")


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    try:
        args, unknown = parser.parse_known_args(argv)
    except SystemExit as exc:
        code = exc.code if isinstance(exc.code, int) else 1
        return code

    if unknown:
        unknown_str = " ".join(unknown)
        print(
            f"sheet2records: warning: unsupported arguments: {unknown_str}",
            file=sys.stderr,
        )
        return 1

    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            stream=sys.stderr,
            format="%(levelname)s %(name)s: %(message)s",
        )

    try:
        printer = _JsonPrinter(sys.stdout) if args.json else _TextPrinter(sys.stdout)
        with sheet2records.open_workbook(args.path, args.password) as reader:
            if args.use_1904:
                reader.use_1904_windowing = True
            reader.read(printer)
        return 0
    except Exception as exc:
        print(f"sheet2records: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
