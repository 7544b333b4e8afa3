import datetime
import json

from conftest import build_xlsx

from sheet2records.cli import main


def _write(tmp_path, data: bytes, name: str = "book.xlsx"):
    path = tmp_path / name
    path.write_bytes(data)
    return path


def test_cli_outputs_tab_separated_rows(tmp_path, capsys) -> None:
    path = _write(
        tmp_path,
        build_xlsx(
            {
                "First": [["a", None, 3], [None, None, None], [True, 2.5]],
                "Second": [[datetime.date(2020, 1, 1)]],
            }
        ),
    )

    exit_code = main([str(path)])
    captured = capsys.readouterr()

    assert exit_code == 0
    assert captured.out == (
        "# First\n1\ta\t\t3\n3\ttrue\t2.5\n# Second\n1\t2020-01-01\n"
    )


def test_cli_outputs_json_lines_with_flag(tmp_path, capsys) -> None:
    path = _write(tmp_path, build_xlsx({"Only": [["x", 1]]}))

    exit_code = main(["--json", str(path)])
    captured = capsys.readouterr()

    assert exit_code == 0
    lines = [json.loads(line) for line in captured.out.splitlines()]
    assert lines == [
        {
            "sheet": 0,
            "sheet_name": "Only",
            "row": 0,
            "column": 0,
            "type": "text",
            "value": "x",
        },
        {
            "sheet": 0,
            "sheet_name": "Only",
            "row": 0,
            "column": 1,
            "type": "integer",
            "value": 1,
        },
    ]


def test_cli_1904_flag_overrides_windowing(tmp_path, capsys) -> None:
    path = _write(tmp_path, build_xlsx({"Only": [[datetime.date(2020, 1, 1)]]}))

    exit_code = main(["--1904", str(path)])
    captured = capsys.readouterr()

    assert exit_code == 0
    assert captured.out == "# Only\n1\t2024-01-02\n"


def test_cli_reports_open_errors(tmp_path, capsys) -> None:
    path = _write(tmp_path, b"not a workbook", name="notes.xlsx")

    exit_code = main([str(path)])
    captured = capsys.readouterr()

    assert exit_code == 1
    assert captured.out == ""
    assert captured.err.startswith("sheet2records: ")


def test_cli_rejects_unknown_arguments(tmp_path, capsys) -> None:
    exit_code = main(["--binary", str(tmp_path / "book.xlsx")])
    captured = capsys.readouterr()

    assert exit_code == 1
    assert "unsupported arguments: --binary" in captured.err
