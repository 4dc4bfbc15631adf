from __future__ import annotations

import csv
import logging
from pathlib import Path

import openpyxl
import pytest

from unclaimed_funds import readers
from unclaimed_funds.config import RetryPolicy, Settings
from unclaimed_funds.models import RunContext
from unclaimed_funds.readers import append_csv_file, append_spreadsheet_file, run_with_retry


def make_context(tmp_path: Path, output_name: str = "2024.csv") -> RunContext:
    output_dir = tmp_path / "out"
    output_dir.mkdir(exist_ok=True)
    return RunContext(
        source_dir=tmp_path / "src",
        output_dir=output_dir,
        log_dir=output_dir / "Logs",
        output_file=output_dir / output_name,
        folder_year="2024",
    )


def make_settings(**overrides) -> Settings:
    base = {
        "csv_retry": RetryPolicy(max_attempts=3, delay_seconds=3.0),
        "spreadsheet_retry": RetryPolicy(max_attempts=4, delay_seconds=2.0),
    }
    base.update(overrides)
    return Settings(**base)


def write_workbook(path: Path, sheets: dict[str, list[list[object]]]) -> Path:
    workbook = openpyxl.Workbook()
    default = workbook.active
    for index, (title, rows) in enumerate(sheets.items()):
        worksheet = default if index == 0 else workbook.create_sheet()
        worksheet.title = title
        for row in rows:
            worksheet.append(row)
    workbook.save(path)
    return path


@pytest.fixture
def sleeps(monkeypatch) -> list[float]:
    recorded: list[float] = []
    monkeypatch.setattr(readers.time, "sleep", lambda seconds: recorded.append(seconds))
    return recorded


class TestAppendCsvFile:
    """Test append_csv_file."""

    def test_drops_header_and_keeps_rows(self, tmp_path) -> None:
        """Test the canonical header-stripping scenario."""
        source = tmp_path / "file1.csv"
        source.write_text("Account,Amount\n123,45.00\n", encoding="utf-8")
        context = make_context(tmp_path, "2024 Pension.csv")

        result = append_csv_file(source, context, make_settings())

        assert result.succeeded is True
        assert result.rows_written == 1
        assert result.header_rows == 1
        assert result.attempts == 1
        assert context.output_file.read_text(encoding="utf-8") == "123,45.00\n"

    def test_preserves_order_and_text_verbatim(self, tmp_path) -> None:
        """Test that lines are copied as-is without re-quoting, in source order."""
        source = tmp_path / "data.csv"
        lines = ['1,"Smith, John",10.00', "2,Doe,  20.00 ", '3,"quoted ""x""",30']
        source.write_text("\n".join(lines) + "\n", encoding="utf-8")
        context = make_context(tmp_path)

        append_csv_file(source, context, make_settings())

        assert context.output_file.read_text(encoding="utf-8").splitlines() == lines

    def test_every_line_containing_marker_is_dropped(self, tmp_path) -> None:
        """Test that a header anywhere in the file is dropped, not just the first line."""
        source = tmp_path / "data.csv"
        source.write_text("Account,Amount\n1,2\nAccount,Amount\n3,4\nSavings Account,5\n", encoding="utf-8")
        context = make_context(tmp_path)

        result = append_csv_file(source, context, make_settings())

        assert result.header_rows == 3
        assert context.output_file.read_text(encoding="utf-8").splitlines() == ["1,2", "3,4"]

    def test_header_detection_is_case_sensitive(self, tmp_path) -> None:
        source = tmp_path / "data.csv"
        source.write_text("ACCOUNT,AMOUNT\naccount,1\n", encoding="utf-8")
        context = make_context(tmp_path)

        result = append_csv_file(source, context, make_settings())

        assert result.rows_written == 2
        assert result.header_rows == 0

    def test_appends_without_truncating(self, tmp_path) -> None:
        """Test that existing output content is kept."""
        source = tmp_path / "data.csv"
        source.write_text("9,9\n", encoding="utf-8")
        context = make_context(tmp_path)
        context.output_file.write_text("1,1\n", encoding="utf-8")

        append_csv_file(source, context, make_settings())

        assert context.output_file.read_text(encoding="utf-8") == "1,1\n9,9\n"

    def test_normalizes_line_endings(self, tmp_path) -> None:
        """Test that CRLF sources are written with the configured terminator."""
        source = tmp_path / "data.csv"
        source.write_bytes(b"Account,Amount\r\n1,2\r\n3,4")
        context = make_context(tmp_path)

        append_csv_file(source, context, make_settings(line_terminator="\r\n"))

        assert context.output_file.read_bytes() == b"1,2\r\n3,4\r\n"

    def test_strips_byte_order_mark(self, tmp_path) -> None:
        source = tmp_path / "data.csv"
        source.write_bytes("\ufeff1,2\n".encode("utf-8"))
        context = make_context(tmp_path)

        append_csv_file(source, context, make_settings())

        assert context.output_file.read_text(encoding="utf-8") == "1,2\n"

    def test_logs_header_row(self, tmp_path, caplog) -> None:
        source = tmp_path / "file1.csv"
        source.write_text("Account,Amount\n1,2\n", encoding="utf-8")
        context = make_context(tmp_path)

        with caplog.at_level(logging.INFO):
            append_csv_file(source, context, make_settings())

        assert "file1.csv has a header row." in caplog.text
        assert "Processed 1 rows" in caplog.text

    def test_requires_resolved_output(self, tmp_path) -> None:
        source = tmp_path / "file1.csv"
        source.write_text("1,2\n", encoding="utf-8")
        context = RunContext(source_dir=tmp_path, output_dir=tmp_path, log_dir=tmp_path)

        with pytest.raises(ValueError):
            append_csv_file(source, context, make_settings())


class TestAppendSpreadsheetFile:
    """Test append_spreadsheet_file."""

    def test_concatenates_all_sheets(self, tmp_path) -> None:
        """Test that every sheet is appended in workbook order and headers are dropped."""
        source = write_workbook(
            tmp_path / "book.xlsx",
            {
                "First": [["Account", "Amount"], [123, 45.5], [124, 10]],
                "Second": [["Account Number", "Amount"], [200, 1]],
            },
        )
        context = make_context(tmp_path)

        result = append_spreadsheet_file(source, context, make_settings())

        assert result.succeeded is True
        assert result.sheets == 2
        assert result.rows_written == 3
        assert result.header_rows == 2
        assert context.output_file.read_text(encoding="utf-8").splitlines() == [
            "123,45.5",
            "124,10",
            "200,1",
        ]

    def test_quotes_fields_and_blanks_empty_cells(self, tmp_path) -> None:
        source = write_workbook(
            tmp_path / "book.xlsx",
            {"Sheet": [["Smith, John", None, "note"], ["Doe", None, 7]]},
        )
        context = make_context(tmp_path)

        append_spreadsheet_file(source, context, make_settings())

        with context.output_file.open("r", encoding="utf-8", newline="") as handle:
            rows = list(csv.reader(handle))
        assert rows == [["Smith, John", "", "note"], ["Doe", "", "7"]]
        assert context.output_file.read_text(encoding="utf-8").startswith('"Smith, John",,note')

    def test_header_only_checked_in_first_cell(self, tmp_path) -> None:
        """Test that 'Account' outside the first cell does not mark a header."""
        source = write_workbook(
            tmp_path / "book.xlsx",
            {"Sheet": [["Id", "Account"], [1, "Account closed"]]},
        )
        context = make_context(tmp_path)

        result = append_spreadsheet_file(source, context, make_settings())

        assert result.header_rows == 0
        assert result.rows_written == 2

    def test_appends_after_csv_rows(self, tmp_path) -> None:
        source = write_workbook(tmp_path / "book.xlsx", {"Sheet": [[3, 4]]})
        context = make_context(tmp_path)
        context.output_file.write_text("1,2\n", encoding="utf-8")

        append_spreadsheet_file(source, context, make_settings())

        assert context.output_file.read_text(encoding="utf-8") == "1,2\n3,4\n"

    def test_malformed_workbook_propagates(self, tmp_path) -> None:
        """Test that a non-I/O failure is not retried and escapes the reader."""
        source = tmp_path / "broken.xlsx"
        source.write_text("not a workbook", encoding="utf-8")
        context = make_context(tmp_path)

        with pytest.raises(Exception) as excinfo:
            append_spreadsheet_file(source, context, make_settings())
        assert not isinstance(excinfo.value, OSError)


class TestRetry:
    """Test the bounded retry on transient I/O failures."""

    def test_run_with_retry_succeeds_first_time(self, sleeps) -> None:
        result, attempts = run_with_retry(lambda: 42, policy=RetryPolicy(3, 1.0), file_name="a.csv")

        assert result == 42
        assert attempts == 1
        assert sleeps == []

    def test_run_with_retry_recovers(self, sleeps) -> None:
        calls = {"count": 0}

        def flaky() -> str:
            calls["count"] += 1
            if calls["count"] < 3:
                raise PermissionError("file is in use")
            return "done"

        result, attempts = run_with_retry(flaky, policy=RetryPolicy(5, 1.5), file_name="a.csv")

        assert result == "done"
        assert attempts == 3
        assert sleeps == [1.5, 1.5]

    def test_exhaustion_is_logged_and_not_raised(self, sleeps, caplog) -> None:
        calls = {"count": 0}

        def locked() -> None:
            calls["count"] += 1
            raise OSError("locked")

        with caplog.at_level(logging.INFO):
            result, attempts = run_with_retry(locked, policy=RetryPolicy(4, 0.5), file_name="a.csv")

        assert result is None
        assert attempts == 4
        assert calls["count"] == 4
        assert sleeps == [0.5, 0.5, 0.5]
        assert "Attempt 1 failed to process a.csv: locked" in caplog.text
        assert "Attempt 4 failed to process a.csv: locked" in caplog.text
        assert "Failed to process a.csv after 4 attempts." in caplog.text

    def test_non_io_errors_propagate(self, sleeps) -> None:
        def broken() -> None:
            raise RuntimeError("defect")

        with pytest.raises(RuntimeError):
            run_with_retry(broken, policy=RetryPolicy(3, 1.0), file_name="a.csv")
        assert sleeps == []

    def test_csv_uses_csv_policy(self, tmp_path, monkeypatch, sleeps) -> None:
        """Test that text sources use the text delay and attempt count."""
        source = tmp_path / "locked.csv"
        source.write_text("1,2\n", encoding="utf-8")
        context = make_context(tmp_path)
        calls = {"count": 0}

        def locked(*args, **kwargs):
            calls["count"] += 1
            raise OSError("The process cannot access the file")

        monkeypatch.setattr(readers, "_copy_text_rows", locked)

        result = append_csv_file(source, context, make_settings())

        assert result.succeeded is False
        assert result.attempts == 3
        assert calls["count"] == 3
        assert sleeps == [3.0, 3.0]

    def test_spreadsheet_uses_spreadsheet_policy(self, tmp_path, monkeypatch, sleeps) -> None:
        """Test that spreadsheet sources use their own, independent delay and attempt count."""
        source = tmp_path / "locked.xlsx"
        source.write_text("", encoding="utf-8")
        context = make_context(tmp_path)

        def locked(*args, **kwargs):
            raise OSError("locked")

        monkeypatch.setattr(readers, "_copy_workbook_rows", locked)

        result = append_spreadsheet_file(source, context, make_settings())

        assert result.succeeded is False
        assert result.attempts == 4
        assert sleeps == [2.0, 2.0, 2.0]
