"""Stream the rows of one source file into the current output file.

Both readers share the same retry shape: an ``OSError`` while either file is
open (typically another process holding the source locked) is logged, followed
by a fixed delay, and the whole file is attempted again up to the policy's
attempt limit. Exhaustion is logged and reported through ``FileResult`` rather
than raised; anything other than an ``OSError`` propagates to the caller.
"""

from __future__ import annotations

import csv
import logging
import time
from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

from .config import RetryPolicy, Settings
from .models import FileResult, RunContext
from .spreadsheets import cell_text, open_workbook

LOGGER = logging.getLogger(__name__)

SOURCE_TEXT_ENCODING = "utf-8-sig"

TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (OSError,)

T = TypeVar("T")


def run_with_retry(action: Callable[[], T], *, policy: RetryPolicy, file_name: str) -> tuple[T | None, int]:
    """Call ``action`` until it succeeds or the policy's attempts are used up.

    Returns the action's result (None on exhaustion) and the number of attempts made.
    """
    attempt = 0
    while attempt < policy.max_attempts:
        try:
            return action(), attempt + 1
        except TRANSIENT_ERRORS as exc:
            attempt += 1
            LOGGER.warning("Attempt %d failed to process %s: %s", attempt, file_name, exc)
            if attempt < policy.max_attempts:
                time.sleep(policy.delay_seconds)

    LOGGER.error("  Failed to process %s after %d attempts.", file_name, policy.max_attempts)
    return None, attempt


def _copy_text_rows(
    source: Path,
    output_file: Path,
    *,
    header_marker: str,
    encoding: str,
    line_terminator: str,
) -> tuple[int, int]:
    rows = 0
    headers = 0
    with source.open("r", encoding=SOURCE_TEXT_ENCODING, errors="replace") as reader, output_file.open(
        "a", encoding=encoding, newline=""
    ) as writer:
        for raw_line in reader:
            line = raw_line.rstrip("\r\n")
            if header_marker in line:
                LOGGER.info("  %s has a header row.", source.name)
                headers += 1
                continue
            writer.write(line)
            writer.write(line_terminator)
            rows += 1
    return rows, headers


def _copy_workbook_rows(
    source: Path,
    output_file: Path,
    *,
    header_marker: str,
    encoding: str,
    line_terminator: str,
) -> tuple[int, int, int]:
    rows = 0
    headers = 0
    sheets = 0
    with open_workbook(source) as workbook, output_file.open("a", encoding=encoding, newline="") as handle:
        writer = csv.writer(handle, delimiter=",", lineterminator=line_terminator)
        for sheet_name, sheet_rows in workbook:
            sheets += 1
            LOGGER.info("  Processing sheet %d (%s)...", sheets, sheet_name)
            sheet_count = 0
            for row in sheet_rows:
                first_cell = row[0] if row else None
                if first_cell is not None and header_marker in cell_text(first_cell):
                    LOGGER.info("  %s has a header row.", source.name)
                    headers += 1
                    continue
                writer.writerow([cell_text(value) for value in row])
                sheet_count += 1
            LOGGER.info("  Processed %d rows", sheet_count)
            rows += sheet_count
    return rows, headers, sheets


def append_csv_file(source: Path, context: RunContext, settings: Settings) -> FileResult:
    """Append every non-header line of a delimited text file to the context's output file."""
    output_file = _require_output(context)

    def _copy() -> tuple[int, int]:
        return _copy_text_rows(
            source,
            output_file,
            header_marker=settings.header_marker,
            encoding=settings.encoding,
            line_terminator=settings.line_terminator,
        )

    outcome, attempts = run_with_retry(_copy, policy=settings.csv_retry, file_name=source.name)
    result = FileResult(source_path=source, output_file=output_file, attempts=attempts)
    if outcome is None:
        return result
    result.rows_written, result.header_rows = outcome
    result.succeeded = True
    LOGGER.info("  Processed %d rows", result.rows_written)
    return result


def append_spreadsheet_file(source: Path, context: RunContext, settings: Settings) -> FileResult:
    """Append every non-header row of every sheet in a workbook to the context's output file."""
    output_file = _require_output(context)

    def _copy() -> tuple[int, int, int]:
        return _copy_workbook_rows(
            source,
            output_file,
            header_marker=settings.header_marker,
            encoding=settings.encoding,
            line_terminator=settings.line_terminator,
        )

    outcome, attempts = run_with_retry(_copy, policy=settings.spreadsheet_retry, file_name=source.name)
    result = FileResult(source_path=source, output_file=output_file, attempts=attempts)
    if outcome is None:
        return result
    result.rows_written, result.header_rows, result.sheets = outcome
    result.succeeded = True
    return result


def _require_output(context: RunContext) -> Path:
    if context.output_file is None:
        raise ValueError("Run context has no output file resolved")
    return context.output_file
