"""Run recap formatting.

Builds the end-of-run block that lists folder and file counts, rows written
per output file, and any files that could not be processed.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import TYPE_CHECKING, List

from .logging_utils import LogBlockBuilder

if TYPE_CHECKING:
    from .models import ProcessingStats

LOGGER = logging.getLogger(__name__)


def has_activity(stats: ProcessingStats) -> bool:
    """Check if processing stats show any activity.

    Args:
        stats: Processing statistics to check.

    Returns:
        True if any folder was processed or any file was processed, skipped, ignored or failed.
    """
    return bool(
        stats.folders_processed
        or stats.processed
        or stats.skipped
        or stats.ignored
        or stats.failed
        or stats.errors
        or stats.warnings
    )


def summarize_outputs(stats: ProcessingStats) -> List[str]:
    """One line per output file, ordered by file name."""
    lines: List[str] = []
    for name in sorted(stats.rows_by_output):
        count = stats.rows_by_output[name]
        noun = "row" if count == 1 else "rows"
        lines.append(f"{name}: {count} {noun}")
    return lines


def summarize_messages(entries: List[str], *, limit: int = 5) -> List[str]:
    """Summarize messages by grouping duplicates and showing the top ``limit``.

    Args:
        entries: List of message strings to summarize.
        limit: Maximum number of unique messages to show.

    Returns:
        List of summary lines with duplicate counts.
    """
    if not entries:
        return []
    counter = Counter(entries)
    ordered = sorted(counter.items(), key=lambda item: (-item[1], item[0]))
    lines: List[str] = []
    for text, count in ordered[:limit]:
        prefix = f"{count}× " if count > 1 else ""
        lines.append(f"{prefix}{text}")
    remaining = len(ordered) - limit
    if remaining > 0:
        lines.append(f"... {remaining} more (use --verbose for full list)")
    return lines


def format_duration(seconds: float) -> str:
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, remainder = divmod(int(round(seconds)), 60)
    if minutes < 60:
        return f"{minutes}m {remainder:02d}s"
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes:02d}m {remainder:02d}s"


def render_run_recap(stats: ProcessingStats, duration: float, *, verbose: bool = False) -> str:
    builder = LogBlockBuilder("Run Recap")
    builder.add_fields(
        [
            ("Duration", format_duration(duration)),
            ("Folders Processed", stats.folders_processed),
            ("Folders Skipped", stats.folders_skipped),
            ("Files Processed", stats.processed),
            ("Files Skipped", stats.skipped),
            ("Files Ignored", stats.ignored),
            ("Files Failed", stats.failed),
            ("Rows Written", stats.rows_written),
        ]
    )
    builder.add_section("Outputs", summarize_outputs(stats))
    if stats.failed_files:
        builder.add_section("Failed Files", stats.failed_files)
    if stats.warnings:
        builder.add_section("Warnings", summarize_messages(stats.warnings))
    if verbose:
        if stats.skipped_details:
            builder.add_section("Skipped", stats.skipped_details)
        if stats.ignored_details:
            builder.add_section("Ignored", stats.ignored_details)
    return builder.render()


def log_run_recap(stats: ProcessingStats, duration: float, *, verbose: bool = False) -> None:
    level = logging.WARNING if stats.failed else logging.INFO
    LOGGER.log(level, render_run_recap(stats, duration, verbose=verbose))
