"""Directory walk and per-file dispatch.

The source root holds one folder per reporting year. Each year folder may
contain a "Source" subfolder and/or loose files; both are consolidated into
the same per-year, per-category output CSV.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

from .classifier import classify_category, extract_year, resolve_output_target
from .config import Settings
from .logging_utils import render_fields_block
from .models import FileResult, ProcessingStats, RunContext, SourceFolder
from .readers import append_csv_file, append_spreadsheet_file

LOGGER = logging.getLogger(__name__)

CSV_EXTENSION = ".csv"


def iter_child_folders(directory: Path) -> Iterator[Path]:
    for entry in directory.iterdir():
        if entry.is_dir():
            yield entry


def iter_child_files(directory: Path) -> Iterator[Path]:
    for entry in directory.iterdir():
        if entry.is_file():
            yield entry


def folder_skip_reason(folder: SourceFolder, settings: Settings) -> str | None:
    """Return why a year folder should not be traversed, or None to process it."""
    if settings.exclusion_marker in folder.name:
        return f"name contains '{settings.exclusion_marker}'"
    if folder.year is None:
        return "no four-digit year in name"
    if int(folder.year) < settings.min_year:
        return f"year {folder.year} is before {settings.min_year}"
    return None


def describe_folder(path: Path) -> SourceFolder:
    """Classify a year folder by its own name; ancestors of ``path`` are not scanned."""
    return SourceFolder(path=path, year=extract_year(path.name), category=classify_category(path.name))


def is_csv(path: Path) -> bool:
    return path.suffix.upper() == CSV_EXTENSION.upper()


def is_spreadsheet(path: Path, settings: Settings) -> bool:
    return path.suffix.lower() in settings.spreadsheet_extensions


def _file_label(folder: SourceFolder, path: Path) -> str:
    return str(Path(folder.name) / path.name)


def process_file(
    path: Path,
    folder: SourceFolder,
    context: RunContext,
    settings: Settings,
    stats: ProcessingStats,
    *,
    top_level: bool = False,
) -> FileResult | None:
    """Classify one file, resolve its output target and hand it to the matching reader.

    Returns None when the file is skipped without being read.
    """
    label = _file_label(folder, path)
    LOGGER.info("  Processing File... %s", label)

    if settings.empty_marker.upper() in path.name.upper():
        LOGGER.info("  Empty File: %s", label)
        stats.register_skipped(f"Empty file: {label}")
        return None

    if context.folder_year is None:
        raise ValueError(f"No year resolved for {label}")
    output_file = resolve_output_target(
        context.output_dir,
        context.folder_year,
        folder.name,
        path.name,
        survivor_marker=settings.survivor_marker,
    )
    file_context = context.with_target(output_file)

    if is_csv(path):
        result = append_csv_file(path, file_context, settings)
    elif is_spreadsheet(path, settings):
        if top_level and settings.legacy_spreadsheet_year and folder.year == settings.legacy_spreadsheet_year:
            LOGGER.info("  Skipping %s spreadsheet (CSV export used instead): %s", folder.year, label)
            stats.register_skipped(f"Legacy {folder.year} spreadsheet: {label}")
            return None
        result = append_spreadsheet_file(path, file_context, settings)
    else:
        LOGGER.info("  Unsupported file type: %s", label)
        stats.register_ignored(f"Unsupported file type: {label}")
        return None

    stats.register_result(result)
    return result


def process_folder(
    folder_path: Path,
    context: RunContext,
    settings: Settings,
    stats: ProcessingStats,
) -> RunContext | None:
    """Consolidate one year folder.

    Returns the folder-level context (default output target and year), or None
    when the folder was skipped.
    """
    folder = describe_folder(folder_path)
    reason = folder_skip_reason(folder, settings)
    if reason is not None or folder.year is None:
        LOGGER.debug(
            render_fields_block(
                "Skipping Folder",
                {"Folder": folder.name, "Reason": reason},
            )
        )
        stats.register_folder_skipped()
        return None

    default_target = resolve_output_target(context.output_dir, folder.year, folder.name)
    folder_context = context.with_target(default_target, folder.year)

    LOGGER.info("Processing Folder... %s", folder.name)
    LOGGER.debug(
        render_fields_block(
            "Folder Target",
            {
                "Folder": folder.name,
                "Year": folder.year,
                "Category": folder.category.label,
                "Output": default_target,
            },
        )
    )
    stats.register_folder()

    for child in iter_child_folders(folder_path):
        if settings.inclusion_marker not in child.name:
            continue
        for path in iter_child_files(child):
            process_file(path, folder, folder_context, settings, stats)

    for path in iter_child_files(folder_path):
        process_file(path, folder, folder_context, settings, stats, top_level=True)

    return folder_context


def process_all_folders(context: RunContext, settings: Settings, stats: ProcessingStats) -> ProcessingStats:
    """Walk every immediate child folder of the source root."""
    for folder_path in iter_child_folders(context.source_dir):
        process_folder(folder_path, context, settings, stats)
    return stats
