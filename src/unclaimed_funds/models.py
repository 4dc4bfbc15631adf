from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, List, Optional

from .classifier import Category


@dataclass(frozen=True, slots=True)
class RunContext:
    source_dir: Path
    output_dir: Path
    log_dir: Path
    output_file: Optional[Path] = None
    folder_year: Optional[str] = None

    def with_target(self, output_file: Path, folder_year: Optional[str] = None) -> "RunContext":
        year = self.folder_year if folder_year is None else folder_year
        return replace(self, output_file=output_file, folder_year=year)


@dataclass(slots=True)
class SourceFolder:
    path: Path
    year: Optional[str]
    category: Category

    @property
    def name(self) -> str:
        return self.path.name


@dataclass(slots=True)
class FileResult:
    source_path: Path
    output_file: Path
    rows_written: int = 0
    header_rows: int = 0
    sheets: int = 0
    attempts: int = 0
    succeeded: bool = False


@dataclass(slots=True)
class ProcessingStats:
    folders_processed: int = 0
    folders_skipped: int = 0
    processed: int = 0
    skipped: int = 0
    ignored: int = 0
    failed: int = 0
    rows_written: int = 0
    rows_by_output: Dict[str, int] = field(default_factory=dict)
    failed_files: List[str] = field(default_factory=list)
    skipped_details: List[str] = field(default_factory=list)
    ignored_details: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def register_folder(self) -> None:
        self.folders_processed += 1

    def register_folder_skipped(self) -> None:
        self.folders_skipped += 1

    def register_result(self, result: FileResult) -> None:
        if result.succeeded:
            self.processed += 1
            self.rows_written += result.rows_written
            key = result.output_file.name
            self.rows_by_output[key] = self.rows_by_output.get(key, 0) + result.rows_written
            return
        self.failed += 1
        self.failed_files.append(str(result.source_path))
        self.register_error(f"Failed to process {result.source_path.name} after {result.attempts} attempts")

    def register_skipped(self, reason: str) -> None:
        self.skipped += 1
        self.skipped_details.append(reason)

    def register_ignored(self, detail: Optional[str] = None) -> None:
        self.ignored += 1
        if detail:
            self.ignored_details.append(detail)

    def register_warning(self, message: str) -> None:
        if message not in self.warnings:
            self.warnings.append(message)

    def register_error(self, message: str) -> None:
        self.errors.append(message)
