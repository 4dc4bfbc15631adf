from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .config import AppConfig
from .version import __version__


@dataclass
class BannerInfo:
    version: str
    verbose: bool
    config_path: str | None
    source_dir: str
    output_dir: str
    log_file: str
    min_year: int
    legacy_spreadsheet_year: str | None


def build_banner_info(config: AppConfig, log_file: Path, verbose: bool = False) -> BannerInfo:
    """Build a BannerInfo instance from AppConfig and runtime settings."""
    settings = config.settings
    return BannerInfo(
        version=__version__,
        verbose=verbose,
        config_path=str(config.path) if config.path else None,
        source_dir=str(settings.source_dir),
        output_dir=str(settings.output_dir),
        log_file=str(log_file),
        min_year=settings.min_year,
        legacy_spreadsheet_year=settings.legacy_spreadsheet_year,
    )


def print_startup_banner(info: BannerInfo, console: Console) -> None:
    """Print a styled startup banner showing version and configuration."""
    table = Table(show_header=False, box=None, padding=(0, 1))
    table.add_column("Key", style="cyan bold", no_wrap=True)
    table.add_column("Value", style="white")

    table.add_row("Version", f"[bold]{info.version}[/bold]")
    if info.verbose:
        table.add_row("Mode", "[cyan]VERBOSE[/cyan]")

    table.add_row("Config", Text(info.config_path) if info.config_path else "[dim](built-in defaults)[/dim]")
    table.add_row("Source", Text(info.source_dir))
    table.add_row("Output", Text(info.output_dir))
    table.add_row("Log File", Text(info.log_file))
    table.add_row("Minimum Year", f"[bold]{info.min_year}[/bold]")
    if info.legacy_spreadsheet_year:
        table.add_row("Legacy Year", Text(f"{info.legacy_spreadsheet_year} (top-level spreadsheets skipped)"))

    panel = Panel(
        table,
        title="[bold white]UNCLAIMED FUNDS[/bold white]",
        border_style="blue",
        padding=(1, 2),
    )

    console.print()
    console.print(panel)
    console.print()
