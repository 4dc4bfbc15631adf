from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Sequence

from rich.console import Console

from .banner import build_banner_info, print_startup_banner
from .config import ENV_CONFIG_PATH, AppConfig, ConfigError, apply_overrides, default_config, load_config
from .logging_utils import render_fields_block, run_log
from .processor import Consolidator
from .version import __version__

LOGGER = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="unclaimed-funds",
        description=(
            "Consolidate per-year unclaimed funds CSV and spreadsheet files into one CSV "
            "per year and category (Pension, Group, Survivor)."
        ),
    )
    env_config = os.getenv(ENV_CONFIG_PATH)
    parser.add_argument(
        "--config",
        type=Path,
        default=Path(env_config) if env_config else None,
        help=f"Path to the YAML settings file (env: {ENV_CONFIG_PATH})",
    )
    parser.add_argument("--source-dir", type=Path, default=None, help="Root folder holding the year folders")
    parser.add_argument("--output-dir", type=Path, default=None, help="Folder that receives the consolidated CSVs")
    parser.add_argument("--log-dir", type=Path, default=None, help="Folder for the per-run log file")
    parser.add_argument("--min-year", type=int, default=None, help="Skip year folders before this year")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--no-banner", action="store_true", help="Do not print the startup banner")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def load_app_config(args: argparse.Namespace) -> AppConfig:
    config = load_config(args.config) if args.config else default_config()
    return apply_overrides(
        config,
        source_dir=args.source_dir,
        output_dir=args.output_dir,
        log_dir=args.log_dir,
        min_year=args.min_year,
    )


def run(args: argparse.Namespace, *, console: Console | None = None) -> int:
    console = console or Console()
    try:
        config = load_app_config(args)
    except (ConfigError, OSError) as exc:
        console.print(render_fields_block("Invalid Configuration", {"Detail": exc}, pad_top=False), markup=False)
        return EXIT_CONFIG_ERROR

    level = logging.DEBUG if args.verbose else logging.INFO
    try:
        with run_log(config.settings.log_dir, level=level, console=console) as log_path:
            return _consolidate(config, args, console, log_path)
    except OSError as exc:
        console.print(f"An error occurred: {exc}", markup=False)
        return EXIT_FAILURE


def _consolidate(config: AppConfig, args: argparse.Namespace, console: Console, log_path: Path) -> int:
    if not args.no_banner:
        print_startup_banner(build_banner_info(config, log_path, verbose=args.verbose), console)
    try:
        Consolidator(config, verbose=args.verbose).run()
    except Exception as exc:  # noqa: BLE001
        LOGGER.error("An error occurred: %s", exc)
        LOGGER.debug("Unhandled error detail", exc_info=True)
        return EXIT_FAILURE
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    return run(args)


if __name__ == "__main__":
    sys.exit(main())
