from __future__ import annotations

import logging
import time
from collections.abc import Mapping

from .config import AppConfig
from .logging_utils import render_fields_block
from .models import ProcessingStats, RunContext
from .run_summary import has_activity, log_run_recap
from .utils import ensure_directory
from .walker import process_all_folders

LOGGER = logging.getLogger(__name__)


class Consolidator:
    def __init__(self, config: AppConfig, *, verbose: bool = False) -> None:
        self.config = config
        self.verbose = verbose

    @staticmethod
    def _format_log(event: str, fields: Mapping[str, object] | None = None) -> str:
        return render_fields_block(event, fields or {}, pad_top=True)

    def build_context(self) -> RunContext:
        settings = self.config.settings
        return RunContext(
            source_dir=settings.source_dir,
            output_dir=settings.output_dir,
            log_dir=settings.log_dir,
        )

    def prepare_directories(self) -> None:
        settings = self.config.settings
        ensure_directory(settings.output_dir)
        ensure_directory(settings.log_dir)

    def run(self) -> ProcessingStats:
        """Consolidate every eligible year folder under the source root.

        Output files are appended to, never truncated, so running twice over
        the same tree writes every row twice.
        """
        settings = self.config.settings
        self.prepare_directories()
        context = self.build_context()
        stats = ProcessingStats()

        LOGGER.debug(
            self._format_log(
                "Consolidation Started",
                {
                    "Source": settings.source_dir,
                    "Output": settings.output_dir,
                    "Minimum Year": settings.min_year,
                },
            )
        )
        if not settings.source_dir.is_dir():
            raise FileNotFoundError(f"Source directory not found: {settings.source_dir}")

        run_started = time.perf_counter()
        process_all_folders(context, settings, stats)
        if not has_activity(stats):
            LOGGER.warning(
                self._format_log(
                    "No Eligible Folders",
                    {"Source": settings.source_dir, "Minimum Year": settings.min_year},
                )
            )
            stats.register_warning(f"No eligible folders under {settings.source_dir}")
        log_run_recap(stats, time.perf_counter() - run_started, verbose=self.verbose)
        return stats
