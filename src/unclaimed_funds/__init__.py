"""Unclaimed funds consolidation package.

- **classifier**: Year and category rules applied to folder and file names
- **walker**: Year folder traversal and per-file dispatch
- **readers**: Retrying CSV and spreadsheet row copy into the output files
- **spreadsheets**: Workbook access through openpyxl and xlrd
- **processor**: Per-run orchestration used by the CLI
- **logging_utils**: Log block formatting and the scoped per-run log
- **run_summary**: End-of-run recap

The main entry point is the ``Consolidator`` class.
"""

from .processor import Consolidator
from .version import __version__

__all__ = [
    "__version__",
    "Consolidator",
]
