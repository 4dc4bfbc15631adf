"""Year and category classification for source folders and files.

Folder and file names are the only metadata the source tree carries, so every
routing decision is a plain substring or pattern test against a name. The
rules are first-match: the first four-digit token is the year,
and "PENSION" outranks "GROUP" when a folder name mentions both.
"""

from __future__ import annotations

import re
from enum import Enum
from pathlib import Path

YEAR_PATTERN = re.compile(r"\b[0-9]{4}\b")

SURVIVOR_MARKER = "SURVIVOR"


class Category(str, Enum):
    UNCLASSIFIED = ""
    PENSION = " Pension"
    GROUP = " Group"
    SURVIVOR = " Survivor"

    @property
    def suffix(self) -> str:
        return self.value

    @property
    def label(self) -> str:
        return self.value.strip() or "Unclassified"


_CATEGORY_KEYWORDS: tuple[tuple[str, Category], ...] = (
    ("PENSION", Category.PENSION),
    ("GROUP", Category.GROUP),
)


def extract_year(path: str | Path) -> str | None:
    """Return the first standalone four-digit token in ``path``, or None.

    The walker passes only a folder's own name, never its full path, so parent
    directories such as an archive root cannot supply the year.
    """
    match = YEAR_PATTERN.search(str(path))
    if match:
        return match.group(0)
    return None


def classify_category(folder_name: str) -> Category:
    upper = folder_name.upper()
    for keyword, category in _CATEGORY_KEYWORDS:
        if keyword in upper:
            return category
    return Category.UNCLASSIFIED


def is_survivor_file(file_name: str, marker: str = SURVIVOR_MARKER) -> bool:
    return marker.upper() in file_name.upper()


def output_file_name(year: str, category: Category) -> str:
    return f"{year}{category.suffix}".strip() + ".csv"


def file_category(folder_name: str, file_name: str, *, survivor_marker: str = SURVIVOR_MARKER) -> Category:
    """Category for one file: the Survivor override wins over the folder's category."""
    if is_survivor_file(file_name, survivor_marker):
        return Category.SURVIVOR
    return classify_category(folder_name)


def resolve_output_target(
    output_dir: Path,
    year: str,
    folder_name: str,
    file_name: str | None = None,
    *,
    survivor_marker: str = SURVIVOR_MARKER,
) -> Path:
    """Output CSV for a file inside ``folder_name``.

    Without ``file_name`` this is the folder's default target.
    """
    if file_name is None:
        category = classify_category(folder_name)
    else:
        category = file_category(folder_name, file_name, survivor_marker=survivor_marker)
    return output_dir / output_file_name(year, category)
