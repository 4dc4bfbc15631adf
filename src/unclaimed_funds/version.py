"""Version detection for packaged and source-tree runs."""

from __future__ import annotations

import os
import re
from importlib import metadata
from pathlib import Path

# Fallback version if nothing else works
_FALLBACK_VERSION = "unknown"

_DISTRIBUTION_NAME = "unclaimed-funds"

# Pattern to match version lines like: ## [1.0.0] - 2024-06-06
_VERSION_PATTERN = re.compile(r"^## \[(\d+\.\d+\.\d+)\]")


def _find_changelog() -> Path | None:
    """Find the CHANGELOG.md file relative to the package or repo root."""
    current_dir = Path(__file__).parent

    candidates = [
        current_dir.parent.parent / "CHANGELOG.md",  # repo root from src/unclaimed_funds/
        current_dir / "CHANGELOG.md",
    ]

    for candidate in candidates:
        if candidate.exists():
            return candidate

    return None


def _get_version_from_changelog() -> str | None:
    changelog_path = _find_changelog()
    if not changelog_path:
        return None

    try:
        with open(changelog_path, encoding="utf-8") as f:
            for line in f:
                match = _VERSION_PATTERN.match(line)
                if match:
                    return match.group(1)
    except OSError:
        return None

    return None


def get_version() -> str:
    """Get the current version string.

    Priority:
    1. BUILD_VERSION environment variable
    2. First released section of CHANGELOG.md
    3. Installed distribution metadata
    4. Fallback to "unknown"
    """
    build_version = os.environ.get("BUILD_VERSION")
    if build_version and build_version.strip():
        return build_version.strip()

    changelog_version = _get_version_from_changelog()
    if changelog_version:
        return changelog_version

    try:
        return metadata.version(_DISTRIBUTION_NAME)
    except metadata.PackageNotFoundError:
        return _FALLBACK_VERSION


__version__ = get_version()
