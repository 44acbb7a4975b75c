"""Unit discovery: recursive, deterministic scan for files matching a name pattern."""

from __future__ import annotations

import fnmatch
import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


class DiscoveryError(Exception):
    """Raised when the discovery root is missing or cannot be read."""


def matches_pattern(filename: str, pattern: str) -> bool:
    """Return True if *filename* matches the glob *pattern* exactly.

    ``*`` matches any run of characters and ``?`` a single character.
    Matching is case-sensitive on every platform so that discovery gives
    the same answer on every CI runner.
    """
    return fnmatch.fnmatchcase(filename, pattern)


def discover_units(root: str | Path, pattern: str) -> list[Path]:
    """Recursively collect files under *root* whose base name matches *pattern*.

    The walk is depth-first with entries visited in lexicographic order at
    every directory level, so two scans of the same tree always return the
    same list in the same order.  Directories reached through symbolic
    links are followed once; a link back to an already visited directory
    is skipped.

    Args:
        root: Directory to scan.
        pattern: Glob matched against each file's base name (e.g. ``*.test.ts``).

    Returns:
        Matching file paths, each joined onto *root*.

    Raises:
        DiscoveryError: If *root* does not exist, is not a directory or
            cannot be listed.
    """
    root_path = Path(root)
    if not root_path.exists():
        raise DiscoveryError(f"Discovery root does not exist: {root_path}")
    if not root_path.is_dir():
        raise DiscoveryError(f"Discovery root is not a directory: {root_path}")

    units: list[Path] = []
    visited: set[str] = set()

    try:
        _scan(root_path, pattern, units, visited)
    except OSError as exc:
        raise DiscoveryError(f"Cannot read discovery root {root_path}: {exc}") from exc

    logger.debug("Discovered %d units under %s matching %s", len(units), root_path, pattern)
    return units


def _scan(directory: Path, pattern: str, units: list[Path], visited: set[str]) -> None:
    real = os.path.realpath(directory)
    if real in visited:
        logger.debug("Skipping already visited directory %s (-> %s)", directory, real)
        return
    visited.add(real)

    with os.scandir(directory) as it:
        entries = sorted(it, key=lambda e: e.name)

    for entry in entries:
        path = directory / entry.name
        if entry.is_dir():
            try:
                _scan(path, pattern, units, visited)
            except OSError as exc:
                logger.warning("Cannot read directory %s, skipping: %s", path, exc)
        elif entry.is_file() and matches_pattern(entry.name, pattern):
            units.append(path)
