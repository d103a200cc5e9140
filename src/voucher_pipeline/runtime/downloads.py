"""Discovery of freshly downloaded workbook files."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from pathlib import Path

logger = logging.getLogger(__name__)

LOCK_FILE_PREFIX = "~$"


def find_latest_file(
    directory: Path,
    extensions: Iterable[str],
    within_minutes: float,
    clock: Callable[[], float] | None = None,
) -> Path | None:
    """Return the most recently modified workbook in *directory*.

    Only regular files with one of *extensions* (case-insensitive) that
    were modified within the last *within_minutes* count.  Office lock
    files (``~$name.xlsx``) are ignored.

    Args:
        directory: Download directory to scan.
        extensions: Accepted suffixes, e.g. ``[".xlsx", ".xls"]``.
        within_minutes: Recency window.
        clock: Injectable wall clock (``time.time`` by default).

    Returns:
        The newest matching file, or ``None``.
    """
    if not directory.is_dir():
        logger.debug("Download directory %s does not exist", directory)
        return None

    suffixes = {ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in extensions}
    cutoff = (clock or time.time)() - within_minutes * 60

    newest: tuple[float, Path] | None = None
    for candidate in directory.iterdir():
        if candidate.name.startswith(LOCK_FILE_PREFIX) or candidate.suffix.lower() not in suffixes:
            continue
        if not candidate.is_file():
            continue
        mtime = candidate.stat().st_mtime
        if mtime < cutoff:
            continue
        if newest is None or mtime > newest[0]:
            newest = (mtime, candidate)

    if newest is None:
        logger.debug("No workbook newer than %.1f minute(s) in %s", within_minutes, directory)
        return None
    return newest[1]
