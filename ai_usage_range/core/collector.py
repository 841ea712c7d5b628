"""
Log file discovery.

Walks an assistant's log directory and selects the files modified inside a
time window. Log availability is best-effort: missing or unreadable
directories and files are skipped rather than reported.
"""

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from ai_usage_range.config.loader import DEFAULT_MAX_DEPTH, DEFAULT_MAX_FILES

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CollectedFile:
    """A candidate log file and its modification time."""
    path: Path
    mtime: datetime


@dataclass(frozen=True)
class ScanResult:
    """Outcome of a bounded directory scan."""
    files: List[CollectedFile] = field(default_factory=list)
    total_matched: int = 0
    truncated: bool = False

    @property
    def scanned_count(self) -> int:
        return len(self.files)


def collect_files(
    root: Path,
    start: datetime,
    end: datetime,
    suffix: str = ".jsonl",
    max_depth: Optional[int] = None,
    max_files: Optional[int] = None,
) -> ScanResult:
    """Collect files under root whose mtime lies in ``[start, end)``.

    Args:
        root: Directory to walk
        start: Window start (inclusive, timezone-aware)
        end: Window end (exclusive, timezone-aware)
        suffix: Required file name suffix
        max_depth: Deepest directory level to descend into (root is 0)
        max_files: Maximum number of files to return

    Returns:
        ScanResult with files sorted most-recent-first
    """
    max_depth = DEFAULT_MAX_DEPTH if max_depth is None else max_depth
    max_files = DEFAULT_MAX_FILES if max_files is None else max_files

    candidates: List[CollectedFile] = []
    _collect_candidates(Path(root), start, end, suffix, max_depth, 0, candidates)

    candidates.sort(key=lambda c: c.mtime, reverse=True)
    truncated = len(candidates) > max_files
    if truncated:
        logger.warning(
            "Log scan of %s truncated: %d files matched, %d kept",
            root, len(candidates), max_files,
        )

    return ScanResult(
        files=candidates[:max_files],
        total_matched=len(candidates),
        truncated=truncated,
    )


def _collect_candidates(
    directory: Path,
    start: datetime,
    end: datetime,
    suffix: str,
    max_depth: int,
    depth: int,
    candidates: List[CollectedFile],
) -> None:
    if depth > max_depth:
        return

    try:
        entries = list(os.scandir(directory))
    except OSError:
        return

    for entry in entries:
        try:
            if entry.is_dir():
                _collect_candidates(
                    Path(entry.path), start, end, suffix, max_depth, depth + 1, candidates
                )
                continue
            if not entry.is_file() or not entry.name.endswith(suffix):
                continue
            mtime = datetime.fromtimestamp(entry.stat().st_mtime, tz=timezone.utc)
        except OSError:
            continue

        # Half-open window [start, end)
        if start <= mtime < end:
            candidates.append(CollectedFile(path=Path(entry.path), mtime=mtime))


def read_lines(path: Path) -> List[str]:
    """Read the lines of a text file; unreadable files yield []."""
    try:
        with open(path, 'r', encoding='utf-8', errors='replace') as f:
            return [line.rstrip("\r\n") for line in f]
    except OSError:
        return []
