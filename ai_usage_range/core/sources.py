"""
Per-format scan pipelines.

Each pipeline collects one assistant's log files for a window, parses them
and reduces them to records that count every logical unit of work at most
once:

- Stream events are deduplicated per message, keeping the final state.
- Cumulative snapshots are reduced to per-session deltas across the window
  start.
- Snapshot files contribute one record per session file.
"""

import asyncio
import json
import logging
import os
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .collector import ScanResult, collect_files, read_lines
from .parsers import (
    SourceFormat,
    extract_session_id,
    parse_line,
    parse_snapshot_file,
)
from ai_usage_range.config.loader import SourceConfig, UsageConfig
from ai_usage_range.storage.models import (
    ZERO_SNAPSHOT,
    CumulativeSnapshot,
    LogRecord,
    StreamEvent,
)

logger = logging.getLogger(__name__)

FileLines = Tuple[str, List[str]]

SNAPSHOT_FILE_SUFFIX = ".settings.json"


def select_latest_stream_events(
    files: Iterable[FileLines],
    start: datetime,
    end: datetime,
) -> List[LogRecord]:
    """Keep one record per message identity inside ``[start, end)``.

    Assistants re-emit growing partial usage for the same message, so only
    the latest event per message counts. On an exact timestamp tie the event
    seen later in the scan wins. Events without a message id are keyed by
    their file and line index and never collapse with anything else.

    Args:
        files: (path, lines) pairs in listing order
        start: Window start (inclusive)
        end: Window end (exclusive)

    Returns:
        Deduplicated records in first-seen order
    """
    latest: Dict[str, Tuple[StreamEvent, int]] = {}
    scan_order = 0

    for path, lines in files:
        for index, line in enumerate(lines):
            event = parse_line(SourceFormat.STREAM_EVENTS, line)
            if event is None or event.timestamp is None:
                continue
            if not (start <= event.timestamp < end):
                continue

            scan_order += 1
            key = event.message_id or f"{path}:{index}"
            current = latest.get(key)
            if current is None or _is_later_event(event, scan_order, current):
                latest[key] = (event, scan_order)

    return [event.to_record() for event, _ in latest.values()]


def _is_later_event(event: StreamEvent, order: int, current: Tuple[StreamEvent, int]) -> bool:
    current_event, current_order = current
    if event.timestamp != current_event.timestamp:
        return event.timestamp > current_event.timestamp
    return order > current_order


def pick_max_snapshot(
    current: Optional[CumulativeSnapshot],
    incoming: CumulativeSnapshot,
) -> CumulativeSnapshot:
    """Keep the snapshot with the larger total; ties prefer the later one."""
    if current is None:
        return incoming
    if incoming.total_tokens > current.total_tokens:
        return incoming
    if (
        incoming.total_tokens == current.total_tokens
        and incoming.timestamp > current.timestamp
    ):
        return incoming
    return current


def compute_session_deltas(
    files: Iterable[FileLines],
    start: datetime,
    end: datetime,
) -> List[LogRecord]:
    """Reduce cumulative session snapshots to the usage inside a window.

    For every session the largest snapshot before the window is subtracted
    from the largest snapshot inside it, counter by counter. Sessions with
    no snapshot inside the window, or with no positive delta, are dropped.

    Args:
        files: (path, lines) pairs; the session is derived from the path
        start: Window start (inclusive)
        end: Window end (exclusive)

    Returns:
        One record per contributing session
    """
    # session id -> [before window, in window]
    sessions: Dict[str, List[Optional[CumulativeSnapshot]]] = {}

    for path, lines in files:
        state = sessions.setdefault(extract_session_id(path), [None, None])
        for line in lines:
            snapshot = parse_line(SourceFormat.CUMULATIVE_SNAPSHOTS, line)
            if snapshot is None or snapshot.timestamp is None:
                continue
            if snapshot.timestamp < start:
                state[0] = pick_max_snapshot(state[0], snapshot)
            elif snapshot.timestamp < end:
                state[1] = pick_max_snapshot(state[1], snapshot)

    records = []
    for before, in_window in sessions.values():
        if in_window is None:
            continue
        record = snapshot_delta(before or ZERO_SNAPSHOT, in_window)
        if record.total > 0:
            records.append(record)
    return records


def snapshot_delta(before: CumulativeSnapshot, after: CumulativeSnapshot) -> LogRecord:
    """Difference of two snapshots of one session as a record.

    The raw input counter includes cached input, so cached tokens are split
    out of it before reporting.
    """
    delta_input_total = max(0, after.input_total - before.input_total)
    delta_output = max(0, after.output_total - before.output_total)
    delta_cache_read = max(0, after.cache_read_total - before.cache_read_total)

    return LogRecord(
        timestamp=after.timestamp,
        model=after.model,
        input=max(0, delta_input_total - delta_cache_read),
        output=delta_output,
        cache_read=delta_cache_read,
        cache_create=0,
    )


class UsageScanner:
    """Runs the scan pipelines against the configured log directories.

    Collaborators are injectable so tests can replace disk access.
    """

    def __init__(
        self,
        config: UsageConfig,
        collect_fn: Callable[..., ScanResult] = collect_files,
        read_lines_fn: Callable[..., List[str]] = read_lines,
        path_exists_fn: Callable[..., bool] = os.path.exists,
    ):
        self.config = config
        self._collect_fn = collect_fn
        self._read_lines_fn = read_lines_fn
        self._path_exists_fn = path_exists_fn

    async def scan(self, source_format: SourceFormat, start: datetime, end: datetime) -> List[LogRecord]:
        """Run the pipeline of one source format over a window."""
        if source_format is SourceFormat.STREAM_EVENTS:
            return await self.scan_stream_logs(start, end)
        if source_format is SourceFormat.CUMULATIVE_SNAPSHOTS:
            return await self.scan_cumulative_logs(start, end)
        if source_format is SourceFormat.SNAPSHOT_FILES:
            return await self.scan_snapshot_files(start, end)
        raise ValueError(f"Unsupported source format: {source_format}")

    async def scan_stream_logs(self, start: datetime, end: datetime) -> List[LogRecord]:
        files = await asyncio.to_thread(
            self._load_line_files, self.config.stream_logs, start, end
        )
        return select_latest_stream_events(files, start, end)

    async def scan_cumulative_logs(self, start: datetime, end: datetime) -> List[LogRecord]:
        files = await asyncio.to_thread(
            self._load_line_files, self.config.cumulative_logs, start, end
        )
        return compute_session_deltas(files, start, end)

    async def scan_snapshot_files(self, start: datetime, end: datetime) -> List[LogRecord]:
        return await asyncio.to_thread(self._load_snapshot_records, start, end)

    def _collect(self, source: SourceConfig, start: datetime, end: datetime, suffix: str) -> ScanResult:
        if not source.enabled or not self._path_exists_fn(source.path):
            return ScanResult()
        scan_result = self._collect_fn(
            source.path,
            start,
            end,
            suffix=suffix,
            max_depth=self.config.scan.max_depth,
            max_files=self.config.scan.max_files,
        )
        logger.debug(
            "Scanned %s: %d of %d matching files",
            source.path, scan_result.scanned_count, scan_result.total_matched,
        )
        return scan_result

    def _load_line_files(self, source: SourceConfig, start: datetime, end: datetime) -> List[FileLines]:
        scan_result = self._collect(source, start, end, ".jsonl")
        return [
            (str(collected.path), self._read_lines_fn(collected.path))
            for collected in scan_result.files
        ]

    def _load_snapshot_records(self, start: datetime, end: datetime) -> List[LogRecord]:
        scan_result = self._collect(self.config.snapshot_files, start, end, SNAPSHOT_FILE_SUFFIX)
        records = []
        for collected in scan_result.files:
            try:
                data = json.loads("\n".join(self._read_lines_fn(collected.path)))
            except ValueError:
                logger.debug("Skipping unparsable snapshot file %s", collected.path)
                continue
            record = parse_snapshot_file(data, timestamp=collected.mtime)
            if record is not None:
                records.append(record)
        return records
