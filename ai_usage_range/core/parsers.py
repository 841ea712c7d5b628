"""
Log line parsers for the supported assistant log formats.

Each parser is stateless and never raises: input that is malformed or
irrelevant yields None.

Formats:
- Stream events: one JSON line per (partial) assistant message carrying
  ``message.usage`` increments.
- Cumulative snapshots: ``token_count`` events carrying absolute session
  counters in ``payload.info.total_token_usage``.
- Snapshot files: whole per-session JSON documents with ``tokenUsage``.
"""

import json
import math
import re
from datetime import datetime, timezone
from enum import Enum
from pathlib import PurePath
from typing import Optional, Union

from .model_names import UNKNOWN_MODEL, normalize_snapshot_model_name
from ai_usage_range.storage.models import CumulativeSnapshot, LogRecord, StreamEvent


SESSION_ID_PATTERN = re.compile(
    r"([0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12})$",
    re.IGNORECASE,
)
UNKNOWN_SESSION_ID = "unknown-codex-session"
CUMULATIVE_MODEL = "codex"


class SourceFormat(Enum):
    """On-disk shapes of assistant usage logs."""
    STREAM_EVENTS = "stream_events"
    CUMULATIVE_SNAPSHOTS = "cumulative_snapshots"
    SNAPSHOT_FILES = "snapshot_files"


ParsedLine = Union[StreamEvent, CumulativeSnapshot, None]


def to_safe_int(value) -> int:
    """Coerce any value to a non-negative integer; invalid input becomes 0."""
    if isinstance(value, bool) or value is None:
        return 0
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return 0
    if not math.isfinite(number):
        return 0
    return max(0, math.floor(number))


def parse_timestamp(value) -> Optional[datetime]:
    """Parse an ISO-8601 string or epoch milliseconds into an aware datetime.

    Naive timestamps are interpreted as UTC.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _load_json_object(line) -> Optional[dict]:
    if not isinstance(line, str) or not line.strip():
        return None
    try:
        data = json.loads(line)
    except (ValueError, RecursionError):
        return None
    return data if isinstance(data, dict) else None


def parse_stream_event(line: str) -> Optional[StreamEvent]:
    """Parse a stream log line carrying per-message usage.

    Args:
        line: Raw JSONL line

    Returns:
        StreamEvent with the raw model name, or None if not a usage line
    """
    data = _load_json_object(line)
    if data is None:
        return None

    message = data.get("message")
    if not isinstance(message, dict):
        return None
    usage = message.get("usage")
    if not isinstance(usage, dict) or not usage:
        return None

    model = message.get("model")
    if not isinstance(model, str) or not model:
        model = UNKNOWN_MODEL

    message_id = message.get("id")
    if not isinstance(message_id, str):
        message_id = None

    return StreamEvent(
        timestamp=parse_timestamp(data.get("timestamp") or message.get("timestamp")),
        model=model,
        message_id=message_id,
        input=to_safe_int(usage.get("input_tokens")),
        output=to_safe_int(usage.get("output_tokens")),
        cache_read=to_safe_int(
            usage.get("cache_read_input_tokens") or usage.get("cache_read_tokens")
        ),
        cache_create=to_safe_int(
            usage.get("cache_creation_input_tokens") or usage.get("cache_creation_tokens")
        ),
    )


def parse_cumulative_snapshot(line: str) -> Optional[CumulativeSnapshot]:
    """Parse a ``token_count`` event into an absolute session snapshot.

    The raw input counter of this format already includes cached input.

    Args:
        line: Raw JSONL line

    Returns:
        CumulativeSnapshot or None
    """
    data = _load_json_object(line)
    if data is None or data.get("type") != "event_msg":
        return None

    payload = data.get("payload")
    if not isinstance(payload, dict) or payload.get("type") != "token_count":
        return None
    info = payload.get("info")
    if not isinstance(info, dict):
        return None
    total_usage = info.get("total_token_usage")
    if not isinstance(total_usage, dict) or not total_usage:
        return None

    input_total = to_safe_int(total_usage.get("input_tokens"))
    output_total = to_safe_int(total_usage.get("output_tokens"))
    cache_read_total = to_safe_int(total_usage.get("cached_input_tokens"))
    total_tokens = to_safe_int(total_usage.get("total_tokens")) or (
        input_total + output_total + cache_read_total
    )

    return CumulativeSnapshot(
        timestamp=parse_timestamp(data.get("timestamp")),
        model=CUMULATIVE_MODEL,
        input_total=input_total,
        output_total=output_total,
        cache_read_total=cache_read_total,
        total_tokens=total_tokens,
    )


def parse_line(source_format: SourceFormat, line: str) -> ParsedLine:
    """Dispatch a raw line to the parser of its line-oriented format."""
    if source_format is SourceFormat.STREAM_EVENTS:
        return parse_stream_event(line)
    if source_format is SourceFormat.CUMULATIVE_SNAPSHOTS:
        return parse_cumulative_snapshot(line)
    raise ValueError(f"{source_format.value} is not a line-oriented format")


def extract_session_id(file_path) -> str:
    """Derive a session identity from a cumulative log file name.

    Uses the trailing UUID of the file stem, falling back to the whole stem.
    """
    file_name = PurePath(str(file_path or "")).name
    stem = re.sub(r"\.jsonl$", "", file_name, flags=re.IGNORECASE)
    matched = SESSION_ID_PATTERN.search(stem)
    if matched:
        return matched.group(1).lower()
    return (stem or UNKNOWN_SESSION_ID).lower()


def parse_snapshot_file(data, timestamp: Optional[datetime] = None) -> Optional[LogRecord]:
    """Turn a decoded per-session snapshot document into one record.

    The document already holds the latest session state, so no delta logic
    applies.

    Args:
        data: Decoded JSON document
        timestamp: Time to attach to the record (usually the file mtime)

    Returns:
        LogRecord with a canonical model name, or None for zero usage
    """
    if not isinstance(data, dict):
        return None
    usage = data.get("tokenUsage")
    if not isinstance(usage, dict) or not usage:
        return None

    record = LogRecord(
        timestamp=timestamp,
        model=normalize_snapshot_model_name(data.get("model")),
        input=to_safe_int(usage.get("inputTokens")),
        output=to_safe_int(usage.get("outputTokens")),
        cache_read=to_safe_int(usage.get("cacheReadTokens")),
        cache_create=to_safe_int(usage.get("cacheCreationTokens")),
    )
    if record.total <= 0:
        return None
    return record
