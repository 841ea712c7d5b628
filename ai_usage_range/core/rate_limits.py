"""
Rate limit snapshot lookup.

Finds the most recent ``rate_limits`` block reported in cumulative session
logs (primary window and weekly window).
"""

import json
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from .collector import ScanResult, collect_files, read_lines
from ai_usage_range.config.loader import UsageConfig


MAX_CANDIDATE_FILES = 40
_EARLIEST = datetime.min.replace(tzinfo=timezone.utc)
_LATEST = datetime.max.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class RateLimitSnapshot:
    """Usage of the primary and weekly rate limit windows."""
    primary_used_percent: Optional[float]
    weekly_used_percent: Optional[float]
    primary_remaining_percent: Optional[float]
    weekly_remaining_percent: Optional[float]
    primary_resets_at: Optional[object]
    weekly_resets_at: Optional[object]
    used_tokens: Optional[float]
    source_file: str

    def to_dict(self) -> Dict:
        return {
            "primaryUsedPercent": self.primary_used_percent,
            "weeklyUsedPercent": self.weekly_used_percent,
            "primaryRemainingPercent": self.primary_remaining_percent,
            "weeklyRemainingPercent": self.weekly_remaining_percent,
            "primaryResetsAt": self.primary_resets_at,
            "weeklyResetsAt": self.weekly_resets_at,
            "usedTokens": self.used_tokens,
            "sourceFile": self.source_file,
        }


@dataclass(frozen=True)
class RateLimitResult:
    success: bool
    snapshot: Optional[RateLimitSnapshot] = None
    error_code: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict:
        if self.success:
            return {"success": True, "data": self.snapshot.to_dict()}
        return {"success": False, "errorCode": self.error_code, "error": self.error}


def _finite(value) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def _dig(data, *keys):
    for key in keys:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def parse_rate_limits(line: str, source_file: str) -> Optional[RateLimitSnapshot]:
    """Extract a rate limit snapshot from a ``token_count`` log line."""
    try:
        parsed = json.loads(line)
    except (ValueError, RecursionError):
        return None
    if not isinstance(parsed, dict) or parsed.get("type") != "event_msg":
        return None
    payload = parsed.get("payload")
    if not isinstance(payload, dict) or payload.get("type") != "token_count":
        return None
    rate_limits = payload.get("rate_limits")
    if not isinstance(rate_limits, dict) or not rate_limits:
        return None

    primary_used = _finite(_dig(rate_limits, "primary", "used_percent"))
    weekly_used = _finite(_dig(rate_limits, "secondary", "used_percent"))

    return RateLimitSnapshot(
        primary_used_percent=primary_used,
        weekly_used_percent=weekly_used,
        primary_remaining_percent=None if primary_used is None else max(0.0, 100 - primary_used),
        weekly_remaining_percent=None if weekly_used is None else max(0.0, 100 - weekly_used),
        primary_resets_at=_dig(rate_limits, "primary", "resets_at"),
        weekly_resets_at=_dig(rate_limits, "secondary", "resets_at"),
        used_tokens=_finite(_dig(payload, "info", "total_token_usage", "total_tokens")),
        source_file=source_file,
    )


def read_rate_limit_snapshot(
    config: UsageConfig,
    collect_fn: Callable[..., ScanResult] = collect_files,
    read_lines_fn: Callable[..., List[str]] = read_lines,
) -> RateLimitResult:
    """Return the newest rate limit snapshot across recent session logs.

    The newest files are searched first and each file from its last line
    backwards.

    Args:
        config: Usage configuration (the cumulative log source is searched)
        collect_fn: File collector
        read_lines_fn: Line reader

    Returns:
        RateLimitResult with NO_SESSION_FILES or NO_RATE_LIMIT_EVENT on miss
    """
    scan_result = collect_fn(
        config.cumulative_logs.path,
        _EARLIEST,
        _LATEST,
        suffix=".jsonl",
        max_depth=config.scan.max_depth,
        max_files=MAX_CANDIDATE_FILES,
    )
    if not scan_result.files:
        return RateLimitResult(
            success=False,
            error_code="NO_SESSION_FILES",
            error="No session log files found",
        )

    for collected in scan_result.files:
        for line in reversed(read_lines_fn(collected.path)):
            snapshot = parse_rate_limits(line, str(collected.path))
            if snapshot is not None:
                return RateLimitResult(success=True, snapshot=snapshot)

    return RateLimitResult(
        success=False,
        error_code="NO_RATE_LIMIT_EVENT",
        error="No rate_limits data found in recent session logs",
    )
