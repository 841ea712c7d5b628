"""
Custom date range aggregation.

Serves each requested day from the daily summary cache when possible and
recomputes it from the raw logs otherwise. A failing day is counted and
skipped; the request only fails when no day at all could be produced.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional

from .aggregator import aggregate_by_model, build_daily_summary, merge_daily_summaries
from .parsers import SourceFormat
from .sources import UsageScanner
from .timewindow import (
    SUPPORTED_TIMEZONE,
    build_date_range,
    day_key_of,
    day_window,
    parse_day_key,
)
from .view import UsageView, build_usage_view
from ai_usage_range.storage.daily_cache import DailySummaryCache
from ai_usage_range.storage.models import DailySummary

logger = logging.getLogger(__name__)

# Formats reduced into every recomputed day, scanned concurrently
RECOMPUTE_FORMATS = (SourceFormat.STREAM_EVENTS, SourceFormat.CUMULATIVE_SNAPSHOTS)


class ErrorCode(Enum):
    """Error codes returned to callers."""
    INVALID_DATE_RANGE = "INVALID_DATE_RANGE"
    INVALID_TIMEZONE = "INVALID_TIMEZONE"
    DATE_OUT_OF_RANGE = "DATE_OUT_OF_RANGE"
    INVALID_PERIOD = "INVALID_PERIOD"
    RECOMPUTE_EMPTY = "RECOMPUTE_EMPTY"
    RECOMPUTE_FAILED = "RECOMPUTE_FAILED"
    AGGREGATE_FAILED = "AGGREGATE_FAILED"


class RecomputeError(Exception):
    """A single day could not be rebuilt from the raw logs."""

    def __init__(self, code: str, message: Optional[str] = None):
        super().__init__(message or code)
        self.code = code


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class RangeMeta:
    """Bookkeeping for how each requested day was served."""
    from_daily_summary_days: int = 0
    recomputed_days: int = 0
    total_days: int = 0
    failed_days: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "fromDailySummaryDays": self.from_daily_summary_days,
            "recomputedDays": self.recomputed_days,
            "totalDays": self.total_days,
            "failedDays": self.failed_days,
        }


@dataclass(frozen=True)
class RangeResult:
    """Outcome of a range aggregation request."""
    success: bool
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    view: Optional[UsageView] = None
    meta: Optional[RangeMeta] = None
    error: Optional[str] = None

    @classmethod
    def failure(cls, error) -> "RangeResult":
        code = error.value if isinstance(error, ErrorCode) else str(error)
        return cls(success=False, error=code)

    def to_dict(self) -> Dict:
        if not self.success:
            return {"success": False, "error": self.error}
        data = self.view.to_dict()
        data.update({
            "period": "custom",
            "startDate": self.start_date,
            "endDate": self.end_date,
        })
        return {"success": True, "data": data, "meta": self.meta.to_dict()}


class DailyRecomputer:
    """Rebuilds one day's summary from the raw assistant logs."""

    def __init__(self, scanner: UsageScanner, now_fn: Callable[[], datetime] = utc_now):
        self._scanner = scanner
        self._now_fn = now_fn

    async def __call__(self, day_key: str) -> DailySummary:
        return await self.recompute(day_key)

    async def recompute(self, day_key: str) -> DailySummary:
        """Scan every recompute format over the day's window and summarize.

        Args:
            day_key: Calendar day in YYYY-MM-DD form

        Returns:
            A fresh DailySummary (possibly with no models)

        Raises:
            RecomputeError: If the day key does not describe a calendar day
        """
        try:
            start, end = day_window(day_key)
        except ValueError as e:
            raise RecomputeError(ErrorCode.RECOMPUTE_FAILED.value, str(e))

        results = await asyncio.gather(
            *(self._scanner.scan(source_format, start, end) for source_format in RECOMPUTE_FORMATS)
        )
        records = [record for records in results for record in records]

        return build_daily_summary(day_key, aggregate_by_model(records), self._now_fn())


class RangeOrchestrator:
    """Aggregates token usage over an inclusive range of past days.

    The cache, the recompute step and the clock are owned by the caller and
    injected here.
    """

    def __init__(
        self,
        cache: DailySummaryCache,
        recompute_fn: Callable[[str], Awaitable[Optional[DailySummary]]],
        now_fn: Callable[[], datetime] = utc_now,
    ):
        self._cache = cache
        self._recompute_fn = recompute_fn
        self._now_fn = now_fn

    def validate(self, start_date, end_date, timezone_name=None) -> Optional[ErrorCode]:
        """Check a request before any I/O.

        The end date must be a past day: today is never cacheable and its
        data is incomplete while the request runs.

        Rules are checked in order: date format, date ordering, time zone,
        then the end date against today.

        Returns:
            The first violated rule's error code, or None if valid
        """
        start_day = parse_day_key(start_date)
        end_day = parse_day_key(end_date)
        if start_day is None or end_day is None or start_day > end_day:
            return ErrorCode.INVALID_DATE_RANGE

        if timezone_name and timezone_name != SUPPORTED_TIMEZONE:
            return ErrorCode.INVALID_TIMEZONE

        if end_date >= day_key_of(self._now_fn()):
            return ErrorCode.DATE_OUT_OF_RANGE

        return None

    async def aggregate_range(self, start_date, end_date, timezone_name=None) -> RangeResult:
        """Aggregate usage for every day from start_date to end_date inclusive.

        Args:
            start_date: First day, YYYY-MM-DD
            end_date: Last day, YYYY-MM-DD, strictly before today
            timezone_name: Optional zone name; only the reporting zone is accepted

        Returns:
            RangeResult with the merged view and per-day bookkeeping
        """
        error = self.validate(start_date, end_date, timezone_name)
        if error is not None:
            return RangeResult.failure(error)

        days = build_date_range(start_date, end_date)
        from_cache = 0
        recomputed = 0
        failed = 0
        last_error: Optional[str] = None
        collected: List[DailySummary] = []

        for day_key in days:
            summary = await self._cache.read(day_key)
            if summary is not None:
                from_cache += 1
                collected.append(summary)
                continue

            try:
                summary = await self._recompute_fn(day_key)
            except RecomputeError as e:
                failed += 1
                last_error = e.code
                logger.warning("Recompute of %s failed: %s", day_key, e)
                continue
            except Exception as e:
                failed += 1
                last_error = str(e) or ErrorCode.RECOMPUTE_FAILED.value
                logger.warning("Recompute of %s failed: %s", day_key, e)
                continue

            if summary is None:
                failed += 1
                last_error = ErrorCode.RECOMPUTE_EMPTY.value
                logger.warning("Recompute of %s produced no summary", day_key)
                continue

            recomputed += 1
            collected.append(summary)
            await self._persist(day_key, summary)

        if not collected:
            return RangeResult.failure(last_error or ErrorCode.AGGREGATE_FAILED)

        return RangeResult(
            success=True,
            start_date=start_date,
            end_date=end_date,
            view=build_usage_view(merge_daily_summaries(collected)),
            meta=RangeMeta(
                from_daily_summary_days=from_cache,
                recomputed_days=recomputed,
                total_days=len(days),
                failed_days=failed,
            ),
        )

    async def _persist(self, day_key: str, summary: DailySummary) -> None:
        # A failed write only costs a future cache hit.
        try:
            await self._cache.write(day_key, summary)
        except Exception as e:
            logger.warning("Could not persist daily summary %s: %s", day_key, e)
