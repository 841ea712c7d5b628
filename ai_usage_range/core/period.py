"""
Live aggregation over named periods.

Unlike range aggregation this never touches the daily cache: the window is
scanned directly on every call.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Optional

from .aggregator import aggregate_by_model
from .orchestrator import RECOMPUTE_FORMATS, ErrorCode, utc_now
from .parsers import SourceFormat
from .sources import UsageScanner
from .timewindow import Period, period_window
from .view import UsageView, build_usage_view


@dataclass(frozen=True)
class PeriodResult:
    """Outcome of a named period aggregation."""
    success: bool
    period: Optional[Period] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    record_count: int = 0
    view: Optional[UsageView] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict:
        if not self.success:
            return {"success": False, "error": self.error}
        data = self.view.to_dict()
        data.update({
            "period": self.period.value,
            "startTime": self.start_time.isoformat(),
            "endTime": self.end_time.isoformat(),
            "recordCount": self.record_count,
        })
        return {"success": True, "data": data}


async def aggregate_period(
    period_name: str,
    scanner: UsageScanner,
    now_fn: Callable[[], datetime] = utc_now,
) -> PeriodResult:
    """Aggregate usage for ``today``, ``week`` or ``month``.

    Snapshot files are included when that source is enabled.

    Args:
        period_name: Name of the period
        scanner: Scanner over the configured log sources
        now_fn: Clock

    Returns:
        PeriodResult; an unknown period fails with INVALID_PERIOD
    """
    try:
        period = Period(period_name)
    except ValueError:
        return PeriodResult(success=False, error=ErrorCode.INVALID_PERIOD.value)

    start, end = period_window(period, now_fn())

    formats = list(RECOMPUTE_FORMATS)
    if scanner.config.snapshot_files.enabled:
        formats.append(SourceFormat.SNAPSHOT_FILES)

    results = await asyncio.gather(
        *(scanner.scan(source_format, start, end) for source_format in formats)
    )
    records = [record for records in results for record in records]

    return PeriodResult(
        success=True,
        period=period,
        start_time=start,
        end_time=end,
        record_count=len(records),
        view=build_usage_view(aggregate_by_model(records)),
    )
