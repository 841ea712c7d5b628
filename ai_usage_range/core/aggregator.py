"""
Per-model token aggregation.

Accumulates normalized records into per-model totals and converts between
running aggregates and persisted daily summaries.
"""

from datetime import datetime
from typing import Dict, Iterable

from .model_names import normalize_model_name
from ai_usage_range.storage.models import (
    DailySummary,
    LogRecord,
    ModelAggregate,
    SummaryTotals,
)


def aggregate_by_model(records: Iterable[LogRecord]) -> Dict[str, ModelAggregate]:
    """Sum record counters per canonical model name.

    Args:
        records: Records already deduplicated for their window

    Returns:
        Mapping of canonical model name to its aggregate
    """
    aggregated: Dict[str, ModelAggregate] = {}
    for record in records:
        name = normalize_model_name(record.model)
        if name not in aggregated:
            aggregated[name] = ModelAggregate(name=name)
        aggregated[name].add_record(record)
    return aggregated


def build_daily_summary(
    day_key: str,
    aggregated: Dict[str, ModelAggregate],
    generated_at: datetime,
) -> DailySummary:
    """Freeze a day's aggregates into a persistable summary.

    Models with no tokens are left out.
    """
    models = {
        name: aggregate.to_totals()
        for name, aggregate in aggregated.items()
        if aggregate.total > 0
    }
    return DailySummary(
        date=day_key,
        generated_at=generated_at.isoformat(),
        models=models,
        summary=SummaryTotals.from_models(models),
    )


def merge_daily_summaries(summaries: Iterable[DailySummary]) -> Dict[str, ModelAggregate]:
    """Sum every per-model counter across several daily summaries."""
    merged: Dict[str, ModelAggregate] = {}
    for summary in summaries:
        for name, totals in summary.models.items():
            if name not in merged:
                merged[name] = ModelAggregate(name=name)
            merged[name].add_totals(totals)
    return merged
