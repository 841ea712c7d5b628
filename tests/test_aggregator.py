"""
Unit tests for per-model aggregation and daily summary building.
"""

from datetime import datetime, timezone

from ai_usage_range.core.aggregator import (
    aggregate_by_model,
    build_daily_summary,
    merge_daily_summaries,
)
from ai_usage_range.storage.models import DailySummary, LogRecord, ModelTotals, SummaryTotals


GENERATED_AT = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


def record(model: str, input=0, output=0, cache_read=0, cache_create=0) -> LogRecord:
    return LogRecord(
        timestamp=None,
        model=model,
        input=input,
        output=output,
        cache_read=cache_read,
        cache_create=cache_create,
    )


class TestAggregateByModel:
    """Test record accumulation."""

    def test_records_grouped_by_canonical_name(self):
        """Test that model variants collapse into one bucket."""
        aggregated = aggregate_by_model([
            record("claude-opus-4-1-20250805", input=10, output=5),
            record("claude-opus-4-6", input=1, cache_read=2, cache_create=3),
            record("codex", output=7),
        ])

        assert set(aggregated) == {"opus", "codex"}
        opus = aggregated["opus"]
        assert (opus.input, opus.output, opus.cache_read, opus.cache_create) == (11, 5, 2, 3)
        assert opus.total == 21
        assert opus.count == 2
        assert aggregated["codex"].total == 7

    def test_no_records(self):
        assert aggregate_by_model([]) == {}


class TestBuildDailySummary:
    """Test freezing aggregates into a daily summary."""

    def test_summary_fields(self):
        aggregated = aggregate_by_model([
            record("sonnet", input=10, output=20, cache_read=30, cache_create=40),
            record("gpt-5", input=1, output=2),
        ])

        summary = build_daily_summary("2024-01-01", aggregated, GENERATED_AT)

        assert summary.date == "2024-01-01"
        assert summary.schema_version == 2
        assert summary.generated_at == "2024-01-02T03:04:05+00:00"
        assert summary.models["sonnet"] == ModelTotals(
            input=10, output=20, cache_read=30, cache_create=40, total=100, count=1
        )
        assert summary.summary == SummaryTotals(total=103, input=11, output=22, cache=70)

    def test_zero_total_models_dropped(self):
        aggregated = aggregate_by_model([record("haiku"), record("opus", output=1)])

        summary = build_daily_summary("2024-01-01", aggregated, GENERATED_AT)

        assert list(summary.models) == ["opus"]

    def test_empty_day_is_a_valid_summary(self):
        summary = build_daily_summary("2024-01-01", {}, GENERATED_AT)

        assert summary.models == {}
        assert summary.summary == SummaryTotals()

    def test_to_dict_layout(self):
        """Test the persisted document layout."""
        aggregated = aggregate_by_model([record("opus", input=1, cache_read=2)])

        data = build_daily_summary("2024-01-01", aggregated, GENERATED_AT).to_dict()

        assert data == {
            "schemaVersion": 2,
            "date": "2024-01-01",
            "generatedAt": "2024-01-02T03:04:05+00:00",
            "models": {
                "opus": {
                    "input": 1,
                    "output": 0,
                    "cacheRead": 2,
                    "cacheCreate": 0,
                    "total": 3,
                    "count": 1,
                },
            },
            "summary": {"total": 3, "input": 1, "output": 0, "cache": 2},
        }


class TestMergeDailySummaries:
    """Test summing summaries across days."""

    def _summary(self, day: str, models) -> DailySummary:
        return DailySummary(
            date=day,
            generated_at=GENERATED_AT.isoformat(),
            models=models,
            summary=SummaryTotals.from_models(models),
        )

    def test_counters_summed_per_model(self):
        merged = merge_daily_summaries([
            self._summary("2024-01-01", {
                "opus": ModelTotals(input=1, output=2, total=3, count=1),
                "codex": ModelTotals(output=5, total=5, count=2),
            }),
            self._summary("2024-01-02", {
                "opus": ModelTotals(input=10, cache_read=4, total=14, count=3),
            }),
        ])

        assert merged["opus"].input == 11
        assert merged["opus"].output == 2
        assert merged["opus"].cache_read == 4
        assert merged["opus"].total == 17
        assert merged["opus"].count == 4
        assert merged["codex"].count == 2

    def test_merge_of_nothing(self):
        assert merge_daily_summaries([]) == {}
