"""
Data models for storage layer.

Defines parsed log entries, per-model accumulators and the persisted
daily summary document.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional


DAILY_SUMMARY_SCHEMA_VERSION = 2


@dataclass(frozen=True)
class LogRecord:
    """Normalized token usage of one unit of work.

    Produced by the source scanners and consumed immediately by the
    aggregator; never persisted.
    """
    timestamp: Optional[datetime]
    model: str
    input: int = 0
    output: int = 0
    cache_read: int = 0
    cache_create: int = 0

    @property
    def total(self) -> int:
        """Total tokens (input + output + cache read + cache create)."""
        return self.input + self.output + self.cache_read + self.cache_create


@dataclass(frozen=True)
class StreamEvent:
    """Per-message usage event parsed from a stream log line."""
    timestamp: Optional[datetime]
    model: str
    message_id: Optional[str]
    input: int = 0
    output: int = 0
    cache_read: int = 0
    cache_create: int = 0

    def to_record(self) -> LogRecord:
        return LogRecord(
            timestamp=self.timestamp,
            model=self.model,
            input=self.input,
            output=self.output,
            cache_read=self.cache_read,
            cache_create=self.cache_create,
        )


@dataclass(frozen=True)
class CumulativeSnapshot:
    """Absolute running counters of one session at a point in time.

    This is not an increment: consumption inside a window is the
    difference between two snapshots of the same session.
    """
    timestamp: Optional[datetime]
    model: str
    input_total: int
    output_total: int
    cache_read_total: int
    total_tokens: int


ZERO_SNAPSHOT = CumulativeSnapshot(
    timestamp=None,
    model="",
    input_total=0,
    output_total=0,
    cache_read_total=0,
    total_tokens=0,
)


@dataclass(frozen=True)
class ModelTotals:
    """Persisted token counters of one model for one day."""
    input: int = 0
    output: int = 0
    cache_read: int = 0
    cache_create: int = 0
    total: int = 0
    count: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "input": self.input,
            "output": self.output,
            "cacheRead": self.cache_read,
            "cacheCreate": self.cache_create,
            "total": self.total,
            "count": self.count,
        }


@dataclass
class ModelAggregate:
    """Mutable per-model accumulator keyed by canonical model name."""
    name: str
    input: int = 0
    output: int = 0
    cache_read: int = 0
    cache_create: int = 0
    total: int = 0
    count: int = 0

    def add_record(self, record: LogRecord) -> None:
        self.input += record.input
        self.output += record.output
        self.cache_read += record.cache_read
        self.cache_create += record.cache_create
        self.total += record.total
        self.count += 1

    def add_totals(self, totals: ModelTotals) -> None:
        self.input += totals.input
        self.output += totals.output
        self.cache_read += totals.cache_read
        self.cache_create += totals.cache_create
        self.total += totals.total
        self.count += totals.count

    def to_totals(self) -> ModelTotals:
        return ModelTotals(
            input=self.input,
            output=self.output,
            cache_read=self.cache_read,
            cache_create=self.cache_create,
            total=self.total,
            count=self.count,
        )


@dataclass(frozen=True)
class SummaryTotals:
    """Day-level grand totals; cache is cache read plus cache create."""
    total: int = 0
    input: int = 0
    output: int = 0
    cache: int = 0

    @classmethod
    def from_models(cls, models: Dict[str, ModelTotals]) -> "SummaryTotals":
        return cls(
            total=sum(m.total for m in models.values()),
            input=sum(m.input for m in models.values()),
            output=sum(m.output for m in models.values()),
            cache=sum(m.cache_read + m.cache_create for m in models.values()),
        )

    def to_dict(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "input": self.input,
            "output": self.output,
            "cache": self.cache,
        }


@dataclass(frozen=True)
class DailySummary:
    """Versioned aggregate of one calendar day.

    Written wholesale and never patched in place: a rebuild always
    replaces the whole document.
    """
    date: str
    generated_at: str
    models: Dict[str, ModelTotals] = field(default_factory=dict)
    summary: SummaryTotals = field(default_factory=SummaryTotals)
    schema_version: int = DAILY_SUMMARY_SCHEMA_VERSION

    def to_dict(self) -> Dict:
        return {
            "schemaVersion": self.schema_version,
            "date": self.date,
            "generatedAt": self.generated_at,
            "models": {name: totals.to_dict() for name, totals in self.models.items()},
            "summary": self.summary.to_dict(),
        }
