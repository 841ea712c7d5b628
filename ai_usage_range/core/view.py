"""
Response shaping for aggregated usage.

Turns merged per-model aggregates into the view returned to callers:
grand totals, sorted model buckets, a percentage distribution that always
sums to 100 and colour assignments.
"""

from dataclasses import dataclass, field
from typing import Dict, List

from ai_usage_range.storage.models import ModelAggregate


MAX_DISTRIBUTION_MODELS = 5
OTHERS_KEY = "others"
DEFAULT_COLOR = "#8b919a"

# Exact names are looked up first, then substring containment in this order.
MODEL_COLORS = {
    "opus": "#f59e0b",
    "claude-opus": "#f59e0b",
    "sonnet": "#6366f1",
    "claude-sonnet": "#6366f1",
    "haiku": "#8b5cf6",
    "claude-haiku": "#8b5cf6",
    "claude": "#ec4899",
    "gpt-5": "#e67e22",
    "gpt-4o": "#f97316",
    "gpt-4": "#fbbf24",
    "gpt-3.5": "#f59e0b",
    "kimi": "#16a34a",
    "kimi-pro": "#22c55e",
    "deepseek": "#a855f7",
    "gemini": "#dc2626",
    "qwen": "#10b981",
    "yi": "#ec4899",
    "llama": "#06b6d4",
    "mistral": "#fbbf24",
    "codex": "#3b82f6",
    "default": DEFAULT_COLOR,
}


@dataclass(frozen=True)
class ModelView:
    """One model bucket of the response."""
    name: str
    input: int
    output: int
    cache_read: int
    cache_create: int
    total: int
    count: int
    color: str

    def to_dict(self) -> Dict:
        return {
            "name": self.name,
            "input": self.input,
            "output": self.output,
            "cacheRead": self.cache_read,
            "cacheCreate": self.cache_create,
            "total": self.total,
            "count": self.count,
            "color": self.color,
        }


@dataclass(frozen=True)
class DistributionEntry:
    """One slice of the percentage distribution."""
    name: str
    percent: int
    display_percent: str
    color: str
    key: str

    def to_dict(self) -> Dict:
        return {
            "name": self.name,
            "percent": self.percent,
            "displayPercent": self.display_percent,
            "color": self.color,
            "key": self.key,
        }


@dataclass(frozen=True)
class UsageView:
    """Aggregated usage over some window, ready for display."""
    total: int = 0
    input: int = 0
    output: int = 0
    cache: int = 0
    models: List[ModelView] = field(default_factory=list)
    distribution: List[DistributionEntry] = field(default_factory=list)
    is_extreme_scenario: bool = False

    @property
    def model_count(self) -> int:
        return len(self.models)

    def to_dict(self) -> Dict:
        return {
            "total": self.total,
            "input": self.input,
            "output": self.output,
            "cache": self.cache,
            "models": [model.to_dict() for model in self.models],
            "distribution": [entry.to_dict() for entry in self.distribution],
            "isExtremeScenario": self.is_extreme_scenario,
            "modelCount": self.model_count,
        }


def get_model_color(model: str) -> str:
    """Colour for a model: exact key, then substring match, then default."""
    normalized = (model or "").lower()
    if normalized in MODEL_COLORS:
        return MODEL_COLORS[normalized]
    for key, color in MODEL_COLORS.items():
        if key in normalized:
            return color
    return DEFAULT_COLOR


def largest_remainder_percentages(totals: List[int]) -> List[int]:
    """Whole percentages of each total that sum to exactly 100.

    Every share is floored, then the shortfall is handed out one point at a
    time to the largest fractional remainders (ties go to the larger total).
    Integer arithmetic keeps the remainder comparison exact.

    Args:
        totals: Non-negative token totals, in display order

    Returns:
        Percentages in the same order as totals
    """
    grand_total = sum(totals)
    if grand_total <= 0 or not totals:
        return [0 for _ in totals]

    floors = [(t * 100) // grand_total for t in totals]
    remainders = [(t * 100) % grand_total for t in totals]
    shortfall = 100 - sum(floors)

    ranked = sorted(
        range(len(totals)),
        key=lambda i: (remainders[i], totals[i]),
        reverse=True,
    )
    for i in ranked[:shortfall]:
        floors[i] += 1
    return floors


def format_percent_display(percent: int, model_total: int, grand_total: int) -> str:
    """Render a percentage, showing ``<1%`` for non-empty slices rounded to 0."""
    if percent == 0 and model_total > 0 and grand_total > 0:
        return "<1%"
    return f"{percent}%"


def build_usage_view(aggregated: Dict[str, ModelAggregate]) -> UsageView:
    """Shape merged aggregates into the response view.

    Models with a zero total are dropped; the rest are sorted by total
    descending, then name. With more than five models the tail is folded
    into one ``others`` slice whose percent is 100 minus the top five.

    Args:
        aggregated: Per-model aggregates keyed by canonical name

    Returns:
        UsageView
    """
    non_zero = [model for model in aggregated.values() if model.total > 0]
    non_zero.sort(key=lambda m: (-m.total, m.name))

    models = [
        ModelView(
            name=m.name,
            input=m.input,
            output=m.output,
            cache_read=m.cache_read,
            cache_create=m.cache_create,
            total=m.total,
            count=m.count,
            color=get_model_color(m.name),
        )
        for m in non_zero
    ]

    grand_total = sum(m.total for m in models)
    percents = largest_remainder_percentages([m.total for m in models])
    is_extreme = len(models) > MAX_DISTRIBUTION_MODELS

    shown = models[:MAX_DISTRIBUTION_MODELS] if is_extreme else models
    distribution = [
        DistributionEntry(
            name=m.name,
            percent=percent,
            display_percent=format_percent_display(percent, m.total, grand_total),
            color=m.color,
            key=m.name,
        )
        for m, percent in zip(shown, percents)
    ]

    if is_extreme:
        others = models[MAX_DISTRIBUTION_MODELS:]
        others_total = sum(m.total for m in others)
        # Residual of the top five, not an independent largest-remainder share.
        others_percent = 100 - sum(percents[:MAX_DISTRIBUTION_MODELS]) if others_total > 0 else 0
        distribution.append(DistributionEntry(
            name=f"Others ({len(others)} models)",
            percent=others_percent,
            display_percent=format_percent_display(others_percent, others_total, grand_total),
            color=DEFAULT_COLOR,
            key=OTHERS_KEY,
        ))

    return UsageView(
        total=grand_total,
        input=sum(m.input for m in models),
        output=sum(m.output for m in models),
        cache=sum(m.cache_read + m.cache_create for m in models),
        models=models,
        distribution=distribution,
        is_extreme_scenario=is_extreme,
    )
