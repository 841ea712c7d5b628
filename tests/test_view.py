"""
Unit tests for response shaping: percentages, distribution and colours.
"""

import pytest

from ai_usage_range.core.view import (
    DEFAULT_COLOR,
    OTHERS_KEY,
    build_usage_view,
    format_percent_display,
    get_model_color,
    largest_remainder_percentages,
)
from ai_usage_range.storage.models import ModelAggregate


def aggregates(**totals) -> dict:
    """Build aggregates whose output counter carries the given totals."""
    return {
        name: ModelAggregate(name=name, output=total, total=total, count=1)
        for name, total in totals.items()
    }


class TestLargestRemainder:
    """Test whole-percent apportionment."""

    @pytest.mark.parametrize("totals", [
        [1, 1, 1],
        [100, 90, 80, 70, 60, 50],
        [999, 1],
        [7, 13, 29, 51],
        [1],
    ])
    def test_sums_to_exactly_100(self, totals):
        assert sum(largest_remainder_percentages(totals)) == 100

    def test_equal_remainders_keep_order(self):
        assert largest_remainder_percentages([1, 1, 1]) == [34, 33, 33]

    def test_remainder_tie_goes_to_larger_total(self):
        """All three remainders are equal, so the point goes to 295."""
        assert largest_remainder_percentages([1, 4, 295]) == [0, 1, 99]

    def test_largest_fractions_get_the_shortfall(self):
        assert largest_remainder_percentages([100, 90, 80, 70, 60, 50]) == [22, 20, 18, 16, 13, 11]

    def test_zero_grand_total(self):
        assert largest_remainder_percentages([0, 0]) == [0, 0]
        assert largest_remainder_percentages([]) == []


class TestPercentDisplay:
    """Test percentage labels."""

    def test_tiny_share_shows_less_than_one(self):
        assert format_percent_display(0, 1, 1000) == "<1%"

    def test_regular_share(self):
        assert format_percent_display(42, 420, 1000) == "42%"

    def test_empty_share(self):
        assert format_percent_display(0, 0, 1000) == "0%"


class TestModelColors:
    """Test colour lookup."""

    def test_exact_match(self):
        assert get_model_color("opus") == "#f59e0b"
        assert get_model_color("codex") == "#3b82f6"

    def test_substring_match(self):
        assert get_model_color("my-sonnet-build") == "#6366f1"

    def test_unknown_model_gets_default(self):
        assert get_model_color("some-new") == DEFAULT_COLOR
        assert get_model_color(None) == DEFAULT_COLOR


class TestBuildUsageView:
    """Test the full view built from aggregates."""

    def test_totals_and_ordering(self):
        """Test grand totals and sort by total then name."""
        aggregated = {
            "opus": ModelAggregate(name="opus", input=10, cache_read=5, cache_create=5, total=20, count=2),
            "codex": ModelAggregate(name="codex", output=20, total=20, count=1),
            "haiku": ModelAggregate(name="haiku", input=30, total=30, count=4),
        }

        view = build_usage_view(aggregated)

        assert [m.name for m in view.models] == ["haiku", "codex", "opus"]
        assert (view.total, view.input, view.output, view.cache) == (70, 40, 20, 10)
        assert view.model_count == 3
        assert view.is_extreme_scenario is False

    def test_zero_models_dropped(self):
        view = build_usage_view(aggregates(opus=10, sonnet=0))

        assert [m.name for m in view.models] == ["opus"]
        assert [d.percent for d in view.distribution] == [100]

    def test_distribution_sums_to_100(self):
        view = build_usage_view(aggregates(opus=7, sonnet=13, codex=29, glm=51))

        assert sum(d.percent for d in view.distribution) == 100
        assert [d.key for d in view.distribution] == ["glm", "codex", "sonnet", "opus"]

    def test_tiny_model_displayed_as_less_than_one(self):
        view = build_usage_view(aggregates(opus=999, haiku=1))

        haiku = view.distribution[1]
        assert haiku.percent == 0
        assert haiku.display_percent == "<1%"

    def test_more_than_five_models_folds_others(self):
        view = build_usage_view(aggregates(
            opus=100, sonnet=90, codex=80, glm=70, gemini=60, qwen=50,
        ))

        assert view.is_extreme_scenario is True
        assert view.model_count == 6
        assert len(view.distribution) == 6
        others = view.distribution[-1]
        assert others.key == OTHERS_KEY
        assert others.name == "Others (1 models)"
        assert others.color == DEFAULT_COLOR
        assert sum(d.percent for d in view.distribution) == 100

    def test_others_percent_is_residual_of_top_five(self):
        """The others slice is 100 minus the top five, not its own share."""
        view = build_usage_view(aggregates(
            a1=1000, a2=1000, a3=1000, a4=1000, a5=1000, b1=3, b2=3,
        ))

        top_five = [d.percent for d in view.distribution[:5]]
        others = view.distribution[-1]
        assert others.percent == 100 - sum(top_five)
        # Both tail models floor to 0, so the residual can be 0 while the
        # tail still holds tokens.
        assert others.percent == 0
        assert others.display_percent == "<1%"

    def test_empty_view(self):
        view = build_usage_view({})

        assert view.total == 0
        assert view.models == []
        assert view.distribution == []
        assert view.to_dict()["modelCount"] == 0

    def test_to_dict_layout(self):
        data = build_usage_view(aggregates(opus=10)).to_dict()

        assert data["isExtremeScenario"] is False
        assert data["models"][0] == {
            "name": "opus",
            "input": 0,
            "output": 10,
            "cacheRead": 0,
            "cacheCreate": 0,
            "total": 10,
            "count": 1,
            "color": "#f59e0b",
        }
        assert data["distribution"][0] == {
            "name": "opus",
            "percent": 100,
            "displayPercent": "100%",
            "color": "#f59e0b",
            "key": "opus",
        }
