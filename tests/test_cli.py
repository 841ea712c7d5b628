"""
Tests for the CLI interface.
"""
import os
import tempfile
from unittest.mock import patch, MagicMock, AsyncMock

import pytest
import yaml
from typer.testing import CliRunner

from ai_usage_range.cli.main import app, EXIT_CODE_PASS, EXIT_CODE_FAIL, _format_tokens
from ai_usage_range.core.orchestrator import ErrorCode, RangeMeta, RangeResult
from ai_usage_range.core.period import PeriodResult
from ai_usage_range.core.rate_limits import RateLimitResult, RateLimitSnapshot
from ai_usage_range.core.timewindow import Period
from ai_usage_range.core.view import build_usage_view
from ai_usage_range.storage.models import ModelAggregate

runner = CliRunner()


def sample_view():
    return build_usage_view({
        "opus": ModelAggregate(name="opus", input=1000, output=500, total=1500, count=2),
        "codex": ModelAggregate(name="codex", output=1_500_000, total=1_500_000, count=1),
    })


@pytest.fixture
def mock_orchestrator():
    """Replace the wired orchestrator with a mock."""
    with patch('ai_usage_range.cli.main.build_orchestrator') as mock_build:
        orchestrator = MagicMock()
        orchestrator.aggregate_range = AsyncMock()
        mock_build.return_value = orchestrator
        yield orchestrator


@pytest.fixture
def mock_period():
    """Mock the aggregate_period function."""
    with patch('ai_usage_range.cli.main.aggregate_period', new_callable=AsyncMock) as mock:
        yield mock


@pytest.fixture
def mock_rate_limits():
    """Mock the read_rate_limit_snapshot function."""
    with patch('ai_usage_range.cli.main.read_rate_limit_snapshot') as mock:
        yield mock


class TestRangeCommand:
    """Test the range command."""

    def test_range_success(self, mock_orchestrator):
        """Test that a successful range prints the report and exits 0."""
        mock_orchestrator.aggregate_range.return_value = RangeResult(
            success=True,
            start_date="2024-01-01",
            end_date="2024-01-02",
            view=sample_view(),
            meta=RangeMeta(from_daily_summary_days=1, recomputed_days=1, total_days=2, failed_days=0),
        )

        result = runner.invoke(app, ["range", "2024-01-01", "2024-01-02"])

        assert result.exit_code == EXIT_CODE_PASS
        assert "Days: 2 total, 1 cached, 1 recomputed, 0 failed" in result.output
        assert "codex" in result.output
        mock_orchestrator.aggregate_range.assert_awaited_once_with("2024-01-01", "2024-01-02", None)

    def test_range_passes_timezone(self, mock_orchestrator):
        mock_orchestrator.aggregate_range.return_value = RangeResult.failure(ErrorCode.INVALID_TIMEZONE)

        result = runner.invoke(app, ["range", "2024-01-01", "2024-01-02", "--timezone", "UTC"])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "INVALID_TIMEZONE" in result.output
        args, _ = mock_orchestrator.aggregate_range.call_args
        assert args[2] == "UTC"

    def test_range_json_output(self, mock_orchestrator):
        """Test that --json prints the response document."""
        mock_orchestrator.aggregate_range.return_value = RangeResult.failure(ErrorCode.DATE_OUT_OF_RANGE)

        result = runner.invoke(app, ["range", "2024-01-01", "2099-01-01", "--json"])

        assert result.exit_code == EXIT_CODE_FAIL
        assert '"error": "DATE_OUT_OF_RANGE"' in result.output

    def test_range_rejects_future_dates_without_mocks(self):
        """Test validation end to end; no log or cache access happens."""
        with tempfile.TemporaryDirectory() as temp_dir:
            config_path = os.path.join(temp_dir, "config.yaml")
            with open(config_path, 'w', encoding='utf-8') as f:
                yaml.dump({"cache": {"dir": os.path.join(temp_dir, "cache")}}, f)

            result = runner.invoke(app, ["range", "2024-01-01", "2999-01-01", "--config", config_path])

            assert result.exit_code == EXIT_CODE_FAIL
            assert "DATE_OUT_OF_RANGE" in result.output
            assert not os.path.exists(os.path.join(temp_dir, "cache"))

    def test_bad_config_exits_with_failure(self):
        result = runner.invoke(app, ["range", "2024-01-01", "2024-01-02", "--config", "/nonexistent.yaml"])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "Error loading config" in result.output


class TestPeriodCommand:
    """Test the period command."""

    def test_period_success(self, mock_period):
        mock_period.return_value = PeriodResult(
            success=True,
            period=Period.TODAY,
            record_count=7,
            view=sample_view(),
        )

        result = runner.invoke(app, ["period", "today"])

        assert result.exit_code == EXIT_CODE_PASS
        assert "Records: 7" in result.output
        args, _ = mock_period.call_args
        assert args[0] == "today"

    def test_invalid_period(self, mock_period):
        mock_period.return_value = PeriodResult(success=False, error="INVALID_PERIOD")

        result = runner.invoke(app, ["period", "year"])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "INVALID_PERIOD" in result.output

    def test_empty_window(self, mock_period):
        mock_period.return_value = PeriodResult(
            success=True,
            period=Period.WEEK,
            record_count=0,
            view=build_usage_view({}),
        )

        result = runner.invoke(app, ["period", "week"])

        assert result.exit_code == EXIT_CODE_PASS
        assert "No usage found" in result.output


class TestRateLimitsCommand:
    """Test the rate-limits command."""

    def test_snapshot_found(self, mock_rate_limits):
        mock_rate_limits.return_value = RateLimitResult(
            success=True,
            snapshot=RateLimitSnapshot(
                primary_used_percent=12.5,
                weekly_used_percent=None,
                primary_remaining_percent=87.5,
                weekly_remaining_percent=None,
                primary_resets_at=None,
                weekly_resets_at=None,
                used_tokens=None,
                source_file="a.jsonl",
            ),
        )

        result = runner.invoke(app, ["rate-limits"])

        assert result.exit_code == EXIT_CODE_PASS
        assert "Primary window used: 12.5%" in result.output
        assert "Weekly window used: N/A" in result.output

    def test_no_session_files(self, mock_rate_limits):
        mock_rate_limits.return_value = RateLimitResult(
            success=False,
            error_code="NO_SESSION_FILES",
            error="No session log files found",
        )

        result = runner.invoke(app, ["rate-limits"])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "NO_SESSION_FILES" in result.output


class TestConfigCommand:
    """Test the config command."""

    def test_prints_effective_config(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            config_path = os.path.join(temp_dir, "config.yaml")
            with open(config_path, 'w', encoding='utf-8') as f:
                yaml.dump({"scan": {"max_depth": 3}}, f)

            result = runner.invoke(app, ["config", "--config", config_path])

            assert result.exit_code == EXIT_CODE_PASS
            assert '"max_depth": 3' in result.output


class TestFormatting:
    """Test compact token formatting."""

    @pytest.mark.parametrize("value,expected", [
        (999, "999"),
        (1500, "1.5K"),
        (1_500_000, "1.5M"),
    ])
    def test_format_tokens(self, value, expected):
        assert _format_tokens(value) == expected
