"""
CLI interface for AI Usage Range.

Provides command-line access to range, period and rate limit reports.
"""

import asyncio
import json
import logging
import sys
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from ai_usage_range.config.loader import UsageConfig, default_usage_config, load_usage_config
from ai_usage_range.core.orchestrator import DailyRecomputer, RangeOrchestrator
from ai_usage_range.core.period import aggregate_period
from ai_usage_range.core.rate_limits import read_rate_limit_snapshot
from ai_usage_range.core.sources import UsageScanner
from ai_usage_range.core.view import UsageView
from ai_usage_range.storage.daily_cache import DailySummaryCache

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

CONFIG_OPTION_HELP = "Path to a YAML usage configuration file"


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """AI Usage Range CLI."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )
    if ctx.invoked_subcommand is None:
        console.print("AI Usage Range - Use --help to see available commands")


def _load_config(config_path: Optional[str]) -> UsageConfig:
    if config_path is None:
        return default_usage_config()
    try:
        return load_usage_config(config_path)
    except Exception as e:
        console.print(f"[red]Error loading config:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


def build_orchestrator(config: UsageConfig) -> RangeOrchestrator:
    """Wire the range orchestrator to the configured cache and log sources."""
    return RangeOrchestrator(
        cache=DailySummaryCache(config.cache_dir),
        recompute_fn=DailyRecomputer(UsageScanner(config)),
    )


@app.command("range")
def range_command(
    start_date: str = typer.Argument(..., help="First day (YYYY-MM-DD)"),
    end_date: str = typer.Argument(..., help="Last day (YYYY-MM-DD), before today"),
    timezone_name: Optional[str] = typer.Option(
        None,
        "--timezone",
        "-t",
        help="Reporting time zone (only Asia/Shanghai is supported)"
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the raw JSON response"),
    config_path: Optional[str] = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
):
    """
    Aggregate token usage for an inclusive range of past days.

    Past days are served from the daily summary cache when available and
    recomputed from the assistant logs otherwise.
    """
    config = _load_config(config_path)
    orchestrator = build_orchestrator(config)
    result = asyncio.run(orchestrator.aggregate_range(start_date, end_date, timezone_name))

    if as_json:
        console.print_json(json.dumps(result.to_dict()))
    elif result.success:
        _display_view(result.view, f"Token usage {start_date} .. {end_date}")
        meta = result.meta
        console.print(
            f"Days: {meta.total_days} total, {meta.from_daily_summary_days} cached, "
            f"{meta.recomputed_days} recomputed, {meta.failed_days} failed"
        )
    else:
        console.print(f"[red]Error:[/] {result.error}")

    sys.exit(EXIT_CODE_PASS if result.success else EXIT_CODE_FAIL)


@app.command()
def period(
    name: str = typer.Argument(..., help="today, week or month"),
    as_json: bool = typer.Option(False, "--json", help="Print the raw JSON response"),
    config_path: Optional[str] = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
):
    """Aggregate token usage live over a named period."""
    config = _load_config(config_path)
    result = asyncio.run(aggregate_period(name, UsageScanner(config)))

    if as_json:
        console.print_json(json.dumps(result.to_dict()))
    elif result.success:
        _display_view(result.view, f"Token usage ({result.period.value})")
        console.print(f"Records: {result.record_count}")
    else:
        console.print(f"[red]Error:[/] {result.error}")

    sys.exit(EXIT_CODE_PASS if result.success else EXIT_CODE_FAIL)


@app.command("rate-limits")
def rate_limits(
    as_json: bool = typer.Option(False, "--json", help="Print the raw JSON response"),
    config_path: Optional[str] = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
):
    """Show the most recent rate limit usage reported in session logs."""
    config = _load_config(config_path)
    result = read_rate_limit_snapshot(config)

    if as_json:
        console.print_json(json.dumps(result.to_dict()))
    elif result.success:
        snapshot = result.snapshot
        console.print(f"Primary window used: {_format_optional_percent(snapshot.primary_used_percent)}")
        console.print(f"Weekly window used: {_format_optional_percent(snapshot.weekly_used_percent)}")
        console.print(f"[dim]Source: {snapshot.source_file}[/]")
    else:
        console.print(f"[red]Error:[/] {result.error_code} ({result.error})")

    sys.exit(EXIT_CODE_PASS if result.success else EXIT_CODE_FAIL)


@app.command("config")
def show_config(
    config_path: Optional[str] = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
):
    """Print the effective configuration."""
    config = _load_config(config_path)
    console.print_json(json.dumps(config.to_dict()))


def _format_tokens(num: int) -> str:
    """Format token counts compactly (1.2K, 3.4M)."""
    if num >= 1_000_000:
        return f"{num / 1_000_000:.1f}M"
    if num >= 1_000:
        return f"{num / 1_000:.1f}K"
    return str(num)


def _format_optional_percent(value: Optional[float]) -> str:
    return "N/A" if value is None else f"{value:g}%"


def _display_view(view: UsageView, title: str):
    """Display aggregated usage as a summary line and a per-model table."""
    console.print(f"\n[bold]{title}[/bold]")
    console.print("-" * 40)

    if not view.models:
        console.print("\n[dim]No usage found for this window.[/]")
        return

    console.print(
        f"Total: {_format_tokens(view.total)}  Input: {_format_tokens(view.input)}  "
        f"Output: {_format_tokens(view.output)}  Cache: {_format_tokens(view.cache)}"
    )

    table = Table()
    table.add_column("Model")
    table.add_column("Input", justify="right")
    table.add_column("Output", justify="right")
    table.add_column("Cache read", justify="right")
    table.add_column("Cache create", justify="right")
    table.add_column("Total", justify="right")
    for model in view.models:
        table.add_row(
            f"[{model.color}]{model.name}[/]",
            _format_tokens(model.input),
            _format_tokens(model.output),
            _format_tokens(model.cache_read),
            _format_tokens(model.cache_create),
            _format_tokens(model.total),
        )
    console.print(table)

    for entry in view.distribution:
        console.print(f"[{entry.color}]■[/] {entry.name}: {entry.display_percent}")


if __name__ == "__main__":
    app()
