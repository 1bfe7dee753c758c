"""Command-line interface for tocminer."""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from tocminer import __version__
from tocminer.config.config import Config, find_config_file
from tocminer.errors import ConfigError, failure_summary
from tocminer.extractor.confidence_scorer import ConfidenceScorer
from tocminer.extractor.models import BookTarget, ExtractionResult
from tocminer.monitoring.performance import PerformanceMonitor
from tocminer.observability import configure_logging, start_metrics_server
from tocminer.providers.aggregator import CACHE_METHOD
from tocminer.service import TocService

console = Console()


def load_config(ctx: click.Context) -> Config:
    config_path: Optional[Path] = ctx.obj["config_path"] or find_config_file()
    try:
        config = Config.from_yaml(config_path) if config_path else Config()
    except ConfigError as e:
        raise click.ClickException(str(e)) from e
    config.monitoring.log_level = ctx.obj["log_level"] or config.monitoring.log_level
    return config


def target_options(func: Any) -> Any:
    """Shared options describing the book to look up."""
    options = [
        click.option("--title", "-t", default="", help="Book title"),
        click.option("--isbn", "-i", default=None, help="ISBN-10 or ISBN-13"),
        click.option("--author", "-a", default=None, help="Author"),
        click.option("--control-no", default=None, help="Library catalogue control number"),
        click.option("--publisher", default=None, help="Publisher"),
        click.option("--json", "as_json", is_flag=True, help="Print the result as JSON"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def build_target(
    title: str,
    isbn: Optional[str],
    author: Optional[str],
    control_no: Optional[str],
    publisher: Optional[str],
) -> BookTarget:
    if not (title or isbn or control_no):
        raise click.UsageError("Give at least one of --title, --isbn or --control-no")
    return BookTarget(title=title, author=author, isbn=isbn, control_no=control_no, publisher=publisher)


def render_result(target: BookTarget, result: Optional[ExtractionResult], as_json: bool) -> None:
    if as_json:
        click.echo(json.dumps(result.to_dict() if result else None, ensure_ascii=False, indent=2))
        return
    if result is None:
        console.print(f"[yellow]No bookstore result for {target.label}[/yellow]")
        return
    if not result.success:
        console.print(Panel(failure_summary(target.label, result), title="Not found", border_style="red"))
        return

    summary = Table(title=f"Contents for {target.label}", show_header=False)
    summary.add_column("Field", style="cyan")
    summary.add_column("Value")
    summary.add_row("Method", result.method)
    summary.add_row("Confidence", f"{result.confidence:.2f}")
    summary.add_row("Response time", f"{result.response_time_ms} ms")
    if result.source:
        summary.add_row("Source", result.source)
    console.print(summary)

    assert result.content is not None
    if result.method == CACHE_METHOD:
        console.print(Panel(result.content, title="Table of contents (cached)", border_style="green"))
        return
    breakdown = Table(title="Score breakdown")
    breakdown.add_column("Component", style="cyan")
    breakdown.add_column("Value", justify="right")
    for component, value in ConfidenceScorer().describe(result.content, result.scored_as or result.method).items():
        breakdown.add_row(component, f"{value:+.3f}" if component != "total" else f"{value:.3f}")
    console.print(breakdown)
    console.print(Panel(result.content, title="Table of contents", border_style="green"))


async def _with_service(config: Config, action: Any) -> Any:
    async with TocService(config) as service:
        return await action(service)


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "-c", type=click.Path(exists=True), help="Configuration file path")
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Logging level (overrides the configuration file)",
)
@click.pass_context
def cli(ctx: click.Context, config: Optional[str], log_level: Optional[str]) -> None:
    """tocminer - find a book's table of contents."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = Path(config) if config else None
    ctx.obj["log_level"] = log_level
    resolved = load_config(ctx)
    configure_logging(resolved.monitoring)
    start_metrics_server(resolved.monitoring.prometheus_port)
    ctx.obj["config"] = resolved


@cli.command()
@target_options
@click.pass_context
def extract(
    ctx: click.Context,
    title: str,
    isbn: Optional[str],
    author: Optional[str],
    control_no: Optional[str],
    publisher: Optional[str],
    as_json: bool,
) -> None:
    """Run the ordered catalogue strategies."""
    target = build_target(title, isbn, author, control_no, publisher)
    result = asyncio.run(_with_service(ctx.obj["config"], lambda s: s.extract(target)))
    render_result(target, result, as_json)
    if not result.success:
        sys.exit(1)


@cli.command()
@target_options
@click.option("--all", "show_all", is_flag=True, help="Show every acceptable bookstore result, best first")
@click.pass_context
def scrape(
    ctx: click.Context,
    title: str,
    isbn: Optional[str],
    author: Optional[str],
    control_no: Optional[str],
    publisher: Optional[str],
    as_json: bool,
    show_all: bool,
) -> None:
    """Scrape the bookstore sites in parallel."""
    target = build_target(title, isbn, author, control_no, publisher)
    if not show_all:
        result = asyncio.run(_with_service(ctx.obj["config"], lambda s: s.scrape_multi_source(target)))
        render_result(target, result, as_json)
        if result is None:
            sys.exit(1)
        return

    results = asyncio.run(_with_service(ctx.obj["config"], lambda s: s.scrape_all(target)))
    if as_json:
        click.echo(json.dumps([r.to_dict() for r in results], ensure_ascii=False, indent=2))
        return
    table = Table(title=f"Bookstore results for {target.label}")
    table.add_column("#", justify="right")
    table.add_column("Provider", style="cyan")
    table.add_column("Confidence", justify="right")
    table.add_column("Lines", justify="right")
    table.add_column("Source")
    for rank, result in enumerate(results, 1):
        lines = len((result.content or "").splitlines())
        table.add_row(str(rank), result.method, f"{result.confidence:.2f}", str(lines), result.source or "")
    console.print(table)
    if not results:
        sys.exit(1)


@cli.command()
@target_options
@click.pass_context
def find(
    ctx: click.Context,
    title: str,
    isbn: Optional[str],
    author: Optional[str],
    control_no: Optional[str],
    publisher: Optional[str],
    as_json: bool,
) -> None:
    """Bookstores first, then the catalogue strategies."""
    target = build_target(title, isbn, author, control_no, publisher)
    result = asyncio.run(_with_service(ctx.obj["config"], lambda s: s.find(target)))
    render_result(target, result, as_json)
    if not result.success:
        sys.exit(1)


@cli.command()
@click.option("--report", is_flag=True, help="Print the full plain-text report")
@click.option("--export", "export_path", type=click.Path(), help="Write a snapshot to this file")
@click.option("--import", "import_path", type=click.Path(exists=True), help="Load a snapshot from this file first")
@click.option("--reset", is_flag=True, help="Clear the saved statistics")
@click.pass_context
def stats(
    ctx: click.Context,
    report: bool,
    export_path: Optional[str],
    import_path: Optional[str],
    reset: bool,
) -> None:
    """Show extraction statistics saved between runs."""
    config: Config = ctx.obj["config"]
    monitor = PerformanceMonitor(config.monitoring.recent_results_limit)
    snapshot_path = Path(config.monitoring.snapshot_path) if config.monitoring.snapshot_path else None

    if import_path:
        if not monitor.load(Path(import_path)):
            raise click.ClickException(f"{import_path} is not a valid statistics snapshot")
    elif snapshot_path is not None:
        monitor.load(snapshot_path)

    if reset:
        monitor.reset()
        if snapshot_path is not None:
            monitor.save(snapshot_path)
        console.print("[green]Statistics cleared[/green]")
        return

    if export_path:
        monitor.save(Path(export_path))
        console.print(f"[green]Snapshot written to {export_path}[/green]")

    if report:
        click.echo(monitor.generate_report())
        return

    metrics = monitor.get_statistics()
    overview = Table(title="Extraction statistics", show_header=False)
    overview.add_column("Metric", style="cyan")
    overview.add_column("Value", justify="right")
    overview.add_row("Attempts", str(metrics.total_attempts))
    overview.add_row("Successes", str(metrics.total_successes))
    overview.add_row("Success rate", f"{monitor.success_rate():.1%}")
    overview.add_row("Avg response time", f"{monitor.average_response_time():.0f} ms")
    overview.add_row("Best method", monitor.best_method() or "-")
    console.print(overview)

    methods = Table(title="By method")
    methods.add_column("Method", style="cyan")
    methods.add_column("Success rate", justify="right")
    methods.add_column("Attempts", justify="right")
    methods.add_column("Avg confidence", justify="right")
    methods.add_column("Avg response", justify="right")
    for rate in monitor.method_success_rates():
        methods.add_row(
            rate.method,
            f"{rate.success_rate:.1%}",
            str(rate.attempts),
            f"{rate.avg_confidence:.2f}",
            f"{rate.avg_response_time_ms:.0f} ms",
        )
    console.print(methods)


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
