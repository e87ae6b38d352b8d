"""Command-line interface for optimizer-pro"""

import asyncio
import time
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from . import __version__
from .adapters.laravel import ArtisanRouteRegistry, LaravelEnvironment
from .config import AppConfig, configure_logging, get_config
from .reporting import analysis_to_json, render_analysis, render_report, report_to_json
from .services.analyzer import PerformanceAnalyzer

app = typer.Typer(
    name="optimizer-pro",
    help="Analyze Laravel application performance and score it 0-100",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()

VALID_FORMATS = {"rich", "json"}


def build_analyzer(
    config: AppConfig, project: Path | None, started_at: float | None = None
) -> PerformanceAnalyzer:
    """Analyzer over the bundled collaborators, or a Laravel project when given."""
    if project is None:
        return PerformanceAnalyzer.from_config(config, started_at=started_at)

    environment = LaravelEnvironment(project)
    return PerformanceAnalyzer.from_config(
        config,
        cache=environment.cache_backend(),
        database=environment.database_backend(),
        routes=ArtisanRouteRegistry(project),
        system=environment,
        started_at=started_at,
    )


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", help="Show version and exit"),
) -> None:
    """
    Analyze Laravel application performance.

    [bold cyan]Examples:[/bold cyan]

      optimizer-pro analyze /path/to/laravel-app

      optimizer-pro analyze /path/to/laravel-app --report

      optimizer-pro analyze --report --format json | jq .score
    """
    if version:
        console.print(f"[bold cyan]optimizer-pro[/bold cyan] version [green]{__version__}[/green]")
        raise typer.Exit(0)

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())
        raise typer.Exit(0)


@app.command()
def analyze(
    project: Optional[Path] = typer.Argument(
        None,
        help="Path to a Laravel project (omit to analyze the configured backends only)",
        exists=True,
        file_okay=False,
        dir_okay=True,
        readable=True,
    ),
    report: bool = typer.Option(False, "--report", "-r", help="Generate a scored report"),
    fmt: str = typer.Option("rich", "--format", "-f", help="Output format: rich (default), json"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose (DEBUG) logging"),
) -> None:
    """Analyze application performance (request time, routes, queries, cache)."""
    started_at = time.perf_counter()

    if fmt not in VALID_FORMATS:
        console.print(
            f"[red]Error:[/red] --format must be one of: {', '.join(sorted(VALID_FORMATS))}"
        )
        raise typer.Exit(1)

    try:
        config = get_config()
    except ValueError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1) from e

    logging_config = config.logging
    if verbose:
        logging_config = logging_config.model_copy(update={"level": "DEBUG"})
    configure_logging(logging_config)

    try:
        analyzer = build_analyzer(config, project, started_at=started_at)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    if fmt == "rich":
        console.print("[bold]Analyzing Application Performance...[/bold]")

    if report:
        report_result = asyncio.run(analyzer.generate_report())
        if report_result.is_err():
            console.print(f"[red]Analysis failed:[/red] {report_result.unwrap_err()}")
            raise typer.Exit(1)
        performance_report = report_result.unwrap()
        if fmt == "json":
            typer.echo(report_to_json(performance_report))
        else:
            render_report(performance_report, console)
        return

    analysis_result = asyncio.run(analyzer.analyze())
    if analysis_result.is_err():
        console.print(f"[red]Analysis failed:[/red] {analysis_result.unwrap_err()}")
        raise typer.Exit(1)
    if fmt == "json":
        typer.echo(analysis_to_json(analysis_result.unwrap()))
    else:
        render_analysis(analysis_result.unwrap(), console)


@app.command("config")
def show_config() -> None:
    """Print the effective configuration."""
    config = get_config()

    table = Table(title="Configuration Summary", title_justify="left")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("Environment", config.environment)
    table.add_row("Debug Mode", str(config.debug))
    table.add_row("Slow Query Threshold", f"{config.analyzer.slow_query_threshold_ms:g}ms")
    table.add_row("Probe Timeout", f"{config.analyzer.probe_timeout_seconds:g}s")
    table.add_row("Cache Driver", config.cache.driver)
    table.add_row("Database URL", config.database.url)
    table.add_row("Log Level", config.logging.level)
    console.print(table)


if __name__ == "__main__":
    app()
