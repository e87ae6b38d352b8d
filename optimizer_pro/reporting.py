"""
Console and JSON rendering for analysis results and performance reports.
"""

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from optimizer_pro.domain.models import AnalysisResults, Grade, PerformanceReport, Priority
from optimizer_pro.services.runtime_metrics import format_bytes

GRADE_STYLES = {
    Grade.A: "bold green",
    Grade.B: "green",
    Grade.C: "yellow",
    Grade.D: "dark_orange",
    Grade.F: "bold red",
}

PRIORITY_STYLES = {
    Priority.LOW: "dim",
    Priority.MEDIUM: "yellow",
    Priority.HIGH: "red",
    Priority.CRITICAL: "bold red",
}


def _ms(value: float) -> str:
    return f"{value:g}ms"


def _driver(name: str, available: bool) -> str:
    return name if available else f"{name} (unavailable)"


def _metric_table(title: str, rows: list[tuple[str, str]], key_header: str = "Metric") -> Table:
    table = Table(title=title, title_justify="left")
    table.add_column(key_header, style="cyan")
    table.add_column("Value")
    for key, value in rows:
        table.add_row(key, value)
    return table


def render_analysis(results: AnalysisResults, console: Console) -> None:
    """Print one table per analysis section."""
    performance = results.performance
    console.print(
        _metric_table(
            "Performance Metrics",
            [
                ("Request Time", _ms(performance.request_time_ms)),
                ("Memory Usage", format_bytes(performance.memory_usage_bytes)),
                ("Peak Memory", format_bytes(performance.peak_memory_bytes)),
                ("Memory Limit", performance.memory_limit),
            ],
        )
    )

    routes = results.routes
    route_rows = [
        ("Total Routes", str(routes.total)),
        ("Recommendation", routes.recommendation or "N/A"),
    ]
    route_rows.extend(
        (f"Middleware: {name}", str(count)) for name, count in routes.middleware_usage.items()
    )
    console.print(_metric_table("Routes Analysis", route_rows))

    database = results.database
    console.print(
        _metric_table(
            "Database Analysis",
            [
                ("Connection Time", _ms(database.connection_time_ms)),
                ("Total Queries", str(database.total_queries)),
                ("Slow Queries", str(database.slow_queries)),
                ("Threshold", _ms(database.threshold_ms)),
                ("Driver", _driver(database.driver, database.available)),
            ],
        )
    )

    cache = results.cache
    console.print(
        _metric_table(
            "Cache Analysis",
            [
                ("Driver", _driver(cache.driver, cache.available)),
                ("Write Time", _ms(cache.write_time_ms)),
                ("Read Time", _ms(cache.read_time_ms)),
                ("Performance", cache.performance or "N/A"),
                ("Recommendation", cache.recommendation or "N/A"),
            ],
        )
    )

    system = results.system
    console.print(
        _metric_table(
            "System Information",
            [
                ("Python Version", system.python_version or "N/A"),
                ("Laravel Version", system.framework_version),
                ("Environment", system.environment),
                ("Debug Mode", "enabled" if system.debug_mode else "disabled"),
                ("Timezone", system.timezone),
                ("Locale", system.locale),
            ],
            key_header="Property",
        )
    )

    if results.failed_probes:
        console.print(
            f"[yellow]Probes that failed and used defaults:[/yellow] "
            f"{', '.join(results.failed_probes)}"
        )


def render_report(report: PerformanceReport, console: Console) -> None:
    """Print the score line, recommendations and generation time."""
    style = GRADE_STYLES[report.grade]
    console.print(
        Panel(
            f"Performance Score: [{style}]{report.score}/100[/{style}] "
            f"(Grade: [{style}]{report.grade.value}[/{style}])",
            title="Performance Report",
            style="bold",
        )
    )

    if report.recommendations:
        table = Table(title="Recommendations", title_justify="left")
        table.add_column("Category", style="cyan")
        table.add_column("Priority")
        table.add_column("Recommendation")
        for recommendation in report.recommendations:
            priority_style = PRIORITY_STYLES[recommendation.priority]
            table.add_row(
                recommendation.category.value.capitalize(),
                f"[{priority_style}]{recommendation.priority.value.upper()}[/{priority_style}]",
                recommendation.message,
            )
        console.print(table)
    else:
        console.print(
            "[green]No critical recommendations. Your application is well optimized![/green]"
        )

    console.print(f"Generated at: {report.generated_at.strftime('%Y-%m-%d %H:%M:%S')}")


def report_to_json(report: PerformanceReport) -> str:
    return report.model_dump_json(indent=2)


def analysis_to_json(results: AnalysisResults) -> str:
    return results.model_dump_json(indent=2)
