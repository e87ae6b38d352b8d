"""
Analyzer service that combines metric collection with scoring.

Pipeline for one run:
1. Collect every section through the snapshot collector
2. Attach the cache and route verdicts shown in the analysis tables
3. Flatten the sections into a MetricsSnapshot
4. Score, grade and recommend with the pure scoring engine
"""

import time
from pathlib import Path

import structlog

from optimizer_pro.config import AppConfig
from optimizer_pro.domain.models import AnalysisResults, PerformanceReport
from optimizer_pro.services.cache_metrics import CacheBackend, CacheProbe, build_cache_backend
from optimizer_pro.services.database_metrics import (
    DatabaseBackend,
    DatabaseProbe,
    SQLiteDatabaseBackend,
)
from optimizer_pro.services.metrics_collector import (
    Result,
    SnapshotCollector,
    SnapshotCollectorConfig,
)
from optimizer_pro.services.route_metrics import RouteProbe, RouteRegistry, StaticRouteRegistry
from optimizer_pro.services.runtime_metrics import (
    EnvironmentSystemInfo,
    PerformanceProbe,
    SystemInfoSource,
    SystemProbe,
)
from optimizer_pro.services.scoring import ScoringRules, assess_sections, evaluate

logger = structlog.get_logger(__name__)


class PerformanceAnalyzer:
    """
    Runs an analysis and turns it into a scored performance report.
    """

    def __init__(self, collector: SnapshotCollector, rules: ScoringRules | None = None) -> None:
        self.collector = collector
        self.rules = rules or ScoringRules()
        self.logger = logger.bind(component="performance_analyzer")

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        *,
        cache: CacheBackend | None = None,
        database: DatabaseBackend | None = None,
        routes: RouteRegistry | None = None,
        system: SystemInfoSource | None = None,
        started_at: float | None = None,
    ) -> "PerformanceAnalyzer":
        """Wire every probe, using bundled collaborators where none is given."""
        collector = SnapshotCollector(
            SnapshotCollectorConfig(timeout_seconds=config.analyzer.probe_timeout_seconds)
        )
        collector.add_probe(PerformanceProbe(started_at=started_at))
        collector.add_probe(RouteProbe(routes or StaticRouteRegistry()))
        collector.add_probe(
            DatabaseProbe(
                database or SQLiteDatabaseBackend.from_url(config.database.url),
                slow_query_threshold_ms=config.analyzer.slow_query_threshold_ms,
            )
        )
        if cache is None:
            cache_path = Path(config.cache.path) if config.cache.path else None
            cache = build_cache_backend(config.cache.driver, cache_path)
        collector.add_probe(CacheProbe(cache, ttl_seconds=config.cache.default_ttl_seconds))
        collector.add_probe(SystemProbe(system or EnvironmentSystemInfo(config)))
        return cls(collector, ScoringRules(route_threshold=config.analyzer.route_threshold))

    async def analyze(self) -> Result[AnalysisResults, Exception]:
        start_time = time.perf_counter()
        try:
            results = assess_sections(await self.collector.collect(), self.rules)
        except Exception as e:
            self.logger.error("performance_analysis_failed", error=str(e))
            return Result.err(e)

        self.logger.info(
            "performance_analysis_completed",
            failed_probes=results.failed_probes,
            duration_seconds=round(time.perf_counter() - start_time, 3),
        )
        return Result.ok(results)

    async def generate_report(self) -> Result[PerformanceReport, Exception]:
        analysis = await self.analyze()
        if analysis.is_err():
            return Result.err(analysis.unwrap_err())

        results = analysis.unwrap()
        try:
            score = evaluate(results.to_snapshot(), self.rules)
        except ValueError as e:
            # Snapshot validation rejected what the probes produced
            self.logger.error("performance_report_failed", error=str(e))
            return Result.err(e)

        self.logger.info(
            "performance_report_generated",
            score=score.score,
            grade=score.grade.value,
            recommendations=len(score.recommendations),
        )
        return Result.ok(
            PerformanceReport(
                score=score.score,
                grade=score.grade,
                recommendations=list(score.recommendations),
                metrics=results,
            )
        )
