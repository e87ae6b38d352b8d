"""
Metrics collection for a single analysis run.

Key patterns:
- Protocol-based dependency injection for every collaborator
- Generic Result type for expected failures
- Structured concurrency with asyncio.TaskGroup
- Documented defaults in place of failed probes
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Generic, Literal, Protocol, TypeVar, cast

import structlog
from pydantic import BaseModel, Field

from optimizer_pro.config import configure_structlog
from optimizer_pro.domain.models import (
    AnalysisResults,
    CacheSection,
    DatabaseSection,
    PerformanceSection,
    RouteSection,
    SystemSection,
)

configure_structlog()

logger = structlog.get_logger(__name__)

ValueT = TypeVar("ValueT")
ErrorT = TypeVar("ErrorT", bound=BaseException)

SectionName = Literal["performance", "routes", "database", "cache", "system"]
Section = PerformanceSection | RouteSection | DatabaseSection | CacheSection | SystemSection

# Latency recorded for an unreachable cache; above both thresholds so it scores as slow
UNREACHABLE_CACHE_LATENCY_MS = 1000.0


@dataclass(frozen=True)
class Result(Generic[ValueT, ErrorT]):
    """
    Outcome of one collaborator call: either a value or the error raised instead.

    Probes hand this back rather than raising, so an unreachable cache or
    database degrades one section instead of aborting the run.
    """

    value: ValueT | None = None
    error: ErrorT | None = None

    def __post_init__(self) -> None:
        if (self.value is None) == (self.error is None):
            raise ValueError("Result needs exactly one of value or error")

    @classmethod
    def ok(cls, value: ValueT) -> "Result[ValueT, ErrorT]":
        return cls(value=value)

    @classmethod
    def err(cls, error: ErrorT) -> "Result[ValueT, ErrorT]":
        return cls(error=error)

    def is_ok(self) -> bool:
        return self.error is None

    def is_err(self) -> bool:
        return self.error is not None

    def unwrap(self) -> ValueT:
        if self.error is not None:
            raise self.error
        return cast(ValueT, self.value)

    def unwrap_or(self, default: ValueT) -> ValueT:
        return default if self.error is not None else cast(ValueT, self.value)

    def unwrap_err(self) -> ErrorT:
        if self.error is None:
            raise ValueError("unwrap_err() called on an Ok value")
        return self.error


class BackendUnavailableError(RuntimeError):
    """A cache or database backend that cannot be reached or measured."""

    def __init__(self, driver: str, reason: str) -> None:
        super().__init__(f"{driver}: {reason}")
        self.driver = driver


class MetricsProbe(Protocol):
    """
    Collects one section of the analysis.

    A probe never raises for expected failures; it returns Result.err instead.
    """

    probe_name: str
    section: SectionName

    async def collect(self) -> Result[Section, Exception]: ...


def fallback_section(section: SectionName, error: BaseException | None = None) -> Section:
    """
    Defaults substituted for a probe that failed or timed out.

    Cache and database sections keep the driver named by a BackendUnavailableError
    and are flagged as unavailable.
    """
    driver = error.driver if isinstance(error, BackendUnavailableError) else "unavailable"
    if section == "cache":
        return CacheSection(
            driver=driver,
            available=False,
            write_time_ms=UNREACHABLE_CACHE_LATENCY_MS,
            read_time_ms=UNREACHABLE_CACHE_LATENCY_MS,
        )
    if section == "database":
        return DatabaseSection(driver=driver, available=False)
    if section == "routes":
        return RouteSection()
    if section == "performance":
        return PerformanceSection()
    return SystemSection()


class SnapshotCollectorConfig(BaseModel):
    """Configuration with validation and smart defaults."""

    timeout_seconds: float = Field(
        default=5.0,
        gt=0.0,
        description="Timeout for an individual probe in seconds.",
    )


class SnapshotCollector:
    """
    Runs every probe once, concurrently, and assembles AnalysisResults.

    Design principles:
    - Fail fast on registration (one probe per section)
    - Graceful degradation at runtime (failed probes get defaults)
    - Observable (structured logging for every probe outcome)
    """

    def __init__(self, config: SnapshotCollectorConfig | None = None) -> None:
        self.config = config or SnapshotCollectorConfig()
        self.probes: list[MetricsProbe] = []
        self.logger = logger.bind(component="snapshot_collector")

    def add_probe(self, probe: MetricsProbe) -> None:
        """Add a probe. Only one probe may feed each section."""
        if not hasattr(probe, "collect"):
            raise TypeError(f"Probe {probe} must implement MetricsProbe protocol")
        if any(existing.section == probe.section for existing in self.probes):
            raise ValueError(f"A probe for section '{probe.section}' is already registered")
        self.probes.append(probe)
        self.logger.info("probe_added", probe=probe.probe_name, section=probe.section)

    def remove_probe(self, probe: MetricsProbe) -> None:
        self.probes.remove(probe)
        self.logger.info("probe_removed", probe=probe.probe_name)

    async def _run_probe(self, probe: MetricsProbe) -> Result[Section, Exception]:
        try:
            return await asyncio.wait_for(probe.collect(), timeout=self.config.timeout_seconds)
        except TimeoutError as e:
            self.logger.warning(
                "probe_timeout", probe=probe.probe_name, timeout_seconds=self.config.timeout_seconds
            )
            return Result.err(e)
        except Exception as e:
            self.logger.exception("unexpected_probe_error", probe=probe.probe_name, error=str(e))
            return Result.err(e)

    async def collect(self) -> AnalysisResults:
        """
        Collect every section. Sections without a probe keep their defaults.
        """
        start_time = time.perf_counter()

        async with asyncio.TaskGroup() as task_group:
            tasks = [
                (probe, task_group.create_task(self._run_probe(probe))) for probe in self.probes
            ]

        sections: dict[str, Section] = {}
        failed_probes: list[str] = []
        for probe, task in tasks:
            result = task.result()
            if result.is_ok():
                sections[probe.section] = result.unwrap()
                self.logger.debug("probe_collected", probe=probe.probe_name)
            else:
                self.logger.warning(
                    "probe_failed",
                    probe=probe.probe_name,
                    section=probe.section,
                    error=str(result.unwrap_err()),
                )
                sections[probe.section] = fallback_section(probe.section, result.unwrap_err())
                failed_probes.append(probe.probe_name)

        results = AnalysisResults(**sections, failed_probes=failed_probes)

        self.logger.info(
            "snapshot_collected",
            successful_probes=len(self.probes) - len(failed_probes),
            total_probes=len(self.probes),
            failed_probes=failed_probes,
            duration_seconds=round(time.perf_counter() - start_time, 3),
        )
        return results
