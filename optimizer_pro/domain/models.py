"""
Domain models for application performance analysis.

These models represent the core business concepts and are framework-agnostic.
They use Pydantic for validation; value records are frozen so a snapshot
collected once per run cannot drift while it is being scored.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Priority(str, Enum):
    """How urgently a recommendation should be acted on."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Grade(str, Enum):
    """Letter bucket derived from the numeric score."""

    A = "A"
    B = "B"
    C = "C"
    D = "D"
    F = "F"


class Category(str, Enum):
    """Areas a recommendation can target, in evaluation order."""

    CACHE = "cache"
    DATABASE = "database"
    ROUTES = "routes"
    SECURITY = "security"


class MetricsSnapshot(BaseModel):
    """Point-in-time set of collected performance metrics."""

    model_config = ConfigDict(frozen=True)

    request_time_ms: float = Field(ge=0.0)
    memory_usage_bytes: int = Field(ge=0)
    peak_memory_bytes: int = Field(ge=0)
    memory_limit: str
    route_count: int = Field(ge=0)
    db_connection_time_ms: float = Field(ge=0.0)
    total_queries: int = Field(ge=0)
    slow_query_count: int = Field(ge=0)
    slow_query_threshold_ms: float = Field(ge=0.0)
    cache_driver: str
    cache_write_time_ms: float = Field(ge=0.0)
    cache_read_time_ms: float = Field(ge=0.0)
    environment: str = Field(description="e.g., local, staging, production, testing")
    debug_mode_enabled: bool

    @model_validator(mode="after")
    def slow_queries_within_total(self) -> "MetricsSnapshot":
        if self.slow_query_count > self.total_queries:
            raise ValueError("slow_query_count cannot exceed total_queries")
        return self


class Recommendation(BaseModel):
    """Human-readable suggestion tied to one triggered rule."""

    model_config = ConfigDict(frozen=True)

    category: Category
    priority: Priority
    message: str = Field(min_length=1)


class ScoreResult(BaseModel):
    """Score, grade and recommendations derived from a snapshot."""

    model_config = ConfigDict(frozen=True)

    score: int = Field(ge=0, le=100)
    grade: Grade
    recommendations: tuple[Recommendation, ...] = ()


# Analysis sections, one per collaborator probe


class PerformanceSection(BaseModel):
    model_config = ConfigDict(frozen=True)

    request_time_ms: float = Field(default=0.0, ge=0.0)
    memory_usage_bytes: int = Field(default=0, ge=0)
    peak_memory_bytes: int = Field(default=0, ge=0)
    memory_limit: str = "unknown"


class RouteSection(BaseModel):
    model_config = ConfigDict(frozen=True)

    total: int = Field(default=0, ge=0)
    middleware_usage: dict[str, int] = Field(
        default_factory=dict, description="Five most used middleware and their route counts"
    )
    recommendation: str | None = None


class DatabaseSection(BaseModel):
    model_config = ConfigDict(frozen=True)

    driver: str = "unknown"
    connection_time_ms: float = Field(default=0.0, ge=0.0)
    total_queries: int = Field(default=0, ge=0)
    slow_queries: int = Field(default=0, ge=0)
    threshold_ms: float = Field(default=200.0, ge=0.0)
    available: bool = True


class CacheSection(BaseModel):
    model_config = ConfigDict(frozen=True)

    driver: str = "unknown"
    write_time_ms: float = Field(default=0.0, ge=0.0)
    read_time_ms: float = Field(default=0.0, ge=0.0)
    available: bool = True
    performance: Literal["good", "slow"] | None = None
    recommendation: str | None = None


class SystemSection(BaseModel):
    model_config = ConfigDict(frozen=True)

    python_version: str = ""
    framework_version: str = "unknown"
    environment: str = "unknown"
    debug_mode: bool = False
    timezone: str = "UTC"
    locale: str = "en"


class AnalysisResults(BaseModel):
    """Everything the collectors gathered in one analysis run."""

    performance: PerformanceSection = Field(default_factory=PerformanceSection)
    routes: RouteSection = Field(default_factory=RouteSection)
    database: DatabaseSection = Field(default_factory=DatabaseSection)
    cache: CacheSection = Field(default_factory=CacheSection)
    system: SystemSection = Field(default_factory=SystemSection)
    failed_probes: list[str] = Field(default_factory=list)

    def to_snapshot(self) -> MetricsSnapshot:
        """Flatten the sections into the snapshot consumed by the scoring engine."""
        return MetricsSnapshot(
            request_time_ms=self.performance.request_time_ms,
            memory_usage_bytes=self.performance.memory_usage_bytes,
            peak_memory_bytes=self.performance.peak_memory_bytes,
            memory_limit=self.performance.memory_limit,
            route_count=self.routes.total,
            db_connection_time_ms=self.database.connection_time_ms,
            total_queries=self.database.total_queries,
            slow_query_count=self.database.slow_queries,
            slow_query_threshold_ms=self.database.threshold_ms,
            cache_driver=self.cache.driver,
            cache_write_time_ms=self.cache.write_time_ms,
            cache_read_time_ms=self.cache.read_time_ms,
            environment=self.system.environment,
            debug_mode_enabled=self.system.debug_mode,
        )


class PerformanceReport(BaseModel):
    """Scored report for a single analysis run."""

    score: int = Field(ge=0, le=100)
    grade: Grade
    recommendations: list[Recommendation]
    metrics: AnalysisResults
    generated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
