"""
Performance scoring and recommendation engine.

A fixed-point deduction model: every run starts at 100 and each triggered
rule subtracts its points. Rules are independent and additive, so the
final score never increases as more conditions trigger.

Rule order (also the recommendation order):
- cache: slow write OR slow read, one flat deduction
- database: capped linear penalty per slow query
- routes: flat deduction above the route threshold
- security: debug mode enabled in production

Everything here is pure: no I/O, no logging, no shared state.
"""

from pydantic import BaseModel, ConfigDict, Field

from optimizer_pro.domain.models import (
    AnalysisResults,
    Category,
    Grade,
    MetricsSnapshot,
    Priority,
    Recommendation,
    ScoreResult,
)

MAX_SCORE = 100
PRODUCTION_ENVIRONMENT = "production"

SLOW_CACHE_MESSAGE = "Consider using Redis or Memcached"
OPTIMAL_CACHE_MESSAGE = "Cache performance is optimal"
ROUTE_CACHE_MESSAGE = "Consider route caching: php artisan route:cache"
OPTIMAL_ROUTES_MESSAGE = "Route count is optimal"

# Inclusive lower bounds, checked top-down
GRADE_THRESHOLDS: tuple[tuple[int, Grade], ...] = (
    (90, Grade.A),
    (80, Grade.B),
    (70, Grade.C),
    (60, Grade.D),
)


class ScoringRules(BaseModel):
    """Thresholds and point values for each deduction rule."""

    model_config = ConfigDict(frozen=True)

    cache_write_threshold_ms: float = Field(default=10.0, ge=0.0)
    cache_read_threshold_ms: float = Field(default=5.0, ge=0.0)
    cache_deduction: int = Field(default=20, ge=0)

    slow_query_deduction_each: int = Field(default=5, ge=0)
    slow_query_deduction_cap: int = Field(default=30, ge=0)

    route_threshold: int = Field(default=500, ge=0)
    route_deduction: int = Field(default=15, ge=0)

    debug_in_production_deduction: int = Field(default=25, ge=0)


DEFAULT_RULES = ScoringRules()


def is_cache_slow(snapshot: MetricsSnapshot, rules: ScoringRules = DEFAULT_RULES) -> bool:
    """Either threshold alone marks the cache as slow."""
    return (
        snapshot.cache_write_time_ms > rules.cache_write_threshold_ms
        or snapshot.cache_read_time_ms > rules.cache_read_threshold_ms
    )


def has_slow_queries(snapshot: MetricsSnapshot) -> bool:
    return snapshot.slow_query_count > 0


def has_too_many_routes(snapshot: MetricsSnapshot, rules: ScoringRules = DEFAULT_RULES) -> bool:
    return snapshot.route_count > rules.route_threshold


def is_debug_in_production(snapshot: MetricsSnapshot) -> bool:
    return snapshot.environment == PRODUCTION_ENVIRONMENT and snapshot.debug_mode_enabled


def deductions(
    snapshot: MetricsSnapshot, rules: ScoringRules = DEFAULT_RULES
) -> dict[Category, int]:
    """
    Points deducted per rule, zero for rules that did not trigger.

    Keys follow evaluation order: cache, database, routes, security.
    """
    return {
        Category.CACHE: rules.cache_deduction if is_cache_slow(snapshot, rules) else 0,
        Category.DATABASE: min(
            rules.slow_query_deduction_cap,
            snapshot.slow_query_count * rules.slow_query_deduction_each,
        ),
        Category.ROUTES: rules.route_deduction if has_too_many_routes(snapshot, rules) else 0,
        Category.SECURITY: (
            rules.debug_in_production_deduction if is_debug_in_production(snapshot) else 0
        ),
    }


def calculate_score(snapshot: MetricsSnapshot, rules: ScoringRules = DEFAULT_RULES) -> int:
    return max(0, MAX_SCORE - sum(deductions(snapshot, rules).values()))


def grade_for_score(score: int) -> Grade:
    for lower_bound, grade in GRADE_THRESHOLDS:
        if score >= lower_bound:
            return grade
    return Grade.F


def generate_recommendations(
    snapshot: MetricsSnapshot, rules: ScoringRules = DEFAULT_RULES
) -> list[Recommendation]:
    """
    One recommendation per triggered rule, in evaluation order.

    Runs independently of the score so the list is never severity-sorted.
    """
    recommendations: list[Recommendation] = []

    if is_cache_slow(snapshot, rules):
        recommendations.append(
            Recommendation(
                category=Category.CACHE,
                priority=Priority.HIGH,
                message=SLOW_CACHE_MESSAGE,
            )
        )

    if has_slow_queries(snapshot):
        recommendations.append(
            Recommendation(
                category=Category.DATABASE,
                priority=Priority.HIGH,
                message="Optimize slow database queries",
            )
        )

    if has_too_many_routes(snapshot, rules):
        recommendations.append(
            Recommendation(
                category=Category.ROUTES,
                priority=Priority.MEDIUM,
                message="Enable route caching for better performance",
            )
        )

    if is_debug_in_production(snapshot):
        recommendations.append(
            Recommendation(
                category=Category.SECURITY,
                priority=Priority.CRITICAL,
                message="Disable debug mode in production",
            )
        )

    return recommendations


def evaluate(snapshot: MetricsSnapshot, rules: ScoringRules = DEFAULT_RULES) -> ScoreResult:
    """Score a snapshot, grade it and attach recommendations."""
    score = calculate_score(snapshot, rules)
    return ScoreResult(
        score=score,
        grade=grade_for_score(score),
        recommendations=tuple(generate_recommendations(snapshot, rules)),
    )


def assess_sections(
    results: AnalysisResults, rules: ScoringRules = DEFAULT_RULES
) -> AnalysisResults:
    """
    Attach the per-section verdicts shown in the analysis tables.

    Uses the same predicates as the score, so a cache marked "slow" here is
    exactly a cache that costs the cache deduction.
    """
    snapshot = results.to_snapshot()
    cache_slow = is_cache_slow(snapshot, rules)
    cache = results.cache.model_copy(
        update={
            "performance": "slow" if cache_slow else "good",
            "recommendation": SLOW_CACHE_MESSAGE if cache_slow else OPTIMAL_CACHE_MESSAGE,
        }
    )
    routes = results.routes.model_copy(
        update={
            "recommendation": (
                ROUTE_CACHE_MESSAGE
                if has_too_many_routes(snapshot, rules)
                else OPTIMAL_ROUTES_MESSAGE
            )
        }
    )
    return results.model_copy(update={"cache": cache, "routes": routes})
