"""
Core services for the application.

This package contains metric collection, the scoring engine, and the
analyzer that ties them together.
"""

from .analyzer import PerformanceAnalyzer
from .metrics_collector import (
    MetricsProbe,
    Result,
    SnapshotCollector,
    SnapshotCollectorConfig,
)
from .scoring import ScoringRules, evaluate

__all__ = [
    "MetricsProbe",
    "PerformanceAnalyzer",
    "Result",
    "ScoringRules",
    "SnapshotCollector",
    "SnapshotCollectorConfig",
    "evaluate",
]
