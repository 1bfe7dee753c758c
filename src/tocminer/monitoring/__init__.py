"""Extraction performance statistics."""

from .performance import (
    ConfidenceDistribution,
    MethodRate,
    MethodStatistics,
    PerformanceMetrics,
    PerformanceMonitor,
    RecentResult,
)

__all__ = [
    "ConfidenceDistribution",
    "MethodRate",
    "MethodStatistics",
    "PerformanceMetrics",
    "PerformanceMonitor",
    "RecentResult",
]
