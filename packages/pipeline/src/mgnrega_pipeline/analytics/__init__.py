"""mgnrega_pipeline.analytics — derived performance metrics over stored periods."""

from mgnrega_pipeline.analytics.metrics import (
    ComparativeMetrics,
    PerformanceMetrics,
    RegionSummary,
    TrendResult,
    calculate_comparative_metrics,
    calculate_efficiency_score,
    calculate_performance_metrics,
    calculate_trend,
    compare_region,
    performance_rating,
    records_to_frame,
    summarize_region,
)

__all__ = [
    "ComparativeMetrics",
    "PerformanceMetrics",
    "RegionSummary",
    "TrendResult",
    "calculate_comparative_metrics",
    "calculate_efficiency_score",
    "calculate_performance_metrics",
    "calculate_trend",
    "compare_region",
    "performance_rating",
    "records_to_frame",
    "summarize_region",
]
