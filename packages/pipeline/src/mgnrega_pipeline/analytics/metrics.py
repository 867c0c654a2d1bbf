"""
analytics/metrics.py — Derived district performance metrics.

Pure functions over MonthlyPerformance rows; nothing here touches storage.

  calculate_efficiency_score     — weighted 0–100 composite for one period
  performance_rating             — good / average / needs_improvement
  calculate_performance_metrics  — efficiency + rating + trend vs previous period
  calculate_trend                — % change of one metric across a window
  calculate_comparative_metrics  — region vs state average, with rank
  summarize_region               — metrics + per-metric trends for one region

Efficiency weights:
  budget utilization        0.30  (already a percentage)
  employment rate           0.25  persons worked / job cards issued
  person-days per worker    0.25  against 8.33 days/month (100 days/year)
  work completion rate      0.20  completed / (completed + ongoing)

Rounding is half-up everywhere (62.5 -> 63).

Usage:
    from mgnrega_pipeline.analytics.metrics import (
        calculate_performance_metrics, calculate_trend, calculate_comparative_metrics,
    )

    metrics = calculate_performance_metrics(latest, previous)
    trend = calculate_trend(rows, "expenditure")
    cmp = calculate_comparative_metrics(region_rows, "persons_worked", state_rows)
"""

from __future__ import annotations

import math
from collections.abc import Sequence

import polars as pl
from pydantic import BaseModel, Field

from mgnrega_shared.constants import PERFORMANCE_FIELDS, PerformanceRating, TrendDirection
from mgnrega_shared.models import MonthlyPerformance, PerformanceValues

EFFICIENCY_WEIGHTS: dict[str, float] = {
    "budget_utilization": 0.30,
    "employment_rate": 0.25,
    "person_days_per_worker": 0.25,
    "completion_rate": 0.20,
}

# 100 days of work per year
IDEAL_PERSON_DAYS_PER_MONTH = 8.33

# Efficiency points either side of the previous period that still count as stable
EFFICIENCY_TREND_BAND = 5
# Percent change either side of zero that still counts as stable
METRIC_TREND_BAND = 5.0

TREND_METRICS: tuple[str, ...] = (
    "persons_worked",
    "expenditure",
    "works_completed",
    "budget_utilization",
)
COMPARISON_METRICS: tuple[str, ...] = (*TREND_METRICS, "person_days_generated")

_INT_COLUMNS = {
    "job_cards_issued",
    "persons_worked",
    "person_days_generated",
    "works_completed",
    "works_ongoing",
}

FRAME_SCHEMA: dict[str, pl.DataType] = {
    "region_id": pl.String,
    "month": pl.Int32,
    "year": pl.Int32,
    **{f: (pl.Int64 if f in _INT_COLUMNS else pl.Float64) for f in PERFORMANCE_FIELDS},
}


class PerformanceMetrics(BaseModel):
    employment_rate: float
    utilization_score: float
    efficiency_score: int
    trend_direction: TrendDirection
    performance_rating: PerformanceRating


class TrendResult(BaseModel):
    trend: TrendDirection
    change_percent: float
    values: list[float] = Field(default_factory=list)


class ComparativeMetrics(BaseModel):
    region_value: float
    state_average: float
    percentage_difference: float
    is_above_average: bool
    ranking: int
    total_regions: int


class RegionSummary(BaseModel):
    latest: MonthlyPerformance
    metrics: PerformanceMetrics
    trends: dict[str, TrendResult]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _round_half_up(value: float, ndigits: int = 0) -> float:
    factor = 10**ndigits
    return math.floor(value * factor + 0.5) / factor


def _clamp_pct(value: float) -> float:
    return max(0.0, min(value, 100.0))


def _check_metric(metric: str) -> None:
    if metric not in PERFORMANCE_FIELDS:
        raise ValueError(f"Unknown performance metric: {metric!r}")


def records_to_frame(records: Sequence[MonthlyPerformance]) -> pl.DataFrame:
    """One row per record with FRAME_SCHEMA columns; missing metrics are null."""
    return pl.DataFrame(
        {col: [getattr(r, col) for r in records] for col in FRAME_SCHEMA},
        schema=FRAME_SCHEMA,
    )


def _metric_mean(df: pl.DataFrame, metric: str) -> float:
    """Unweighted mean over rows; a missing value counts as 0."""
    if df.is_empty():
        return 0.0
    return float(df.get_column(metric).fill_null(0).cast(pl.Float64).mean())


# ---------------------------------------------------------------------------
# Single-period scores
# ---------------------------------------------------------------------------

def employment_rate(record: PerformanceValues) -> float:
    """Persons worked per job card, as a percentage (uncapped). 0 without job cards."""
    if not record.job_cards_issued:
        return 0.0
    return (record.persons_worked or 0) / record.job_cards_issued * 100


def calculate_efficiency_score(record: PerformanceValues) -> int:
    """Weighted composite in [0, 100]."""
    budget_score = _clamp_pct(record.budget_utilization or 0.0)
    employment_score = _clamp_pct(employment_rate(record))

    if record.persons_worked:
        days_per_worker = (record.person_days_generated or 0) / record.persons_worked
    else:
        days_per_worker = 0.0
    person_days_score = _clamp_pct(days_per_worker / IDEAL_PERSON_DAYS_PER_MONTH * 100)

    completed = record.works_completed or 0
    total_works = completed + (record.works_ongoing or 0)
    completion_score = _clamp_pct(completed / total_works * 100) if total_works > 0 else 0.0

    score = (
        budget_score * EFFICIENCY_WEIGHTS["budget_utilization"]
        + employment_score * EFFICIENCY_WEIGHTS["employment_rate"]
        + person_days_score * EFFICIENCY_WEIGHTS["person_days_per_worker"]
        + completion_score * EFFICIENCY_WEIGHTS["completion_rate"]
    )
    return int(_round_half_up(score))


def performance_rating(efficiency_score: float, budget_utilization: float) -> PerformanceRating:
    if efficiency_score >= 75 and budget_utilization >= 80:
        return "good"
    if efficiency_score < 50 or budget_utilization < 60:
        return "needs_improvement"
    return "average"


def calculate_performance_metrics(
    current: PerformanceValues,
    previous: PerformanceValues | None = None,
) -> PerformanceMetrics:
    """
    Scores for `current`, with the efficiency trend against `previous`.

    Without a previous period the trend is "stable".
    """
    efficiency = calculate_efficiency_score(current)
    utilization = current.budget_utilization or 0.0

    trend: TrendDirection = "stable"
    if previous is not None:
        prev_efficiency = calculate_efficiency_score(previous)
        if efficiency > prev_efficiency + EFFICIENCY_TREND_BAND:
            trend = "up"
        elif efficiency < prev_efficiency - EFFICIENCY_TREND_BAND:
            trend = "down"

    return PerformanceMetrics(
        employment_rate=employment_rate(current),
        utilization_score=utilization,
        efficiency_score=efficiency,
        trend_direction=trend,
        performance_rating=performance_rating(efficiency, utilization),
    )


# ---------------------------------------------------------------------------
# Multi-period metrics
# ---------------------------------------------------------------------------

def calculate_trend(records: Sequence[MonthlyPerformance], metric: str) -> TrendResult:
    """
    Percent change of `metric` from the earliest to the latest period.

    Input order does not matter; rows are sorted by (year, month). A first
    value of 0 yields 0% rather than a division error. Fewer than two
    periods is "stable" with 0% change.
    """
    _check_metric(metric)
    df = records_to_frame(records).sort(["year", "month"], maintain_order=True)
    values = df.get_column(metric).fill_null(0).cast(pl.Float64).to_list()

    if len(values) < 2:
        return TrendResult(trend="stable", change_percent=0.0, values=values)

    first, last = values[0], values[-1]
    change = (last - first) / first * 100 if first != 0 else 0.0

    trend: TrendDirection = "stable"
    if change > METRIC_TREND_BAND:
        trend = "up"
    elif change < -METRIC_TREND_BAND:
        trend = "down"

    return TrendResult(trend=trend, change_percent=_round_half_up(change, 1), values=values)


def calculate_comparative_metrics(
    region_records: Sequence[MonthlyPerformance],
    metric: str,
    all_records: Sequence[MonthlyPerformance],
) -> ComparativeMetrics:
    """
    Compare one region's average for `metric` with the whole state.

    The state average is taken over every period row, not per region.
    Ranking is 1-based over per-region averages sorted descending; ties keep
    the order in which regions first appear in `all_records`. A region with
    no rows in `all_records` gets ranking 0.
    """
    _check_metric(metric)
    all_df = records_to_frame(all_records)

    region_value = _metric_mean(records_to_frame(region_records), metric)
    state_average = _metric_mean(all_df, metric)

    if state_average != 0:
        difference = (region_value - state_average) / state_average * 100
    else:
        difference = 0.0

    averages = all_df.group_by("region_id", maintain_order=True).agg(
        pl.col(metric).fill_null(0).cast(pl.Float64).mean().alias("average")
    )
    ranked = averages.sort("average", descending=True, maintain_order=True).with_row_index(
        "rank", offset=1
    )

    ranking = 0
    if region_records:
        match = ranked.filter(pl.col("region_id") == region_records[0].region_id)
        if match.height:
            ranking = int(match.get_column("rank")[0])

    return ComparativeMetrics(
        region_value=region_value,
        state_average=state_average,
        percentage_difference=_round_half_up(difference, 1),
        is_above_average=region_value >= state_average,
        ranking=ranking,
        total_regions=averages.height,
    )


def summarize_region(
    records: Sequence[MonthlyPerformance],
    metrics: Sequence[str] = TREND_METRICS,
) -> RegionSummary | None:
    """
    Latest-period metrics and per-metric trends for one region.

    `records` are that region's rows, newest period first (as returned by
    the store). Returns None when there are no rows.
    """
    if not records:
        return None
    latest = records[0]
    previous = records[1] if len(records) > 1 else None
    return RegionSummary(
        latest=latest,
        metrics=calculate_performance_metrics(latest, previous),
        trends={m: calculate_trend(records, m) for m in metrics},
    )


def compare_region(
    region_records: Sequence[MonthlyPerformance],
    all_records: Sequence[MonthlyPerformance],
    metrics: Sequence[str] = COMPARISON_METRICS,
) -> dict[str, ComparativeMetrics]:
    """calculate_comparative_metrics for each of `metrics`."""
    return {m: calculate_comparative_metrics(region_records, m, all_records) for m in metrics}
