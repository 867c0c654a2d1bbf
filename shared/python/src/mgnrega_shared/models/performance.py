"""
models/performance.py — Pydantic models for the monthly_performance table.

Natural key is (region_id, month, year); the store upserts on it.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from mgnrega_shared.constants import PERFORMANCE_FIELDS


class PerformanceValues(BaseModel):
    """The metric columns of one period, every one optional."""

    job_cards_issued: int | None = None
    persons_worked: int | None = None
    person_days_generated: int | None = None
    avg_wage: float | None = None
    works_completed: int | None = None
    works_ongoing: int | None = None
    expenditure: float | None = None
    budget_utilization: float | None = None


class MonthlyPerformance(PerformanceValues):
    """
    Matches the monthly_performance table row.

    At most one row exists per (region_id, month, year).
    """

    id: str | None = None
    region_id: str
    month: int = Field(ge=1, le=12)
    year: int
    last_updated: datetime | None = None

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> "MonthlyPerformance":
        return cls(**row)

    def metric_values(self) -> dict[str, int | float | None]:
        return {name: getattr(self, name) for name in PERFORMANCE_FIELDS}
