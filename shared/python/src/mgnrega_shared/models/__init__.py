"""
mgnrega_shared.models — Pydantic models matching each database table.

These models are used by:
- the stores: validate rows before and after writes
- the metrics engine: typed access to period records

Table models provide:
  .from_db_row(row: dict) -> Model
"""

from mgnrega_shared.models.performance import MonthlyPerformance, PerformanceValues
from mgnrega_shared.models.region import Region
from mgnrega_shared.models.sync import BackfillResult, PeriodOutcome, SyncResult, SyncRun

__all__ = [
    "Region",
    "PerformanceValues",
    "MonthlyPerformance",
    "SyncRun",
    "SyncResult",
    "PeriodOutcome",
    "BackfillResult",
]
