"""
transforms/normalize.py — Reconcile loosely typed upstream rows into canonical records.

data.gov.in rows arrive with:
  - numbers as strings ("64718", "245.37", occasionally "NA" or "")
  - month as a full English name ("April")
  - year as a fiscal-year span ("2024-2025")
  - no budget utilization column (it is derived from Total_Exp and
    Approved_Labour_Budget)

Each row is first modeled as an UpstreamRecord (aliases for the upstream
field names, values left raw), then converted into a CanonicalRecord.

Fallbacks are explicit rather than silent:
  - a numeric field that is missing or unparseable becomes 0 and its name is
    listed in `defaulted_fields`
  - an unrecognized month name becomes 1 (January) with `month_inferred=True`
  - a fiscal year that does not match "YYYY-" becomes the current calendar
    year with `year_inferred=True`
Both period fallbacks can mis-attribute a record to the wrong period; they are
kept for parity with existing stored data and flagged so callers can tell.

Usage:
    from mgnrega_pipeline.transforms.normalize import normalize

    rec = normalize(raw_row)
    rec.month, rec.year, rec.budget_utilization
    values = rec.to_performance_values()   # defaulted fields -> None
"""

from __future__ import annotations

import math
from collections.abc import Callable
from datetime import date
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from mgnrega_shared.constants import UPSTREAM_FIELD_MAP
from mgnrega_shared.models.performance import PerformanceValues
from mgnrega_shared.time_utils import Period, month_name_to_number, parse_fiscal_year
from mgnrega_pipeline.errors import NormalizationError

# Canonical fields parsed as integers (truncating) and as floats
_INT_FIELDS: tuple[str, ...] = (
    "job_cards_issued",
    "persons_worked",
    "person_days_generated",
    "works_completed",
    "works_ongoing",
)
_FLOAT_FIELDS: tuple[str, ...] = ("avg_wage", "expenditure", "approved_labour_budget")


class UpstreamRecord(BaseModel):
    """
    One raw data.gov.in row. Values are kept as received.

    Upstream column names are renamed through UPSTREAM_FIELD_MAP before
    validation, so rows keyed either way are accepted.
    """

    model_config = ConfigDict(extra="allow")

    district_code: str | None = None
    district_name: str | None = None
    state_name: str | None = None
    month: Any = None
    fin_year: Any = None

    job_cards_issued: Any = None
    persons_worked: Any = None
    person_days_generated: Any = None
    avg_wage: Any = None
    works_completed: Any = None
    works_ongoing: Any = None
    expenditure: Any = None
    approved_labour_budget: Any = None

    @model_validator(mode="before")
    @classmethod
    def _rename_upstream_fields(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        return {UPSTREAM_FIELD_MAP.get(key, key): value for key, value in data.items()}

    @field_validator("district_code", "district_name", "state_name", mode="before")
    @classmethod
    def _stringify(cls, v: Any) -> Any:
        if v is None:
            return None
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(int(v)) if float(v).is_integer() else str(v)
        if isinstance(v, str):
            return v.strip() or None
        return v


class CanonicalRecord(BaseModel):
    """A normalized period row, ready for upsert."""

    region_code: str
    region_name: str | None = None
    state_name: str | None = None
    month: int = Field(ge=1, le=12)
    year: int

    job_cards_issued: int = 0
    persons_worked: int = 0
    person_days_generated: int = 0
    avg_wage: float = 0.0
    works_completed: int = 0
    works_ongoing: int = 0
    expenditure: float = 0.0
    approved_labour_budget: float = 0.0
    budget_utilization: float = 0.0

    defaulted_fields: list[str] = Field(default_factory=list)
    month_inferred: bool = False
    year_inferred: bool = False

    @property
    def period(self) -> Period:
        return Period(self.month, self.year)

    def to_performance_values(self) -> PerformanceValues:
        """
        Metric columns for the store.

        Fields that were defaulted upstream are stored as NULL instead of a
        fabricated zero; budget utilization is always stored (it is derived).
        """
        defaulted = set(self.defaulted_fields)
        values = {
            name: (None if name in defaulted else getattr(self, name))
            for name in (*_INT_FIELDS, "avg_wage", "expenditure")
        }
        values["budget_utilization"] = self.budget_utilization
        return PerformanceValues(**values)


# ---------------------------------------------------------------------------
# Scalar coercion: None means "could not parse"
# ---------------------------------------------------------------------------

def _clean_numeric_string(raw: str) -> str:
    return raw.strip().replace(",", "")


def coerce_float(raw: Any) -> float | None:
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        value = float(raw)
    elif isinstance(raw, str):
        try:
            value = float(_clean_numeric_string(raw))
        except ValueError:
            return None
    else:
        return None
    return value if math.isfinite(value) else None


def coerce_int(raw: Any) -> int | None:
    """Integer parse that truncates decimals ("12.7" -> 12)."""
    if isinstance(raw, int) and not isinstance(raw, bool):
        return raw
    if isinstance(raw, str):
        try:
            return int(_clean_numeric_string(raw))
        except ValueError:
            pass
    value = coerce_float(raw)
    return int(value) if value is not None else None


def _numeric(
    name: str,
    raw: Any,
    parser: Callable[[Any], int | float | None],
    defaulted: list[str],
) -> int | float:
    parsed = parser(raw)
    if parsed is None:
        defaulted.append(name)
        return 0
    return parsed


# ---------------------------------------------------------------------------
# Period fields
# ---------------------------------------------------------------------------

def normalize_month(raw: Any, default_period: Period | None = None) -> tuple[int, bool]:
    """Return (month, inferred)."""
    if isinstance(raw, str):
        number = month_name_to_number(raw)
        return (number, False) if number else (1, True)
    if isinstance(raw, int) and not isinstance(raw, bool) and 1 <= raw <= 12:
        return raw, False
    return (default_period.month if default_period else 1), True


def normalize_year(
    raw: Any,
    default_period: Period | None = None,
    *,
    today: date | None = None,
) -> tuple[int, bool]:
    """Return (year, inferred)."""
    current_year = (today or date.today()).year
    if isinstance(raw, str):
        year = parse_fiscal_year(raw)
        return (year, False) if year is not None else (current_year, True)
    if isinstance(raw, int) and not isinstance(raw, bool) and raw > 0:
        return raw, False
    return (default_period.year if default_period else current_year), True


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------

def normalize(
    raw: dict[str, Any] | UpstreamRecord,
    *,
    default_period: Period | None = None,
    today: date | None = None,
) -> CanonicalRecord:
    """
    Convert one upstream row into a CanonicalRecord.

    Args:
        raw:            Raw JSON object (or an already-modeled UpstreamRecord).
        default_period: Period used when the row carries no month/year at all
                        (e.g. the period that was requested).
        today:          Clock override for the current-year fallback.

    Raises:
        NormalizationError: the row is not an object or has no district code.
    """
    if isinstance(raw, UpstreamRecord):
        upstream = raw
    elif isinstance(raw, dict):
        try:
            upstream = UpstreamRecord.model_validate(raw)
        except ValidationError as exc:
            raise NormalizationError(f"Malformed upstream record: {exc}") from exc
    else:
        raise NormalizationError(f"Upstream record is not an object: {type(raw).__name__}")

    if not upstream.district_code:
        raise NormalizationError("Upstream record has no district_code")

    month, month_inferred = normalize_month(upstream.month, default_period)
    year, year_inferred = normalize_year(upstream.fin_year, default_period, today=today)

    defaulted: list[str] = []
    ints = {name: _numeric(name, getattr(upstream, name), coerce_int, defaulted) for name in _INT_FIELDS}
    floats = {
        name: _numeric(name, getattr(upstream, name), coerce_float, defaulted)
        for name in _FLOAT_FIELDS
    }

    approved = floats["approved_labour_budget"]
    utilization = floats["expenditure"] / approved * 100 if approved > 0 else 0.0

    return CanonicalRecord(
        region_code=upstream.district_code,
        region_name=upstream.district_name,
        state_name=upstream.state_name,
        month=month,
        year=year,
        **ints,
        **floats,
        budget_utilization=utilization,
        defaulted_fields=defaulted,
        month_inferred=month_inferred,
        year_inferred=year_inferred,
    )
