"""
time_utils.py — Month, period, and fiscal-year helpers.

data.gov.in publishes MGNREGA periods in two inconsistent ways:
- Month as a full English name: "April", "january"
- Year as a fiscal-year span: "2024-2025"

Usage:
    from mgnrega_shared.time_utils import (
        month_name_to_number, month_number_to_name, parse_fiscal_year,
        fiscal_year_label, trailing_periods,
    )

    month_name_to_number("April")        # 4
    month_name_to_number("Apr")          # None
    parse_fiscal_year("2024-2025")       # 2024
    fiscal_year_label(2024)              # "2024-2025"
    trailing_periods(3, today=date(2025, 2, 10))
    # [Period(2, 2025), Period(1, 2025), Period(12, 2024)]
"""

from __future__ import annotations

import re
from datetime import date
from typing import NamedTuple

from dateutil.relativedelta import relativedelta

from mgnrega_shared.constants import MONTH_NAMES

_MONTH_NUMBERS: dict[str, int] = {
    name.lower(): i for i, name in enumerate(MONTH_NAMES, start=1)
}

_FISCAL_YEAR_RE = re.compile(r"^(\d{4})-")


class Period(NamedTuple):
    """A (month, year) reporting cycle."""

    month: int
    year: int

    def label(self) -> str:
        return f"{self.month}/{self.year}"


def month_name_to_number(name: str) -> int | None:
    """Map a full English month name (any case) to 1–12, or None."""
    return _MONTH_NUMBERS.get(name.strip().lower())


def month_number_to_name(month: int) -> str:
    """Return the English month name for 1–12, or "" when out of range."""
    if month < 1 or month > 12:
        return ""
    return MONTH_NAMES[month - 1]


def parse_fiscal_year(raw: str) -> int | None:
    """
    Extract the leading year from a "YYYY-YYYY+1" fiscal-year string.

    Returns None when the string does not start with "YYYY-".
    """
    m = _FISCAL_YEAR_RE.match(raw.strip())
    return int(m.group(1)) if m else None


def fiscal_year_label(year: int) -> str:
    """Upstream filter label for a year: 2024 -> "2024-2025"."""
    return f"{year}-{year + 1}"


def current_period(today: date | None = None) -> Period:
    today = today or date.today()
    return Period(today.month, today.year)


def trailing_periods(months_back: int, *, today: date | None = None) -> list[Period]:
    """
    Return the `months_back` most recent periods, newest first.

    The current month is included as the first period.
    """
    today = today or date.today()
    anchor = date(today.year, today.month, 1)
    periods: list[Period] = []
    for i in range(months_back):
        d = anchor - relativedelta(months=i)
        periods.append(Period(d.month, d.year))
    return periods
