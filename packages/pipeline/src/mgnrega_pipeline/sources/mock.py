"""
sources/mock.py — Synthetic MGNREGA records for environments without upstream access.

Records are shaped exactly like data.gov.in rows (string numbers, month
name, fiscal-year string) so they go through the same normalizer as real
data. Values are random but seeded per (district, month, year): the same
period always produces the same records, which keeps mock syncs idempotent.

Usage:
    from mgnrega_pipeline.sources.mock import generate_mock_records

    records = generate_mock_records(registry.list_regions(), month=4, year=2024)
"""

from __future__ import annotations

import random
from collections.abc import Iterable
from typing import Any

from mgnrega_shared.regions import RegionEntry
from mgnrega_shared.time_utils import fiscal_year_label, month_number_to_name


def generate_mock_record(
    entry: RegionEntry,
    *,
    month: int,
    year: int,
    state_filter: str = "HARYANA",
) -> dict[str, Any]:
    """One upstream-shaped record for `entry` in the given period."""
    rng = random.Random(f"{entry.code}:{year}:{month}")

    job_cards = rng.randint(10_000, 59_999)
    persons_worked = rng.randint(5_000, 34_999)
    person_days = rng.randint(100_000, 599_999)
    expenditure = rng.randint(2_000_000, 11_999_999)
    # Utilization lands between 60% and 100%
    utilization = rng.randint(60, 99) + rng.random()
    approved_budget = round(expenditure / (utilization / 100), 2)

    return {
        "district_code": entry.code,
        "district_name": entry.name_en.upper(),
        "state_name": state_filter,
        "month": month_number_to_name(month),
        "fin_year": fiscal_year_label(year),
        "Total_No_of_JobCards_issued": str(job_cards),
        "Total_Individuals_Worked": str(persons_worked),
        "Persondays_of_Central_Liability_so_far": str(person_days),
        "Average_Wage_rate_per_day_per_person": f"{rng.randint(200, 299) + rng.random():.2f}",
        "Number_of_Completed_Works": str(rng.randint(100, 599)),
        "Number_of_Ongoing_Works": str(rng.randint(50, 349)),
        "Total_Exp": str(expenditure),
        "Approved_Labour_Budget": f"{approved_budget:.2f}",
    }


def generate_mock_records(
    entries: Iterable[RegionEntry],
    *,
    month: int,
    year: int,
    state_filter: str = "HARYANA",
) -> list[dict[str, Any]]:
    """One record per registry entry, in registry order."""
    return [
        generate_mock_record(e, month=month, year=year, state_filter=state_filter)
        for e in entries
    ]
