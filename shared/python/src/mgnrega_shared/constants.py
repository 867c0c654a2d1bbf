"""
constants.py — shared constants used across the pipeline.

The Haryana district table, upstream field names, month names, and typed
literals are defined here so they stay in sync between modules.
"""

from __future__ import annotations

from typing import Final, Literal

# ---------------------------------------------------------------------------
# Haryana districts: data.gov.in district code -> names and centroid
# Codes match the MGNREGA "at a glance" resource.
# ---------------------------------------------------------------------------
HARYANA_DISTRICTS: Final[tuple[dict[str, str | float], ...]] = (
    {"code": "1201", "name_en": "Ambala", "name_hi": "अंबाला", "lat": 30.3782, "lon": 76.7767},
    {"code": "1213", "name_en": "Bhiwani", "name_hi": "भिवानी", "lat": 28.7930, "lon": 76.1395},
    {"code": "1222", "name_en": "Charkhi Dadri", "name_hi": "चरखी दादरी", "lat": 28.5917, "lon": 76.2709},
    {"code": "1209", "name_en": "Faridabad", "name_hi": "फरीदाबाद", "lat": 28.4089, "lon": 77.3178},
    {"code": "1216", "name_en": "Fatehabad", "name_hi": "फतेहाबाद", "lat": 29.5151, "lon": 75.4550},
    {"code": "1210", "name_en": "Gurugram", "name_hi": "गुरुग्राम", "lat": 28.4595, "lon": 77.0266},
    {"code": "1215", "name_en": "Hisar", "name_hi": "हिसार", "lat": 29.1492, "lon": 75.7217},
    {"code": "1214", "name_en": "Jhajjar", "name_hi": "झज्जर", "lat": 28.6063, "lon": 76.6565},
    {"code": "1207", "name_en": "Jind", "name_hi": "जींद", "lat": 29.3157, "lon": 76.3160},
    {"code": "1204", "name_en": "Kaithal", "name_hi": "कैथल", "lat": 29.8012, "lon": 76.3997},
    {"code": "1205", "name_en": "Karnal", "name_hi": "करनाल", "lat": 29.6857, "lon": 76.9905},
    {"code": "1203", "name_en": "Kurukshetra", "name_hi": "कुरुक्षेत्र", "lat": 29.9695, "lon": 76.8783},
    {"code": "1212", "name_en": "Mahendragarh", "name_hi": "महेंद्रगढ़", "lat": 28.2830, "lon": 76.1500},
    {"code": "1221", "name_en": "Nuh", "name_hi": "नूंह", "lat": 28.1024, "lon": 77.0030},
    {"code": "1220", "name_en": "Palwal", "name_hi": "पलवल", "lat": 28.1444, "lon": 77.3260},
    {"code": "1219", "name_en": "Panchkula", "name_hi": "पंचकुला", "lat": 30.6942, "lon": 76.8534},
    {"code": "1206", "name_en": "Panipat", "name_hi": "पानीपत", "lat": 29.3909, "lon": 76.9635},
    {"code": "1211", "name_en": "Rewari", "name_hi": "रेवाड़ी", "lat": 28.1989, "lon": 76.6189},
    {"code": "1208", "name_en": "Rohtak", "name_hi": "रोहतक", "lat": 28.8955, "lon": 76.6066},
    {"code": "1217", "name_en": "Sirsa", "name_hi": "सिरसा", "lat": 29.5353, "lon": 75.0288},
    {"code": "1218", "name_en": "Sonipat", "name_hi": "सोनीपत", "lat": 28.9931, "lon": 77.0151},
    {"code": "1202", "name_en": "Yamunanagar", "name_hi": "यमुनानगर", "lat": 30.1290, "lon": 77.2674},
)

# ---------------------------------------------------------------------------
# Calendar
# ---------------------------------------------------------------------------
MONTH_NAMES: Final[tuple[str, ...]] = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)

# ---------------------------------------------------------------------------
# Upstream (data.gov.in) field names -> canonical field names
# ---------------------------------------------------------------------------
UPSTREAM_FIELD_MAP: Final[dict[str, str]] = {
    "Total_No_of_JobCards_issued": "job_cards_issued",
    "Total_Individuals_Worked": "persons_worked",
    "Persondays_of_Central_Liability_so_far": "person_days_generated",
    "Average_Wage_rate_per_day_per_person": "avg_wage",
    "Number_of_Completed_Works": "works_completed",
    "Number_of_Ongoing_Works": "works_ongoing",
    "Total_Exp": "expenditure",
    "Approved_Labour_Budget": "approved_labour_budget",
}

# Canonical performance metric columns (stored on monthly_performance)
PERFORMANCE_FIELDS: Final[tuple[str, ...]] = (
    "job_cards_issued",
    "persons_worked",
    "person_days_generated",
    "avg_wage",
    "works_completed",
    "works_ongoing",
    "expenditure",
    "budget_utilization",
)

# ---------------------------------------------------------------------------
# Typed literals
# ---------------------------------------------------------------------------
SyncStatus = Literal["success", "partial", "failed"]
SyncMode = Literal["current", "historical"]
TrendDirection = Literal["up", "down", "stable"]
PerformanceRating = Literal["good", "average", "needs_improvement"]
