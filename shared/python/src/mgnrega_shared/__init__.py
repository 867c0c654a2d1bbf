"""
mgnrega_shared — shared utilities, models, and configuration for the MGNREGA dashboard.

Usage:
    from mgnrega_shared.config import settings
    from mgnrega_shared.db import get_supabase_client, get_duckdb_connection
    from mgnrega_shared.models import Region, MonthlyPerformance, SyncRun
    from mgnrega_shared.regions import RegionRegistry
    from mgnrega_shared.time_utils import month_name_to_number, parse_fiscal_year
"""

__version__ = "0.1.0"
