"""
mgnrega_pipeline — sync and analytics engine for MGNREGA district data.

Architecture:
  sources/     — data.gov.in client (retried httpx) and the mock record generator
  transforms/  — upstream row → canonical record normalization
  loaders/     — DuckDB and Supabase stores with keyed, idempotent upserts
  pipelines/   — SyncOrchestrator: current-period sync and historical backfill
  analytics/   — efficiency score, rating, trends, comparative ranking
  utils/       — structlog configuration, tenacity retry policy
  scheduler.py — APScheduler cron worker
  cli.py       — click entrypoint (mgnrega-pipeline)

Quick start:
    import asyncio
    from mgnrega_pipeline.loaders import get_store
    from mgnrega_pipeline.pipelines.sync import SyncOrchestrator

    orchestrator = SyncOrchestrator(get_store())
    result = asyncio.run(orchestrator.sync_current(use_mock_data=True))

CLI:
    mgnrega-pipeline sync --mock
    mgnrega-pipeline sync --mode historical --months-back 12
    mgnrega-pipeline district 1201

Shared code from mgnrega_shared:
    from mgnrega_shared.config import settings
    from mgnrega_shared.db import get_supabase_client, get_duckdb_connection
    from mgnrega_shared.models import Region, MonthlyPerformance, SyncRun
    from mgnrega_shared.regions import default_registry
"""

__version__ = "0.1.0"
