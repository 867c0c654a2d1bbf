"""
loaders/supabase_store.py — Store implementation over the Supabase REST client.

Performance rows are upserted with on_conflict="region_id,month,year"
(INSERT … ON CONFLICT DO UPDATE on the server), so the database enforces
one row per period even when two syncs race.

Uses the service role key so RLS is bypassed for sync writes.

Usage:
    from mgnrega_pipeline.loaders.supabase_store import SupabaseStore

    store = SupabaseStore()
    region = await store.get_region_by_code("1201")
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import structlog

from mgnrega_shared.db import get_supabase_client
from mgnrega_shared.models import MonthlyPerformance, PerformanceValues, Region, SyncRun
from mgnrega_pipeline.errors import PersistenceError
from mgnrega_pipeline.loaders.base import BaseStore, StoreStats

log = structlog.get_logger(__name__)

PERFORMANCE_CONFLICT = "region_id,month,year"


class SupabaseStore(BaseStore):
    """Reads and writes regions, monthly_performance and sync_runs in Supabase."""

    name = "supabase"

    def __init__(self, client: Any | None = None) -> None:
        self._client = client or get_supabase_client()

    def _run(self, action: str, query: Any) -> Any:
        try:
            return query.execute()
        except Exception as exc:
            log.error("supabase_request_failed", action=action, error=str(exc))
            raise PersistenceError(f"Supabase {action} failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Regions
    # ------------------------------------------------------------------

    async def get_region_by_code(self, code: str) -> Region | None:
        result = self._run(
            "select regions",
            self._client.table("regions").select("*").eq("code", code).limit(1),
        )
        return Region.from_db_row(result.data[0]) if result.data else None

    async def create_region(self, region: Region) -> Region:
        self._run(
            "insert region",
            self._client.table("regions").upsert(
                region.to_insert_dict(),
                on_conflict="code",
                ignore_duplicates=True,
            ),
        )
        stored = await self.get_region_by_code(region.code)
        if stored is None:
            raise PersistenceError(f"Region {region.code} missing after insert")
        log.debug("region_created", code=stored.code, region_id=stored.id)
        return stored

    async def upsert_region(self, region: Region) -> Region:
        row = region.to_insert_dict()
        row["updated_at"] = datetime.now(timezone.utc).isoformat()
        result = self._run(
            "upsert region",
            self._client.table("regions").upsert(row, on_conflict="code"),
        )
        if result.data:
            return Region.from_db_row(result.data[0])
        stored = await self.get_region_by_code(region.code)
        if stored is None:
            raise PersistenceError(f"Region {region.code} missing after upsert")
        return stored

    async def list_regions(self, state: str | None = None) -> list[Region]:
        query = self._client.table("regions").select("*")
        if state is not None:
            query = query.eq("state", state)
        result = self._run("list regions", query.order("code"))
        return [Region.from_db_row(r) for r in result.data or []]

    # ------------------------------------------------------------------
    # Performance
    # ------------------------------------------------------------------

    async def upsert_performance(
        self,
        region_id: str,
        month: int,
        year: int,
        values: PerformanceValues,
    ) -> MonthlyPerformance:
        row: dict[str, Any] = {
            "region_id": region_id,
            "month": month,
            "year": year,
            **values.model_dump(),
            "last_updated": datetime.now(timezone.utc).isoformat(),
        }
        result = self._run(
            "upsert performance",
            self._client.table("monthly_performance").upsert(
                row, on_conflict=PERFORMANCE_CONFLICT
            ),
        )
        if not result.data:
            raise PersistenceError(
                f"Performance row {region_id} {month}/{year} missing after upsert"
            )
        return MonthlyPerformance.from_db_row(result.data[0])

    async def list_region_performance(
        self,
        region_id: str,
        limit: int | None = None,
    ) -> list[MonthlyPerformance]:
        query = (
            self._client.table("monthly_performance")
            .select("*")
            .eq("region_id", region_id)
            .order("year", desc=True)
            .order("month", desc=True)
        )
        if limit is not None:
            query = query.limit(limit)
        result = self._run("list region performance", query)
        return [MonthlyPerformance.from_db_row(r) for r in result.data or []]

    async def list_state_performance(self, state: str) -> list[MonthlyPerformance]:
        result = self._run(
            "list state performance",
            self._client.table("monthly_performance")
            .select("*, regions!inner(state)")
            .eq("regions.state", state)
            .order("year", desc=True)
            .order("month", desc=True),
        )
        rows = []
        for r in result.data or []:
            row = {k: v for k, v in r.items() if k != "regions"}
            rows.append(MonthlyPerformance.from_db_row(row))
        return rows

    # ------------------------------------------------------------------
    # Sync runs
    # ------------------------------------------------------------------

    async def insert_sync_run(self, run: SyncRun) -> SyncRun:
        result = self._run(
            "insert sync run",
            self._client.table("sync_runs").insert(run.to_insert_dict()),
        )
        log.debug("sync_run_inserted", status=run.status)
        if result.data:
            return SyncRun.from_db_row(result.data[0])
        return run

    async def recent_sync_runs(self, limit: int = 10) -> list[SyncRun]:
        result = self._run(
            "list sync runs",
            self._client.table("sync_runs")
            .select("*")
            .order("synced_at", desc=True)
            .limit(limit),
        )
        return [SyncRun.from_db_row(r) for r in result.data or []]

    async def stats(self) -> StoreStats:
        regions = self._run(
            "count regions",
            self._client.table("regions").select("id", count="exact").limit(1),
        )
        records = self._run(
            "count performance",
            self._client.table("monthly_performance").select("id", count="exact").limit(1),
        )
        latest = await self.recent_sync_runs(limit=1)
        return StoreStats(
            regions=regions.count or 0,
            performance_records=records.count or 0,
            last_sync_at=latest[0].synced_at if latest else None,
            last_sync_status=latest[0].status if latest else None,
        )
