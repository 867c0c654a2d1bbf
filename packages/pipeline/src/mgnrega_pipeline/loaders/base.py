"""
loaders/base.py — Storage collaborator interface used by the sync engine.

The engine never talks to a database directly. Concrete stores:
  DuckDBStore    — local file / in-memory store (default, also used in tests)
  SupabaseStore  — hosted Postgres via the Supabase REST client

Contract:
  - upsert_performance() is keyed by (region_id, month, year) and converges:
    running it twice with the same values leaves exactly one row
  - sync runs are append-only
  - every driver failure surfaces as PersistenceError
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime

from mgnrega_shared.models import MonthlyPerformance, PerformanceValues, Region, SyncRun


@dataclass
class StoreStats:
    """Row counts and the latest sync, for health reporting."""

    regions: int
    performance_records: int
    last_sync_at: datetime | None = None
    last_sync_status: str | None = None


class BaseStore(ABC):
    """Abstract base for region / performance / sync-run persistence."""

    name: str = "unknown"

    # ------------------------------------------------------------------
    # Regions
    # ------------------------------------------------------------------

    @abstractmethod
    async def get_region_by_code(self, code: str) -> Region | None: ...

    @abstractmethod
    async def create_region(self, region: Region) -> Region:
        """Insert a region; if the code already exists, return the stored row."""
        ...

    @abstractmethod
    async def upsert_region(self, region: Region) -> Region:
        """Insert or correct names/location for an existing code."""
        ...

    @abstractmethod
    async def list_regions(self, state: str | None = None) -> list[Region]: ...

    # ------------------------------------------------------------------
    # Performance
    # ------------------------------------------------------------------

    @abstractmethod
    async def upsert_performance(
        self,
        region_id: str,
        month: int,
        year: int,
        values: PerformanceValues,
    ) -> MonthlyPerformance:
        """Insert or update the (region_id, month, year) row; refresh last_updated."""
        ...

    @abstractmethod
    async def list_region_performance(
        self,
        region_id: str,
        limit: int | None = None,
    ) -> list[MonthlyPerformance]:
        """Newest period first."""
        ...

    @abstractmethod
    async def list_state_performance(self, state: str) -> list[MonthlyPerformance]:
        """All period rows of every region in `state`, newest period first."""
        ...

    # ------------------------------------------------------------------
    # Sync runs
    # ------------------------------------------------------------------

    @abstractmethod
    async def insert_sync_run(self, run: SyncRun) -> SyncRun: ...

    @abstractmethod
    async def recent_sync_runs(self, limit: int = 10) -> list[SyncRun]: ...

    @abstractmethod
    async def stats(self) -> StoreStats: ...
