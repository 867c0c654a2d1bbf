"""
loaders/duckdb_store.py — DuckDB-backed store for local runs and tests.

Tables are created on first use. Performance rows are written with
INSERT … ON CONFLICT (region_id, month, year) DO UPDATE, so repeated and
concurrent syncs converge on one row per period. All access to the shared
connection is serialised on a lock; DuckDB connections are not safe to use
from several threads at once.

Timestamps are stored as naive UTC.

Usage:
    from mgnrega_pipeline.loaders.duckdb_store import DuckDBStore

    store = DuckDBStore()                              # settings.duckdb_path
    store = DuckDBStore(duckdb.connect(":memory:"))    # tests
    row = await store.upsert_performance(region.id, 4, 2024, values)
"""

from __future__ import annotations

import threading
import uuid
from datetime import datetime, timezone
from typing import Any

import duckdb
import structlog

from mgnrega_shared.constants import PERFORMANCE_FIELDS
from mgnrega_shared.db import get_duckdb_connection
from mgnrega_shared.models import MonthlyPerformance, PerformanceValues, Region, SyncRun
from mgnrega_pipeline.errors import PersistenceError
from mgnrega_pipeline.loaders.base import BaseStore, StoreStats

log = structlog.get_logger(__name__)

_SCHEMA: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS regions (
        id          VARCHAR PRIMARY KEY,
        code        VARCHAR NOT NULL UNIQUE,
        name_en     VARCHAR NOT NULL,
        name_hi     VARCHAR NOT NULL,
        state       VARCHAR NOT NULL,
        latitude    DOUBLE,
        longitude   DOUBLE,
        created_at  TIMESTAMP NOT NULL,
        updated_at  TIMESTAMP NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS monthly_performance (
        id                     VARCHAR PRIMARY KEY,
        region_id              VARCHAR NOT NULL,
        month                  INTEGER NOT NULL,
        year                   INTEGER NOT NULL,
        job_cards_issued       BIGINT,
        persons_worked         BIGINT,
        person_days_generated  BIGINT,
        avg_wage               DOUBLE,
        works_completed        BIGINT,
        works_ongoing          BIGINT,
        expenditure            DOUBLE,
        budget_utilization     DOUBLE,
        last_updated           TIMESTAMP NOT NULL,
        UNIQUE (region_id, month, year)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS sync_runs (
        id                VARCHAR PRIMARY KEY,
        status            VARCHAR NOT NULL,
        mode              VARCHAR NOT NULL,
        records_synced    INTEGER NOT NULL,
        errors            VARCHAR,
        duration_seconds  DOUBLE NOT NULL,
        synced_at         TIMESTAMP NOT NULL
    )
    """,
)

_UPSERT_PERFORMANCE_SQL = f"""
    INSERT INTO monthly_performance
        (id, region_id, month, year, {", ".join(PERFORMANCE_FIELDS)}, last_updated)
    VALUES (?, ?, ?, ?, {", ".join("?" for _ in PERFORMANCE_FIELDS)}, ?)
    ON CONFLICT (region_id, month, year) DO UPDATE SET
        {", ".join(f"{f} = excluded.{f}" for f in PERFORMANCE_FIELDS)},
        last_updated = excluded.last_updated
"""

_PERFORMANCE_COLUMNS = (
    f"id, region_id, month, year, {', '.join(PERFORMANCE_FIELDS)}, last_updated"
)


def _utcnow_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


class DuckDBStore(BaseStore):
    """Store implementation over a single DuckDB connection."""

    name = "duckdb"

    def __init__(self, conn: duckdb.DuckDBPyConnection | None = None) -> None:
        self._conn = conn or get_duckdb_connection()
        self._lock = threading.RLock()
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Low-level helpers
    # ------------------------------------------------------------------

    def _ensure_schema(self) -> None:
        with self._lock:
            for ddl in _SCHEMA:
                self._conn.execute(ddl)

    def _fetch_dicts(self, sql: str, params: list[Any] | None = None) -> list[dict[str, Any]]:
        with self._lock:
            try:
                cur = self._conn.execute(sql, params or [])
                cols = [d[0] for d in cur.description]
                return [dict(zip(cols, row)) for row in cur.fetchall()]
            except duckdb.Error as exc:
                raise PersistenceError(f"DuckDB query failed: {exc}") from exc

    def _execute(self, sql: str, params: list[Any] | None = None) -> None:
        with self._lock:
            try:
                self._conn.execute(sql, params or [])
            except duckdb.Error as exc:
                raise PersistenceError(f"DuckDB write failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Regions
    # ------------------------------------------------------------------

    async def get_region_by_code(self, code: str) -> Region | None:
        rows = self._fetch_dicts("SELECT * FROM regions WHERE code = ?", [code])
        return Region.from_db_row(rows[0]) if rows else None

    async def create_region(self, region: Region) -> Region:
        now = _utcnow_naive()
        with self._lock:
            self._execute(
                """
                INSERT INTO regions
                    (id, code, name_en, name_hi, state, latitude, longitude, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (code) DO NOTHING
                """,
                [
                    region.id or str(uuid.uuid4()),
                    region.code,
                    region.name_en,
                    region.name_hi,
                    region.state,
                    region.latitude,
                    region.longitude,
                    now,
                    now,
                ],
            )
            stored = await self.get_region_by_code(region.code)
        if stored is None:
            raise PersistenceError(f"Region {region.code} missing after insert")
        log.debug("region_created", code=stored.code, region_id=stored.id)
        return stored

    async def upsert_region(self, region: Region) -> Region:
        now = _utcnow_naive()
        with self._lock:
            self._execute(
                """
                INSERT INTO regions
                    (id, code, name_en, name_hi, state, latitude, longitude, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (code) DO UPDATE SET
                    name_en = excluded.name_en,
                    name_hi = excluded.name_hi,
                    latitude = excluded.latitude,
                    longitude = excluded.longitude,
                    updated_at = excluded.updated_at
                """,
                [
                    region.id or str(uuid.uuid4()),
                    region.code,
                    region.name_en,
                    region.name_hi,
                    region.state,
                    region.latitude,
                    region.longitude,
                    now,
                    now,
                ],
            )
            stored = await self.get_region_by_code(region.code)
        if stored is None:
            raise PersistenceError(f"Region {region.code} missing after upsert")
        return stored

    async def list_regions(self, state: str | None = None) -> list[Region]:
        if state is None:
            rows = self._fetch_dicts("SELECT * FROM regions ORDER BY code")
        else:
            rows = self._fetch_dicts(
                "SELECT * FROM regions WHERE state = ? ORDER BY code", [state]
            )
        return [Region.from_db_row(r) for r in rows]

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
        metrics = values.model_dump()
        with self._lock:
            self._execute(
                _UPSERT_PERFORMANCE_SQL,
                [
                    str(uuid.uuid4()),
                    region_id,
                    month,
                    year,
                    *(metrics[f] for f in PERFORMANCE_FIELDS),
                    _utcnow_naive(),
                ],
            )
            rows = self._fetch_dicts(
                f"""
                SELECT {_PERFORMANCE_COLUMNS} FROM monthly_performance
                WHERE region_id = ? AND month = ? AND year = ?
                """,
                [region_id, month, year],
            )
        if not rows:
            raise PersistenceError(f"Performance row {region_id} {month}/{year} missing after upsert")
        return MonthlyPerformance.from_db_row(rows[0])

    async def list_region_performance(
        self,
        region_id: str,
        limit: int | None = None,
    ) -> list[MonthlyPerformance]:
        sql = f"""
            SELECT {_PERFORMANCE_COLUMNS} FROM monthly_performance
            WHERE region_id = ?
            ORDER BY year DESC, month DESC
        """
        params: list[Any] = [region_id]
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        return [MonthlyPerformance.from_db_row(r) for r in self._fetch_dicts(sql, params)]

    async def list_state_performance(self, state: str) -> list[MonthlyPerformance]:
        columns = ", ".join(f"p.{c.strip()}" for c in _PERFORMANCE_COLUMNS.split(","))
        rows = self._fetch_dicts(
            f"""
            SELECT {columns} FROM monthly_performance p
            JOIN regions r ON r.id = p.region_id
            WHERE r.state = ?
            ORDER BY p.year DESC, p.month DESC, r.code
            """,
            [state],
        )
        return [MonthlyPerformance.from_db_row(r) for r in rows]

    async def count_performance(self, region_id: str, month: int, year: int) -> int:
        rows = self._fetch_dicts(
            """
            SELECT count(*) AS n FROM monthly_performance
            WHERE region_id = ? AND month = ? AND year = ?
            """,
            [region_id, month, year],
        )
        return int(rows[0]["n"])

    # ------------------------------------------------------------------
    # Sync runs
    # ------------------------------------------------------------------

    async def insert_sync_run(self, run: SyncRun) -> SyncRun:
        run_id = run.id or str(uuid.uuid4())
        self._execute(
            """
            INSERT INTO sync_runs
                (id, status, mode, records_synced, errors, duration_seconds, synced_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            [
                run_id,
                run.status,
                run.mode,
                run.records_synced,
                run.errors,
                run.duration_seconds,
                _naive_utc(run.synced_at),
            ],
        )
        log.debug("sync_run_inserted", run_id=run_id, status=run.status)
        return run.model_copy(update={"id": run_id})

    async def recent_sync_runs(self, limit: int = 10) -> list[SyncRun]:
        rows = self._fetch_dicts(
            "SELECT * FROM sync_runs ORDER BY synced_at DESC LIMIT ?", [limit]
        )
        return [SyncRun.from_db_row(r) for r in rows]

    async def stats(self) -> StoreStats:
        regions = self._fetch_dicts("SELECT count(*) AS n FROM regions")[0]["n"]
        records = self._fetch_dicts("SELECT count(*) AS n FROM monthly_performance")[0]["n"]
        latest = await self.recent_sync_runs(limit=1)
        return StoreStats(
            regions=int(regions),
            performance_records=int(records),
            last_sync_at=latest[0].synced_at if latest else None,
            last_sync_status=latest[0].status if latest else None,
        )
