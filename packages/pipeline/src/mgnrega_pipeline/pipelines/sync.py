"""
pipelines/sync.py — Current-period sync and historical backfill.

Orchestrates, per period:
  1. Fetch   → data.gov.in state records (or deterministic mock records)
  2. Normalize → CanonicalRecord per row
  3. Persist → resolve/create the region, upsert (region_id, month, year)
  4. Log     → append one sync_runs row for the invocation

Failure handling:
  - A row that cannot be normalized, references an unknown region, or fails
    to persist is recorded as an error; the rest of the batch continues.
  - A fetch that fails after retries aborts the current-period invocation,
    which is still logged as a `failed` sync run.
  - During a backfill a failed period is logged and the loop moves on.
  - When a deadline is given, unfinished work is cancelled and a sync run
    reflecting the progress so far is written.

Status of a run:
  success — no errors
  partial — errors, but at least one record synced
  failed  — nothing synced (fetch failure, or every record failed)

Usage:
    from mgnrega_pipeline.pipelines.sync import SyncOrchestrator, SyncRequest, run_sync

    orchestrator = SyncOrchestrator(store)
    result = await orchestrator.sync_current()
    backfill = await orchestrator.sync_historical(months_back=12)

    await run_sync(SyncRequest(mode="historical", months_back=6))
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from mgnrega_shared.constants import SyncMode, SyncStatus
from mgnrega_shared.models import (
    BackfillResult,
    PeriodOutcome,
    Region,
    SyncResult,
    SyncRun,
)
from mgnrega_shared.regions import RegionRegistry, default_registry
from mgnrega_shared.time_utils import Period, current_period, trailing_periods
from mgnrega_pipeline.errors import (
    FatalSyncError,
    FetchError,
    NormalizationError,
    PersistenceError,
    PipelineError,
    SyncTimeoutError,
    UnknownRegionError,
)
from mgnrega_pipeline.loaders.base import BaseStore
from mgnrega_pipeline.sources.data_gov import DataGovClient
from mgnrega_pipeline.sources.mock import generate_mock_records
from mgnrega_pipeline.transforms.normalize import CanonicalRecord, normalize
from mgnrega_pipeline.utils.logging import get_logger, sync_run_context
from mgnrega_pipeline.utils.retry import SleepFn

log = get_logger(__name__, pipeline="sync")


class SyncPhase(str, Enum):
    FETCHING = "fetching"
    NORMALIZING = "normalizing"
    PERSISTING = "persisting"
    LOGGED = "logged"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class SyncConfig:
    """Backfill size, inter-period delay and invocation deadline (seconds)."""

    months_back: int = 12
    backfill_delay: float = 2.0
    timeout: float | None = None

    @classmethod
    def from_settings(cls, settings: Any | None = None) -> "SyncConfig":
        if settings is None:
            from mgnrega_shared.config import settings
        return cls(
            months_back=settings.backfill_months,
            backfill_delay=settings.backfill_delay_seconds,
            timeout=settings.sync_timeout_seconds or None,
        )


@dataclass
class _Progress:
    """Mutable tally shared with work that may be cancelled by a deadline."""

    periods: list[PeriodOutcome] = field(default_factory=list)
    extra_errors: list[str] = field(default_factory=list)

    def start_period(self, period: Period) -> PeriodOutcome:
        outcome = PeriodOutcome(month=period.month, year=period.year)
        self.periods.append(outcome)
        return outcome

    @property
    def records_synced(self) -> int:
        return sum(p.records_synced for p in self.periods)

    @property
    def errors(self) -> list[str]:
        return [e for p in self.periods for e in p.errors] + self.extra_errors


def classify_status(records_synced: int, errors: list[str]) -> SyncStatus:
    if not errors:
        return "success"
    return "partial" if records_synced > 0 else "failed"


class SyncOrchestrator:
    """
    Drives sync invocations against a store.

    Args:
        store:    Persistence backend.
        client:   Upstream API client (built from settings if omitted).
        registry: Static region table used to create unseen regions.
        config:   Backfill/deadline settings.
        sleep:    Awaitable used for the inter-period delay.
        clock:    Returns today's date; decides the current period.
    """

    def __init__(
        self,
        store: BaseStore,
        *,
        client: DataGovClient | None = None,
        registry: RegionRegistry | None = None,
        config: SyncConfig | None = None,
        sleep: SleepFn = asyncio.sleep,
        clock: Callable[[], date] = date.today,
    ) -> None:
        self._store = store
        self._client = client or DataGovClient()
        self._registry = registry or default_registry()
        self.config = config or SyncConfig.from_settings()
        self._sleep = sleep
        self._clock = clock

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    @sync_run_context("current")
    async def sync_current(
        self,
        *,
        use_mock_data: bool = False,
        timeout: float | None = None,
    ) -> SyncResult:
        """Sync the current month. Always writes a SyncRun; never raises."""
        t0 = time.monotonic()
        period = current_period(self._clock())
        progress = _Progress()
        run_log = log.bind(period=period.label(), mock=use_mock_data)
        run_log.info("sync_start")

        outcome = progress.start_period(period)
        failed = False
        try:
            await self._run_with_deadline(
                self._sync_period(period, outcome, use_mock_data=use_mock_data),
                timeout,
            )
        except FatalSyncError as exc:
            failed = True
            outcome.errors.append(f"Fatal sync error: {exc}")
            run_log.error("sync_fatal", error=str(exc))
        except SyncTimeoutError as exc:
            failed = True
            progress.extra_errors.append(str(exc))
            run_log.error("sync_timed_out", records_synced=progress.records_synced)
        except Exception as exc:
            failed = True
            progress.extra_errors.append(f"Fatal sync error: {exc}")
            run_log.exception("sync_crashed")

        duration = time.monotonic() - t0
        status = classify_status(progress.records_synced, progress.errors)
        await self._log_run(
            status=status,
            mode="current",
            records_synced=progress.records_synced,
            errors=progress.errors,
            duration=duration,
        )
        self._set_phase(SyncPhase.FAILED if failed else SyncPhase.COMPLETED, period)
        run_log.info(
            "sync_complete",
            status=status,
            records_synced=progress.records_synced,
            errors=len(progress.errors),
            duration_s=round(duration, 3),
        )
        return SyncResult(
            success=status == "success",
            records_synced=progress.records_synced,
            errors=progress.errors,
            duration_seconds=duration,
            status=status,
        )

    @sync_run_context("historical")
    async def sync_historical(
        self,
        months_back: int | None = None,
        *,
        use_mock_data: bool = False,
        timeout: float | None = None,
    ) -> BackfillResult:
        """
        Sync `months_back` trailing periods, current month first.

        Periods are processed one at a time with `config.backfill_delay`
        seconds between them. A failed period does not stop the backfill.
        """
        months = months_back if months_back is not None else self.config.months_back
        periods = trailing_periods(months, today=self._clock())
        t0 = time.monotonic()
        progress = _Progress()
        run_log = log.bind(months_back=months, mock=use_mock_data)
        run_log.info("backfill_start", first=periods[0].label() if periods else None)

        timed_out = False
        try:
            await self._run_with_deadline(
                self._backfill(periods, progress, use_mock_data=use_mock_data),
                timeout,
            )
        except SyncTimeoutError as exc:
            timed_out = True
            progress.extra_errors.append(str(exc))
            run_log.error("backfill_timed_out", periods_done=len(progress.periods))
        except Exception as exc:
            progress.extra_errors.append(f"Fatal sync error: {exc}")
            run_log.exception("backfill_crashed", periods_done=len(progress.periods))

        duration = time.monotonic() - t0
        status = classify_status(progress.records_synced, progress.errors)
        await self._log_run(
            status=status,
            mode="historical",
            records_synced=progress.records_synced,
            errors=progress.errors,
            duration=duration,
        )
        run_log.info(
            "backfill_complete",
            status=status,
            records_synced=progress.records_synced,
            errors=len(progress.errors),
            duration_s=round(duration, 3),
        )
        return BackfillResult(
            months_back=months,
            periods=progress.periods,
            duration_seconds=duration,
            timed_out=timed_out,
        )

    async def seed_regions(self) -> list[Region]:
        """Upsert every registry entry into the store."""
        seeded = []
        for entry in self._registry.list_regions():
            seeded.append(await self._store.upsert_region(self._region_from_registry(entry)))
        log.info("regions_seeded", count=len(seeded), state=self._registry.state)
        return seeded

    async def get_sync_logs(self, limit: int = 10) -> list[SyncRun]:
        return await self._store.recent_sync_runs(limit=limit)

    # ------------------------------------------------------------------
    # Period processing
    # ------------------------------------------------------------------

    async def _backfill(
        self,
        periods: list[Period],
        progress: _Progress,
        *,
        use_mock_data: bool,
    ) -> None:
        for i, period in enumerate(periods):
            outcome = progress.start_period(period)
            try:
                await self._sync_period(period, outcome, use_mock_data=use_mock_data)
            except PipelineError as exc:
                outcome.errors.append(f"Error syncing {period.label()}: {exc}")
                log.error("backfill_period_failed", period=period.label(), error=str(exc))
            except Exception as exc:
                outcome.errors.append(f"Error syncing {period.label()}: {exc}")
                log.exception("backfill_period_crashed", period=period.label())
            else:
                log.info(
                    "backfill_period_synced",
                    period=period.label(),
                    records_synced=outcome.records_synced,
                    errors=len(outcome.errors),
                )
            if i < len(periods) - 1:
                await self._sleep(self.config.backfill_delay)

    async def _sync_period(
        self,
        period: Period,
        outcome: PeriodOutcome,
        *,
        use_mock_data: bool,
    ) -> None:
        self._set_phase(SyncPhase.FETCHING, period)
        raw_records = await self._fetch(period, use_mock_data=use_mock_data)
        outcome.records_fetched = len(raw_records)

        self._set_phase(SyncPhase.NORMALIZING, period)
        canonical: list[CanonicalRecord] = []
        for raw in raw_records:
            try:
                canonical.append(normalize(raw, default_period=period, today=self._clock()))
            except NormalizationError as exc:
                code = raw.get("district_code") if isinstance(raw, dict) else None
                self._record_error(outcome, code, exc)

        self._set_phase(SyncPhase.PERSISTING, period)
        for record in canonical:
            if record.month_inferred or record.year_inferred:
                log.warning(
                    "record_period_inferred",
                    code=record.region_code,
                    month=record.month,
                    year=record.year,
                    month_inferred=record.month_inferred,
                    year_inferred=record.year_inferred,
                )
            if record.defaulted_fields:
                log.debug(
                    "record_fields_defaulted",
                    code=record.region_code,
                    fields=record.defaulted_fields,
                )
            try:
                region = await self._resolve_region(record.region_code)
                await self._store.upsert_performance(
                    region.id,
                    record.month,
                    record.year,
                    record.to_performance_values(),
                )
            except (UnknownRegionError, PersistenceError) as exc:
                self._record_error(outcome, record.region_code, exc)
            else:
                outcome.records_synced += 1

    async def _fetch(self, period: Period, *, use_mock_data: bool) -> list[Any]:
        if use_mock_data:
            return generate_mock_records(
                self._registry.list_regions(),
                month=period.month,
                year=period.year,
                state_filter=self._client.config.state_filter,
            )
        try:
            return await self._client.fetch_state_records(year=period.year, month=period.month)
        except FetchError as exc:
            raise FatalSyncError(f"Failed to fetch data for {period.label()}: {exc}") from exc

    async def _resolve_region(self, code: str) -> Region:
        region = await self._store.get_region_by_code(code)
        if region is not None:
            return region
        entry = self._registry.find_by_code(code)
        if entry is None:
            raise UnknownRegionError(code)
        log.info("region_created_from_registry", code=code, name=entry.name_en)
        return await self._store.create_region(self._region_from_registry(entry))

    def _region_from_registry(self, entry: Any) -> Region:
        return Region(
            code=entry.code,
            name_en=entry.name_en,
            name_hi=entry.name_hi,
            state=self._registry.state,
            latitude=entry.lat,
            longitude=entry.lon,
        )

    # ------------------------------------------------------------------
    # Bookkeeping
    # ------------------------------------------------------------------

    def _record_error(self, outcome: PeriodOutcome, code: str | None, exc: Exception) -> None:
        message = f"Error processing record for {code}: {exc}"
        outcome.errors.append(message)
        log.warning("record_failed", code=code, error=str(exc), error_type=type(exc).__name__)

    def _set_phase(self, phase: SyncPhase, period: Period) -> None:
        log.debug("sync_phase", phase=phase.value, period=period.label())

    async def _run_with_deadline(self, work: Awaitable[None], timeout: float | None) -> None:
        limit = timeout if timeout is not None else self.config.timeout
        if limit is None or limit <= 0:
            await work
            return
        try:
            await asyncio.wait_for(work, timeout=limit)
        except asyncio.TimeoutError as exc:
            raise SyncTimeoutError(f"Sync timed out after {limit}s") from exc

    async def _log_run(
        self,
        *,
        status: SyncStatus,
        mode: SyncMode,
        records_synced: int,
        errors: list[str],
        duration: float,
    ) -> None:
        run = SyncRun(
            status=status,
            mode=mode,
            records_synced=records_synced,
            errors="\n".join(errors) if errors else None,
            duration_seconds=duration,
        )
        try:
            await self._store.insert_sync_run(run)
        except PersistenceError as exc:
            log.error("sync_run_not_logged", status=status, error=str(exc))
            return
        log.debug("sync_phase", phase=SyncPhase.LOGGED.value, status=status)


# ---------------------------------------------------------------------------
# Trigger surface
# ---------------------------------------------------------------------------

class SyncRequest(BaseModel):
    """Body of a sync trigger."""

    mode: SyncMode = "current"
    use_mock_data: bool = False
    months_back: int = Field(default=12, ge=1)
    timeout: float | None = Field(default=None, gt=0)


async def run_sync(
    request: SyncRequest,
    *,
    orchestrator: SyncOrchestrator | None = None,
) -> SyncResult | dict[str, Any]:
    """
    Run the sync described by `request`.

    Returns the SyncResult for a current-period sync, or a completion
    signal ({"success": True, "message": ...}) once a backfill finishes.
    """
    if orchestrator is None:
        from mgnrega_pipeline.loaders import get_store

        orchestrator = SyncOrchestrator(get_store())

    if request.mode == "historical":
        result = await orchestrator.sync_historical(
            request.months_back,
            use_mock_data=request.use_mock_data,
            timeout=request.timeout,
        )
        return {
            "success": True,
            "message": (
                f"Historical sync completed for {request.months_back} months "
                f"({result.records_synced} records)"
            ),
        }

    return await orchestrator.sync_current(
        use_mock_data=request.use_mock_data,
        timeout=request.timeout,
    )
