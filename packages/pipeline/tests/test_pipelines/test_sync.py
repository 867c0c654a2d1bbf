"""
tests/test_pipelines/test_sync.py — SyncOrchestrator end to end.

Upstream is mocked with respx (or replaced by mock records); persistence is a
real DuckDBStore over an in-memory database.
"""

from __future__ import annotations

import asyncio

import duckdb
import httpx
import pytest

from mgnrega_shared.models import SyncResult
from mgnrega_pipeline.errors import PersistenceError
from mgnrega_pipeline.loaders.duckdb_store import DuckDBStore
from mgnrega_pipeline.pipelines.sync import (
    SyncConfig,
    SyncOrchestrator,
    SyncRequest,
    classify_status,
    run_sync,
)
from mgnrega_pipeline.sources.data_gov import ApiConfig, DataGovClient
from mgnrega_pipeline.utils.retry import RetryConfig


@pytest.fixture
def client(api_config, sleep_recorder) -> DataGovClient:
    return DataGovClient(
        api_config,
        RetryConfig(max_retries=1, base_delay=1.0, max_delay=10.0, jitter=0.0),
        sleep=sleep_recorder,
    )


@pytest.fixture
def orchestrator(duckdb_store, client, registry, sleep_recorder, fixed_today) -> SyncOrchestrator:
    return SyncOrchestrator(
        duckdb_store,
        client=client,
        registry=registry,
        config=SyncConfig(months_back=3, backfill_delay=2.0),
        sleep=sleep_recorder,
        clock=lambda: fixed_today,
    )


class SlowClient:
    """Upstream that never answers in time."""

    config = ApiConfig()

    async def fetch_state_records(self, year=None, month=None):
        await asyncio.sleep(30)
        return []


class FlakyStore(DuckDBStore):
    """Fails the first performance write, then behaves."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.failed = False

    async def upsert_performance(self, region_id, month, year, values):
        if not self.failed:
            self.failed = True
            raise PersistenceError("disk full")
        return await super().upsert_performance(region_id, month, year, values)


class CrashingStore(DuckDBStore):
    """Raises a non-pipeline error for every write in one month."""

    def __init__(self, *args, crash_month: int, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.crash_month = crash_month

    async def upsert_performance(self, region_id, month, year, values):
        if month == self.crash_month:
            raise RuntimeError("driver crashed")
        return await super().upsert_performance(region_id, month, year, values)


# ---------------------------------------------------------------------------
# Status classification
# ---------------------------------------------------------------------------

class TestClassifyStatus:
    def test_no_errors_is_success(self):
        assert classify_status(0, []) == "success"
        assert classify_status(22, []) == "success"

    def test_errors_with_progress_is_partial(self):
        assert classify_status(4, ["x"]) == "partial"

    def test_errors_without_progress_is_failed(self):
        assert classify_status(0, ["x"]) == "failed"


# ---------------------------------------------------------------------------
# Current-period sync
# ---------------------------------------------------------------------------

class TestSyncCurrent:
    @pytest.mark.asyncio
    async def test_unknown_region_gives_partial(self, mock_http, resource_url, orchestrator, duckdb_store, data_gov_payload):
        route = mock_http.get(url__startswith=resource_url).mock(
            return_value=httpx.Response(200, json=data_gov_payload)
        )

        result = await orchestrator.sync_current()

        params = route.calls[0].request.url.params
        assert params["filters[fin_year]"] == "2024-2025"
        assert params["filters[month]"] == "June"

        assert result.status == "partial"
        assert result.success is False
        assert result.records_synced == 4
        assert result.errors == ["Error processing record for 9999: Unknown region code: 9999"]

        runs = await duckdb_store.recent_sync_runs()
        assert len(runs) == 1
        assert runs[0].status == "partial"
        assert runs[0].records_synced == 4
        assert "Unknown region code: 9999" in runs[0].errors

    @pytest.mark.asyncio
    async def test_unseen_regions_are_created_from_registry(self, mock_http, resource_url, orchestrator, duckdb_store, data_gov_payload):
        mock_http.get(url__startswith=resource_url).mock(
            return_value=httpx.Response(200, json=data_gov_payload)
        )

        await orchestrator.sync_current()

        region = await duckdb_store.get_region_by_code("1203")
        assert region is not None
        assert region.name_en == "Kurukshetra"
        assert region.state == "Haryana"
        assert await duckdb_store.get_region_by_code("9999") is None

    @pytest.mark.asyncio
    async def test_repeated_sync_is_idempotent(self, mock_http, resource_url, orchestrator, duckdb_store, data_gov_payload):
        mock_http.get(url__startswith=resource_url).mock(
            return_value=httpx.Response(200, json=data_gov_payload)
        )

        await orchestrator.sync_current()
        region = await duckdb_store.get_region_by_code("1201")
        first = await duckdb_store.list_region_performance(region.id)
        await orchestrator.sync_current()
        second = await duckdb_store.list_region_performance(region.id)

        stats = await duckdb_store.stats()
        assert stats.regions == 4
        assert stats.performance_records == 4
        assert len(second) == 1
        assert second[0].metric_values() == first[0].metric_values()
        assert len(await duckdb_store.recent_sync_runs()) == 2

    @pytest.mark.asyncio
    async def test_changed_upstream_values_converge(self, mock_http, resource_url, orchestrator, duckdb_store, data_gov_payload):
        route = mock_http.get(url__startswith=resource_url)
        route.mock(return_value=httpx.Response(200, json=data_gov_payload))
        await orchestrator.sync_current()

        revised = [dict(r) for r in data_gov_payload["records"]]
        revised[0]["Total_Individuals_Worked"] = "30000"
        route.mock(return_value=httpx.Response(200, json={"records": revised}))
        await orchestrator.sync_current()

        region = await duckdb_store.get_region_by_code("1201")
        rows = await duckdb_store.list_region_performance(region.id)
        assert len(rows) == 1
        assert rows[0].persons_worked == 30000

    @pytest.mark.asyncio
    async def test_defaulted_fields_are_stored_as_null(self, mock_http, resource_url, orchestrator, duckdb_store, data_gov_payload):
        mock_http.get(url__startswith=resource_url).mock(
            return_value=httpx.Response(200, json=data_gov_payload)
        )
        await orchestrator.sync_current()

        region = await duckdb_store.get_region_by_code("1203")
        row = (await duckdb_store.list_region_performance(region.id))[0]
        assert row.works_ongoing is None
        assert row.works_completed == 295

    @pytest.mark.asyncio
    async def test_fetch_failure_is_logged_as_failed(self, mock_http, resource_url, orchestrator, duckdb_store, sleep_recorder):
        route = mock_http.get(url__startswith=resource_url).mock(
            return_value=httpx.Response(500)
        )

        result = await orchestrator.sync_current()

        assert route.call_count == 2
        assert sleep_recorder.delays == [1.0]
        assert result.status == "failed"
        assert result.records_synced == 0
        assert len(result.errors) == 1
        assert result.errors[0].startswith("Fatal sync error: Failed to fetch data for 6/2024")

        runs = await duckdb_store.recent_sync_runs()
        assert runs[0].status == "failed"
        assert runs[0].errors.startswith("Fatal sync error:")
        assert (await duckdb_store.stats()).performance_records == 0

    @pytest.mark.asyncio
    async def test_client_error_is_not_retried(self, mock_http, resource_url, orchestrator):
        route = mock_http.get(url__startswith=resource_url).mock(
            return_value=httpx.Response(403)
        )

        result = await orchestrator.sync_current()

        assert route.call_count == 1
        assert result.status == "failed"

    @pytest.mark.asyncio
    async def test_every_record_failing_is_failed(self, mock_http, resource_url, orchestrator, data_gov_payload):
        unknown = [r for r in data_gov_payload["records"] if r["district_code"] == "9999"]
        mock_http.get(url__startswith=resource_url).mock(
            return_value=httpx.Response(200, json={"records": unknown})
        )

        result = await orchestrator.sync_current()

        assert result.status == "failed"
        assert result.records_synced == 0
        assert len(result.errors) == 1

    @pytest.mark.asyncio
    async def test_unnormalizable_record_does_not_stop_batch(self, mock_http, resource_url, orchestrator, data_gov_payload):
        records = [dict(r) for r in data_gov_payload["records"][:2]]
        del records[0]["district_code"]
        mock_http.get(url__startswith=resource_url).mock(
            return_value=httpx.Response(200, json={"records": records})
        )

        result = await orchestrator.sync_current()

        assert result.status == "partial"
        assert result.records_synced == 1
        assert result.errors[0].startswith("Error processing record for None:")

    @pytest.mark.asyncio
    async def test_persistence_error_is_per_record(self, mock_http, resource_url, client, registry, fixed_today, data_gov_payload):
        store = FlakyStore(duckdb.connect(":memory:"))
        orchestrator = SyncOrchestrator(
            store, client=client, registry=registry, config=SyncConfig(), clock=lambda: fixed_today
        )
        mock_http.get(url__startswith=resource_url).mock(
            return_value=httpx.Response(200, json={"records": data_gov_payload["records"][:4]})
        )

        result = await orchestrator.sync_current()

        assert result.status == "partial"
        assert result.records_synced == 3
        assert result.errors == ["Error processing record for 1201: disk full"]

    @pytest.mark.asyncio
    async def test_mock_data_syncs_every_region(self, orchestrator, duckdb_store, registry):
        result = await orchestrator.sync_current(use_mock_data=True)

        assert result.status == "success"
        assert result.success is True
        assert result.records_synced == len(registry)
        assert result.errors == []
        assert (await duckdb_store.stats()).regions == len(registry)

    @pytest.mark.asyncio
    async def test_timeout_still_writes_sync_run(self, duckdb_store, registry, fixed_today):
        orchestrator = SyncOrchestrator(
            duckdb_store,
            client=SlowClient(),
            registry=registry,
            config=SyncConfig(),
            clock=lambda: fixed_today,
        )

        result = await orchestrator.sync_current(timeout=0.05)

        assert result.status == "failed"
        assert result.errors == ["Sync timed out after 0.05s"]
        runs = await duckdb_store.recent_sync_runs()
        assert len(runs) == 1
        assert runs[0].status == "failed"
        assert runs[0].errors == "Sync timed out after 0.05s"


# ---------------------------------------------------------------------------
# Historical backfill
# ---------------------------------------------------------------------------

class TestSyncHistorical:
    @pytest.mark.asyncio
    async def test_trailing_periods_with_delay(self, orchestrator, duckdb_store, sleep_recorder, registry):
        result = await orchestrator.sync_historical(3, use_mock_data=True)

        assert [(p.month, p.year) for p in result.periods] == [(6, 2024), (5, 2024), (4, 2024)]
        assert sleep_recorder.delays == [2.0, 2.0]
        assert result.records_synced == 3 * len(registry)
        assert result.errors == []
        assert result.timed_out is False
        assert (await duckdb_store.stats()).performance_records == 3 * len(registry)

        runs = await duckdb_store.recent_sync_runs()
        assert len(runs) == 1
        assert runs[0].mode == "historical"
        assert runs[0].status == "success"
        assert runs[0].records_synced == 3 * len(registry)

    @pytest.mark.asyncio
    async def test_crosses_year_boundary(self, duckdb_store, client, registry, sleep_recorder):
        from datetime import date

        orchestrator = SyncOrchestrator(
            duckdb_store,
            client=client,
            registry=registry,
            config=SyncConfig(backfill_delay=0.0),
            sleep=sleep_recorder,
            clock=lambda: date(2025, 2, 10),
        )

        result = await orchestrator.sync_historical(3, use_mock_data=True)

        assert [(p.month, p.year) for p in result.periods] == [(2, 2025), (1, 2025), (12, 2024)]

    @pytest.mark.asyncio
    async def test_failed_period_does_not_stop_backfill(self, mock_http, resource_url, orchestrator, duckdb_store, data_gov_payload):
        route = mock_http.get(url__startswith=resource_url).mock(
            side_effect=[
                httpx.Response(200, json=data_gov_payload),
                httpx.Response(404),
                httpx.Response(200, json=data_gov_payload),
            ]
        )

        result = await orchestrator.sync_historical(3)

        assert route.call_count == 3
        assert len(result.periods) == 3
        assert result.periods[1].records_synced == 0
        assert result.periods[1].errors[0].startswith("Error syncing 5/2024:")
        assert result.periods[2].records_fetched == 5
        assert result.records_synced == 8
        # Both successful periods carried June rows, so they converge on 4 rows
        assert (await duckdb_store.stats()).performance_records == 4

        runs = await duckdb_store.recent_sync_runs()
        assert runs[0].status == "partial"

    @pytest.mark.asyncio
    async def test_non_object_payload_fails_only_its_period(self, mock_http, resource_url, orchestrator, duckdb_store):
        route = mock_http.get(url__startswith=resource_url).mock(
            side_effect=[
                httpx.Response(200, json=[]),
                httpx.Response(200, json={"records": []}),
            ]
        )

        result = await orchestrator.sync_historical(2)

        assert route.call_count == 2
        assert len(result.periods) == 2
        assert result.periods[0].errors[0].startswith("Error syncing 6/2024: Failed to fetch data for 6/2024")
        assert "Unexpected payload type" in result.periods[0].errors[0]
        assert result.periods[1].errors == []

        runs = await duckdb_store.recent_sync_runs()
        assert len(runs) == 1
        assert runs[0].mode == "historical"
        assert runs[0].status == "failed"

    @pytest.mark.asyncio
    async def test_non_object_payload_through_trigger(self, mock_http, resource_url, orchestrator, duckdb_store):
        mock_http.get(url__startswith=resource_url).mock(
            side_effect=[
                httpx.Response(200, json=[]),
                httpx.Response(200, json={"records": []}),
            ]
        )

        result = await run_sync(SyncRequest(mode="historical", months_back=2), orchestrator=orchestrator)

        assert result["success"] is True
        assert len(await duckdb_store.recent_sync_runs()) == 1

    @pytest.mark.asyncio
    async def test_unexpected_store_error_fails_only_its_period(self, client, registry, sleep_recorder, fixed_today):
        conn = duckdb.connect(":memory:")
        store = CrashingStore(conn, crash_month=6)
        orchestrator = SyncOrchestrator(
            store,
            client=client,
            registry=registry,
            config=SyncConfig(backfill_delay=0.0),
            sleep=sleep_recorder,
            clock=lambda: fixed_today,
        )

        result = await orchestrator.sync_historical(2, use_mock_data=True)

        assert result.periods[0].errors == ["Error syncing 6/2024: driver crashed"]
        assert result.periods[1].records_synced == len(registry)
        runs = await store.recent_sync_runs()
        assert runs[0].status == "partial"
        conn.close()

    @pytest.mark.asyncio
    async def test_default_months_from_config(self, orchestrator):
        result = await orchestrator.sync_historical(use_mock_data=True)
        assert result.months_back == 3
        assert len(result.periods) == 3

    @pytest.mark.asyncio
    async def test_timeout_keeps_completed_periods(self, duckdb_store, client, registry, fixed_today):
        orchestrator = SyncOrchestrator(
            duckdb_store,
            client=client,
            registry=registry,
            config=SyncConfig(backfill_delay=60.0),
            clock=lambda: fixed_today,
        )

        result = await orchestrator.sync_historical(3, use_mock_data=True, timeout=2.0)

        assert result.timed_out is True
        assert len(result.periods) == 1
        assert result.records_synced == len(registry)
        runs = await duckdb_store.recent_sync_runs()
        assert runs[0].status == "partial"
        assert "timed out" in runs[0].errors


# ---------------------------------------------------------------------------
# Seeding, logs, trigger surface
# ---------------------------------------------------------------------------

class TestSupportingOperations:
    @pytest.mark.asyncio
    async def test_seed_regions_is_repeatable(self, orchestrator, duckdb_store, registry):
        first = await orchestrator.seed_regions()
        second = await orchestrator.seed_regions()

        assert len(first) == len(registry) == 22
        assert [r.id for r in first] == [r.id for r in second]
        assert (await duckdb_store.stats()).regions == 22

    @pytest.mark.asyncio
    async def test_get_sync_logs_limit(self, orchestrator):
        for _ in range(3):
            await orchestrator.sync_current(use_mock_data=True)

        assert len(await orchestrator.get_sync_logs(limit=2)) == 2
        assert len(await orchestrator.get_sync_logs()) == 3

    @pytest.mark.asyncio
    async def test_run_sync_current_returns_result(self, orchestrator):
        result = await run_sync(SyncRequest(use_mock_data=True), orchestrator=orchestrator)
        assert isinstance(result, SyncResult)
        assert result.status == "success"

    @pytest.mark.asyncio
    async def test_run_sync_historical_returns_completion_signal(self, orchestrator, duckdb_store):
        result = await run_sync(
            SyncRequest(mode="historical", use_mock_data=True, months_back=2),
            orchestrator=orchestrator,
        )
        assert result["success"] is True
        assert "Historical sync completed" in result["message"]
        assert (await duckdb_store.recent_sync_runs())[0].mode == "historical"

    def test_request_rejects_non_positive_months(self):
        with pytest.raises(ValueError):
            SyncRequest(mode="historical", months_back=0)
