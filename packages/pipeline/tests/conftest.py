"""
tests/conftest.py — Shared pytest fixtures for the pipeline test suite.

Provides:
  fixture_path()         — resolves paths to tests/fixtures/
  data_gov_payload       — parsed data.gov.in response (5 rows, one unknown district)
  mock_supabase_client() — MagicMock of the Supabase client (prevents real DB calls)
  duckdb_store           — DuckDBStore over a fresh in-memory connection
  api_config             — ApiConfig pointing at a fake host
  sleep_recorder         — awaitable stand-in for asyncio.sleep that records delays
  mock_http              — configured respx router for faking HTTP responses
"""

from __future__ import annotations

import json
from datetime import date
from pathlib import Path
from unittest.mock import MagicMock

import duckdb
import pytest
import respx

from mgnrega_shared.regions import RegionRegistry, default_registry
from mgnrega_pipeline.loaders.duckdb_store import DuckDBStore
from mgnrega_pipeline.sources.data_gov import ApiConfig

FIXTURES_DIR = Path(__file__).parent / "fixtures"

TEST_BASE_URL = "https://api.test.local"
TEST_RESOURCE_URL = f"{TEST_BASE_URL}/resource/ee03643a-ee4c-48c2-ac30-9f2ff26ab722"

# June 2024: the period of the sample payload
FIXED_TODAY = date(2024, 6, 15)


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------

@pytest.fixture
def fixture_path() -> Path:
    return FIXTURES_DIR


@pytest.fixture
def data_gov_payload() -> dict:
    """Parsed data.gov.in response for HARYANA, June 2024."""
    return json.loads((FIXTURES_DIR / "data_gov_sample.json").read_text(encoding="utf-8"))


# ---------------------------------------------------------------------------
# Supabase client mock
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_supabase_client() -> MagicMock:
    """
    A MagicMock that simulates the supabase.Client interface.

    Every query chain ends in .execute() returning empty data by default.
    Override in individual tests: mock_supabase_client.table.return_value...
    """
    client = MagicMock()

    default_result = MagicMock()
    default_result.data = []
    default_result.count = 0

    query = client.table.return_value
    for method in ("select", "upsert", "insert", "update"):
        chained = getattr(query, method).return_value
        chained.execute.return_value = default_result
        for modifier in ("eq", "limit", "order"):
            getattr(chained, modifier).return_value = chained

    return client


# ---------------------------------------------------------------------------
# Stores, config, clocks
# ---------------------------------------------------------------------------

@pytest.fixture
def duckdb_store() -> DuckDBStore:
    conn = duckdb.connect(":memory:")
    yield DuckDBStore(conn)
    conn.close()


@pytest.fixture
def registry() -> RegionRegistry:
    return default_registry()


@pytest.fixture
def api_config() -> ApiConfig:
    return ApiConfig(base_url=TEST_BASE_URL, api_key="test-key", timeout=1.0)


class SleepRecorder:
    """Drop-in for asyncio.sleep that returns immediately and keeps the delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


# ---------------------------------------------------------------------------
# respx HTTP mock router
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_http():
    """
    Activate the respx mock router for all httpx requests.

    Usage in tests:
        def test_something(mock_http):
            mock_http.get(TEST_RESOURCE_URL).mock(return_value=httpx.Response(200, json={...}))
    """
    with respx.mock(assert_all_called=False) as router:
        yield router


@pytest.fixture
def resource_url() -> str:
    return TEST_RESOURCE_URL


@pytest.fixture
def fixed_today() -> date:
    return FIXED_TODAY
