"""
sources/data_gov.py — data.gov.in MGNREGA resource client.

The "District-wise MGNREGA Data at a Glance" resource serves loosely typed
JSON records filtered by state, fiscal year, and month name.

Endpoint:
  GET /resource/{resource_id}?api-key=...&format=json&limit=N
      &filters[state_name]=HARYANA
      &filters[fin_year]=2024-2025
      &filters[month]=April

Response shape:
  {
    "records": [
      {
        "district_code": "1201", "district_name": "AMBALA",
        "state_name": "HARYANA", "month": "April", "fin_year": "2024-2025",
        "Total_No_of_JobCards_issued": "64718",
        "Total_Individuals_Worked": "21345",
        ...
      }
    ]
  }

Every request has a hard timeout (15 s by default); transport failures,
HTTP 429 and HTTP 5xx are retried with exponential backoff, anything else
fails on the first attempt.

Usage:
    client = DataGovClient()
    records = await client.fetch_state_records(year=2024, month=4)
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from mgnrega_shared.time_utils import fiscal_year_label, month_number_to_name
from mgnrega_pipeline.errors import FetchError, TransportError, UpstreamError
from mgnrega_pipeline.utils.retry import RetryConfig, RetryPolicy, SleepFn

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ApiConfig:
    """Connection settings for the upstream resource."""

    base_url: str = "https://api.data.gov.in"
    api_key: str = ""
    resource_id: str = "ee03643a-ee4c-48c2-ac30-9f2ff26ab722"
    state_filter: str = "HARYANA"
    timeout: float = 15.0
    page_limit: int = 1000

    @property
    def resource_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/resource/{self.resource_id}"

    @classmethod
    def from_settings(cls, settings: Any | None = None) -> "ApiConfig":
        if settings is None:
            from mgnrega_shared.config import settings
        return cls(
            base_url=settings.data_gov_api_base_url,
            api_key=settings.data_gov_api_key,
            resource_id=settings.mgnrega_resource_id,
            state_filter=settings.state_filter,
            timeout=settings.api_timeout_seconds,
            page_limit=settings.api_page_limit,
        )


class DataGovClient:
    """Fetches MGNREGA records with bounded, jittered retries."""

    name = "data.gov.in"

    def __init__(
        self,
        config: ApiConfig | None = None,
        retry_config: RetryConfig | None = None,
        *,
        sleep: SleepFn = asyncio.sleep,
        rng: Callable[[], float] = random.random,
    ) -> None:
        self.config = config or ApiConfig.from_settings()
        self.retry_config = retry_config or RetryConfig.from_settings()
        self._sleep = sleep
        self._rng = rng
        self._log = log.bind(source_name=self.name)

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    async def _request(self, params: dict[str, Any]) -> dict[str, Any]:
        """
        One attempt. Translates httpx failures into the FetchError family.

        `config.timeout` bounds the whole attempt, not just each socket phase;
        running out of time counts as a transport failure.
        """
        try:
            async with asyncio.timeout(self.config.timeout):
                async with httpx.AsyncClient(timeout=self.config.timeout) as client:
                    response = await client.get(self.config.resource_url, params=params)
                    response.raise_for_status()
                    payload = response.json()
        except TimeoutError as exc:
            raise TransportError(
                f"Request to {self.name} exceeded {self.config.timeout}s"
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise UpstreamError(
                exc.response.status_code,
                f"HTTP {exc.response.status_code} from {self.name}: "
                f"{exc.response.reason_phrase}",
            ) from exc
        except httpx.TransportError as exc:
            raise TransportError(f"{type(exc).__name__}: {exc}") from exc
        except ValueError as exc:
            # Body was not JSON
            raise FetchError(f"Invalid JSON from {self.name}: {exc}") from exc

        if not isinstance(payload, dict):
            raise FetchError(
                f"Unexpected payload type from {self.name}: {type(payload).__name__}"
            )
        return payload

    async def fetch(
        self,
        filters: dict[str, Any] | None = None,
        retry_config: RetryConfig | None = None,
    ) -> dict[str, Any]:
        """
        Fetch the raw payload for the given filters.

        Args:
            filters:      Extra query params, e.g. {"filters[state_name]": "HARYANA"}.
            retry_config: Per-call override of the client's retry limits.

        Returns:
            Parsed JSON payload.

        Raises:
            FetchError: terminal failure; `.retryable` tells whether the last
                        error was of a retryable kind (retries exhausted).
        """
        policy = RetryPolicy(retry_config or self.retry_config, rng=self._rng)
        params: dict[str, Any] = {
            "api-key": self.config.api_key,
            "format": "json",
            "limit": self.config.page_limit,
            **(filters or {}),
        }
        self._log.info(
            "fetch_start",
            url=self.config.resource_url,
            has_api_key=bool(self.config.api_key),
            filters=filters or {},
        )

        attempt_number = 0
        try:
            async for attempt in policy.retrying(sleep=self._sleep):
                with attempt:
                    attempt_number = attempt.retry_state.attempt_number
                    return await self._request(params)
        except FetchError as exc:
            self._log.error(
                "fetch_failed",
                attempts=attempt_number,
                retryable=exc.retryable,
                error=str(exc),
            )
            raise
        raise FetchError(f"Failed to fetch from {self.name}")  # pragma: no cover

    # ------------------------------------------------------------------
    # Domain helpers
    # ------------------------------------------------------------------

    def _period_filters(self, year: int | None, month: int | None) -> dict[str, str]:
        filters = {"filters[state_name]": self.config.state_filter}
        if year:
            filters["filters[fin_year]"] = fiscal_year_label(year)
        if month:
            filters["filters[month]"] = month_number_to_name(month)
        return filters

    async def fetch_state_records(
        self,
        year: int | None = None,
        month: int | None = None,
    ) -> list[dict[str, Any]]:
        """Return the raw `records` list for every district of the state."""
        payload = await self.fetch(self._period_filters(year, month))
        records = payload.get("records") or []
        if not isinstance(records, list):
            raise FetchError(f"Unexpected 'records' type from {self.name}: {type(records).__name__}")
        self._log.info("fetch_complete", records=len(records), year=year, month=month)
        return records

    async def fetch_district_record(
        self,
        district_code: str,
        year: int | None = None,
        month: int | None = None,
    ) -> dict[str, Any] | None:
        """Return the first raw record for one district, or None."""
        filters = self._period_filters(year, month)
        filters["filters[district_code]"] = district_code
        records = (await self.fetch(filters)).get("records") or []
        if not isinstance(records, list):
            raise FetchError(f"Unexpected 'records' type from {self.name}: {type(records).__name__}")
        return records[0] if records else None

    async def check_health(self) -> bool:
        """True when the upstream base URL answers at all within 5 s."""
        try:
            async with httpx.AsyncClient(timeout=5.0) as client:
                await client.get(self.config.base_url)
            return True
        except httpx.HTTPError as exc:
            self._log.warning("health_check_failed", error=str(exc))
            return False

    async def get_metadata(self) -> dict[str, Any]:
        return {
            "source_name": self.name,
            "base_url": self.config.base_url,
            "resource_id": self.config.resource_id,
            "description": "District-wise MGNREGA Data at a Glance",
        }
