"""
config.py — pydantic-settings Settings class.

All environment variables for the MGNREGA sync engine are declared here.
The pipeline imports `settings` from this module; components never read it
directly inside their hot paths — they receive explicit config objects built
from it (see mgnrega_pipeline.utils.retry.RetryConfig, ApiConfig, SyncConfig).

Usage:
    from mgnrega_shared.config import settings
    print(settings.data_gov_api_base_url)
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _find_dotenv() -> Path | None:
    """Walk up from CWD to find the nearest .env file."""
    current = Path.cwd()
    for parent in [current, *current.parents]:
        candidate = parent / ".env"
        if candidate.is_file():
            return candidate
    return None


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=_find_dotenv() or ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Upstream: data.gov.in
    # -------------------------------------------------------------------------
    data_gov_api_base_url: str = Field(default="https://api.data.gov.in")
    data_gov_api_key: str = Field(default="")
    # "District-wise MGNREGA Data at a Glance"
    mgnrega_resource_id: str = Field(default="ee03643a-ee4c-48c2-ac30-9f2ff26ab722")
    state_filter: str = Field(default="HARYANA")
    state_name: str = Field(default="Haryana")

    api_timeout_seconds: float = Field(default=15.0, gt=0)
    api_max_retries: int = Field(default=3, ge=0)
    api_base_delay_seconds: float = Field(default=1.0, ge=0)
    api_max_delay_seconds: float = Field(default=10.0, ge=0)
    api_jitter_seconds: float = Field(default=1.0, ge=0)
    api_page_limit: int = Field(default=1000, gt=0)

    # -------------------------------------------------------------------------
    # Sync scheduling
    # -------------------------------------------------------------------------
    sync_enabled: bool = Field(default=False)
    sync_cron_schedule: str = Field(default="0 2 * * *")  # 2 AM daily
    backfill_months: int = Field(default=12, gt=0)
    backfill_delay_seconds: float = Field(default=2.0, ge=0)
    sync_timeout_seconds: float = Field(default=300.0, gt=0)

    # -------------------------------------------------------------------------
    # Storage
    # -------------------------------------------------------------------------
    storage_backend: Literal["duckdb", "supabase"] = Field(default="duckdb")
    duckdb_path: str = Field(default="./data/mgnrega.duckdb")
    supabase_url: str = Field(default="http://localhost:54321")
    supabase_service_key: str = Field(default="")

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO"
    )
    log_format: Literal["json", "console"] = Field(default="console")

    @field_validator("data_gov_api_base_url", "supabase_url", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/") if isinstance(v, str) else v


# ---------------------------------------------------------------------------
# Module-level singleton — import this everywhere
# ---------------------------------------------------------------------------
settings = Settings()
