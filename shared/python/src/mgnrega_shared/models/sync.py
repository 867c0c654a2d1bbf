"""
models/sync.py — SyncRun audit rows and structured sync results.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from mgnrega_shared.constants import SyncMode, SyncStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SyncRun(BaseModel):
    """
    Matches the sync_runs table row. Append-only.

    `errors` holds newline-joined messages, or None when the run was clean.
    """

    id: str | None = None
    status: SyncStatus
    mode: SyncMode = "current"
    records_synced: int = 0
    errors: str | None = None
    duration_seconds: float = 0.0
    synced_at: datetime = Field(default_factory=_utcnow)

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> "SyncRun":
        return cls(**row)

    def to_insert_dict(self) -> dict[str, Any]:
        d = self.model_dump(exclude={"id"}, exclude_none=True)
        d["synced_at"] = self.synced_at.isoformat()
        if self.id is not None:
            d["id"] = self.id
        return d

    @property
    def error_list(self) -> list[str]:
        return self.errors.split("\n") if self.errors else []


class SyncResult(BaseModel):
    """What a current-period sync returns to its trigger."""

    success: bool
    records_synced: int
    errors: list[str] = Field(default_factory=list)
    duration_seconds: float
    status: SyncStatus


class PeriodOutcome(BaseModel):
    """One period of a historical backfill."""

    month: int
    year: int
    records_fetched: int = 0
    records_synced: int = 0
    errors: list[str] = Field(default_factory=list)


class BackfillResult(BaseModel):
    """Summary of a historical backfill across trailing periods."""

    months_back: int
    periods: list[PeriodOutcome] = Field(default_factory=list)
    duration_seconds: float = 0.0
    timed_out: bool = False

    @property
    def records_synced(self) -> int:
        return sum(p.records_synced for p in self.periods)

    @property
    def errors(self) -> list[str]:
        return [e for p in self.periods for e in p.errors]
