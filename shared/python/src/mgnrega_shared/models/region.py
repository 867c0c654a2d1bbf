"""
models/region.py — Pydantic model for the regions (districts) table.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel


class Region(BaseModel):
    """Matches the regions table row exactly."""

    id: str | None = None
    code: str
    name_en: str
    name_hi: str
    state: str
    latitude: float | None = None
    longitude: float | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> "Region":
        return cls(**row)

    def to_insert_dict(self) -> dict[str, Any]:
        return self.model_dump(exclude={"created_at", "updated_at"}, exclude_none=True)
