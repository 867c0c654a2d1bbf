"""
regions.py — Read-only registry of known districts.

The sync engine treats this as a static lookup: codes found upstream but
missing from the store are created from the registry entry; codes missing
from the registry are rejected.

Usage:
    from mgnrega_shared.regions import RegionRegistry, default_registry

    registry = default_registry()
    entry = registry.find_by_code("1201")   # RegionEntry(code="1201", name_en="Ambala", ...)
    codes = [r.code for r in registry.list_regions()]
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from mgnrega_shared.constants import HARYANA_DISTRICTS


@dataclass(frozen=True)
class RegionEntry:
    """One registry row."""

    code: str
    name_en: str
    name_hi: str
    lat: float | None = None
    lon: float | None = None

    @classmethod
    def from_dict(cls, row: dict[str, Any]) -> "RegionEntry":
        return cls(
            code=str(row["code"]),
            name_en=str(row["name_en"]),
            name_hi=str(row["name_hi"]),
            lat=row.get("lat"),
            lon=row.get("lon"),
        )


class RegionRegistry:
    """In-memory registry keyed by district code, iteration order preserved."""

    def __init__(self, entries: Iterable[RegionEntry], *, state: str) -> None:
        self._by_code: dict[str, RegionEntry] = {e.code: e for e in entries}
        self.state = state

    def list_regions(self) -> list[RegionEntry]:
        return list(self._by_code.values())

    @staticmethod
    def _key(code: object) -> str | None:
        if code is None or isinstance(code, bool):
            return None
        return str(code).strip() or None

    def find_by_code(self, code: str | None) -> RegionEntry | None:
        key = self._key(code)
        return self._by_code.get(key) if key else None

    def __contains__(self, code: object) -> bool:
        return self.find_by_code(code) is not None  # type: ignore[arg-type]

    def __len__(self) -> int:
        return len(self._by_code)


@lru_cache(maxsize=1)
def default_registry() -> RegionRegistry:
    """The Haryana district registry."""
    from mgnrega_shared.config import settings

    return RegionRegistry(
        (RegionEntry.from_dict(row) for row in HARYANA_DISTRICTS),
        state=settings.state_name,
    )
