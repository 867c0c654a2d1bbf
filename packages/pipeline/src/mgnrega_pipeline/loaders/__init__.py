"""
mgnrega_pipeline.loaders — persistence backends for the sync engine.

Use get_store() to build the backend named by settings.storage_backend.
"""

from __future__ import annotations

from mgnrega_shared.config import settings
from mgnrega_pipeline.loaders.base import BaseStore, StoreStats
from mgnrega_pipeline.loaders.duckdb_store import DuckDBStore
from mgnrega_pipeline.loaders.supabase_store import SupabaseStore


def get_store(backend: str | None = None) -> BaseStore:
    """Return a store for `backend` ("duckdb" or "supabase"), defaulting to settings."""
    name = backend or settings.storage_backend
    if name == "duckdb":
        return DuckDBStore()
    if name == "supabase":
        return SupabaseStore()
    raise ValueError(f"Unknown storage backend: {name!r}")


__all__ = ["BaseStore", "DuckDBStore", "StoreStats", "SupabaseStore", "get_store"]
