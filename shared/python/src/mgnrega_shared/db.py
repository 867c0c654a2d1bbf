"""
db.py — Supabase and DuckDB client singletons.

Usage:
    from mgnrega_shared.db import get_supabase_client, get_duckdb_connection

    supabase = get_supabase_client()                    # service key (pipeline writes)
    duck = get_duckdb_connection()                      # local store
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Optional

import duckdb
import structlog
from supabase import Client, create_client

from mgnrega_shared.config import settings

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Supabase — one service-role client per process (thread-safe via lock)
# ---------------------------------------------------------------------------
_supabase_lock = threading.Lock()
_supabase_client: Optional[Client] = None


def get_supabase_client() -> Client:
    """
    Return the singleton Supabase client for pipeline writes.

    Uses the service role key, so row-level security does not apply.
    """
    global _supabase_client

    with _supabase_lock:
        if _supabase_client is None:
            if not settings.supabase_service_key:
                raise RuntimeError(
                    "SUPABASE_SERVICE_KEY is not set. Set it in .env to use the supabase backend."
                )
            _supabase_client = create_client(
                settings.supabase_url,
                settings.supabase_service_key,
            )
            logger.info("supabase_client_created", url=settings.supabase_url)
        return _supabase_client


def reset_supabase_client() -> None:
    """Reset the singleton client (useful in tests)."""
    global _supabase_client
    with _supabase_lock:
        _supabase_client = None


# ---------------------------------------------------------------------------
# DuckDB — single connection per process
# ---------------------------------------------------------------------------
_duckdb_lock = threading.Lock()
_duckdb_conn: Optional[duckdb.DuckDBPyConnection] = None


def get_duckdb_connection() -> duckdb.DuckDBPyConnection:
    """
    Return a singleton DuckDB connection to the local store.

    The file path is read from settings.duckdb_path (":memory:" is allowed).
    Creates parent directories if they don't exist.
    """
    global _duckdb_conn

    with _duckdb_lock:
        if _duckdb_conn is None:
            if settings.duckdb_path == ":memory:":
                _duckdb_conn = duckdb.connect(":memory:")
            else:
                db_path = Path(settings.duckdb_path)
                db_path.parent.mkdir(parents=True, exist_ok=True)
                _duckdb_conn = duckdb.connect(str(db_path))
            logger.info("duckdb_connected", path=settings.duckdb_path)

        return _duckdb_conn


def reset_duckdb_connection() -> None:
    """Reset the DuckDB singleton (useful in tests)."""
    global _duckdb_conn
    with _duckdb_lock:
        if _duckdb_conn is not None:
            _duckdb_conn.close()
            _duckdb_conn = None
