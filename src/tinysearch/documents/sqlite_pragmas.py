"""Shared SQLite PRAGMA helpers for the document store connection."""

from __future__ import annotations

import sqlite3


def apply_store_pragmas(
    conn: sqlite3.Connection,
    *,
    busy_timeout_ms: int | None = 30000,
    cache_size_kb: int = -16384,
    temp_store: str = "MEMORY",
    foreign_keys: bool = True,
) -> None:
    """Apply PRAGMAs for a read/write document store connection."""
    if busy_timeout_ms is not None:
        conn.execute(f"PRAGMA busy_timeout = {busy_timeout_ms}")
    # In-memory databases report "memory" and ignore the WAL request.
    conn.execute("PRAGMA journal_mode = WAL")
    conn.execute("PRAGMA synchronous = NORMAL")
    conn.execute(f"PRAGMA cache_size = {cache_size_kb}")
    conn.execute(f"PRAGMA temp_store = {temp_store}")
    conn.execute(f"PRAGMA foreign_keys = {'ON' if foreign_keys else 'OFF'}")
