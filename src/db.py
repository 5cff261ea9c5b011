"""Shared SQLite helpers (WAL mode and busy timeout)."""

import sqlite3
from pathlib import Path

BUSY_TIMEOUT_MS = 5000


def wal_connect(
    db_path: str | Path,
    row_factory: bool = False,
    autocommit: bool = False,
) -> sqlite3.Connection:
    """Open SQLite connection with WAL journal mode.

    Readers never block the writer and vice versa, which is what lets the CLI,
    hooks and the protocol server share one file from separate processes.

    Args:
        db_path: Path to database file.
        row_factory: If True, set conn.row_factory = sqlite3.Row.
        autocommit: If True, disable the implicit transaction handling of the
            sqlite3 module so callers manage BEGIN/COMMIT themselves.
    """
    conn = sqlite3.connect(
        str(db_path),
        timeout=BUSY_TIMEOUT_MS / 1000,
        isolation_level=None if autocommit else "",
    )
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA synchronous=NORMAL")
    conn.execute(f"PRAGMA busy_timeout={BUSY_TIMEOUT_MS}")
    if row_factory:
        conn.row_factory = sqlite3.Row
    return conn
