# Core Module - Central SQLite Connection Helper
#
# Every lockbox database connection is opened through `connect()` instead
# of raw `sqlite3.connect()`. This ensures:
#
#   - WAL journal mode (readers are not blocked by the writer)
#   - busy_timeout to avoid SQLITE_BUSY under contention
#   - foreign_keys enforcement on every connection
#
# The lockbox store keeps one long-lived connection shared between the
# caller threads and the reconcile ticker, so it opens it with
# check_same_thread=False and serializes access with its own lock.

import sqlite3
from pathlib import Path
from typing import Union

MEMORY_DB = ":memory:"


def connect(
    db_path: Union[str, Path],
    *,
    row_factory: bool = False,
    check_same_thread: bool = True,
) -> sqlite3.Connection:
    """Open a SQLite connection with WAL mode and safe PRAGMAs.

    Args:
        db_path: Path to the database file, or ":memory:".
        row_factory: If True, set conn.row_factory = sqlite3.Row.
        check_same_thread: Passed to sqlite3.connect().

    Returns:
        sqlite3.Connection with WAL mode, busy_timeout, and foreign_keys.
    """
    conn = sqlite3.connect(str(db_path), check_same_thread=check_same_thread)
    if str(db_path) != MEMORY_DB:
        conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA busy_timeout=5000")
    conn.execute("PRAGMA foreign_keys=ON")
    if row_factory:
        conn.row_factory = sqlite3.Row
    return conn
