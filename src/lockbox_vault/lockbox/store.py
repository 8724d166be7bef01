# Lockbox Store - SQLite persistence
#
# Durable CRUD for lockbox records plus a small key/value settings table.
# Owns name uniqueness and created_at/updated_at bookkeeping; knows nothing
# about encryption. State-machine writes arrive as pure transitions
# (see timelock.py) applied inside a single IMMEDIATE transaction.
#
# Concurrency:
#   - One long-lived connection, shared across threads
#   - Every operation holds self._lock for its whole transaction, so
#     user calls and the reconcile tick are linearized

import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, List, Optional, Tuple, Union

from ..config import DEFAULT_RELOCK_DELAY_SECONDS, DEFAULT_UNLOCK_DELAY_SECONDS
from ..core.db import MEMORY_DB, connect as db_connect
from ..exceptions import (
    DuplicateName,
    InvalidLockboxField,
    RecordNotFound,
    StoreUnavailable,
)
from .models import KEEP, Lockbox, LockboxUpdate
from .timelock import now_ms, reconcile

logger = logging.getLogger(__name__)

_COLUMNS = (
    "id, name, content, category, is_locked, unlock_delay_seconds, "
    "relock_delay_seconds, unlock_timestamp, relock_timestamp, "
    "created_at, updated_at"
)

Transition = Callable[[Lockbox], Lockbox]
TransitionCallback = Callable[[Lockbox, Lockbox], None]


class LockboxStore:
    """SQLite store for lockboxes and vault settings.

    Args:
        db_path: Path to SQLite file, or ":memory:". Defaults to data/lockbox.db.
        clock: Epoch-millisecond clock used for created_at/updated_at.
    """

    def __init__(
        self,
        db_path: Optional[Union[str, Path]] = None,
        clock: Callable[[], int] = now_ms,
    ):
        if db_path is None:
            db_path = Path("data/lockbox.db")
        self.db_path = db_path if str(db_path) == MEMORY_DB else Path(db_path)
        if isinstance(self.db_path, Path):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self.clock = clock
        self._lock = threading.RLock()

        try:
            self._conn: Optional[sqlite3.Connection] = db_connect(
                self.db_path, row_factory=True, check_same_thread=False
            )
        except sqlite3.Error as e:
            raise StoreUnavailable(f"Cannot open lockbox database: {e}") from e
        # Explicit BEGIN/COMMIT in _transaction()
        self._conn.isolation_level = None
        self._init_database()

    def _init_database(self):
        """Create tables if they don't exist."""
        with self._transaction() as conn:
            conn.execute(f"""
                CREATE TABLE IF NOT EXISTS lockboxes (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL UNIQUE,
                    content TEXT NOT NULL,
                    category TEXT,
                    is_locked INTEGER NOT NULL DEFAULT 1,
                    unlock_delay_seconds INTEGER NOT NULL DEFAULT {DEFAULT_UNLOCK_DELAY_SECONDS},
                    relock_delay_seconds INTEGER NOT NULL DEFAULT {DEFAULT_RELOCK_DELAY_SECONDS},
                    unlock_timestamp INTEGER,
                    relock_timestamp INTEGER,
                    created_at INTEGER NOT NULL,
                    updated_at INTEGER NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_lockboxes_category ON lockboxes(category)"
            )

    @contextmanager
    def _transaction(self):
        """Run a block in one IMMEDIATE transaction under the store lock."""
        with self._lock:
            if self._conn is None:
                raise StoreUnavailable("Lockbox store is closed")
            conn = self._conn
            try:
                conn.execute("BEGIN IMMEDIATE")
                yield conn
                conn.execute("COMMIT")
            except sqlite3.IntegrityError:
                self._rollback(conn)
                raise
            except sqlite3.Error as e:
                self._rollback(conn)
                logger.error("Lockbox store failure: %s", e)
                raise StoreUnavailable(str(e)) from e
            except BaseException:
                self._rollback(conn)
                raise

    @staticmethod
    def _rollback(conn: sqlite3.Connection) -> None:
        if conn.in_transaction:
            conn.execute("ROLLBACK")

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # ── CRUD ────────────────────────────────────────────────────────

    def create(
        self,
        name: str,
        content: str,
        category: Optional[str] = None,
        unlock_delay_seconds: int = DEFAULT_UNLOCK_DELAY_SECONDS,
        relock_delay_seconds: int = DEFAULT_RELOCK_DELAY_SECONDS,
    ) -> Lockbox:
        """Insert a new, locked lockbox and return it.

        Raises:
            DuplicateName: If `name` is already used.
            InvalidLockboxField: If the name is blank or a delay is negative.
        """
        name = _validate_name(name)
        _validate_content(content)
        _validate_delay("unlock_delay_seconds", unlock_delay_seconds)
        _validate_delay("relock_delay_seconds", relock_delay_seconds)
        now = self.clock()

        try:
            with self._transaction() as conn:
                cursor = conn.execute(
                    """INSERT INTO lockboxes
                       (name, content, category, is_locked, unlock_delay_seconds,
                        relock_delay_seconds, created_at, updated_at)
                       VALUES (?, ?, ?, 1, ?, ?, ?, ?)""",
                    (name, content, category, unlock_delay_seconds,
                     relock_delay_seconds, now, now),
                )
                lockbox = self._fetch(conn, cursor.lastrowid)
        except sqlite3.IntegrityError as e:
            raise DuplicateName(name) from e

        logger.info("Created lockbox %s (%s)", lockbox.id, lockbox.name)
        return lockbox

    def get(self, lockbox_id: int) -> Optional[Lockbox]:
        """Return a single lockbox or None."""
        with self._transaction() as conn:
            return self._fetch(conn, lockbox_id)

    def list(self, category: Optional[str] = None) -> List[Lockbox]:
        """Return all lockboxes ordered by name, optionally for one category."""
        with self._transaction() as conn:
            return self._fetch_all(conn, category)

    def names(self) -> List[str]:
        with self._transaction() as conn:
            rows = conn.execute("SELECT name FROM lockboxes ORDER BY name ASC").fetchall()
        return [row["name"] for row in rows]

    def update(self, lockbox_id: int, changes: LockboxUpdate) -> Lockbox:
        """Apply a partial update; KEEP fields retain their stored values.

        Raises:
            RecordNotFound: If the lockbox does not exist.
            DuplicateName: If renaming onto an existing name.
            InvalidLockboxField: If a new value is rejected.
        """
        name = changes.name
        if name is not KEEP:
            name = _validate_name(name)
        if changes.content is not KEEP:
            _validate_content(changes.content)
        for field_name in ("unlock_delay_seconds", "relock_delay_seconds"):
            value = getattr(changes, field_name)
            if value is not KEEP:
                _validate_delay(field_name, value)

        now = self.clock()
        try:
            with self._transaction() as conn:
                current = self._fetch(conn, lockbox_id)
                if current is None:
                    raise RecordNotFound(lockbox_id)

                conn.execute(
                    """UPDATE lockboxes SET
                           name = ?, content = ?, category = ?,
                           unlock_delay_seconds = ?, relock_delay_seconds = ?,
                           updated_at = ?
                       WHERE id = ?""",
                    (
                        _pick(name, current.name),
                        _pick(changes.content, current.content),
                        _pick(changes.category, current.category),
                        _pick(changes.unlock_delay_seconds, current.unlock_delay_seconds),
                        _pick(changes.relock_delay_seconds, current.relock_delay_seconds),
                        now,
                        lockbox_id,
                    ),
                )
                return self._fetch(conn, lockbox_id)
        except sqlite3.IntegrityError as e:
            raise DuplicateName(name) from e

    def delete(self, lockbox_id: int) -> bool:
        """Delete a lockbox. Returns True if a row was removed; a missing id is not an error."""
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM lockboxes WHERE id = ?", (lockbox_id,))
        return cursor.rowcount > 0

    # ── State-machine writes ────────────────────────────────────────

    def apply_transition(
        self, lockbox_id: int, transition: Transition
    ) -> Tuple[Lockbox, Lockbox]:
        """Atomically read a lockbox, apply `transition`, and persist the result.

        Returns:
            (before, after). Nothing is written when they are equal.

        Raises:
            RecordNotFound: If the lockbox does not exist.
        """
        with self._transaction() as conn:
            before = self._fetch(conn, lockbox_id)
            if before is None:
                raise RecordNotFound(lockbox_id)
            after = transition(before)
            if after != before:
                self._write_state(conn, after)
        return before, after

    def reconcile_all(
        self, now: int, on_transition: Optional[TransitionCallback] = None
    ) -> List[Lockbox]:
        """Apply the tick transitions to every lockbox in one transaction.

        Args:
            now: Current time in epoch milliseconds.
            on_transition: Called with (before, after) for each changed record,
                after the transaction has committed.

        Returns:
            All lockboxes, ordered by name, in their reconciled state.
        """
        with self._transaction() as conn:
            records = self._fetch_all(conn)
            reconciled = reconcile(now, records)
            changed = [
                (before, after)
                for before, after in zip(records, reconciled)
                if after != before
            ]
            for _, after in changed:
                self._write_state(conn, after)

        if changed:
            logger.debug("Reconcile at %d changed %d lockbox(es)", now, len(changed))
        if on_transition is not None:
            for before, after in changed:
                on_transition(before, after)
        return reconciled

    @staticmethod
    def _write_state(conn: sqlite3.Connection, record: Lockbox) -> None:
        conn.execute(
            """UPDATE lockboxes SET
                   is_locked = ?, unlock_timestamp = ?, relock_timestamp = ?,
                   updated_at = ?
               WHERE id = ?""",
            (
                1 if record.is_locked else 0,
                record.unlock_timestamp,
                record.relock_timestamp,
                record.updated_at,
                record.id,
            ),
        )

    # ── Settings ────────────────────────────────────────────────────

    def get_setting(self, key: str) -> Optional[str]:
        """Get a setting value by key. Returns None if not set."""
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT value FROM settings WHERE key = ?", (key,)
            ).fetchone()
        return row["value"] if row else None

    def set_setting(self, key: str, value: str) -> None:
        """Set a setting value (upsert)."""
        with self._transaction() as conn:
            conn.execute(
                """INSERT INTO settings (key, value) VALUES (?, ?)
                   ON CONFLICT(key) DO UPDATE SET value = excluded.value""",
                (key, value),
            )

    def add_setting(self, key: str, value: str) -> bool:
        """Insert a setting only if the key is absent. Returns True if inserted."""
        with self._transaction() as conn:
            cursor = conn.execute(
                "INSERT INTO settings (key, value) VALUES (?, ?) ON CONFLICT(key) DO NOTHING",
                (key, value),
            )
        return cursor.rowcount > 0

    # ── helpers ─────────────────────────────────────────────────────

    def _fetch(self, conn: sqlite3.Connection, lockbox_id: int) -> Optional[Lockbox]:
        row = conn.execute(
            f"SELECT {_COLUMNS} FROM lockboxes WHERE id = ?", (lockbox_id,)
        ).fetchone()
        return _row_to_lockbox(row) if row else None

    def _fetch_all(
        self, conn: sqlite3.Connection, category: Optional[str] = None
    ) -> List[Lockbox]:
        if category is not None:
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM lockboxes WHERE category = ? ORDER BY name ASC",
                (category,),
            ).fetchall()
        else:
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM lockboxes ORDER BY name ASC"
            ).fetchall()
        return [_row_to_lockbox(row) for row in rows]


def _row_to_lockbox(row: sqlite3.Row) -> Lockbox:
    return Lockbox(
        id=row["id"],
        name=row["name"],
        content=row["content"],
        category=row["category"],
        is_locked=row["is_locked"] == 1,
        unlock_delay_seconds=row["unlock_delay_seconds"],
        relock_delay_seconds=row["relock_delay_seconds"],
        unlock_timestamp=row["unlock_timestamp"],
        relock_timestamp=row["relock_timestamp"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _pick(value, current):
    return current if value is KEEP else value


def _validate_name(name) -> str:
    if not isinstance(name, str) or not name.strip():
        raise InvalidLockboxField("Lockbox name must not be empty")
    return name.strip()


def _validate_content(content) -> None:
    if not isinstance(content, str):
        raise InvalidLockboxField("Lockbox content must be a string")


def _validate_delay(field_name: str, value) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidLockboxField(f"{field_name} must be an integer number of seconds")
    if value < 0:
        raise InvalidLockboxField(f"{field_name} must not be negative")
