"""Tests for the SQLite connection helper."""

import sqlite3
import threading

from lockbox_vault.core.db import MEMORY_DB, connect


class TestConnect:

    def test_wal_mode(self, tmp_path):
        conn = connect(tmp_path / "t.db")
        mode = conn.execute("PRAGMA journal_mode").fetchone()[0]
        conn.close()
        assert mode == "wal"

    def test_busy_timeout(self, tmp_path):
        conn = connect(tmp_path / "t.db")
        assert conn.execute("PRAGMA busy_timeout").fetchone()[0] == 5000
        conn.close()

    def test_foreign_keys(self, tmp_path):
        conn = connect(tmp_path / "t.db")
        assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1
        conn.close()

    def test_row_factory(self, tmp_path):
        conn = connect(tmp_path / "t.db", row_factory=True)
        assert conn.row_factory is sqlite3.Row
        conn.close()

        plain = connect(tmp_path / "t.db")
        assert plain.row_factory is None
        plain.close()

    def test_memory_database(self):
        conn = connect(MEMORY_DB)
        conn.execute("CREATE TABLE t (x INTEGER)")
        conn.execute("INSERT INTO t VALUES (1)")
        assert conn.execute("SELECT x FROM t").fetchone()[0] == 1
        conn.close()

    def test_shared_across_threads(self, tmp_path):
        conn = connect(tmp_path / "t.db", check_same_thread=False)
        conn.execute("CREATE TABLE t (x INTEGER)")
        errors = []

        def worker():
            try:
                conn.execute("INSERT INTO t VALUES (1)")
            except sqlite3.Error as e:
                errors.append(e)

        t = threading.Thread(target=worker)
        t.start()
        t.join()
        conn.commit()
        assert errors == []
        assert conn.execute("SELECT COUNT(*) FROM t").fetchone()[0] == 1
        conn.close()
