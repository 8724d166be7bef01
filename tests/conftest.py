"""
Shared pytest fixtures for the Lockbox Vault test suite.

Autouse fixtures below isolate tests from the live application data:
  - Audit logger  -> temp directory  (prevents test events in ./audit_logs)
  - Configuration -> defaults with temp paths (ignores the caller's .env)
"""

import pytest

from lockbox_vault.config import LockboxConfig


@pytest.fixture(autouse=True)
def _isolate_config(tmp_path):
    """Pin a default configuration whose paths point into tmp_path."""
    import lockbox_vault.config as config_mod

    old_config = config_mod._config
    config_mod.set_config(
        LockboxConfig(
            db_path=tmp_path / "data" / "lockbox.db",
            audit_dir=tmp_path / "audit_logs",
        )
    )

    yield

    config_mod.set_config(old_config)


@pytest.fixture(autouse=True)
def _isolate_audit_logs(tmp_path):
    """Redirect the global AuditLogger to a temp directory for every test.

    Without this, any test that (directly or indirectly) calls
    ``get_audit_logger().log_event(...)`` writes into the real
    ``./audit_logs/`` directory.
    """
    import lockbox_vault.core.audit_log as audit_mod

    old_logger = audit_mod._audit_logger
    test_logger = audit_mod.AuditLogger(log_dir=tmp_path / "audit_logs")
    audit_mod.set_audit_logger(test_logger)

    yield test_logger

    test_logger.close()
    audit_mod.set_audit_logger(old_logger)


class FakeClock:
    """Manually advanced epoch-millisecond clock."""

    def __init__(self, now: int = 1_700_000_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(tmp_path, clock):
    from lockbox_vault.lockbox.store import LockboxStore

    s = LockboxStore(db_path=tmp_path / "lockbox.db", clock=clock)
    yield s
    s.close()


@pytest.fixture
def audit_events(tmp_path):
    """Return a reader for the JSON audit events written during the test."""
    import json

    def read():
        events = []
        for path in sorted((tmp_path / "audit_logs").glob("audit_*.log")):
            for line in path.read_text(encoding="utf-8").splitlines():
                if line.strip():
                    events.append(json.loads(line))
        return events

    return read
