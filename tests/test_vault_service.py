"""Tests for the LockboxVault facade.

Covers:
  - Master password set / verify / clear
  - Encrypt on write, decrypt on read (and the StillEncrypted reasons)
  - Plaintext mode when no master password is configured
  - Export / import through the facade
  - Audit events
"""

import json

import pytest

from lockbox_vault.config import LockboxConfig
from lockbox_vault.exceptions import (
    DuplicateName,
    ImportFormatError,
    MasterPasswordAlreadySet,
    RecordNotFound,
    SessionLocked,
)
from lockbox_vault.lockbox.models import (
    Decrypted,
    EncryptedReason,
    LockboxPhase,
    LockboxUpdate,
    StillEncrypted,
)
from lockbox_vault.lockbox.store import LockboxStore
from lockbox_vault.service import LockboxVault
from lockbox_vault.vault.credentials import MASTER_PASSWORD_SETTING, hash_password
from lockbox_vault.vault.encryption import decrypt, encrypt

PASSWORD = "correct horse"


@pytest.fixture
def vault(store, clock):
    v = LockboxVault(store, clock=clock)
    yield v
    v.close()


@pytest.fixture
def secured(vault):
    vault.set_master_password(PASSWORD)
    return vault


def open_now(vault, clock, lockbox_id):
    """Request an unlock and tick past the unlock delay."""
    vault.request_unlock(lockbox_id)
    box = vault.store.get(lockbox_id)
    clock.now = box.unlock_timestamp
    vault.tick()


class TestMasterPassword:

    def test_initially_unset(self, vault):
        assert vault.is_master_password_set() is False
        assert vault.verify_master_password("anything") is False
        assert vault.session.is_active is False

    def test_set_stores_hash_and_opens_session(self, vault):
        vault.set_master_password(PASSWORD)
        assert vault.is_master_password_set() is True
        assert vault.store.get_setting(MASTER_PASSWORD_SETTING) == hash_password(PASSWORD)
        assert vault.session.key_material() == hash_password(PASSWORD)

    def test_set_twice_rejected(self, secured):
        with pytest.raises(MasterPasswordAlreadySet):
            secured.set_master_password("other")
        assert secured.store.get_setting(MASTER_PASSWORD_SETTING) == hash_password(PASSWORD)

    def test_verify(self, secured):
        secured.clear_session()
        assert secured.verify_master_password("wrong") is False
        assert secured.session.is_active is False
        assert secured.verify_master_password(PASSWORD) is True
        assert secured.session.is_active is True

    def test_clear_session(self, secured):
        secured.clear_session()
        assert secured.session.key_material() is None
        assert secured.is_master_password_set() is True

    def test_new_vault_on_same_db_needs_verify(self, secured, clock):
        other = LockboxVault(secured.store, clock=clock)
        assert other.session.is_active is False
        assert other.verify_master_password(PASSWORD) is True


class TestEncryptedLockboxes:

    def test_content_stored_encrypted(self, secured):
        box = secured.create_lockbox("bank", "1234")
        assert box.content != "1234"
        assert decrypt(box.content, hash_password(PASSWORD)) == "1234"

    def test_locked_read_is_not_decrypted(self, secured):
        box = secured.create_lockbox("bank", "1234")
        view = secured.get_lockbox(box.id)
        assert view.is_decrypted is False
        assert view.content == StillEncrypted(raw=box.content, reason=EncryptedReason.LOCKED)

    def test_unlocked_read_is_decrypted(self, secured, clock):
        box = secured.create_lockbox("bank", "1234", unlock_delay_seconds=5)
        open_now(secured, clock, box.id)

        view = secured.get_lockbox(box.id)
        assert view.lockbox.phase is LockboxPhase.PENDING_RELOCK
        assert view.content == Decrypted(content="1234")

    def test_read_applies_due_unlock_without_tick(self, secured, clock):
        box = secured.create_lockbox("bank", "1234", unlock_delay_seconds=5)
        secured.request_unlock(box.id)
        clock.advance(5000)

        view = secured.get_lockbox(box.id)
        assert view.is_decrypted is True
        assert secured.store.get(box.id).is_locked is False

    def test_read_after_relock_deadline_is_locked(self, secured, clock):
        box = secured.create_lockbox("bank", "1234", unlock_delay_seconds=5, relock_delay_seconds=10)
        open_now(secured, clock, box.id)
        clock.advance(10_000)

        view = secured.get_lockbox(box.id)
        assert view.content.reason is EncryptedReason.LOCKED

    def test_unlocked_without_session(self, secured, clock):
        box = secured.create_lockbox("bank", "1234", unlock_delay_seconds=0)
        open_now(secured, clock, box.id)
        secured.clear_session()

        view = secured.get_lockbox(box.id)
        assert view.content == StillEncrypted(raw=box.content, reason=EncryptedReason.NO_SESSION)

    def test_decryption_failure_degrades(self, secured, clock):
        # Content encrypted under a different key, e.g. imported from another vault
        foreign = encrypt("theirs", hash_password("someone else"))
        box = secured.store.create("foreign", foreign, unlock_delay_seconds=0)
        open_now(secured, clock, box.id)

        view = secured.get_lockbox(box.id)
        assert view.content == StillEncrypted(raw=foreign, reason=EncryptedReason.DECRYPTION_FAILED)

    def test_malformed_envelope_degrades(self, secured, clock):
        box = secured.store.create("plain", "not an envelope", unlock_delay_seconds=0)
        open_now(secured, clock, box.id)
        assert secured.get_lockbox(box.id).content.reason is EncryptedReason.DECRYPTION_FAILED

    def test_write_without_session_rejected(self, secured):
        secured.clear_session()
        with pytest.raises(SessionLocked):
            secured.create_lockbox("bank", "1234")
        assert secured.list_lockboxes() == []

    def test_update_content_is_encrypted(self, secured, clock):
        box = secured.create_lockbox("bank", "old", unlock_delay_seconds=0)
        updated = secured.update_lockbox(box.id, LockboxUpdate(content="new"))
        assert decrypt(updated.content, hash_password(PASSWORD)) == "new"

        open_now(secured, clock, box.id)
        assert secured.get_lockbox(box.id).content == Decrypted(content="new")

    def test_update_without_content_needs_no_session(self, secured):
        box = secured.create_lockbox("bank", "x")
        secured.clear_session()
        updated = secured.update_lockbox(box.id, LockboxUpdate(category="finance"))
        assert updated.category == "finance"
        assert updated.content == box.content

    def test_list_never_decrypts(self, secured, clock):
        box = secured.create_lockbox("bank", "1234", unlock_delay_seconds=0)
        open_now(secured, clock, box.id)
        assert secured.list_lockboxes()[0].content == box.content


class TestPlaintextMode:

    def test_content_stored_as_is(self, vault):
        box = vault.create_lockbox("bank", "1234")
        assert box.content == "1234"

    def test_plaintext_write_warns(self, vault, caplog):
        with caplog.at_level("WARNING", logger="lockbox_vault.service"):
            vault.create_lockbox("bank", "1234")
        assert "plaintext" in caplog.text
        assert "1234" not in caplog.text

    def test_unlocked_read(self, vault, clock):
        box = vault.create_lockbox("bank", "1234", unlock_delay_seconds=0)
        open_now(vault, clock, box.id)
        assert vault.get_lockbox(box.id).content == Decrypted(content="1234")

    def test_locked_read(self, vault):
        box = vault.create_lockbox("bank", "1234")
        assert vault.get_lockbox(box.id).content.reason is EncryptedReason.LOCKED


class TestLockboxOperations:

    def test_default_delays_from_config(self, store, clock):
        config = LockboxConfig(default_unlock_delay=7, default_relock_delay=8)
        vault = LockboxVault(store, clock=clock, config=config)
        box = vault.create_lockbox("bank", "x")
        assert (box.unlock_delay_seconds, box.relock_delay_seconds) == (7, 8)

    def test_duplicate_name(self, vault):
        vault.create_lockbox("bank", "x")
        with pytest.raises(DuplicateName):
            vault.create_lockbox("bank", "y")

    def test_get_missing(self, vault):
        assert vault.get_lockbox(42) is None

    def test_update_missing(self, vault):
        with pytest.raises(RecordNotFound):
            vault.update_lockbox(42, LockboxUpdate(name="x"))

    def test_delete(self, vault):
        box = vault.create_lockbox("bank", "x")
        assert vault.delete_lockbox(box.id) is True
        assert vault.delete_lockbox(box.id) is False
        assert vault.get_lockbox(box.id) is None

    def test_list_by_category(self, vault):
        vault.create_lockbox("a", "x", category="work")
        vault.create_lockbox("b", "x")
        assert [b.name for b in vault.list_lockboxes(category="work")] == ["a"]
        assert len(vault.list_lockboxes()) == 2

    def test_relock_cancels(self, vault, clock):
        box = vault.create_lockbox("bank", "x", unlock_delay_seconds=5)
        vault.request_unlock(box.id)
        vault.relock(box.id)
        clock.advance(5000)
        vault.tick()
        assert vault.get_lockbox(box.id).lockbox.phase is LockboxPhase.LOCKED

    def test_request_unlock_on_open_box_keeps_timer(self, vault, clock):
        box = vault.create_lockbox("bank", "x", unlock_delay_seconds=0)
        open_now(vault, clock, box.id)
        opened = vault.store.get(box.id)
        clock.advance(1000)
        assert vault.request_unlock(box.id) == opened


class TestTransfer:

    def test_export(self, secured, clock):
        box = secured.create_lockbox("bank", "1234", category="finance")
        data = json.loads(secured.export_lockboxes())
        assert data["version"] == "2.0.0"
        assert data["exported_at"] == clock.now
        assert data["lockboxes"][0]["content"] == box.content

    def test_export_explicit_time(self, vault):
        assert json.loads(vault.export_lockboxes(now=123))["exported_at"] == 123

    def test_import_into_new_vault_keeps_ciphertext(self, secured, tmp_path, clock):
        secured.create_lockbox("bank", "1234", unlock_delay_seconds=0)
        data = secured.export_lockboxes()

        with LockboxStore(db_path=tmp_path / "other.db", clock=clock) as other_store:
            other = LockboxVault(other_store, clock=clock)
            other.set_master_password(PASSWORD)
            assert other.import_lockboxes(data) == ["bank"]

            box = other.list_lockboxes()[0]
            open_now(other, clock, box.id)
            assert other.get_lockbox(box.id).content == Decrypted(content="1234")

    def test_import_skips_existing(self, vault):
        vault.create_lockbox("bank", "mine")
        data = json.dumps({
            "version": "2.0.0",
            "exported_at": 1,
            "lockboxes": [
                {"name": "bank", "content": "theirs", "category": None,
                 "unlock_delay_seconds": 1, "relock_delay_seconds": 1},
                {"name": "new", "content": "n", "category": None,
                 "unlock_delay_seconds": 1, "relock_delay_seconds": 1},
            ],
        })
        assert vault.import_lockboxes(data) == ["new"]
        assert vault.list_lockboxes()[0].content == "mine"

    def test_import_bad_document(self, vault):
        with pytest.raises(ImportFormatError):
            vault.import_lockboxes("{}")


class TestAuditTrail:

    def test_events_recorded(self, vault, clock, audit_events):
        vault.set_master_password(PASSWORD)
        box = vault.create_lockbox("bank", "1234", unlock_delay_seconds=0)
        open_now(vault, clock, box.id)
        vault.get_lockbox(box.id)
        vault.clear_session()
        vault.verify_master_password("wrong")
        vault.delete_lockbox(box.id)

        types = [e["event_type"] for e in audit_events()]
        assert types == [
            "vault.password.set",
            "lockbox.created",
            "lockbox.unlock.requested",
            "lockbox.unlocked",
            "lockbox.accessed",
            "vault.session.cleared",
            "vault.verify.failed",
            "lockbox.deleted",
        ]

    def test_plaintext_mode_is_alert(self, vault, audit_events):
        vault.create_lockbox("bank", "1234")
        events = [e for e in audit_events() if e["event_type"] == "vault.plaintext_mode"]
        assert len(events) == 1
        assert events[0]["severity"] == "alert"

    def test_secrets_never_audited(self, vault, clock, audit_events):
        vault.set_master_password(PASSWORD)
        box = vault.create_lockbox("bank", "top-secret-value", unlock_delay_seconds=0)
        open_now(vault, clock, box.id)
        vault.get_lockbox(box.id)

        raw = json.dumps(audit_events())
        assert "top-secret-value" not in raw
        assert PASSWORD not in raw
        assert hash_password(PASSWORD) not in raw
        assert box.content not in raw


class TestOpen:

    def test_open_from_config(self, tmp_path):
        config = LockboxConfig(db_path=tmp_path / "cfg" / "vault.db")
        with LockboxVault.open(config) as vault:
            vault.create_lockbox("a", "x")
        assert (tmp_path / "cfg" / "vault.db").exists()
