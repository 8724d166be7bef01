# Lockbox Vault - Facade
#
# Composes the pieces a front end needs:
#   MasterKeySession  - verified master password hash (session key material)
#   LockboxStore      - SQLite records + settings
#   TimeLockEngine    - unlock requests, manual relock, reconcile tick
#   EncryptionService - content envelopes
#
# Lock ordering: the session hash is copied out under the session lock
# before any store call; the two locks are never held together.

import logging
from dataclasses import replace
from typing import Callable, List, Optional

from .config import LockboxConfig, get_config
from .core.audit_log import AuditLogger, EventSeverity, EventType, get_audit_logger
from .exceptions import (
    DecryptionFailed,
    InvalidEnvelopeFormat,
    MasterPasswordAlreadySet,
    RecordNotFound,
    SessionLocked,
)
from .lockbox.models import (
    KEEP,
    Decrypted,
    EncryptedReason,
    Lockbox,
    LockboxUpdate,
    LockboxView,
    StillEncrypted,
)
from .lockbox.store import LockboxStore
from .lockbox.timelock import TimeLockEngine, now_ms
from .lockbox.transfer import export_json, import_document, parse_import
from .vault.credentials import (
    MASTER_PASSWORD_SETTING,
    MasterKeySession,
    hash_password,
    verify_password,
)
from .vault.encryption import EncryptionService

logger = logging.getLogger(__name__)


class LockboxVault:
    """
    Time-locked secret vault.

    Security:
    - Content encrypted with AES-256-GCM envelopes keyed from the session hash
    - Content is only decrypted for lockboxes that are currently unlocked
    - Without a master password content is stored in plaintext (degraded mode,
      logged and audited on every write)
    - Audit logging for all vault access
    """

    def __init__(
        self,
        store: LockboxStore,
        session: Optional[MasterKeySession] = None,
        clock: Callable[[], int] = now_ms,
        config: Optional[LockboxConfig] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self.store = store
        self.session = session or MasterKeySession()
        self.clock = clock
        self.config = config or get_config()
        self._audit_logger = audit_logger
        self.engine = TimeLockEngine(store, clock=clock, audit_logger=audit_logger)

    @classmethod
    def open(cls, config: Optional[LockboxConfig] = None, **kwargs) -> "LockboxVault":
        """Open the vault database named by the configuration."""
        config = config or get_config()
        return cls(LockboxStore(config.db_path), config=config, **kwargs)

    @property
    def audit_logger(self) -> AuditLogger:
        return self._audit_logger or get_audit_logger()

    def close(self) -> None:
        self.store.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # ── Master password ──────────────────────────────────────────────

    def is_master_password_set(self) -> bool:
        return self.store.get_setting(MASTER_PASSWORD_SETTING) is not None

    def set_master_password(self, password: str) -> None:
        """Configure the master password and open the session.

        Raises:
            MasterPasswordAlreadySet: If a master password is already configured.
        """
        password_hash = hash_password(password)
        if not self.store.add_setting(MASTER_PASSWORD_SETTING, password_hash):
            raise MasterPasswordAlreadySet("A master password is already configured")

        self.session.set(password_hash)
        self.audit_logger.log_event(
            event_type=EventType.VAULT_PASSWORD_SET,
            severity=EventSeverity.INFO,
            message="Master password configured",
        )

    def verify_master_password(self, password: str) -> bool:
        """Check the master password; on success the session is opened."""
        stored_hash = self.store.get_setting(MASTER_PASSWORD_SETTING)
        if stored_hash is None:
            return False

        if not verify_password(password, stored_hash):
            self.audit_logger.log_event(
                event_type=EventType.VAULT_VERIFY_FAILED,
                severity=EventSeverity.INVESTIGATE,
                message="Master password verification failed",
            )
            return False

        self.session.set(stored_hash)
        self.audit_logger.log_event(
            event_type=EventType.VAULT_VERIFIED,
            severity=EventSeverity.INFO,
            message="Master password verified",
        )
        return True

    def clear_session(self) -> None:
        """Forget the session key material (logout)."""
        self.session.clear()
        self.audit_logger.log_event(
            event_type=EventType.VAULT_SESSION_CLEARED,
            severity=EventSeverity.INFO,
            message="Session cleared",
        )

    # ── Lockboxes ────────────────────────────────────────────────────

    def create_lockbox(
        self,
        name: str,
        content: str,
        category: Optional[str] = None,
        unlock_delay_seconds: Optional[int] = None,
        relock_delay_seconds: Optional[int] = None,
    ) -> Lockbox:
        """Create a locked lockbox, encrypting content when a master password is set.

        Raises:
            SessionLocked: Master password configured but not verified.
            DuplicateName: Name already used.
        """
        if unlock_delay_seconds is None:
            unlock_delay_seconds = self.config.default_unlock_delay
        if relock_delay_seconds is None:
            relock_delay_seconds = self.config.default_relock_delay

        stored_content = self._protect(content, name)
        lockbox = self.store.create(
            name=name,
            content=stored_content,
            category=category,
            unlock_delay_seconds=unlock_delay_seconds,
            relock_delay_seconds=relock_delay_seconds,
        )

        self.audit_logger.log_lockbox_event(
            EventType.LOCKBOX_CREATED,
            lockbox.id,
            lockbox.name,
            details={
                "category": lockbox.category,
                "unlock_delay_seconds": lockbox.unlock_delay_seconds,
                "relock_delay_seconds": lockbox.relock_delay_seconds,
            },
        )
        return lockbox

    def update_lockbox(self, lockbox_id: int, changes: LockboxUpdate) -> Lockbox:
        """Apply a partial update; new content is encrypted like on create.

        Raises:
            RecordNotFound: If the lockbox does not exist.
        """
        if changes.content is not KEEP:
            label = changes.name if changes.name is not KEEP else str(lockbox_id)
            changes = replace(changes, content=self._protect(changes.content, label))

        lockbox = self.store.update(lockbox_id, changes)
        self.audit_logger.log_lockbox_event(
            EventType.LOCKBOX_UPDATED,
            lockbox.id,
            lockbox.name,
            details={"fields": changes.changed_fields()},
        )
        return lockbox

    def delete_lockbox(self, lockbox_id: int) -> bool:
        """Delete a lockbox; deleting a missing id is not an error."""
        deleted = self.store.delete(lockbox_id)
        if deleted:
            self.audit_logger.log_event(
                event_type=EventType.LOCKBOX_DELETED,
                severity=EventSeverity.INFO,
                message=f"Lockbox deleted: {lockbox_id}",
                details={"lockbox_id": lockbox_id},
            )
        return deleted

    def list_lockboxes(self, category: Optional[str] = None) -> List[Lockbox]:
        """List lockboxes as stored (never decrypted)."""
        return self.store.list(category=category)

    def get_lockbox(self, lockbox_id: int) -> Optional[LockboxView]:
        """Read a lockbox, decrypting its content if it is unlocked.

        A read never fails because decryption failed: the stored content is
        returned as StillEncrypted with the reason instead.
        """
        key_material = self.session.key_material()

        try:
            lockbox = self.engine.refresh(lockbox_id)
        except RecordNotFound:
            return None

        return LockboxView(lockbox=lockbox, content=self._reveal(lockbox, key_material))

    def _reveal(self, lockbox: Lockbox, key_material: Optional[str]):
        if lockbox.is_locked:
            return StillEncrypted(raw=lockbox.content, reason=EncryptedReason.LOCKED)

        if key_material is None:
            if self.is_master_password_set():
                return StillEncrypted(raw=lockbox.content, reason=EncryptedReason.NO_SESSION)
            return Decrypted(content=lockbox.content)

        try:
            plaintext = EncryptionService.decrypt(lockbox.content, key_material)
        except (DecryptionFailed, InvalidEnvelopeFormat) as e:
            logger.warning(
                "Could not decrypt lockbox %s (%s); returning stored content",
                lockbox.id, type(e).__name__,
            )
            return StillEncrypted(raw=lockbox.content, reason=EncryptedReason.DECRYPTION_FAILED)

        self.audit_logger.log_lockbox_event(
            EventType.LOCKBOX_ACCESSED, lockbox.id, lockbox.name
        )
        return Decrypted(content=plaintext)

    def _protect(self, content: str, label: str) -> str:
        """Encrypt content for storage, or pass it through in plaintext mode."""
        key_material = self.session.key_material()
        if key_material is not None:
            return EncryptionService.encrypt(content, key_material)

        if self.is_master_password_set():
            raise SessionLocked("Verify the master password before writing content")

        logger.warning("No master password configured: storing %r in plaintext", label)
        self.audit_logger.log_event(
            event_type=EventType.VAULT_PLAINTEXT_MODE,
            severity=EventSeverity.ALERT,
            message="Lockbox content stored without encryption (no master password)",
            details={"name": label},
        )
        return content

    # ── Time lock ────────────────────────────────────────────────────

    def request_unlock(self, lockbox_id: int) -> Lockbox:
        return self.engine.request_unlock(lockbox_id)

    def relock(self, lockbox_id: int) -> Lockbox:
        return self.engine.relock(lockbox_id)

    def tick(self, now: Optional[int] = None) -> List[Lockbox]:
        return self.engine.tick(now)

    # ── Export / import ──────────────────────────────────────────────

    def export_lockboxes(self, now: Optional[int] = None) -> str:
        """Export every lockbox (content as stored) as a JSON document."""
        if now is None:
            now = self.clock()
        lockboxes = self.store.list()
        data = export_json(lockboxes, now)
        self.audit_logger.log_event(
            event_type=EventType.VAULT_EXPORTED,
            severity=EventSeverity.INFO,
            message=f"Exported {len(lockboxes)} lockbox(es)",
            details={"count": len(lockboxes)},
        )
        return data

    def import_lockboxes(self, data: str) -> List[str]:
        """Import lockboxes from a JSON document, skipping names already present.

        Raises:
            ImportFormatError: If the document does not match the export schema.
        """
        document = parse_import(data)
        imported = import_document(self.store, document)
        self.audit_logger.log_event(
            event_type=EventType.VAULT_IMPORTED,
            severity=EventSeverity.INFO,
            message=f"Imported {len(imported)} of {len(document.lockboxes)} lockbox(es)",
            details={"imported": imported, "skipped": len(document.lockboxes) - len(imported)},
        )
        return imported
