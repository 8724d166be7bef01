"""
Lockbox Vault Exception Classes
"""


class LockboxVaultError(Exception):
    """Base exception for lockbox vault operations"""
    pass


# ── Encryption envelope ──────────────────────────────────────────────


class CryptoError(LockboxVaultError):
    """Base exception for envelope encryption/decryption"""
    pass


class EncryptionFailed(CryptoError):
    """Raised when content cannot be encrypted"""
    pass


class DecryptionFailed(CryptoError):
    """Raised on wrong password, tampered or non-text ciphertext.

    The message never says which of those it was.
    """

    def __init__(self, message: str = "Decryption failed"):
        super().__init__(message)


class InvalidEnvelopeFormat(CryptoError):
    """Raised when an envelope is not base64 or is too short"""
    pass


# ── Store ────────────────────────────────────────────────────────────


class StoreError(LockboxVaultError):
    """Base exception for durable store operations"""
    pass


class RecordNotFound(StoreError):
    """Raised when a lockbox id does not exist"""

    def __init__(self, lockbox_id: int):
        self.lockbox_id = lockbox_id
        super().__init__(f"Lockbox {lockbox_id} not found")


class DuplicateName(StoreError):
    """Raised when a lockbox name is already in use"""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"A lockbox named '{name}' already exists")


class StoreUnavailable(StoreError):
    """Raised when the underlying SQLite database fails"""
    pass


# ── Everything else ──────────────────────────────────────────────────


class ImportFormatError(LockboxVaultError):
    """Raised when an import document does not match the export schema"""
    pass


class InvalidLockboxField(LockboxVaultError, ValueError):
    """Raised when a lockbox field value is rejected (empty name, negative delay)"""
    pass


class MasterPasswordAlreadySet(LockboxVaultError):
    """Raised when setting a master password while one is configured"""
    pass


class SessionLocked(LockboxVaultError):
    """Raised when content must be encrypted but no master password was verified"""
    pass


class ConfigError(LockboxVaultError):
    """Raised when configuration values are invalid"""
    pass
