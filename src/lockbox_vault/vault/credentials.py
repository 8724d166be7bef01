# Vault - Master Password Verification & Session Key Material
#
# The master password is hashed once (SHA-256, lowercase hex) and the hash
# is stored under the `master_password_hash` setting. After a successful
# set/verify the raw password is dropped and the hash itself is kept in a
# MasterKeySession; it is the password handed to EncryptionService for
# every lockbox encrypt/decrypt.

import hashlib
import hmac
import threading
from typing import Optional

MASTER_PASSWORD_SETTING = "master_password_hash"


def hash_password(password: str) -> str:
    """Hash the master password for storage verification (SHA-256 hex)."""
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against its stored hash in constant time."""
    return hmac.compare_digest(
        hash_password(password).encode("ascii"),
        password_hash.encode("utf-8"),
    )


class MasterKeySession:
    """In-memory holder for the verified master password hash.

    Lifecycle: empty at construction, filled by set/verify, emptied by
    clear(). Guarded by its own lock; callers copy the value out with
    key_material() and never hold this lock while touching the store.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._key_material: Optional[str] = None

    def set(self, password_hash: str) -> None:
        with self._lock:
            self._key_material = password_hash

    def clear(self) -> None:
        with self._lock:
            self._key_material = None

    def key_material(self) -> Optional[str]:
        """Return a copy of the session hash, or None if not unlocked."""
        with self._lock:
            return self._key_material

    @property
    def is_active(self) -> bool:
        return self.key_material() is not None
