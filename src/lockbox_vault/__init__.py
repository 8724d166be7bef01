# Lockbox Vault - Main Package
#
# Personal secret vault with time-locked entries ("lockboxes"):
# reading a secret takes a delay, and an opened secret locks itself again.
# Content is encrypted with AES-256-GCM under the master password.

__version__ = "1.0.0"
__author__ = "Lockbox Vault Team"
__description__ = "Time-locked personal secret vault"

from .config import LockboxConfig, get_config, load_config
from .core import EventSeverity, EventType, get_audit_logger
from .exceptions import LockboxVaultError
from .lockbox import (
    KEEP,
    Decrypted,
    EncryptedReason,
    Lockbox,
    LockboxPhase,
    LockboxUpdate,
    LockboxView,
    StillEncrypted,
)
from .service import LockboxVault

__all__ = [
    "__version__",
    "LockboxVault",
    "LockboxConfig",
    "get_config",
    "load_config",
    "LockboxVaultError",
    "KEEP",
    "Decrypted",
    "EncryptedReason",
    "Lockbox",
    "LockboxPhase",
    "LockboxUpdate",
    "LockboxView",
    "StillEncrypted",
    "EventType",
    "EventSeverity",
    "get_audit_logger",
]
