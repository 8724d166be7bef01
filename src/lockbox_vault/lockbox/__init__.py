# Lockbox Module - Time-Locked Secret Records
#
# Lockbox records, the time-lock state machine, SQLite persistence,
# export/import and the background reconcile ticker.

from .models import (
    KEEP,
    ContentResult,
    Decrypted,
    EncryptedReason,
    Lockbox,
    LockboxPhase,
    LockboxUpdate,
    LockboxView,
    StillEncrypted,
    TimeRemaining,
)
from .store import LockboxStore
from .ticker import ReconcileTicker
from .timelock import (
    TimeLockEngine,
    advance,
    format_delay,
    format_time_remaining,
    now_ms,
    phase_of,
    reconcile,
    relock,
    request_unlock,
    time_remaining,
)
from .transfer import EXPORT_VERSION, ExportDocument, ExportLockbox

__all__ = [
    # Models
    "KEEP",
    "ContentResult",
    "Decrypted",
    "EncryptedReason",
    "Lockbox",
    "LockboxPhase",
    "LockboxUpdate",
    "LockboxView",
    "StillEncrypted",
    "TimeRemaining",
    # State machine
    "TimeLockEngine",
    "advance",
    "reconcile",
    "relock",
    "request_unlock",
    "phase_of",
    "now_ms",
    "time_remaining",
    "format_time_remaining",
    "format_delay",
    # Persistence
    "LockboxStore",
    "ReconcileTicker",
    "EXPORT_VERSION",
    "ExportDocument",
    "ExportLockbox",
]
