"""
Lockbox Data Models
"""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Optional, Union


class LockboxPhase(str, Enum):
    """Position of a lockbox in the time-lock state machine.

    LOCKED          is_locked, no timers
    PENDING_UNLOCK  is_locked, unlock_timestamp armed
    UNLOCKED        not locked, no relock timer (not reachable by normal flow)
    PENDING_RELOCK  not locked, relock_timestamp armed
    """

    LOCKED = "locked"
    PENDING_UNLOCK = "pending_unlock"
    UNLOCKED = "unlocked"
    PENDING_RELOCK = "pending_relock"


@dataclass(frozen=True)
class Lockbox:
    """One stored secret. Timestamps are epoch milliseconds."""

    id: int
    name: str
    content: str
    category: Optional[str]
    is_locked: bool
    unlock_delay_seconds: int
    relock_delay_seconds: int
    unlock_timestamp: Optional[int]
    relock_timestamp: Optional[int]
    created_at: int
    updated_at: int

    @property
    def phase(self) -> LockboxPhase:
        if self.is_locked:
            if self.unlock_timestamp is not None:
                return LockboxPhase.PENDING_UNLOCK
            return LockboxPhase.LOCKED
        if self.relock_timestamp is not None:
            return LockboxPhase.PENDING_RELOCK
        return LockboxPhase.UNLOCKED

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class TimeRemaining:
    """Countdown to a timer deadline, split for display."""

    days: int
    hours: int
    minutes: int
    seconds: int
    total: int  # milliseconds, 0 once the deadline has passed


# ── Partial updates ──────────────────────────────────────────────────


class _Keep(Enum):
    KEEP = "keep"

    def __repr__(self) -> str:
        return "KEEP"


KEEP = _Keep.KEEP
"""Sentinel: leave the stored value untouched."""


@dataclass(frozen=True)
class LockboxUpdate:
    """Per-field update for a lockbox.

    Every field defaults to KEEP. For `category`, None clears the stored
    category and a string sets it; the other fields cannot be cleared.
    """

    name: Union[str, _Keep] = KEEP
    content: Union[str, _Keep] = KEEP
    category: Union[str, None, _Keep] = KEEP
    unlock_delay_seconds: Union[int, _Keep] = KEEP
    relock_delay_seconds: Union[int, _Keep] = KEEP

    def changed_fields(self) -> list:
        return [
            field_name
            for field_name in (
                "name",
                "content",
                "category",
                "unlock_delay_seconds",
                "relock_delay_seconds",
            )
            if getattr(self, field_name) is not KEEP
        ]


# ── Read results ─────────────────────────────────────────────────────


class EncryptedReason(str, Enum):
    """Why a read returned stored content instead of plaintext."""

    LOCKED = "locked"
    NO_SESSION = "no_session"
    DECRYPTION_FAILED = "decryption_failed"


@dataclass(frozen=True)
class Decrypted:
    """Readable content of an unlocked lockbox."""

    content: str


@dataclass(frozen=True)
class StillEncrypted:
    """Stored content returned as-is, with the reason it was not decrypted."""

    raw: str
    reason: EncryptedReason


ContentResult = Union[Decrypted, StillEncrypted]


@dataclass(frozen=True)
class LockboxView:
    """A lockbox record together with the outcome of decrypt-on-read."""

    lockbox: Lockbox
    content: ContentResult

    @property
    def is_decrypted(self) -> bool:
        return isinstance(self.content, Decrypted)
