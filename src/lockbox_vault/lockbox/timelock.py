"""Time-lock state machine for lockboxes.

A lockbox cannot be read on request. Asking to unlock arms a timer; a
reconcile tick past that deadline opens the box and arms a relock timer;
a later tick past the relock deadline closes it again. A manual relock
closes it immediately from any phase.

    LOCKED ──request──▶ PENDING_UNLOCK ──tick≥unlock──▶ PENDING_RELOCK
      ▲                   │  ▲ (re-request re-arms)        │
      │                   │  └─┘                           │
      └──────── relock (any phase) / tick≥relock ◀─────────┘

The transition functions are pure: they take the record and the current
time in epoch milliseconds and return a new record. Only TimeLockEngine
reads the clock, and the clock is injectable.
"""

import logging
import time
from dataclasses import replace
from typing import Callable, Iterable, List, Optional

from ..core.audit_log import AuditLogger, EventType, get_audit_logger
from .models import Lockbox, LockboxPhase, TimeRemaining

logger = logging.getLogger(__name__)

MS_PER_SECOND = 1000
_MS_PER_MINUTE = 60 * MS_PER_SECOND
_MS_PER_HOUR = 60 * _MS_PER_MINUTE
_MS_PER_DAY = 24 * _MS_PER_HOUR


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * MS_PER_SECOND)


# ── Pure transitions ─────────────────────────────────────────────────


def phase_of(record: Lockbox) -> LockboxPhase:
    return record.phase


def request_unlock(record: Lockbox, now: int) -> Lockbox:
    """Arm (or re-arm) the unlock timer from `now`.

    Only LOCKED and PENDING_UNLOCK accept an unlock request. A box that
    is already open is returned unchanged.
    """
    if not record.is_locked:
        return record
    return replace(
        record,
        unlock_timestamp=now + record.unlock_delay_seconds * MS_PER_SECOND,
        relock_timestamp=None,
        updated_at=now,
    )


def relock(record: Lockbox, now: int) -> Lockbox:
    """Lock immediately, cancelling any pending unlock or open period."""
    return replace(
        record,
        is_locked=True,
        unlock_timestamp=None,
        relock_timestamp=None,
        updated_at=now,
    )


def advance(record: Lockbox, now: int) -> Lockbox:
    """Apply the tick transitions to a single record.

    The unlock step runs before the relock step, so a box whose relock
    delay is zero opens and closes within the same tick. This keeps a
    second tick at the same instant a no-op.
    """
    if (
        record.is_locked
        and record.unlock_timestamp is not None
        and record.unlock_timestamp <= now
    ):
        record = replace(
            record,
            is_locked=False,
            unlock_timestamp=None,
            relock_timestamp=now + record.relock_delay_seconds * MS_PER_SECOND,
            updated_at=now,
        )

    if (
        not record.is_locked
        and record.relock_timestamp is not None
        and record.relock_timestamp <= now
    ):
        record = replace(
            record,
            is_locked=True,
            relock_timestamp=None,
            updated_at=now,
        )

    return record


def reconcile(now: int, records: Iterable[Lockbox]) -> List[Lockbox]:
    """Advance every record to `now`. Idempotent for a fixed `now`."""
    return [advance(record, now) for record in records]


# ── Countdown helpers ────────────────────────────────────────────────


def time_remaining(target: Optional[int], now: int) -> Optional[TimeRemaining]:
    """Split the time left until `target` into days/hours/minutes/seconds.

    Returns None when there is no target; all zeros once it has passed.
    """
    if target is None:
        return None

    difference = target - now
    if difference <= 0:
        return TimeRemaining(days=0, hours=0, minutes=0, seconds=0, total=0)

    return TimeRemaining(
        days=difference // _MS_PER_DAY,
        hours=(difference % _MS_PER_DAY) // _MS_PER_HOUR,
        minutes=(difference % _MS_PER_HOUR) // _MS_PER_MINUTE,
        seconds=(difference % _MS_PER_MINUTE) // MS_PER_SECOND,
        total=difference,
    )


def format_time_remaining(remaining: Optional[TimeRemaining]) -> str:
    """Render a countdown as 'HH:MM:SS', prefixed with 'Nd' when days > 0."""
    if remaining is None or remaining.total <= 0:
        return "00:00:00"

    clock = f"{remaining.hours:02d}:{remaining.minutes:02d}:{remaining.seconds:02d}"
    if remaining.days > 0:
        return f"{remaining.days}d {clock}"
    return clock


def format_delay(seconds: int) -> str:
    """Render a configured delay in its largest whole unit ('5 minutes')."""
    for unit, size in (("day", 86400), ("hour", 3600), ("minute", 60)):
        if seconds >= size:
            count = seconds // size
            return f"{count} {unit}{'s' if count > 1 else ''}"
    return f"{seconds} second{'s' if seconds != 1 else ''}"


# ── Engine ───────────────────────────────────────────────────────────


class TimeLockEngine:
    """Applies the time-lock state machine to stored lockboxes.

    The engine owns "now": every durable mutation is delegated to the
    store as an atomic read-modify-write with a pure transition.

    Usage::

        engine = TimeLockEngine(store)
        engine.request_unlock(box.id)
        ...
        engine.tick()          # called once a second by a scheduler
        engine.relock(box.id)  # manual override
    """

    def __init__(
        self,
        store,
        clock: Callable[[], int] = now_ms,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self.store = store
        self.clock = clock
        self._audit_logger = audit_logger

    @property
    def audit_logger(self) -> AuditLogger:
        return self._audit_logger or get_audit_logger()

    def request_unlock(self, lockbox_id: int) -> Lockbox:
        """Start (or restart) the unlock countdown for a lockbox.

        Raises:
            RecordNotFound: If the lockbox does not exist.
        """
        now = self.clock()
        before, after = self.store.apply_transition(
            lockbox_id, lambda record: request_unlock(record, now)
        )

        if after is before:
            logger.info("Unlock request ignored for open lockbox %s", lockbox_id)
            return after

        self.audit_logger.log_lockbox_event(
            EventType.LOCKBOX_UNLOCK_REQUESTED,
            after.id,
            after.name,
            details={"unlock_timestamp": after.unlock_timestamp},
        )
        return after

    def relock(self, lockbox_id: int) -> Lockbox:
        """Lock a lockbox now, whatever its phase.

        Raises:
            RecordNotFound: If the lockbox does not exist.
        """
        now = self.clock()
        before, after = self.store.apply_transition(
            lockbox_id, lambda record: relock(record, now)
        )

        self.audit_logger.log_lockbox_event(
            EventType.LOCKBOX_RELOCKED,
            after.id,
            after.name,
            details={"previous_phase": before.phase.value},
        )
        return after

    def refresh(self, lockbox_id: int) -> Lockbox:
        """Bring a single lockbox up to date without waiting for the next tick.

        Raises:
            RecordNotFound: If the lockbox does not exist.
        """
        now = self.clock()
        before, after = self.store.apply_transition(
            lockbox_id, lambda record: advance(record, now)
        )
        if after != before:
            self._on_transition(before, after)
        return after

    def tick(self, now: Optional[int] = None) -> List[Lockbox]:
        """Reconcile every lockbox against the clock and return all records."""
        if now is None:
            now = self.clock()
        return self.store.reconcile_all(now, on_transition=self._on_transition)

    def _on_transition(self, before: Lockbox, after: Lockbox) -> None:
        # A tick only ever moves PENDING_UNLOCK → PENDING_RELOCK,
        # PENDING_UNLOCK → LOCKED (zero relock delay) or PENDING_RELOCK → LOCKED.
        if before.phase is LockboxPhase.PENDING_UNLOCK:
            self.audit_logger.log_lockbox_event(
                EventType.LOCKBOX_UNLOCKED,
                after.id,
                after.name,
                details={"relock_timestamp": after.relock_timestamp},
            )
        if after.phase is LockboxPhase.LOCKED:
            self.audit_logger.log_lockbox_event(
                EventType.LOCKBOX_AUTO_RELOCKED, after.id, after.name
            )
