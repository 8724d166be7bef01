"""Background reconcile ticker.

Drives TimeLockEngine.tick() on a fixed interval from a daemon thread.
The engine and store do not depend on this module; any other scheduler
(event loop, cron, UI timer) can call tick() instead.
"""

import logging
import threading
from typing import Callable, List, Optional

from ..core.audit_log import EventSeverity, EventType, get_audit_logger
from .models import Lockbox

logger = logging.getLogger(__name__)


class ReconcileTicker:
    """Calls `engine.tick()` every `interval` seconds until stopped.

    Args:
        engine: A TimeLockEngine (anything with a tick() method).
        interval: Seconds between ticks.
        on_tick: Optional callback receiving the reconciled lockbox list.
    """

    def __init__(
        self,
        engine,
        interval: float = 1.0,
        on_tick: Optional[Callable[[List[Lockbox]], None]] = None,
    ):
        if interval <= 0:
            raise ValueError("interval must be greater than zero")
        self.engine = engine
        self.interval = interval
        self.on_tick = on_tick
        self.tick_count = 0
        self.error_count = 0
        self._running = False
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._running

    # ── Lifecycle ────────────────────────────────────────────────

    def start(self) -> None:
        """Start the background tick thread."""
        if self._running:
            return
        self._running = True
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._tick_loop,
            name="lockbox-reconcile",
            daemon=True,
        )
        self._thread.start()
        logger.info("ReconcileTicker started (interval=%.2fs)", self.interval)

    def stop(self) -> None:
        """Stop the background thread and wait for the current tick."""
        self._running = False
        self._stop_event.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5)
        self._thread = None
        logger.info("ReconcileTicker stopped after %d tick(s)", self.tick_count)

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()

    # ── Loop ─────────────────────────────────────────────────────

    def run_once(self) -> Optional[List[Lockbox]]:
        """Perform one tick. Errors are logged and counted, never raised."""
        try:
            lockboxes = self.engine.tick()
            if self.on_tick is not None:
                self.on_tick(lockboxes)
        except Exception as e:
            self.error_count += 1
            logger.exception("Reconcile tick failed")
            get_audit_logger().log_event(
                event_type=EventType.SYSTEM_ERROR,
                severity=EventSeverity.CRITICAL,
                message=f"Reconcile tick failed: {e}",
            )
            return None

        self.tick_count += 1
        return lockboxes

    def _tick_loop(self) -> None:
        """Main loop (runs in background thread)."""
        while self._running:
            self.run_once()
            self._stop_event.wait(self.interval)
