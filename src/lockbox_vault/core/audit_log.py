# Audit Logging - Vault & Lockbox Events
#
# Append-only audit trail for every security-relevant vault action:
# master password set/verify, lockbox creation, unlock requests, automatic
# and manual relocks, import/export.
# Events are written as structured JSON lines (structlog) to a daily file.
# Never pass passwords, hashes, plaintext or ciphertext in `details`.

import logging
import os
import socket
import sys
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional
from uuid import uuid4

import structlog


class EventType(str, Enum):
    """Types of audited vault events."""

    # Master password / session
    VAULT_PASSWORD_SET = "vault.password.set"
    VAULT_VERIFIED = "vault.verified"
    VAULT_VERIFY_FAILED = "vault.verify.failed"
    VAULT_SESSION_CLEARED = "vault.session.cleared"
    VAULT_PLAINTEXT_MODE = "vault.plaintext_mode"

    # Lockbox lifecycle
    LOCKBOX_CREATED = "lockbox.created"
    LOCKBOX_UPDATED = "lockbox.updated"
    LOCKBOX_DELETED = "lockbox.deleted"
    LOCKBOX_ACCESSED = "lockbox.accessed"

    # Time-lock transitions
    LOCKBOX_UNLOCK_REQUESTED = "lockbox.unlock.requested"
    LOCKBOX_UNLOCKED = "lockbox.unlocked"
    LOCKBOX_RELOCKED = "lockbox.relocked"
    LOCKBOX_AUTO_RELOCKED = "lockbox.relocked.auto"

    # Transfer
    VAULT_EXPORTED = "vault.exported"
    VAULT_IMPORTED = "vault.imported"

    # System Events
    SYSTEM_START = "system.start"
    SYSTEM_STOP = "system.stop"
    SYSTEM_ERROR = "system.error"


class EventSeverity(str, Enum):
    """
    Severity levels for audited events.

    - INFO: Normal activity, logged only
    - INVESTIGATE: Something unusual worth a look (failed verification)
    - ALERT: Security posture degraded (plaintext mode)
    - CRITICAL: Vault could not complete an operation
    """
    INFO = "info"
    INVESTIGATE = "investigate"
    ALERT = "alert"
    CRITICAL = "critical"


class AuditLogger:
    """
    Append-only audit logger for vault events.

    Features:
    - Structured JSON logging (structlog)
    - Automatic timestamp and event ID
    - OS user / host context capture
    """

    def __init__(self, log_dir: Optional[Path] = None):
        """
        Initialize audit logger.

        Args:
            log_dir: Directory for audit logs (default: ./audit_logs)
        """
        self.log_dir = Path(log_dir) if log_dir else Path("./audit_logs")
        self.log_dir.mkdir(parents=True, exist_ok=True)

        structlog.configure(
            processors=[
                structlog.stdlib.add_log_level,
                structlog.stdlib.add_logger_name,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer()
            ],
            wrapper_class=structlog.stdlib.BoundLogger,
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )

        self._file_handler: Optional[logging.FileHandler] = None
        self._setup_file_handler()

        self.logger = structlog.get_logger("lockbox_vault.audit")

    def _setup_file_handler(self):
        """Attach a daily log file to the audit logger."""
        today = datetime.now().strftime("%Y-%m-%d")
        log_file = self.log_dir / f"audit_{today}.log"

        file_handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(logging.Formatter('%(message)s'))  # structlog renders JSON

        audit_logger = logging.getLogger("lockbox_vault.audit")
        audit_logger.addHandler(file_handler)
        audit_logger.setLevel(logging.INFO)
        audit_logger.propagate = False
        self._file_handler = file_handler

    def close(self):
        """Detach and close the file handler."""
        if self._file_handler is not None:
            logging.getLogger("lockbox_vault.audit").removeHandler(self._file_handler)
            self._file_handler.close()
            self._file_handler = None

    def log_event(
        self,
        event_type: EventType,
        severity: EventSeverity,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        user_context: Optional[Dict[str, Any]] = None
    ) -> str:
        """
        Log a vault event (append-only).

        Args:
            event_type: Type of event (from EventType enum)
            severity: Severity level (from EventSeverity enum)
            message: Human-readable event description
            details: Additional event details (ids, names, timestamps)
            user_context: User context (defaults to OS user and host)

        Returns:
            str: Event ID (UUID) for reference
        """
        event_id = str(uuid4())

        event_data = {
            "event_id": event_id,
            "event_type": event_type.value,
            "severity": severity.value,
            "message": message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "details": details or {},
            "user_context": user_context or self._get_default_user_context(),
        }

        self.logger.info("vault_event", **event_data)

        return event_id

    def log_lockbox_event(
        self,
        event_type: EventType,
        lockbox_id: int,
        name: str,
        details: Optional[Dict[str, Any]] = None
    ) -> str:
        """Log a lockbox lifecycle or time-lock event at INFO severity."""
        event_details = dict(details or {})
        event_details["lockbox_id"] = lockbox_id
        event_details["name"] = name

        return self.log_event(
            event_type=event_type,
            severity=EventSeverity.INFO,
            message=f"Lockbox: {event_type.value} - {name}",
            details=event_details
        )

    def _get_default_user_context(self) -> Dict[str, Any]:
        """Get default user context (OS user, hostname, etc.)."""
        return {
            "os_user": os.getenv("USERNAME") or os.getenv("USER"),
            "hostname": socket.gethostname(),
            "platform": sys.platform,
        }


# Global logger instance
_audit_logger: Optional[AuditLogger] = None


def get_audit_logger() -> AuditLogger:
    """Get global audit logger (singleton pattern)."""
    global _audit_logger
    if _audit_logger is None:
        from ..config import get_config
        _audit_logger = AuditLogger(log_dir=get_config().audit_dir)
    return _audit_logger


def set_audit_logger(instance: Optional[AuditLogger]) -> None:
    """Replace the singleton (for testing)."""
    global _audit_logger
    _audit_logger = instance


def log_security_event(
    event_type: EventType,
    severity: EventSeverity,
    message: str,
    **kwargs
) -> str:
    """
    Convenience function for logging vault events.

    Usage:
        log_security_event(
            EventType.VAULT_VERIFY_FAILED,
            EventSeverity.INVESTIGATE,
            "Master password verification failed",
        )
    """
    return get_audit_logger().log_event(event_type, severity, message, **kwargs)
