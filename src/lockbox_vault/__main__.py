# Lockbox Vault - Command Line Entry Point
#
# Thin argparse front end over LockboxVault. Every command opens the vault
# from the environment configuration (see config.py), runs once and exits;
# `watch` keeps the reconcile ticker running until Ctrl+C.

import argparse
import getpass
import logging
import sys
import time
from pathlib import Path

from . import __version__
from .config import get_config
from .core import EventSeverity, EventType, get_audit_logger
from .exceptions import LockboxVaultError
from .lockbox import LockboxPhase, ReconcileTicker
from .lockbox.timelock import format_delay, format_time_remaining, now_ms, time_remaining
from .service import LockboxVault


def _unlock_session(vault: LockboxVault) -> None:
    """Prompt for the master password when one is configured."""
    if not vault.is_master_password_set():
        return
    password = getpass.getpass("Master password: ")
    if not vault.verify_master_password(password):
        raise LockboxVaultError("Incorrect master password")


def _status(lockbox, now: int) -> str:
    phase = lockbox.phase
    if phase is LockboxPhase.PENDING_UNLOCK:
        remaining = time_remaining(lockbox.unlock_timestamp, now)
        return f"unlocks in {format_time_remaining(remaining)}"
    if phase is LockboxPhase.PENDING_RELOCK:
        remaining = time_remaining(lockbox.relock_timestamp, now)
        return f"open, relocks in {format_time_remaining(remaining)}"
    return phase.value


# ── Commands ─────────────────────────────────────────────────────────


def cmd_init(vault: LockboxVault, args) -> int:
    if vault.is_master_password_set():
        print("A master password is already configured.")
        return 1
    password = getpass.getpass("New master password: ")
    confirm = getpass.getpass("Confirm master password: ")
    if password != confirm:
        print("Passwords do not match.")
        return 1
    vault.set_master_password(password)
    print("Master password set. Lockbox content will be encrypted.")
    return 0


def cmd_list(vault: LockboxVault, args) -> int:
    now = now_ms()
    lockboxes = vault.list_lockboxes(category=args.category)
    if not lockboxes:
        print("No lockboxes.")
        return 0
    for lb in lockboxes:
        category = f" [{lb.category}]" if lb.category else ""
        print(f"{lb.id:>4}  {lb.name}{category}  ({_status(lb, now)})")
    return 0


def cmd_show(vault: LockboxVault, args) -> int:
    _unlock_session(vault)
    view = vault.get_lockbox(args.id)
    if view is None:
        print(f"Lockbox {args.id} not found.")
        return 1

    lb = view.lockbox
    print(f"Name:     {lb.name}")
    print(f"Category: {lb.category or '-'}")
    print(f"Status:   {_status(lb, now_ms())}")
    print(f"Delays:   unlock {format_delay(lb.unlock_delay_seconds)}, "
          f"relock {format_delay(lb.relock_delay_seconds)}")
    if view.is_decrypted:
        print()
        print(view.content.content)
    else:
        print(f"Content:  unavailable ({view.content.reason.value})")
    return 0


def cmd_create(vault: LockboxVault, args) -> int:
    _unlock_session(vault)
    content = getpass.getpass("Secret content: ")
    lb = vault.create_lockbox(
        name=args.name,
        content=content,
        category=args.category,
        unlock_delay_seconds=args.unlock_delay,
        relock_delay_seconds=args.relock_delay,
    )
    print(f"Created lockbox {lb.id} ({lb.name}).")
    return 0


def cmd_unlock(vault: LockboxVault, args) -> int:
    lb = vault.request_unlock(args.id)
    print(f"{lb.name}: {_status(lb, now_ms())}")
    return 0


def cmd_relock(vault: LockboxVault, args) -> int:
    lb = vault.relock(args.id)
    print(f"{lb.name}: locked")
    return 0


def cmd_delete(vault: LockboxVault, args) -> int:
    if vault.delete_lockbox(args.id):
        print(f"Deleted lockbox {args.id}.")
    else:
        print(f"Lockbox {args.id} did not exist.")
    return 0


def cmd_tick(vault: LockboxVault, args) -> int:
    lockboxes = vault.tick()
    print(f"Reconciled {len(lockboxes)} lockbox(es).")
    return 0


def cmd_watch(vault: LockboxVault, args) -> int:
    interval = args.interval or vault.config.tick_interval
    ticker = ReconcileTicker(vault.engine, interval=interval)
    print(f"Reconciling every {interval:g}s. Press Ctrl+C to stop.")
    ticker.start()
    try:
        while ticker.is_running:
            time.sleep(1)
    except KeyboardInterrupt:
        print("\nStopping...")
    finally:
        ticker.stop()
    return 0


def cmd_export(vault: LockboxVault, args) -> int:
    data = vault.export_lockboxes()
    Path(args.file).write_text(data, encoding="utf-8")
    print(f"Exported to {args.file}.")
    return 0


def cmd_import(vault: LockboxVault, args) -> int:
    data = Path(args.file).read_text(encoding="utf-8")
    imported = vault.import_lockboxes(data)
    print(f"Imported {len(imported)} lockbox(es).")
    for name in imported:
        print(f"  {name}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lockbox-vault",
        description="Lockbox Vault - time-locked personal secret vault",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"Lockbox Vault v{__version__}",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init", help="Set the master password").set_defaults(func=cmd_init)

    p = sub.add_parser("list", help="List lockboxes")
    p.add_argument("--category", help="Only lockboxes in this category")
    p.set_defaults(func=cmd_list)

    p = sub.add_parser("show", help="Show a lockbox (content only if unlocked)")
    p.add_argument("id", type=int)
    p.set_defaults(func=cmd_show)

    p = sub.add_parser("create", help="Create a lockbox (content is prompted)")
    p.add_argument("name")
    p.add_argument("--category")
    p.add_argument("--unlock-delay", type=int, help="Seconds before an unlock request opens the box")
    p.add_argument("--relock-delay", type=int, help="Seconds the box stays open")
    p.set_defaults(func=cmd_create)

    for name, func, help_text in (
        ("unlock", cmd_unlock, "Request an unlock (starts the countdown)"),
        ("relock", cmd_relock, "Lock a lockbox immediately"),
        ("delete", cmd_delete, "Delete a lockbox"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("id", type=int)
        p.set_defaults(func=func)

    sub.add_parser("tick", help="Reconcile all lockboxes once").set_defaults(func=cmd_tick)

    p = sub.add_parser("watch", help="Reconcile continuously until interrupted")
    p.add_argument("--interval", type=float, help="Seconds between ticks")
    p.set_defaults(func=cmd_watch)

    p = sub.add_parser("export", help="Export lockboxes to a JSON file")
    p.add_argument("file")
    p.set_defaults(func=cmd_export)

    p = sub.add_parser("import", help="Import lockboxes from a JSON file")
    p.add_argument("file")
    p.set_defaults(func=cmd_import)

    return parser


def main(argv=None) -> int:
    """Main entry point for Lockbox Vault."""
    args = build_parser().parse_args(argv)

    config = get_config()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    get_audit_logger().log_event(
        event_type=EventType.SYSTEM_START,
        severity=EventSeverity.INFO,
        message="Lockbox Vault starting",
        details={"version": __version__, "command": args.command},
    )

    try:
        with LockboxVault.open(config) as vault:
            return args.func(vault, args)
    except KeyboardInterrupt:
        print("\nCancelled.")
        return 130
    except LockboxVaultError as e:
        print(f"Error: {e}", file=sys.stderr)
        get_audit_logger().log_event(
            event_type=EventType.SYSTEM_ERROR,
            severity=EventSeverity.ALERT,
            message=f"Command '{args.command}' failed: {e}",
        )
        return 1
    finally:
        get_audit_logger().log_event(
            event_type=EventType.SYSTEM_STOP,
            severity=EventSeverity.INFO,
            message="Lockbox Vault stopped",
        )


if __name__ == "__main__":
    sys.exit(main())
