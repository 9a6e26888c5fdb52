#!/usr/bin/env python3
"""
activityctl - SSH activity monitor operational CLI

A lightweight CLI for running and operating the monitor:
- Run the daemon (activityctl run)
- Run a single poll cycle (activityctl once)
- Replay saved ausearch output offline (activityctl replay)
- Health checks (activityctl doctor)
- Version info (activityctl version)
"""

import argparse
import asyncio
import os
import shutil
import sys
from pathlib import Path
from typing import Dict, Optional

import yaml

from .. import __version__
from ..audit.correlator import Correlator
from ..audit.models import Session
from ..audit.source import StaticAuditSource
from ..audit.summarizer import EventSummarizer
from ..core.config import AppConfig, load_config
from ..core.exceptions import ConfigError
from ..monitor import service
from ..storage.state import StateStore


class Colors:
    """ANSI color codes for terminal output."""

    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    RED = "\033[91m"
    RESET = "\033[0m"
    BOLD = "\033[1m"


def colorize(text: str, color: str) -> str:
    """Colorize text if stdout is a TTY."""
    if sys.stdout.isatty():
        return f"{color}{text}{Colors.RESET}"
    return text


def format_check_result(name: str, status: str, message: str, width: int = 40) -> str:
    """Format a check result line."""
    padding = " " * max(1, width - len(name))

    if status == "OK":
        status_str = colorize("[OK]", Colors.GREEN)
    elif status == "WARN":
        status_str = colorize("[WARN]", Colors.YELLOW)
    else:  # ERROR
        status_str = colorize("[ERROR]", Colors.RED)

    return f"{name}:{padding}{status_str} {message}"


def check_audit_tool(ausearch_path: str) -> tuple[str, str]:
    """Check the audit query tool is installed."""
    resolved = shutil.which(ausearch_path)
    if resolved:
        return "OK", f"found at {resolved}"
    return "ERROR", f"'{ausearch_path}' not found (install auditd / audit)"


def check_writable_dir(path: str) -> tuple[str, str]:
    """Check the parent directory of a file can be written."""
    parent = Path(path).parent
    existing = parent
    while not existing.exists() and existing != existing.parent:
        existing = existing.parent
    if not os.access(existing, os.W_OK):
        return "ERROR", f"{existing} is not writable"
    if existing != parent:
        return "WARN", f"{parent} will be created"
    return "OK", f"{parent} is writable"


def check_state(state_path: str, lookback_minutes: int) -> tuple[str, str]:
    """Check the saved cursor."""
    store = StateStore(state_path, lookback_minutes=lookback_minutes)
    if not store.state_path.exists():
        return "WARN", f"no cursor yet, first run looks back {lookback_minutes} minutes"
    cursor = store.read()
    if cursor is None:
        return "WARN", "cursor unreadable, will fall back to the lookback window"
    return "OK", f"cursor at {cursor:.0f}"


def _load(args) -> Optional[AppConfig]:
    try:
        return load_config(getattr(args, "config", None))
    except ConfigError as e:
        print(colorize(f"✗ {e}", Colors.RED), file=sys.stderr)
        return None


def cmd_doctor(args) -> int:
    """
    Run health checks and print a summary.

    Returns:
        Exit code (0 on success, non-zero on critical failure)
    """
    config = _load(args)
    if config is None:
        return 1

    print(colorize("\nSSH Activity Monitor Doctor", Colors.BOLD))
    print(colorize("=" * 60, Colors.BOLD))
    print()

    monitor = config.monitor
    checks = [
        ("Audit query tool", check_audit_tool(config.audit.ausearch_path)),
        ("Activity log directory", check_writable_dir(monitor.log_path)),
        ("State directory", check_writable_dir(monitor.state_path)),
        ("Cursor", check_state(monitor.state_path, monitor.lookback_minutes)),
    ]
    if monitor.delivery_mode == "dedup":
        checks.append(("Dedup index directory", check_writable_dir(monitor.dedup_db_path)))

    all_ok = True
    for name, (status, message) in checks:
        print(format_check_result(name, status, message))
        if status == "ERROR":
            all_ok = False

    print()

    if all_ok:
        print(colorize("✓ All critical checks passed", Colors.GREEN))
        return 0
    else:
        print(colorize("✗ One or more critical checks failed", Colors.RED))
        return 1


def load_sessions(path: str) -> Dict[str, Session]:
    """
    Load a static session map for replay.

    Example YAML format:
        sessions:
          "5":
            addr: 203.0.113.7
            acct: alice
            exe: /usr/sbin/sshd

    Sessions whose address is unknown or whose login process is not sshd
    are left out, as the live resolver would.
    """
    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}

    sessions: Dict[str, Session] = {}
    for ses, info in (data.get("sessions") or {}).items():
        info = info or {}
        addr = info.get("addr")
        exe = info.get("exe", "sshd")
        if not addr or addr == "?" or "sshd" not in exe:
            continue
        sessions[str(ses)] = Session(ses=str(ses), addr=addr, acct=info.get("acct"), exe=exe)
    return sessions


async def replay(text: str, sessions: Dict[str, Session]):
    source = StaticAuditSource(text, sessions)
    correlator = Correlator(source, EventSummarizer())
    return await correlator.correlate(text)


def cmd_replay(args) -> int:
    """
    Correlate saved ausearch output against a static session map and print
    the resulting log lines. Neither the state file nor the log is touched.
    """
    try:
        text = Path(args.input).read_text(encoding="utf-8", errors="replace")
        sessions = load_sessions(args.sessions) if args.sessions else {}
    except (OSError, yaml.YAMLError) as e:
        print(colorize(f"✗ Cannot load replay input: {e}", Colors.RED), file=sys.stderr)
        return 1

    result = asyncio.run(replay(text, sessions))
    for entry in result.entries:
        print(entry.format_line())

    dropped = ", ".join(f"{reason.value}={n}" for reason, n in result.dropped.items()) or "none"
    print(
        f"{result.events_seen} events, {len(result.entries)} entries, dropped: {dropped}",
        file=sys.stderr,
    )
    return 0


def cmd_run(args) -> int:
    return service.main(config_path=args.config)


def cmd_once(args) -> int:
    return service.main(config_path=args.config, once=True)


def cmd_version(args) -> int:
    """Print version information."""
    print(f"activityctl version {__version__}")
    print("SSH Activity Monitor - audit-based SSH file activity trail")
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for activityctl."""
    parser = argparse.ArgumentParser(
        description="SSH activity monitor operational CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  activityctl run                              # Run the monitor daemon
  activityctl once --config /etc/ssh-activity.yaml
  activityctl replay --input dump.txt --sessions sessions.yaml
  activityctl doctor                           # Run health checks
  activityctl version                          # Show version information

Environment variables:
  AUDIT_KEY, AUDIT_AUSEARCH_PATH, AUDIT_QUERY_TIMEOUT
  MONITOR_LOG_PATH, MONITOR_STATE_PATH, MONITOR_POLL_INTERVAL
  MONITOR_DELIVERY_MODE (at_least_once | dedup)
  LOG_LEVEL
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    run_parser = subparsers.add_parser("run", help="Run the monitor daemon")
    run_parser.add_argument("--config", help="YAML configuration file")

    once_parser = subparsers.add_parser("once", help="Run a single poll cycle")
    once_parser.add_argument("--config", help="YAML configuration file")

    replay_parser = subparsers.add_parser(
        "replay",
        help="Correlate saved ausearch output offline"
    )
    replay_parser.add_argument("--input", required=True, help="File with ausearch -i output")
    replay_parser.add_argument("--sessions", help="YAML session map (ses -> addr, acct, exe)")

    doctor_parser = subparsers.add_parser("doctor", help="Run health checks and diagnostics")
    doctor_parser.add_argument("--config", help="YAML configuration file")

    subparsers.add_parser("version", help="Show version information")

    return parser


def main(argv=None):
    """Main entry point for activityctl CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    handlers = {
        "run": cmd_run,
        "once": cmd_once,
        "replay": cmd_replay,
        "doctor": cmd_doctor,
        "version": cmd_version,
    }
    return handlers[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
