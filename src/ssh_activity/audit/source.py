"""
Read-side interface to the Linux audit subsystem.

The correlator only needs two queries: raw records tagged with the monitor
key since a point in time, and the login records of one session. Both sit
behind ``AuditSource`` so tests (and ``activityctl replay``) can substitute
canned data for the real ``ausearch`` binary.
"""

import asyncio
import logging
import os
import shutil
import time
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from ..core.exceptions import AuditToolMissingError
from .models import RecordKind, Session
from .parser import parse_record

logger = logging.getLogger(__name__)

# ausearch parses -ts dates and prints interpreted stamps in its own locale
QUERY_LOCALE = "C"

# Session ids the kernel uses for "not part of a login session"
UNSET_SESSIONS = {"", "unset", "4294967295", "-1"}

UNKNOWN_ADDR = "?"


class AuditSource(ABC):
    """Abstract source of audit text and session lookups."""

    failed_queries: int = 0

    def check_available(self) -> Optional[str]:
        """Raise AuditToolMissingError if the source cannot work at all."""
        return None

    @abstractmethod
    async def fetch_since(self, cursor: float) -> str:
        """
        Return raw audit text for events at or after ``cursor``.

        Must not raise on transient failures; return "" instead.
        """

    @abstractmethod
    async def resolve_session(self, ses: str) -> Optional[Session]:
        """Return the remote SSH session behind ``ses``, or None if unresolved."""


def select_remote_login(
    ses: str, login_text: str, remote_shell_exe: str = "sshd"
) -> Optional[Session]:
    """
    Pick the login record that attributes a session to a remote SSH peer.

    Local console logins (login, gdm, su, ...) and records whose address is
    unknown (``addr=?``) are ignored. Session ids restart after a reboot,
    so when several logins match, the most recent one wins.

    Args:
        ses: Session id being resolved
        login_text: Output of the session-keyed login query
        remote_shell_exe: Substring identifying the remote-shell daemon

    Returns:
        Session or None when nothing attributable is found
    """
    selected = None
    for line in login_text.splitlines():
        record = parse_record(line)
        if record is None or record.kind != RecordKind.LOGIN:
            continue

        addr = record.get("addr")
        exe = record.get("exe", "")
        if not addr or addr == UNKNOWN_ADDR or remote_shell_exe not in exe:
            continue

        selected = Session(
            ses=ses,
            addr=addr,
            acct=record.get("acct") or record.get("id"),
            exe=exe,
        )
    return selected


def format_cursor(cursor: float) -> List[str]:
    """
    Render a cursor as ausearch ``-ts`` arguments.

    ausearch reads the date in its locale's ``%x`` format; queries run under
    the C locale, where that is ``MM/DD/YY``.
    """
    local = time.localtime(cursor)
    return [time.strftime("%m/%d/%y", local), time.strftime("%H:%M:%S", local)]


class AusearchSource(AuditSource):
    """
    AuditSource backed by the ``ausearch`` command line tool.

    Every query runs as a child process bounded by ``query_timeout``; a hung
    ausearch is killed and the cycle treated as empty.
    """

    def __init__(
        self,
        ausearch_path: str = "ausearch",
        key: str = "ssh_fs",
        query_timeout: float = 30.0,
        remote_shell_exe: str = "sshd",
    ):
        """
        Initialize the ausearch source.

        Args:
            ausearch_path: Binary name (looked up on PATH) or absolute path
            key: Audit rule key tagging the monitored syscalls
            query_timeout: Seconds before a query is abandoned
            remote_shell_exe: Substring identifying the remote-shell daemon
        """
        self.ausearch_path = ausearch_path
        self.key = key
        self.query_timeout = query_timeout
        self.remote_shell_exe = remote_shell_exe
        self.failed_queries = 0

    def check_available(self) -> str:
        """
        Verify the ausearch binary exists.

        Returns:
            Resolved path of the binary

        Raises:
            AuditToolMissingError: If the binary cannot be found
        """
        resolved = shutil.which(self.ausearch_path)
        if resolved is None:
            raise AuditToolMissingError(
                f"Audit query tool '{self.ausearch_path}' not found; "
                f"install the audit userspace tools (auditd / audit package)"
            )
        return resolved

    async def _run(self, args: List[str]) -> str:
        """Run ausearch and return stdout, or "" on any failure."""
        cmd = [self.ausearch_path, *args]
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env={**os.environ, "LC_ALL": QUERY_LOCALE},
            )
        except OSError as e:
            self.failed_queries += 1
            logger.warning(f"Could not start {self.ausearch_path}: {e}")
            return ""

        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(), timeout=self.query_timeout
            )
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            self.failed_queries += 1
            logger.warning(
                f"ausearch timed out after {self.query_timeout}s: {' '.join(cmd)}"
            )
            return ""

        if proc.returncode != 0:
            # ausearch exits 1 with "<no matches>" when nothing is found
            message = stderr.decode("utf-8", errors="replace").strip()
            if "no matches" in message:
                logger.debug(f"No matches for: {' '.join(cmd)}")
            else:
                self.failed_queries += 1
                logger.warning(f"ausearch exited {proc.returncode}: {message}")
            return ""

        return stdout.decode("utf-8", errors="replace")

    async def fetch_since(self, cursor: float) -> str:
        args = ["-k", self.key, "-ts", *format_cursor(cursor), "-i"]
        return await self._run(args)

    async def resolve_session(self, ses: str) -> Optional[Session]:
        out = await self._run(["-m", "USER_LOGIN", "-se", ses, "-i"])
        return select_remote_login(ses, out, self.remote_shell_exe)


class StaticAuditSource(AuditSource):
    """
    AuditSource over canned text and a fixed session map.

    Used to replay saved ausearch output offline.
    """

    def __init__(self, text: str = "", sessions: Optional[Dict[str, Session]] = None):
        self.text = text
        self.sessions = sessions or {}
        self.fetch_calls: List[float] = []

    async def fetch_since(self, cursor: float) -> str:
        self.fetch_calls.append(cursor)
        return self.text

    async def resolve_session(self, ses: str) -> Optional[Session]:
        return self.sessions.get(ses)
