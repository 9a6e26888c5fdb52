"""
Shared fixtures: canned ausearch output and a fake audit source.
"""

from typing import Dict, List, Optional

import pytest

from ssh_activity.audit.models import Session
from ssh_activity.audit.source import StaticAuditSource

STAMP = "msg=audit(10/19/2026 10:30:00.123:{serial})"

SSHD_LOGIN = (
    "type=USER_LOGIN msg=audit(10/19/2026 10:20:00.000:700) : pid=990 uid=root "
    "auid=alice ses=5 subj=unconfined msg='op=login id=alice exe=/usr/sbin/sshd "
    "hostname=203.0.113.7 addr=203.0.113.7 terminal=/dev/pts/0 res=success'"
)

CONSOLE_LOGIN = (
    "type=USER_LOGIN msg=audit(10/19/2026 10:21:00.000:701) : pid=800 uid=root "
    "auid=bob ses=7 subj=unconfined msg='op=login id=bob exe=/usr/bin/login "
    "hostname=? addr=? terminal=tty1 res=success'"
)


def build_group(
    syscall: Optional[str] = "openat",
    path: Optional[str] = "/etc/passwd",
    path_field: str = "name",
    ses: str = "5",
    serial: int = 812,
    extra_paths: Optional[List[str]] = None,
) -> str:
    """Render one ausearch -i event group (without separator)."""
    stamp = STAMP.format(serial=serial)
    lines = [f"type=PROCTITLE {stamp} : proctitle=cat"]
    item = 0
    for parent in extra_paths or []:
        lines.append(f"type=PATH {stamp} : item={item} name={parent} nametype=PARENT")
        item += 1
    if path is not None:
        lines.append(
            f"type=PATH {stamp} : item={item} {path_field}={path} inode=1234 "
            f"mode=file,644 ouid=root ogid=root nametype=NORMAL"
        )
    lines.append(f"type=CWD {stamp} : cwd=/home/alice")
    if syscall is not None:
        lines.append(
            f"type=SYSCALL {stamp} : arch=x86_64 syscall={syscall} success=yes exit=3 "
            f"a0=AT_FDCWD items=1 ppid=1000 pid=1001 auid=alice uid=alice gid=alice "
            f"tty=pts0 ses={ses} comm=cat exe=/usr/bin/cat key=ssh_fs"
        )
    return "\n".join(lines)


def build_blob(*groups: str, trailing_separator: bool = False) -> str:
    """Join groups the way ausearch prints them."""
    text = "".join(f"----\n{group}\n" for group in groups)
    if trailing_separator:
        text += "----\n"
    return text


class FakeAuditSource(StaticAuditSource):
    """StaticAuditSource that records session lookups and can vary its output."""

    def __init__(self, texts: Optional[List[str]] = None, sessions: Optional[Dict[str, Session]] = None):
        super().__init__("", sessions)
        self.texts = list(texts or [])
        self.resolve_calls: List[str] = []

    async def fetch_since(self, cursor: float) -> str:
        self.fetch_calls.append(cursor)
        if self.texts:
            return self.texts.pop(0)
        return ""

    async def resolve_session(self, ses: str) -> Optional[Session]:
        self.resolve_calls.append(ses)
        return self.sessions.get(ses)


@pytest.fixture
def alice_session() -> Session:
    return Session(ses="5", addr="203.0.113.7", acct="alice", exe="/usr/sbin/sshd")


@pytest.fixture
def fake_source(alice_session):
    def factory(texts=None, sessions=None):
        if sessions is None:
            sessions = {"5": alice_session}
        return FakeAuditSource(texts, sessions)

    return factory


@pytest.fixture
def group():
    return build_group


@pytest.fixture
def blob():
    return build_blob


@pytest.fixture
def sshd_login() -> str:
    return SSHD_LOGIN


@pytest.fixture
def console_login() -> str:
    return CONSOLE_LOGIN
