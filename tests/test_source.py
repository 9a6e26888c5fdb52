"""
Tests for the ausearch-backed audit source and session selection.
"""

import asyncio
import os
import stat
import time

import pytest

from ssh_activity.audit.source import AusearchSource, format_cursor, select_remote_login
from ssh_activity.core.exceptions import AuditToolMissingError


def write_script(path, body: str) -> str:
    path.write_text("#!/bin/sh\n" + body)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(path)


class TestSelectRemoteLogin:
    """Test attribution of sessions to remote SSH logins."""

    def test_sshd_login_resolves(self, sshd_login):
        session = select_remote_login("5", f"----\n{sshd_login}\n")
        assert session.addr == "203.0.113.7"
        assert session.acct == "alice"
        assert session.exe == "/usr/sbin/sshd"

    def test_console_login_is_unresolved(self, console_login):
        assert select_remote_login("7", console_login) is None

    def test_unknown_address_is_unresolved(self, sshd_login):
        line = sshd_login.replace("addr=203.0.113.7", "addr=?")
        assert select_remote_login("5", line) is None

    def test_no_login_records(self):
        assert select_remote_login("5", "") is None
        assert select_remote_login("5", "type=SYSCALL msg=audit(1.0:1): syscall=openat ses=5") is None

    def test_most_recent_matching_login_wins(self, console_login, sshd_login):
        # ausearch prints oldest first; the earlier login predates a reboot
        text = "\n".join([sshd_login.replace("203.0.113.7", "198.51.100.9"), sshd_login, console_login])
        assert select_remote_login("5", text).addr == "203.0.113.7"

    def test_raw_acct_field_preferred(self):
        line = (
            'type=USER_LOGIN msg=audit(1792405800.000:1): pid=1 uid=0 auid=1000 ses=5 '
            'msg=\'op=login acct="alice" exe="/usr/sbin/sshd" hostname=? addr=192.0.2.4 terminal=ssh res=success\''
        )
        session = select_remote_login("5", line)
        assert session.acct == "alice"
        assert session.addr == "192.0.2.4"


class TestFormatCursor:
    """Test rendering of -ts arguments."""

    def test_c_locale_date_and_time(self):
        cursor = 1792405800.5
        local = time.localtime(cursor)
        assert format_cursor(cursor) == [
            f"{local.tm_mon:02d}/{local.tm_mday:02d}/{local.tm_year % 100:02d}",
            f"{local.tm_hour:02d}:{local.tm_min:02d}:{local.tm_sec:02d}",
        ]


class TestAusearchSource:
    """Test the subprocess-backed source against stand-in scripts."""

    def test_missing_binary_is_fatal(self, tmp_path):
        source = AusearchSource(ausearch_path=str(tmp_path / "no-such-ausearch"))
        with pytest.raises(AuditToolMissingError):
            source.check_available()

    def test_available_binary(self, tmp_path):
        script = write_script(tmp_path / "ausearch", "exit 0\n")
        assert AusearchSource(ausearch_path=script).check_available() == script

    def test_fetch_passes_key_and_cursor(self, tmp_path):
        script = write_script(tmp_path / "ausearch", 'printf "%s\\n" "$*"\n')
        source = AusearchSource(ausearch_path=script, key="ssh_fs")
        out = asyncio.run(source.fetch_since(1792405800.0))
        date, clock = format_cursor(1792405800.0)
        assert out.strip() == f"-k ssh_fs -ts {date} {clock} -i"

    def test_query_runs_under_c_locale(self, tmp_path, monkeypatch):
        monkeypatch.setenv("LANG", "en_GB.UTF-8")
        monkeypatch.delenv("LC_ALL", raising=False)
        script = write_script(tmp_path / "ausearch", 'echo "LC_ALL=$LC_ALL LANG=$LANG"\n')
        source = AusearchSource(ausearch_path=script)
        out = asyncio.run(source.fetch_since(1792405800.0))
        assert out.strip() == "LC_ALL=C LANG=en_GB.UTF-8"

    def test_nonzero_exit_yields_no_events(self, tmp_path):
        script = write_script(tmp_path / "ausearch", 'echo "type=SYSCALL syscall=openat"\necho "boom" >&2\nexit 2\n')
        source = AusearchSource(ausearch_path=script)
        assert asyncio.run(source.fetch_since(0.0)) == ""
        assert source.failed_queries == 1

    def test_no_matches_is_not_a_failure(self, tmp_path):
        script = write_script(tmp_path / "ausearch", 'echo "<no matches>" >&2\nexit 1\n')
        source = AusearchSource(ausearch_path=script)
        assert asyncio.run(source.fetch_since(0.0)) == ""
        assert source.failed_queries == 0

    def test_vanished_binary_yields_no_events(self, tmp_path):
        script = write_script(tmp_path / "ausearch", "exit 0\n")
        source = AusearchSource(ausearch_path=script)
        os.remove(script)
        assert asyncio.run(source.fetch_since(0.0)) == ""
        assert source.failed_queries == 1

    def test_hung_query_is_bounded(self, tmp_path):
        script = write_script(tmp_path / "ausearch", "exec sleep 10\n")
        source = AusearchSource(ausearch_path=script, query_timeout=0.3)
        started = time.monotonic()
        assert asyncio.run(source.fetch_since(0.0)) == ""
        assert time.monotonic() - started < 5
        assert source.failed_queries == 1

    def test_resolve_session_queries_login_records(self, tmp_path, sshd_login):
        dump = tmp_path / "login.txt"
        dump.write_text(f"----\n{sshd_login}\n")
        args_file = tmp_path / "args.txt"
        script = write_script(tmp_path / "ausearch", f'printf "%s\\n" "$*" > {args_file}\ncat {dump}\n')
        source = AusearchSource(ausearch_path=script)
        session = asyncio.run(source.resolve_session("5"))
        assert session.addr == "203.0.113.7"
        assert args_file.read_text().strip() == "-m USER_LOGIN -se 5 -i"
