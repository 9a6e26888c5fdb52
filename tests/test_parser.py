"""
Tests for the ausearch tokenizer and record grouper.
"""

from ssh_activity.audit.models import RecordKind
from ssh_activity.audit.parser import group_events, parse_fields, parse_record


class TestParseFields:
    """Test key=value extraction."""

    def test_plain_and_quoted_values(self):
        fields = parse_fields('type=PATH msg=audit(1792405800.123:812): item=0 name="/srv/my file.txt" inode=12')
        assert fields["type"] == "PATH"
        assert fields["name"] == "/srv/my file.txt"
        assert fields["inode"] == "12"

    def test_nested_user_space_message(self, sshd_login):
        fields = parse_fields(sshd_login)
        assert fields["exe"] == "/usr/sbin/sshd"
        assert fields["addr"] == "203.0.113.7"
        assert fields["id"] == "alice"
        assert fields["res"] == "success"

    def test_first_occurrence_wins(self, sshd_login):
        fields = parse_fields(sshd_login)
        assert fields["msg"].startswith("audit(")

    def test_empty_quoted_value(self):
        assert parse_fields('name="" obj=x') == {"name": "", "obj": "x"}


class TestParseRecord:
    """Test record kind tagging."""

    def test_kinds(self, sshd_login):
        assert parse_record("type=SYSCALL msg=audit(1.0:1): syscall=openat").kind == RecordKind.SYSCALL
        assert parse_record("type=PATH msg=audit(1.0:1): name=/etc/passwd").kind == RecordKind.PATH
        assert parse_record(sshd_login).kind == RecordKind.LOGIN
        cwd = parse_record("type=CWD msg=audit(1.0:1): cwd=/root")
        assert cwd.kind == RecordKind.OTHER
        assert cwd.record_type == "CWD"

    def test_non_record_lines(self):
        assert parse_record("time->Mon Oct 19 10:30:00 2026") is None
        assert parse_record("<no matches>") is None
        assert parse_record("") is None


class TestGroupEvents:
    """Test splitting raw output into logical events."""

    def test_one_event_per_group_in_order(self, group, blob):
        text = blob(
            group(path="/a", serial=1),
            group(path="/b", serial=2),
            group(path="/c", serial=3),
        )
        events = group_events(text)
        assert len(events) == 3
        names = [e.of_kind(RecordKind.PATH)[0].get("name") for e in events]
        assert names == ["/a", "/b", "/c"]

    def test_trailing_unterminated_group_is_flushed(self, group):
        text = f"{group(path='/a', serial=1)}\n----\n{group(path='/b', serial=2)}\n"
        events = group_events(text)
        assert len(events) == 2
        assert events[1].of_kind(RecordKind.PATH)[0].get("name") == "/b"

    def test_trailing_separator_adds_nothing(self, group, blob):
        text = blob(group(serial=1), group(serial=2), trailing_separator=True)
        assert len(group_events(text)) == 2

    def test_empty_and_repeated_separators(self, group):
        assert group_events("") == []
        assert group_events("----\n----\n") == []
        text = f"----\n----\n{group()}\n----\n"
        assert len(group_events(text)) == 1

    def test_headers_and_raw_text_kept(self):
        text = "----\ntime->Mon Oct 19 10:30:00 2026\ntype=SYSCALL msg=audit(1.0:1): syscall=creat\n"
        event = group_events(text)[0]
        assert event.headers == ["time->Mon Oct 19 10:30:00 2026"]
        assert len(event.records) == 1
        assert "syscall=creat" in event.raw
