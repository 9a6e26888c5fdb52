"""
Tokenizer and grouper for ausearch output.

ausearch prints one logical event per group of lines, groups being
separated by a ``----`` line. Within a group every record line carries a
``type=`` field followed by ``key=value`` pairs. Both raw and interpreted
(``-i``) output are understood.

Example (interpreted):
    ----
    type=PATH msg=audit(10/19/2026 10:30:00.123:812) : item=0 name=/etc/passwd ...
    type=SYSCALL msg=audit(10/19/2026 10:30:00.123:812) : arch=x86_64 syscall=openat ...
"""

import logging
import re
from typing import Dict, Iterable, Iterator, List, Optional

from .models import AuditRecord, LogicalEvent, RecordKind

logger = logging.getLogger(__name__)

SEPARATOR = "----"

RE_FIELD = re.compile(r'\b([a-zA-Z_][a-zA-Z0-9_]*)=(?:"([^"]*)"|(\S+))')

RECORD_KINDS: Dict[str, RecordKind] = {
    "SYSCALL": RecordKind.SYSCALL,
    "PATH": RecordKind.PATH,
    "USER_LOGIN": RecordKind.LOGIN,
}


def parse_fields(line: str) -> Dict[str, str]:
    """
    Extract ``key=value`` pairs from an audit record line.

    Double quotes around a value are removed. User-space records wrap their
    payload as ``msg='op=login ... res=success'``; the single quotes touching
    the first and last nested value are stripped so the nested fields read
    like any other field. When a key repeats, the first occurrence wins.
    """
    fields: Dict[str, str] = {}
    for key, quoted, bare in RE_FIELD.findall(line):
        if key in fields:
            continue
        if quoted or not bare:
            value = quoted
        else:
            value = bare.strip("'")
        fields[key] = value
    return fields


def parse_record(line: str) -> Optional[AuditRecord]:
    """
    Parse one line into an AuditRecord.

    Returns None for lines that are not audit records (``time->`` headers,
    blank lines, ``<no matches>``).
    """
    line = line.strip()
    if not line.startswith("type="):
        return None

    fields = parse_fields(line)
    record_type = fields.get("type", "")
    kind = RECORD_KINDS.get(record_type, RecordKind.OTHER)
    return AuditRecord(kind=kind, record_type=record_type, attrs=fields, line=line)


def _build_event(lines: List[str]) -> LogicalEvent:
    records: List[AuditRecord] = []
    headers: List[str] = []
    for line in lines:
        record = parse_record(line)
        if record is not None:
            records.append(record)
        elif line.strip():
            headers.append(line.strip())
    return LogicalEvent(records=records, headers=headers, raw="\n".join(lines))


def iter_events(lines: Iterable[str]) -> Iterator[LogicalEvent]:
    """Yield logical events in emission order, flushing a trailing unterminated group."""
    current: List[str] = []
    for line in lines:
        if line.startswith(SEPARATOR):
            if current:
                yield _build_event(current)
                current = []
            continue
        current.append(line)

    if current:
        yield _build_event(current)


def group_events(raw_text: str) -> List[LogicalEvent]:
    """
    Split a block of ausearch output into logical events.

    Args:
        raw_text: Text as printed by ausearch

    Returns:
        Logical events, in the order ausearch emitted them
    """
    events = list(iter_events(raw_text.splitlines()))
    logger.debug(f"Grouped {len(events)} logical events")
    return events
