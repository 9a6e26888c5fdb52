"""
Summarize logical audit events into file activity.
"""

import logging
import re
from datetime import datetime
from typing import Callable, Dict, Optional

from .models import EventSummary, LogicalEvent, RecordKind

logger = logging.getLogger(__name__)

# Map syscall -> action label
ACTION_MAP: Dict[str, str] = {
    "open": "accessed",
    "openat": "accessed",
    "creat": "created",
    "unlink": "deleted",
    "unlinkat": "deleted",
    "rename": "renamed",
    "renameat": "renamed",
    "truncate": "modified",
    "ftruncate": "modified",
    "chmod": "perm_changed",
    "fchmod": "perm_changed",
    "chown": "owner_changed",
    "fchown": "owner_changed",
    "utime": "time_changed",
    "utimes": "time_changed",
}

DEFAULT_ACTION = "accessed"

# time->Mon Oct 19 10:30:00 2026 (raw ausearch header)
RE_TIME_HEADER = re.compile(
    r"time->([A-Za-z]{3}\s+[A-Za-z]{3}\s+\d+\s+\d{2}:\d{2}:\d{2}(?:\.\d+)?\s+\d{4})"
)
# msg=audit(10/19/2026 10:30:00.123:812) (interpreted)
RE_MSG_INTERPRETED = re.compile(
    r"msg=audit\((\d{1,2}/\d{1,2}/\d{2,4}\s+\d{2}:\d{2}:\d{2})(?:\.\d+)?:\d+\)"
)
# msg=audit(1792405800.123:812) (raw)
RE_MSG_EPOCH = re.compile(r"msg=audit\((\d+)(?:\.\d+)?:\d+\)")


def action_for_syscall(syscall: Optional[str]) -> str:
    """Action label for a syscall name; unmapped names count as accesses."""
    return ACTION_MAP.get(syscall or "", DEFAULT_ACTION)


def _parse_time_header(value: str) -> datetime:
    value = " ".join(value.split())
    if "." in value.split(" ")[3]:
        return datetime.strptime(value, "%a %b %d %H:%M:%S.%f %Y")
    return datetime.strptime(value, "%a %b %d %H:%M:%S %Y")


def _parse_interpreted(value: str) -> datetime:
    value = " ".join(value.split())
    for fmt in ("%m/%d/%Y %H:%M:%S", "%m/%d/%y %H:%M:%S"):
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    raise ValueError(f"Unrecognized audit date: {value}")


def resolve_timestamp(event: LogicalEvent) -> Optional[datetime]:
    """
    Resolve when an event happened from its header or record stamps.

    Returns None when no stamp can be parsed.
    """
    parsers = (
        (RE_TIME_HEADER, _parse_time_header),
        (RE_MSG_INTERPRETED, _parse_interpreted),
        (RE_MSG_EPOCH, lambda v: datetime.fromtimestamp(int(v))),
    )
    for pattern, parse in parsers:
        match = pattern.search(event.raw)
        if not match:
            continue
        try:
            return parse(match.group(1))
        except (ValueError, OverflowError, OSError) as e:
            logger.debug(f"Unparseable audit timestamp {match.group(1)!r}: {e}")
    return None


class EventSummarizer:
    """
    Extracts syscall, path, session and account from a logical event.

    The control record is the SYSCALL record carrying a ``syscall`` field.
    The path record is the last PATH record with a ``name`` (or ``obj``)
    field: for rename/unlinkat/creat the earlier items are parent
    directories and the last one is the object acted upon.
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        """
        Initialize the summarizer.

        Args:
            clock: Source of the processing time, used when an event
                carries no parseable timestamp
        """
        self.clock = clock

    def summarize(self, event: LogicalEvent) -> Optional[EventSummary]:
        """
        Summarize one logical event.

        Returns:
            EventSummary, or None when the event lacks a syscall or path record
        """
        control = None
        for record in event.of_kind(RecordKind.SYSCALL):
            if "syscall" in record.attrs:
                control = record

        path_record = None
        for record in event.of_kind(RecordKind.PATH):
            if "name" in record.attrs or "obj" in record.attrs:
                path_record = record

        if control is None or path_record is None:
            return None

        syscall = control.attrs["syscall"]
        path = path_record.get("name") or path_record.get("obj") or "unknown"
        timestamp = resolve_timestamp(event) or self.clock()

        return EventSummary(
            syscall=syscall,
            action=action_for_syscall(syscall),
            path=path,
            ses=control.get("ses"),
            acct=control.get("acct"),
            auid=control.get("auid"),
            success=control.get("success"),
            exe=control.get("exe"),
            timestamp=timestamp,
        )
