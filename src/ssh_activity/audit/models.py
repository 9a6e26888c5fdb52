"""
Audit activity data models.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class RecordKind(str, Enum):
    """Kinds of audit records the correlator cares about."""

    SYSCALL = "syscall"
    PATH = "path"
    LOGIN = "login"
    OTHER = "other"


class DropReason(str, Enum):
    """Why a logical event produced no activity entry."""

    INCOMPLETE = "incomplete"  # missing syscall or path record
    UNRESOLVED = "unresolved"  # session has no sshd remote address
    DUPLICATE = "duplicate"  # already written (dedup delivery mode)


class AuditRecord(BaseModel):
    """
    One typed line of audit output.

    Values are stored unquoted; the original line is kept for diagnostics.
    """

    kind: RecordKind
    record_type: str = Field(..., description="Raw audit type, e.g. SYSCALL, PATH, CWD")
    attrs: Dict[str, str] = Field(default_factory=dict, description="Field name -> unquoted value")
    line: str = ""

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.attrs.get(name, default)


class LogicalEvent(BaseModel):
    """
    The reassembled set of audit records describing one syscall invocation.

    ``headers`` holds the non-record lines of the group (``time->...``)
    which are only used to resolve the event timestamp.
    """

    records: List[AuditRecord] = Field(default_factory=list)
    headers: List[str] = Field(default_factory=list)
    raw: str = Field("", description="Raw text of the group, as emitted by ausearch")

    def of_kind(self, kind: RecordKind) -> List[AuditRecord]:
        return [r for r in self.records if r.kind == kind]


class Session(BaseModel):
    """A login session resolved to a remote SSH peer."""

    ses: str = Field(..., description="Audit session id")
    addr: str = Field(..., description="Remote network address")
    acct: Optional[str] = Field(None, description="Login account name")
    exe: Optional[str] = Field(None, description="Process that performed the login")


class EventSummary(BaseModel):
    """File activity extracted from a logical event, before correlation."""

    syscall: str
    action: str
    path: str
    ses: Optional[str] = None
    acct: Optional[str] = None
    auid: Optional[str] = None
    success: Optional[str] = None
    exe: Optional[str] = None
    timestamp: datetime


class NormalizedEntry(BaseModel):
    """
    One line of the activity log.

    Rendered positionally and without escaping, see ``format_line``.
    """

    timestamp: datetime
    account: str
    file_path: str
    action: str
    ip_address: str

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "timestamp": "2026-10-19T10:30:00",
                "account": "alice",
                "file_path": "/etc/passwd",
                "action": "accessed",
                "ip_address": "203.0.113.7",
            }
        }

    def format_line(self) -> str:
        return (
            f"Time: {self.timestamp.strftime('%Y-%m-%d %H:%M:%S')} "
            f"Account: {self.account} "
            f"File: {self.file_path} "
            f"Action: {self.action} "
            f"IP Address: {self.ip_address}"
        )


class CorrelationResult(BaseModel):
    """Output of one correlation pass over a block of audit text."""

    entries: List[NormalizedEntry] = Field(default_factory=list)
    digests: List[str] = Field(
        default_factory=list,
        description="Content digest of the logical event behind each entry",
    )
    events_seen: int = 0
    dropped: Dict[DropReason, int] = Field(default_factory=dict)

    def drop(self, reason: DropReason) -> None:
        self.dropped[reason] = self.dropped.get(reason, 0) + 1


class ProcessingStats(BaseModel):
    """Cumulative counters kept by the monitor across poll cycles."""

    cycles: int = 0
    events_seen: int = 0
    entries_written: int = 0
    dropped_incomplete: int = 0
    dropped_unresolved: int = 0
    dropped_duplicate: int = 0
    failed_queries: int = 0
    last_cycle_at: Optional[datetime] = None

    def add_drops(self, dropped: Dict[DropReason, int]) -> None:
        self.dropped_incomplete += dropped.get(DropReason.INCOMPLETE, 0)
        self.dropped_unresolved += dropped.get(DropReason.UNRESOLVED, 0)
        self.dropped_duplicate += dropped.get(DropReason.DUPLICATE, 0)
