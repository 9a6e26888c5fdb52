"""
Audit event parsing and correlation.

Splits ausearch output into logical events, summarizes the file activity
each one describes, and joins it to the SSH session that caused it.
"""

from .models import (
    AuditRecord,
    CorrelationResult,
    DropReason,
    LogicalEvent,
    NormalizedEntry,
    ProcessingStats,
    RecordKind,
    Session,
)
from .parser import group_events, parse_fields, parse_record
from .summarizer import ACTION_MAP, EventSummarizer, action_for_syscall
from .source import AuditSource, AusearchSource
from .correlator import Correlator

__all__ = [
    "AuditRecord",
    "CorrelationResult",
    "DropReason",
    "LogicalEvent",
    "NormalizedEntry",
    "ProcessingStats",
    "RecordKind",
    "Session",
    "group_events",
    "parse_fields",
    "parse_record",
    "ACTION_MAP",
    "EventSummarizer",
    "action_for_syscall",
    "AuditSource",
    "AusearchSource",
    "Correlator",
]
