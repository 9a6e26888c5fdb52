"""
SSH Activity Monitor - audit-event correlation daemon

Turns kernel audit output about file-mutating system calls into a
human-attributable activity trail by joining every file event to the
remote address of the SSH session that caused it.

Main modules:
- audit: record parsing, event summarization, session correlation
- storage: cursor state, activity log writer, optional dedup index
- monitor: the polling daemon
- core: configuration and exceptions
- cli: activityctl operational CLI
"""

__version__ = "0.3.0"
__author__ = "SSH Activity Monitor Team"

__all__ = ["__version__", "__author__"]
