"""
Correlation of file activity with remote SSH sessions.
"""

import hashlib
import logging
from typing import Callable, Dict, Optional

from .models import (
    CorrelationResult,
    DropReason,
    LogicalEvent,
    NormalizedEntry,
    Session,
)
from .parser import group_events
from .source import UNSET_SESSIONS, AuditSource
from .summarizer import EventSummarizer

logger = logging.getLogger(__name__)


def event_digest(event: LogicalEvent) -> str:
    """Content hash of a logical event's raw text, used as its dedup key."""
    return hashlib.sha256(event.raw.encode("utf-8")).hexdigest()


class Correlator:
    """
    Joins summarized file events to the session that caused them.

    An entry is produced only for events that carry both a syscall and a
    path record and whose session resolves to a remote sshd login.
    Everything else is dropped and counted by reason. Entries keep the
    order of the audit stream.
    """

    def __init__(
        self,
        source: AuditSource,
        summarizer: Optional[EventSummarizer] = None,
        is_duplicate: Optional[Callable[[str], bool]] = None,
    ):
        """
        Initialize the correlator.

        Args:
            source: Audit source used for session lookups
            summarizer: Event summarizer (a default one is created if None)
            is_duplicate: Predicate on event digests; events it accepts are
                dropped as duplicates (dedup delivery mode)
        """
        self.source = source
        self.summarizer = summarizer or EventSummarizer()
        self.is_duplicate = is_duplicate

    async def _resolve(self, ses: Optional[str], cache: Dict[str, Optional[Session]]) -> Optional[Session]:
        if ses is None or ses in UNSET_SESSIONS:
            return None
        if ses not in cache:
            cache[ses] = await self.source.resolve_session(ses)
        return cache[ses]

    async def correlate(self, raw_text: str) -> CorrelationResult:
        """
        Run the full pipeline over one block of audit text.

        Session lookups are cached for the duration of this call only.

        Args:
            raw_text: ausearch output

        Returns:
            CorrelationResult with ordered entries and drop counters
        """
        result = CorrelationResult()
        cache: Dict[str, Optional[Session]] = {}

        for event in group_events(raw_text):
            result.events_seen += 1

            summary = self.summarizer.summarize(event)
            if summary is None:
                result.drop(DropReason.INCOMPLETE)
                logger.debug("Dropped event without syscall/path record")
                continue

            session = await self._resolve(summary.ses, cache)
            if session is None:
                result.drop(DropReason.UNRESOLVED)
                logger.debug(
                    f"Dropped {summary.syscall} on {summary.path}: "
                    f"session {summary.ses} not attributable to a remote login"
                )
                continue

            digest = event_digest(event)
            if self.is_duplicate is not None and self.is_duplicate(digest):
                result.drop(DropReason.DUPLICATE)
                logger.debug(f"Dropped already written event {digest[:12]}")
                continue

            account = session.acct or summary.acct or summary.auid or "unknown"
            result.entries.append(
                NormalizedEntry(
                    timestamp=summary.timestamp,
                    account=account,
                    file_path=summary.path,
                    action=summary.action,
                    ip_address=session.addr,
                )
            )
            result.digests.append(digest)

        return result
