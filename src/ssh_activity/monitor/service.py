"""
SSH activity monitor service.

Polls the audit subsystem for file syscalls tagged with the monitor key,
attributes them to remote SSH sessions and appends one line per
attributable event to the activity log.
"""

import asyncio
import logging
import signal
import sys
import time
from datetime import datetime
from typing import Callable, Optional

from ..audit.correlator import Correlator
from ..audit.models import ProcessingStats
from ..audit.source import AuditSource, AusearchSource
from ..core.config import AppConfig, load_config
from ..core.exceptions import AuditToolMissingError, ConfigError
from ..storage.dedup import DedupIndex
from ..storage.state import StateStore
from ..storage.writer import LogWriter

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class ActivityMonitorService:
    """
    Service for continuous SSH file activity monitoring.

    Each cycle:
    1. Query audit records since the cursor
    2. Correlate them with remote SSH sessions
    3. Append normalized entries to the activity log
    4. Advance and persist the cursor

    The service is single-threaded; stop() takes effect between cycles and
    the cursor is flushed before run() returns.
    """

    def __init__(
        self,
        source: AuditSource,
        state: StateStore,
        writer: LogWriter,
        correlator: Optional[Correlator] = None,
        dedup: Optional[DedupIndex] = None,
        poll_interval: float = 2.0,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize activity monitor service.

        Args:
            source: Audit source
            state: Cursor store
            writer: Activity log writer
            correlator: Correlator (built over ``source`` if None)
            dedup: Dedup index; enables the dedup delivery mode
            poll_interval: Seconds between cycles
            clock: Current time in epoch seconds
        """
        self.source = source
        self.state = state
        self.writer = writer
        self.dedup = dedup
        self.correlator = correlator or Correlator(
            source, is_duplicate=dedup.contains if dedup else None
        )
        self.poll_interval = poll_interval
        self.clock = clock
        self.stats = ProcessingStats()
        self.cursor: Optional[float] = None
        self.running = False
        self._stop_event: Optional[asyncio.Event] = None

    def start(self) -> None:
        """
        Check the audit tool and load the cursor.

        Raises:
            AuditToolMissingError: If the audit query tool is not installed
        """
        resolved = self.source.check_available()
        if resolved:
            logger.info(f"Using audit query tool at {resolved}")
        self.cursor = self.state.load()
        self.writer.open()

    async def run_once(self) -> int:
        """
        Run one poll cycle.

        Returns:
            Number of entries written
        """
        if self.cursor is None:
            self.start()

        # Taken before querying so records logged during the query fall
        # into the next window
        now = self.clock()

        try:
            raw = await self.source.fetch_since(self.cursor)
            result = await self.correlator.correlate(raw)
            written = self.writer.write_all(result.entries)

            if self.dedup is not None:
                self.dedup.add_many(result.digests)
                self.dedup.prune()
        except Exception as e:
            logger.error(f"Error in poll cycle: {e}", exc_info=True)
            return 0

        self.cursor = max(self.cursor, now)
        self._save_cursor()

        self.stats.cycles += 1
        self.stats.events_seen += result.events_seen
        self.stats.entries_written += written
        self.stats.add_drops(result.dropped)
        self.stats.failed_queries = self.source.failed_queries
        self.stats.last_cycle_at = datetime.fromtimestamp(now)

        if result.events_seen:
            dropped = {reason.value: n for reason, n in result.dropped.items()}
            logger.info(
                f"Cycle {self.stats.cycles}: {result.events_seen} events, "
                f"{written} written, dropped {dropped}"
            )
            logger.info(f"Activity stats: {self.stats.model_dump(exclude={'last_cycle_at'})}")
        else:
            logger.debug(f"Cycle {self.stats.cycles}: no events")

        return written

    def _save_cursor(self) -> None:
        """Persist the cursor; a failed save is retried on the next cycle."""
        try:
            self.state.save(self.cursor)
        except OSError as e:
            logger.error(f"Could not save cursor to {self.state.state_path}: {e}")

    async def run(self, handle_signals: bool = False) -> None:
        """
        Run the monitor until stop() is called.

        Args:
            handle_signals: Install SIGINT/SIGTERM handlers calling stop()
        """
        self.start()
        self.running = True
        self._stop_event = asyncio.Event()

        if handle_signals:
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, self.stop)

        logger.info(f"Starting activity monitor (poll interval: {self.poll_interval}s)")

        try:
            while self.running:
                await self.run_once()
                if not self.running:
                    break
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self.poll_interval)
                except asyncio.TimeoutError:
                    pass
        finally:
            self.shutdown()

    def stop(self) -> None:
        """Stop after the current cycle."""
        logger.info("Stopping activity monitor")
        self.running = False
        if self._stop_event is not None:
            self._stop_event.set()

    def shutdown(self) -> None:
        """Flush the cursor and close the activity log."""
        if self.cursor is not None:
            self._save_cursor()
        self.writer.close()
        logger.info(f"Activity monitor stopped: {self.stats.model_dump(exclude={'last_cycle_at'})}")


def build_service(config: AppConfig) -> ActivityMonitorService:
    """Build a service wired to ausearch from configuration."""
    audit = config.audit
    monitor = config.monitor

    source = AusearchSource(
        ausearch_path=audit.ausearch_path,
        key=audit.key,
        query_timeout=audit.query_timeout,
        remote_shell_exe=audit.remote_shell_exe,
    )
    dedup = None
    if monitor.delivery_mode == "dedup":
        dedup = DedupIndex(
            db_path=monitor.dedup_db_path,
            retention_hours=monitor.dedup_retention_hours,
        )

    return ActivityMonitorService(
        source=source,
        state=StateStore(monitor.state_path, lookback_minutes=monitor.lookback_minutes),
        writer=LogWriter(monitor.log_path),
        dedup=dedup,
        poll_interval=monitor.poll_interval,
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)


def main(config_path: Optional[str] = None, once: bool = False) -> int:
    """
    Main entry point for the activity monitor.

    Args:
        config_path: Optional YAML configuration file
        once: Run a single cycle and exit

    Returns:
        Exit code
    """
    try:
        config = load_config(config_path)
    except ConfigError as e:
        configure_logging()
        logger.error(str(e))
        return 1

    configure_logging(config.log_level)

    logger.info("=" * 60)
    logger.info("SSH Activity Monitor")
    logger.info("=" * 60)
    logger.info(f"Audit key: {config.audit.key}")
    logger.info(f"Activity log: {config.monitor.log_path}")
    logger.info(f"State file: {config.monitor.state_path}")
    logger.info(f"Delivery mode: {config.monitor.delivery_mode}")
    logger.info("=" * 60)

    service = build_service(config)

    try:
        if once:
            service.start()
            try:
                asyncio.run(service.run_once())
            finally:
                service.shutdown()
        else:
            asyncio.run(service.run(handle_signals=True))
    except AuditToolMissingError as e:
        logger.error(f"Fatal: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Received interrupt signal")
        service.stop()
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
