"""
Persistent processing cursor.
"""

import logging
import math
import os
import time
from pathlib import Path
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class StateStore:
    """
    Stores the cursor (epoch seconds of the last processed poll) in a
    small text file.

    The file is rewritten every cycle through a temporary file and
    ``os.replace``. Only one monitor may use a given state file.
    """

    def __init__(
        self,
        state_path: str = "/var/lib/ssh-file-activity.state",
        lookback_minutes: int = 10,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize state store.

        Args:
            state_path: Path of the cursor file
            lookback_minutes: Window used when no cursor has been saved
            clock: Current time in epoch seconds
        """
        self.state_path = Path(state_path)
        self.lookback_minutes = lookback_minutes
        self.clock = clock

    def default_cursor(self) -> float:
        """Cursor for a first run: now minus the lookback window."""
        return self.clock() - self.lookback_minutes * 60

    def read(self) -> Optional[float]:
        """
        Read the saved cursor.

        Returns:
            The cursor, or None if missing or unreadable
        """
        try:
            text = self.state_path.read_text().strip()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning(f"Cannot read state file {self.state_path}: {e}")
            return None

        try:
            value = float(text)
        except ValueError:
            logger.warning(f"Ignoring corrupt state file {self.state_path}: {text[:40]!r}")
            return None

        if not math.isfinite(value):
            logger.warning(f"Ignoring non-finite cursor in {self.state_path}")
            return None
        return value

    def load(self) -> float:
        """
        Load the cursor, defaulting to the bounded lookback window.

        Never raises.
        """
        cursor = self.read()
        if cursor is None:
            cursor = self.default_cursor()
            logger.info(
                f"No saved cursor, starting {self.lookback_minutes} minutes back"
            )
        return cursor

    def save(self, cursor: float) -> None:
        """
        Persist the cursor.

        Args:
            cursor: Epoch seconds
        """
        self.state_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.state_path.with_name(self.state_path.name + ".tmp")
        with open(tmp_path, "w") as f:
            f.write(repr(float(cursor)))
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, self.state_path)
        logger.debug(f"Saved cursor {cursor:.3f}")
