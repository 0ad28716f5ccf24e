"""
Persistence of the sync cursor (high-water mark) in a text file.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from docsync.exceptions import CursorError
from docsync.logging_config import get_logger

CURSOR_FILENAME = "last_sync_date.txt"

# Cursor used when nothing has been synced yet, or a full refresh is forced
BEGINNING_OF_TIME = "1900-01-01"


class CursorStore:
    """Persist the last successful sync cursor in a single text file."""

    def __init__(self, state_dir: Path, logger: Optional[logging.Logger] = None):
        """Initialize cursor store.

        Args:
            state_dir: Directory holding the cursor file
            logger: Optional logger instance
        """
        self._state_dir = Path(state_dir)
        self._logger = logger or get_logger(__name__)

    @property
    def path(self) -> Path:
        return self._state_dir / CURSOR_FILENAME

    def load(self) -> Optional[str]:
        """Read the persisted cursor. Returns None when absent or empty."""
        try:
            value = self.path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise CursorError(f"Error reading last sync date: {e}") from e
        return value or None

    def save(self, cursor: str) -> None:
        """Persist a cursor.

        The file is replaced atomically so a crash leaves either the old or the
        new value on disk.
        """
        try:
            self._state_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self._state_dir, prefix=".last_sync_date.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(cursor)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise CursorError(f"Error saving last sync date: {e}") from e
        self._logger.debug(f"Stored last sync date = {cursor}")

    def clear(self) -> None:
        """Forget the persisted cursor."""
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            raise CursorError(f"Error clearing last sync date: {e}") from e
