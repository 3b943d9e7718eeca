"""Checkpoint store: persists per-file read offsets in a SQLite file.

Every call opens its own connection and closes it before returning, so any
number of tailer threads can share one database file without holding it open.
"""

import logging
import os
import sqlite3
from contextlib import closing

from logcube.models import SeekState

logger = logging.getLogger(__name__)

_SCHEMA = "CREATE TABLE IF NOT EXISTS checkpoints (path TEXT PRIMARY KEY, state BLOB NOT NULL)"


class CheckpointError(Exception):
    """Raised when a checkpoint cannot be read or written."""


class CheckpointStore:
    def __init__(self, db_path: str, timeout: float = 5.0):
        self._db_path = db_path
        self._timeout = timeout

    @property
    def db_path(self) -> str:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        parent = os.path.dirname(self._db_path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        conn = sqlite3.connect(self._db_path, timeout=self._timeout)
        try:
            conn.execute(_SCHEMA)
        except sqlite3.Error:
            conn.close()
            raise
        return conn

    def get(self, path: str) -> SeekState:
        """Return the stored offset for *path*; offset 0 when nothing is stored."""
        try:
            with closing(self._connect()) as conn:
                row = conn.execute(
                    "SELECT state FROM checkpoints WHERE path = ?", (path,)
                ).fetchone()
        except (sqlite3.Error, OSError) as e:
            raise CheckpointError(f"failed to read checkpoint for {path}: {e}") from e

        if row is None:
            return SeekState()

        try:
            return SeekState.from_bytes(row[0])
        except (ValueError, KeyError, TypeError) as e:
            raise CheckpointError(f"corrupt checkpoint for {path}: {e}") from e

    def put(self, path: str, state: SeekState) -> None:
        try:
            with closing(self._connect()) as conn, conn:
                conn.execute(
                    "INSERT OR REPLACE INTO checkpoints (path, state) VALUES (?, ?)",
                    (path, state.to_bytes()),
                )
        except (sqlite3.Error, OSError) as e:
            raise CheckpointError(f"failed to write checkpoint for {path}: {e}") from e
        logger.debug("Checkpoint %s -> %d", path, state.offset)

    def all(self) -> dict[str, int]:
        """Map of every stored path to its offset."""
        try:
            with closing(self._connect()) as conn:
                rows = conn.execute("SELECT path, state FROM checkpoints").fetchall()
        except (sqlite3.Error, OSError) as e:
            raise CheckpointError(f"failed to list checkpoints: {e}") from e

        offsets = {}
        for path, state in rows:
            try:
                offsets[path] = SeekState.from_bytes(state).offset
            except (ValueError, KeyError, TypeError) as e:
                raise CheckpointError(f"corrupt checkpoint for {path}: {e}") from e
        return offsets
