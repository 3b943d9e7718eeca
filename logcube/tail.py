"""File tail primitive: streams complete lines from a byte offset.

Handles:
- File not yet existing (keeps trying to open it)
- Log rotation (inode change detection, reopen from the start)
- File truncation (seek back to start)
- Partial lines (held back until the writer finishes them)
"""

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Line:
    text: str
    size: int   # bytes consumed from the file, line terminator included


@dataclass(frozen=True)
class StreamGap:
    """The stream restarted at *position* instead of continuing where it was."""

    reason: str
    position: int


class FileTail:
    """Reads appended lines from *path* starting at byte *offset*.

    ``readline()`` never blocks. It returns a Line, None when no complete line
    is available yet, or a StreamGap when the stream had to start over
    (truncation, rotation, or a resume offset past the end of the file).
    """

    def __init__(self, path: str, offset: int = 0, reopen: bool = True, must_exist: bool = False):
        self._path = path
        self._start_offset = offset
        self._reopen = reopen
        self._must_exist = must_exist
        self._file = None
        self._inode = None
        self._position = offset
        self._pending_gap: StreamGap | None = None

    @property
    def path(self) -> str:
        return self._path

    @property
    def position(self) -> int:
        return self._position

    def readline(self) -> Line | StreamGap | None:
        if self._file is None and not self._open_file():
            return None

        if self._pending_gap is not None:
            gap, self._pending_gap = self._pending_gap, None
            return gap

        raw = self._file.readline()
        if raw.endswith(b"\n"):
            self._position += len(raw)
            text = raw.rstrip(b"\r\n").decode("utf-8", errors="replace")
            return Line(text=text, size=len(raw))

        if raw:
            # Partial line: rewind and wait for the writer to finish it
            self._file.seek(self._position)

        return self._check_replaced()

    def close(self):
        if self._file is not None:
            self._file.close()
            self._file = None

    def _open_file(self) -> bool:
        try:
            self._file = open(self._path, "rb")
        except FileNotFoundError:
            if self._must_exist:
                raise
            logger.debug("Waiting for file %s to appear...", self._path)
            return False
        except OSError as e:
            logger.warning("Cannot open %s: %s", self._path, e)
            return False

        stat = os.fstat(self._file.fileno())
        self._inode = stat.st_ino
        offset = self._start_offset
        if offset > stat.st_size:
            logger.info("%s is shorter than resume offset %d, starting over", self._path, offset)
            offset = 0
            self._pending_gap = StreamGap("truncated", 0)

        self._file.seek(offset)
        self._position = offset
        logger.debug("Opened %s (inode=%d) at offset %d", self._path, self._inode, offset)
        return True

    def _check_replaced(self) -> StreamGap | None:
        """At EOF: detect rotation (inode changed) or truncation (file shrank)."""
        try:
            stat = os.stat(self._path)
        except FileNotFoundError:
            # Rotated away; the replacement has not been created yet
            return None

        if stat.st_ino != self._inode:
            if not self._reopen:
                return None
            logger.info("File rotation detected for %s", self._path)
            self.close()
            self._start_offset = 0
            self._position = 0
            return StreamGap("rotated", 0)

        if stat.st_size < self._position:
            logger.info("File truncation detected for %s", self._path)
            self._file.seek(0)
            self._position = 0
            return StreamGap("truncated", 0)

        return None
